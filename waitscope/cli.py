# waitscope/cli.py
from __future__ import annotations

"""Command-line interface
------------------------
List/validate/run check scripts and print the effective configuration.
Thin wrapper around the script loader and runner for local runs.
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

import click

from waitscope.script.loader import Script, find_script_files, load_scripts_file
from waitscope.utils.config import EngineDefaults, get_settings
from waitscope.utils.logger import bind, get_logger, set_log_level, unbind


# -------- helpers --------


def _echo_json(obj) -> None:
    click.echo(json.dumps(obj, indent=2, ensure_ascii=False, default=str))


def _collect_files(targets: Tuple[str, ...], scripts_dir: Optional[str], recursive: bool) -> List[Path]:
    paths: List[Path] = []
    for p in (Path(t).resolve() for t in targets):
        paths.extend(find_script_files(p, recursive=True) if p.is_dir() else [p])
    if not targets and scripts_dir:
        paths.extend(find_script_files(Path(scripts_dir), recursive=recursive))
    return paths


def _matches_tag(script: Script, tag: Optional[str]) -> bool:
    return tag is None or tag in script.tags


# -------- CLI root --------


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override LOG_LEVEL from settings",
)
@click.version_option(package_name="waitscope")
def cli(log_level: Optional[str]):
    _ = get_settings()
    if log_level:
        set_log_level(log_level.upper())


# -------- commands --------


@cli.command("config")
def cmd_config():
    """Print effective configuration (after .env & env vars) and engine defaults."""
    s = get_settings()
    data = {k: (str(v) if isinstance(v, Path) else v) for k, v in s.model_dump(mode="json").items()}
    if data.get("PROXY_PASSWORD"):
        data["PROXY_PASSWORD"] = "***"
    data["engine_defaults"] = EngineDefaults.from_settings(s).model_dump(mode="json")
    _echo_json(data)


@cli.command("list")
@click.option(
    "--dir", "scripts_dir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=lambda: str(get_settings().SCRIPTS_DIR),
    show_default=True,
    help="Directory containing check scripts",
)
@click.option("--recursive/--no-recursive", default=True, show_default=True)
@click.option("--tag", type=str, default=None, help="Only scripts carrying this tag")
def cmd_list(scripts_dir: str, recursive: bool, tag: Optional[str]):
    """List check scripts available in a directory."""
    log = get_logger(__name__)
    rows = []
    for fp in find_script_files(Path(scripts_dir), recursive=recursive):
        try:
            scripts = load_scripts_file(fp)
        except (ValueError, FileNotFoundError) as e:
            log.debug(f"Skipping {fp}: {e}")
            continue
        rows.extend((fp, sc) for sc in scripts if _matches_tag(sc, tag))

    if not rows:
        click.echo("No scripts found.")
        return

    click.echo(f"Found {len(rows)} script(s):\n")
    for fp, sc in rows:
        tags = f" [{', '.join(sc.tags)}]" if sc.tags else ""
        click.echo(f" - {sc.name}{tags}  ({len(sc.steps)} steps)  <- {fp}")


@cli.command("validate")
@click.argument("targets", nargs=-1, required=False)
@click.option("--dir", "scripts_dir", type=click.Path(file_okay=False, dir_okay=True, exists=True),
              help="Validate all scripts under this directory")
@click.option("--recursive/--no-recursive", default=True, show_default=True)
def cmd_validate(targets: Tuple[str, ...], scripts_dir: Optional[str], recursive: bool):
    """Validate check scripts from files or a directory (supports multi-doc YAML)."""
    if not targets and not scripts_dir:
        click.echo("Provide file(s) or --dir to validate.")
        sys.exit(2)

    ok = True
    for fp in _collect_files(targets, scripts_dir, recursive):
        try:
            for sc in load_scripts_file(fp):
                click.echo(f"OK  {fp}  ->  {sc.name} ({len(sc.steps)} steps)")
        except (ValueError, FileNotFoundError) as e:
            ok = False
            click.echo(f"ERR {fp}  ->  {e}")

    sys.exit(0 if ok else 1)


@cli.command("run")
@click.argument("targets", nargs=-1, required=False)
@click.option("--dir", "scripts_dir", type=click.Path(file_okay=False, dir_okay=True, exists=True),
              help="Run all scripts found under this directory (filtered by --tag)")
@click.option("--recursive/--no-recursive", default=True, show_default=True)
@click.option("--tag", type=str, default=None, help="Only scripts carrying this tag")
@click.option("--continue-on-error/--stop-on-error", default=None,
              help="Override CONTINUE_ON_ERROR: keep running steps after a failure")
@click.option("--json-out", type=click.Path(dir_okay=False), default=None, help="Write a JSON summary to this file")
@click.option("--log-file", type=click.Path(dir_okay=False), default=None, help="Also write JSON logs of this run here")
def cmd_run(
    targets: Tuple[str, ...],
    scripts_dir: Optional[str],
    recursive: bool,
    tag: Optional[str],
    continue_on_error: Optional[bool],
    json_out: Optional[str],
    log_file: Optional[str],
):
    """
    Run one or more check scripts.

    Examples:
      waitscope run checks/login.yaml
      waitscope run --dir checks --tag smoke --json-out out/summary.json
    """
    from waitscope.script.runner import ScriptRunner  # local import keeps `list`/`validate` free of playwright

    if not targets and not scripts_dir:
        click.echo("Nothing to run. Provide file(s) or --dir.")
        sys.exit(2)

    scripts: List[Tuple[Path, Script]] = []
    load_errors: List[dict] = []
    for fp in _collect_files(targets, scripts_dir, recursive):
        try:
            scripts.extend((fp, sc) for sc in load_scripts_file(fp) if _matches_tag(sc, tag))
        except (ValueError, FileNotFoundError) as e:
            load_errors.append({"ok": False, "script": str(fp), "error": str(e), "error_type": e.__class__.__name__})
            click.echo(f"ERR {fp} -> {e}")

    if not scripts and not load_errors:
        click.echo("No scripts matched.")
        sys.exit(1)

    bind(run_id=datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ"))
    click.echo(f"Running {len(scripts)} script(s)...")

    runner = ScriptRunner(settings=get_settings(), continue_on_error=continue_on_error)
    results: List[dict] = list(load_errors)
    try:
        for fp, sc in scripts:
            res = runner.run(sc, log_file=Path(log_file) if log_file else None)
            res.setdefault("file", str(fp))
            results.append(res)
            if res.get("ok", False):
                click.echo(f"OK  {fp} -> {sc.name} ({len(res.get('steps', []))} steps)")
            else:
                failed = res.get("failed_step") or {}
                step_desc = ""
                if failed:
                    step_desc = f" [step {failed.get('index', '?')} {failed.get('action', '')} {failed.get('name') or ''}]"
                err_type = res.get("error_type")
                prefix = f"{err_type}: " if err_type else ""
                click.echo(f"ERR {fp}{step_desc} -> {prefix}{res.get('error', 'unknown error')}")
    finally:
        unbind("run_id")

    ok_count = sum(1 for r in results if r.get("ok", False))
    fail_count = len(results) - ok_count
    click.echo(f"Done. OK={ok_count}  FAIL={fail_count}")

    if json_out:
        outp = Path(json_out).resolve()
        outp.parent.mkdir(parents=True, exist_ok=True)
        outp.write_text(json.dumps({"results": results}, indent=2, default=str), encoding="utf-8")
        click.echo(f"Wrote summary: {outp}")

    sys.exit(0 if fail_count == 0 else 1)


def main() -> None:
    cli(prog_name="waitscope")


if __name__ == "__main__":
    main()
