# waitscope/script/loader.py
from __future__ import annotations

"""Check script schema and loader
---------------------------------
Pydantic models for check-script steps and a YAML loader that accepts
single and multi-document files, with `${ENV}` substitution in every string.
"""

from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Literal, Optional, Union
import os
import re

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from waitscope.core.options import Options


# ---------- Core enums ----------


class ActionName(str, Enum):
    visit = "visit"
    click_button = "click_button"
    click_link = "click_link"
    click = "click"
    fill_in = "fill_in"
    check = "check"
    uncheck = "uncheck"
    choose = "choose"
    select = "select"
    hover = "hover"
    has_content = "has_content"
    has_no_content = "has_no_content"
    exists = "exists"
    missing = "missing"
    find_state = "find_state"


def _non_empty(v: str, what: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError(f"{what} cannot be empty")
    return v


# ---------- Step models (discriminated union by 'action') ----------


class StepBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    action: ActionName
    name: Optional[str] = Field(default=None, description="Human-friendly step label")
    options: Optional[Options] = Field(default=None, description="Engine overrides for this step only")
    frame: Optional[str] = Field(default=None, description="Run the step inside this frame (id, name or title)")
    optional: bool = Field(default=False, description="If true, a failure is logged and the script continues")

    def label(self) -> str:
        return self.name or self.action.value


class _LocatorStep(StepBase):
    locator: str

    @field_validator("locator")
    @classmethod
    def _locator_non_empty(cls, v: str) -> str:
        return _non_empty(v, "locator")


class _CssStep(StepBase):
    css: str = Field(..., description="CSS selector")
    text: Optional[str] = Field(default=None, description="Only elements whose text matches")

    @field_validator("css")
    @classmethod
    def _css_non_empty(cls, v: str) -> str:
        return _non_empty(v, "css")


class StepVisit(StepBase):
    action: Literal[ActionName.visit]
    url: str

    @field_validator("url")
    @classmethod
    def _url_absolute(cls, v: str) -> str:
        v = v.strip()
        if not re.match(r"^(https?|file|about|data):", v):
            raise ValueError("visit.url must be an absolute URL")
        return v


class StepClickButton(_LocatorStep):
    action: Literal[ActionName.click_button]
    until_content: Optional[str] = Field(default=None, description="Click again until this text shows up")


class StepClickLink(_LocatorStep):
    action: Literal[ActionName.click_link]
    until_content: Optional[str] = None


class StepClick(_CssStep):
    action: Literal[ActionName.click]


class StepFillIn(_LocatorStep):
    action: Literal[ActionName.fill_in]
    value: str


class StepCheck(_LocatorStep):
    action: Literal[ActionName.check]


class StepUncheck(_LocatorStep):
    action: Literal[ActionName.uncheck]


class StepChoose(_LocatorStep):
    action: Literal[ActionName.choose]


class StepSelect(StepBase):
    action: Literal[ActionName.select]
    option: str
    from_: str = Field(..., alias="from", description="Field locator of the select box")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class StepHover(_CssStep):
    action: Literal[ActionName.hover]


class StepHasContent(StepBase):
    action: Literal[ActionName.has_content]
    text: str


class StepHasNoContent(StepBase):
    action: Literal[ActionName.has_no_content]
    text: str


class StepExists(_CssStep):
    action: Literal[ActionName.exists]


class StepMissing(_CssStep):
    action: Literal[ActionName.missing]


class StateSpec(BaseModel):
    name: str
    content: Optional[str] = Field(default=None, description="Reached when the page shows this text")
    css: Optional[str] = Field(default=None, description="Reached when this element exists")

    @field_validator("css", "content")
    @classmethod
    def _strip(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _has_condition(self) -> "StateSpec":
        if not self.content and not self.css:
            raise ValueError(f"state '{self.name}' needs 'content' or 'css'")
        return self


class StepFindState(StepBase):
    action: Literal[ActionName.find_state]
    states: list[StateSpec] = Field(..., min_length=1)
    expect: Optional[str] = Field(default=None, description="Fail unless this state is the one reached")

    @field_validator("expect")
    @classmethod
    def _expect_known(cls, v: Optional[str], info) -> Optional[str]:
        names = [s.name for s in info.data.get("states") or []]
        if v is not None and names and v not in names:
            raise ValueError(f"expect '{v}' is not one of the states {names}")
        return v


Step = Annotated[
    Union[
        StepVisit,
        StepClickButton,
        StepClickLink,
        StepClick,
        StepFillIn,
        StepCheck,
        StepUncheck,
        StepChoose,
        StepSelect,
        StepHover,
        StepHasContent,
        StepHasNoContent,
        StepExists,
        StepMissing,
        StepFindState,
    ],
    Field(discriminator="action"),
]


# ---------- Script model ----------


class Script(BaseModel):
    version: str = Field(default="1")
    name: str = Field(..., description="Script name, e.g. 'login_smoke'")
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    options: Optional[Options] = Field(default=None, description="Engine overrides for the whole script")
    steps: list[Step] = Field(..., min_length=1)

    @field_validator("name")
    @classmethod
    def _name_non_empty(cls, v: str) -> str:
        return _non_empty(v, "name")


# ---------- Public API ----------

_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def substitute_env(obj: Any) -> Any:
    """Replace `${NAME}` in every string; unknown names are left as written."""
    if isinstance(obj, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), m.group(0)), obj)
    if isinstance(obj, list):
        return [substitute_env(x) for x in obj]
    if isinstance(obj, dict):
        return {k: substitute_env(v) for k, v in obj.items()}
    return obj


def _validate(data: Any, path: Path, where: str) -> Script:
    if not isinstance(data, dict):
        raise ValueError(f"{where} in {path} must be a mapping/object.")
    data = substitute_env(data)
    data.setdefault("name", path.stem)
    try:
        return Script.model_validate(data)
    except ValidationError as ve:
        lines = [f"Invalid script '{path}' ({where}):"]
        for e in ve.errors():
            loc = ".".join(str(p) for p in e.get("loc", []))
            msg = e.get("msg", "invalid value")
            lines.append(f"  - {loc}: {msg}")
        raise ValueError("\n".join(lines)) from ve


def load_scripts_file(path: Path | str) -> list[Script]:
    """Load one or more scripts from a YAML file (supports multi-document)."""
    script_path = Path(path)
    if not script_path.exists():
        raise FileNotFoundError(f"Script file not found: {script_path}")
    try:
        docs = list(yaml.safe_load_all(script_path.read_text(encoding="utf-8")))
    except yaml.YAMLError as ye:
        raise ValueError(f"YAML parse error in {script_path}: {ye}") from ye

    out = [
        _validate(data, script_path, f"document {idx}")
        for idx, data in enumerate(docs, start=1)
        if data is not None
    ]
    if not out:
        raise ValueError(f"No script documents found in {script_path}")
    return out


def load_script(path: Path | str) -> Script:
    """Load a file that must hold exactly one script."""
    scripts = load_scripts_file(path)
    if len(scripts) != 1:
        raise ValueError(f"{path} holds {len(scripts)} scripts; use load_scripts_file")
    return scripts[0]


def find_script_files(root: Path, recursive: bool = True) -> list[Path]:
    if recursive:
        return sorted(list(root.rglob("*.yaml")) + list(root.rglob("*.yml")))
    return sorted(list(root.glob("*.yaml")) + list(root.glob("*.yml")))


__all__ = [
    "ActionName",
    "StateSpec",
    "Step",
    "Script",
    "substitute_env",
    "load_script",
    "load_scripts_file",
    "find_script_files",
]
