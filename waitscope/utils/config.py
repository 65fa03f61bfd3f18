# waitscope/utils/config.py
from __future__ import annotations

import functools
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ---------- Enums ----------

class BrowserType(str, Enum):
    chromium = "chromium"
    firefox = "firefox"
    webkit = "webkit"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Match(str, Enum):
    """How to choose between several elements matching one locator."""
    first = "first"
    single = "single"
    smart = "smart"
    prefer = "prefer"


class TextPrecision(str, Enum):
    exact = "exact"
    substring = "substring"
    prefer_exact = "prefer_exact"


# ---------- Settings ----------

class Settings(BaseSettings):
    """
    Central configuration for waitscope.

    Values load in this order of precedence:
      1) Environment variables
      2) .env file in project root
      3) Defaults below

    The engine defaults are only read when a BrowserSession is built; they
    become that session's base Options and are never consulted again.
    """

    # ---- Engine defaults ----
    TIMEOUT_MS: int = Field(default=1000, ge=0, description="Retry budget for every lookup/action/query")
    RETRY_INTERVAL_MS: int = Field(default=50, ge=0, description="Sleep between two attempts")
    CONSIDER_INVISIBLE_ELEMENTS: bool = Field(default=False)
    TEXT_PRECISION: TextPrecision = Field(default=TextPrecision.prefer_exact)
    MATCH: Match = Field(default=Match.smart)
    WAIT_BEFORE_CLICK_MS: int = Field(default=0, ge=0)
    RETRY_DRIVER_FAULTS: bool = Field(default=True, description="Swallow driver errors between attempts")

    # ---- Browser configuration (Playwright adapter) ----
    HEADLESS: bool = Field(default=True, description="Run the browser headless")
    BROWSER_TYPE: BrowserType = Field(default=BrowserType.chromium, description="Playwright browser")
    VIEWPORT_WIDTH: int = Field(default=1366, ge=320, le=7680)
    VIEWPORT_HEIGHT: int = Field(default=768, ge=320, le=4320)
    SLOW_MO: int = Field(default=0, ge=0, description="Slow down actions (ms) for debugging")
    USER_AGENT: Optional[str] = Field(default=None)
    PAGE_LOAD_TIMEOUT: int = Field(default=30000, ge=1000)

    # ---- Check scripts ----
    SCRIPTS_DIR: Path = Field(default=Path("./checks"))
    CONTINUE_ON_ERROR: bool = Field(default=False)

    # ---- Logging ----
    LOG_LEVEL: LogLevel = Field(default=LogLevel.INFO)
    LOG_TO_FILE: bool = Field(default=False)
    LOG_FILE: Path = Field(default=Path("./waitscope.log"))
    COLORIZED_OUTPUT: bool = Field(default=True)

    # ---- Proxies ----
    PROXY_SERVER: Optional[str] = None
    PROXY_USERNAME: Optional[str] = None
    PROXY_PASSWORD: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("SCRIPTS_DIR", "LOG_FILE", mode="before")
    @classmethod
    def _coerce_to_path(cls, v):
        if isinstance(v, Path):
            return v
        return Path(str(v)) if v is not None else v

    @field_validator("SCRIPTS_DIR", "LOG_FILE", mode="after")
    @classmethod
    def _absolutize(cls, v: Path):
        return v if v.is_absolute() else Path.cwd() / v

    @field_validator("TEXT_PRECISION", "MATCH", mode="before")
    @classmethod
    def _lower_enum(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    def playwright_launch_kwargs(self) -> dict:
        kwargs = {
            "headless": self.HEADLESS,
            "slow_mo": self.SLOW_MO,
        }
        if self.PROXY_SERVER:
            proxy = {"server": self.PROXY_SERVER}
            if self.PROXY_USERNAME and self.PROXY_PASSWORD:
                proxy["username"] = self.PROXY_USERNAME
                proxy["password"] = self.PROXY_PASSWORD
            kwargs["proxy"] = proxy
        return kwargs

    def playwright_context_kwargs(self) -> dict:
        ctx = {"viewport": {"width": self.VIEWPORT_WIDTH, "height": self.VIEWPORT_HEIGHT}}
        if self.USER_AGENT:
            ctx["user_agent"] = self.USER_AGENT
        return ctx


# --------- Public accessor (memoized) ---------

@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache settings once per process.
    Call `get_settings.cache_clear()` if you need to reload after changing env.
    """
    return Settings()


# --------- Lightweight DTO for the CLI ---------

class EngineDefaults(BaseModel):
    timeout_ms: int
    retry_interval_ms: int
    match: Match
    text_precision: TextPrecision
    consider_invisible_elements: bool

    @classmethod
    def from_settings(cls, s: Settings) -> "EngineDefaults":
        return cls(
            timeout_ms=s.TIMEOUT_MS,
            retry_interval_ms=s.RETRY_INTERVAL_MS,
            match=s.MATCH,
            text_precision=s.TEXT_PRECISION,
            consider_invisible_elements=s.CONSIDER_INVISIBLE_ELEMENTS,
        )
