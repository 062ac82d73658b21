"""Runtime settings, read from the environment (and ``.env`` via the CLI)."""

from __future__ import annotations

import functools
import os

from pydantic import BaseModel, Field

DEFAULT_MAX_DEPTH = 256


class Settings(BaseModel):
    template_path: str | None = None  # RPPKIT_TEMPLATE; None = bundled empty.RPP
    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=1)  # RPPKIT_MAX_DEPTH
    log_level: str = "WARNING"  # RPPKIT_LOG_LEVEL

    @classmethod
    def from_env(cls, environ=None) -> Settings:
        env = os.environ if environ is None else environ
        values = {}
        if env.get("RPPKIT_TEMPLATE"):
            values["template_path"] = env["RPPKIT_TEMPLATE"]
        if env.get("RPPKIT_MAX_DEPTH"):
            values["max_depth"] = env["RPPKIT_MAX_DEPTH"]
        if env.get("RPPKIT_LOG_LEVEL"):
            values["log_level"] = env["RPPKIT_LOG_LEVEL"].upper()
        return cls(**values)


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
