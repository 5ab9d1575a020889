"""Configuration settings loaded from environment variables."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field


load_dotenv()


BUNDLED_TABLES_PATH = Path(__file__).resolve().parent.parent / "resources"


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Decision tables
    tables_path: Path = Field(
        default=BUNDLED_TABLES_PATH,
        description="Table definition file or directory loaded at startup",
    )
    default_table: str = Field(
        default="dishDecision",
        description="Table evaluated when a request names none",
    )
    require_match: bool = Field(
        default=False,
        description="Raise EmptyResultError instead of returning an empty result",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["console", "json"] = Field(
        default="console",
        description="Renderer for structured log lines",
    )

    model_config = {"extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance loaded from environment."""
    return Settings(
        tables_path=Path(os.getenv("TABLES_PATH", str(BUNDLED_TABLES_PATH))),
        default_table=os.getenv("DEFAULT_TABLE", "dishDecision"),
        require_match=_env_flag("REQUIRE_MATCH"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_format=os.getenv("LOG_FORMAT", "console"),  # type: ignore[arg-type]
    )
