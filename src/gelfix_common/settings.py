"""
Process settings sourced from the environment and an optional .env file.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_env_file() -> Optional[Path]:
    cwd = Path.cwd().resolve()
    for parent in [cwd, *cwd.parents]:
        candidate = parent / ".env"
        if candidate.exists():
            return candidate
    return None


_ENV_PATH = _find_env_file()
if _ENV_PATH is not None:
    load_dotenv(dotenv_path=_ENV_PATH, override=False)


class Settings(BaseSettings):
    """Settings that apply to the whole process rather than one input."""

    model_config = SettingsConfigDict(
        env_prefix="GELFIX_",
        env_file=str(_ENV_PATH) if _ENV_PATH is not None else None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"
    config: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GELFIX_CONFIG", "GELFIX_CONFIG_PATH"),
    )


@lru_cache()
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()
