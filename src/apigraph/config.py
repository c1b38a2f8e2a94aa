"""Settings loaded from ``APIGRAPH_*`` environment variables."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="APIGRAPH_", extra="ignore")

    log_level: str = "WARNING"

    # Where deployment history lives. Unset means ".apigraph" next to the
    # definition file being compiled.
    state_dir: Optional[Path] = None

    # Entry fields left out of the change fingerprint. Empty keeps every
    # field deployment-relevant, descriptions included.
    fingerprint_exclude_fields: list[str] = Field(default_factory=list)

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return level

    def db_path_for(self, definition_path: Path) -> Path:
        base = self.state_dir if self.state_dir is not None else definition_path.parent / ".apigraph"
        return base / "deployments.db"

    def default_db_path(self) -> Path:
        # used when no definition file is at hand, e.g. listing history
        base = self.state_dir if self.state_dir is not None else Path(".apigraph")
        return base / "deployments.db"


def get_settings() -> Settings:
    return Settings()
