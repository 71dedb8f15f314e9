"""Configuration loader for diffview."""

from __future__ import annotations

import asyncio
import os
import tempfile
import tomllib
from pathlib import Path
from typing import Literal, TypeAlias

import tomlkit
from pydantic import BaseModel, Field, field_validator

from diffview.core.paths import ensure_directories, get_config_path

VcsTypeLiteral: TypeAlias = Literal["git", "hg"]

VCS_TYPE_VALUES = frozenset({"git", "hg"})


def atomic_write(path: Path, content: str) -> None:
    """Write file atomically to avoid partial/corrupt writes."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp_")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        Path(tmp_path).replace(path)
    except Exception:
        Path(tmp_path).unlink(missing_ok=True)
        raise


class GeneralConfig(BaseModel):
    """General configuration settings."""

    vcs_type: VcsTypeLiteral = Field(
        default="git",
        description="Version-control system whose repositories the diff view tracks",
    )
    rebase_on_amend: bool = Field(
        default=True,
        description="Rebase descendant commits when amending (clean amend otherwise)",
    )
    process_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for version-control subprocesses",
    )
    default_compare_revision: str = Field(
        default="HEAD",
        description="Revision browse mode compares against until one is picked",
    )

    @field_validator("vcs_type", mode="before")
    @classmethod
    def validate_vcs_type(cls, value: object) -> str:
        """Coerce unknown version-control types to git."""
        match value:
            case str() as vcs if vcs.strip().lower() in VCS_TYPE_VALUES:
                return vcs.strip().lower()
            case _:
                pass
        return "git"

    @field_validator("process_timeout_seconds", mode="before")
    @classmethod
    def validate_process_timeout(cls, value: object) -> float:
        """Fall back to the default for non-positive or non-numeric timeouts."""
        match value:
            case int() | float() as seconds if not isinstance(seconds, bool) and seconds > 0:
                return float(seconds)
            case _:
                pass
        return 30.0


class UIConfig(BaseModel):
    """UI-related user preferences."""

    show_non_vcs_repos: bool = Field(
        default=True,
        description="Show paths outside managed repositories in browse mode",
    )
    to_revision_title: str = Field(
        default="Filesystem / Editor",
        description="Title of the live side of a diff",
    )


class DiffViewConfig(BaseModel):
    """Root configuration model."""

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    ui: UIConfig = Field(default_factory=UIConfig)

    @classmethod
    def load(cls, config_path: Path | None = None) -> DiffViewConfig:
        """Load configuration from TOML file or use defaults."""
        if config_path is None:
            ensure_directories()
            config_path = get_config_path()

        if config_path.exists():
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
            return cls.model_validate(data)

        return cls()

    async def save(self, path: Path) -> None:
        """Serialize current config to TOML file.

        Args:
            path: Path to write config file (created if missing)
        """
        doc = tomlkit.document()

        general_table = tomlkit.table()
        for key, value in self.general.model_dump().items():
            if value is not None:
                general_table[key] = value
        doc["general"] = general_table

        ui_table = tomlkit.table()
        for key, value in self.ui.model_dump().items():
            if value is not None:
                ui_table[key] = value
        doc["ui"] = ui_table

        content = tomlkit.dumps(doc)
        await asyncio.to_thread(atomic_write, path, content)
