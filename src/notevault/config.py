"""Configuration management for notevault.

Loads from environment variables, .env files, and config/default.toml.
Values set in the TOML file take precedence over env vars.

Default base directory: ~/.notevault/
  vaults/             — one directory per vault
  vaults/vaults.json  — vault registry
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

NOTEVAULT_HOME = Path.home() / ".notevault"


class StorageConfig(BaseSettings):
    """Where vaults live and how notes hit the disk."""

    base_path: Path = Field(
        default_factory=lambda: NOTEVAULT_HOME / "vaults",
        description="Directory holding the vault registry and default vault roots",
    )
    registry_file: str = "vaults.json"
    default_vault: str = "Default"
    note_extension: str = ".md"
    fsync: bool = True  # Off only for throwaway vaults (tests, benchmarks)

    @field_validator("base_path")
    @classmethod
    def expand_base_path(cls, v: Path) -> Path:
        return v.expanduser()

    @field_validator("note_extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        if not v.startswith(".") or len(v) < 2:
            raise ValueError(f"Note extension must look like '.md', got {v!r}")
        return v

    @property
    def registry_path(self) -> Path:
        return self.base_path / self.registry_file


class IndexConfig(BaseSettings):
    """Full-text index configuration."""

    min_token_length: int = Field(default=1, ge=1)


class LinkConfig(BaseSettings):
    """Link extraction configuration."""

    include_markdown_links: bool = True
    include_embeds: bool = True


class RenderConfig(BaseSettings):
    """Markup rendering configuration."""

    extensions: list[str] = Field(
        default_factory=lambda: [
            "fenced_code",
            "tables",
            "sane_lists",
            "footnotes",
            "pymdownx.tilde",
            "pymdownx.tasklist",
        ]
    )
    strip_frontmatter: bool = True
    allowed_url_schemes: list[str] = Field(
        default_factory=lambda: ["http", "https", "mailto"]
    )


class Settings(BaseSettings):
    """Root configuration — aggregates all sub-configs."""

    model_config = SettingsConfigDict(
        env_prefix="NOTEVAULT_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    storage: StorageConfig = Field(default_factory=StorageConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
    links: LinkConfig = Field(default_factory=LinkConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)

    @classmethod
    def from_toml(cls, path: Path | None = None) -> Settings:
        """Load settings from TOML file; env vars fill whatever the file leaves unset."""
        config_path = path or Path("config/default.toml")
        if config_path.exists():
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
            return cls(**data)
        return cls()


def load_settings(config_path: Path | None = None) -> Settings:
    """Load and validate settings. Entry point for all config access."""
    return Settings.from_toml(config_path)
