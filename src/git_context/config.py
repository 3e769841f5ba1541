"""Configuration management for git-context."""

import json
import logging
from pathlib import Path
from typing import Optional, Any

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class GitInfo(BaseModel):
    """Resolved git executable.

    Locating the binary is the caller's job; the engine only needs the path
    and the version string git reported.
    """

    path: str = Field(default="git", description="Path to the git executable")
    version: str = Field(default="2.0.0", description="Version reported by git")

    @field_validator("version", mode="before")
    @classmethod
    def strip_version_prefix(cls, v: Any) -> str:
        """Accept raw ``git version 2.43.0`` output as well as ``2.43.0``."""
        if not isinstance(v, str):
            raise ValueError(f"Expected str, got {type(v)}")
        v = v.strip()
        if v.startswith("git version "):
            v = v[len("git version ") :]
        return v

    def validate_version(self, major: int, minor: int) -> bool:
        """Check whether git is at least ``major.minor``."""
        parts = self.version.split(".")
        try:
            git_major = int(parts[0])
            git_minor = int(parts[1]) if len(parts) > 1 else 0
        except ValueError:
            logger.warning(f"Unparseable git version: {self.version}")
            return False
        return git_major >= major and git_minor >= minor


class TrackerConfig(BaseModel):
    """Configuration for active editor tracking."""

    enabled: bool = Field(default=True, description="Track the active editor")
    debounce_seconds: float = Field(
        default=0.05,
        description="Quiet period collapsing editor and document notifications",
    )
    repository_debounce_seconds: float = Field(
        default=0.25,
        description="Quiet period collapsing .git file system notifications",
    )
    watch_repositories: bool = Field(
        default=True, description="Watch .git directories for external changes"
    )


class BlameConfig(BaseModel):
    """Configuration for blame queries."""

    ignore_whitespace: bool = Field(
        default=False, description="Pass -w to git blame"
    )


class LogConfig(BaseModel):
    """Configuration for history and status queries."""

    max_count: Optional[int] = Field(
        default=None, description="Default number of commits to fetch"
    )
    porcelain_version: int = Field(
        default=2, description="Porcelain schema for git status (1 or 2)"
    )

    @field_validator("porcelain_version")
    @classmethod
    def check_porcelain_version(cls, v: int) -> int:
        if v not in (1, 2):
            raise ValueError(f"porcelain_version must be 1 or 2, got {v}")
        return v


class GitContextConfig(BaseModel):
    """Top-level configuration."""

    git: GitInfo = Field(default_factory=GitInfo)
    tracker: TrackerConfig = Field(default_factory=TrackerConfig)
    blame: BlameConfig = Field(default_factory=BlameConfig)
    log: LogConfig = Field(default_factory=LogConfig)
    default_encoding: str = Field(
        default="utf-8", description="Encoding used to decode git output"
    )


class ConfigManager:
    """Manages configuration loading and saving."""

    DEFAULT_CONFIG_PATH = Path(".git-context/config.json")

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or self.DEFAULT_CONFIG_PATH
        self._config: Optional[GitContextConfig] = None

    def load(self) -> GitContextConfig:
        """Load configuration from file or fall back to defaults."""
        if self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    data = json.load(f)
                self._config = GitContextConfig(**data)
            except Exception as e:
                raise ValueError(f"Failed to load config from {self.config_path}: {e}")
        else:
            self._config = GitContextConfig()

        return self._config

    def save(self, config: Optional[GitContextConfig] = None) -> None:
        """Save configuration to file."""
        if config is None:
            config = self._config

        if config is None:
            raise ValueError("No configuration to save")

        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.config_path, "w") as f:
            json.dump(config.model_dump(), f, indent=2)

    def get_config(self) -> GitContextConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            return self.load()
        return self._config

    def create_default_config(self, git_path: str = "git") -> GitContextConfig:
        """Create and save a default configuration."""
        config = GitContextConfig(git=GitInfo(path=git_path))
        self._config = config
        self.save(config)
        return config
