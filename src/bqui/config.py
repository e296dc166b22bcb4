"""bqui configuration management.

Handles persistent settings stored in ~/.bqui/config.json
"""

import json
import os
import shutil
import subprocess
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

from .errors import StartupError

# Default configuration values
DEFAULT_THEME = "textual-dark"
DEFAULT_PREVIEW_LIMIT = 100
DEFAULT_MIN_COLUMN_WIDTH = 8
DEFAULT_MAX_COLUMN_WIDTH = 30
DEFAULT_CACHE_TTL_HOURS = 24.0
DEFAULT_REQUEST_TIMEOUT = 30.0

PROJECT_ENV_VARS = ("GOOGLE_CLOUD_PROJECT", "GCP_PROJECT")


@dataclass
class BquiConfig:
    """bqui application configuration."""

    # Appearance
    theme: str = DEFAULT_THEME

    # Tables
    preview_limit: int = DEFAULT_PREVIEW_LIMIT
    min_column_width: int = DEFAULT_MIN_COLUMN_WIDTH
    max_column_width: int = DEFAULT_MAX_COLUMN_WIDTH

    # Cache
    cache_enabled: bool = True
    cache_ttl_hours: float = DEFAULT_CACHE_TTL_HOURS
    cache_path: Optional[str] = None  # None uses the user cache dir

    # Backend
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    max_retries: int = 0

    # Used when no project is given or detected
    last_project: Optional[str] = None

    @classmethod
    def get_config_path(cls) -> Path:
        """Get the path to the config file."""
        return Path.home() / ".bqui" / "config.json"

    @classmethod
    def load(cls) -> "BquiConfig":
        """Load configuration from file, or return defaults if not found."""
        config_path = cls.get_config_path()

        if config_path.exists():
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                # Only use known fields to avoid issues with old config versions
                known_fields = {f.name for f in cls.__dataclass_fields__.values()}
                filtered_data = {k: v for k, v in data.items() if k in known_fields}
                config = cls(**filtered_data)
                config.validate()
                return config
            except (json.JSONDecodeError, TypeError, ValueError, AttributeError):
                # Invalid config, return defaults
                pass

        return cls()

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ValueError: If a setting is out of range
        """
        if self.preview_limit < 1:
            raise ValueError("preview_limit must be positive")
        if not 1 <= self.min_column_width <= self.max_column_width:
            raise ValueError("column widths must satisfy 1 <= min <= max")
        if self.cache_ttl_hours < 0:
            raise ValueError("cache_ttl_hours must not be negative")

    def save(self) -> None:
        """Save configuration to file."""
        config_path = self.get_config_path()

        # Ensure directory exists
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(asdict(self), f, indent=2)

    def reset(self) -> None:
        """Reset configuration to defaults."""
        defaults = BquiConfig()
        for name in self.__dataclass_fields__:
            setattr(self, name, getattr(defaults, name))

    def remember_project(self, project_id: str) -> None:
        """Store the project used last, for the next launch."""
        if self.last_project != project_id:
            self.last_project = project_id
            self.save()


def gcloud_project() -> Optional[str]:
    """Default project from the gcloud CLI, if installed and set."""
    gcloud = shutil.which("gcloud")
    if gcloud is None:
        return None
    try:
        result = subprocess.run(
            [gcloud, "config", "get-value", "project"],
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (OSError, subprocess.SubprocessError):
        return None
    project = result.stdout.strip()
    if result.returncode != 0 or not project or project == "(unset)":
        return None
    return project


def resolve_project(explicit: Optional[str], config: Optional[BquiConfig] = None) -> str:
    """Project to open: the flag, then the environment, then gcloud.

    The last project from the config file is the final fallback.

    Raises:
        StartupError: If no project can be found
    """
    if explicit:
        return explicit
    for name in PROJECT_ENV_VARS:
        value = os.environ.get(name)
        if value:
            return value
    project = gcloud_project()
    if project:
        return project
    if config is not None and config.last_project:
        return config.last_project
    raise StartupError(
        "no project found. Please run 'gcloud config set project PROJECT_ID' "
        "or use --project"
    )


AVAILABLE_THEMES = [
    ("textual-dark", "Textual Dark"),
    ("textual-light", "Textual Light"),
    ("nord", "Nord"),
    ("gruvbox", "Gruvbox"),
    ("dracula", "Dracula"),
    ("tokyo-night", "Tokyo Night"),
    ("monokai", "Monokai"),
]
