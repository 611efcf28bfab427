"""
Configuration for TimeSnap.

Settings come from an optional YAML file. Everything has a default, so an
empty or missing file gives a working setup under ~/.timesnap.

Example config.yaml:
    home: ~/Documents/timesnap
    default_unlock_years: 10
    default_color: mint

Lookup order for the data home:
    1. --home on the command line
    2. TIMESNAP_HOME environment variable
    3. `home` in the config file
    4. ~/.timesnap
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from timesnap.errors import ConfigError
from timesnap.schema import COLOR_PRESETS

HOME_ENV_VAR = "TIMESNAP_HOME"
CONFIG_FILENAME = "config.yaml"


def default_home() -> Path:
    env_home = os.environ.get(HOME_ENV_VAR)
    if env_home:
        return Path(env_home).expanduser()
    return Path.home() / ".timesnap"


class Settings(BaseModel):
    """
    Application settings.

    Attributes:
        home: Data directory holding the database and media files
        db_name: SQLite file name inside home
        media_dir_name: Media directory name inside home
        slot_key: Slot holding the capsule collection
        default_unlock_years: How far ahead new capsules unlock by default
        default_color: Preset name for new capsules
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    home: Path = Field(default_factory=default_home, description="Data directory")
    db_name: str = Field(default="timesnap.db", min_length=1)
    media_dir_name: str = Field(default="media", min_length=1)
    slot_key: str = Field(default="timeCapsules", min_length=1)
    default_unlock_years: int = Field(default=5, ge=0, le=100)
    default_color: str = Field(default="bronze")

    @field_validator("home")
    @classmethod
    def expand_home(cls, v: Path) -> Path:
        return v.expanduser()

    @field_validator("default_color")
    @classmethod
    def validate_default_color(cls, v: str) -> str:
        """Only preset names are accepted here."""
        name = v.strip().lower()
        if name not in COLOR_PRESETS:
            msg = f"default_color must be one of: {', '.join(sorted(COLOR_PRESETS))}"
            raise ValueError(msg)
        return name

    @property
    def db_path(self) -> Path:
        return self.home / self.db_name

    @property
    def media_path(self) -> Path:
        return self.home / self.media_dir_name

    @property
    def config_path(self) -> Path:
        return self.home / CONFIG_FILENAME


def load_settings(
    path: Path | str | None = None,
    home: Path | str | None = None,
) -> Settings:
    """
    Load settings from a YAML file.

    Args:
        path: Config file to read. Without it, <home>/config.yaml is used if present.
        home: Overrides the data directory from the file and environment

    Returns:
        Validated Settings

    Raises:
        ConfigError: If the file is unreadable, not a mapping, or invalid
    """
    data: dict[str, Any] = {}

    if path is None:
        base = Path(home).expanduser() if home is not None else default_home()
        candidate = base / CONFIG_FILENAME
        config_file = candidate if candidate.is_file() else None
    else:
        config_file = Path(path)

    if config_file is not None:
        data = _read_yaml(config_file)

    env_home = os.environ.get(HOME_ENV_VAR)
    if home is not None:
        data["home"] = home
    elif env_home:
        data["home"] = env_home

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            path=str(config_file or "<defaults>"),
            reason=str(e),
        ) from e


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with path.open() as f:
            loaded = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(path=str(path), reason=str(e)) from e
    except yaml.YAMLError as e:
        raise ConfigError(path=str(path), reason=f"invalid YAML: {e}") from e

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(path=str(path), reason="top level must be a mapping")
    return loaded
