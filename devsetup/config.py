"""
Configuration loading for devsetup.
Defaults < <config dir>/config.json < DEVSETUP_* environment < CLI overrides.
"""
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .errors import SettingsValidationError
from .models import Settings

APP_NAME = "devsetup"

ENV_OVERRIDES = {
    "DEVSETUP_HOME": "home",
    "DEVSETUP_BACKUP_DIR": "backup_dir",
    "DEVSETUP_KEEP_BACKUPS": "keep_backups",
}

def get_config_dir(create: bool = True) -> Path:
    """Returns the platform-specific configuration directory."""
    if sys.platform == "win32":
        appdata = os.getenv("APPDATA")
        if appdata:
            base_dir = Path(appdata)
        else:
            base_dir = Path.home() / "AppData" / "Roaming"
    else:
        # XDG Base Directory specification
        xdg_config = os.getenv("XDG_CONFIG_HOME")
        if xdg_config:
            base_dir = Path(xdg_config)
        else:
            base_dir = Path.home() / ".config"

    config_dir = base_dir / APP_NAME
    if create:
        config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir

def get_config_path() -> Path:
    return get_config_dir(create=False) / "config.json"

def _read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise SettingsValidationError(f"Failed to read settings file '{path}': {e}") from e
    if not isinstance(data, dict):
        raise SettingsValidationError(f"Settings file '{path}' must contain a JSON object.")
    return data

def load_settings(overrides: Optional[Dict[str, Any]] = None, config_path: Optional[Path] = None) -> Settings:
    """Merge the settings layers and validate the result."""
    data = _read_config_file(config_path or get_config_path())

    for env_name, field in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            data[field] = value

    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value

    try:
        return Settings(**data)
    except ValidationError as e:
        raise SettingsValidationError(f"Invalid settings: {e}") from e
