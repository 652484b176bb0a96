"""
Persisted user defaults.

Stores the device path, completion timeout and black/white threshold so they
need not be passed to every command. Command-line options always win.
"""

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

from .channel import DEFAULT_DEVICE
from .printer import DEFAULT_THRESHOLD, DEFAULT_TIMEOUT

# Config directory location
CONFIG_DIR = Path.home() / ".config" / "qlprint"
SETTINGS_FILE = CONFIG_DIR / "settings.json"


@dataclass
class Settings:
    """User defaults."""

    device: str = DEFAULT_DEVICE
    timeout: float = DEFAULT_TIMEOUT
    threshold: int = DEFAULT_THRESHOLD


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load saved defaults.

    Args:
        path: Settings file (default ~/.config/qlprint/settings.json)

    Returns:
        Saved settings, or built-in defaults if the file is missing or invalid.
    """
    path = path or SETTINGS_FILE
    if not path.exists():
        return Settings()

    try:
        data = json.loads(path.read_text())
        known = {f.name for f in fields(Settings)}
        settings = Settings(**{k: v for k, v in data.items() if k in known})
        settings.timeout = float(settings.timeout)
        settings.threshold = int(settings.threshold)
        if not 0 <= settings.threshold <= 255:
            return Settings()
        return settings
    except (json.JSONDecodeError, AttributeError, TypeError, ValueError):
        # Invalid settings file - treat as missing
        return Settings()


def save_settings(settings: Settings, path: Optional[Path] = None) -> Path:
    """Write defaults to disk, creating the config directory if needed.

    Returns:
        Path of the written file
    """
    path = path or SETTINGS_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(settings), indent=2))
    return path


def clear_settings(path: Optional[Path] = None) -> bool:
    """Delete saved defaults.

    Returns:
        True if a file was removed, False if none existed.
    """
    path = path or SETTINGS_FILE
    if path.exists():
        path.unlink()
        return True
    return False


def has_saved_settings(path: Optional[Path] = None) -> bool:
    """True if a settings file exists."""
    return (path or SETTINGS_FILE).exists()
