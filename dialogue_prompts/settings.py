"""
Settings persistence for Dialogue Prompts
"""

import json
import os
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dialogue_prompts.logger import get_logger

logger = get_logger(__name__)

SETTINGS_ENV = "DIALOGUE_PROMPTS_SETTINGS"
SETTINGS_FILENAME = "dialogue_settings.json"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def default_settings_path() -> Path:
    """Settings file named by the environment, else one in the working directory"""
    return Path(os.environ.get(SETTINGS_ENV) or SETTINGS_FILENAME)


@dataclass
class Settings:
    """Toggles that persist between sessions"""

    enable_prompts: bool = True
    advanced_json: bool = False
    store_path: str = "dialogue_store.json"
    log_level: str = "WARNING"

    def clamp(self) -> "Settings":
        self.enable_prompts = bool(self.enable_prompts)
        self.advanced_json = bool(self.advanced_json)
        self.store_path = str(self.store_path or "dialogue_store.json")
        level = str(self.log_level).upper()
        self.log_level = level if level in _LOG_LEVELS else "WARNING"
        return self

    def copy(self) -> "Settings":
        return Settings.from_dict(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Settings":
        if not isinstance(data, dict):
            return cls()

        def _as_bool(key: str, default: bool) -> bool:
            value = data.get(key, default)
            if isinstance(value, bool):
                return value
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered in {"true", "1", "yes", "on"}:
                    return True
                if lowered in {"false", "0", "no", "off"}:
                    return False
            return bool(value) if value is not None else default

        settings = cls(
            enable_prompts=_as_bool("enable_prompts", True),
            advanced_json=_as_bool("advanced_json", False),
            store_path=str(data.get("store_path") or "dialogue_store.json"),
            log_level=str(data.get("log_level") or "WARNING"),
        )
        return settings.clamp()


def load_settings(path: Union[Path, str, None] = None) -> Settings:
    path = Path(path) if path is not None else default_settings_path()
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        return Settings()
    except (OSError, json.JSONDecodeError, TypeError):
        logger.warning("Could not read settings from %s, using defaults", path)
        return Settings()
    return Settings.from_dict(data)


def save_settings(settings: Settings, path: Union[Path, str, None] = None) -> Settings:
    path = Path(path) if path is not None else default_settings_path()
    sanitized = settings.copy().clamp()
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path: Optional[Path] = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", delete=False, dir=path.parent, prefix=path.name, suffix=".tmp", encoding="utf-8"
        ) as tmp_file:
            json.dump(sanitized.to_dict(), tmp_file, indent=2)
            tmp_file.write("\n")
            tmp_path = Path(tmp_file.name)
        os.replace(str(tmp_path), str(path))
    except OSError as exc:
        logger.error("Failed to save settings: %s", exc)
        if tmp_path is not None:
            try:
                tmp_path.unlink()
            except OSError:
                pass
    return sanitized
