"""
Key-value flag store backing dialogue persistence.

Values live under ``entity -> scope -> key``, the same shape host entities
use for their flags. ``FlagStore`` keeps everything in one JSON file and
rewrites it atomically on every change; with no path it stays in memory.
"""

import copy
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from dialogue_prompts.errors import PersistenceError
from dialogue_prompts.logger import get_logger

logger = get_logger(__name__)


class FlagStore:
    """JSON-file key-value store"""

    def __init__(self, path: Union[Path, str, None] = None):
        self.path = Path(path) if path is not None else None
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        if self.path is not None:
            self._data = self._read()

    def _read(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Could not read store {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"Store {self.path} does not hold a JSON object")
        return data

    def _write(self, data: Dict[str, Any]):
        if self.path is None:
            return
        tmp_path: Optional[Path] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", delete=False, dir=self.path.parent, prefix=self.path.name, suffix=".tmp", encoding="utf-8"
            ) as tmp_file:
                tmp_path = Path(tmp_file.name)
                json.dump(data, tmp_file, indent=2, ensure_ascii=False)
                tmp_file.write("\n")
            os.replace(str(tmp_path), str(self.path))
        except (OSError, TypeError, ValueError) as e:
            if tmp_path is not None:
                try:
                    tmp_path.unlink()
                except OSError:
                    pass
            raise PersistenceError(f"Could not write store {self.path}: {e}") from e
        logger.debug("Wrote store %s", self.path)

    def get(self, entity: str, scope: str, key: str, default: Any = None) -> Any:
        value = self._data.get(entity, {}).get(scope, {}).get(key, default)
        return copy.deepcopy(value)

    def set(self, entity: str, scope: str, key: str, value: Any):
        """Store a value; the in-memory copy only changes once the write succeeded"""
        data = copy.deepcopy(self._data)
        data.setdefault(entity, {}).setdefault(scope, {})[key] = copy.deepcopy(value)
        self._write(data)
        self._data = data

    def unset(self, entity: str, scope: str, key: str) -> bool:
        if key not in self._data.get(entity, {}).get(scope, {}):
            return False
        data = copy.deepcopy(self._data)
        del data[entity][scope][key]
        if not data[entity][scope]:
            del data[entity][scope]
        if not data[entity]:
            del data[entity]
        self._write(data)
        self._data = data
        return True

    def entities(self, scope: Optional[str] = None, key: Optional[str] = None) -> List[str]:
        """Entity ids, optionally only those holding ``scope`` (and ``key``)"""
        found = []
        for entity, scopes in self._data.items():
            if scope is not None and scope not in scopes:
                continue
            if key is not None and key not in scopes.get(scope, {}):
                continue
            found.append(entity)
        return found
