"""
Named dialogue presets shared across NPCs
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dialogue_prompts.errors import DialogueError
from dialogue_prompts.graph.model import DialogueGraph
from dialogue_prompts.graph.operations import normalize
from dialogue_prompts.host import MODULE_ID
from dialogue_prompts.storage.store import FlagStore

WORLD_ENTITY = "world"
PRESETS_KEY = "dialogue-presets"


class PresetLibrary:
    """Presets kept as ``[{name, savedAt, dialogue}]`` on the world entity"""

    def __init__(self, store: FlagStore):
        self.store = store

    def _entries(self) -> List[Dict[str, Any]]:
        entries = self.store.get(WORLD_ENTITY, MODULE_ID, PRESETS_KEY) or []
        return [e for e in entries if isinstance(e, dict) and e.get("name")]

    def list(self) -> List[str]:
        return [str(e["name"]) for e in self._entries()]

    def save(self, name: str, graph: DialogueGraph):
        """Store a copy of ``graph``; an existing preset with that name is replaced"""
        name = str(name or "").strip()
        if not name:
            raise DialogueError("Please enter a preset name")
        entries = [e for e in self._entries() if e["name"] != name]
        entries.append({
            "name": name,
            "savedAt": datetime.now(timezone.utc).isoformat(),
            "dialogue": graph.to_dict(),
        })
        self.store.set(WORLD_ENTITY, MODULE_ID, PRESETS_KEY, entries)

    def load(self, name: str) -> DialogueGraph:
        entry = self._find(name)
        if entry is None:
            raise DialogueError(f"Preset not found: {name}")
        return normalize(DialogueGraph.from_dict(entry.get("dialogue")))

    def delete(self, name: str):
        entries = self._entries()
        remaining = [e for e in entries if e["name"] != name]
        if len(remaining) == len(entries):
            raise DialogueError(f"Preset not found: {name}")
        self.store.set(WORLD_ENTITY, MODULE_ID, PRESETS_KEY, remaining)

    def _find(self, name: str) -> Optional[Dict[str, Any]]:
        return next((e for e in self._entries() if e["name"] == name), None)
