"""
Persistence: flag store, dialogue repository, documents and presets
"""

from dialogue_prompts.storage.documents import export_document, import_document
from dialogue_prompts.storage.presets import PresetLibrary
from dialogue_prompts.storage.repository import DialogueRepository
from dialogue_prompts.storage.store import FlagStore

__all__ = ["DialogueRepository", "FlagStore", "PresetLibrary", "export_document", "import_document"]
