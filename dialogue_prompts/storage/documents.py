"""
Export and import of standalone dialogue documents
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Union

from dialogue_prompts.errors import DocumentError
from dialogue_prompts.graph.model import DialogueGraph
from dialogue_prompts.graph.operations import normalize, prune_dangling_targets

DOCUMENT_VERSION = 1


def export_document(graph: DialogueGraph, npc_name: str) -> Dict[str, Any]:
    """Wrap a graph with the metadata of an exported dialogue file"""
    return {
        "version": DOCUMENT_VERSION,
        "npcName": npc_name,
        "exportedAt": datetime.now(timezone.utc).isoformat(),
        "dialogue": graph.to_dict(),
    }


def import_document(data: Any) -> DialogueGraph:
    """
    Read the graph out of an exported document.

    Raises:
        DocumentError: When the document has no ``dialogue.nodes`` mapping
    """
    dialogue = data.get("dialogue") if isinstance(data, dict) else None
    if not isinstance(dialogue, dict) or not isinstance(dialogue.get("nodes"), dict):
        raise DocumentError("Invalid dialogue file format")
    graph = normalize(DialogueGraph.from_dict(dialogue))
    prune_dangling_targets(graph)
    return graph


def export_filename(npc_name: str) -> str:
    """File name for an exported dialogue, e.g. ``dialogue-Old_Tom.json``"""
    safe = "".join(ch if ch.isascii() and ch.isalnum() else "_" for ch in npc_name)
    return f"dialogue-{safe}.json"


def write_document(document: Dict[str, Any], path: Union[Path, str]):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=2, ensure_ascii=False)
        f.write("\n")


def read_document(path: Union[Path, str]) -> DialogueGraph:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise DocumentError(f"Failed to import dialogue: {e}") from e
    return import_document(data)
