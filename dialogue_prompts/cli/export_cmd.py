"""
Export stored dialogues to JSON documents and import them back
"""

from pathlib import Path
from typing import Optional

import click

from dialogue_prompts.graph.model import DialogueGraph
from dialogue_prompts.storage.documents import export_document, export_filename, read_document, write_document
from dialogue_prompts.storage.repository import DialogueRepository


def export_to_json(
    repository: DialogueRepository,
    npc_id: str,
    output_path: Optional[Path] = None,
    npc_name: Optional[str] = None,
) -> Path:
    """Write an NPC's dialogue to a standalone JSON document"""
    npc_name = npc_name or npc_id
    graph = repository.load(npc_id)

    if output_path is None:
        output_path = Path(export_filename(npc_name))

    write_document(export_document(graph, npc_name), output_path)

    click.echo(f"✅ Exported to: {output_path}")
    click.echo(f"   • {len(graph.nodes)} nodes")
    click.echo(f"   • start: {graph.start}")
    return output_path


def import_from_json(repository: DialogueRepository, npc_id: str, input_path: Path) -> DialogueGraph:
    """Replace an NPC's dialogue with the one in an exported document"""
    graph = read_document(input_path)
    repository.save(npc_id, graph)

    click.echo(f"✅ Imported {input_path} into {npc_id}")
    click.echo(f"   • {len(graph.nodes)} nodes")
    return graph
