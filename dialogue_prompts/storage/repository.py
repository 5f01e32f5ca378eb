"""
Load and save NPC dialogue graphs
"""

from typing import List

from dialogue_prompts.graph.model import DialogueGraph
from dialogue_prompts.graph.operations import normalize, prune_dangling_targets
from dialogue_prompts.host import MODULE_ID
from dialogue_prompts.logger import get_logger
from dialogue_prompts.storage.store import FlagStore

logger = get_logger(__name__)

DIALOGUE_KEY = "dialogue"


class DialogueRepository:
    """Dialogue graphs stored on NPC entities of a FlagStore"""

    def __init__(self, store: FlagStore):
        self.store = store

    def exists(self, npc_id: str) -> bool:
        return self.store.get(npc_id, MODULE_ID, DIALOGUE_KEY) is not None

    def list_npcs(self) -> List[str]:
        return sorted(self.store.entities(MODULE_ID, DIALOGUE_KEY))

    def load(self, npc_id: str, speaker: str = "") -> DialogueGraph:
        """
        Load an NPC's graph, normalized.

        An NPC without a stored dialogue gets a fresh graph holding a single
        blank start node spoken by ``speaker``.
        """
        raw = self.store.get(npc_id, MODULE_ID, DIALOGUE_KEY)
        graph = DialogueGraph.from_dict(raw) if raw is not None else DialogueGraph()
        return normalize(graph, speaker=speaker or npc_id)

    def save(self, npc_id: str, graph: DialogueGraph) -> int:
        """
        Normalize, prune, then write the graph.

        The repairs land on ``graph`` itself, so it stays consistent even when
        the write raises PersistenceError. Returns the number of dangling
        references pruned.
        """
        normalize(graph)
        pruned = prune_dangling_targets(graph)
        if pruned:
            logger.info("Pruned %d dangling reference(s) before saving %s", pruned, npc_id)
        self.store.set(npc_id, MODULE_ID, DIALOGUE_KEY, graph.to_dict())
        return pruned

    def delete(self, npc_id: str) -> bool:
        return self.store.unset(npc_id, MODULE_ID, DIALOGUE_KEY)
