"""
Structural edits on a dialogue graph.

Every function takes the graph it works on and mutates it in place. Edits
that would break an invariant raise GraphEditError before touching anything.
"""

import uuid
from typing import Any, Dict, Optional

from dialogue_prompts.errors import GraphEditError
from dialogue_prompts.graph.model import (
    DEFAULT_START,
    DialogueGraph,
    DialogueNode,
    DialogueOption,
    is_end_target,
    parse_flag,
)
from dialogue_prompts.logger import get_logger
from dialogue_prompts.requirements.model import parse_requirement
from dialogue_prompts.results.model import parse_results

logger = get_logger(__name__)


def make_id() -> str:
    """Random 16 character id for new nodes and options"""
    return uuid.uuid4().hex[:16]


def normalize(graph: DialogueGraph, speaker: str = "") -> DialogueGraph:
    """
    Repair structural invariants in place and return the graph.

    - ``nodes`` is a dict and every node's ``options`` is a list
    - every node's ``id`` matches its key
    - ``start`` names an existing node: the first node is promoted, or a
      blank placeholder is created when the graph has no nodes

    Calling it twice gives the same graph as calling it once.
    """
    if not isinstance(graph.nodes, dict):
        graph.nodes = {}

    for node_id, node in list(graph.nodes.items()):
        if not isinstance(node, DialogueNode):
            logger.debug("Dropping malformed node %r", node_id)
            del graph.nodes[node_id]
            continue
        if not isinstance(node.options, list):
            node.options = []
        if node.id != node_id:
            node.id = node_id

    if not graph.start or graph.start not in graph.nodes:
        first = next(iter(graph.nodes), None)
        if first is not None:
            logger.debug("Start node %r missing, promoting %r", graph.start, first)
            graph.start = first
        else:
            graph.start = graph.start or DEFAULT_START
            logger.debug("Graph is empty, creating placeholder node %r", graph.start)
            graph.nodes[graph.start] = DialogueNode(id=graph.start, speaker=speaker)

    return graph


def prune_dangling_targets(graph: DialogueGraph) -> int:
    """
    Remove references to nodes that do not exist.

    Clears option ``next`` values and drops ``goto`` results whose target is
    not a live node. The END sentinel is kept. Returns the number of repairs.
    """
    repairs = 0
    for node, option in graph.iter_options():
        if option.next and not is_end_target(option.next) and option.next not in graph.nodes:
            logger.debug("Clearing dangling next %r on %s/%s", option.next, node.id, option.id)
            option.next = ""
            repairs += 1

        kept = []
        for result in option.results:
            target = str(result.value)
            if result.is_goto and not is_end_target(target) and target not in graph.nodes:
                logger.debug("Dropping dangling goto %r on %s/%s", result.value, node.id, option.id)
                repairs += 1
                continue
            kept.append(result)
        option.results = kept
    return repairs


def add_node(
    graph: DialogueGraph,
    node_id: Optional[str] = None,
    speaker: str = "",
    text: str = "",
) -> str:
    """Insert an empty node and return its id"""
    if node_id is not None:
        node_id = str(node_id).strip()
        if not node_id:
            raise GraphEditError("Node id cannot be empty.")
        if is_end_target(node_id):
            raise GraphEditError(f"'{node_id}' is reserved for ending the conversation.")
        if node_id in graph.nodes:
            raise GraphEditError(f"A node with id '{node_id}' already exists.")
    else:
        node_id = make_id()
        while node_id in graph.nodes:
            node_id = make_id()

    graph.nodes[node_id] = DialogueNode(id=node_id, speaker=speaker, text=text)
    return node_id


def delete_node(graph: DialogueGraph, node_id: str) -> int:
    """
    Delete a node and every reference to it.

    Returns the number of references pruned. The start node cannot be deleted.
    """
    if node_id == graph.start:
        raise GraphEditError("Cannot delete the start node.")
    if node_id not in graph.nodes:
        raise GraphEditError(f"Node not found: {node_id}")

    del graph.nodes[node_id]
    # start was guarded above; normalize covers a graph that was already broken
    normalize(graph)
    return prune_dangling_targets(graph)


def rename_node(graph: DialogueGraph, old_id: str, new_id: str) -> int:
    """
    Move a node to a new id and rewrite every reference to it.

    Returns the number of references rewritten (start, next values and gotos).
    """
    new_id = str(new_id or "").strip()
    if not new_id:
        raise GraphEditError("Node id cannot be empty.")
    if new_id == old_id:
        raise GraphEditError("New id is the same as the current id.")
    if old_id not in graph.nodes:
        raise GraphEditError(f"Node not found: {old_id}")
    if new_id in graph.nodes:
        raise GraphEditError("A node with that id already exists.")
    if is_end_target(new_id):
        raise GraphEditError(f"'{new_id}' is reserved for ending the conversation.")

    # Rebuild the mapping so the renamed node keeps its position
    node = graph.nodes[old_id]
    node.id = new_id
    graph.nodes = {(new_id if k == old_id else k): v for k, v in graph.nodes.items()}

    rewritten = 0
    if graph.start == old_id:
        graph.start = new_id
        rewritten += 1

    for _, option in graph.iter_options():
        if option.next == old_id:
            option.next = new_id
            rewritten += 1
        for result in option.results:
            if result.is_goto and str(result.value) == old_id:
                result.value = new_id
                rewritten += 1
    return rewritten


def set_start(graph: DialogueGraph, node_id: str):
    """Make an existing node the entry point"""
    if node_id not in graph.nodes:
        raise GraphEditError(f"Node not found: {node_id}")
    graph.start = node_id


def _require_node(graph: DialogueGraph, node_id: str) -> DialogueNode:
    node = graph.nodes.get(node_id)
    if node is None:
        raise GraphEditError(f"Node not found: {node_id}")
    return node


def _require_option(graph: DialogueGraph, node_id: str, option_id: str) -> DialogueOption:
    option = _require_node(graph, node_id).get_option(option_id)
    if option is None:
        raise GraphEditError(f"Option not found: {node_id}/{option_id}")
    return option


def add_option(graph: DialogueGraph, node_id: str, label: str = "New Option", next: str = "") -> str:
    """Append an option to a node and return its id (unique within the node)"""
    node = _require_node(graph, node_id)
    taken = {str(o.id) for o in node.options}
    option_id = make_id()
    while option_id in taken:
        option_id = make_id()
    node.options.append(DialogueOption(id=option_id, label=label, next=next or ""))
    return option_id


def delete_option(graph: DialogueGraph, node_id: str, option_id: str):
    node = _require_node(graph, node_id)
    remaining = [o for o in node.options if str(o.id) != str(option_id)]
    if len(remaining) == len(node.options):
        raise GraphEditError(f"Option not found: {node_id}/{option_id}")
    node.options = remaining


def update_option(graph: DialogueGraph, node_id: str, option_id: str, **fields: Any) -> DialogueOption:
    """
    Edit option fields: ``label``, ``next``, ``hidden``, ``requirement``,
    ``results``. Requirements and results may be given in stored dict form.
    """
    option = _require_option(graph, node_id, option_id)
    unknown = set(fields) - {"label", "next", "hidden", "requirement", "results"}
    if unknown:
        raise GraphEditError(f"Unknown option field(s): {', '.join(sorted(unknown))}")

    updates: Dict[str, Any] = {}
    if "label" in fields:
        updates["label"] = str(fields["label"] or "")
    if "next" in fields:
        updates["next"] = str(fields["next"] or "")
    if "hidden" in fields:
        updates["hidden"] = parse_flag(fields["hidden"])
    if "requirement" in fields:
        updates["requirement"] = parse_requirement(fields["requirement"])
    if "results" in fields:
        if fields["results"] is not None and not isinstance(fields["results"], list):
            raise GraphEditError("Results must be a list.")
        updates["results"] = parse_results(fields["results"] or [])

    for name, value in updates.items():
        setattr(option, name, value)
    return option


def connect(graph: DialogueGraph, node_id: str, option_id: str, target: str) -> DialogueOption:
    """Point an option at another node (or END)"""
    option = _require_option(graph, node_id, option_id)
    if not is_end_target(target) and target not in graph.nodes:
        raise GraphEditError(f"Target node not found: {target}")
    option.next = target
    return option


def update_node(graph: DialogueGraph, node_id: str, speaker: Optional[str] = None, text: Optional[str] = None):
    node = _require_node(graph, node_id)
    if speaker is not None:
        node.speaker = str(speaker)
    if text is not None:
        node.text = str(text)
    return node
