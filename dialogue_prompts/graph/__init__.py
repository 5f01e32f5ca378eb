"""
Dialogue graph model, editing operations and read-only analysis
"""

from dialogue_prompts.graph.model import (
    DEFAULT_START,
    END_NODE,
    DialogueGraph,
    DialogueNode,
    DialogueOption,
    is_end_target,
)
from dialogue_prompts.graph.operations import (
    add_node,
    add_option,
    connect,
    delete_node,
    delete_option,
    normalize,
    prune_dangling_targets,
    rename_node,
    set_start,
    update_node,
    update_option,
)
from dialogue_prompts.graph.validator import GraphReport, get_stats, validate_graph
from dialogue_prompts.graph.view import build_graph_view

__all__ = [
    "DEFAULT_START",
    "END_NODE",
    "DialogueGraph",
    "DialogueNode",
    "DialogueOption",
    "GraphReport",
    "add_node",
    "add_option",
    "build_graph_view",
    "connect",
    "delete_node",
    "delete_option",
    "get_stats",
    "is_end_target",
    "normalize",
    "prune_dangling_targets",
    "rename_node",
    "set_start",
    "update_node",
    "update_option",
    "validate_graph",
]
