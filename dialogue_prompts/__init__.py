"""
Dialogue Prompts - NPC dialogue graphs with requirement-gated choices
"""

__version__ = "0.1.0"

from .graph import DialogueGraph, DialogueNode, DialogueOption, normalize, validate_graph
from .requirements import describe, evaluate
from .runtime import TraversalSession

__all__ = [
    "DialogueGraph",
    "DialogueNode",
    "DialogueOption",
    "TraversalSession",
    "describe",
    "evaluate",
    "normalize",
    "validate_graph",
]
