"""
Runtime traversal of dialogue graphs
"""

from dialogue_prompts.runtime.session import (
    ActivationOutcome,
    NodeView,
    OptionView,
    PendingActivation,
    TraversalSession,
)

__all__ = ["ActivationOutcome", "NodeView", "OptionView", "PendingActivation", "TraversalSession"]
