"""
Exceptions raised by Dialogue Prompts
"""


class DialogueError(Exception):
    """Base exception for dialogue authoring and playback."""


class GraphEditError(DialogueError):
    """Raised when an authoring edit is rejected. The graph is left unchanged."""


class ActivationRejected(DialogueError):
    """Raised when an option cannot be activated in the current session state."""


class PersistenceError(DialogueError):
    """Raised when the backing store cannot be read or written."""


class DocumentError(DialogueError):
    """Raised when an imported dialogue document has an invalid shape."""
