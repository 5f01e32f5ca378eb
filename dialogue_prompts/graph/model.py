"""
Dialogue graph classes
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from dialogue_prompts.requirements.model import Requirement, parse_requirement, requirement_to_dict
from dialogue_prompts.results.model import ResultEffect, parse_results

END_NODE = "END"
DEFAULT_START = "start"

_OPTION_KEYS = {"id", "label", "next", "hidden", "requirement", "results"}
_NODE_KEYS = {"id", "speaker", "text", "options"}


def is_end_target(target: Optional[str]) -> bool:
    """The END sentinel terminates a conversation instead of naming a node"""
    return target in ("END", "end")


def parse_flag(value: Any) -> bool:
    """Stored booleans may arrive as strings; only true or "true" count"""
    return value is True or str(value).strip().lower() == "true"


@dataclass
class DialogueOption:
    """A choice the player can pick on a node"""

    id: str
    label: str = ""
    next: str = ""
    hidden: bool = False
    requirement: Optional[Requirement] = None
    results: List[ResultEffect] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], fallback_id: str = "") -> "DialogueOption":
        return cls(
            id=str(data.get("id") or fallback_id),
            label=str(data.get("label") or ""),
            next=str(data.get("next") or ""),
            hidden=parse_flag(data.get("hidden", False)),
            requirement=parse_requirement(data.get("requirement")),
            results=parse_results(data.get("results")),
            extra={k: v for k, v in data.items() if k not in _OPTION_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "label": self.label,
            "next": self.next,
            "hidden": self.hidden,
            "requirement": requirement_to_dict(self.requirement),
            "results": [r.to_dict() for r in self.results],
        }
        data.update(self.extra)
        return data

    def goto_targets(self) -> List[str]:
        return [str(r.value) for r in self.results if r.is_goto]


@dataclass
class DialogueNode:
    """A single dialogue beat: who speaks, what they say, and the choices"""

    id: str
    speaker: str = ""
    text: str = ""
    options: List[DialogueOption] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], fallback_id: str = "") -> "DialogueNode":
        raw_options = data.get("options")
        options = []
        if isinstance(raw_options, list):
            for idx, raw in enumerate(raw_options):
                if isinstance(raw, dict):
                    options.append(DialogueOption.from_dict(raw, fallback_id=f"opt{idx + 1}"))
        return cls(
            id=str(data.get("id") or fallback_id),
            speaker=str(data.get("speaker") or ""),
            text=str(data.get("text") or ""),
            options=options,
            extra={k: v for k, v in data.items() if k not in _NODE_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "speaker": self.speaker,
            "text": self.text,
            "options": [o.to_dict() for o in self.options],
        }
        data.update(self.extra)
        return data

    def get_option(self, option_id: str) -> Optional[DialogueOption]:
        return next((o for o in self.options if str(o.id) == str(option_id)), None)

    def is_terminal(self) -> bool:
        """No choices at all: the conversation stops here"""
        return len(self.options) == 0


@dataclass
class DialogueGraph:
    """A complete NPC conversation"""

    start: str = DEFAULT_START
    nodes: Dict[str, DialogueNode] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "DialogueGraph":
        """
        Build a graph from its stored document.

        Accepts ``{start, nodes}`` and the older ``{dialogueNodes: {start, nodes}}``
        wrapper. Anything malformed yields an empty graph; run ``normalize``
        before relying on the start invariant.
        """
        if not isinstance(data, dict):
            return cls()
        if isinstance(data.get("dialogueNodes"), dict):
            data = data["dialogueNodes"]

        nodes: Dict[str, DialogueNode] = {}
        raw_nodes = data.get("nodes")
        if isinstance(raw_nodes, dict):
            for node_id, raw in raw_nodes.items():
                if isinstance(raw, dict):
                    nodes[str(node_id)] = DialogueNode.from_dict(raw, fallback_id=str(node_id))
        return cls(start=str(data.get("start") or DEFAULT_START), nodes=nodes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start,
            "nodes": {node_id: node.to_dict() for node_id, node in self.nodes.items()},
        }

    def copy(self) -> "DialogueGraph":
        return DialogueGraph.from_dict(self.to_dict())

    def get_node(self, node_id: str) -> Optional[DialogueNode]:
        return self.nodes.get(node_id)

    def has_node(self, node_id: Optional[str]) -> bool:
        return node_id is not None and node_id in self.nodes

    def iter_options(self) -> Iterator[Tuple[DialogueNode, DialogueOption]]:
        for node in self.nodes.values():
            for option in node.options:
                yield node, option
