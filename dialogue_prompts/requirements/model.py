"""
Requirement expression trees
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

# Leaf kinds that read the acting character's sheet
ACTOR_KINDS = {
    "ability",
    "skill",
    "race",
    "language",
    "spell",
    "proficiency",
    "item",
    "flag",
    "previousaction",
    "relation",
}

KNOWN_KINDS = ACTOR_KINDS | {"gmonly"}


@dataclass
class RequirementLeaf:
    """A single predicate against the actor, the NPC or the user"""

    kind: str
    key: Optional[str] = None
    op: Optional[str] = None
    value: Any = None
    roll: bool = False
    note: Optional[str] = None

    @property
    def normalized_kind(self) -> str:
        return (self.kind or "").lower()

    @property
    def is_known(self) -> bool:
        return self.normalized_kind in KNOWN_KINDS

    @property
    def is_interactive(self) -> bool:
        """Settled by a roll when the option is chosen"""
        kind = self.normalized_kind
        return kind == "skill" or (kind == "ability" and self.roll)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.kind}
        if self.key is not None:
            data["key"] = self.key
        if self.op is not None:
            data["op"] = self.op
        if self.value is not None:
            data["value"] = self.value
        if self.roll:
            data["roll"] = True
        if self.note:
            data["note"] = self.note
        return data


@dataclass
class AllOf:
    """Conjunction"""

    children: List["Requirement"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"allOf": [c.to_dict() for c in self.children]}


@dataclass
class AnyOf:
    """Disjunction"""

    children: List["Requirement"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"anyOf": [c.to_dict() for c in self.children]}


@dataclass
class Not:
    """Negation"""

    child: "Requirement"

    def to_dict(self) -> Dict[str, Any]:
        return {"not": self.child.to_dict()}


Requirement = Union[RequirementLeaf, AllOf, AnyOf, Not]


def parse_requirement(data: Any) -> Optional[Requirement]:
    """
    Parse the stored JSON form of a requirement.

    ``None`` and empty dicts mean "no requirement". Malformed data never
    raises; it comes back as a leaf of unknown kind, which evaluates open.
    """
    if data is None:
        return None
    if isinstance(data, (RequirementLeaf, AllOf, AnyOf, Not)):
        return data
    if not isinstance(data, dict):
        return RequirementLeaf(kind="")
    if not data:
        return None

    if isinstance(data.get("allOf"), list):
        return AllOf([_parse_child(c) for c in data["allOf"]])
    if isinstance(data.get("anyOf"), list):
        return AnyOf([_parse_child(c) for c in data["anyOf"]])
    if data.get("not"):
        return Not(_parse_child(data["not"]))

    roll = data.get("roll", False)
    return RequirementLeaf(
        kind=str(data.get("type") or ""),
        key=None if data.get("key") is None else str(data.get("key")),
        op=None if data.get("op") is None else str(data.get("op")),
        value=data.get("value"),
        roll=roll is True or str(roll).lower() == "true",
        note=data.get("note") or None,
    )


def _parse_child(data: Any) -> Requirement:
    parsed = parse_requirement(data)
    # An empty child inside a group still has to be a node of the tree
    return parsed if parsed is not None else RequirementLeaf(kind="")


def requirement_to_dict(requirement: Optional[Requirement]) -> Optional[Dict[str, Any]]:
    return requirement.to_dict() if requirement is not None else None


def iter_leaves(requirement: Optional[Requirement]):
    """Yield every leaf of a requirement tree, depth first"""
    if requirement is None:
        return
    if isinstance(requirement, (AllOf, AnyOf)):
        for child in requirement.children:
            yield from iter_leaves(child)
    elif isinstance(requirement, Not):
        yield from iter_leaves(requirement.child)
    else:
        yield requirement
