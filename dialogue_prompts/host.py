"""
In-process stand-ins for the host application's collaborators.

The dialogue core only reads actor state, asks for dice totals, and writes
namespaced flags. These classes give it something concrete to talk to from
the CLI, the web API and the tests.
"""

import random
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from dialogue_prompts.logger import get_logger

logger = get_logger(__name__)

# Namespace used for everything this package stores on host entities
MODULE_ID = "dialogue-prompts"


class FlagHolder:
    """Namespaced key-value flags, the way host entities expose them"""

    def __init__(self, flags: Optional[Dict[str, Dict[str, Any]]] = None):
        self.flags: Dict[str, Dict[str, Any]] = {
            scope: dict(values) for scope, values in (flags or {}).items() if isinstance(values, dict)
        }

    def get_flag(self, scope: str, key: str, default: Any = None) -> Any:
        return self.flags.get(scope, {}).get(key, default)

    def set_flag(self, scope: str, key: str, value: Any):
        self.flags.setdefault(scope, {})[key] = value

    def unset_flag(self, scope: str, key: str):
        values = self.flags.get(scope)
        if values is not None:
            values.pop(key, None)
            if not values:
                del self.flags[scope]


@dataclass
class Item:
    """An owned item (weapons, loot, spells...)"""

    name: str
    type: str = "loot"
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "Item":
        if isinstance(data, str):
            return cls(name=data)
        return cls(
            name=str(data.get("name", "")),
            type=str(data.get("type", "loot")),
            data=dict(data.get("data") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type, "data": dict(self.data)}


class Actor(FlagHolder):
    """Read-mostly snapshot of a character or NPC sheet"""

    def __init__(
        self,
        name: str,
        actor_id: Optional[str] = None,
        actor_type: str = "character",
        race: str = "",
        abilities: Optional[Dict[str, Any]] = None,
        skills: Optional[Dict[str, Any]] = None,
        tools: Optional[Dict[str, Any]] = None,
        languages: Optional[List[str]] = None,
        custom_languages: str = "",
        items: Optional[List[Item]] = None,
        flags: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        super().__init__(flags)
        self.name = name
        self.id = actor_id or name
        self.type = actor_type
        self.race = race
        self.abilities: Dict[str, Any] = dict(abilities or {})
        self.skills: Dict[str, Any] = dict(skills or {})
        self.tools: Dict[str, Any] = dict(tools or {})
        self.languages: List[str] = list(languages or [])
        self.custom_languages = custom_languages
        self.items: List[Item] = list(items or [])

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Actor":
        """Build an actor from a JSON sheet"""
        return cls(
            name=str(data.get("name", "Unknown")),
            actor_id=data.get("id"),
            actor_type=str(data.get("type", "character")),
            race=str(data.get("race", "") or ""),
            abilities=data.get("abilities"),
            skills=data.get("skills"),
            tools=data.get("tools"),
            languages=data.get("languages"),
            custom_languages=str(data.get("customLanguages", "") or ""),
            items=[Item.from_dict(i) for i in data.get("items", [])],
            flags=data.get("flags"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "race": self.race,
            "abilities": dict(self.abilities),
            "skills": dict(self.skills),
            "tools": dict(self.tools),
            "languages": list(self.languages),
            "customLanguages": self.custom_languages,
            "items": [item.to_dict() for item in self.items],
            "flags": {scope: dict(values) for scope, values in self.flags.items()},
        }

    # --- ability / skill readers ---

    def ability_score(self, key: str) -> float:
        entry = self.abilities.get(key)
        if isinstance(entry, dict):
            return float(entry.get("value", entry.get("score", 0)) or 0)
        return float(entry or 0)

    def ability_mod(self, key: str) -> int:
        entry = self.abilities.get(key)
        if isinstance(entry, dict) and entry.get("mod") is not None:
            return int(entry["mod"])
        return (int(self.ability_score(key)) - 10) // 2

    def skill_total(self, key: str) -> int:
        entry = self.skills.get(key)
        if isinstance(entry, dict):
            return int(entry.get("total", entry.get("value", 0)) or 0)
        return int(entry or 0)

    def proficiency(self, key: str) -> float:
        """Proficiency level for a skill or tool (0 when untrained)"""
        for table in (self.skills, self.tools):
            entry = table.get(key)
            if isinstance(entry, dict):
                return float(entry.get("proficient", 0) or 0)
        return 0

    # --- items / languages ---

    def find_item(self, name: str) -> Optional[Item]:
        """Exact name lookup"""
        return next((i for i in self.items if i.name == name), None)

    def has_item(self, name: str, item_type: Optional[str] = None) -> bool:
        """Case-insensitive name lookup, optionally restricted to one item type"""
        wanted = str(name).lower()
        return any(
            i.name.lower() == wanted and (item_type is None or i.type == item_type)
            for i in self.items
        )

    def known_languages(self) -> List[str]:
        custom = [part.strip() for part in re.split(r"[;,]", self.custom_languages) if part.strip()]
        return [str(lang) for lang in self.languages] + custom


class User(FlagHolder):
    """The person driving the client (player or game master)"""

    def __init__(self, name: str = "Player", is_gm: bool = False, flags=None):
        super().__init__(flags)
        self.name = name
        self.is_gm = is_gm


class Scene(FlagHolder):
    """The active scene"""

    def __init__(self, name: str = "Scene", flags=None):
        super().__init__(flags)
        self.name = name


@dataclass
class RollResult:
    """Outcome of one dice roll"""

    total: int
    formula: str
    dice: List[int] = field(default_factory=list)


class DiceRoller:
    """Randomizer for formulas like ``1d20 + 3`` or ``2d6-1``"""

    TERM = re.compile(r"^(\d*)d(\d+)$|^(\d+)$")

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def roll(self, formula: str, flavor: str = "") -> RollResult:
        expr = str(formula or "1d20").lower().replace(" ", "")
        terms = re.findall(r"[+-]?[^+-]+", expr)
        if not terms:
            raise ValueError(f"Empty dice formula: {formula!r}")

        total = 0
        dice: List[int] = []
        for term in terms:
            sign = -1 if term.startswith("-") else 1
            body = term.lstrip("+-")
            match = self.TERM.match(body)
            if not match:
                raise ValueError(f"Invalid dice term '{term}' in formula {formula!r}")
            if match.group(2):
                count = int(match.group(1) or 1)
                sides = max(1, int(match.group(2)))
                for _ in range(count):
                    face = self.rng.randint(1, sides)
                    dice.append(face)
                    total += sign * face
            else:
                total += sign * int(match.group(3))

        if flavor:
            logger.info("%s: %s = %d", flavor, formula, total)
        return RollResult(total=total, formula=str(formula), dice=dice)


class RelationTable:
    """Relationship scores between pairs of actors"""

    def __init__(self, scores: Optional[Dict[str, float]] = None):
        self.scores: Dict[str, float] = dict(scores or {})

    @staticmethod
    def _key(actor: Actor, npc: Optional[Actor]) -> str:
        return f"{actor.id}->{npc.id if npc else ''}"

    def get_relation(self, actor: Actor, npc: Optional[Actor]) -> float:
        return self.scores.get(self._key(actor, npc), 0)

    def bump_relation(self, actor: Actor, npc: Optional[Actor], delta: float):
        key = self._key(actor, npc)
        self.scores[key] = self.scores.get(key, 0) + delta


class MacroRegistry:
    """Named procedures the result pipeline can invoke"""

    def __init__(self, macros: Optional[Dict[str, Callable[[Dict[str, Any]], Any]]] = None):
        self.macros: Dict[str, Callable[[Dict[str, Any]], Any]] = dict(macros or {})

    def register(self, name: str, func: Callable[[Dict[str, Any]], Any]):
        self.macros[name] = func

    def get(self, name: str) -> Optional[Callable[[Dict[str, Any]], Any]]:
        return self.macros.get(name)


@dataclass
class HostContext:
    """Everything an option activation may read from or write to"""

    actor: Optional[Actor] = None
    npc: Optional[Actor] = None
    user: Optional[User] = None
    scene: Optional[Scene] = None
    randomizer: Any = field(default_factory=DiceRoller)
    relations: Optional[RelationTable] = None
    macros: Optional[MacroRegistry] = None
    # Hooks into the host for effects that leave the dialogue
    start_combat: Optional[Callable[["HostContext"], None]] = None
    open_trade: Optional[Callable[["HostContext"], None]] = None

    def pick_target(self, on: Optional[str]) -> Optional[FlagHolder]:
        """Resolve a result's ``on`` field to the entity whose flags it touches"""
        target = str(on or "actor").lower()
        if target == "npc":
            return self.npc
        if target == "user":
            return self.user
        if target == "scene":
            return self.scene
        return self.actor
