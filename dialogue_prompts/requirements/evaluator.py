"""
Requirement evaluation against an actor's state.

Evaluation never mutates anything and never raises: malformed data fails
open, unexpected actor shapes fail closed with "Requirement error".
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from dialogue_prompts.host import MODULE_ID, Actor, RelationTable, User
from dialogue_prompts.logger import get_logger
from dialogue_prompts.requirements.model import (
    ACTOR_KINDS,
    AllOf,
    AnyOf,
    Not,
    Requirement,
    RequirementLeaf,
    parse_requirement,
)

logger = get_logger(__name__)

DEFAULT_DC = 10


@dataclass
class InteractiveCheck:
    """A requirement that is settled by a roll when the option is chosen"""

    kind: str  # "skill" or "ability"
    key: str
    dc: int


@dataclass
class Evaluation:
    """Result of classifying a requirement"""

    ok: bool
    reasons: List[str] = field(default_factory=list)
    interactive_check: Optional[InteractiveCheck] = None

    @property
    def needs_roll(self) -> bool:
        return self.interactive_check is not None


def compare(lhs: Any, rhs: Any, op: Optional[str]) -> bool:
    """Apply a requirement comparison operator; unknown operators test truthiness"""
    op = (op or "").lower()
    try:
        if op == ">=":
            return lhs >= rhs
        if op == "<=":
            return lhs <= rhs
        if op == ">":
            return lhs > rhs
        if op == "<":
            return lhs < rhs
        if op == "==":
            return _loose_equals(lhs, rhs)
        if op == "===":
            return lhs == rhs and type(lhs) is type(rhs)
        if op == "!=":
            return not _loose_equals(lhs, rhs)
        if op == "in":
            return isinstance(rhs, (list, tuple, set)) and lhs in rhs
        if op == "has":
            return lhs is not None and hasattr(lhs, "__contains__") and rhs in lhs
    except TypeError:
        # None vs number, str vs number...
        return False
    return bool(lhs)


def _loose_equals(lhs: Any, rhs: Any) -> bool:
    """Equality that treats "5" and 5, or "true" and True, as the same"""
    if lhs == rhs:
        return True
    if isinstance(lhs, bool) or isinstance(rhs, bool):
        return str(lhs).lower() == str(rhs).lower()
    try:
        return float(lhs) == float(rhs)
    except (TypeError, ValueError):
        return False


def _to_number(value: Any, default: float = 0) -> float:
    if value is None or value == "":
        return default
    return float(value)


def _dc(leaf: RequirementLeaf) -> int:
    return int(_to_number(leaf.value, DEFAULT_DC))


def _miss(leaf: RequirementLeaf, why: str) -> Evaluation:
    return Evaluation(ok=False, reasons=[leaf.note or why])


# --- leaf checks ---------------------------------------------------------
# Each check receives the leaf, the actor (None only for rolled checks) and
# the shared evaluation environment.


def _check_skill(leaf: RequirementLeaf, actor: Actor, env: Dict[str, Any]) -> Evaluation:
    check = InteractiveCheck(kind="skill", key=str(leaf.key or "").lower(), dc=_dc(leaf))
    return Evaluation(ok=True, interactive_check=check)


def _check_ability(leaf: RequirementLeaf, actor: Actor, env: Dict[str, Any]) -> Evaluation:
    key = str(leaf.key or "").lower()
    if leaf.roll:
        return Evaluation(ok=True, interactive_check=InteractiveCheck(kind="ability", key=key, dc=_dc(leaf)))
    op = leaf.op or ">="
    if compare(actor.ability_score(key), _to_number(leaf.value), op):
        return Evaluation(ok=True)
    return _miss(leaf, f"Requires {key.upper()} {op} {leaf.value}")


def _check_race(leaf: RequirementLeaf, actor: Actor, env: Dict[str, Any]) -> Evaluation:
    wanted = str(leaf.value or "").lower()
    if wanted in (actor.race or "").lower():
        return Evaluation(ok=True)
    return _miss(leaf, f"Requires race: {leaf.value}")


def _check_language(leaf: RequirementLeaf, actor: Actor, env: Dict[str, Any]) -> Evaluation:
    wanted = [w.strip().lower() for w in str(leaf.value or "").split(",") if w.strip()]
    known = [k.strip().lower() for k in actor.known_languages() if k.strip()]
    for want in wanted:
        if any(want in k or k in want for k in known):
            return Evaluation(ok=True)
    return _miss(leaf, f"Requires language: {leaf.value}")


def _check_spell(leaf: RequirementLeaf, actor: Actor, env: Dict[str, Any]) -> Evaluation:
    if actor.has_item(str(leaf.value), item_type="spell"):
        return Evaluation(ok=True)
    return _miss(leaf, f"Requires spell: {leaf.value}")


def _check_item(leaf: RequirementLeaf, actor: Actor, env: Dict[str, Any]) -> Evaluation:
    if actor.has_item(str(leaf.value)):
        return Evaluation(ok=True)
    return _miss(leaf, f"Requires item: {leaf.value}")


def _check_proficiency(leaf: RequirementLeaf, actor: Actor, env: Dict[str, Any]) -> Evaluation:
    name = str(leaf.value if leaf.value not in (None, "") else leaf.key or "")
    if actor.proficiency(name) > 0:
        return Evaluation(ok=True)
    return _miss(leaf, f"Requires proficiency: {name}")


def _check_flag(leaf: RequirementLeaf, actor: Actor, env: Dict[str, Any]) -> Evaluation:
    scope, _, flag_key = str(leaf.key or "").partition(".")
    current = actor.get_flag(scope, flag_key) if scope and flag_key else None
    expected = True if leaf.value is None else leaf.value
    if compare(current, expected, leaf.op):
        return Evaluation(ok=True)
    return _miss(leaf, f"Requires flag {leaf.key} {leaf.op or '=='} {expected}")


def _check_previous_action(leaf: RequirementLeaf, actor: Actor, env: Dict[str, Any]) -> Evaluation:
    history = actor.get_flag(MODULE_ID, "history") or {}
    if history.get(str(leaf.value)):
        return Evaluation(ok=True)
    return _miss(leaf, f"Requires prior: {leaf.value}")


def _check_relation(leaf: RequirementLeaf, actor: Actor, env: Dict[str, Any]) -> Evaluation:
    relations: Optional[RelationTable] = env.get("relations")
    if relations is None:
        return Evaluation(ok=False, reasons=["Relation system missing"])
    op = leaf.op or ">="
    score = _to_number(relations.get_relation(actor, env.get("npc")))
    if compare(score, _to_number(leaf.value), op):
        return Evaluation(ok=True)
    return _miss(leaf, f"Requires relation {op} {leaf.value}")


LeafCheck = Callable[[RequirementLeaf, Actor, Dict[str, Any]], Evaluation]

LEAF_CHECKS: Dict[str, LeafCheck] = {
    "skill": _check_skill,
    "ability": _check_ability,
    "race": _check_race,
    "language": _check_language,
    "spell": _check_spell,
    "item": _check_item,
    "proficiency": _check_proficiency,
    "flag": _check_flag,
    "previousaction": _check_previous_action,
    "relation": _check_relation,
}


def _evaluate_leaf(leaf: RequirementLeaf, actor: Optional[Actor], env: Dict[str, Any]) -> Evaluation:
    kind = leaf.normalized_kind

    if kind == "gmonly":
        user: Optional[User] = env.get("user")
        return Evaluation(ok=True) if user is not None and user.is_gm else Evaluation(ok=False, reasons=["GM only"])

    # Rolled checks stay selectable; the roll itself settles them
    if kind in ACTOR_KINDS and actor is None and not leaf.is_interactive:
        return _miss(leaf, "No actor selected")

    check = LEAF_CHECKS.get(kind)
    if check is None:
        logger.debug("Unknown requirement type %r evaluates open", leaf.kind)
        return Evaluation(ok=True)
    return check(leaf, actor, env)


def _evaluate_tree(requirement: Requirement, actor: Optional[Actor], env: Dict[str, Any], leaf_fn) -> Evaluation:
    if isinstance(requirement, AllOf):
        parts = [_evaluate_tree(c, actor, env, leaf_fn) for c in requirement.children]
        ok = all(p.ok for p in parts)
        reasons = [] if ok else [r for p in parts if not p.ok for r in p.reasons]
        return Evaluation(ok=ok, reasons=reasons, interactive_check=_first_check(parts))

    if isinstance(requirement, AnyOf):
        parts = [_evaluate_tree(c, actor, env, leaf_fn) for c in requirement.children]
        ok = any(p.ok for p in parts)
        reasons = [] if ok else [r for p in parts for r in p.reasons]
        passing = [p for p in parts if p.ok]
        # A branch that passes outright settles the group without a roll
        if any(p.interactive_check is None for p in passing):
            return Evaluation(ok=ok, reasons=reasons)
        return Evaluation(ok=ok, reasons=reasons, interactive_check=_first_check(passing))

    if isinstance(requirement, Not):
        inner = _evaluate_tree(requirement.child, actor, env, leaf_fn)
        if inner.ok:
            label = describe(requirement.child) or "requirement"
            return Evaluation(ok=False, reasons=[f"Must NOT satisfy: {label}"])
        return Evaluation(ok=True)

    return leaf_fn(requirement, actor, env)


def _first_check(parts: List[Evaluation]) -> Optional[InteractiveCheck]:
    return next((p.interactive_check for p in parts if p.interactive_check is not None), None)


def _run(requirement: Any, actor, npc, user, relations, leaf_fn) -> Evaluation:
    try:
        parsed = parse_requirement(requirement)
        if parsed is None:
            return Evaluation(ok=True)
        env = {"npc": npc, "user": user, "relations": relations}
        return _evaluate_tree(parsed, actor, env, leaf_fn)
    except Exception:
        logger.warning("Requirement check error for %r", requirement, exc_info=True)
        return Evaluation(ok=False, reasons=["Requirement error"])


def evaluate(
    actor: Optional[Actor],
    npc: Optional[Actor],
    requirement: Any,
    user: Optional[User] = None,
    relations: Optional[RelationTable] = None,
) -> Evaluation:
    """
    Classify a requirement against the acting character.

    Args:
        actor: The player's character, or None in preview mode
        npc: The NPC being talked to
        requirement: Parsed requirement, its stored dict form, or None
        user: The user driving the client (for GM-only options)
        relations: Relation provider; relation requirements fail without it

    Returns:
        Evaluation with ``ok``, failure ``reasons`` and, for skill checks and
        rolled ability checks, the ``interactive_check`` to roll on activation
    """
    return _run(requirement, actor, npc, user, relations, _evaluate_leaf)


def check_modifier(actor: Optional[Actor], check: InteractiveCheck) -> int:
    """Bonus added to a d20 for an interactive check (0 in preview mode)"""
    if actor is None:
        return 0
    if check.kind == "ability":
        return actor.ability_mod(check.key)
    return actor.skill_total(check.key)


def _evaluate_leaf_passive(leaf: RequirementLeaf, actor: Optional[Actor], env: Dict[str, Any]) -> Evaluation:
    result = _evaluate_leaf(leaf, actor, env)
    check = result.interactive_check
    if check is None:
        return result
    passive = 10 + check_modifier(actor, check)
    if passive >= check.dc:
        return Evaluation(ok=True)
    return Evaluation(ok=False, reasons=[leaf.note or f"Passive {check.key.upper()} {passive} < DC {check.dc}"])


def evaluate_passive(
    actor: Optional[Actor],
    npc: Optional[Actor],
    requirement: Any,
    user: Optional[User] = None,
    relations: Optional[RelationTable] = None,
) -> Evaluation:
    """
    Evaluate without rolling: interactive checks compare ``10 + modifier``
    against their DC. Only used to decide whether a hidden option shows up.
    """
    return _run(requirement, actor, npc, user, relations, _evaluate_leaf_passive)


def explain_lock(evaluation: Evaluation) -> Optional[str]:
    """Human-readable lock reason, or None when the requirement passed"""
    if evaluation.ok:
        return None
    return "; ".join(evaluation.reasons) if evaluation.reasons else "Requirement not met"


def _describe_leaf(leaf: RequirementLeaf) -> str:
    kind = leaf.normalized_kind
    key = str(leaf.key or "")
    value = leaf.value
    if kind == "ability":
        label = f"{key.upper()} {leaf.op or '≥'} {'?' if value is None else value}"
        return f"{label} (roll)" if leaf.roll else label
    if kind == "skill":
        return f"Skill {key.upper()} ≥ {DEFAULT_DC if value is None else value}"
    if kind == "race":
        return f"Race: {value}"
    if kind == "language":
        return f"Language: {value}"
    if kind == "spell":
        return f"Spell known: {value}"
    if kind == "proficiency":
        return f"Proficiency: {str(value if value not in (None, '') else key).upper()}"
    if kind == "item":
        return f"Has item: {value}"
    if kind == "flag":
        return f"Flag {key} {leaf.op or '=='} {value}"
    if kind == "previousaction":
        return f"Did: {value}"
    if kind == "relation":
        return f"Relation {leaf.op or '>='} {value}"
    if kind == "gmonly":
        return "GM only"
    return ""


def _describe(requirement: Requirement) -> str:
    if isinstance(requirement, AllOf):
        return " & ".join(p for p in (_describe(c) for c in requirement.children) if p)
    if isinstance(requirement, AnyOf):
        return " | ".join(p for p in (_describe(c) for c in requirement.children) if p)
    if isinstance(requirement, Not):
        return f"NOT ({_describe(requirement.child)})"
    return _describe_leaf(requirement)


def describe(requirement: Any) -> str:
    """Deterministic display label for a requirement tree ("" when absent or malformed)"""
    try:
        parsed = parse_requirement(requirement)
        return _describe(parsed) if parsed is not None else ""
    except Exception:
        logger.debug("Could not describe requirement %r", requirement, exc_info=True)
        return ""
