"""
Result pipeline: run the effects of a chosen option and decide where the
conversation goes next.

Activation happens in two steps. ``resolve_interactive_check`` performs the
single roll an option's requirement may call for, then ``apply_results`` runs
the effect list against that roll outcome. ``activate_option`` chains both
for callers that do not need to pause in between.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from dialogue_prompts.graph.model import END_NODE, DialogueOption, is_end_target
from dialogue_prompts.host import MODULE_ID, HostContext
from dialogue_prompts.logger import get_logger
from dialogue_prompts.requirements.evaluator import (
    Evaluation,
    InteractiveCheck,
    check_modifier,
    evaluate,
    explain_lock,
)
from dialogue_prompts.results.model import ResultEffect, should_run

logger = get_logger(__name__)


@dataclass
class CheckOutcome:
    """The roll made for an option's interactive check"""

    total: int
    dc: int
    passed: bool
    formula: str

    def to_dict(self) -> Dict[str, Any]:
        return {"total": self.total, "dc": self.dc, "passed": self.passed, "formula": self.formula}


@dataclass
class EffectRoll:
    """A roll made by a ``roll`` effect; its DC is reported, never enforced"""

    formula: str
    total: int
    dc: Optional[int] = None
    store_as: Optional[str] = None

    @property
    def passed(self) -> Optional[bool]:
        return None if self.dc is None else self.total >= self.dc

    def to_dict(self) -> Dict[str, Any]:
        return {
            "formula": self.formula,
            "total": self.total,
            "dc": self.dc,
            "passed": self.passed,
            "storeAs": self.store_as,
        }


@dataclass
class PipelineResult:
    """What running an option's effects produced"""

    next_node: Optional[str] = None
    ended: bool = False
    warnings: List[str] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)
    rolls: List[EffectRoll] = field(default_factory=list)
    executed: List[str] = field(default_factory=list)


@dataclass
class ActivationResult:
    """One-shot activation: requirement check, roll and effects together"""

    accepted: bool
    evaluation: Evaluation
    check: Optional[CheckOutcome] = None
    pipeline: Optional[PipelineResult] = None
    reason: Optional[str] = None

    @property
    def next_node(self) -> Optional[str]:
        return self.pipeline.next_node if self.pipeline else None

    @property
    def roll_passed(self) -> Optional[bool]:
        return self.check.passed if self.check else None


class _Run:
    """Mutable state shared by the handlers during one ``apply_results`` call"""

    def __init__(self, context: HostContext, result: PipelineResult):
        self.context = context
        self.result = result
        self.goto: Optional[str] = None
        self.terminated = False

    def warn(self, message: str):
        logger.warning(message)
        self.result.warnings.append(message)

    def info(self, message: str):
        logger.info(message)
        self.result.messages.append(message)


def resolve_interactive_check(check: InteractiveCheck, context: HostContext) -> CheckOutcome:
    """Roll ``1d20 + modifier`` once against the check's DC"""
    modifier = check_modifier(context.actor, check)
    formula = f"1d20 + {modifier}"
    flavor = f"Dialogue Skill Check: {check.key.upper()} vs DC {check.dc}"
    roll = context.randomizer.roll(formula, flavor=flavor)
    total = int(roll.total)
    return CheckOutcome(total=total, dc=check.dc, passed=total >= check.dc, formula=formula)


# --- effect handlers -----------------------------------------------------


def _split_flag_key(effect: ResultEffect):
    scope, _, flag_key = str(effect.key or "").partition(".")
    return scope, flag_key


def _goto(effect: ResultEffect, run: _Run):
    if effect.value in (None, ""):
        run.warn("goto result has no target")
        return
    run.goto = str(effect.value)


def _set_flag(effect: ResultEffect, run: _Run):
    scope, flag_key = _split_flag_key(effect)
    if not scope or not flag_key:
        run.warn(f"Invalid flag key: {effect.key}")
        return
    target = run.context.pick_target(effect.on)
    if target is None:
        run.warn(f"No {effect.on or 'actor'} to set flag {effect.key} on")
        return
    target.set_flag(scope, flag_key, effect.value)


def _unset_flag(effect: ResultEffect, run: _Run):
    scope, flag_key = _split_flag_key(effect)
    if not scope or not flag_key:
        run.warn(f"Invalid flag key: {effect.key}")
        return
    target = run.context.pick_target(effect.on)
    if target is None:
        run.warn(f"No {effect.on or 'actor'} to unset flag {effect.key} on")
        return
    target.unset_flag(scope, flag_key)


def _history(effect: ResultEffect, run: _Run):
    actor = run.context.actor
    if actor is None:
        run.warn("No actor selected to record history on")
        return
    history = copy.deepcopy(actor.get_flag(MODULE_ID, "history") or {})
    history[str(effect.value or "visited")] = True
    actor.set_flag(MODULE_ID, "history", history)


def _macro(effect: ResultEffect, run: _Run):
    name = str(effect.value or "").strip()
    macros = run.context.macros
    macro = macros.get(name) if macros is not None else None
    if macro is None:
        run.warn(f"Macro not found: {name}")
        return
    ctx = run.context
    macro({"actor": ctx.actor, "npc": ctx.npc, "user": ctx.user, "scene": ctx.scene, "data": effect.data})


def _roll(effect: ResultEffect, run: _Run):
    actor = run.context.actor
    mode = (effect.key or "formula").lower()
    if mode == "skill":
        bonus = actor.skill_total(str(effect.value)) if actor is not None else 0
        formula = f"1d20 + {bonus}"
    elif mode == "ability":
        bonus = actor.ability_mod(str(effect.value)) if actor is not None else 0
        formula = f"1d20 + {bonus}"
    else:
        formula = str(effect.value or "1d20")

    roll = run.context.randomizer.roll(formula, flavor="Dialogue Check")
    record = EffectRoll(formula=formula, total=int(roll.total), dc=effect.dc, store_as=effect.store_as)
    run.result.rolls.append(record)

    if effect.store_as:
        if actor is None:
            run.warn(f"No actor selected to store roll {effect.store_as}")
        else:
            variables = copy.deepcopy(actor.get_flag(MODULE_ID, "vars") or {})
            variables[effect.store_as] = record.total
            actor.set_flag(MODULE_ID, "vars", variables)

    if record.dc is not None:
        verdict = "success" if record.passed else "failure"
        run.info(f"Rolled {record.total} vs DC {record.dc}: {verdict}")


def _start_combat(effect: ResultEffect, run: _Run):
    ctx = run.context
    if ctx.start_combat is not None:
        ctx.start_combat(ctx)
    run.info(f"Combat started with {ctx.npc.name if ctx.npc else 'NPC'}.")
    run.terminated = True


def _open_trade(effect: ResultEffect, run: _Run):
    ctx = run.context
    if ctx.open_trade is not None:
        ctx.open_trade(ctx)
    run.info(f"Opened {ctx.npc.name if ctx.npc else 'NPC'}'s sheet.")


def _give_item(effect: ResultEffect, run: _Run):
    name = str(effect.value or "")
    npc, actor = run.context.npc, run.context.actor
    item = npc.find_item(name) if npc is not None else None
    if item is None:
        run.warn(f"Item not found on NPC: {name}")
        return
    if actor is None:
        run.warn(f"No actor selected to receive {name}")
        return
    actor.items.append(copy.deepcopy(item))


def _remove_item(effect: ResultEffect, run: _Run):
    name = str(effect.value or "")
    actor = run.context.actor
    item = actor.find_item(name) if actor is not None else None
    if item is None:
        run.warn(f"Item not found on Actor: {name}")
        return
    actor.items.remove(item)


def _give_relation(effect: ResultEffect, run: _Run):
    relations = run.context.relations
    if relations is None:
        run.warn("Relation system missing")
        return
    if run.context.actor is None:
        run.warn("No actor selected to change relation for")
        return
    relations.bump_relation(run.context.actor, run.context.npc, float(effect.value or 0))


def _ends(effect: ResultEffect, run: _Run):
    run.terminated = True


EffectHandler = Callable[[ResultEffect, _Run], None]

EFFECT_HANDLERS: Dict[str, EffectHandler] = {
    "goto": _goto,
    "setflag": _set_flag,
    "unsetflag": _unset_flag,
    "history": _history,
    "macro": _macro,
    "roll": _roll,
    "startcombat": _start_combat,
    "startfight": _start_combat,
    "opentrade": _open_trade,
    "giveitem": _give_item,
    "takeitem": _give_item,
    "removeitem": _remove_item,
    "giverelation": _give_relation,
    "ends": _ends,
}


def apply_results(option: DialogueOption, roll_passed: Optional[bool], context: HostContext) -> PipelineResult:
    """
    Run an option's effects in list order.

    Args:
        option: The chosen option
        roll_passed: Outcome of the option's interactive check, or None when
            no roll happened (then only ``always`` effects run)
        context: Host collaborators the effects read and write

    Returns:
        PipelineResult whose ``next_node`` is the last executed goto, else
        ``option.next``, else None. ``ends`` and ``startCombat`` stop the list
        and set ``next_node`` to END.
    """
    result = PipelineResult()
    run = _Run(context, result)

    for effect in option.results:
        if not should_run(effect, roll_passed):
            continue
        handler = EFFECT_HANDLERS.get(effect.normalized_kind)
        if handler is None:
            logger.debug("Ignoring unknown result type %r", effect.kind)
            continue
        try:
            handler(effect, run)
        except Exception as e:
            logger.warning("Result %r failed on option %s", effect.kind, option.id, exc_info=True)
            result.warnings.append(f"Dialogue result '{effect.kind}' failed: {e}")
            continue
        result.executed.append(effect.normalized_kind)
        if run.terminated:
            break

    if run.terminated:
        result.next_node = END_NODE
    else:
        result.next_node = run.goto or option.next or None
    result.ended = run.terminated or is_end_target(result.next_node)
    return result


def activate_option(
    option: DialogueOption,
    context: HostContext,
    evaluation: Optional[Evaluation] = None,
) -> ActivationResult:
    """
    Evaluate, roll if needed and apply an option in one call.

    A locked option is not applied; ``accepted`` is False and ``reason``
    explains the lock.
    """
    if evaluation is None:
        evaluation = evaluate(context.actor, context.npc, option.requirement, context.user, context.relations)
    if not evaluation.ok:
        return ActivationResult(
            accepted=False,
            evaluation=evaluation,
            reason=explain_lock(evaluation) or "Requirement not met",
        )

    check = None
    if evaluation.interactive_check is not None:
        check = resolve_interactive_check(evaluation.interactive_check, context)

    pipeline = apply_results(option, check.passed if check else None, context)
    return ActivationResult(accepted=True, evaluation=evaluation, check=check, pipeline=pipeline)
