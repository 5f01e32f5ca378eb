"""
Player-side traversal of a dialogue graph.

A session walks one graph for one actor. Choosing an option is a two-step
affair: ``begin`` checks the option and parks it as pending, ``complete``
rolls (or takes a roll made elsewhere), runs the option's results and moves
the conversation. ``select`` does both in one call.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from dialogue_prompts.errors import ActivationRejected
from dialogue_prompts.graph.model import DialogueGraph, DialogueNode, DialogueOption
from dialogue_prompts.host import HostContext
from dialogue_prompts.logger import get_logger
from dialogue_prompts.requirements.evaluator import (
    Evaluation,
    InteractiveCheck,
    describe,
    evaluate,
    evaluate_passive,
    explain_lock,
)
from dialogue_prompts.results.pipeline import (
    CheckOutcome,
    PipelineResult,
    apply_results,
    resolve_interactive_check,
)

logger = get_logger(__name__)

FAILED_CHECK_REASON = "Failed check"


@dataclass
class OptionView:
    """An option as the player sees it on the current node"""

    option: DialogueOption
    locked: bool = False
    lock_reason: Optional[str] = None
    description: str = ""
    needs_roll: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.option.id,
            "label": self.option.label,
            "locked": self.locked,
            "lockReason": self.lock_reason,
            "reqText": self.description or None,
            "needsRoll": self.needs_roll,
        }


@dataclass
class NodeView:
    """The current node with its visible options"""

    node: DialogueNode
    options: List[OptionView] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.node.id,
            "speaker": self.node.speaker,
            "text": self.node.text,
            "options": [o.to_dict() for o in self.options],
        }


@dataclass
class PendingActivation:
    """An option accepted by ``begin`` and waiting for ``complete``"""

    node_id: str
    option: DialogueOption
    evaluation: Evaluation

    @property
    def check(self) -> Optional[InteractiveCheck]:
        return self.evaluation.interactive_check


@dataclass
class ActivationOutcome:
    """What happened when an option was chosen"""

    accepted: bool
    node_id: str
    ended: bool = False
    reason: Optional[str] = None
    check: Optional[CheckOutcome] = None
    pipeline: Optional[PipelineResult] = None
    messages: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accepted": self.accepted,
            "node": self.node_id,
            "ended": self.ended,
            "reason": self.reason,
            "check": self.check.to_dict() if self.check else None,
            "rolls": [r.to_dict() for r in self.pipeline.rolls] if self.pipeline else [],
            "messages": list(self.messages),
            "warnings": list(self.warnings),
        }


class TraversalSession:
    """State machine for one conversation: current node until it ends"""

    def __init__(self, graph: DialogueGraph, context: Optional[HostContext] = None):
        self.graph = graph
        self.context = context or HostContext()
        self.current_node = graph.start
        self.ended = False
        self.history: List[str] = [graph.start]
        self.pending: Optional[PendingActivation] = None
        # (node id, option id) pairs whose interactive check was failed
        self.failed_checks: Set[Tuple[str, str]] = set()

    @property
    def node(self) -> Optional[DialogueNode]:
        return self.graph.get_node(self.current_node)

    def _evaluate(self, option: DialogueOption) -> Evaluation:
        ctx = self.context
        return evaluate(ctx.actor, ctx.npc, option.requirement, ctx.user, ctx.relations)

    def _hidden_from_player(self, option: DialogueOption) -> bool:
        if not option.hidden or option.requirement is None:
            return False
        ctx = self.context
        return not evaluate_passive(ctx.actor, ctx.npc, option.requirement, ctx.user, ctx.relations).ok

    def is_failed(self, option_id: str, node_id: Optional[str] = None) -> bool:
        return (node_id or self.current_node, str(option_id)) in self.failed_checks

    def render(self) -> NodeView:
        """Build the view of the current node"""
        if self.ended:
            raise ActivationRejected("The conversation has ended.")
        node = self.node
        if node is None:
            raise ActivationRejected(f"Node not found: {self.current_node}")

        views = []
        for option in node.options:
            if self._hidden_from_player(option):
                continue
            description = describe(option.requirement)
            if self.is_failed(option.id):
                views.append(OptionView(option, locked=True, lock_reason=FAILED_CHECK_REASON, description=description))
                continue
            evaluation = self._evaluate(option)
            views.append(OptionView(
                option,
                locked=not evaluation.ok,
                lock_reason=explain_lock(evaluation),
                description=description,
                needs_roll=evaluation.needs_roll,
            ))
        return NodeView(node=node, options=views)

    def begin(self, option_id: str) -> PendingActivation:
        """
        Accept an option for activation.

        Raises:
            ActivationRejected: The session has ended, another activation is
                pending, or the option is unknown, hidden or locked
        """
        if self.ended:
            raise ActivationRejected("The conversation has ended.")
        if self.pending is not None:
            raise ActivationRejected("Another option is still being resolved.")

        node = self.node
        option = node.get_option(option_id) if node is not None else None
        if option is None:
            raise ActivationRejected(f"Option not found: {option_id}")
        if self._hidden_from_player(option):
            raise ActivationRejected(f"Option not found: {option_id}")
        if self.is_failed(option.id):
            raise ActivationRejected(FAILED_CHECK_REASON)

        # Re-evaluate: actor state may have changed since the last render
        evaluation = self._evaluate(option)
        if not evaluation.ok:
            raise ActivationRejected(explain_lock(evaluation) or "Requirement not met")

        self.pending = PendingActivation(node_id=self.current_node, option=option, evaluation=evaluation)
        return self.pending

    def complete(self, pending: PendingActivation, outcome: Optional[CheckOutcome] = None) -> ActivationOutcome:
        """
        Finish a pending activation.

        ``outcome`` is the roll for the option's interactive check; when it is
        None and a check is pending, the session rolls through the context's
        randomizer. Options without a check ignore it.
        """
        if pending is None or pending is not self.pending:
            raise ActivationRejected("No such activation is pending.")
        self.pending = None

        if pending.check is None:
            outcome = None
        elif outcome is None:
            try:
                outcome = resolve_interactive_check(pending.check, self.context)
            except Exception as e:
                message = f"Dialogue check roll failed: {e}"
                logger.warning(message, exc_info=True)
                return ActivationOutcome(
                    accepted=False,
                    node_id=self.current_node,
                    ended=self.ended,
                    reason=message,
                    warnings=[message],
                )

        roll_passed = outcome.passed if outcome is not None else None
        if roll_passed is False:
            self.failed_checks.add((pending.node_id, str(pending.option.id)))

        pipeline = apply_results(pending.option, roll_passed, self.context)
        result = ActivationOutcome(
            accepted=True,
            node_id=self.current_node,
            check=outcome,
            pipeline=pipeline,
            messages=list(pipeline.messages),
            warnings=list(pipeline.warnings),
        )
        self._navigate(pipeline, roll_passed, result)
        result.node_id = self.current_node
        result.ended = self.ended
        return result

    def _navigate(self, pipeline: PipelineResult, roll_passed: Optional[bool], result: ActivationOutcome):
        target = pipeline.next_node
        if pipeline.ended:
            self.close()
        elif target is None:
            if roll_passed is False:
                result.messages.append("Check failed.")
        elif target in self.graph.nodes:
            self.current_node = target
            self.history.append(target)
        else:
            message = f"Next node not found: {target}"
            logger.warning(message)
            result.warnings.append(message)

    def select(self, option_id: str) -> ActivationOutcome:
        """Begin and complete an option in one call; rejections are returned, not raised"""
        try:
            pending = self.begin(option_id)
        except ActivationRejected as e:
            return ActivationOutcome(accepted=False, node_id=self.current_node, ended=self.ended, reason=str(e))
        return self.complete(pending)

    def close(self):
        """End the conversation and drop anything still pending"""
        self.ended = True
        self.pending = None
