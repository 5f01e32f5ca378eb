"""Tests for the result pipeline."""

from dialogue_prompts.graph.model import DialogueOption
from dialogue_prompts.host import MODULE_ID, MacroRegistry, RelationTable
from dialogue_prompts.requirements.evaluator import InteractiveCheck
from dialogue_prompts.results import ResultEffect, should_run
from dialogue_prompts.results.pipeline import activate_option, apply_results, resolve_interactive_check


def make_option(results, next_node="", requirement=None):
    return DialogueOption.from_dict({
        "id": "o1",
        "label": "Do it",
        "next": next_node,
        "requirement": requirement,
        "results": results,
    })


class TestGating:
    """Test runOn gating against the roll outcome."""

    def test_should_run(self):
        always = ResultEffect(kind="history")
        on_pass = ResultEffect(kind="history", run_on="pass")
        on_fail = ResultEffect(kind="history", run_on="FAIL")

        assert should_run(always, None) and should_run(always, True) and should_run(always, False)
        assert should_run(on_pass, True) and not should_run(on_pass, False)
        assert should_run(on_fail, False) and not should_run(on_fail, True)

    def test_no_roll_runs_only_always_effects(self, context):
        """Without a roll, pass and fail effects are both skipped."""
        option = make_option([
            {"type": "history", "value": "always"},
            {"type": "history", "value": "won", "runOn": "pass"},
            {"type": "history", "value": "lost", "runOn": "fail"},
        ])
        apply_results(option, None, context)

        assert context.actor.get_flag(MODULE_ID, "history") == {"always": True}

    def test_branching_on_roll(self, context):
        option = make_option([
            {"type": "goto", "value": "nodePass", "runOn": "pass"},
            {"type": "goto", "value": "nodeFail", "runOn": "fail"},
        ], next_node="fallback")

        assert apply_results(option, True, context).next_node == "nodePass"
        assert apply_results(option, False, context).next_node == "nodeFail"
        assert apply_results(option, None, context).next_node == "fallback"


class TestNavigation:
    """Test how the next node is decided."""

    def test_last_goto_wins(self, context):
        option = make_option([{"type": "goto", "value": "a"}, {"type": "goto", "value": "b"}], next_node="c")
        result = apply_results(option, None, context)

        assert result.next_node == "b"
        assert not result.ended

    def test_next_fallback_and_none(self, context):
        assert apply_results(make_option([], next_node="c"), None, context).next_node == "c"
        assert apply_results(make_option([]), None, context).next_node is None

    def test_goto_end_ends(self, context):
        result = apply_results(make_option([{"type": "goto", "value": "END"}]), None, context)

        assert result.next_node == "END"
        assert result.ended

    def test_ends_stops_the_list(self, context):
        """Effects after a terminating one never run."""
        option = make_option([
            {"type": "history", "value": "before"},
            {"type": "ends"},
            {"type": "history", "value": "after"},
        ], next_node="c")
        result = apply_results(option, None, context)

        assert result.ended
        assert result.next_node == "END"
        assert result.executed == ["history", "ends"]
        assert context.actor.get_flag(MODULE_ID, "history") == {"before": True}

    def test_start_combat_calls_hook_and_ends(self, context):
        calls = []
        context.start_combat = calls.append
        result = apply_results(make_option([{"type": "startCombat"}, {"type": "goto", "value": "x"}]), None, context)

        assert calls == [context]
        assert result.ended
        assert result.messages == ["Combat started with Tom."]

    def test_unknown_kind_is_ignored(self, context):
        result = apply_results(make_option([{"type": "teleport"}], next_node="c"), None, context)

        assert result.executed == []
        assert result.warnings == []
        assert result.next_node == "c"


class TestFlagEffects:
    """Test flag and history effects."""

    def test_set_and_unset_flag(self, context):
        apply_results(make_option([{"type": "setFlag", "key": "world.asked", "value": 3}]), None, context)
        assert context.actor.get_flag("world", "asked") == 3

        apply_results(make_option([{"type": "unsetFlag", "key": "world.asked"}]), None, context)
        assert context.actor.get_flag("world", "asked") is None

    def test_set_flag_on_npc(self, context):
        apply_results(make_option([{"type": "setFlag", "key": "world.angry", "value": True, "on": "npc"}]), None, context)

        assert context.npc.get_flag("world", "angry") is True
        assert context.actor.get_flag("world", "angry") is None

    def test_invalid_flag_key_warns(self, context):
        result = apply_results(make_option([{"type": "setFlag", "key": "nodot", "value": 1}]), None, context)

        assert result.warnings == ["Invalid flag key: nodot"]

    def test_missing_target_entity_warns(self, context):
        result = apply_results(make_option([{"type": "setFlag", "key": "world.x", "on": "scene"}]), None, context)

        assert len(result.warnings) == 1
        assert "No scene" in result.warnings[0]

    def test_history_defaults_to_visited(self, context):
        apply_results(make_option([{"type": "history"}, {"type": "history", "value": "asked"}]), None, context)

        assert context.actor.get_flag(MODULE_ID, "history") == {"visited": True, "asked": True}


class TestItemAndRelationEffects:
    """Test item transfer and relation changes."""

    def test_give_item_copies_from_npc(self, context):
        apply_results(make_option([{"type": "giveItem", "value": "Silver Ring"}]), None, context)

        assert context.actor.has_item("Silver Ring")
        assert context.npc.has_item("Silver Ring")
        assert context.actor.find_item("Silver Ring") is not context.npc.find_item("Silver Ring")

    def test_give_missing_item_warns(self, context):
        result = apply_results(make_option([{"type": "giveItem", "value": "Crown"}]), None, context)

        assert result.warnings == ["Item not found on NPC: Crown"]

    def test_remove_item(self, context):
        result = apply_results(make_option([
            {"type": "removeItem", "value": "Rusty Key"},
            {"type": "removeItem", "value": "Rusty Key"},
        ]), None, context)

        assert not context.actor.has_item("Rusty Key")
        assert result.warnings == ["Item not found on Actor: Rusty Key"]

    def test_give_relation(self, context):
        context.relations = RelationTable({"Vex->tom": 1})
        apply_results(make_option([{"type": "giveRelation", "value": 2}]), None, context)

        assert context.relations.get_relation(context.actor, context.npc) == 3

    def test_relation_without_provider_warns(self, context):
        result = apply_results(make_option([{"type": "giveRelation", "value": 2}]), None, context)

        assert result.warnings == ["Relation system missing"]

    def test_open_trade(self, context):
        opened = []
        context.open_trade = opened.append
        result = apply_results(make_option([{"type": "openTrade"}], next_node="c"), None, context)

        assert opened == [context]
        assert result.messages == ["Opened Tom's sheet."]
        assert not result.ended


class TestMacroAndRollEffects:
    """Test macros and roll effects."""

    def test_macro_receives_bag(self, context):
        seen = []
        context.macros = MacroRegistry({"greet": seen.append})
        apply_results(make_option([{"type": "macro", "value": "greet", "data": {"loud": True}}]), None, context)

        assert seen[0]["actor"] is context.actor
        assert seen[0]["npc"] is context.npc
        assert seen[0]["data"] == {"loud": True}

    def test_missing_macro_warns(self, context):
        result = apply_results(make_option([{"type": "macro", "value": "ghost"}]), None, context)

        assert result.warnings == ["Macro not found: ghost"]

    def test_failing_effect_does_not_stop_the_list(self, context):
        """A raising macro becomes a warning and later effects still run."""
        def explode(bag):
            raise RuntimeError("boom")

        context.macros = MacroRegistry({"explode": explode})
        result = apply_results(make_option([
            {"type": "macro", "value": "explode"},
            {"type": "goto", "value": "next"},
        ]), None, context)

        assert result.warnings == ["Dialogue result 'macro' failed: boom"]
        assert result.next_node == "next"

    def test_roll_effect_stores_variable(self, context, roller):
        context.randomizer = roller(13)
        result = apply_results(make_option([
            {"type": "roll", "key": "skill", "value": "ste", "dc": 12, "storeAs": "sneak"},
        ]), None, context)

        assert context.randomizer.calls == [("1d20 + 5", "Dialogue Check")]
        assert context.actor.get_flag(MODULE_ID, "vars") == {"sneak": 13}
        assert result.rolls[0].passed is True
        assert result.messages == ["Rolled 13 vs DC 12: success"]

    def test_roll_effect_never_branches(self, context, roller):
        """A failed roll effect does not switch pass/fail gating."""
        context.randomizer = roller(2)
        result = apply_results(make_option([
            {"type": "roll", "value": "1d6", "dc": 5},
            {"type": "goto", "value": "won", "runOn": "pass"},
        ], next_node="c"), None, context)

        assert result.messages == ["Rolled 2 vs DC 5: failure"]
        assert result.next_node == "c"


class TestActivation:
    """Test interactive checks and one-shot activation."""

    def test_resolve_interactive_check(self, context, roller):
        context.randomizer = roller(14)
        outcome = resolve_interactive_check(InteractiveCheck(kind="skill", key="prc", dc=15), context)

        assert context.randomizer.calls == [("1d20 + 2", "Dialogue Skill Check: PRC vs DC 15")]
        assert outcome.total == 14
        assert not outcome.passed

    def test_ability_check_uses_modifier(self, context, roller):
        context.randomizer = roller(15)
        outcome = resolve_interactive_check(InteractiveCheck(kind="ability", key="str", dc=15), context)

        assert outcome.formula == "1d20 + 2"
        assert outcome.passed

    def test_activate_option(self, context, roller):
        context.randomizer = roller(18)
        option = make_option(
            [{"type": "goto", "value": "nodePass", "runOn": "pass"}],
            requirement={"type": "skill", "key": "prc", "value": 15},
        )
        result = activate_option(option, context)

        assert result.accepted
        assert result.roll_passed is True
        assert result.next_node == "nodePass"

    def test_activate_locked_option(self, context):
        option = make_option([{"type": "history"}], requirement={"type": "item", "value": "Crown"})
        result = activate_option(option, context)

        assert not result.accepted
        assert result.reason == "Requires item: Crown"
        assert result.pipeline is None
        assert context.actor.get_flag(MODULE_ID, "history") is None
