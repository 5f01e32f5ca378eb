"""Tests for graph validation and the decision-tree view."""

from dialogue_prompts.graph.model import DialogueGraph
from dialogue_prompts.graph.validator import find_reachable_nodes, get_stats, validate_graph
from dialogue_prompts.graph.view import build_graph_view


def make_graph(**overrides):
    data = {
        "start": "start",
        "nodes": {
            "start": {"id": "start", "speaker": "Tom", "text": "Hello.", "options": [
                {"id": "o1", "label": "Ask", "next": "ask"},
                {"id": "o2", "label": "Bye", "next": "END"},
            ]},
            "ask": {"id": "ask", "speaker": "Tom", "text": "Well?", "options": [
                {"id": "o1", "label": "Back", "next": "start"},
            ]},
        },
    }
    data["nodes"].update(overrides)
    return DialogueGraph.from_dict(data)


class TestValidatorBasic:
    """Test validation of well-formed graphs."""

    def test_valid_graph(self):
        report = validate_graph(make_graph())

        assert report.is_valid
        assert report.errors == []
        assert report.warnings == []

    def test_stats(self):
        graph = make_graph(hidden={"id": "hidden", "options": [
            {"id": "o1", "label": "Psst", "hidden": True,
             "requirement": {"type": "skill", "key": "prc", "value": 20},
             "results": [{"type": "history", "value": "psst"}, {"type": "ends"}]},
        ]})
        stats = get_stats(graph)

        assert stats["nodes"] == 3
        assert stats["options"] == 4
        assert stats["hidden_options"] == 1
        assert stats["gated_options"] == 1
        assert stats["results"] == 2
        assert stats["terminal_nodes"] == 0
        assert stats["reachable_nodes"] == 2


class TestValidatorErrors:
    """Test broken references."""

    def test_dangling_next(self):
        graph = make_graph(ask={"id": "ask", "options": [{"id": "o1", "label": "Go", "next": "nowhere"}]})
        report = validate_graph(graph)

        assert not report.is_valid
        assert any("undefined target node 'nowhere'" in e for e in report.errors)

    def test_dangling_goto(self):
        graph = make_graph(ask={"id": "ask", "options": [
            {"id": "o1", "label": "Go", "results": [{"type": "goto", "value": "nowhere"}]},
        ]})
        report = validate_graph(graph)

        assert any("goto targets undefined node 'nowhere'" in e for e in report.errors)

    def test_id_mismatch(self):
        graph = make_graph()
        graph.nodes["ask"].id = "other"
        report = validate_graph(graph)

        assert any("mismatched id" in e for e in report.errors)

    def test_missing_start(self):
        graph = make_graph()
        graph.start = "gone"
        report = validate_graph(graph)

        assert any("Start node 'gone'" in e for e in report.errors)


class TestValidatorWarnings:
    """Test authoring warnings."""

    def test_unreachable_node(self):
        graph = make_graph(orphan={"id": "orphan", "options": [{"id": "o1", "label": "Bye", "next": "END"}]})
        report = validate_graph(graph)

        assert report.is_valid
        assert "Node 'orphan' is unreachable from start" in report.warnings

    def test_goto_counts_for_reachability(self):
        graph = make_graph(ask={"id": "ask", "options": [
            {"id": "o1", "label": "Go", "results": [{"type": "goto", "value": "deep"}]},
        ]}, deep={"id": "deep", "options": [{"id": "o1", "label": "Bye", "next": "END"}]})

        assert find_reachable_nodes(graph) == {"start", "ask", "deep"}

    def test_no_path_to_end(self):
        graph = DialogueGraph.from_dict({"start": "a", "nodes": {
            "a": {"id": "a", "options": [{"id": "o1", "label": "Loop", "next": "b"}]},
            "b": {"id": "b", "options": [{"id": "o1", "label": "Loop", "next": "a"}]},
        }})
        report = validate_graph(graph)

        assert any("No path leads to END" in w for w in report.warnings)

    def test_ends_result_is_a_path_to_end(self):
        graph = DialogueGraph.from_dict({"start": "a", "nodes": {
            "a": {"id": "a", "options": [{"id": "o1", "label": "Fight", "results": [{"type": "startCombat"}]}]},
        }})
        report = validate_graph(graph)

        assert not any("No path leads to END" in w for w in report.warnings)

    def test_empty_label_and_missing_target(self):
        graph = make_graph(ask={"id": "ask", "options": [{"id": "o1", "label": "  "}]})
        report = validate_graph(graph)

        assert any("option has no label" in w for w in report.warnings)
        assert any("option has no target" in w for w in report.warnings)

    def test_unknown_requirement_and_result_kinds(self):
        graph = make_graph(ask={"id": "ask", "options": [
            {"id": "o1", "label": "Dance", "next": "start",
             "requirement": {"allOf": [{"type": "race", "value": "elf"}, {"type": "dance"}]},
             "results": [{"type": "teleport"}]},
        ]})
        report = validate_graph(graph)

        assert any("unknown requirement type 'dance'" in w for w in report.warnings)
        assert any("unknown result type 'teleport'" in w for w in report.warnings)

    def test_several_rolled_checks(self):
        """Only one check is rolled per option, so extra rolled checks are flagged."""
        graph = make_graph(ask={"id": "ask", "options": [
            {"id": "o1", "label": "Sneak past", "next": "start",
             "requirement": {"allOf": [
                 {"type": "skill", "key": "ste", "value": 12},
                 {"type": "ability", "key": "dex", "value": 14, "roll": True},
                 {"type": "ability", "key": "str", "value": 10},
             ]}},
        ]})
        report = validate_graph(graph)

        assert "Node 'ask', option 1: requirement has 2 rolled checks but only one is rolled" in report.warnings


class TestGraphView:
    """Test the decision-tree view."""

    def test_edges_follow_next(self):
        view = build_graph_view(make_graph())
        edges = {(e["from"], e["to"]) for e in view["edges"]}

        assert edges == {("start", "ask"), ("start", "__END__"), ("ask", "start")}

    def test_pseudo_targets(self):
        graph = make_graph(ask={"id": "ask", "options": [
            {"id": "o1", "label": "Shop", "results": [{"type": "openTrade"}]},
            {"id": "o2", "label": "Fight", "results": [{"type": "startFight"}]},
            {"id": "o3", "label": "Leave", "results": [{"type": "ends"}]},
            {"id": "o4", "label": "Jump", "results": [{"type": "openTrade"}, {"type": "goto", "value": "start"}]},
        ]})
        view = build_graph_view(graph)
        targets = [e["to"] for e in view["edges"] if e["from"] == "ask"]
        types = {n["id"]: n["type"] for n in view["nodes"]}

        assert targets == ["__TRADE__", "__COMBAT__", "__END__", "start"]
        assert types["__TRADE__"] == "action"
        assert types["__COMBAT__"] == "action"
        assert types["__END__"] == "end"

    def test_missing_targets_and_depth(self):
        graph = make_graph(ask={"id": "ask", "options": [{"id": "o1", "label": "Go", "next": "nowhere"}]},
                           orphan={"id": "orphan"})
        view = build_graph_view(graph)
        nodes = {n["id"]: n for n in view["nodes"]}

        assert nodes["start"]["type"] == "start"
        assert nodes["start"]["depth"] == 0
        assert nodes["ask"]["depth"] == 1
        assert nodes["nowhere"]["type"] == "missing"
        assert nodes["nowhere"]["depth"] == 2
        assert nodes["orphan"]["depth"] == 3

    def test_unlabeled_option_gets_index_label(self):
        graph = make_graph(ask={"id": "ask", "options": [{"id": "o1", "label": "", "next": "start"}]})
        view = build_graph_view(graph)

        assert [e["label"] for e in view["edges"] if e["from"] == "ask"] == ["O1"]
