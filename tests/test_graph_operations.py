"""Tests for dialogue graph editing operations."""

import pytest

from dialogue_prompts.errors import GraphEditError
from dialogue_prompts.graph import operations
from dialogue_prompts.graph.model import DialogueGraph, DialogueNode
from dialogue_prompts.requirements.model import RequirementLeaf


def make_graph():
    return DialogueGraph.from_dict({
        "start": "start",
        "nodes": {
            "start": {"id": "start", "speaker": "Tom", "text": "Hello there.", "options": [
                {"id": "o1", "label": "What is this place?", "next": "ask"},
                {"id": "o2", "label": "Show me around.", "results": [{"type": "goto", "value": "ask"}]},
                {"id": "o3", "label": "Goodbye.", "next": "END"},
            ]},
            "ask": {"id": "ask", "speaker": "Tom", "text": "The old mill.", "options": [
                {"id": "o1", "label": "Back", "next": "start"},
                {"id": "o2", "label": "Any secrets?", "next": "secret"},
            ]},
            "secret": {"id": "secret", "speaker": "Tom", "text": "Keep it quiet.", "options": [
                {"id": "o1", "label": "Tell me more", "next": "ask"},
            ]},
        },
    })


def all_references(graph):
    refs = []
    for _, option in graph.iter_options():
        if option.next:
            refs.append(option.next)
        refs.extend(option.goto_targets())
    return refs


class TestNormalize:
    """Test structural repairs."""

    def test_empty_graph_gets_placeholder_start(self):
        """An empty graph gains a blank start node."""
        graph = operations.normalize(DialogueGraph(start="", nodes={}), speaker="Tom")

        assert graph.start == "start"
        assert list(graph.nodes) == ["start"]
        assert graph.nodes["start"].speaker == "Tom"
        assert graph.nodes["start"].options == []

    def test_missing_start_promotes_first_node(self):
        """A dangling start is replaced by the first node."""
        graph = make_graph()
        graph.start = "gone"
        operations.normalize(graph)

        assert graph.start == "start"

    def test_start_always_exists(self):
        """After normalize, the start node exists for any input shape."""
        for data in [None, [], {}, {"start": "x"}, {"nodes": "junk"}, {"start": "a", "nodes": {"b": {}}}]:
            graph = operations.normalize(DialogueGraph.from_dict(data))
            assert graph.start in graph.nodes

    def test_node_id_synced_to_key(self):
        """Node ids match their keys."""
        graph = make_graph()
        graph.nodes["ask"].id = "wrong"
        operations.normalize(graph)

        assert graph.nodes["ask"].id == "ask"

    def test_non_list_options_become_list(self):
        """Options that are not a list are reset."""
        graph = DialogueGraph(start="a", nodes={"a": DialogueNode(id="a", options=None)})
        operations.normalize(graph)

        assert graph.nodes["a"].options == []

    def test_non_dict_nodes_reset(self):
        """A nodes value that is not a mapping is replaced."""
        graph = DialogueGraph(start="a", nodes=["not", "a", "dict"])
        operations.normalize(graph)

        assert graph.start == "a"
        assert list(graph.nodes) == ["a"]

    def test_idempotent(self):
        """Normalizing twice equals normalizing once."""
        graph = DialogueGraph.from_dict({"start": "missing", "nodes": {"b": {"id": "x"}}})
        once = operations.normalize(graph).to_dict()
        twice = operations.normalize(graph).to_dict()

        assert once == twice

    def test_hidden_string_values(self):
        """Stored "false" stays visible; "true" and True hide the option."""
        graph = DialogueGraph.from_dict({"start": "a", "nodes": {"a": {"id": "a", "options": [
            {"id": "o1", "hidden": "false"},
            {"id": "o2", "hidden": "True"},
            {"id": "o3", "hidden": True},
        ]}}})

        assert [o.hidden for o in graph.nodes["a"].options] == [False, True, True]

        operations.update_option(graph, "a", "o2", hidden="false")
        assert graph.nodes["a"].options[1].hidden is False

    def test_legacy_wrapper_accepted(self):
        """The older dialogueNodes wrapper loads the same graph."""
        wrapped = DialogueGraph.from_dict({"dialogueNodes": make_graph().to_dict()})

        assert wrapped.to_dict() == make_graph().to_dict()


class TestPruneDanglingTargets:
    """Test removal of references to missing nodes."""

    def test_clears_dangling_next(self):
        """next pointing at a missing node is cleared."""
        graph = make_graph()
        graph.nodes["ask"].options[1].next = "nowhere"
        repairs = operations.prune_dangling_targets(graph)

        assert repairs == 1
        assert graph.nodes["ask"].options[1].next == ""

    def test_keeps_end_sentinel(self):
        """END and end are not dangling."""
        graph = make_graph()
        graph.nodes["ask"].options[0].next = "end"
        repairs = operations.prune_dangling_targets(graph)

        assert repairs == 0
        assert graph.nodes["start"].options[2].next == "END"
        assert graph.nodes["ask"].options[0].next == "end"

    def test_drops_dangling_goto(self):
        """goto results to missing nodes are removed, other results stay."""
        graph = make_graph()
        operations.update_option(graph, "start", "o2", results=[
            {"type": "setFlag", "key": "world.asked", "value": True},
            {"type": "goto", "value": "nowhere"},
            {"type": "goto", "value": "END"},
        ])
        repairs = operations.prune_dangling_targets(graph)

        kinds = [(r.kind, r.value) for r in graph.nodes["start"].options[1].results]
        assert repairs == 1
        assert kinds == [("setFlag", True), ("goto", "END")]

    def test_every_reference_is_live_after_prune(self):
        """After pruning, every non-empty target names a node or END."""
        graph = make_graph()
        del graph.nodes["ask"]
        operations.prune_dangling_targets(graph)

        for target in all_references(graph):
            assert target in graph.nodes or target in ("END", "end")


class TestAddNode:
    """Test node creation."""

    def test_generated_id(self):
        """Generated ids are 16 hex characters and unique."""
        graph = make_graph()
        first = operations.add_node(graph)
        second = operations.add_node(graph)

        assert len(first) == 16
        int(first, 16)
        assert first != second
        assert graph.nodes[first].id == first

    def test_explicit_id(self):
        graph = make_graph()
        node_id = operations.add_node(graph, "farewell", speaker="Tom", text="Safe travels.")

        assert node_id == "farewell"
        assert graph.nodes["farewell"].text == "Safe travels."

    def test_duplicate_id_rejected(self):
        """Explicit ids that already exist are rejected."""
        graph = make_graph()
        with pytest.raises(GraphEditError):
            operations.add_node(graph, "ask")

    def test_reserved_and_empty_ids_rejected(self):
        graph = make_graph()
        for bad in ("END", "end", "  "):
            with pytest.raises(GraphEditError):
                operations.add_node(graph, bad)
        assert len(graph.nodes) == 3


class TestDeleteNode:
    """Test node deletion."""

    def test_start_node_cannot_be_deleted(self):
        """Deleting the start node is rejected and nothing changes."""
        graph = make_graph()
        before = graph.to_dict()

        with pytest.raises(GraphEditError, match="Cannot delete the start node"):
            operations.delete_node(graph, "start")
        assert graph.to_dict() == before

    def test_unknown_node_rejected(self):
        graph = make_graph()
        before = graph.to_dict()

        with pytest.raises(GraphEditError):
            operations.delete_node(graph, "nope")
        assert graph.to_dict() == before

    def test_references_are_pruned(self):
        """A node referenced by 3 options across 2 nodes leaves no trace."""
        graph = make_graph()
        pruned = operations.delete_node(graph, "ask")

        assert pruned == 3
        assert "ask" not in graph.nodes
        assert graph.nodes["start"].options[0].next == ""
        assert graph.nodes["start"].options[1].results == []
        assert graph.nodes["secret"].options[0].next == ""
        assert "ask" not in all_references(graph)


class TestRenameNode:
    """Test node renaming."""

    def test_rewrites_every_reference(self):
        """All next values and gotos move to the new id."""
        graph = make_graph()
        rewritten = operations.rename_node(graph, "ask", "question")

        assert rewritten == 3
        assert "ask" not in graph.nodes
        assert graph.nodes["question"].id == "question"
        refs = all_references(graph)
        assert "ask" not in refs
        assert refs.count("question") == 3

    def test_renaming_start_updates_start(self):
        graph = make_graph()
        operations.rename_node(graph, "start", "hello")

        assert graph.start == "hello"
        assert graph.nodes["ask"].options[0].next == "hello"

    def test_preserves_node_order(self):
        graph = make_graph()
        operations.rename_node(graph, "ask", "question")

        assert list(graph.nodes) == ["start", "question", "secret"]

    def test_invalid_renames_leave_graph_unchanged(self):
        """Empty, same, unknown and occupied ids are rejected."""
        graph = make_graph()
        before = graph.to_dict()

        for old, new in [("ask", ""), ("ask", "ask"), ("nope", "x"), ("ask", "secret"), ("ask", "END")]:
            with pytest.raises(GraphEditError):
                operations.rename_node(graph, old, new)
        assert graph.to_dict() == before


class TestOptionOperations:
    """Test option CRUD and other edits."""

    def test_add_option(self):
        graph = make_graph()
        option_id = operations.add_option(graph, "secret", label="Leave", next="END")

        option = graph.nodes["secret"].get_option(option_id)
        assert option.label == "Leave"
        assert option.next == "END"

    def test_option_ids_unique_within_node(self):
        graph = make_graph()
        ids = {operations.add_option(graph, "secret") for _ in range(20)}

        assert len(ids) == 20
        assert len(graph.nodes["secret"].options) == 21

    def test_add_option_to_unknown_node(self):
        with pytest.raises(GraphEditError):
            operations.add_option(make_graph(), "nope")

    def test_delete_option(self):
        graph = make_graph()
        operations.delete_option(graph, "start", "o2")

        assert [o.id for o in graph.nodes["start"].options] == ["o1", "o3"]
        with pytest.raises(GraphEditError):
            operations.delete_option(graph, "start", "o2")

    def test_update_option_parses_stored_forms(self):
        """Requirement and results may be given as dicts."""
        graph = make_graph()
        option = operations.update_option(
            graph, "start", "o1",
            label="Look closer",
            hidden=True,
            requirement={"type": "skill", "key": "prc", "value": 15},
            results=[{"type": "history", "value": "looked"}],
        )

        assert option.label == "Look closer"
        assert option.hidden is True
        assert option.requirement == RequirementLeaf(kind="skill", key="prc", value=15)
        assert option.results[0].kind == "history"

    def test_update_option_rejects_unknown_fields(self):
        graph = make_graph()
        with pytest.raises(GraphEditError):
            operations.update_option(graph, "start", "o1", colour="red")
        with pytest.raises(GraphEditError):
            operations.update_option(graph, "start", "o1", results="nope")
        assert graph.nodes["start"].options[0].label == "What is this place?"

    def test_connect(self):
        graph = make_graph()
        operations.connect(graph, "secret", "o1", "END")
        assert graph.nodes["secret"].options[0].next == "END"

        with pytest.raises(GraphEditError):
            operations.connect(graph, "secret", "o1", "nowhere")

    def test_set_start(self):
        graph = make_graph()
        operations.set_start(graph, "ask")
        assert graph.start == "ask"

        with pytest.raises(GraphEditError):
            operations.set_start(graph, "nope")

    def test_update_node(self):
        graph = make_graph()
        node = operations.update_node(graph, "ask", text="The new mill.")

        assert node.text == "The new mill."
        assert node.speaker == "Tom"
