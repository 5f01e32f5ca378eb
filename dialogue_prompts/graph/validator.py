"""
Read-only checks on a dialogue graph: broken references, unreachable nodes,
authoring slips. Nothing here repairs the graph; see ``operations`` for that.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

from dialogue_prompts.graph.model import DialogueGraph, is_end_target
from dialogue_prompts.requirements.model import iter_leaves

KNOWN_RESULT_KINDS = {
    "goto",
    "setflag",
    "unsetflag",
    "history",
    "macro",
    "roll",
    "startcombat",
    "startfight",
    "opentrade",
    "giveitem",
    "takeitem",
    "removeitem",
    "giverelation",
    "ends",
}


@dataclass
class GraphReport:
    """Outcome of validating a graph"""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def outgoing_targets(graph: DialogueGraph, node_id: str) -> List[str]:
    """Every node id an option of this node can lead to (next values and gotos)"""
    node = graph.nodes.get(node_id)
    if node is None:
        return []
    targets = []
    for option in node.options:
        if option.next:
            targets.append(option.next)
        targets.extend(option.goto_targets())
    return targets


def find_reachable_nodes(graph: DialogueGraph) -> Set[str]:
    """Nodes reachable from start"""
    visited: Set[str] = set()
    to_visit = deque([graph.start])

    while to_visit:
        current = to_visit.popleft()
        if current in visited or current not in graph.nodes:
            continue
        visited.add(current)
        for target in outgoing_targets(graph, current):
            if not is_end_target(target) and target not in visited:
                to_visit.append(target)

    return visited


def has_path_to_end(graph: DialogueGraph) -> bool:
    """Check that at least one choice closes the conversation"""
    for _, option in graph.iter_options():
        if is_end_target(option.next):
            return True
        for result in option.results:
            if result.terminates or (result.is_goto and is_end_target(str(result.value))):
                return True
    return False


def validate_graph(graph: DialogueGraph) -> GraphReport:
    """Validate a graph and collect errors, warnings and statistics"""
    report = GraphReport()

    if graph.start not in graph.nodes:
        report.errors.append(f"Start node '{graph.start}' does not exist")

    for node_id, node in graph.nodes.items():
        if node.id != node_id:
            report.errors.append(f"Node '{node_id}' carries mismatched id '{node.id}'")

        seen_option_ids: Set[str] = set()
        for idx, option in enumerate(node.options, 1):
            where = f"Node '{node_id}', option {idx}"

            if option.id in seen_option_ids:
                report.errors.append(f"{where}: duplicate option id '{option.id}'")
            seen_option_ids.add(option.id)

            if option.next and not is_end_target(option.next) and option.next not in graph.nodes:
                report.errors.append(f"{where}: undefined target node '{option.next}'")

            for result in option.results:
                kind = result.normalized_kind
                if result.is_goto and not is_end_target(str(result.value)) and str(result.value) not in graph.nodes:
                    report.errors.append(f"{where}: goto targets undefined node '{result.value}'")
                elif kind not in KNOWN_RESULT_KINDS:
                    report.warnings.append(f"{where}: unknown result type '{result.kind}'")

            if not option.label.strip():
                report.warnings.append(f"{where}: option has no label")

            if not option.next and not option.goto_targets() and not any(r.terminates for r in option.results):
                report.warnings.append(f"{where}: option has no target and stays on this node")

            leaves = list(iter_leaves(option.requirement))
            for leaf in leaves:
                if not leaf.is_known:
                    report.warnings.append(f"{where}: unknown requirement type '{leaf.kind}' always passes")

            rolled = sum(1 for leaf in leaves if leaf.is_interactive)
            if rolled > 1:
                report.warnings.append(f"{where}: requirement has {rolled} rolled checks but only one is rolled")

            if option.hidden and option.requirement is None:
                report.warnings.append(f"{where}: hidden option has no requirement and is always shown")

    reachable = find_reachable_nodes(graph)
    for node_id in graph.nodes:
        if node_id not in reachable:
            report.warnings.append(f"Node '{node_id}' is unreachable from start")

    if not has_path_to_end(graph) and not any(n.is_terminal() for n in graph.nodes.values()):
        report.warnings.append("No path leads to END - conversation may not be able to terminate")

    report.stats = get_stats(graph, reachable)
    return report


def get_stats(graph: DialogueGraph, reachable: Set[str] = None) -> Dict[str, Any]:
    """Get statistics about a graph"""
    if reachable is None:
        reachable = find_reachable_nodes(graph)
    options = [o for _, o in graph.iter_options()]
    return {
        "nodes": len(graph.nodes),
        "options": len(options),
        "hidden_options": sum(1 for o in options if o.hidden),
        "gated_options": sum(1 for o in options if o.requirement is not None),
        "results": sum(len(o.results) for o in options),
        "terminal_nodes": sum(1 for n in graph.nodes.values() if n.is_terminal()),
        "reachable_nodes": len(reachable),
    }
