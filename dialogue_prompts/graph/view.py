"""
Decision-tree view of a dialogue graph for display.

Each option becomes one edge. Effects that leave the conversation (trade,
combat, ending) point at pseudo nodes so the tree shows where they lead.
"""

from collections import deque
from typing import Any, Dict, List, Optional

from dialogue_prompts.graph.model import DialogueGraph, DialogueOption, is_end_target

TRADE_NODE = "__TRADE__"
COMBAT_NODE = "__COMBAT__"
END_PSEUDO_NODE = "__END__"

PSEUDO_NODES = {
    TRADE_NODE: {"id": TRADE_NODE, "type": "action", "label": "Shop"},
    COMBAT_NODE: {"id": COMBAT_NODE, "type": "action", "label": "Fight"},
    END_PSEUDO_NODE: {"id": END_PSEUDO_NODE, "type": "end", "label": "End"},
}


def edge_target(option: DialogueOption) -> Optional[str]:
    """
    Where an option leads in the tree: ``next`` first, else the first goto,
    else the last trade/combat/end effect. END maps to the end pseudo node.
    """
    target = option.next.strip()
    if not target:
        for result in option.results:
            kind = result.normalized_kind
            if kind == "goto" and result.value:
                target = str(result.value)
                break
            if kind == "opentrade":
                target = TRADE_NODE
            elif kind in ("startcombat", "startfight"):
                target = COMBAT_NODE
            elif kind == "ends":
                target = END_PSEUDO_NODE
    if is_end_target(target):
        target = END_PSEUDO_NODE
    return target or None


def build_graph_view(graph: DialogueGraph) -> Dict[str, Any]:
    """
    Build ``{"start", "nodes", "edges"}`` for a graph.

    Nodes carry ``id``, ``label``, ``type`` (start, normal, action, end or
    missing) and ``depth``, the BFS layer from start. Nodes that cannot be
    reached from start are placed one layer below the deepest one.
    """
    edges: List[Dict[str, Any]] = []
    for node_id, node in graph.nodes.items():
        for idx, option in enumerate(node.options, 1):
            target = edge_target(option)
            if target:
                edges.append({
                    "from": node_id,
                    "to": target,
                    "option": option.id,
                    "label": option.label or f"O{idx}",
                })

    node_map: Dict[str, Dict[str, Any]] = {}
    for node_id in graph.nodes:
        node_map[node_id] = {
            "id": node_id,
            "label": node_id,
            "type": "start" if node_id == graph.start else "normal",
        }
    if graph.start not in node_map:
        node_map[graph.start] = {"id": graph.start, "label": graph.start, "type": "start"}

    for edge in edges:
        target = edge["to"]
        if target in node_map:
            continue
        if target in PSEUDO_NODES:
            node_map[target] = dict(PSEUDO_NODES[target])
        else:
            node_map[target] = {"id": target, "label": target, "type": "missing"}

    depths = {graph.start: 0}
    queue = deque([graph.start])
    while queue:
        current = queue.popleft()
        for edge in edges:
            if edge["from"] == current and edge["to"] not in depths:
                depths[edge["to"]] = depths[current] + 1
                queue.append(edge["to"])

    deepest = max(depths.values())
    for node_id, entry in node_map.items():
        entry["depth"] = depths.get(node_id, deepest + 1)

    return {"start": graph.start, "nodes": list(node_map.values()), "edges": edges}
