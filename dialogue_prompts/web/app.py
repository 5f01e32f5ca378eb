"""
Flask JSON API for Dialogue Prompts - authoring and playback
"""

import random
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from flask import Flask, jsonify, request

from dialogue_prompts.errors import ActivationRejected, DialogueError, DocumentError, GraphEditError, PersistenceError
from dialogue_prompts.graph import operations
from dialogue_prompts.graph.model import DialogueGraph, DialogueNode
from dialogue_prompts.graph.validator import validate_graph
from dialogue_prompts.graph.view import build_graph_view
from dialogue_prompts.host import Actor, DiceRoller, HostContext, MacroRegistry, RelationTable, User
from dialogue_prompts.logger import get_logger
from dialogue_prompts.requirements.evaluator import describe
from dialogue_prompts.runtime.session import TraversalSession
from dialogue_prompts.settings import Settings, load_settings
from dialogue_prompts.storage.documents import export_document, import_document
from dialogue_prompts.storage.presets import PresetLibrary
from dialogue_prompts.storage.repository import DialogueRepository
from dialogue_prompts.storage.store import FlagStore

logger = get_logger(__name__)


def _payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _node_detail(node: DialogueNode, advanced_json: bool) -> Dict[str, Any]:
    """Node with per-option requirement labels; raw JSON only in advanced mode"""
    options = []
    for option in node.options:
        entry = {
            "id": option.id,
            "label": option.label,
            "next": option.next,
            "hidden": option.hidden,
            "reqText": describe(option.requirement) or None,
            "resultCount": len(option.results),
        }
        if advanced_json:
            full = option.to_dict()
            entry["requirement"] = full["requirement"]
            entry["results"] = full["results"]
        options.append(entry)
    return {"id": node.id, "speaker": node.speaker, "text": node.text, "options": options}


def create_app(store_path=None, settings: Optional[Settings] = None):
    """Create and configure the Flask application"""
    app = Flask(__name__)

    if settings is None:
        settings = load_settings()
    if store_path is None:
        store_path = settings.store_path

    app.config["SETTINGS"] = settings
    app.config["STORE_PATH"] = Path(store_path)
    app.config["STORE"] = FlagStore(store_path)
    app.config["SESSIONS"] = {}

    def repository() -> DialogueRepository:
        return DialogueRepository(app.config["STORE"])

    def presets() -> PresetLibrary:
        return PresetLibrary(app.config["STORE"])

    def not_found(message: str):
        return jsonify({"error": message}), 404

    def edit(npc_id: str, change: Callable[[DialogueGraph], Any]):
        """Load, apply an edit, save. Returns (graph, change result) or a 404 response."""
        repo = repository()
        if not repo.exists(npc_id):
            return None, not_found(f"No dialogue for {npc_id}")
        graph = repo.load(npc_id)
        outcome = change(graph)
        repo.save(npc_id, graph)
        return graph, outcome

    @app.errorhandler(GraphEditError)
    @app.errorhandler(DocumentError)
    def bad_request(error):
        return jsonify({"error": str(error)}), 400

    @app.errorhandler(PersistenceError)
    def storage_failed(error):
        logger.error("Store write failed: %s", error)
        return jsonify({"error": str(error)}), 500

    @app.errorhandler(DialogueError)
    def dialogue_error(error):
        return jsonify({"error": str(error)}), 400

    # --- dialogues ---

    @app.route("/api/dialogues")
    def list_dialogues():
        """List NPCs that have a dialogue"""
        return jsonify({"npcs": repository().list_npcs()})

    @app.route("/api/dialogues/<npc_id>", methods=["GET"])
    def get_dialogue(npc_id):
        repo = repository()
        if not repo.exists(npc_id):
            return not_found(f"No dialogue for {npc_id}")
        return jsonify({"npc": npc_id, "dialogue": repo.load(npc_id).to_dict()})

    @app.route("/api/dialogues/<npc_id>", methods=["POST"])
    def create_dialogue(npc_id):
        """Create a dialogue with a single blank start node"""
        repo = repository()
        if repo.exists(npc_id):
            return jsonify({"error": f"{npc_id} already has a dialogue"}), 409
        speaker = _payload().get("speaker") or npc_id
        graph = operations.normalize(DialogueGraph(), speaker=speaker)
        repo.save(npc_id, graph)
        return jsonify({"npc": npc_id, "dialogue": graph.to_dict()}), 201

    @app.route("/api/dialogues/<npc_id>", methods=["PUT"])
    def save_dialogue(npc_id):
        """Replace a whole dialogue; it is normalized and pruned before writing"""
        data = _payload()
        if not isinstance(data.get("dialogue"), dict):
            return jsonify({"error": "No dialogue specified"}), 400
        graph = DialogueGraph.from_dict(data["dialogue"])
        pruned = repository().save(npc_id, graph)
        return jsonify({"success": True, "pruned": pruned, "dialogue": graph.to_dict()})

    @app.route("/api/dialogues/<npc_id>", methods=["DELETE"])
    def delete_dialogue(npc_id):
        if not repository().delete(npc_id):
            return not_found(f"No dialogue for {npc_id}")
        return jsonify({"success": True})

    @app.route("/api/dialogues/<npc_id>/start", methods=["POST"])
    def set_start(npc_id):
        node_id = str(_payload().get("id", ""))
        graph, response = edit(npc_id, lambda g: operations.set_start(g, node_id))
        if graph is None:
            return response
        return jsonify({"start": graph.start})

    # --- nodes ---

    @app.route("/api/dialogues/<npc_id>/nodes", methods=["POST"])
    def add_node(npc_id):
        data = _payload()
        graph, new_id = edit(
            npc_id,
            lambda g: operations.add_node(g, data.get("id"), speaker=data.get("speaker", ""), text=data.get("text", "")),
        )
        if graph is None:
            return new_id
        return jsonify({"id": new_id, "node": graph.nodes[new_id].to_dict()}), 201

    @app.route("/api/dialogues/<npc_id>/nodes/<node_id>", methods=["GET"])
    def get_node(npc_id, node_id):
        repo = repository()
        if not repo.exists(npc_id):
            return not_found(f"No dialogue for {npc_id}")
        node = repo.load(npc_id).get_node(node_id)
        if node is None:
            return not_found(f"Node not found: {node_id}")
        return jsonify(_node_detail(node, app.config["SETTINGS"].advanced_json))

    @app.route("/api/dialogues/<npc_id>/nodes/<node_id>", methods=["PATCH"])
    def update_node(npc_id, node_id):
        data = _payload()
        graph, node = edit(
            npc_id, lambda g: operations.update_node(g, node_id, speaker=data.get("speaker"), text=data.get("text"))
        )
        if graph is None:
            return node
        return jsonify(node.to_dict())

    @app.route("/api/dialogues/<npc_id>/nodes/<node_id>", methods=["DELETE"])
    def delete_node(npc_id, node_id):
        graph, pruned = edit(npc_id, lambda g: operations.delete_node(g, node_id))
        if graph is None:
            return pruned
        return jsonify({"success": True, "pruned": pruned, "start": graph.start})

    @app.route("/api/dialogues/<npc_id>/nodes/<node_id>/rename", methods=["POST"])
    def rename_node(npc_id, node_id):
        new_id = _payload().get("id")
        graph, rewritten = edit(npc_id, lambda g: operations.rename_node(g, node_id, new_id))
        if graph is None:
            return rewritten
        return jsonify({"id": str(new_id).strip(), "rewritten": rewritten, "start": graph.start})

    # --- options ---

    @app.route("/api/dialogues/<npc_id>/nodes/<node_id>/options", methods=["POST"])
    def add_option(npc_id, node_id):
        data = _payload()
        fields = {k: v for k, v in data.items() if k != "label"}

        def change(graph):
            option_id = operations.add_option(graph, node_id, label=data.get("label", "New Option"))
            if fields:
                operations.update_option(graph, node_id, option_id, **fields)
            return option_id

        graph, option_id = edit(npc_id, change)
        if graph is None:
            return option_id
        option = graph.nodes[node_id].get_option(option_id)
        return jsonify({"id": option_id, "option": option.to_dict()}), 201

    @app.route("/api/dialogues/<npc_id>/nodes/<node_id>/options/<option_id>", methods=["PATCH"])
    def update_option(npc_id, node_id, option_id):
        data = _payload()
        graph, option = edit(npc_id, lambda g: operations.update_option(g, node_id, option_id, **data))
        if graph is None:
            return option
        return jsonify(option.to_dict())

    @app.route("/api/dialogues/<npc_id>/nodes/<node_id>/options/<option_id>", methods=["DELETE"])
    def delete_option(npc_id, node_id, option_id):
        graph, response = edit(npc_id, lambda g: operations.delete_option(g, node_id, option_id))
        if graph is None:
            return response
        return jsonify({"success": True})

    # --- analysis ---

    @app.route("/api/dialogues/<npc_id>/graph")
    def graph_view(npc_id):
        repo = repository()
        if not repo.exists(npc_id):
            return not_found(f"No dialogue for {npc_id}")
        return jsonify(build_graph_view(repo.load(npc_id)))

    @app.route("/api/dialogues/<npc_id>/validate")
    def validate(npc_id):
        repo = repository()
        if not repo.exists(npc_id):
            return not_found(f"No dialogue for {npc_id}")
        report = validate_graph(repo.load(npc_id))
        return jsonify({
            "valid": report.is_valid,
            "errors": report.errors,
            "warnings": report.warnings,
            "stats": report.stats,
        })

    @app.route("/api/describe", methods=["POST"])
    def describe_requirement():
        """Display label for a requirement tree"""
        return jsonify({"text": describe(_payload().get("requirement"))})

    # --- documents and presets ---

    @app.route("/api/dialogues/<npc_id>/export")
    def export_dialogue(npc_id):
        repo = repository()
        if not repo.exists(npc_id):
            return not_found(f"No dialogue for {npc_id}")
        name = request.args.get("name") or npc_id
        return jsonify(export_document(repo.load(npc_id), name))

    @app.route("/api/dialogues/<npc_id>/import", methods=["POST"])
    def import_dialogue(npc_id):
        graph = import_document(_payload())
        repository().save(npc_id, graph)
        return jsonify({"success": True, "dialogue": graph.to_dict()})

    @app.route("/api/presets")
    def list_presets():
        return jsonify({"presets": presets().list()})

    @app.route("/api/presets", methods=["POST"])
    def save_preset():
        data = _payload()
        npc_id = str(data.get("npc", ""))
        repo = repository()
        if not repo.exists(npc_id):
            return not_found(f"No dialogue for {npc_id}")
        presets().save(data.get("name"), repo.load(npc_id))
        return jsonify({"success": True}), 201

    @app.route("/api/presets/<name>/load", methods=["POST"])
    def load_preset(name):
        npc_id = str(_payload().get("npc", ""))
        if not npc_id:
            return jsonify({"error": "No NPC specified"}), 400
        graph = presets().load(name)
        repository().save(npc_id, graph)
        return jsonify({"success": True, "dialogue": graph.to_dict()})

    @app.route("/api/presets/<name>", methods=["DELETE"])
    def delete_preset(name):
        presets().delete(name)
        return jsonify({"success": True})

    # --- playback ---

    def session_or_404(session_id: str) -> Optional[TraversalSession]:
        return app.config["SESSIONS"].get(session_id)

    def session_state(session_id: str, session: TraversalSession) -> Dict[str, Any]:
        return {
            "session": session_id,
            "ended": session.ended,
            "history": list(session.history),
            "view": None if session.ended else session.render().to_dict(),
        }

    @app.route("/api/dialogues/<npc_id>/play", methods=["POST"])
    def start_session(npc_id):
        """Open a conversation; body may carry ``actor`` and ``npc`` sheets, ``gm`` and ``seed``"""
        if not app.config["SETTINGS"].enable_prompts:
            return jsonify({"error": "Dialogue prompts are disabled"}), 403
        repo = repository()
        if not repo.exists(npc_id):
            return not_found(f"No dialogue for {npc_id}")

        data = _payload()
        actor = Actor.from_dict(data["actor"]) if isinstance(data.get("actor"), dict) else None
        npc = Actor.from_dict(data["npc"]) if isinstance(data.get("npc"), dict) else Actor(name=npc_id, actor_type="npc")
        context = HostContext(
            actor=actor,
            npc=npc,
            user=User(is_gm=bool(data.get("gm", False))),
            randomizer=DiceRoller(random.Random(data.get("seed"))),
            relations=RelationTable(data.get("relations") or {}),
            macros=MacroRegistry(),
        )
        session_id = uuid.uuid4().hex
        session = TraversalSession(repo.load(npc_id), context)
        app.config["SESSIONS"][session_id] = session
        return jsonify(session_state(session_id, session)), 201

    @app.route("/api/play/<session_id>", methods=["GET"])
    def get_session(session_id):
        session = session_or_404(session_id)
        if session is None:
            return not_found("Session not found")
        return jsonify(session_state(session_id, session))

    @app.route("/api/play/<session_id>/select", methods=["POST"])
    def select_option(session_id):
        session = session_or_404(session_id)
        if session is None:
            return not_found("Session not found")
        option_id = _payload().get("option")
        if option_id is None:
            return jsonify({"error": "No option specified"}), 400

        outcome = session.select(str(option_id))
        body = session_state(session_id, session)
        body["outcome"] = outcome.to_dict()
        if session.context.actor is not None:
            body["actor"] = session.context.actor.to_dict()
        if session.ended:
            app.config["SESSIONS"].pop(session_id, None)
        return jsonify(body), (200 if outcome.accepted else 409)

    @app.route("/api/play/<session_id>", methods=["DELETE"])
    def close_session(session_id):
        session = app.config["SESSIONS"].pop(session_id, None)
        if session is None:
            return not_found("Session not found")
        session.close()
        return jsonify({"success": True})

    @app.errorhandler(ActivationRejected)
    def activation_rejected(error):
        return jsonify({"error": str(error)}), 409

    return app


def main():
    """Run the development server"""
    import argparse

    parser = argparse.ArgumentParser(description="Dialogue Prompts Web API")
    parser.add_argument("--store", "-s", help="Path to the dialogue store JSON file", default=None)
    parser.add_argument("--settings", help="Path to the settings JSON file", default=None)
    parser.add_argument("--port", "-p", help="Port to run on", type=int, default=5000)
    parser.add_argument("--debug", help="Run in debug mode", action="store_true")

    args = parser.parse_args()

    settings = load_settings(args.settings)
    app = create_app(store_path=args.store, settings=settings)

    print(f"\n{'=' * 60}")
    print("🎭 Dialogue Prompts Web API")
    print(f"{'=' * 60}")
    print(f"\n📂 Store: {app.config['STORE_PATH']}")
    print(f"🌐 Server running at: http://localhost:{args.port}")
    print("\nPress Ctrl+C to stop\n")

    app.run(host="0.0.0.0", port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
