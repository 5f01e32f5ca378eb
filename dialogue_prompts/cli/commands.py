"""
CLI commands for dialogue prompts
"""

import json
import random
from pathlib import Path
from typing import Optional

import click

from dialogue_prompts.cli.export_cmd import export_to_json, import_from_json
from dialogue_prompts.cli.play_cmd import DialoguePlayer
from dialogue_prompts.cli.validate_cmd import echo_report
from dialogue_prompts.errors import DialogueError, PersistenceError
from dialogue_prompts.graph import operations
from dialogue_prompts.graph.model import DialogueGraph
from dialogue_prompts.graph.validator import get_stats, validate_graph
from dialogue_prompts.host import Actor, DiceRoller, HostContext, MacroRegistry, RelationTable, User
from dialogue_prompts.logger import setup_logging
from dialogue_prompts.requirements.evaluator import describe
from dialogue_prompts.runtime.session import TraversalSession
from dialogue_prompts.settings import Settings, load_settings
from dialogue_prompts.storage.presets import PresetLibrary
from dialogue_prompts.storage.repository import DialogueRepository
from dialogue_prompts.storage.store import FlagStore


class CliState:
    """Objects shared by every command of one invocation"""

    def __init__(self, settings: Settings, store_path: str):
        self.settings = settings
        self.store_path = store_path
        self._store: Optional[FlagStore] = None

    @property
    def store(self) -> FlagStore:
        if self._store is None:
            try:
                self._store = FlagStore(self.store_path)
            except PersistenceError as e:
                _fail(str(e))
        return self._store

    @property
    def repository(self) -> DialogueRepository:
        return DialogueRepository(self.store)

    @property
    def presets(self) -> PresetLibrary:
        return PresetLibrary(self.store)


pass_state = click.make_pass_decorator(CliState)


def _fail(message: str):
    click.echo(f"❌ {message}", err=True)
    click.get_current_context().exit(1)


def _load_existing(state: CliState, npc_id: str) -> DialogueGraph:
    if not state.repository.exists(npc_id):
        _fail(f"No dialogue stored for '{npc_id}'. Create one with: dialogue-prompts new {npc_id}")
    return state.repository.load(npc_id)


def _parse_json_option(raw: Optional[str], name: str):
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint=name)


@click.group()
@click.option('--store', 'store_path', type=click.Path(dir_okay=False), default=None,
              help='Dialogue store JSON file (default from settings)')
@click.option('--settings', 'settings_path', type=click.Path(dir_okay=False), default=None,
              help='Settings JSON file')
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              default=None, help='Logging level')
@click.pass_context
def cli(ctx, store_path, settings_path, log_level):
    """Dialogue Prompts - NPC dialogue authoring and playback"""
    settings = load_settings(settings_path)
    setup_logging(level=log_level or settings.log_level)
    ctx.obj = CliState(settings, store_path or settings.store_path)


@cli.command()
@click.argument('npc_id')
@click.option('--detailed', '-d', is_flag=True, help='Show detailed validation output')
@pass_state
def validate(state, npc_id, detailed):
    """Validate an NPC's dialogue graph"""
    try:
        graph = _load_existing(state, npc_id)
        report = validate_graph(graph)
    except DialogueError as e:
        _fail(f"Error: {e}")
        return

    echo_report(report, npc_id, graph, detailed=detailed)
    if not report.is_valid:
        click.get_current_context().exit(1)


@cli.command()
@click.argument('npc_id')
@pass_state
def stats(state, npc_id):
    """Show statistics for an NPC's dialogue graph"""
    try:
        graph = _load_existing(state, npc_id)
    except DialogueError as e:
        _fail(f"Error: {e}")
        return
    stats = get_stats(graph)

    click.echo(f"\n📊 Statistics for {npc_id}")
    click.echo("=" * 50)

    click.echo("\n📝 Content:")
    click.echo(f"  Nodes:          {stats['nodes']:>6}")
    click.echo(f"  Options:        {stats['options']:>6}")
    click.echo(f"  Hidden options: {stats['hidden_options']:>6}")
    click.echo(f"  Gated options:  {stats['gated_options']:>6}")
    click.echo(f"  Results:        {stats['results']:>6}")

    avg_options = stats['options'] / stats['nodes'] if stats['nodes'] > 0 else 0
    click.echo("\n📈 Averages:")
    click.echo(f"  Options per node: {avg_options:>6.1f}")

    branching = sum(1 for node in graph.nodes.values() if len(node.options) > 1)
    linear = sum(1 for node in graph.nodes.values() if len(node.options) == 1)

    click.echo("\n🌳 Structure:")
    click.echo(f"  Branching nodes: {branching:>6}")
    click.echo(f"  Linear nodes:    {linear:>6}")
    click.echo(f"  Dead ends:       {stats['terminal_nodes']:>6}")
    click.echo(f"  Reachable:       {stats['reachable_nodes']:>6}")
    click.echo()


@cli.command()
@click.argument('npc_id')
@click.argument('node_id')
@pass_state
def show_node(state, npc_id, node_id):
    """Display a specific node of an NPC's dialogue"""
    graph = _load_existing(state, npc_id)

    if node_id not in graph.nodes:
        click.echo(f"❌ Node '{node_id}' not found in {npc_id}", err=True)
        click.echo("\nAvailable nodes:")
        for nid in sorted(graph.nodes.keys())[:20]:
            click.echo(f"  • {nid}")
        if len(graph.nodes) > 20:
            click.echo(f"  ... and {len(graph.nodes) - 20} more")
        click.get_current_context().exit(1)

    node = graph.nodes[node_id]
    marker = " (start)" if node_id == graph.start else ""

    click.echo(f"\n📍 Node: [{node_id}]{marker}")
    click.echo("=" * 50)

    if node.text:
        click.echo("\n💬 Dialogue:")
        click.echo(f"  {node.speaker or 'NPC'}: \"{node.text}\"")

    if node.options:
        click.echo("\n🔀 Options:")
        for option in node.options:
            target = option.next or "(stay)"
            flags = " [hidden]" if option.hidden else ""
            req = describe(option.requirement)
            req_str = f" {{{req}}}" if req else ""
            click.echo(f"  -> {target}: \"{option.label}\"{req_str}{flags}  ({option.id})")
            for result in option.results:
                gate = f" on {result.run_on}" if result.run_on else ""
                click.echo(f"       ⚡ {result.kind} {result.key or ''} {'' if result.value is None else result.value}{gate}")
    click.echo()


@cli.command()
@click.argument('npc_id')
@click.option('--speaker', default=None, help='Speaker of the start node (default: NPC id)')
@click.option('--force', is_flag=True, help='Replace an existing dialogue')
@pass_state
def new(state, npc_id, speaker, force):
    """Create a dialogue holding a single blank start node"""
    repository = state.repository
    if repository.exists(npc_id) and not force:
        _fail(f"'{npc_id}' already has a dialogue (use --force to replace it)")
    try:
        graph = operations.normalize(DialogueGraph(), speaker=speaker or npc_id)
        repository.save(npc_id, graph)
    except DialogueError as e:
        _fail(str(e))
        return
    click.echo(f"✅ Created dialogue for {npc_id} (start: {graph.start})")


@cli.command()
@click.argument('npc_id')
@click.option('--id', 'node_id', default=None, help='Node id (generated when omitted)')
@click.option('--speaker', default='', help='Who speaks the node')
@click.option('--text', default='', help='What they say')
@pass_state
def add_node(state, npc_id, node_id, speaker, text):
    """Add a node to an NPC's dialogue"""
    graph = _load_existing(state, npc_id)
    try:
        new_id = operations.add_node(graph, node_id, speaker=speaker, text=text)
        state.repository.save(npc_id, graph)
    except DialogueError as e:
        _fail(str(e))
        return
    click.echo(f"✅ Added node {new_id}")


@cli.command()
@click.argument('npc_id')
@click.argument('node_id')
@click.option('--label', default='New Option', help='Text of the choice')
@click.option('--next', 'next_node', default='', help='Target node id or END')
@click.option('--hidden', is_flag=True, help='Only show when the passive check succeeds')
@click.option('--requirement', default=None, help='Requirement as JSON')
@click.option('--results', default=None, help='Result list as JSON')
@pass_state
def add_option(state, npc_id, node_id, label, next_node, hidden, requirement, results):
    """Add an option to a node"""
    requirement = _parse_json_option(requirement, '--requirement')
    results = _parse_json_option(results, '--results')
    graph = _load_existing(state, npc_id)
    try:
        option_id = operations.add_option(graph, node_id, label=label)
        fields = {"hidden": hidden}
        if next_node:
            fields["next"] = next_node
        if requirement is not None:
            fields["requirement"] = requirement
        if results is not None:
            fields["results"] = results
        operations.update_option(graph, node_id, option_id, **fields)
        state.repository.save(npc_id, graph)
    except DialogueError as e:
        _fail(str(e))
        return
    click.echo(f"✅ Added option {option_id} to {node_id}")


@cli.command()
@click.argument('npc_id')
@click.argument('old_id')
@click.argument('new_id')
@pass_state
def rename_node(state, npc_id, old_id, new_id):
    """Rename a node and every reference to it"""
    graph = _load_existing(state, npc_id)
    try:
        rewritten = operations.rename_node(graph, old_id, new_id)
        state.repository.save(npc_id, graph)
    except DialogueError as e:
        _fail(str(e))
        return
    click.echo(f"✅ Renamed {old_id} → {new_id} ({rewritten} reference(s) updated)")


@cli.command()
@click.argument('npc_id')
@click.argument('node_id')
@pass_state
def delete_node(state, npc_id, node_id):
    """Delete a node and prune references to it"""
    graph = _load_existing(state, npc_id)
    try:
        pruned = operations.delete_node(graph, node_id)
        state.repository.save(npc_id, graph)
    except DialogueError as e:
        _fail(str(e))
        return
    click.echo(f"✅ Deleted node {node_id} ({pruned} reference(s) pruned)")


@cli.command()
@click.argument('npc_id')
@click.argument('node_id')
@pass_state
def set_start(state, npc_id, node_id):
    """Make a node the entry point"""
    graph = _load_existing(state, npc_id)
    try:
        operations.set_start(graph, node_id)
        state.repository.save(npc_id, graph)
    except DialogueError as e:
        _fail(str(e))
        return
    click.echo(f"✅ Start node is now {node_id}")


@cli.command('export')
@click.argument('npc_id')
@click.option('--output', '-o', type=click.Path(dir_okay=False), default=None, help='Output JSON file')
@click.option('--name', 'npc_name', default=None, help='NPC name recorded in the document')
@pass_state
def export_cmd(state, npc_id, output, npc_name):
    """Export an NPC's dialogue to a JSON document"""
    _load_existing(state, npc_id)
    try:
        export_to_json(state.repository, npc_id, Path(output) if output else None, npc_name)
    except (DialogueError, OSError) as e:
        _fail(f"Error: {e}")


@cli.command('import')
@click.argument('npc_id')
@click.argument('input_path', type=click.Path(exists=True, dir_okay=False))
@pass_state
def import_cmd(state, npc_id, input_path):
    """Import a JSON document as an NPC's dialogue"""
    try:
        import_from_json(state.repository, npc_id, Path(input_path))
    except (DialogueError, OSError) as e:
        _fail(f"Failed to import dialogue: {e}")


@cli.group()
def presets():
    """Manage named dialogue presets"""


@presets.command('list')
@pass_state
def presets_list(state):
    """List saved presets"""
    names = state.presets.list()
    if not names:
        click.echo("No presets saved yet.")
        return
    for name in names:
        click.echo(f"  • {name}")


@presets.command('save')
@click.argument('name')
@click.argument('npc_id')
@pass_state
def presets_save(state, name, npc_id):
    """Save an NPC's dialogue as a preset"""
    graph = _load_existing(state, npc_id)
    try:
        state.presets.save(name, graph)
    except DialogueError as e:
        _fail(str(e))
        return
    click.echo(f"✅ Preset \"{name}\" saved!")


@presets.command('load')
@click.argument('name')
@click.argument('npc_id')
@pass_state
def presets_load(state, name, npc_id):
    """Replace an NPC's dialogue with a preset"""
    try:
        graph = state.presets.load(name)
        state.repository.save(npc_id, graph)
    except DialogueError as e:
        _fail(str(e))
        return
    click.echo(f"✅ Loaded preset \"{name}\" into {npc_id}")


@presets.command('delete')
@click.argument('name')
@pass_state
def presets_delete(state, name):
    """Delete a preset"""
    try:
        state.presets.delete(name)
    except DialogueError as e:
        _fail(str(e))
        return
    click.echo(f"✅ Deleted preset \"{name}\"")


def _read_actor(path: Optional[str]) -> Optional[Actor]:
    if path is None:
        return None
    with open(path, 'r', encoding='utf-8') as f:
        return Actor.from_dict(json.load(f))


@cli.command()
@click.argument('npc_id')
@click.option('--actor', 'actor_path', type=click.Path(exists=True, dir_okay=False), default=None,
              help='Player character sheet (JSON); omit to preview')
@click.option('--npc-sheet', 'npc_path', type=click.Path(exists=True, dir_okay=False), default=None,
              help='NPC sheet (JSON) for items and relations')
@click.option('--gm', is_flag=True, help='Play as the game master')
@click.option('--seed', type=int, default=None, help='Seed the dice for a repeatable run')
@click.option('--save-actor', is_flag=True, help='Write flags and items back to the actor sheet afterwards')
@click.option('--debug', is_flag=True, help='Show node ids')
@pass_state
def play(state, npc_id, actor_path, npc_path, gm, seed, save_actor, debug):
    """Talk to an NPC in the terminal"""
    if not state.settings.enable_prompts:
        _fail("Dialogue prompts are disabled in settings.")

    graph = _load_existing(state, npc_id)
    try:
        actor = _read_actor(actor_path)
        npc = _read_actor(npc_path) or Actor(name=npc_id, actor_type="npc")
    except (OSError, ValueError) as e:
        _fail(f"Could not read sheet: {e}")
        return

    context = HostContext(
        actor=actor,
        npc=npc,
        user=User(is_gm=gm),
        randomizer=DiceRoller(random.Random(seed)),
        relations=RelationTable(),
        macros=MacroRegistry(),
    )
    DialoguePlayer(TraversalSession(graph, context), debug=debug).play()

    if save_actor and actor is not None:
        with open(actor_path, 'w', encoding='utf-8') as f:
            json.dump(actor.to_dict(), f, indent=2, ensure_ascii=False)
        click.echo(f"💾 Saved {actor.name} to {actor_path}")


if __name__ == '__main__':
    cli()
