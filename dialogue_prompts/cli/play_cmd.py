"""
Interactive Dialogue Player - talk to an NPC from the terminal
"""

import shutil
import textwrap
from typing import Callable, List

import click

from dialogue_prompts.errors import ActivationRejected
from dialogue_prompts.host import MODULE_ID
from dialogue_prompts.runtime.session import ActivationOutcome, OptionView, TraversalSession


# ANSI color codes for terminal output
class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    ITALIC = "\033[3m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"

    BRIGHT_BLACK = "\033[90m"
    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_BLUE = "\033[94m"
    BRIGHT_MAGENTA = "\033[95m"
    BRIGHT_CYAN = "\033[96m"
    BRIGHT_WHITE = "\033[97m"


class DialoguePlayer:
    """Interactive dialogue player driving a TraversalSession"""

    def __init__(self, session: TraversalSession, read_input: Callable[[str], str] = input, debug: bool = False):
        self.session = session
        self.read_input = read_input
        self.debug = debug
        self.term_width = shutil.get_terminal_size((80, 24)).columns

    def format_dialogue_box(self, text: str, speaker: str, color: str, max_width: int = 60) -> str:
        """Format dialogue text in a box"""
        actual_max = max(20, min(max_width, self.term_width - 8))

        lines = []
        for paragraph in text.split("\n"):
            if paragraph:
                lines.extend(textwrap.wrap(paragraph, width=actual_max))
            else:
                lines.append("")

        box_width = max(len(line) for line in lines) if lines else 20
        box_width = max(box_width, len(speaker) + 2)

        result = [f"\n  {color}╭─ {speaker} {'─' * (box_width - len(speaker) - 1)}╮{Colors.RESET}"]
        for line in lines:
            result.append(f"  {color}│{Colors.RESET} {line.ljust(box_width)} {color}│{Colors.RESET}")
        result.append(f"  {color}╰{'─' * (box_width + 2)}╯{Colors.RESET}")
        return "\n".join(result)

    def play(self):
        """Run the conversation until it ends or the player quits"""
        npc_name = self.session.context.npc.name if self.session.context.npc else "NPC"
        actor = self.session.context.actor

        click.echo(f"\n{Colors.BRIGHT_CYAN}{'=' * 70}{Colors.RESET}")
        click.echo(f"{Colors.BRIGHT_YELLOW}{Colors.BOLD}🎭 TALKING TO {npc_name.upper()}{Colors.RESET}")
        click.echo(f"  {Colors.DIM}as {actor.name if actor else 'Preview'}{Colors.RESET}")
        click.echo(f"{Colors.BRIGHT_CYAN}{'=' * 70}{Colors.RESET}")
        click.echo(f"\n{Colors.BRIGHT_WHITE}Controls:{Colors.RESET}")
        click.echo(f"  {Colors.CYAN}•{Colors.RESET} Enter the number to select a choice")
        click.echo(f"  {Colors.CYAN}•{Colors.RESET} Type {Colors.YELLOW}'quit'{Colors.RESET} to stop")
        click.echo(f"  {Colors.CYAN}•{Colors.RESET} Type {Colors.YELLOW}'state'{Colors.RESET} to see flags and history")

        while not self.session.ended:
            if not self.play_node():
                break

        if self.session.ended:
            click.echo(f"\n{Colors.BRIGHT_CYAN}{'=' * 70}{Colors.RESET}")
            click.echo(f"{Colors.BRIGHT_YELLOW}{Colors.BOLD}🎬 THE END{Colors.RESET}")
            click.echo(f"{Colors.BRIGHT_CYAN}{'=' * 70}{Colors.RESET}")

    def play_node(self) -> bool:
        """Show the current node and handle one choice. False stops the loop."""
        try:
            view = self.session.render()
        except ActivationRejected as e:
            click.echo(f"{Colors.RED}❌ {e}{Colors.RESET}")
            return False

        if self.debug:
            click.echo(f"\n{Colors.DIM}[{view.node.id}]{Colors.RESET}")
        if view.node.text:
            click.echo(self.format_dialogue_box(view.node.text, view.node.speaker or "NPC", Colors.BRIGHT_CYAN))

        if not view.options:
            click.echo(f"\n{Colors.BRIGHT_YELLOW}📍 There is nothing more to say.{Colors.RESET}")
            self.session.close()
            return False

        self.show_options(view.options)

        while True:
            try:
                user_input = self.read_input(f"\n{Colors.BRIGHT_MAGENTA}>{Colors.RESET} ").strip().lower()
            except (EOFError, KeyboardInterrupt):
                click.echo(f"\n{Colors.BRIGHT_YELLOW}👋 Farewell!{Colors.RESET}")
                return False

            if user_input in ("quit", "exit", "q"):
                click.echo("\n👋 Farewell!")
                return False
            if user_input == "state":
                self.show_state()
                continue

            try:
                choice_num = int(user_input)
            except ValueError:
                click.echo(f"{Colors.RED}❌ Please enter a valid number or command.{Colors.RESET}")
                continue
            if not 1 <= choice_num <= len(view.options):
                click.echo(f"{Colors.RED}❌ Invalid choice. Please enter a number from the list.{Colors.RESET}")
                continue

            selected = view.options[choice_num - 1]
            if selected.locked:
                click.echo(f"{Colors.YELLOW}🔒 {selected.lock_reason or 'Locked.'}{Colors.RESET}")
                continue

            click.echo(self.format_dialogue_box(selected.option.label, "You", Colors.BRIGHT_GREEN))
            self.show_outcome(self.session.select(selected.option.id))
            return True

    def show_options(self, options: List[OptionView]):
        click.echo(f"\n{Colors.DIM}{'─' * 50}{Colors.RESET}")
        for i, view in enumerate(options, 1):
            prefix = f"  {Colors.BRIGHT_YELLOW}[{i}]{Colors.RESET}"
            if view.locked:
                reason = f" {Colors.DIM}({view.lock_reason}){Colors.RESET}" if view.lock_reason else ""
                click.echo(f"{prefix} {Colors.BRIGHT_BLACK}🔒 {view.option.label}{Colors.RESET}{reason}")
                continue
            tags = ""
            if view.needs_roll:
                tags += f" {Colors.BRIGHT_BLUE}🎲{Colors.RESET}"
            if view.description:
                tags += f" {Colors.DIM}[{view.description}]{Colors.RESET}"
            click.echo(f"{prefix} {Colors.YELLOW}{view.option.label}{Colors.RESET}{tags}")

    def show_outcome(self, outcome: ActivationOutcome):
        if not outcome.accepted:
            click.echo(f"{Colors.YELLOW}⚠️  {outcome.reason}{Colors.RESET}")
            return
        if outcome.check is not None:
            verdict = f"{Colors.GREEN}success" if outcome.check.passed else f"{Colors.RED}failure"
            click.echo(
                f"  🎲 {outcome.check.formula} = {outcome.check.total} vs DC {outcome.check.dc}: "
                f"{verdict}{Colors.RESET}"
            )
        for message in outcome.messages:
            click.echo(f"  {Colors.CYAN}ℹ {message}{Colors.RESET}")
        for warning in outcome.warnings:
            click.echo(f"  {Colors.YELLOW}⚠️  {warning}{Colors.RESET}")

    def show_state(self):
        """Display the actor's dialogue flags and the path taken so far"""
        actor = self.session.context.actor
        click.echo(f"\n{Colors.BRIGHT_BLUE}{'=' * 50}{Colors.RESET}")
        click.echo(f"{Colors.BRIGHT_BLUE}📊 CURRENT STATE{Colors.RESET}")
        click.echo(f"{Colors.BRIGHT_BLUE}{'=' * 50}{Colors.RESET}")
        click.echo(f"\n🗺️  Path: {' → '.join(self.session.history)}")
        if actor is None:
            click.echo("\n(no actor selected)")
            return
        click.echo("\n🚩 Flags:")
        for scope, values in actor.flags.items():
            for key, value in values.items():
                click.echo(f"  {scope}.{key} = {value}")
        history = actor.get_flag(MODULE_ID, "history") or {}
        if history:
            click.echo(f"\n📜 History: {', '.join(sorted(history))}")
        click.echo("\n🎒 Items:")
        for item in actor.items:
            click.echo(f"  • {item.name}")
