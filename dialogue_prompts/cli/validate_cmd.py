"""
Terminal reporting for graph validation
"""

from typing import List

import click

from dialogue_prompts.graph.model import DialogueGraph
from dialogue_prompts.graph.validator import GraphReport


# ANSI color codes for terminal output
class Colors:
    RED = "\033[91m"
    YELLOW = "\033[93m"
    GREEN = "\033[92m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    RESET = "\033[0m"


def _section(title: str, items: List[str], color: str, err: bool = False):
    click.echo(f"\n{color}{title}{Colors.RESET}")
    for item in items:
        click.echo(f"  • {item}", err=err)


def echo_report(report: GraphReport, name: str, graph: DialogueGraph, detailed: bool = False):
    """Print a validation report the way ``validate`` shows it"""
    stats = report.stats

    click.echo(f"\n📄 Dialogue: {name}")
    click.echo("-" * 40)
    click.echo(f"Start: {graph.start}")
    click.echo(f"Nodes: {stats['nodes']}")
    click.echo(f"Options: {stats['options']}")
    click.echo(f"Gated options: {stats['gated_options']}")
    click.echo(f"Results: {stats['results']}")

    if detailed:
        click.echo(f"\n{Colors.BOLD}📊 Detailed Analysis:{Colors.RESET}")
        click.echo("-" * 40)
        for node_id, node in graph.nodes.items():
            marker = " (start)" if node_id == graph.start else ""
            click.echo(f"  [{node_id}]{marker} - {len(node.options)} options")

    if report.errors:
        _section("❌ Errors:", report.errors, Colors.RED, err=True)
    if report.warnings:
        _section("⚠️  Warnings:", report.warnings, Colors.YELLOW)

    if report.is_valid:
        click.echo(f"\n{Colors.GREEN}✅ Validation passed!{Colors.RESET}")
    else:
        click.echo(f"\n{Colors.RED}❌ Validation failed!{Colors.RESET}", err=True)
