"""CLI for the corporate-finance knowledge base."""

import json
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from .config import get_config, load_config
from .guide import ArchetypeGuide, build_archetype_guide
from .loader import ArchetypeNotFoundError, KnowledgeBase
from .validator import validate_knowledge_base


console = Console()

data_dir_option = click.option(
    '--data-dir', '-d',
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help='Knowledge base directory (default: bundled data or $KNOWLEDGE_BASE_DIR)'
)
config_option = click.option(
    '--config', '-c', 'config_path',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='YAML configuration file'
)


@click.group()
@click.version_option(version="1.0.0", prog_name="knowledge-base")
def main():
    """Corporate-Finance Knowledge Base.

    Inspect and validate the archetype registry, keyword map,
    deviation registry and worked-problem corpus.
    """
    pass


def _load(data_dir: Optional[Path], config_path: Optional[Path]) -> KnowledgeBase:
    config = load_config(config_path) if config_path else get_config()
    return KnowledgeBase.from_directory(data_dir, config=config)


@main.command()
@data_dir_option
@config_option
def validate(data_dir: Optional[Path], config_path: Optional[Path]):
    """Validate the knowledge base files.

    Example:
        knowledge-base validate --data-dir ./kb
    """
    config = load_config(config_path) if config_path else get_config()
    root = data_dir or config.resolve_data_dir()
    is_valid, issues = validate_knowledge_base(root, config=config)
    if is_valid:
        console.print(f"[green]✓ Knowledge base valid: {root}[/green]")
        sys.exit(0)

    console.print(f"[red]✗ Knowledge base invalid: {root}[/red]")
    for issue in issues:
        console.print(f"  - {issue}")
    sys.exit(1)


@main.command()
@data_dir_option
@config_option
def stats(data_dir: Optional[Path], config_path: Optional[Path]):
    """Show statistics about the knowledge base.

    Example:
        knowledge-base stats
    """
    kb = _load(data_dir, config_path)

    console.print(f"\n[bold blue]Knowledge Base Statistics[/bold blue]")
    table = Table(show_header=True, header_style="bold")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for name, value in kb.stats().items():
        table.add_row(name.replace("_", " ").title(), str(value))
    console.print(table)

    console.print(f"\n[bold]Archetypes[/bold]")
    arch_table = Table(show_header=True, header_style="bold")
    arch_table.add_column("Code", style="cyan")
    arch_table.add_column("Name")
    arch_table.add_column("Tier", justify="right")
    arch_table.add_column("Deviations", justify="right")
    arch_table.add_column("Examples", justify="right")
    for arch in kb.archetypes:
        arch_table.add_row(
            arch.code,
            arch.name,
            str(arch.tier),
            str(len(kb.deviations_for_archetype(arch.code))),
            str(len(kb.problems_for_archetype(arch.code))),
        )
    console.print(arch_table)


@main.command()
@click.argument('archetype')
@click.option(
    '--max-examples', '-n',
    default=3,
    type=int,
    help='Maximum number of worked examples to show'
)
@click.option(
    '--json-output', '-j',
    is_flag=True,
    help='Output raw JSON instead of formatted text'
)
@data_dir_option
@config_option
def guide(
    archetype: str,
    max_examples: int,
    json_output: bool,
    data_dir: Optional[Path],
    config_path: Optional[Path],
):
    """Show the study guide for an archetype.

    Example:
        knowledge-base guide A1
    """
    kb = _load(data_dir, config_path)
    try:
        result = build_archetype_guide(kb, archetype, max_examples=max_examples)
    except ArchetypeNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if json_output:
        click.echo(json.dumps(result.model_dump(mode="json"), indent=2))
        return
    _print_guide(result)


def _print_guide(guide: ArchetypeGuide):
    """Print an archetype guide."""
    console.print(f"\n[bold blue]{guide.code}: {guide.name}[/bold blue]")
    console.print(f"Tier {guide.tier} | {guide.time_allocation_minutes:g} min", end="")
    if guide.point_value:
        console.print(f" | {guide.point_value} points", end="")
    console.print()
    if guide.excel_tab_ref:
        console.print(f"Spreadsheet tab: {guide.excel_tab_ref}")

    console.print(f"\n[bold]Keywords[/bold]")
    for strength, keywords in guide.keywords_by_strength.items():
        label = strength.value.replace("_", " ").title()
        console.print(f"  [cyan]{label}:[/cyan] {', '.join(keywords)}")

    if guide.strong_signals:
        console.print(f"\n[bold]Strong Signals[/bold]")
        for signal in guide.strong_signals:
            console.print(f"  • {' + '.join(signal.keywords)} ({signal.confidence:g}%)")

    if guide.deviations:
        console.print(f"\n[bold]Deviations[/bold]")
        table = Table(show_header=True, header_style="bold")
        table.add_column("Code", style="cyan")
        table.add_column("Name")
        table.add_column("Severity")
        table.add_column("Time (min)", justify="right")
        for dev in guide.deviations:
            table.add_row(dev.code, dev.name, dev.severity.value, f"{dev.time_impact_minutes:g}")
        console.print(table)

    if guide.examples:
        console.print(f"\n[bold]Worked Examples[/bold]")
        for example in guide.examples:
            text = example.problem_text
            if len(text) > 120:
                text = text[:117] + "..."
            console.print(f"  [cyan]{example.id}[/cyan] {text}")


if __name__ == "__main__":
    main()
