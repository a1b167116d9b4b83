"""CLI for the Problem Analyzer.

Provides command-line interface for analyzing exam problems against
the corporate-finance knowledge base.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from knowledge_base.loader import load_knowledge_base

from .config import find_config_file, get_config, load_config, save_default_config
from .engine import ProblemAnalysisEngine
from .schema import AnalysisReport, DeviationRanking, DivergenceReport

console = Console()

CONFIDENCE_STYLES = {
    "HIGH": "green",
    "MEDIUM": "yellow",
    "LOW": "dim",
    "NONE": "dim",
}

SEVERITY_STYLES = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "dim",
}


@click.group()
@click.version_option(version="1.0.0", prog_name="problem-analyzer")
def main():
    """Corporate-Finance Problem Analyzer.

    Identifies the archetype of an exam problem, detects deviations from
    the standard approach and finds the closest worked example.
    """
    pass


def _setup(config_path: Optional[Path], data_dir: Optional[Path], verbose: bool) -> ProblemAnalysisEngine:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    config_path = config_path or find_config_file()
    config = load_config(config_path) if config_path else get_config()
    kb = load_knowledge_base(data_dir)
    return ProblemAnalysisEngine(kb, config)


def _read_text(problem_file: Optional[Path], text: Optional[str]) -> str:
    if text:
        return text
    if problem_file:
        return problem_file.read_text(encoding="utf-8")
    raise click.UsageError("Provide a problem FILE or --text")


def common_options(func):
    func = click.option(
        '--verbose', '-v',
        is_flag=True,
        help='Show debug logging'
    )(func)
    func = click.option(
        '--data-dir', '-d',
        type=click.Path(exists=True, file_okay=False, path_type=Path),
        help='Knowledge base directory (default: bundled data)'
    )(func)
    func = click.option(
        '--config', '-c', 'config_path',
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help='YAML configuration file'
    )(func)
    return func


@main.command("analyze")
@click.argument('problem_file', required=False, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--text', '-t', help='Problem text (instead of a file)')
@click.option('--no-calculations', is_flag=True, help='Omit calculation guides')
@click.option('--no-examples', is_flag=True, help='Omit similar worked examples')
@click.option('--no-deviations', is_flag=True, help='Omit deviation detection')
@click.option('--max-examples', '-n', type=int, help='Maximum number of similar examples')
@click.option('--json-output', '-j', is_flag=True, help='Output raw JSON instead of formatted text')
@click.option('--out', '-o', type=click.Path(path_type=Path), help='Output file for JSON results')
@common_options
def analyze_cmd(
    problem_file: Optional[Path],
    text: Optional[str],
    no_calculations: bool,
    no_examples: bool,
    no_deviations: bool,
    max_examples: Optional[int],
    json_output: bool,
    out: Optional[Path],
    config_path: Optional[Path],
    data_dir: Optional[Path],
    verbose: bool,
):
    """Analyze a problem statement.

    Examples:
        problem-analyzer analyze problem.txt
        problem-analyzer analyze --text "The bond has a 5% annual hazard rate..."
        problem-analyzer analyze problem.txt -j -o report.json
    """
    problem_text = _read_text(problem_file, text)
    try:
        engine = _setup(config_path, data_dir, verbose)
        report = engine.analyze(
            problem_text,
            include_calculations=False if no_calculations else None,
            include_examples=False if no_examples else None,
            include_deviations=False if no_deviations else None,
            max_examples=max_examples,
        )

        if json_output:
            output_json(report, out)
        else:
            display_report(report)
            if out:
                output_json(report, out)
                console.print(f"\n[green]Results saved to {out}[/green]")

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@main.command("deviations")
@click.argument('problem_file', required=False, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--text', '-t', help='Problem text (instead of a file)')
@click.option('--archetype', '-a', help='Archetype code used as detection context')
@click.option('--json-output', '-j', is_flag=True, help='Output raw JSON instead of formatted text')
@common_options
def deviations_cmd(
    problem_file: Optional[Path],
    text: Optional[str],
    archetype: Optional[str],
    json_output: bool,
    config_path: Optional[Path],
    data_dir: Optional[Path],
    verbose: bool,
):
    """Detect deviations in a problem statement.

    Example:
        problem-analyzer deviations --text "amortizing debt with equal annual payments" -a A1
    """
    problem_text = _read_text(problem_file, text)
    try:
        engine = _setup(config_path, data_dir, verbose)
        result = engine.detect_deviations(problem_text, archetype)
        if json_output:
            click.echo(json.dumps(result.model_dump(mode="json"), indent=2))
        else:
            display_deviations(result)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@main.command("compare")
@click.argument('problem_id')
@click.option('--threshold', type=float, help='Similarity threshold (default from config)')
@click.option('--json-output', '-j', is_flag=True, help='Output raw JSON instead of formatted text')
@common_options
def compare_cmd(
    problem_id: str,
    threshold: Optional[float],
    json_output: bool,
    config_path: Optional[Path],
    data_dir: Optional[Path],
    verbose: bool,
):
    """Compare a corpus problem against the rest of the corpus.

    Example:
        problem-analyzer compare A1-002 --threshold 0.5
    """
    engine = _setup(config_path, data_dir, verbose)
    target = engine.kb.get_problem(problem_id)
    if target is None:
        console.print(f"[red]Error: Problem {problem_id} not found[/red]")
        sys.exit(1)

    result = engine.compare(target, threshold=threshold)
    if json_output:
        click.echo(json.dumps(result.model_dump(mode="json"), indent=2))
    else:
        display_comparison(result)


@main.command("init-config")
@click.option(
    '--out', '-o',
    type=click.Path(path_type=Path),
    default='analyzer-config.yaml',
    help='Output path for the configuration file'
)
@click.option('--force', '-f', is_flag=True, help='Overwrite existing config file')
def init_config(out: Path, force: bool):
    """Generate a default configuration file.

    Example:
        problem-analyzer init-config --out my-config.yaml
    """
    if out.exists() and not force:
        console.print(f"[red]Error:[/red] Config file already exists: {out}")
        console.print("Use --force to overwrite")
        sys.exit(1)

    save_default_config(out)
    console.print(f"[green]✓[/green] Config file created: {out}")
    console.print("\nEdit this file to customize:")
    console.print("  • detection - Deviation scoring constants")
    console.print("  • similarity - Similarity weights and threshold")
    console.print("  • cache - Result cache size and lifetime")
    console.print("\nThen use with: problem-analyzer analyze --config", str(out))


def output_json(report: AnalysisReport, out: Optional[Path]):
    """Output report as JSON."""
    data = json.dumps(report.model_dump(mode="json"), indent=2)
    if out:
        out.write_text(data, encoding="utf-8")
    else:
        click.echo(data)


def display_report(report: AnalysisReport):
    """Display a formatted analysis report."""
    ranking = report.archetypes

    if ranking.primary is None:
        console.print(Panel(
            ranking.message or "No archetype identified",
            title="[yellow]Archetype: Unknown[/yellow]",
            border_style="yellow",
        ))
    else:
        lines = [f"[bold]{ranking.primary.code}[/bold] {ranking.primary.name} ({ranking.confidence:.0f}%)"]
        if ranking.is_hybrid:
            lines.append(f"Hybrid: {ranking.hybrid_combination}")
            lines.append(f"Sequence: {ranking.solving_sequence}")
        for secondary in ranking.secondary:
            lines.append(f"[dim]Also: {secondary.code} ({secondary.confidence:.0f}%)[/dim]")
        console.print(Panel("\n".join(lines), title="Archetype", border_style="blue"))

    console.print(
        f"Time allocation: [bold]{report.time_allocation_minutes:g} min[/bold]"
        + (f" | Points: {report.estimated_points}" if report.estimated_points else "")
    )

    if report.deviations is not None:
        display_deviation_table(report.deviations.items)

    if report.calculations:
        tree = Tree(f"[bold]Calculations ({report.calculations.archetype})[/bold]")
        steps = tree.add("Steps")
        for step in report.calculations.steps:
            steps.add(step)
        if report.calculations.formulas:
            formulas = tree.add("Formulas")
            for formula in report.calculations.formulas:
                formulas.add(f"[cyan]{formula}[/cyan]")
        console.print(tree)

    workflow = Tree("[bold]Workflow[/bold]")
    for phase in report.suggested_workflow:
        node = workflow.add(f"{phase.label} [dim]({phase.time_budget})[/dim]")
        for item in phase.checklist:
            node.add(item)
    console.print(workflow)

    if report.similar_examples:
        table = Table(title="Similar Examples", show_header=True, header_style="bold")
        table.add_column("ID", style="cyan")
        table.add_column("Similarity", justify="right")
        table.add_column("Why")
        for example in report.similar_examples:
            table.add_row(
                example.problem.id or "-",
                f"{example.similarity:.2f}",
                "; ".join(example.explanation),
            )
        console.print(table)

    if report.comparison is not None:
        display_comparison(report.comparison)


def display_deviation_table(deviations):
    if not deviations:
        console.print("[dim]No deviations detected[/dim]")
        return
    table = Table(title="Deviations", show_header=True, header_style="bold")
    table.add_column("Code", style="cyan")
    table.add_column("Name")
    table.add_column("Score", justify="right")
    table.add_column("Confidence")
    table.add_column("Severity")
    table.add_column("Time (min)", justify="right")
    for dev in deviations:
        conf_style = CONFIDENCE_STYLES.get(dev.confidence.value, "")
        sev_style = SEVERITY_STYLES.get(dev.severity.value, "")
        table.add_row(
            dev.code,
            dev.name,
            f"{dev.score:g}",
            f"[{conf_style}]{dev.confidence.value}[/{conf_style}]",
            f"[{sev_style}]{dev.severity.value}[/{sev_style}]",
            f"{dev.time_impact_minutes:g}",
        )
    console.print(table)


def display_deviations(result: DeviationRanking):
    """Display detected deviations with detection metadata."""
    display_deviation_table(result.deviations)
    meta = result.metadata
    console.print(
        f"[dim]Keywords: {meta.keywords_found} | Patterns: {meta.patterns_matched} | "
        f"Candidates: {meta.candidates_evaluated} | Overall: {meta.overall_confidence.value}[/dim]"
    )
    if meta.error:
        console.print(f"[yellow]{meta.error}[/yellow]")


def display_comparison(result: DivergenceReport):
    """Display the closest comparable and adaptation guidance."""
    if not result.has_comp:
        console.print(
            f"[yellow]No comparable above threshold {result.threshold:g}[/yellow] "
            f"(best score {result.similarity_score:.2f})"
        )
        return

    comp = result.closest_comp
    console.print(Panel(
        f"[bold]{comp.id}[/bold] ({comp.archetype}) similarity {result.similarity_score:.2f}\n"
        f"{result.comp_approach}",
        title="Closest Comparable",
        border_style="green",
    ))

    if not result.adaptation_guidance:
        console.print("[green]No adaptation needed[/green]")
        return

    tree = Tree("[bold]Adaptation Guidance[/bold]")
    for item in result.adaptation_guidance:
        style = SEVERITY_STYLES.get(item.severity.value, "")
        node = tree.add(f"[{style}]{item.title}[/{style}] [dim]({item.type.value})[/dim]")
        for step in item.adaptation_steps:
            node.add(step)
    console.print(tree)


if __name__ == "__main__":
    main()
