"""CLI for the Cyber Risk Scorer.

Provides command-line access to question normalization and session
scoring.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .config import ScorerConfig, find_config_file, get_config, load_config
from .engine import ScoringEngine, load_session_file, validate_answers, validate_questions
from .normalizer import load_question_file
from .question_bank import QuestionBank
from .schema import Report

console = Console()

PRIORITY_COLORS = {
    "critical": "red",
    "important": "yellow",
    "suggested": "cyan",
}


def configure_logging(verbose: bool) -> None:
    """Route library logging through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def resolve_config(config_path: Optional[str]) -> ScorerConfig:
    """Load an explicit config file, a discovered one, or the defaults."""
    if config_path:
        return load_config(Path(config_path))
    found = find_config_file()
    if found:
        return load_config(found)
    return get_config()


@click.group()
@click.version_option(version="1.0.0", prog_name="risk-scorer")
def main():
    """Cyber Risk Scorer.

    Normalizes generated assessment questions and scores completed
    sessions into a risk report with recommendations.
    """
    pass


@main.command("normalize")
@click.option(
    "--questions", "-q",
    required=True,
    type=click.Path(exists=True),
    help="Path to question payload JSON (generator output)"
)
@click.option(
    "--out", "-o",
    type=click.Path(),
    help="Output file for the canonical questions (default: stdout)"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Log every default substitution"
)
def normalize_cmd(questions: str, out: Optional[str], verbose: bool):
    """Normalize question patterns into canonical form.

    Examples:
        risk-scorer normalize -q generated.json
        risk-scorer normalize -q generated.json -o canonical.json
    """
    configure_logging(verbose)
    try:
        bank = QuestionBank()
        count = bank.upsert(load_question_file(questions))
        json_str = json.dumps(bank.to_payload(), indent=2, ensure_ascii=False)

        if out:
            with open(out, "w", encoding="utf-8") as f:
                f.write(json_str)
            console.print(f"[green]✓ Normalized {count} questions to {out}[/green]")
        else:
            print(json_str)

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@main.command("score")
@click.option(
    "--questions", "-q",
    required=True,
    type=click.Path(exists=True),
    help="Path to question payload JSON"
)
@click.option(
    "--answers", "-a",
    required=True,
    type=click.Path(exists=True),
    help="Path to the session's answers JSON"
)
@click.option(
    "--session", "-s",
    "session_id",
    help="Session identifier (overrides the one in the answers file)"
)
@click.option(
    "--config", "-c",
    "config_path",
    type=click.Path(exists=True),
    help="Path to scorer configuration YAML"
)
@click.option(
    "--out", "-o",
    type=click.Path(),
    help="Output file for JSON report"
)
@click.option(
    "--json-output", "-j",
    is_flag=True,
    help="Output raw JSON instead of formatted text"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Show detailed output"
)
def score_cmd(
    questions: str,
    answers: str,
    session_id: Optional[str],
    config_path: Optional[str],
    out: Optional[str],
    json_output: bool,
    verbose: bool,
):
    """Score a completed session.

    Examples:
        risk-scorer score -q questions.json -a answers.json
        risk-scorer score -q questions.json -a answers.json -s 42 -j
    """
    configure_logging(verbose)
    try:
        engine = ScoringEngine(resolve_config(config_path))
        engine.load_questions(questions)
        session = load_session_file(answers)
        report = engine.score_session(session, session_id=session_id)

        if json_output:
            output_json(report, out)
        else:
            display_report(report, verbose)
            if out:
                output_json(report, out)
                console.print(f"\n[green]Report saved to {out}[/green]")

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@main.command("validate")
@click.option(
    "--questions", "-q",
    type=click.Path(),
    help="Path to question payload JSON"
)
@click.option(
    "--answers", "-a",
    type=click.Path(),
    help="Path to answers JSON"
)
def validate_cmd(questions: Optional[str], answers: Optional[str]):
    """Validate question and/or answer files.

    When both are given, answers are checked against the questions.

    Examples:
        risk-scorer validate -q questions.json
        risk-scorer validate -q questions.json -a answers.json
    """
    if not questions and not answers:
        console.print("[yellow]Please specify --questions and/or --answers to validate[/yellow]")
        return

    all_valid = True

    if questions:
        is_valid, issues = validate_questions(questions)
        all_valid = report_validation("Questions", questions, is_valid, issues) and all_valid

    if answers:
        is_valid, issues = validate_answers(answers, questions)
        all_valid = report_validation("Answers", answers, is_valid, issues) and all_valid

    sys.exit(0 if all_valid else 1)


def report_validation(label: str, path: str, is_valid: bool, issues: list[str]) -> bool:
    """Print one validation outcome."""
    if is_valid:
        console.print(f"[green]✓ {label} valid: {path}[/green]")
    else:
        console.print(f"[red]✗ {label} invalid: {path}[/red]")
        for issue in issues:
            console.print(f"  - {issue}")
    return is_valid


def display_report(report: Report, verbose: bool):
    """Display a report in formatted text."""
    confidence_color = "green" if report.confidence >= 70 else "yellow" if report.confidence >= 50 else "red"

    console.print(Panel(
        f"[bold]Session {report.session_id or '-'}[/bold]\n\n"
        f"Overall Score: [bold cyan]{report.overall_score}%[/bold cyan]\n"
        f"Confidence: [{confidence_color}]{report.confidence}%[/{confidence_color}]\n\n"
        f"{report.executive_summary}",
        title="Risk Report",
    ))

    table = Table(show_header=True, header_style="bold")
    table.add_column("Category")
    table.add_column("Score", justify="right")
    table.add_column("Answered", justify="right")
    for category, value in report.category_scores.items():
        table.add_row(category, f"{value:.2f}", str(report.answered_counts.get(category, 0)))
    console.print(table)

    if report.recommendations:
        console.print("\n[bold]Recommendations:[/bold]")
        for rec in report.recommendations:
            color = PRIORITY_COLORS.get(rec.priority.value, "white")
            console.print(f"  [{color}]{rec.priority.value}[/{color}] {rec.text}")

    if report.strengths:
        console.print("\n[bold]Strengths:[/bold]")
        for strength in report.strengths:
            console.print(f"  [green]•[/green] {strength}")

    if verbose:
        if report.risk_tag_tallies:
            console.print("\n[bold]Risk Tags:[/bold]")
            for tag, count in report.risk_tag_tallies.items():
                console.print(f"  • {tag}: {count}")
        console.print(f"\n[dim]Coverage: {report.coverage:.2f} | Variance: {report.variance:.2f}[/dim]")
        if report.rationale:
            console.print("\n[bold]Rationale:[/bold]")
            for entry in report.rationale:
                console.print(f"  • {entry.question_text}")
                console.print(f"    [dim]{entry.note}[/dim]")


def output_json(report: Report, out_path: Optional[str]):
    """Output report as JSON."""
    json_str = report.model_dump_json(indent=2)

    if out_path:
        with open(out_path, "w", encoding="utf-8") as f:
            f.write(json_str)
    else:
        print(json_str)


@main.command("init-config")
@click.option(
    "--out", "-o",
    type=click.Path(),
    default="risk-scorer-config.yaml",
    help="Output path for the configuration file"
)
@click.option(
    "--force", "-f",
    is_flag=True,
    help="Overwrite existing config file"
)
def init_config_cmd(out: str, force: bool):
    """Generate a default scorer configuration file.

    Example:
        risk-scorer init-config --out my-config.yaml
    """
    from .config import CONFIG_ENV_VAR, config_search_paths, save_default_config

    out_path = Path(out)
    if out_path.exists() and not force:
        console.print(f"[red]Error:[/red] Config file already exists: {out}")
        console.print("Use --force to overwrite")
        sys.exit(1)

    try:
        save_default_config(out_path)
        console.print(f"[green]✓[/green] Config file created: {out}")
        console.print("\nThis file configures:")
        console.print("  • scoring_policy - Baseline, critical multiplier and damping")
        console.print("  • confidence_policy - How coverage and variance shape confidence")
        console.print("\nThe scorer will look for config in this order:")
        console.print(f"  1. {CONFIG_ENV_VAR} environment variable")
        for position, location in enumerate(config_search_paths(), start=2):
            console.print(f"  {position}. {location}")
    except Exception as e:
        console.print(f"[red]Error creating config:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
