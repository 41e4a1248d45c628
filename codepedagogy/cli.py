"""
Command line host for codepedagogy.

Usage:
    codepedagogy stages content/stages.json
    codepedagogy validate --criteria criteria.json --output out.txt [--source code.py]
    codepedagogy play content/stages.json --stage 2 --cell-source 1=cell1.py
    codepedagogy play --stage 1 --plain          # default content, plain log lines
    codepedagogy play content/stages.json      # pick a stage interactively
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import questionary
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from codepedagogy.core.config import ValidationConfig, config
from codepedagogy.core.content import get_stage, load_stages
from codepedagogy.core.errors import CodePedagogyError
from codepedagogy.core.types import CellRunResult, Stage, SuccessCriteria, Verdict
from codepedagogy.rich_logger import create_rich_logger
from codepedagogy.utils.logger import create_logger

console = Console()


# ============= Rendering =============


def render_verdict(verdict: Verdict) -> None:
    if verdict.passed:
        console.print(f"[bold green]✓ PASS[/bold green] [dim](strategy: {verdict.strategy})[/dim]")
    else:
        console.print("[bold red]✗ FAIL[/bold red]")
        if verdict.diagnostic is not None:
            console.print(f"  [yellow]{verdict.diagnostic.category.value}[/yellow]: {verdict.diagnostic.message}")
    for error in verdict.configuration_errors:
        console.print(f"  [magenta]config:[/magenta] {error}")

    table = Table(show_header=True, box=None, padding=(0, 2))
    table.add_column("Strategy")
    table.add_column("Status")
    table.add_column("Missing", style="dim")
    for result in verdict.results:
        table.add_row(result.strategy, result.status.value, ", ".join(result.missing))
    if verdict.results:
        console.print(table)


def render_run(result: CellRunResult) -> None:
    if result.feedback is not None:
        console.print(Panel(
            result.feedback.message,
            title=f"[red]{result.feedback.status_text}[/red]",
            border_style="red",
        ))
        for hint in result.feedback.suggested_hints:
            console.print(f"  [cyan]hint:[/cyan] {hint}")


# ============= Stages Command =============


def cmd_stages(path: str) -> int:
    """List stages in a content file."""
    stages = load_stages(path)

    table = Table(title=f"Stages in {path}")
    table.add_column("ID", justify="right")
    table.add_column("Title")
    table.add_column("Mode")
    table.add_column("Cells", justify="right")
    table.add_column("Hints", justify="right")
    for stage in stages:
        table.add_row(
            str(stage.id),
            stage.title,
            stage.mode.value,
            str(len(stage.cells)),
            str(len(stage.hints)),
        )
    console.print(table)
    return 0


# ============= Validate Command =============


def _read_text(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text()


def cmd_validate(
    criteria_path: str,
    output_path: str,
    source_path: str | None,
    abs_tol: float | None,
    rel_tol: float | None,
) -> int:
    """Validate captured output offline. Exit code 0 on pass, 1 on fail."""
    from codepedagogy.core.validator import OutputValidator

    with open(criteria_path) as f:
        criteria = SuccessCriteria.model_validate(json.load(f))

    validation_config = ValidationConfig(
        abs_tol=config.validation.abs_tol if abs_tol is None else abs_tol,
        rel_tol=config.validation.rel_tol if rel_tol is None else rel_tol,
    )
    validator = OutputValidator(validation_config=validation_config)

    output = _read_text(output_path)
    source = _read_text(source_path) if source_path else None
    verdict = validator.validate(output, source, criteria)
    render_verdict(verdict)
    return 0 if verdict.passed else 1


# ============= Play Command =============


def parse_cell_sources(items: list[str] | None) -> dict[int, str]:
    """Parse INDEX=PATH pairs into {index: source}."""
    sources = {}
    for item in items or []:
        index, sep, path = item.partition("=")
        if not sep or not index.strip().isdigit():
            raise argparse.ArgumentTypeError(f"Expected INDEX=PATH, got {item!r}")
        sources[int(index)] = Path(path).read_text()
    return sources


def _pick_stage(stages: list[Stage]) -> Stage | None:
    choice = questionary.select(
        "Which stage?",
        choices=[
            questionary.Choice(f"{stage.id}. {stage.title or '(untitled)'}", value=stage.id)
            for stage in stages
        ],
    ).ask()
    if choice is None:
        return None
    return get_stage(stages, choice)


def session_logger(plain: bool) -> logging.Logger:
    """Plain one-line events for pipes and CI, Rich panels otherwise."""
    if plain:
        return create_logger("codepedagogy.session")
    return create_rich_logger(console=console)


async def play_stage(
    stage: Stage,
    cell_sources: dict[int, str],
    single_source: str | None = None,
    timeout: float | None = None,
    plain: bool = False,
) -> bool:
    """Run every cell of `stage` through a kernel. Returns stage completion."""
    from codepedagogy.core.kernel import KernelInterpreter
    from codepedagogy.core.session import ExerciseSession

    interpreter = await KernelInterpreter.create(timeout=timeout)
    try:
        session = ExerciseSession(interpreter, logger=session_logger(plain))
        session.enter_stage(stage)

        if not stage.is_multi_cell:
            source = single_source if single_source is not None else stage.starter_code
            result = await session.run_single(stage, source)
            render_run(result)
            return result.stage_completed

        completed = False
        for index in stage.cell_indices:
            source = cell_sources.get(index, stage.cell(index).starter_code)
            result = await session.run_cell(stage, index, source)
            render_run(result)
            completed = result.stage_completed
        return completed
    finally:
        await interpreter.shutdown()


def cmd_play(
    path: str,
    stage_id: int | None,
    cell_sources: dict[int, str],
    source_path: str | None,
    timeout: float | None,
    plain: bool = False,
) -> int:
    stages = load_stages(path)
    if stage_id is None:
        stage = _pick_stage(stages)
        if stage is None:
            console.print("[dim]No stage selected[/dim]")
            return 0
    else:
        stage = get_stage(stages, stage_id)

    single_source = Path(source_path).read_text() if source_path else None
    completed = asyncio.run(play_stage(stage, cell_sources, single_source, timeout, plain))
    return 0 if completed else 1


# ============= Parser =============


def build_parser():
    parser = argparse.ArgumentParser(
        prog="codepedagogy",
        description="Run and validate coding lesson stages",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  codepedagogy stages content/stages.json
  codepedagogy validate --criteria c.json --output out.txt --source code.py
  codepedagogy play content/stages.json --stage 2 --cell-source 0=cell0.py
        """
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # stages
    st_parser = subparsers.add_parser("stages", help="List stages in a content file")
    st_parser.add_argument("path", nargs="?", help=f"Stage content JSON (default: {config.stages_path})")

    # validate
    val_parser = subparsers.add_parser("validate", help="Validate captured output")
    val_parser.add_argument("--criteria", required=True, help="Success criteria JSON")
    val_parser.add_argument("--output", required=True, help="Captured output file ('-' for stdin)")
    val_parser.add_argument("--source", help="Submitted source file (for code patterns)")
    val_parser.add_argument("--abs-tol", type=float, help="Absolute numeric tolerance")
    val_parser.add_argument("--rel-tol", type=float, help="Relative numeric tolerance")

    # play
    play_parser = subparsers.add_parser("play", help="Run a stage through the kernel")
    play_parser.add_argument("path", nargs="?", help=f"Stage content JSON (default: {config.stages_path})")
    play_parser.add_argument("--stage", type=int, help="Stage id (prompt if omitted)")
    play_parser.add_argument(
        "--cell-source",
        action="append",
        metavar="INDEX=PATH",
        help="Source file for one cell (default: starter code)",
    )
    play_parser.add_argument("--source", help="Program file for a single-cell stage")
    play_parser.add_argument("--timeout", type=float, help="Per-execution timeout in seconds")
    play_parser.add_argument("--plain", action="store_true", help="Plain log lines instead of Rich panels")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    path = getattr(args, "path", None) or config.stages_path

    try:
        if args.command == "stages":
            return cmd_stages(path)

        elif args.command == "validate":
            return cmd_validate(
                criteria_path=args.criteria,
                output_path=args.output,
                source_path=args.source,
                abs_tol=args.abs_tol,
                rel_tol=args.rel_tol,
            )

        elif args.command == "play":
            try:
                cell_sources = parse_cell_sources(args.cell_source)
            except argparse.ArgumentTypeError as e:
                parser.error(str(e))
            return cmd_play(
                path=path,
                stage_id=args.stage,
                cell_sources=cell_sources,
                source_path=args.source,
                timeout=args.timeout,
                plain=args.plain,
            )
    except (CodePedagogyError, KeyError, ValidationError, OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Error:[/red] {e}")
        return 2

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
