"""
CLI entry point for scopegate.

This module provides the Typer-based command-line interface for scopegate.

Commands:
    check       Check granted permissions against a policy document
    validate    Decode a policy document and report format errors
    show        Print a policy document as a tree

Exit codes for check:
    0   allowed
    1   denied
    2   policy or grants file could not be loaded
"""

import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Any, Optional

import structlog
import typer
from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from scopegate import __version__
from scopegate.codec import load_evaluator, load_permissions, to_document
from scopegate.engine import PolicyEngine
from scopegate.errors import ScopegateError
from scopegate.evaluator import AllEvaluator, AnyEvaluator, Evaluator, PermissionEvaluator


EXIT_ALLOWED = 0
EXIT_DENIED = 1
EXIT_LOAD_ERROR = 2

app = typer.Typer(
    name="scopegate",
    help="Evaluate action + scope permission policies.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console(emoji=False)

PolicyPath = Annotated[
    Path,
    typer.Argument(
        help="Path to the policy document (JSON or YAML).",
        exists=True,
        dir_okay=False,
        readable=True,
        resolve_path=True,
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]scopegate[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Log debug events to stderr."),
    ] = False,
) -> None:
    """
    scopegate - action + scope permission policies.

    Decode policy documents and evaluate them against granted permissions.
    """
    configure_logging(logging.DEBUG if verbose else logging.WARNING)


def configure_logging(level: int) -> None:
    """Send structlog events at or above level to stderr, keeping stdout for output."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=_stderr_logger,
    )


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # looked up per event, not at configure time
    return structlog.PrintLogger(sys.stderr)


def _output_json_error(error: ScopegateError) -> None:
    """Output an error in JSON format."""
    output = {"error": True, **error.to_dict()}
    print(json.dumps(output, indent=2))


def _build_tree(evaluator: Evaluator, tree: Tree) -> None:
    if isinstance(evaluator, PermissionEvaluator):
        scopes = escape(", ".join(str(s) for s in evaluator.scopes)) or "[dim]any scope[/dim]"
        tree.add(f"[cyan]{escape(evaluator.action)}[/cyan] {scopes}")
    elif isinstance(evaluator, (AllEvaluator, AnyEvaluator)):
        label = "all" if isinstance(evaluator, AllEvaluator) else "any"
        branch = tree.add(f"[bold]{label}[/bold]")
        for child in evaluator.children:
            _build_tree(child, branch)


@app.command()
def check(
    policy_path: PolicyPath,
    grants_path: Annotated[
        Path,
        typer.Option(
            "--grants",
            "-g",
            help="Path to the granted permissions (action -> list of scopes).",
            exists=True,
            dir_okay=False,
            readable=True,
            resolve_path=True,
        ),
    ],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output in JSON format."),
    ] = False,
) -> None:
    """
    Check granted permissions against a policy document.

    Example:
        $ scopegate check reports.json --grants grants.yaml
    """
    try:
        evaluator = load_evaluator(policy_path)
        permissions = load_permissions(grants_path)
    except ScopegateError as e:
        if json_output:
            _output_json_error(e)
        else:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=EXIT_LOAD_ERROR)

    decision = PolicyEngine().check(evaluator, permissions)

    if json_output:
        print(json.dumps(decision.model_dump(), indent=2))
    elif decision.allowed:
        console.print(f"[green]✓ allowed[/green] {escape(decision.reason)}")
    else:
        console.print(f"[red]✗ denied[/red] {escape(decision.reason)}")

    raise typer.Exit(code=EXIT_ALLOWED if decision.allowed else EXIT_DENIED)


@app.command()
def validate(
    policy_path: PolicyPath,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output in JSON format."),
    ] = False,
) -> None:
    """Decode a policy document and report whether it is valid."""
    try:
        evaluator = load_evaluator(policy_path)
    except ScopegateError as e:
        if json_output:
            print(json.dumps({"valid": False, **e.to_dict()}, indent=2))
        else:
            console.print(f"[red]Policy validation failed:[/red] {escape(str(e))}")
        raise typer.Exit(code=1)

    if json_output:
        output = {
            "valid": True,
            "policy_path": str(policy_path),
            "policy": to_document(evaluator),
        }
        print(json.dumps(output, indent=2))
    else:
        console.print(f"[green]✓[/green] Policy [cyan]{escape(policy_path.name)}[/cyan] is valid")


@app.command()
def show(policy_path: PolicyPath) -> None:
    """Print a policy document as a tree."""
    try:
        evaluator = load_evaluator(policy_path)
    except ScopegateError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    tree = Tree(f"[bold]{escape(policy_path.name)}[/bold]")
    _build_tree(evaluator, tree)
    console.print(tree)


if __name__ == "__main__":
    app()
