"""
CLI entry point for auikit.

This module provides the Typer-based command-line interface for inspecting
and invoking the capabilities of a registry.

Commands:
    list        List registered capabilities
    describe    Show the discovery summary of one capability
    schema      Export the input schemas of all capabilities
    search      Rank capabilities against a free-text query
    run         Execute a capability with JSON input

Registries are referenced as "module:attribute", for example
"myapp.tools:registry". The module is imported, which registers whatever
capabilities it defines.

Architecture Note:
    The CLI is intentionally thin - it parses arguments and delegates to the
    registry and engine. Nothing here is needed to use auikit as a library.
"""

import asyncio
import importlib
import json
import logging
import sys
import traceback
from pathlib import Path
from typing import Annotated, Any, NoReturn, Optional

import typer
from pydantic import BaseModel
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from auikit import __version__
from auikit.context import create_context
from auikit.errors import AuiError
from auikit.registry import CapabilityRegistry
from auikit.schema import load_config

# Initialize Typer app with metadata
app = typer.Typer(
    name="auikit",
    help="Inspect and invoke auikit capabilities.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich console for formatted output
console = Console()

DEFAULT_REGISTRY = "auikit.registry:default_registry"

RegistryOption = Annotated[
    str,
    typer.Option(
        "--registry",
        "-r",
        help="Registry to use, as module:attribute.",
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]auikit[/bold] version {__version__}")
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
        typer.Option(
            "--verbose",
            help="Log engine and middleware activity.",
        ),
    ] = False,
) -> None:
    """
    auikit - Named capabilities for humans, APIs and agents.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


def load_registry(reference: str) -> CapabilityRegistry:
    """
    Import a registry from a "module:attribute" reference.

    Raises:
        typer.BadParameter: If the reference is malformed or doesn't
            point at a CapabilityRegistry
    """
    module_name, sep, attribute = reference.partition(":")
    if not sep or not module_name or not attribute:
        msg = f"Expected module:attribute, got {reference!r}"
        raise typer.BadParameter(msg)

    # Allow registries defined next to the caller
    if "" not in sys.path:
        sys.path.insert(0, "")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        msg = f"Cannot import {module_name}: {e}"
        raise typer.BadParameter(msg) from e

    registry = getattr(module, attribute, None)
    if not isinstance(registry, CapabilityRegistry):
        msg = f"{reference} is not a CapabilityRegistry"
        raise typer.BadParameter(msg)
    return registry


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


@app.command("list")
def list_capabilities(
    registry: RegistryOption = DEFAULT_REGISTRY,
    tag: Annotated[
        Optional[list[str]],
        typer.Option(
            "--tag",
            "-t",
            help="Only show capabilities carrying every given tag.",
        ),
    ] = None,
    category: Annotated[
        Optional[str],
        typer.Option(
            "--category",
            help="Only show capabilities in this category (server, client, hybrid, custom).",
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output discovery summaries as JSON."),
    ] = False,
) -> None:
    """
    List registered capabilities.

    Example:
        $ auikit list --registry myapp.tools:registry --tag weather --category server
    """
    reg = load_registry(registry)
    definitions = reg.find_by_all_tags(tag) if tag else reg.list()
    if category:
        definitions = [d for d in definitions if d.category == category]

    if json_output:
        print(json.dumps([d.summary().to_payload() for d in definitions], indent=2))
        return

    if not definitions:
        console.print("[dim]No capabilities found.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Name", style="cyan")
    table.add_column("Strategy")
    table.add_column("Category")
    table.add_column("Tags")
    table.add_column("Description")

    for definition in definitions:
        table.add_row(
            definition.name,
            definition.strategy.value,
            definition.category.value,
            ", ".join(definition.tags),
            definition.description or "",
        )

    console.print(table)


@app.command()
def describe(
    name: Annotated[str, typer.Argument(help="Capability name.")],
    registry: RegistryOption = DEFAULT_REGISTRY,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output the summary as JSON."),
    ] = False,
) -> None:
    """
    Show the discovery summary of a capability.

    Example:
        $ auikit describe weather --registry myapp.tools:registry
    """
    reg = load_registry(registry)
    try:
        summary = reg.describe(name)
    except AuiError as e:
        _fail(e, json_output)

    if json_output:
        print(json.dumps(summary.to_payload(), indent=2))
        return

    console.print(f"[bold cyan]{summary.name}[/bold cyan]")
    if summary.description:
        console.print(summary.description)
    console.print(f"[dim]Tags: {', '.join(summary.tags) or '-'}[/dim]")
    for label, present in summary.to_payload().items():
        if label.startswith("has"):
            mark = "[green]✓[/green]" if present else "[dim]✗[/dim]"
            console.print(f"  {mark} {label}")


@app.command()
def schema(
    registry: RegistryOption = DEFAULT_REGISTRY,
) -> None:
    """
    Export the input schemas of all capabilities as JSON.

    Example:
        $ auikit schema --registry myapp.tools:registry > tools.json
    """
    reg = load_registry(registry)
    print(json.dumps(reg.export_schema(), indent=2))


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Free-text query.")],
    registry: RegistryOption = DEFAULT_REGISTRY,
) -> None:
    """
    Rank capabilities by how well they match a query.

    Example:
        $ auikit search weather --registry myapp.tools:registry
    """
    reg = load_registry(registry)
    results = reg.search(query)

    if not results:
        console.print(f"[dim]No capabilities match {query!r}.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Name", style="cyan")
    table.add_column("Relevance", justify="right")
    table.add_column("Description")

    for definition, relevance in results:
        table.add_row(definition.name, str(relevance), definition.description or "")

    console.print(table)


@app.command()
def run(
    name: Annotated[str, typer.Argument(help="Capability name.")],
    input_json: Annotated[
        str,
        typer.Option(
            "--input",
            "-i",
            help="Capability input as a JSON document.",
        ),
    ] = "{}",
    registry: RegistryOption = DEFAULT_REGISTRY,
    untrusted: Annotated[
        bool,
        typer.Option(
            "--untrusted",
            help="Invoke as an untrusted origin (uses the client handler).",
        ),
    ] = False,
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to a runtime configuration YAML file.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output the result as JSON."),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Show full tracebacks for handler errors."),
    ] = False,
) -> None:
    """
    Execute a capability.

    Example:
        $ auikit run echo --input '{"message": "hi"}' --registry myapp.tools:registry
    """
    reg = load_registry(registry)

    try:
        payload = json.loads(input_json)
    except json.JSONDecodeError as e:
        msg = f"--input is not valid JSON: {e}"
        raise typer.BadParameter(msg) from e

    try:
        config = load_config(config_path) if config_path else None
        additions: dict[str, Any] = {}
        if untrusted:
            additions["is_trusted_origin"] = False
        context = create_context(config, **additions)
        result = asyncio.run(reg.execute(name, payload, context))
    except AuiError as e:
        _fail(e, json_output)
    except Exception as e:
        if json_output:
            _output_json_error(type(e).__name__, str(e), debug)
        else:
            console.print(f"[red]Capability error: {e}[/red]")
            if debug:
                console.print(f"[dim]{traceback.format_exc()}[/dim]")
        raise typer.Exit(code=1)

    if json_output:
        print(json.dumps({"name": name, "result": _jsonable(result)}, indent=2, default=str))
    else:
        console.print(f"[green]✓[/green] [bold]{name}[/bold]")
        console.print(_jsonable(result))


def _fail(error: AuiError, json_output: bool) -> NoReturn:
    """Report an auikit error and exit with status 1."""
    if json_output:
        print(json.dumps({"error": True, **error.to_dict()}, indent=2, default=str))
    else:
        console.print(f"[red]{error}[/red]")
    raise typer.Exit(code=1)


def _output_json_error(error_type: str, message: str, include_traceback: bool = False) -> None:
    """Output an error in JSON format."""
    output = {
        "error": True,
        "error_type": error_type,
        "message": message,
    }
    if include_traceback:
        output["traceback"] = traceback.format_exc()
    print(json.dumps(output, indent=2))


if __name__ == "__main__":
    app()
