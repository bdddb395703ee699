"""betaloom command line: run the proxy, or dry-run a body transformation."""

import asyncio
import json
import sys
from dataclasses import replace

import typer

from .config import DEFAULT_SETTINGS
from .router import build_patterns

app = typer.Typer(help="Anthropic API relay with beta tool use switched on.")

TRANSFORM_ROUTES = ["messages", "count_tokens", "batches"]


@app.command()
def serve(
    host: str = typer.Option(DEFAULT_SETTINGS.host, "--host", help="Interface to listen on"),
    port: int = typer.Option(DEFAULT_SETTINGS.port, "--port", "-p", help="Port to listen on"),
    code_execution: bool = typer.Option(
        DEFAULT_SETTINGS.code_execution,
        "--code-execution/--no-code-execution",
        help="Inject the code execution tool and allow tools to be called from it",
    ),
):
    """Run the proxy server."""
    import uvicorn

    from .app import create_app

    settings = replace(DEFAULT_SETTINGS, host=host, port=port, code_execution=code_execution)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


@app.command()
def transform(
    route: str = typer.Option("messages", "--route", "-r", help="Route whose pattern to apply"),
    pretty: bool = typer.Option(False, "--pretty", help="Pretty-print JSON output"),
    code_execution: bool = typer.Option(
        DEFAULT_SETTINGS.code_execution,
        "--code-execution/--no-code-execution",
        help="Inject the code execution tool and allow tools to be called from it",
    ),
):
    """Read a request body on stdin and print it as it would be sent upstream.

    No network. Useful for checking what a given body turns into.
    """
    if route not in TRANSFORM_ROUTES:
        typer.echo(f"Error: Unknown route '{route}'. Available: {TRANSFORM_ROUTES}", err=True)
        raise typer.Exit(1)

    raw = sys.stdin.read().strip()
    if not raw:
        typer.echo("Error: No input provided on stdin", err=True)
        raise typer.Exit(1)

    try:
        body = json.loads(raw)
    except json.JSONDecodeError as e:
        typer.echo(f"Error: stdin is not valid JSON: {e}", err=True)
        raise typer.Exit(1)

    settings = replace(DEFAULT_SETTINGS, code_execution=code_execution)
    pattern = build_patterns(settings)[route]

    _, transformed = asyncio.run(pattern.request({}, body))

    if pretty:
        typer.echo(json.dumps(transformed, indent=2))
    else:
        typer.echo(json.dumps(transformed))
