"""
CLI for a knowledge-node ledger.

Usage:
    nodekeep list --kind concept
    nodekeep create concept "Entropy is a measure of disorder"
    echo "Ada Lovelace" | nodekeep create entity -
    nodekeep archive 1718000000000-k3j9x2a
"""

import atexit
import json
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .backend import ClientBundle, create_client, create_reporter
from .config import get_config_dir, load_or_create_config
from .errors import NodeKeepError, PartialIndexFailure, log_exception
from .logging_config import configure_ops_log, configure_quiet_mode, enable_debug_mode
from .status import StatusEvent, StatusState
from .types import KNOWN_KINDS, STATUSES, NodeRecord
from .views import filter_nodes, node_stats

# Largest content accepted inline or from stdin
MAX_CONTENT_BYTES = 256 * 1024


# Configure quiet mode by default (suppress verbose library output)
# Set NODEKEEP_VERBOSE=1 to enable debug mode via environment
if os.environ.get("NODEKEEP_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"nodekeep {version('nodekeep')}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_config_override: Optional[Path] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _get_json_output() -> bool:
    return _json_output


def _config_dir_callback(value: Optional[Path]):
    global _config_override
    _config_override = value


app = typer.Typer(
    name="nodekeep",
    help="Typed knowledge nodes on a key-value ledger.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
    config_dir: Annotated[Optional[Path], typer.Option(
        "--config-dir", "-c",
        envvar="NODEKEEP_CONFIG_DIR",
        help="Directory holding nodekeep.toml",
        callback=_config_dir_callback,
        is_eager=True,
    )] = None,
):
    """Typed knowledge nodes on a key-value ledger."""


# -----------------------------------------------------------------------------
# Output Formatting
# -----------------------------------------------------------------------------

def _format_date(seconds: int) -> str:
    try:
        return datetime.fromtimestamp(seconds, timezone.utc).strftime("%Y-%m-%d")
    except (OverflowError, OSError, ValueError):
        return str(seconds)


def _format_node_line(node: NodeRecord, id_width: int = 0) -> str:
    line = (
        f"{node.id.ljust(id_width)}  {_format_date(node.created_at)}  "
        f"{node.kind:<8}  {node.status:<8}  {node.owner}"
    )
    if node.relations:
        line += f"  -> {', '.join(node.relations)}"
    return line


def _format_nodes(nodes: list[NodeRecord], as_json: bool = False) -> str:
    if as_json:
        return json.dumps([n.to_dict() for n in nodes], indent=2)
    if not nodes:
        return "No nodes."
    width = max(len(n.id) for n in nodes)
    return "\n".join(_format_node_line(n, width) for n in nodes)


def _format_node(node: NodeRecord, as_json: bool = False) -> str:
    if as_json:
        return json.dumps(node.to_dict(), indent=2)
    lines = [
        "---",
        f"id: {node.id}",
        f"kind: {node.kind}",
        f"status: {node.status}",
        f"owner: {node.owner}",
        f"created: {_format_date(node.created_at)} ({node.created_at})",
    ]
    if node.relations:
        lines.append("relations:")
        lines.extend(f"  - {r}" for r in node.relations)
    lines.append("---")
    lines.append(node.payload)
    return "\n".join(lines)


def _echo_status(event: StatusEvent) -> None:
    """Show pending/success/error lines on stderr (text mode only)."""
    if _get_json_output() or event.state == StatusState.IDLE:
        return
    typer.echo(event.message, err=True)


# -----------------------------------------------------------------------------
# Client setup
# -----------------------------------------------------------------------------

def _get_client(report: bool = False) -> ClientBundle:
    """Load config and build the store, exiting cleanly on errors."""
    config_dir = _config_override or get_config_dir()
    try:
        config = load_or_create_config(config_dir)
        configure_ops_log(config.path)
        reporter = None
        if report:
            reporter = create_reporter(config)
            reporter.subscribe(_echo_status)
        client = create_client(config, reporter=reporter)
    except (OSError, ValueError, RuntimeError) as e:
        log_exception(e, "setup")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    atexit.register(client.store.close)
    return client


def _fail(e: Exception, context: str) -> None:
    log_path = log_exception(e, context)
    typer.echo(f"Error: {e}", err=True)
    if isinstance(e, PartialIndexFailure):
        typer.echo(
            f"Hint: node {e.record.id} exists but is not listed; running create again is safe",
            err=True,
        )
    typer.echo(f"Details: {log_path}", err=True)
    raise typer.Exit(1)


def _read_content(content: str) -> str:
    if content == "-":
        data = sys.stdin.buffer.read(MAX_CONTENT_BYTES + 1)
        try:
            content = data.decode("utf-8")
        except UnicodeDecodeError:
            typer.echo("Error: stdin contains binary data (not valid UTF-8)", err=True)
            raise typer.Exit(1)
    if len(content.encode("utf-8")) > MAX_CONTENT_BYTES:
        typer.echo(f"Error: content too long (max {MAX_CONTENT_BYTES} bytes)", err=True)
        raise typer.Exit(1)
    return content


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

@app.command("list")
def list_nodes(
    kind: Annotated[Optional[str], typer.Option(
        "--kind", "-k",
        help=f"Only nodes of this kind ({', '.join(KNOWN_KINDS)}, or any stored kind)"
    )] = None,
    status: Annotated[Optional[str], typer.Option(
        "--status",
        help=f"Only nodes with this status ({', '.join(STATUSES)})"
    )] = None,
    search: Annotated[str, typer.Option(
        "--search", "-q",
        help="Case-insensitive substring of id or kind"
    )] = "",
):
    """List nodes, newest first."""
    client = _get_client()
    try:
        nodes = client.store.list_nodes()
    except NodeKeepError as e:
        _fail(e, "list")
    nodes = filter_nodes(nodes, search=search, kind=kind, status=status)
    typer.echo(_format_nodes(nodes, as_json=_get_json_output()))


@app.command()
def get(
    node_id: Annotated[str, typer.Argument(help="Node id")],
):
    """Show one node, read directly by key (also works for unindexed nodes)."""
    client = _get_client()
    try:
        node = client.store.get(node_id)
    except (NodeKeepError, ValueError) as e:
        _fail(e, "get")
    if node is None:
        typer.echo(f"Not found: {node_id}", err=True)
        raise typer.Exit(1)
    typer.echo(_format_node(node, as_json=_get_json_output()))


@app.command()
def create(
    kind: Annotated[str, typer.Argument(
        help=f"Node kind ({', '.join(KNOWN_KINDS)})"
    )],
    content: Annotated[str, typer.Argument(
        help="Node content, or '-' to read stdin"
    )],
    relation: Annotated[Optional[list[str]], typer.Option(
        "--relation", "-r",
        help="Id of a related node (repeatable)"
    )] = None,
):
    """Create a node."""
    text = _read_content(content)
    client = _get_client(report=True)
    try:
        node = client.store.create(client.session, kind, text, relations=relation or [])
    except (NodeKeepError, ValueError) as e:
        _fail(e, "create")
    if _get_json_output():
        typer.echo(_format_node(node, as_json=True))
    else:
        typer.echo(node.id)


@app.command()
def archive(
    node_id: Annotated[str, typer.Argument(help="Node id")],
):
    """Archive a node. Archiving twice is harmless."""
    client = _get_client(report=True)
    try:
        node = client.store.archive(client.session, node_id)
    except (NodeKeepError, ValueError) as e:
        _fail(e, "archive")
    if _get_json_output():
        typer.echo(_format_node(node, as_json=True))
    else:
        typer.echo(f"{node.id} {node.status}")


@app.command()
def stats():
    """Node counts by status and kind."""
    client = _get_client()
    try:
        nodes = client.store.list_nodes()
    except NodeKeepError as e:
        _fail(e, "stats")
    result = node_stats(nodes)
    if _get_json_output():
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return
    typer.echo(f"total: {result.total}")
    typer.echo(f"active: {result.active}")
    typer.echo(f"archived: {result.archived}")
    for kind, count in result.by_kind.items():
        typer.echo(f"{kind}: {count}")


@app.command("config")
def show_config():
    """Show the effective configuration (API key hidden)."""
    config_dir = _config_override or get_config_dir()
    try:
        config = load_or_create_config(config_dir)
    except (OSError, ValueError, RuntimeError) as e:
        _fail(e, "config")
    info = {
        "config": str(config.config_path),
        "ledger": {
            "backend": config.ledger.backend,
            "url": config.ledger.url,
            "path": str(config.ledger_path) if config.ledger.backend == "directory" else None,
            "api_key": "set" if config.ledger.api_key else None,
            "timeout": config.ledger.timeout,
        },
        "transform": config.transform.name,
        "address": config.address,
        "read_workers": config.read_workers,
        "strict_index": config.strict_index,
    }
    if _get_json_output():
        typer.echo(json.dumps(info, indent=2))
        return
    typer.echo(f"config: {info['config']}")
    for key, value in info["ledger"].items():
        if value is not None:
            typer.echo(f"ledger.{key}: {value}")
    typer.echo(f"transform: {info['transform']}")
    typer.echo(f"address: {info['address'] or '(not set)'}")
    typer.echo(f"read_workers: {info['read_workers']}")
    typer.echo(f"strict_index: {str(info['strict_index']).lower()}")


def main():
    app()


if __name__ == "__main__":
    main()
