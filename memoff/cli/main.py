import json
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError

from memoff.core.config import load_config
from memoff.core.errors import MemoffError
from memoff.core.observability import DB_FILENAME, ObservabilityLogger
from memoff.editor.store import read_lines
from memoff.editor.toc import find_heading_unique, list_headings, section_body


# -------------------------
# CLI
# -------------------------


@click.group()
def cli() -> None:
    """memoff CLI.

    Run the MCP server and inspect documents the way the server sees them.
    """


# ---- serve command ----


@cli.command("serve")
@click.option("--libraries", "-l", default=None, help="Comma-separated name:path pairs (v2)")
@click.option("--version", "version", type=click.Choice(["1", "2"]), default=None, help="1 = YAML graph, 2 = libraries")
@click.option("--name", default=None, help="MCP server name")
@click.option("--mem-path", type=click.Path(path_type=Path), default=None, help="YAML graph file (v1)")
@click.option("--log-dir", type=click.Path(path_type=Path), default=None, help="Directory for log files")
@click.option("--config", "config_path", type=click.Path(path_type=Path), default=None, help="memoff.yaml to load")
def serve(
    libraries: Optional[str],
    version: Optional[str],
    name: Optional[str],
    mem_path: Optional[Path],
    log_dir: Optional[Path],
    config_path: Optional[Path],
) -> None:
    """Run the MCP server over stdio."""
    from memoff.mcp.server import serve as run

    overrides = {
        "libraries": libraries,
        "version": int(version) if version else None,
        "name": name,
        "mem_path": mem_path,
        "log_dir": log_dir,
    }
    try:
        config = load_config(config_path, cli_overrides=overrides)
    except (ValidationError, ValueError) as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    if config.version == 2 and not config.libraries:
        raise click.ClickException("No libraries configured. Use --libraries name:path or MEM_LIBRARIES.")

    run(config)


# ---- document commands ----


@cli.command("headings")
@click.argument("file", type=click.Path(path_type=Path))
def headings(file: Path) -> None:
    """Print the heading index of a Markdown file."""
    try:
        lines = read_lines(file)
    except MemoffError as e:
        raise click.ClickException(e.message)
    for h in list_headings(lines):
        click.echo(f"{h.line_number:>5}  {'  ' * (h.level - 1)}{h.text}")


@cli.command("section")
@click.argument("file", type=click.Path(path_type=Path))
@click.argument("heading")
def section(file: Path, heading: str) -> None:
    """Print the body of the section matching HEADING."""
    try:
        lines = read_lines(file)
        entry = find_heading_unique(lines, heading, file)
    except MemoffError as e:
        raise click.ClickException(e.message)
    for line in section_body(lines, list_headings(lines), entry):
        click.echo(line)


# ---- log commands ----


@cli.group()
def log() -> None:
    """Tool-call audit logs."""


@log.command("summary")
@click.option("--log-dir", type=click.Path(path_type=Path), required=True, help="Server log directory")
@click.option("--session", default=None, help="Session ID (defaults to the most recent session)")
def log_summary(log_dir: Path, session: Optional[str]) -> None:
    db = log_dir / DB_FILENAME
    if not db.exists():
        click.echo(f"No {DB_FILENAME} found in {log_dir}.")
        return
    audit = ObservabilityLogger(db)
    summary = audit.get_session_summary(session or audit.latest_session())
    click.echo(json.dumps(summary, indent=2))


@log.command("errors")
@click.option("--log-dir", type=click.Path(path_type=Path), required=True, help="Server log directory")
@click.option("--tool", default=None, help="Only errors of this tool")
@click.option("--limit", default=20, show_default=True, type=int)
def log_errors(log_dir: Path, tool: Optional[str], limit: int) -> None:
    db = log_dir / DB_FILENAME
    if not db.exists():
        click.echo(f"No {DB_FILENAME} found in {log_dir}.")
        return
    for entry in ObservabilityLogger(db).get_errors(tool=tool, limit=limit):
        click.echo(json.dumps({"ts": entry.ts, "session": entry.session, **entry.data}))


if __name__ == "__main__":
    cli()
