"""objedit CLI entry-point for all engine operations.

Usage:
    objedit --help

Sub-command groups:
    db         → database setup
    objects    → list / show / create / delete objects
    composite  → create composites and arrange their subobjects
"""

from __future__ import annotations

from typing import Optional

import typer

from cli.commands.composite import composite_app
from cli.commands.objects import objects_app
from objedit.config import settings
from objedit.db import get_connection, init_db
from objedit.logging_config import configure_logging

app = typer.Typer(
    name="objedit",
    help="Objects edit-session engine CLI.",
    no_args_is_help=True,
)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level (default: LOG_LEVEL or WARNING)."),
) -> None:
    configure_logging(log_level)


# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


app.add_typer(objects_app, name="objects")
app.add_typer(composite_app, name="composite")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
