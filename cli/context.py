"""Shared plumbing of the objedit CLI commands.

Every command opens the local database, drives an :class:`Editor` against it
and closes the connection again.
"""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from typing import Any, Awaitable, Iterator, NoReturn

import typer

from objedit.backends import LocalObjectsBackend
from objedit.db import get_connection, init_db
from objedit.editing import Editor
from objedit.editing.models import EditedObject


@contextmanager
def open_editor() -> Iterator[Editor]:
    """Yield an editor backed by the workspace database."""
    conn = get_connection()
    init_db(conn)
    try:
        yield Editor(LocalObjectsBackend(conn))
    finally:
        conn.close()


def run(coro: Awaitable[Any]) -> Any:
    return asyncio.run(coro)


def fail(message: str) -> NoReturn:
    typer.echo(f"❌ {message}")
    raise typer.Exit(code=1)


def load_or_exit(editor: Editor, object_id: int) -> EditedObject:
    """Load an object page or exit with its error."""
    result = run(editor.load_object(object_id))
    if result is None or not result.ok:
        fail(f"Object {object_id}: {result.error if result else 'already loading'}")
    return editor.session(object_id)


def save_or_exit(editor: Editor, object_id: int) -> int:
    """Save an object and return its permanent id, or exit with the save error."""
    result = run(editor.save(object_id))
    if result is None or not result.ok:
        fail(f"Save failed: {result.error if result else 'save already in progress'}")
    return result.object_id
