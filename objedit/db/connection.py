"""SQLite connection factory for the objects database.

Usage::

    from objedit.db.connection import get_connection

    conn = get_connection()
    init_db(conn)
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional

from objedit.config import settings


def get_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Open and configure a SQLite connection.

    Foreign keys are switched on for every connection: rows of
    ``composite_subobjects`` and ``objects_tags`` reference ``objects`` with
    ``ON DELETE CASCADE``, and deleting an object relies on SQLite to drop
    every composite link and tag assignment pointing at it.  WAL journal
    mode lets the API server and the CLI read the same file concurrently.

    Args:
        db_path: Override the DB path.  Defaults to ``settings.db_path``.

    Returns:
        A connection whose ``row_factory`` is :class:`sqlite3.Row`.
    """
    path = db_path or settings.db_path

    # No workspace directory for `:memory:`
    if str(path) != ":memory:":
        settings.ensure_workspace()

    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row

    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")

    return conn
