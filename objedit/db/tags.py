"""Operations on the ``tags`` and ``objects_tags`` tables."""

from __future__ import annotations

import sqlite3
from typing import Iterable, Union


def resolve_tag_ids(conn: sqlite3.Connection, tags: Iterable[Union[int, str]]) -> list[int]:
    """Map tag ids and names to ids, creating tags for unknown names.

    Names are matched case-insensitively.  Ids that do not exist are dropped.
    Must be called inside the caller's transaction.
    """
    result: list[int] = []
    for tag in tags:
        if isinstance(tag, int):
            row = conn.execute("SELECT tag_id FROM tags WHERE tag_id = ?", (tag,)).fetchone()
        else:
            name = tag.strip()
            if not name:
                continue
            row = conn.execute("SELECT tag_id FROM tags WHERE tag_name = ?", (name,)).fetchone()
            if row is None:
                cursor = conn.execute("INSERT INTO tags (tag_name) VALUES (?)", (name,))
                row = {"tag_id": cursor.lastrowid}
        if row is not None and row["tag_id"] not in result:
            result.append(row["tag_id"])
    return result


def get_object_tag_ids(conn: sqlite3.Connection, object_id: int) -> list[int]:
    """Return tag ids of *object_id* in ascending order."""
    rows = conn.execute(
        "SELECT tag_id FROM objects_tags WHERE object_id = ? ORDER BY tag_id",
        (object_id,),
    ).fetchall()
    return [r["tag_id"] for r in rows]


def update_object_tags(
    conn: sqlite3.Connection,
    object_id: int,
    added: Iterable[Union[int, str]],
    removed_ids: Iterable[int],
) -> None:
    """Apply tag edits of one object.  Must be called inside a transaction."""
    for tag_id in resolve_tag_ids(conn, added):
        conn.execute(
            "INSERT OR IGNORE INTO objects_tags (object_id, tag_id) VALUES (?, ?)",
            (object_id, tag_id),
        )
    for tag_id in removed_ids:
        conn.execute(
            "DELETE FROM objects_tags WHERE object_id = ? AND tag_id = ?",
            (object_id, tag_id),
        )
