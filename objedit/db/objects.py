"""CRUD operations for the ``objects`` and ``composite_subobjects`` tables."""

from __future__ import annotations

import json
import sqlite3
from time import time
from typing import Any, Iterable, Optional

from objedit.db.models import (
    OBJECT_TYPES,
    CompositeData,
    CompositeSubobject,
    PersistedObject,
    object_data_from_dict,
)
from objedit.db.tags import get_object_tag_ids, update_object_tags

_ATTRIBUTE_COLUMNS = (
    "object_name",
    "object_description",
    "is_published",
    "show_description",
    "display_in_feed",
    "feed_timestamp",
)

_ORDER_BY_COLUMNS = {"object_name", "modified_at", "feed_timestamp"}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _subobjects_of(conn: sqlite3.Connection, object_id: int) -> list[CompositeSubobject]:
    rows = conn.execute(
        """
        SELECT subobject_id, "column", "row", is_expanded,
               show_description_composite, show_description_as_link_composite
        FROM   composite_subobjects
        WHERE  object_id = ?
        ORDER  BY "column", "row"
        """,
        (object_id,),
    ).fetchall()
    return [
        CompositeSubobject(
            subobject_id=r["subobject_id"],
            column=r["column"],
            row=r["row"],
            is_expanded=bool(r["is_expanded"]),
            show_description_composite=r["show_description_composite"],
            show_description_as_link_composite=r["show_description_as_link_composite"],
        )
        for r in rows
    ]


def _row_to_object(conn: sqlite3.Connection, row: sqlite3.Row) -> PersistedObject:
    data = object_data_from_dict(row["object_type"], json.loads(row["object_data"] or "{}"))
    if isinstance(data, CompositeData):
        data.subobjects = _subobjects_of(conn, row["object_id"])
    return PersistedObject(
        object_id=row["object_id"],
        object_type=row["object_type"],
        object_name=row["object_name"],
        object_description=row["object_description"],
        created_at=row["created_at"],
        modified_at=row["modified_at"],
        is_published=bool(row["is_published"]),
        show_description=bool(row["show_description"]),
        display_in_feed=bool(row["display_in_feed"]),
        feed_timestamp=row["feed_timestamp"],
        current_tag_ids=get_object_tag_ids(conn, row["object_id"]),
        object_data=data,
    )


def _storable_data(object_type: str, object_data: dict[str, Any]) -> str:
    """JSON blob for the ``object_data`` column; composite links live in their own table."""
    if object_type not in OBJECT_TYPES:
        raise ValueError(f"Incorrect object_type {object_type!r}")
    data = dict(object_data)
    data.pop("subobjects", None)
    return json.dumps(data)


def _object_exists(conn: sqlite3.Connection, object_id: int) -> Optional[str]:
    """Return the object's type, or ``None`` when it does not exist."""
    row = conn.execute(
        "SELECT object_type FROM objects WHERE object_id = ?", (object_id,)
    ).fetchone()
    return row["object_type"] if row else None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def get_object(conn: sqlite3.Connection, object_id: int) -> Optional[PersistedObject]:
    """Fetch a single object with its data and tags.  Returns ``None`` if not found."""
    row = conn.execute(
        "SELECT * FROM objects WHERE object_id = ?", (object_id,)
    ).fetchone()
    return _row_to_object(conn, row) if row else None


def get_objects(conn: sqlite3.Connection, object_ids: Iterable[int]) -> list[PersistedObject]:
    """Fetch every existing object of *object_ids*, preserving the given order."""
    result: list[PersistedObject] = []
    seen: set[int] = set()
    for object_id in object_ids:
        if object_id in seen:
            continue
        seen.add(object_id)
        obj = get_object(conn, object_id)
        if obj is not None:
            result.append(obj)
    return result


def list_object_ids(
    conn: sqlite3.Connection,
    page: int = 1,
    items_per_page: int = 100,
    order_by: str = "modified_at",
    sort_order: str = "desc",
    filter_text: Optional[str] = None,
    object_types: Optional[list[str]] = None,
    show_only_displayed_in_feed: bool = False,
) -> tuple[list[int], int]:
    """Return one page of object ids and the total number of matching objects."""
    if order_by not in _ORDER_BY_COLUMNS:
        raise ValueError(f"Cannot order by {order_by!r}")
    direction = "ASC" if sort_order == "asc" else "DESC"

    clauses: list[str] = []
    params: list[Any] = []
    if filter_text:
        clauses.append("object_name LIKE ?")
        params.append(f"%{filter_text}%")
    if object_types:
        clauses.append(f"object_type IN ({', '.join('?' for _ in object_types)})")
        params.extend(object_types)
    if show_only_displayed_in_feed:
        clauses.append("display_in_feed = 1")
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    total = conn.execute(f"SELECT COUNT(*) FROM objects {where}", params).fetchone()[0]  # noqa: S608
    rows = conn.execute(
        f"SELECT object_id FROM objects {where} "  # noqa: S608
        f"ORDER BY {order_by} {direction}, object_id {direction} LIMIT ? OFFSET ?",
        params + [items_per_page, (page - 1) * items_per_page],
    ).fetchall()
    return [r["object_id"] for r in rows], total


def bulk_upsert(
    conn: sqlite3.Connection,
    objects: list[dict[str, Any]],
    subobject_links: Optional[list[dict[str, Any]]] = None,
    removed_subobject_links: Optional[list[dict[str, Any]]] = None,
    deleted_object_ids: Optional[list[int]] = None,
) -> tuple[list[PersistedObject], dict[int, int]]:
    """Create / update objects, apply composite layout changes and delete objects.

    Everything runs in a single transaction.  Objects with ``object_id <= 0``
    are created and their temporary ids mapped to the new permanent ones;
    links may reference either kind of id.

    Args:
        conn: Open DB connection.
        objects: Upserted objects as plain dicts (``UpsertedObject.model_dump()``).
        subobject_links: Added or changed composite links.
        removed_subobject_links: ``{"parent_id", "subobject_id"}`` pairs to unlink.
        deleted_object_ids: Existing objects to delete (links cascade).

    Returns:
        ``(saved_objects, new_object_ids_map)`` where ``saved_objects`` holds
        every upserted object and every composite whose layout changed.

    Raises:
        ValueError: If an updated object, a link parent or a link child does
            not exist, or a temporary id is unknown or duplicated.
    """
    now = int(time())
    id_map: dict[int, int] = {}
    touched: list[int] = []
    deleted = set(deleted_object_ids or [])

    def _map(object_id: int) -> int:
        if object_id > 0:
            return object_id
        if object_id in id_map:
            return id_map[object_id]
        raise ValueError(f"Unknown temporary object id: {object_id!r}")

    with conn:
        for obj in objects:
            object_id = obj["object_id"]
            object_type = obj["object_type"]
            data_json = _storable_data(object_type, obj["object_data"])
            values = [obj[c] for c in _ATTRIBUTE_COLUMNS]

            if object_id > 0:
                if _object_exists(conn, object_id) is None:
                    raise ValueError(f"Object not found: {object_id!r}")
                set_clause = ", ".join(f"{c} = ?" for c in _ATTRIBUTE_COLUMNS)
                conn.execute(
                    f"UPDATE objects SET object_type = ?, {set_clause}, "  # noqa: S608
                    "object_data = ?, modified_at = ? WHERE object_id = ?",
                    [object_type, *values, data_json, now, object_id],
                )
                if object_type != "composite":
                    conn.execute(
                        "DELETE FROM composite_subobjects WHERE object_id = ?", (object_id,)
                    )
                saved_id = object_id
            else:
                if object_id in id_map:
                    raise ValueError(f"Duplicate temporary object id: {object_id!r}")
                cursor = conn.execute(
                    f"INSERT INTO objects (object_type, {', '.join(_ATTRIBUTE_COLUMNS)}, "  # noqa: S608
                    "object_data, created_at, modified_at) "
                    f"VALUES ({', '.join('?' for _ in range(len(_ATTRIBUTE_COLUMNS) + 4))})",
                    [object_type, *values, data_json, now, now],
                )
                saved_id = cursor.lastrowid
                id_map[object_id] = saved_id

            update_object_tags(
                conn, saved_id, obj.get("added_tags") or [], obj.get("removed_tag_ids") or []
            )
            touched.append(saved_id)

        changed_parents: list[int] = []
        for ref in removed_subobject_links or []:
            parent_id = _map(ref["parent_id"])
            conn.execute(
                "DELETE FROM composite_subobjects WHERE object_id = ? AND subobject_id = ?",
                (parent_id, _map(ref["subobject_id"])),
            )
            changed_parents.append(parent_id)

        for link in subobject_links or []:
            parent_id, subobject_id = _map(link["parent_id"]), _map(link["subobject_id"])
            if _object_exists(conn, parent_id) != "composite":
                raise ValueError(f"Composite object not found: {parent_id!r}")
            if _object_exists(conn, subobject_id) is None:
                raise ValueError(f"Subobject not found: {subobject_id!r}")
            if parent_id == subobject_id:
                raise ValueError(f"Object {parent_id!r} can't be its own subobject")
            conn.execute(
                """
                INSERT OR REPLACE INTO composite_subobjects
                    (object_id, subobject_id, "column", "row", is_expanded,
                     show_description_composite, show_description_as_link_composite)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    parent_id,
                    subobject_id,
                    link["column"],
                    link["row"],
                    link["is_expanded"],
                    link["show_description_composite"],
                    link["show_description_as_link_composite"],
                ),
            )
            changed_parents.append(parent_id)

        for parent_id in changed_parents:
            if parent_id not in touched and parent_id not in deleted:
                conn.execute(
                    "UPDATE objects SET modified_at = ? WHERE object_id = ?", (now, parent_id)
                )
                touched.append(parent_id)

        for object_id in deleted:
            conn.execute("DELETE FROM objects WHERE object_id = ?", (object_id,))

    saved = get_objects(conn, [i for i in touched if i not in deleted])
    return saved, id_map


def delete_objects(
    conn: sqlite3.Connection,
    object_ids: Iterable[int],
    delete_subobjects: bool = False,
) -> tuple[list[int], list[int]]:
    """Delete objects (their links cascade).

    If *delete_subobjects* is set, direct children of deleted composite
    objects are deleted as well.

    Returns:
        ``(deleted_ids, not_found_ids)``.
    """
    requested = list(dict.fromkeys(object_ids))
    existing = [i for i in requested if _object_exists(conn, i) is not None]
    not_found = [i for i in requested if i not in existing]

    to_delete = list(existing)
    if delete_subobjects:
        for object_id in existing:
            for so in _subobjects_of(conn, object_id):
                if so.subobject_id not in to_delete:
                    to_delete.append(so.subobject_id)

    with conn:
        for object_id in to_delete:
            conn.execute("DELETE FROM objects WHERE object_id = ?", (object_id,))

    return to_delete, not_found
