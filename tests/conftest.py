"""Shared fixtures: an in-memory database, objects seeded into it and an editor."""

from __future__ import annotations

import sqlite3
from typing import Any, Callable, Generator

import pytest

from objedit.backends import LocalObjectsBackend
from objedit.db.connection import get_connection
from objedit.db.migrations import init_db
from objedit.db.objects import bulk_upsert
from objedit.editing import Editor

_DATA: dict[str, dict[str, Any]] = {
    "link": {"link": "https://example.com", "show_description_as_link": False},
    "markdown": {"raw_text": "Some text"},
    "to_do_list": {"sort_type": "default", "items": [{"item_text": "First"}]},
    "composite": {"display_mode": "basic", "numerate_chapters": False},
}


def object_payload(object_id: int = 0, object_type: str = "link", name: str = "Object", **extra: Any) -> dict:
    """Plain-dict upserted object as accepted by ``bulk_upsert``."""
    payload = {
        "object_id": object_id,
        "object_type": object_type,
        "object_name": name,
        "object_description": "",
        "is_published": False,
        "show_description": True,
        "display_in_feed": False,
        "feed_timestamp": None,
        "added_tags": [],
        "removed_tag_ids": [],
        "object_data": dict(_DATA[object_type]),
    }
    payload.update(extra)
    return payload


def link_payload(parent_id: int, subobject_id: int, column: int = 0, row: int = 0, **extra: Any) -> dict:
    link = {
        "parent_id": parent_id,
        "subobject_id": subobject_id,
        "column": column,
        "row": row,
        "is_expanded": True,
        "show_description_composite": "inherit",
        "show_description_as_link_composite": "inherit",
    }
    link.update(extra)
    return link


@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    """In-memory connection with the schema initialised."""
    connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture()
def make_object(conn: sqlite3.Connection) -> Callable[..., int]:
    """Insert one object and return its id."""

    def _make(object_type: str = "link", name: str = "Object", **extra: Any) -> int:
        _, id_map = bulk_upsert(conn, [object_payload(0, object_type, name, **extra)])
        return id_map[0]

    return _make


@pytest.fixture()
def make_composite(conn: sqlite3.Connection) -> Callable[..., int]:
    """Insert a composite whose subobjects are laid out as *columns* (lists of ids)."""

    def _make(columns: list[list[int]], name: str = "Composite", **extra: Any) -> int:
        links = [
            link_payload(-1, subobject_id, column, row)
            for column, ids in enumerate(columns)
            for row, subobject_id in enumerate(ids)
        ]
        _, id_map = bulk_upsert(conn, [object_payload(-1, "composite", name, **extra)], links)
        return id_map[-1]

    return _make


@pytest.fixture()
def editor(conn: sqlite3.Connection) -> Editor:
    return Editor(LocalObjectsBackend(conn))
