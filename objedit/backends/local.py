"""Persistence backend running against a local SQLite connection.

Used by the CLI and by tests: the same DB layer as the HTTP API, without a
server in between.
"""

from __future__ import annotations

import sqlite3
from typing import Iterable

from objedit.api.schemas import DeleteResult, ObjectRecord, ObjectsPage, PageQuery, UpsertRequest, UpsertResponse
from objedit.backends.base import FetchedObjects, ObjectsBackend
from objedit.db import objects as db_objects
from objedit.errors import BadRequest, ServerError


class LocalObjectsBackend(ObjectsBackend):
    """Backend calling :mod:`objedit.db.objects` directly."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    async def fetch_objects(self, object_ids: Iterable[int]) -> FetchedObjects:
        ids = list(object_ids)
        try:
            objects = db_objects.get_objects(self.conn, ids)
        except sqlite3.Error as exc:
            raise ServerError(str(exc)) from exc
        found = {o.object_id for o in objects}
        return FetchedObjects(objects=objects, not_found=[i for i in ids if i not in found])

    async def fetch_page(self, query: PageQuery) -> ObjectsPage:
        try:
            object_ids, total = db_objects.list_object_ids(self.conn, **query.model_dump())
        except ValueError as exc:
            raise BadRequest(str(exc)) from exc
        return ObjectsPage(object_ids=object_ids, total_items=total)

    async def upsert_objects(self, request: UpsertRequest) -> UpsertResponse:
        try:
            saved, id_map = db_objects.bulk_upsert(
                self.conn,
                objects=[o.model_dump() for o in request.objects],
                subobject_links=[link.model_dump() for link in request.subobject_links],
                removed_subobject_links=[ref.model_dump() for ref in request.removed_subobject_links],
                deleted_object_ids=request.deleted_object_ids,
            )
        except ValueError as exc:
            raise BadRequest(str(exc)) from exc
        except sqlite3.Error as exc:
            raise ServerError(str(exc)) from exc
        return UpsertResponse(
            objects=[ObjectRecord.from_persisted(o) for o in saved],
            new_object_ids_map=id_map,
            deleted_object_ids=list(request.deleted_object_ids),
        )

    async def delete_objects(
        self, object_ids: Iterable[int], delete_subobjects: bool = False
    ) -> DeleteResult:
        try:
            deleted, not_found = db_objects.delete_objects(self.conn, object_ids, delete_subobjects)
        except sqlite3.Error as exc:
            raise ServerError(str(exc)) from exc
        return DeleteResult(deleted=deleted, not_found=not_found)
