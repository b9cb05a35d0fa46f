"""Persistence endpoints for objects.

Routes
------
POST   /objects/view                 Fetch objects (attributes, tags & data) by id
POST   /objects/get_page_object_ids  Return one page of object ids
POST   /objects/bulk_upsert          Create / update objects, apply layout changes, delete objects
DELETE /objects                      Delete objects (optionally with their subobjects)
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request

from objedit.api.schemas import (
    DeleteRequest,
    DeleteResult,
    ObjectRecord,
    ObjectsPage,
    PageQuery,
    UpsertRequest,
    UpsertResponse,
    ViewRequest,
    ViewResponse,
)
from objedit.db.objects import bulk_upsert as db_bulk_upsert
from objedit.db.objects import delete_objects, get_objects, list_object_ids

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/view", response_model=ViewResponse)
def view(body: ViewRequest, request: Request) -> ViewResponse:
    """Return every requested object which exists; the rest are listed in ``not_found``."""
    conn = request.app.state.db
    objects = get_objects(conn, body.object_ids)
    found = {o.object_id for o in objects}
    return ViewResponse(
        objects=[ObjectRecord.from_persisted(o) for o in objects],
        not_found=[i for i in body.object_ids if i not in found],
    )


@router.post("/get_page_object_ids", response_model=ObjectsPage)
def get_page_object_ids(body: PageQuery, request: Request) -> ObjectsPage:
    """Return object ids of the requested page and the total number of matches."""
    conn = request.app.state.db
    object_ids, total = list_object_ids(conn, **body.model_dump())
    return ObjectsPage(object_ids=object_ids, total_items=total)


@router.post("/bulk_upsert", response_model=UpsertResponse)
def bulk_upsert(body: UpsertRequest, request: Request) -> UpsertResponse:
    """Apply a compiled save request in a single transaction."""
    conn = request.app.state.db
    try:
        saved, id_map = db_bulk_upsert(
            conn,
            objects=[o.model_dump() for o in body.objects],
            subobject_links=[link.model_dump() for link in body.subobject_links],
            removed_subobject_links=[ref.model_dump() for ref in body.removed_subobject_links],
            deleted_object_ids=body.deleted_object_ids,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    logger.info(
        "Upserted %d object(s), %d new, %d deleted",
        len(body.objects), len(id_map), len(body.deleted_object_ids),
    )
    return UpsertResponse(
        objects=[ObjectRecord.from_persisted(o) for o in saved],
        new_object_ids_map=id_map,
        deleted_object_ids=body.deleted_object_ids,
    )


@router.delete("", response_model=DeleteResult)
def delete(body: DeleteRequest, request: Request) -> DeleteResult:
    """Delete objects; ids which do not exist are reported in ``not_found``."""
    conn = request.app.state.db
    deleted, not_found = delete_objects(conn, body.object_ids, body.delete_subobjects)
    return DeleteResult(deleted=deleted, not_found=not_found)
