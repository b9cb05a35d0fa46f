"""Facade of the edit-session engine used by the UI layer and the CLI.

Every synchronous method mutates the stores atomically.  The async methods
are the only suspension points; while one is in flight for a key
(``("save", root_id)``, ``("attach", parent_id, child_id)``,
``("delete", object_id)``, ``("load", object_id)``), a duplicate call with
the same key is dropped and returns ``None``.

Usage::

    editor = Editor(LocalObjectsBackend(conn))
    await editor.load_object(12)
    editor.update(12, object_name="Renamed")
    result = await editor.save(12)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Union

from objedit.api.schemas import UpsertResponse
from objedit.backends.base import ObjectsBackend
from objedit.editing import layout, selectors
from objedit.editing.compiler import SaveCompiler
from objedit.editing.edited_objects import EditedObjectStore
from objedit.editing.ids import IdentifierAllocator
from objedit.editing.layout import MoveTarget
from objedit.editing.models import FETCH_ERROR_MESSAGE, EditedObject
from objedit.editing.object_store import ObjectStore
from objedit.editing.reset import ResetEngine
from objedit.errors import FetchError, NotFound, ObjectValidationError

logger = logging.getLogger(__name__)


@dataclass
class OperationResult:
    ok: bool
    object_id: int
    error: Optional[str] = None
    # Subobject which failed validation, if not the object itself.
    error_object_id: Optional[int] = None


class Editor:
    def __init__(self, backend: ObjectsBackend, object_store: Optional[ObjectStore] = None) -> None:
        self.backend = backend
        self.object_store = object_store or ObjectStore()
        self.edited_objects = EditedObjectStore(self.object_store, IdentifierAllocator())
        self.compiler = SaveCompiler(self.object_store, self.edited_objects)
        self.reset_engine = ResetEngine(self.object_store, self.edited_objects)
        self._in_flight: set[tuple] = set()

    # ------------------------------------------------------------------
    # Single-flight guard
    # ------------------------------------------------------------------

    def _begin(self, key: tuple) -> bool:
        if key in self._in_flight:
            logger.debug("Dropped duplicate %s while in flight", key)
            return False
        self._in_flight.add(key)
        return True

    def _end(self, key: tuple) -> None:
        self._in_flight.discard(key)

    def is_in_flight(self, key: tuple) -> bool:
        return key in self._in_flight

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def session(self, object_id: int) -> Optional[EditedObject]:
        return self.edited_objects.get(object_id)

    def open_session(self, object_id: int) -> Optional[EditedObject]:
        return self.edited_objects.open_session(object_id)

    def is_modified(self, object_id: int) -> bool:
        return self.edited_objects.is_modified(object_id)

    def update(self, object_id: int, **changes: Any) -> bool:
        return self.edited_objects.update(object_id, **changes)

    def update_tags(
        self,
        object_id: int,
        added: Iterable[Union[int, str]] = (),
        removed: Iterable[Union[int, str]] = (),
    ) -> bool:
        return self.edited_objects.update_tags(object_id, added, removed)

    def reset(self, object_id: int, include_subobjects: bool = False) -> bool:
        return self.reset_engine.reset(object_id, include_subobjects)

    def collect_garbage(self, visible_ids: Iterable[int]) -> list[int]:
        garbage = self.edited_objects.collect_garbage(visible_ids)
        if garbage:
            logger.debug("Collected sessions %s", garbage)
        return garbage

    # ------------------------------------------------------------------
    # Subobjects
    # ------------------------------------------------------------------

    def create_new_subobject_session(self, parent_id: int) -> Optional[int]:
        return self.edited_objects.create_new_subobject_session(parent_id)

    def update_subobject_link(self, parent_id: int, child_id: int, **changes: Any) -> bool:
        return self.edited_objects.update_subobject_link(parent_id, child_id, **changes)

    def move_subobject(self, parent_id: int, child_id: int, target: MoveTarget) -> bool:
        parent = self.edited_objects.get(parent_id)
        if parent is None:
            logger.debug("Move ignored: session %d is not open", parent_id)
            return False
        return layout.move_subobject(parent.composite.subobjects, child_id, target)

    def subobjects_is_published(self, parent_id: int) -> Optional[str]:
        return selectors.subobjects_is_published(self.edited_objects, parent_id)

    def toggle_subobjects_is_published(self, parent_id: int) -> bool:
        """Publish every non-deleted child, or unpublish them all if all are published."""
        state = self.subobjects_is_published(parent_id)
        if state is None:
            return False
        for child_id in selectors.non_deleted_subobject_ids(self.edited_objects, parent_id):
            self.edited_objects.update(child_id, is_published=state != "yes")
        return True

    async def attach_existing_subobject(self, parent_id: int, child_id: int) -> Optional[bool]:
        """Link an existing object to a composite and open its session.

        The child is fetched when it is not loaded yet.  A failed fetch is
        reported on the link's ``fetch_error``; a link removed while the
        fetch was in flight is not restored.
        """
        key = ("attach", parent_id, child_id)
        if not self._begin(key):
            return None
        try:
            if not self.edited_objects.insert_subobject_link(parent_id, child_id):
                return False
            error = None
            if child_id > 0 and child_id not in self.object_store:
                error = await self._fetch_into_store([child_id])
            link = self.edited_objects.subobject_link(parent_id, child_id)
            if link is None:
                logger.debug("Link %d -> %d was removed during fetch", parent_id, child_id)
                return False
            if error is not None or (child_id > 0 and child_id not in self.object_store):
                link.fetch_error = FETCH_ERROR_MESSAGE
                return False
            link.fetch_error = None
            self.edited_objects.open_session(child_id)
            return True
        finally:
            self._end(key)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def _fetch_into_store(self, object_ids: list[int]) -> Optional[str]:
        """Load objects into the Object Store; return an error message on failure."""
        try:
            fetched = await self.backend.fetch_objects(object_ids)
        except FetchError as exc:
            logger.warning("Failed to fetch objects %s: %s", object_ids, exc.message)
            return exc.message or FETCH_ERROR_MESSAGE
        self.object_store.put_many(fetched.objects)
        if fetched.not_found:
            return NotFound().message
        return None

    async def load_object(self, object_id: int) -> Optional[OperationResult]:
        """Open the page of an object: fetch it if needed, open its session and its subobjects."""
        key = ("load", object_id)
        if not self._begin(key):
            return None
        try:
            if object_id > 0 and object_id not in self.object_store:
                error = await self._fetch_into_store([object_id])
                if error is not None or object_id not in self.object_store:
                    return OperationResult(False, object_id, error=error or NotFound().message)
            session = self.edited_objects.open_session(object_id)
            if session is None:
                return OperationResult(False, object_id, error=NotFound().message)
            if session.object_type == "composite":
                await self._load_subobjects(object_id)
            return OperationResult(True, object_id)
        finally:
            self._end(key)

    async def _load_subobjects(self, parent_id: int) -> None:
        parent = self.edited_objects.get(parent_id)
        missing = [i for i in parent.composite.subobjects if i > 0 and i not in self.object_store]
        if missing:
            await self._fetch_into_store(missing)

        parent = self.edited_objects.get(parent_id)
        if parent is None:
            return
        for child_id, link in parent.composite.subobjects.items():
            if child_id <= 0:
                continue
            if child_id in self.object_store:
                link.fetch_error = None
                self.edited_objects.open_session(child_id)
            else:
                link.fetch_error = FETCH_ERROR_MESSAGE

    async def save(self, root_id: int) -> Optional[OperationResult]:
        """Compile and send a save of *root_id* and its direct subobjects.

        On failure the stores are left untouched and the error message is
        put on the root session (and on the failing subobject).
        """
        key = ("save", root_id)
        root = self.edited_objects.get(root_id)
        if root is None:
            logger.debug("Save ignored: session %d is not open", root_id)
            return None
        if not self._begin(key):
            return None
        try:
            try:
                compiled = self.compiler.compile(root_id)
            except ObjectValidationError as exc:
                root.error = exc.message
                failing = self.edited_objects.get(exc.object_id) if exc.object_id is not None else None
                if failing is not None:
                    failing.error = exc.message
                error_object_id = exc.object_id if exc.object_id != root_id else None
                return OperationResult(False, root_id, error=exc.message, error_object_id=error_object_id)

            if compiled.request.is_empty():
                new_root_id = self.compiler.apply(compiled, UpsertResponse())
                return OperationResult(True, new_root_id)

            try:
                response = await self.backend.upsert_objects(compiled.request)
            except FetchError as exc:
                logger.warning("Failed to save object %d: %s", root_id, exc.message)
                root.error = exc.message or "Failed to save object."
                return OperationResult(False, root_id, error=root.error)

            new_root_id = self.compiler.apply(compiled, response)
            logger.info(
                "Saved object %d: %d object(s) upserted, %d link(s) changed, %d deleted",
                new_root_id,
                len(compiled.request.objects),
                len(compiled.request.subobject_links) + len(compiled.request.removed_subobject_links),
                len(response.deleted_object_ids),
            )
            return OperationResult(True, new_root_id)
        finally:
            self._end(key)

    async def delete(self, object_id: int, delete_subobjects: bool = False) -> Optional[OperationResult]:
        """Delete an object from its page.

        Ids reported as not found are treated as deleted.  With
        *delete_subobjects* the direct children of a composite go too.
        """
        key = ("delete", object_id)
        if not self._begin(key):
            return None
        try:
            removed = {object_id}
            if delete_subobjects:
                session = self.edited_objects.get(object_id)
                persisted = self.object_store.get(object_id)
                if session is not None:
                    removed.update(i for i in session.composite.subobjects if i <= 0)
                if persisted is not None:
                    removed.update(persisted.subobject_ids())
            if object_id > 0:
                try:
                    result = await self.backend.delete_objects([object_id], delete_subobjects)
                except FetchError as exc:
                    logger.warning("Failed to delete object %d: %s", object_id, exc.message)
                    session = self.edited_objects.get(object_id)
                    if session is not None:
                        session.error = exc.message
                    return OperationResult(False, object_id, error=exc.message)
                removed.update(result.deleted)
                removed.update(result.not_found)

            self.object_store.remove(removed)
            self.edited_objects.remove(removed)
            logger.info("Deleted object %d (%d object(s) removed)", object_id, len(removed))
            return OperationResult(True, object_id)
        finally:
            self._end(key)
