"""Reverting edit sessions to their persisted state."""

from __future__ import annotations

import logging
from copy import deepcopy
from dataclasses import fields

from objedit.db.models import CompositeData
from objedit.editing import layout
from objedit.editing.edited_objects import EditedObjectStore
from objedit.editing.models import EditedObject, SubobjectLink
from objedit.editing.object_store import ObjectStore

logger = logging.getLogger(__name__)

_KEPT_ON_RESET = {"object_id", "composite", "error"}


def _revert(session: EditedObject, reference: EditedObject) -> None:
    for f in fields(EditedObject):
        if f.name not in _KEPT_ON_RESET:
            setattr(session, f.name, deepcopy(getattr(reference, f.name)))
    session.composite.display_mode = reference.composite.display_mode
    session.composite.numerate_chapters = reference.composite.numerate_chapters
    session.error = None


class ResetEngine:
    def __init__(self, object_store: ObjectStore, edited_objects: EditedObjectStore) -> None:
        self.object_store = object_store
        self.edited_objects = edited_objects

    def reset(self, object_id: int, include_subobjects: bool = False) -> bool:
        """Revert a session to its persisted copy (or defaults for new objects).

        Without *include_subobjects* the subobject map is left as it is.
        With it, new unmodified children are removed, children with a
        persisted copy are reset one level deep, persisted links are
        restored and the layout is re-densified.
        """
        session = self.edited_objects.get(object_id)
        if session is None:
            logger.debug("Reset ignored: session %d is not open", object_id)
            return False

        _revert(session, self.edited_objects.reference(object_id))
        if include_subobjects:
            self._reset_subobjects(session)
        logger.debug("Reset session %d (include_subobjects=%s)", object_id, include_subobjects)
        return True

    def _reset_subobjects(self, session: EditedObject) -> None:
        subobjects = session.composite.subobjects
        persisted = self.object_store.get(session.object_id) if session.object_id > 0 else None
        persisted_links = (
            {so.subobject_id: so for so in persisted.object_data.subobjects}
            if persisted is not None and isinstance(persisted.object_data, CompositeData)
            else {}
        )

        kept: list[int] = []
        for child_id in list(subobjects):
            if child_id in self.object_store:
                child = self.edited_objects.get(child_id)
                if child is not None:
                    # One level only: the child's own subobjects stay as they are.
                    _revert(child, self.edited_objects.reference(child_id))
                if child_id not in persisted_links:
                    kept.append(child_id)
            elif child_id not in persisted_links:
                if self.edited_objects.is_modified(child_id):
                    kept.append(child_id)
                elif child_id <= 0 and self.edited_objects.parents_of(child_id) == [session.object_id]:
                    self.edited_objects.discard([child_id])

        restored: dict[int, SubobjectLink] = {}
        for child_id, so in persisted_links.items():
            link = SubobjectLink.from_persisted(so)
            if child_id in subobjects:
                link.fetch_error = subobjects[child_id].fetch_error
            restored[child_id] = link
        layout.normalize(restored)
        for child_id in kept:
            link = subobjects[child_id]
            link.column, link.row = layout.end_position(restored)
            link.delete_mode = "none"
            restored[child_id] = link
        session.composite.subobjects = restored
