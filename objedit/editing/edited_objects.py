"""Edit sessions: one mutable :class:`EditedObject` per open object id.

Sessions and links reference each other by id only.  A composite's
``subobjects`` map is keyed by child id and the child's own session lives in
the same flat store, so one child can be linked from several composites.
"""

from __future__ import annotations

import logging
from copy import deepcopy
from dataclasses import asdict, fields
from typing import Any, Iterable, Optional, Union

from objedit.db.models import OBJECT_TYPES, ToDoListItem
from objedit.editing import layout
from objedit.editing.ids import NEW_OBJECT_ID, IdentifierAllocator
from objedit.editing.models import (
    DELETE_MODES,
    TRI_STATES,
    EditedObject,
    SubobjectLink,
    edited_from_persisted,
    new_edited_object,
)
from objedit.editing.object_store import ObjectStore

logger = logging.getLogger(__name__)

_DATA_BLOCKS = ("link", "markdown", "to_do_list", "composite")
_UPDATABLE = {f.name for f in fields(EditedObject)} - {"object_id", "created_at", "modified_at"}
_LINK_FIELDS = {
    "is_expanded",
    "delete_mode",
    "show_description_composite",
    "show_description_as_link_composite",
    "fetch_error",
}
_COMPARED_ATTRIBUTES = (
    "object_type",
    "object_name",
    "object_description",
    "is_published",
    "show_description",
    "display_in_feed",
    "feed_timestamp",
)


def comparable_state(obj: EditedObject, include_subobjects: bool = True) -> dict[str, Any]:
    """Fields of *obj* which decide whether it is modified.

    Only the active data block is included.  Composite links are compared by
    display order and metadata, so gaps in stored positions do not count.
    """
    state: dict[str, Any] = {name: getattr(obj, name) for name in _COMPARED_ATTRIBUTES}
    state["current_tag_ids"] = sorted(obj.current_tag_ids)
    state["added_tags"] = list(obj.added_tags)
    state["removed_tag_ids"] = sorted(obj.removed_tag_ids)
    if obj.object_type == "composite":
        state["data"] = (obj.composite.display_mode, obj.composite.numerate_chapters)
        if include_subobjects:
            subobjects = obj.composite.subobjects
            state["layout"] = layout.display_order(subobjects)
            state["links"] = {sid: link.metadata() for sid, link in subobjects.items()}
    else:
        state["data"] = asdict(getattr(obj, obj.object_type))
    return state


def edited_since(obj: Optional[EditedObject], state: dict[str, Any]) -> set[str]:
    """Keys of *state* (a :func:`comparable_state`) which no longer match *obj*."""
    if obj is None:
        return set()
    current = comparable_state(obj)
    return {key for key in current.keys() | state.keys() if current.get(key) != state.get(key)}


class EditedObjectStore:
    """Flat store of edit sessions.

    Args:
        object_store: Persisted copies used to seed sessions and to decide
            whether a session is modified.
        allocator: Source of temporary ids for new subobjects.
    """

    def __init__(self, object_store: ObjectStore, allocator: Optional[IdentifierAllocator] = None) -> None:
        self.object_store = object_store
        self.allocator = allocator or IdentifierAllocator()
        self._sessions: dict[int, EditedObject] = {}
        # Initial state of sessions which have no persisted copy.
        self._defaults: dict[int, EditedObject] = {}

    def __contains__(self, object_id: object) -> bool:
        return object_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def ids(self) -> list[int]:
        return list(self._sessions)

    def get(self, object_id: int) -> Optional[EditedObject]:
        return self._sessions.get(object_id)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def open_session(self, object_id: int, is_published: bool = False) -> Optional[EditedObject]:
        """Return the session of *object_id*, creating it if needed.

        Positive ids are seeded from the Object Store and must be loaded
        there first; ``0`` and negative ids get a default session.
        """
        session = self._sessions.get(object_id)
        if session is not None:
            return session
        if object_id > 0:
            persisted = self.object_store.get(object_id)
            if persisted is None:
                logger.debug("Cannot open session %d: object is not loaded", object_id)
                return None
            session = edited_from_persisted(persisted)
            layout.normalize(session.composite.subobjects)
        else:
            session = new_edited_object(object_id, is_published=is_published)
            self._defaults[object_id] = deepcopy(session)
        self._sessions[object_id] = session
        logger.debug("Opened session %d", object_id)
        return session

    def reference(self, object_id: int) -> EditedObject:
        """Unmodified state of *object_id*: its persisted copy or its default."""
        persisted = self.object_store.get(object_id) if object_id > 0 else None
        if persisted is not None:
            return edited_from_persisted(persisted)
        default = self._defaults.get(object_id)
        return deepcopy(default) if default is not None else new_edited_object(object_id)

    def is_modified(self, object_id: int, include_subobjects: bool = True) -> bool:
        session = self._sessions.get(object_id)
        if session is None:
            return False
        reference = self.reference(object_id)
        return comparable_state(session, include_subobjects) != comparable_state(reference, include_subobjects)

    def reseed(self, object_id: int) -> Optional[EditedObject]:
        """Replace a session with a fresh copy of its persisted object.

        ``fetch_error`` of links which are still present is kept.
        """
        persisted = self.object_store.get(object_id)
        if persisted is None:
            return None
        old = self._sessions.get(object_id)
        session = edited_from_persisted(persisted)
        layout.normalize(session.composite.subobjects)
        if old is not None:
            for subobject_id, link in session.composite.subobjects.items():
                old_link = old.composite.subobjects.get(subobject_id)
                if old_link is not None:
                    link.fetch_error = old_link.fetch_error
        self._sessions[object_id] = session
        self._defaults.pop(object_id, None)
        return session

    def rebase(
        self,
        object_id: int,
        changed: set[str],
        saved_state: dict[str, Any],
        unlinked_ids: Iterable[int] = (),
    ) -> Optional[EditedObject]:
        """Re-seed a saved session, keeping the edits made while it was being saved.

        *saved_state* is the :func:`comparable_state` the save was compiled
        from and *changed* the keys of it which changed afterwards.
        Those parts are carried over to the fresh persisted copy.  Links in
        *unlinked_ids* which are still marked ``subobjectOnly`` were removed
        by the save and are dropped.
        """
        old = self._sessions.get(object_id)
        session = self.reseed(object_id)
        if session is None or old is None or not changed:
            return session

        for name in _COMPARED_ATTRIBUTES:
            if name in changed:
                setattr(session, name, getattr(old, name))
        for block in _DATA_BLOCKS[:-1]:
            if block != session.object_type or "data" in changed:
                setattr(session, block, deepcopy(getattr(old, block)))
        if "data" in changed:
            session.composite.display_mode = old.composite.display_mode
            session.composite.numerate_chapters = old.composite.numerate_chapters

        session.added_tags = [
            t for t in old.added_tags
            if t not in saved_state["added_tags"] and t not in session.current_tag_ids
        ]
        session.removed_tag_ids = [
            t for t in old.removed_tag_ids
            if t not in saved_state["removed_tag_ids"] and t in session.current_tag_ids
        ]

        if "layout" in changed or "links" in changed:
            unlinked = set(unlinked_ids)
            subobjects = {
                i: link for i, link in old.composite.subobjects.items()
                if not (i in unlinked and link.delete_mode == "subobjectOnly")
            }
            layout.normalize(subobjects)
            session.composite.subobjects = subobjects
        logger.debug("Rebased session %d, kept edits to %s", object_id, sorted(changed))
        return session

    def discard(self, object_ids: Iterable[int]) -> None:
        """Drop sessions without touching links to them."""
        for object_id in object_ids:
            if self._sessions.pop(object_id, None) is not None:
                logger.debug("Discarded session %d", object_id)
            self._defaults.pop(object_id, None)

    def remove(self, object_ids: Iterable[int]) -> None:
        """Drop sessions and unlink them from every composite."""
        ids = set(object_ids)
        self.discard(ids)
        for session in self._sessions.values():
            subobjects = session.composite.subobjects
            if any(i in subobjects for i in ids):
                for object_id in ids:
                    subobjects.pop(object_id, None)
                layout.normalize(subobjects)

    def parents_of(self, object_id: int) -> list[int]:
        """Ids of open sessions linking *object_id*."""
        return [i for i, s in self._sessions.items() if object_id in s.composite.subobjects]

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def update(self, object_id: int, **changes: Any) -> bool:
        """Merge *changes* into a session.

        Data blocks (``link``, ``markdown``, ``to_do_list``, ``composite``)
        take a dict of their own fields and are merged one level deeper.

        Raises:
            ValueError: On unknown fields or object types.
        """
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unknown object fields: {sorted(unknown)}")
        if "object_type" in changes and changes["object_type"] not in OBJECT_TYPES:
            raise ValueError(f"Incorrect object_type {changes['object_type']!r}")
        session = self._sessions.get(object_id)
        if session is None:
            logger.debug("Update ignored: session %d is not open", object_id)
            return False

        for name, value in changes.items():
            if name in _DATA_BLOCKS and isinstance(value, dict):
                self._merge_block(getattr(session, name), name, value)
            else:
                setattr(session, name, value)
        return True

    @staticmethod
    def _merge_block(block: Any, name: str, values: dict[str, Any]) -> None:
        for key, value in values.items():
            if key not in {f.name for f in fields(block)}:
                raise ValueError(f"Unknown {name} field: {key!r}")
            if name == "composite" and key == "subobjects":
                raise ValueError("Composite subobjects are changed through link operations")
            if name == "to_do_list" and key == "items":
                value = [ToDoListItem(**item) if isinstance(item, dict) else item for item in value]
            setattr(block, key, value)

    def update_tags(
        self,
        object_id: int,
        added: Iterable[Union[int, str]] = (),
        removed: Iterable[Union[int, str]] = (),
    ) -> bool:
        """Record tag additions and removals.

        Re-adding a current tag cancels its removal and removing an added
        tag cancels the addition.  Tag names compare case-insensitively.
        """
        session = self._sessions.get(object_id)
        if session is None:
            return False

        for tag in added:
            if isinstance(tag, str):
                name = tag.strip()
                if name and not _find_name(session.added_tags, name):
                    session.added_tags.append(name)
            elif tag in session.removed_tag_ids:
                session.removed_tag_ids.remove(tag)
            elif tag not in session.current_tag_ids and tag not in session.added_tags:
                session.added_tags.append(tag)

        for tag in removed:
            if isinstance(tag, str):
                match = _find_name(session.added_tags, tag.strip())
                if match is not None:
                    session.added_tags.remove(match)
            elif tag in session.added_tags:
                session.added_tags.remove(tag)
            elif tag in session.current_tag_ids and tag not in session.removed_tag_ids:
                session.removed_tag_ids.append(tag)
        return True

    # ------------------------------------------------------------------
    # Subobjects
    # ------------------------------------------------------------------

    def create_new_subobject_session(self, parent_id: int) -> Optional[int]:
        """Open a default session under a new temporary id and link it at the end of column 0."""
        parent = self._sessions.get(parent_id)
        if parent is None:
            logger.debug("Cannot add a subobject: session %d is not open", parent_id)
            return None
        child_id = self.allocator.next_id()
        self.open_session(child_id, is_published=parent.is_published)
        column, row = layout.end_position(parent.composite.subobjects)
        parent.composite.subobjects[child_id] = SubobjectLink(column=column, row=row)
        return child_id

    def insert_subobject_link(self, parent_id: int, child_id: int) -> bool:
        """Link *child_id* at the end of column 0 unless it is already linked."""
        parent = self._sessions.get(parent_id)
        if parent is None or child_id == parent_id or child_id == NEW_OBJECT_ID:
            logger.debug("Cannot link %d to %d", child_id, parent_id)
            return False
        if child_id < 0 and child_id not in self._sessions:
            logger.debug("Cannot link unknown temporary id %d", child_id)
            return False
        subobjects = parent.composite.subobjects
        if child_id not in subobjects:
            column, row = layout.end_position(subobjects)
            subobjects[child_id] = SubobjectLink(column=column, row=row)
        return True

    def subobject_link(self, parent_id: int, child_id: int) -> Optional[SubobjectLink]:
        parent = self._sessions.get(parent_id)
        return parent.composite.subobjects.get(child_id) if parent is not None else None

    def update_subobject_link(self, parent_id: int, child_id: int, **changes: Any) -> bool:
        """Set link metadata.  Positions change only through :mod:`layout` moves."""
        unknown = set(changes) - _LINK_FIELDS
        if unknown:
            raise ValueError(f"Unknown subobject link fields: {sorted(unknown)}")
        if changes.get("delete_mode", "none") not in DELETE_MODES:
            raise ValueError(f"Incorrect delete_mode {changes['delete_mode']!r}")
        for name in ("show_description_composite", "show_description_as_link_composite"):
            if changes.get(name, "inherit") not in TRI_STATES:
                raise ValueError(f"Incorrect {name} {changes[name]!r}")
        link = self.subobject_link(parent_id, child_id)
        if link is None:
            logger.debug("Link %d -> %d not found", parent_id, child_id)
            return False
        for name, value in changes.items():
            setattr(link, name, value)
        return True

    # ------------------------------------------------------------------
    # Garbage collection & id remapping
    # ------------------------------------------------------------------

    def collect_garbage(self, visible_ids: Iterable[int]) -> list[int]:
        """Delete sessions which are not visible and not modified.

        A composite is kept while it is the only remaining holder of a kept
        child which is not visible itself, and a new child is kept while a
        kept session links it.
        """
        visible = set(visible_ids)
        keep = visible | {i for i in self._sessions if self.is_modified(i)}

        changed = True
        while changed:
            changed = False
            for object_id, session in self._sessions.items():
                if object_id in keep:
                    for child_id in session.composite.subobjects:
                        if child_id <= 0 and child_id in self._sessions and child_id not in keep:
                            keep.add(child_id)
                            changed = True
                    continue
                for child_id in session.composite.subobjects:
                    if child_id not in keep or child_id in visible:
                        continue
                    holders = [p for p in self.parents_of(child_id) if p in keep]
                    if not holders:
                        keep.add(object_id)
                        changed = True
                        break

        garbage = [i for i in self._sessions if i not in keep]
        self.discard(garbage)
        return garbage

    def remap_ids(self, mapping: dict[int, int]) -> None:
        """Re-key sessions and link keys from temporary to permanent ids."""
        if not mapping:
            return
        for old_id, new_id in mapping.items():
            session = self._sessions.pop(old_id, None)
            if session is not None:
                session.object_id = new_id
                self._sessions[new_id] = session
            default = self._defaults.pop(old_id, None)
            if default is not None:
                default.object_id = new_id
                self._defaults[new_id] = default
        for session in self._sessions.values():
            subobjects = session.composite.subobjects
            if any(i in mapping for i in subobjects):
                session.composite.subobjects = {mapping.get(i, i): link for i, link in subobjects.items()}
        logger.debug("Remapped ids %s", mapping)


def _find_name(tags: list[Union[int, str]], name: str) -> Optional[str]:
    lowered = name.lower()
    return next((t for t in tags if isinstance(t, str) and t.lower() == lowered), None)
