"""Values derived from edit sessions."""

from __future__ import annotations

from typing import Literal, Optional

from objedit.editing import layout
from objedit.editing.edited_objects import EditedObjectStore

PublishedState = Literal["yes", "partially", "no"]


def non_deleted_subobject_ids(edited_objects: EditedObjectStore, parent_id: int) -> list[int]:
    """Direct children without a delete mark, in display order."""
    parent = edited_objects.get(parent_id)
    if parent is None:
        return []
    subobjects = parent.composite.subobjects
    return [
        child_id
        for column in layout.display_order(subobjects)
        for child_id in column
        if subobjects[child_id].delete_mode == "none"
    ]


def subobjects_is_published(edited_objects: EditedObjectStore, parent_id: int) -> Optional[PublishedState]:
    """Whether all, some or none of the open non-deleted children are published."""
    if edited_objects.get(parent_id) is None:
        return None
    states = [
        session.is_published
        for session in map(edited_objects.get, non_deleted_subobject_ids(edited_objects, parent_id))
        if session is not None
    ]
    if states and all(states):
        return "yes"
    if any(states):
        return "partially"
    return "no"
