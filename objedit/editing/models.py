"""Dataclass models of edit sessions.

An :class:`EditedObject` is the mutable working copy of one object.  It holds
one data block per object type so that switching ``object_type`` back and
forth keeps the user's work; only the block matching ``object_type`` is
compared and saved.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import asdict, dataclass, field
from typing import Any, Literal, Optional, Union

from objedit.db.models import (
    CompositeData,
    CompositeSubobject,
    DisplayMode,
    LinkData,
    MarkdownData,
    ObjectType,
    PersistedObject,
    ToDoListData,
    TriState,
)

DeleteMode = Literal["none", "subobjectOnly", "full"]

DELETE_MODES: tuple[str, ...] = ("none", "subobjectOnly", "full")
TRI_STATES: tuple[str, ...] = ("yes", "no", "inherit")

FETCH_ERROR_MESSAGE = "Could not fetch object data."


@dataclass
class SubobjectLink:
    """Position and display metadata of one child inside a composite."""

    column: int = 0
    row: int = 0
    is_expanded: bool = True
    delete_mode: DeleteMode = "none"
    show_description_composite: TriState = "inherit"
    show_description_as_link_composite: TriState = "inherit"
    # UI-only, never counts as a modification.
    fetch_error: Optional[str] = None

    @classmethod
    def from_persisted(cls, so: CompositeSubobject) -> "SubobjectLink":
        return cls(
            column=so.column,
            row=so.row,
            is_expanded=so.is_expanded,
            show_description_composite=so.show_description_composite,
            show_description_as_link_composite=so.show_description_as_link_composite,
        )

    def metadata(self) -> tuple:
        """Compared non-positional fields."""
        return (
            self.is_expanded,
            self.delete_mode,
            self.show_description_composite,
            self.show_description_as_link_composite,
        )


@dataclass
class CompositeState:
    display_mode: DisplayMode = "basic"
    numerate_chapters: bool = False
    subobjects: dict[int, SubobjectLink] = field(default_factory=dict)


@dataclass
class EditedObject:
    object_id: int
    object_type: ObjectType = "link"
    object_name: str = ""
    object_description: str = ""
    created_at: int = 0
    modified_at: int = 0
    is_published: bool = False
    show_description: bool = True
    display_in_feed: bool = False
    feed_timestamp: Optional[int] = None

    current_tag_ids: list[int] = field(default_factory=list)
    added_tags: list[Union[int, str]] = field(default_factory=list)
    removed_tag_ids: list[int] = field(default_factory=list)

    link: LinkData = field(default_factory=LinkData)
    markdown: MarkdownData = field(default_factory=MarkdownData)
    to_do_list: ToDoListData = field(default_factory=ToDoListData)
    composite: CompositeState = field(default_factory=CompositeState)

    # Last save / load error of this session (UI-only).
    error: Optional[str] = None

    def is_new(self) -> bool:
        return self.object_id <= 0


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------

def new_edited_object(object_id: int, is_published: bool = False) -> EditedObject:
    """Default session of an object which has not been saved yet."""
    return EditedObject(object_id=object_id, is_published=is_published)


def edited_from_persisted(obj: PersistedObject) -> EditedObject:
    """Build a session holding a copy of the persisted *obj*."""
    edited = EditedObject(
        object_id=obj.object_id,
        object_type=obj.object_type,
        object_name=obj.object_name,
        object_description=obj.object_description,
        created_at=obj.created_at,
        modified_at=obj.modified_at,
        is_published=obj.is_published,
        show_description=obj.show_description,
        display_in_feed=obj.display_in_feed,
        feed_timestamp=obj.feed_timestamp,
        current_tag_ids=list(obj.current_tag_ids),
    )
    data = deepcopy(obj.object_data)
    if isinstance(data, CompositeData):
        edited.composite = CompositeState(
            display_mode=data.display_mode,
            numerate_chapters=data.numerate_chapters,
            subobjects={so.subobject_id: SubobjectLink.from_persisted(so) for so in data.subobjects},
        )
    else:
        setattr(edited, obj.object_type, data)
    return edited


def object_data_payload(obj: EditedObject) -> dict[str, Any]:
    """Wire form of the active data block (composite links are sent separately)."""
    if obj.object_type == "composite":
        return {
            "display_mode": obj.composite.display_mode,
            "numerate_chapters": obj.composite.numerate_chapters,
        }
    return asdict(getattr(obj, obj.object_type))
