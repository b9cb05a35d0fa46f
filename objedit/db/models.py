"""Dataclass models representing persisted objects.

These are plain Python objects – not ORM models.  The DB layer serialises /
deserialises to and from these types, and the engine's Object Store keeps
them as its last-known persisted copies.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Literal, Optional, Union

ObjectType = Literal["link", "markdown", "to_do_list", "composite"]
TriState = Literal["yes", "no", "inherit"]
DisplayMode = Literal["basic", "grouped_links", "multicolumn", "chapters"]
SortType = Literal["default", "state"]
ItemState = Literal["active", "completed", "optional", "cancelled"]

OBJECT_TYPES: tuple[str, ...] = ("link", "markdown", "to_do_list", "composite")


@dataclass
class LinkData:
    link: str = ""
    show_description_as_link: bool = False


@dataclass
class MarkdownData:
    raw_text: str = ""


@dataclass
class ToDoListItem:
    item_text: str = ""
    item_state: ItemState = "active"
    commentary: str = ""
    indent: int = 0
    is_expanded: bool = True


@dataclass
class ToDoListData:
    sort_type: SortType = "default"
    items: list[ToDoListItem] = field(default_factory=list)


@dataclass
class CompositeSubobject:
    """A persisted composite → child edge."""

    subobject_id: int
    column: int = 0
    row: int = 0
    is_expanded: bool = True
    show_description_composite: TriState = "inherit"
    show_description_as_link_composite: TriState = "inherit"


@dataclass
class CompositeData:
    display_mode: DisplayMode = "basic"
    numerate_chapters: bool = False
    subobjects: list[CompositeSubobject] = field(default_factory=list)


ObjectData = Union[LinkData, MarkdownData, ToDoListData, CompositeData]

_DATA_CLASSES: dict[str, type] = {
    "link": LinkData,
    "markdown": MarkdownData,
    "to_do_list": ToDoListData,
    "composite": CompositeData,
}


def default_object_data(object_type: str) -> ObjectData:
    """Return an empty data block for *object_type*."""
    try:
        return _DATA_CLASSES[object_type]()
    except KeyError:
        raise ValueError(f"Incorrect object_type {object_type!r}") from None


def object_data_from_dict(object_type: str, data: dict) -> ObjectData:
    """Build a data block of *object_type* from a plain dict (JSON / wire form)."""
    if object_type == "link":
        return LinkData(**data)
    if object_type == "markdown":
        return MarkdownData(raw_text=data.get("raw_text", ""))
    if object_type == "to_do_list":
        return ToDoListData(
            sort_type=data.get("sort_type", "default"),
            items=[ToDoListItem(**item) for item in data.get("items", [])],
        )
    if object_type == "composite":
        return CompositeData(
            display_mode=data.get("display_mode", "basic"),
            numerate_chapters=data.get("numerate_chapters", False),
            subobjects=[CompositeSubobject(**so) for so in data.get("subobjects", [])],
        )
    raise ValueError(f"Incorrect object_type {object_type!r}")


@dataclass
class PersistedObject:
    object_id: int
    object_type: ObjectType
    object_name: str
    object_description: str = ""
    created_at: int = 0
    modified_at: int = 0
    is_published: bool = False
    show_description: bool = True
    display_in_feed: bool = False
    feed_timestamp: Optional[int] = None
    current_tag_ids: list[int] = field(default_factory=list)
    object_data: ObjectData = field(default_factory=LinkData)

    # ------------------------------------------------------------------
    # Convenience helpers
    # ------------------------------------------------------------------
    def data_json(self) -> str:
        """Serialise type-specific data for storage (composite links excluded)."""
        data = asdict(self.object_data)
        data.pop("subobjects", None)
        return json.dumps(data)

    def subobject_ids(self) -> list[int]:
        """Ids of direct children for composite objects, ``[]`` otherwise."""
        if isinstance(self.object_data, CompositeData):
            return [so.subobject_id for so in self.object_data.subobjects]
        return []
