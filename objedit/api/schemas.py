"""Pydantic schemas of the persistence protocol.

Shared by the FastAPI routers (request / response bodies), the HTTP client
backend and the save compiler, which validates every compiled object against
these models before anything is sent.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import AnyHttpUrl, BaseModel, Field, TypeAdapter, ValidationError, field_validator, model_validator

from objedit.config import settings
from objedit.db.models import (
    DisplayMode,
    ItemState,
    ObjectType,
    PersistedObject,
    SortType,
    TriState,
    object_data_from_dict,
)

NAME_MAX_LENGTH = 255

_URL = TypeAdapter(AnyHttpUrl)


# ---------------------------------------------------------------------------
# Object data payloads
# ---------------------------------------------------------------------------

class LinkPayload(BaseModel):
    link: str
    show_description_as_link: bool = False

    @field_validator("link")
    @classmethod
    def _valid_url(cls, value: str) -> str:
        # Validate only; the literal string is stored as typed.
        try:
            _URL.validate_python(value)
        except ValidationError:
            raise ValueError("Invalid url") from None
        return value


class MarkdownPayload(BaseModel):
    raw_text: str = Field(min_length=1)


class ToDoListItemPayload(BaseModel):
    item_text: str
    item_state: ItemState = "active"
    commentary: str = ""
    indent: int = Field(default=0, ge=0, le=5)
    is_expanded: bool = True


class ToDoListPayload(BaseModel):
    sort_type: SortType = "default"
    items: list[ToDoListItemPayload] = Field(min_length=1)


class CompositePayload(BaseModel):
    display_mode: DisplayMode = "basic"
    numerate_chapters: bool = False


# ---------------------------------------------------------------------------
# /objects/bulk_upsert
# ---------------------------------------------------------------------------

class _UpsertedBase(BaseModel):
    object_id: int
    object_name: str = Field(min_length=1, max_length=NAME_MAX_LENGTH)
    object_description: str = ""
    is_published: bool = False
    show_description: bool = True
    display_in_feed: bool = False
    feed_timestamp: Optional[int] = None
    added_tags: list[Union[int, str]] = Field(default_factory=list, max_length=100)
    removed_tag_ids: list[int] = Field(default_factory=list, max_length=100)


class UpsertedLink(_UpsertedBase):
    object_type: Literal["link"]
    object_data: LinkPayload


class UpsertedMarkdown(_UpsertedBase):
    object_type: Literal["markdown"]
    object_data: MarkdownPayload


class UpsertedToDoList(_UpsertedBase):
    object_type: Literal["to_do_list"]
    object_data: ToDoListPayload


class UpsertedComposite(_UpsertedBase):
    object_type: Literal["composite"]
    object_data: CompositePayload


UpsertedObject = Annotated[
    Union[UpsertedLink, UpsertedMarkdown, UpsertedToDoList, UpsertedComposite],
    Field(discriminator="object_type"),
]

upserted_object_adapter: TypeAdapter = TypeAdapter(UpsertedObject)


class SubobjectLinkRecord(BaseModel):
    """One composite → child edge; ids may be temporary (``<= 0``)."""

    parent_id: int
    subobject_id: int
    column: int = Field(ge=0)
    row: int = Field(ge=0)
    is_expanded: bool = True
    show_description_composite: TriState = "inherit"
    show_description_as_link_composite: TriState = "inherit"


class SubobjectRef(BaseModel):
    parent_id: int
    subobject_id: int


class UpsertRequest(BaseModel):
    objects: list[UpsertedObject] = Field(default_factory=list)
    subobject_links: list[SubobjectLinkRecord] = Field(default_factory=list)
    removed_subobject_links: list[SubobjectRef] = Field(default_factory=list)
    deleted_object_ids: list[Annotated[int, Field(gt=0)]] = Field(default_factory=list, max_length=1000)

    @model_validator(mode="after")
    def _check_object_count(self) -> "UpsertRequest":
        if len(self.objects) > settings.max_upserted_objects:
            raise ValueError("Too many objects were passed to update.")
        return self

    def is_empty(self) -> bool:
        return not (
            self.objects or self.subobject_links
            or self.removed_subobject_links or self.deleted_object_ids
        )


class ObjectRecord(BaseModel):
    """A persisted object as returned by the backend."""

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
    current_tag_ids: list[int] = Field(default_factory=list)
    object_data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_persisted(cls, obj: PersistedObject) -> "ObjectRecord":
        return cls(**asdict(obj))

    def to_persisted(self) -> PersistedObject:
        attributes = self.model_dump(exclude={"object_data"})
        return PersistedObject(
            **attributes, object_data=object_data_from_dict(self.object_type, self.object_data)
        )


class UpsertResponse(BaseModel):
    objects: list[ObjectRecord] = Field(default_factory=list)
    new_object_ids_map: dict[int, int] = Field(default_factory=dict)
    deleted_object_ids: list[int] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# /objects/view, /objects/get_page_object_ids, DELETE /objects
# ---------------------------------------------------------------------------

class ViewRequest(BaseModel):
    object_ids: list[Annotated[int, Field(gt=0)]] = Field(min_length=1, max_length=1000)


class ViewResponse(BaseModel):
    objects: list[ObjectRecord] = Field(default_factory=list)
    not_found: list[int] = Field(default_factory=list)


class PageQuery(BaseModel):
    page: int = Field(default=1, gt=0)
    items_per_page: int = Field(default=100, gt=0, le=500)
    order_by: Literal["object_name", "modified_at", "feed_timestamp"] = "modified_at"
    sort_order: Literal["asc", "desc"] = "desc"
    filter_text: Optional[str] = Field(default=None, max_length=NAME_MAX_LENGTH)
    object_types: Optional[list[ObjectType]] = None
    show_only_displayed_in_feed: bool = False


class ObjectsPage(BaseModel):
    object_ids: list[int] = Field(default_factory=list)
    total_items: int = 0


class DeleteRequest(BaseModel):
    object_ids: list[Annotated[int, Field(gt=0)]] = Field(min_length=1, max_length=1000)
    delete_subobjects: bool = False


class DeleteResult(BaseModel):
    deleted: list[int] = Field(default_factory=list)
    not_found: list[int] = Field(default_factory=list)
