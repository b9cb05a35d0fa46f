"""Compiles an edit session tree into one upsert request and applies the response.

Save of a root object ``R``:

1. The root is upserted when it is new or its attributes / data changed.
2. For a composite root, each direct child is classified by its link's
   delete mode:

   * ``full`` -- positive ids are deleted, temporary ids are dropped;
   * ``subobjectOnly`` -- the link is removed, the object is kept;
   * ``none`` -- the link survives, and the child is upserted when it is
     new or modified.  Composite children are saved as links only.

3. Surviving links are laid out densely and only the links which differ
   from the persisted layout are sent, together with removed links.

Compilation either returns a complete request or raises
:class:`~objedit.errors.ObjectValidationError`; it never mutates a store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pydantic import ValidationError

from objedit.api.schemas import SubobjectLinkRecord, SubobjectRef, UpsertRequest, UpsertResponse
from objedit.db.models import CompositeData, CompositeSubobject
from objedit.editing import layout
from objedit.editing.edited_objects import EditedObjectStore, comparable_state, edited_since
from objedit.editing.models import EditedObject, SubobjectLink, object_data_payload
from objedit.editing.object_store import ObjectStore
from objedit.editing.validation import COMPOSITE_REQUIRED, validate_object, with_object_suffix
from objedit.errors import ObjectValidationError

logger = logging.getLogger(__name__)


@dataclass
class CompiledSave:
    root_id: int
    request: UpsertRequest
    # Sessions re-seeded from the response (root and upserted children).
    saved_ids: list[int] = field(default_factory=list)
    # Sessions dropped after the save without being unlinked elsewhere.
    discarded_ids: list[int] = field(default_factory=list)
    # Temporary ids deleted in full, unlinked everywhere after the save.
    dropped_ids: list[int] = field(default_factory=list)
    # Children unlinked with ``subobjectOnly``.
    unlinked_ids: list[int] = field(default_factory=list)
    # State each saved session was compiled from.
    compiled_states: dict[int, dict] = field(default_factory=dict)


def _payload(session: EditedObject) -> dict:
    return {
        "object_id": session.object_id,
        "object_type": session.object_type,
        "object_name": session.object_name,
        "object_description": session.object_description,
        "is_published": session.is_published,
        "show_description": session.show_description,
        "display_in_feed": session.display_in_feed,
        "feed_timestamp": session.feed_timestamp,
        "added_tags": list(session.added_tags),
        "removed_tag_ids": list(session.removed_tag_ids),
        "object_data": object_data_payload(session),
    }


def _link_record(parent_id: int, subobject_id: int, link: SubobjectLink) -> SubobjectLinkRecord:
    return SubobjectLinkRecord(
        parent_id=parent_id,
        subobject_id=subobject_id,
        column=link.column,
        row=link.row,
        is_expanded=link.is_expanded,
        show_description_composite=link.show_description_composite,
        show_description_as_link_composite=link.show_description_as_link_composite,
    )


def _same_as_persisted(record: SubobjectLinkRecord, persisted: CompositeSubobject) -> bool:
    return (
        record.column == persisted.column
        and record.row == persisted.row
        and record.is_expanded == persisted.is_expanded
        and record.show_description_composite == persisted.show_description_composite
        and record.show_description_as_link_composite == persisted.show_description_as_link_composite
    )


class SaveCompiler:
    def __init__(self, object_store: ObjectStore, edited_objects: EditedObjectStore) -> None:
        self.object_store = object_store
        self.edited_objects = edited_objects

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    def compile(self, root_id: int) -> CompiledSave:
        """Build the upsert request for a save of *root_id*.

        Raises:
            ObjectValidationError: On the first invalid object.  Errors of
                subobjects carry the subobject's id and name.
        """
        root = self.edited_objects.get(root_id)
        if root is None:
            raise ObjectValidationError("Object is not open for editing.", root_id)

        compiled = CompiledSave(root_id=root_id, request=UpsertRequest())
        objects = []
        root_upserted = root.is_new() or self.edited_objects.is_modified(root_id, include_subobjects=False)
        if root_upserted:
            objects.append(validate_object(_payload(root)))
            compiled.saved_ids.append(root_id)

        links: list[SubobjectLinkRecord] = []
        removed: list[SubobjectRef] = []
        deleted_ids: list[int] = []

        if root.object_type == "composite":
            surviving: dict[int, SubobjectLink] = {}
            children: list[EditedObject] = []
            for column in layout.display_order(root.composite.subobjects):
                for child_id in column:
                    link = root.composite.subobjects[child_id]
                    child = self.edited_objects.get(child_id)
                    if link.delete_mode == "full":
                        if child_id > 0:
                            deleted_ids.append(child_id)
                        else:
                            compiled.dropped_ids.append(child_id)
                        continue
                    if link.delete_mode == "subobjectOnly":
                        compiled.unlinked_ids.append(child_id)
                        if child is not None and self._discardable(root_id, child_id):
                            compiled.discarded_ids.append(child_id)
                        continue
                    surviving[child_id] = SubobjectLink(**vars(link))
                    if child is not None:
                        children.append(child)
                    elif child_id <= 0:
                        raise ObjectValidationError(f"Subobject {child_id} is not open for editing.", root_id)

            layout.normalize(surviving)
            links, removed = self._layout_diff(root_id, surviving, deleted_ids)

            if (root_upserted or links or removed) and not surviving:
                raise ObjectValidationError(COMPOSITE_REQUIRED, root_id)

            for child in children:
                if not self._child_upserted(child):
                    continue
                try:
                    objects.append(validate_object(_payload(child)))
                except ObjectValidationError as exc:
                    message = with_object_suffix(exc.message, child.object_id, child.object_name)
                    raise ObjectValidationError(message, child.object_id) from exc
                compiled.saved_ids.append(child.object_id)

        try:
            compiled.request = UpsertRequest(
                objects=objects,
                subobject_links=links,
                removed_subobject_links=removed,
                deleted_object_ids=deleted_ids,
            )
        except ValidationError as exc:
            raise ObjectValidationError(exc.errors()[0]["msg"].removeprefix("Value error, "), root_id) from exc
        for object_id in dict.fromkeys([root_id, *compiled.saved_ids]):
            compiled.compiled_states[object_id] = comparable_state(self.edited_objects.get(object_id))
        return compiled

    def _child_upserted(self, child: EditedObject) -> bool:
        if child.object_type == "composite":
            if child.is_new():
                message = with_object_suffix(
                    "New composite subobjects must be saved from their own page.",
                    child.object_id,
                    child.object_name,
                )
                raise ObjectValidationError(message, child.object_id)
            return False
        return child.is_new() or self.edited_objects.is_modified(child.object_id)

    def _discardable(self, root_id: int, child_id: int) -> bool:
        """A child removed from the root loses its session unless it has unsaved work elsewhere."""
        if any(p != root_id for p in self.edited_objects.parents_of(child_id)):
            return False
        return child_id <= 0 or not self.edited_objects.is_modified(child_id)

    def _layout_diff(
        self, root_id: int, surviving: dict[int, SubobjectLink], deleted_ids: list[int]
    ) -> tuple[list[SubobjectLinkRecord], list[SubobjectRef]]:
        persisted = self.object_store.get(root_id) if root_id > 0 else None
        persisted_links: dict[int, CompositeSubobject] = {}
        if persisted is not None and isinstance(persisted.object_data, CompositeData):
            persisted_links = {so.subobject_id: so for so in persisted.object_data.subobjects}

        links = []
        for subobject_id, link in surviving.items():
            record = _link_record(root_id, subobject_id, link)
            previous = persisted_links.get(subobject_id)
            if previous is None or not _same_as_persisted(record, previous):
                links.append(record)
        # Links of fully deleted objects go away with the objects.
        removed = [
            SubobjectRef(parent_id=root_id, subobject_id=subobject_id)
            for subobject_id in persisted_links
            if subobject_id not in surviving and subobject_id not in deleted_ids
        ]
        links.sort(key=lambda r: (r.column, r.row))
        return links, removed

    # ------------------------------------------------------------------
    # Response application
    # ------------------------------------------------------------------

    def apply(self, compiled: CompiledSave, response: UpsertResponse) -> int:
        """Merge a successful save into the stores and return the root's permanent id.

        Sessions edited after compilation keep those edits on top of the
        saved objects; the others are re-seeded from the response.
        """
        id_map = dict(response.new_object_ids_map)
        changes = {
            object_id: edited_since(self.edited_objects.get(object_id), state)
            for object_id, state in compiled.compiled_states.items()
        }
        self.object_store.put_many(record.to_persisted() for record in response.objects)

        self.edited_objects.discard(compiled.discarded_ids)
        self.edited_objects.remove(compiled.dropped_ids)
        self.edited_objects.remap_ids(id_map)

        deleted = set(response.deleted_object_ids)
        self.object_store.remove(deleted)
        self.edited_objects.remove(deleted)

        root_id = id_map.get(compiled.root_id, compiled.root_id)
        for object_id, state in compiled.compiled_states.items():
            self.edited_objects.rebase(
                id_map.get(object_id, object_id), changes[object_id], state, compiled.unlinked_ids
            )
        logger.debug("Applied save of %d: id map %s, deleted %s", root_id, id_map, sorted(deleted))
        return root_id
