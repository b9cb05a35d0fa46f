"""Tests for edit sessions: seeding, updates, tags, subobjects, GC and id remapping."""

from __future__ import annotations

import pytest

from objedit.db.models import CompositeData, CompositeSubobject, LinkData, MarkdownData, PersistedObject
from objedit.editing.edited_objects import EditedObjectStore
from objedit.editing.ids import NEW_OBJECT_ID, IdentifierAllocator
from objedit.editing.layout import OntoCard, display_order, move_subobject
from objedit.editing.object_store import ObjectStore


def link_object(object_id: int, name: str = "Link", **extra) -> PersistedObject:
    return PersistedObject(
        object_id=object_id,
        object_type="link",
        object_name=name,
        current_tag_ids=extra.pop("current_tag_ids", []),
        object_data=LinkData(link="https://example.com"),
        **extra,
    )


def composite_object(object_id: int, columns: list[list[int]], **extra) -> PersistedObject:
    subobjects = [
        CompositeSubobject(subobject_id=sid, column=c, row=r)
        for c, ids in enumerate(columns)
        for r, sid in enumerate(ids)
    ]
    return PersistedObject(
        object_id=object_id,
        object_type="composite",
        object_name="Composite",
        object_data=CompositeData(subobjects=subobjects),
        **extra,
    )


@pytest.fixture()
def object_store() -> ObjectStore:
    store = ObjectStore()
    store.put_many([link_object(1, "One"), link_object(2, "Two"), link_object(3, "Three")])
    store.put(composite_object(10, [[1, 2], [3]]))
    return store


@pytest.fixture()
def store(object_store: ObjectStore) -> EditedObjectStore:
    return EditedObjectStore(object_store, IdentifierAllocator())


class TestIdentifierAllocator:
    def test_negative_and_unique(self) -> None:
        allocator = IdentifierAllocator()
        assert [allocator.next_id() for _ in range(3)] == [-1, -2, -3]

    def test_is_temporary(self) -> None:
        assert IdentifierAllocator.is_temporary(NEW_OBJECT_ID)
        assert IdentifierAllocator.is_temporary(-5)
        assert not IdentifierAllocator.is_temporary(5)


class TestObjectStore:
    def test_put_requires_permanent_id(self) -> None:
        with pytest.raises(ValueError):
            ObjectStore().put(link_object(0))

    def test_remove_unlinks_from_composites(self, object_store: ObjectStore) -> None:
        assert object_store.remove([1, 99]) == [1]
        assert 1 not in object_store
        assert object_store.get(10).subobject_ids() == [2, 3]


class TestOpenSession:
    def test_seeded_from_persisted(self, store: EditedObjectStore) -> None:
        session = store.open_session(1)
        assert session.object_name == "One"
        assert session.link.link == "https://example.com"
        assert store.is_modified(1) is False

    def test_returns_existing_session(self, store: EditedObjectStore) -> None:
        assert store.open_session(1) is store.open_session(1)

    def test_unloaded_positive_id(self, store: EditedObjectStore) -> None:
        assert store.open_session(404) is None
        assert 404 not in store

    def test_new_ids_get_defaults(self, store: EditedObjectStore) -> None:
        session = store.open_session(NEW_OBJECT_ID)
        assert session.object_type == "link"
        assert session.object_name == ""
        assert store.is_modified(NEW_OBJECT_ID) is False

    def test_composite_links(self, store: EditedObjectStore) -> None:
        session = store.open_session(10)
        assert display_order(session.composite.subobjects) == [[1, 2], [3]]

    def test_gapped_layout_is_normalized_and_unmodified(self, object_store: ObjectStore, store) -> None:
        object_store.put(
            PersistedObject(
                object_id=11,
                object_type="composite",
                object_name="Gaps",
                object_data=CompositeData(
                    subobjects=[CompositeSubobject(1, column=0, row=2), CompositeSubobject(2, column=3, row=0)]
                ),
            )
        )
        session = store.open_session(11)
        assert (session.composite.subobjects[2].column, session.composite.subobjects[2].row) == (1, 0)
        assert store.is_modified(11) is False


class TestUpdate:
    def test_shallow_fields(self, store: EditedObjectStore) -> None:
        store.open_session(1)
        assert store.update(1, object_name="Renamed", is_published=True) is True
        assert store.get(1).object_name == "Renamed"
        assert store.is_modified(1)

    def test_data_blocks_merge_one_level(self, store: EditedObjectStore) -> None:
        store.open_session(1)
        store.update(1, link={"show_description_as_link": True})
        session = store.get(1)
        assert session.link.link == "https://example.com"
        assert session.link.show_description_as_link is True

    def test_to_do_items_from_dicts(self, store: EditedObjectStore) -> None:
        store.open_session(-1)
        store.update(-1, object_type="to_do_list", to_do_list={"items": [{"item_text": "Do it", "indent": 1}]})
        item = store.get(-1).to_do_list.items[0]
        assert (item.item_text, item.indent, item.item_state) == ("Do it", 1, "active")

    def test_inactive_block_does_not_count(self, store: EditedObjectStore) -> None:
        store.open_session(1)
        store.update(1, markdown={"raw_text": "draft"})
        assert store.is_modified(1) is False
        store.update(1, object_type="markdown")
        assert store.is_modified(1) is True
        store.update(1, object_type="link")
        assert store.is_modified(1) is False
        assert store.get(1).markdown == MarkdownData(raw_text="draft")

    def test_unknown_fields_raise(self, store: EditedObjectStore) -> None:
        store.open_session(1)
        with pytest.raises(ValueError):
            store.update(1, colour="red")
        with pytest.raises(ValueError):
            store.update(1, link={"href": "x"})
        with pytest.raises(ValueError):
            store.update(1, object_type="video")
        with pytest.raises(ValueError):
            store.update(1, composite={"subobjects": {}})

    def test_missing_session_ignored(self, store: EditedObjectStore) -> None:
        assert store.update(2, object_name="x") is False

    def test_fetch_error_is_not_a_modification(self, store: EditedObjectStore) -> None:
        store.open_session(10)
        store.update_subobject_link(10, 1, fetch_error="Could not fetch object data.")
        assert store.is_modified(10) is False


class TestUpdateTags:
    @pytest.fixture()
    def tagged(self, object_store: ObjectStore, store: EditedObjectStore) -> EditedObjectStore:
        object_store.put(link_object(5, current_tag_ids=[7, 8]))
        store.open_session(5)
        return store

    def test_add_and_remove(self, tagged: EditedObjectStore) -> None:
        tagged.update_tags(5, added=["New", 9], removed=[7])
        session = tagged.get(5)
        assert session.added_tags == ["New", 9]
        assert session.removed_tag_ids == [7]
        assert tagged.is_modified(5)

    def test_re_adding_removed_tag_cancels_removal(self, tagged: EditedObjectStore) -> None:
        tagged.update_tags(5, removed=[7])
        tagged.update_tags(5, added=[7])
        assert tagged.get(5).removed_tag_ids == []
        assert tagged.get(5).added_tags == []
        assert tagged.is_modified(5) is False

    def test_names_compare_case_insensitively(self, tagged: EditedObjectStore) -> None:
        tagged.update_tags(5, added=["Docs", "DOCS", "  "])
        assert tagged.get(5).added_tags == ["Docs"]
        tagged.update_tags(5, removed=["docs"])
        assert tagged.get(5).added_tags == []

    def test_current_tag_not_added_twice(self, tagged: EditedObjectStore) -> None:
        tagged.update_tags(5, added=[8])
        assert tagged.get(5).added_tags == []


class TestSubobjects:
    def test_new_subobject_at_end_of_first_column(self, store: EditedObjectStore) -> None:
        store.open_session(10)
        child_id = store.create_new_subobject_session(10)
        assert child_id < 0
        assert display_order(store.get(10).composite.subobjects) == [[1, 2, child_id], [3]]
        assert child_id in store

    def test_new_subobject_of_empty_composite(self, store: EditedObjectStore) -> None:
        store.open_session(NEW_OBJECT_ID)
        child_id = store.create_new_subobject_session(NEW_OBJECT_ID)
        link = store.get(NEW_OBJECT_ID).composite.subobjects[child_id]
        assert (link.column, link.row) == (0, 0)

    def test_new_subobject_inherits_is_published(self, store: EditedObjectStore) -> None:
        store.open_session(10)
        store.update(10, is_published=True)
        child_id = store.create_new_subobject_session(10)
        assert store.get(child_id).is_published is True
        assert store.is_modified(child_id) is False

    def test_insert_link_is_idempotent(self, store: EditedObjectStore) -> None:
        store.open_session(10)
        assert store.insert_subobject_link(10, 1) is True
        assert len(store.get(10).composite.subobjects) == 3

    @pytest.mark.parametrize("child_id", [10, NEW_OBJECT_ID, -99])
    def test_insert_link_rejects(self, store: EditedObjectStore, child_id: int) -> None:
        store.open_session(10)
        assert store.insert_subobject_link(10, child_id) is False

    def test_update_subobject_link(self, store: EditedObjectStore) -> None:
        store.open_session(10)
        assert store.update_subobject_link(10, 2, is_expanded=False, delete_mode="subobjectOnly")
        link = store.get(10).composite.subobjects[2]
        assert (link.is_expanded, link.delete_mode) == (False, "subobjectOnly")
        assert store.is_modified(10)

    def test_update_subobject_link_validation(self, store: EditedObjectStore) -> None:
        store.open_session(10)
        with pytest.raises(ValueError):
            store.update_subobject_link(10, 2, row=3)
        with pytest.raises(ValueError):
            store.update_subobject_link(10, 2, delete_mode="everything")
        with pytest.raises(ValueError):
            store.update_subobject_link(10, 2, show_description_composite="maybe")
        assert store.update_subobject_link(10, 99, is_expanded=False) is False

    def test_remove_unlinks_everywhere(self, store: EditedObjectStore) -> None:
        store.open_session(10)
        store.open_session(1)
        store.remove([1])
        assert 1 not in store
        assert display_order(store.get(10).composite.subobjects) == [[2], [3]]


class TestCollectGarbage:
    def test_unmodified_invisible_session_removed(self, store: EditedObjectStore) -> None:
        store.open_session(1)
        assert store.collect_garbage(visible_ids=[]) == [1]
        assert 1 not in store

    def test_modified_session_kept(self, store: EditedObjectStore) -> None:
        store.open_session(1)
        store.update(1, object_description="changed")
        assert store.collect_garbage(visible_ids=[]) == []
        assert 1 in store

    def test_visible_session_kept(self, store: EditedObjectStore) -> None:
        store.open_session(1)
        assert store.collect_garbage(visible_ids=[1]) == []

    def test_composite_kept_as_only_holder_of_modified_child(self, object_store, store) -> None:
        object_store.put(composite_object(20, [[10]]))
        for object_id in (20, 10, 1):
            store.open_session(object_id)
        store.update(1, object_name="Changed")
        removed = store.collect_garbage(visible_ids=[])
        # 10 holds modified 1, 20 holds kept 10.
        assert removed == []

    def test_composite_released_when_child_has_another_holder(self, object_store, store) -> None:
        object_store.put(composite_object(20, [[1]]))
        for object_id in (10, 20, 1):
            store.open_session(object_id)
        store.update(1, object_name="Changed")
        store.update(20, object_name="Changed too")
        assert store.collect_garbage(visible_ids=[]) == [10]

    def test_new_child_of_kept_composite_kept(self, store: EditedObjectStore) -> None:
        store.open_session(10)
        child_id = store.create_new_subobject_session(10)
        assert store.collect_garbage(visible_ids=[]) == []
        assert child_id in store


class TestRemapIds:
    def test_sessions_and_link_keys(self, store: EditedObjectStore) -> None:
        store.open_session(10)
        store.open_session(NEW_OBJECT_ID)
        store.update(NEW_OBJECT_ID, object_type="composite")
        first = store.create_new_subobject_session(10)
        second = store.create_new_subobject_session(NEW_OBJECT_ID)
        store.insert_subobject_link(NEW_OBJECT_ID, first)
        move_subobject(store.get(NEW_OBJECT_ID).composite.subobjects, first, OntoCard(second))

        store.remap_ids({first: 100, second: 101, NEW_OBJECT_ID: 102})

        temporary = {first, second, NEW_OBJECT_ID}
        assert not temporary & set(store.ids())
        for object_id in store.ids():
            session = store.get(object_id)
            assert session.object_id == object_id
            assert not temporary & set(session.composite.subobjects)
        assert display_order(store.get(102).composite.subobjects) == [[100, 101]]
        assert 100 in store.get(10).composite.subobjects
