"""Tests for resetting edit sessions to their persisted state."""

from __future__ import annotations

from objedit.editing import NEW_OBJECT_ID, Editor, NewColumnRightOf
from objedit.editing.edited_objects import comparable_state
from objedit.editing.layout import display_order


class TestResetAttributes:
    async def test_existing_object_reverts(self, editor: Editor, make_object) -> None:
        object_id = make_object(name="Original", is_published=True)
        await editor.load_object(object_id)
        editor.update(object_id, object_name="Changed", is_published=False, link={"link": "https://other.org"})
        editor.update_tags(object_id, added=["tag"])

        assert editor.reset(object_id) is True

        session = editor.session(object_id)
        assert session.object_name == "Original"
        assert session.is_published is True
        assert session.link.link == "https://example.com"
        assert session.added_tags == []
        assert editor.is_modified(object_id) is False

    def test_new_object_reverts_to_defaults(self, editor: Editor) -> None:
        editor.open_session(NEW_OBJECT_ID)
        editor.update(NEW_OBJECT_ID, object_name="Draft", object_type="markdown", markdown={"raw_text": "x"})
        editor.reset(NEW_OBJECT_ID)
        session = editor.session(NEW_OBJECT_ID)
        assert (session.object_name, session.object_type, session.markdown.raw_text) == ("", "link", "")

    def test_new_subobject_keeps_inherited_is_published(self, editor: Editor) -> None:
        editor.open_session(NEW_OBJECT_ID)
        editor.update(NEW_OBJECT_ID, object_type="composite", is_published=True)
        child_id = editor.create_new_subobject_session(NEW_OBJECT_ID)
        editor.update(child_id, is_published=False, object_name="x")
        editor.reset(child_id)
        assert editor.session(child_id).is_published is True

    def test_missing_session(self, editor: Editor) -> None:
        assert editor.reset(12345) is False


class TestResetWithoutCascade:
    async def test_subobjects_untouched(self, editor: Editor, make_object, make_composite) -> None:
        a, b = make_object(name="A"), make_object(name="B")
        parent = make_composite([[a, b]], name="Parent")
        await editor.load_object(parent)
        editor.update(parent, object_name="Parent edited", composite={"display_mode": "multicolumn"})
        child_id = editor.create_new_subobject_session(parent)
        editor.update(child_id, object_name="New child")
        editor.update(a, object_name="A edited")
        child_state = comparable_state(editor.session(child_id))
        links_before = {k: vars(v).copy() for k, v in editor.session(parent).composite.subobjects.items()}

        editor.reset(parent, include_subobjects=False)

        session = editor.session(parent)
        assert session.object_name == "Parent"
        assert session.composite.display_mode == "basic"
        assert {k: vars(v) for k, v in session.composite.subobjects.items()} == links_before
        assert comparable_state(editor.session(child_id)) == child_state
        assert editor.session(a).object_name == "A edited"

    def test_new_composite_keeps_subobjects(self, editor: Editor) -> None:
        editor.open_session(NEW_OBJECT_ID)
        editor.update(NEW_OBJECT_ID, object_type="composite", object_name="Root")
        child_id = editor.create_new_subobject_session(NEW_OBJECT_ID)
        editor.reset(NEW_OBJECT_ID)
        assert child_id in editor.session(NEW_OBJECT_ID).composite.subobjects


class TestResetWithCascade:
    async def test_new_unmodified_child_removed(self, editor: Editor, make_object, make_composite) -> None:
        a = make_object()
        parent = make_composite([[a]])
        await editor.load_object(parent)
        child_id = editor.create_new_subobject_session(parent)

        editor.reset(parent, include_subobjects=True)

        assert child_id not in editor.session(parent).composite.subobjects
        assert child_id not in editor.edited_objects
        assert editor.is_modified(parent) is False

    async def test_new_modified_child_kept(self, editor: Editor, make_object, make_composite) -> None:
        a = make_object()
        parent = make_composite([[a]])
        await editor.load_object(parent)
        child_id = editor.create_new_subobject_session(parent)
        editor.update(child_id, object_name="Keep me")
        editor.move_subobject(parent, child_id, NewColumnRightOf(0))

        editor.reset(parent, include_subobjects=True)

        assert display_order(editor.session(parent).composite.subobjects) == [[a, child_id]]
        assert editor.session(child_id).object_name == "Keep me"

    async def test_existing_children_reset_and_links_restored(
        self, editor: Editor, make_object, make_composite
    ) -> None:
        a, b, c = make_object(name="A"), make_object(name="B"), make_object(name="C")
        parent = make_composite([[a, b], [c]])
        await editor.load_object(parent)
        editor.update(a, object_name="A edited")
        editor.update_subobject_link(parent, b, delete_mode="full", is_expanded=False)
        editor.move_subobject(parent, c, NewColumnRightOf(0))
        editor.edited_objects.remove([c])

        editor.reset(parent, include_subobjects=True)

        session = editor.session(parent)
        assert display_order(session.composite.subobjects) == [[a, b], [c]]
        assert session.composite.subobjects[b].delete_mode == "none"
        assert session.composite.subobjects[b].is_expanded is True
        assert editor.session(a).object_name == "A"
        assert editor.is_modified(parent) is False

    async def test_nested_composite_not_cascaded(self, editor: Editor, make_object, make_composite) -> None:
        leaf = make_object()
        inner = make_composite([[leaf]], name="Inner")
        parent = make_composite([[inner]])
        await editor.load_object(parent)
        await editor.load_object(inner)
        grandchild = editor.create_new_subobject_session(inner)

        editor.reset(parent, include_subobjects=True)

        assert grandchild in editor.session(inner).composite.subobjects
