"""Composite commands: create composites and edit their subobject layout."""

from __future__ import annotations

from typing import List, Optional

import typer

from cli.context import fail, load_or_exit, open_editor, run, save_or_exit
from cli.rendering import render_layout
from objedit.editing import NEW_OBJECT_ID, Editor, NewColumnLeftOf, NewColumnRightOf, OntoCard, OntoColumnEnd
from objedit.editing.layout import display_order

composite_app = typer.Typer(help="Create composite objects and arrange their subobjects.", no_args_is_help=True)


def _echo_layout(editor: Editor, object_id: int) -> None:
    session = editor.session(object_id)
    names = {
        i: editor.session(i).object_name for i in session.composite.subobjects if editor.session(i) is not None
    }
    for line in render_layout(display_order(session.composite.subobjects), names):
        typer.echo(line)


@composite_app.command("new")
def composite_new(
    name: str = typer.Argument(..., help="Object name."),
    child: Optional[List[int]] = typer.Option(None, "--child", help="Existing subobject id (repeatable)."),
    display_mode: str = typer.Option("basic", "--display-mode", help="basic | grouped_links | multicolumn | chapters"),
) -> None:
    """Create a composite object from existing objects."""
    with open_editor() as editor:
        editor.open_session(NEW_OBJECT_ID)
        editor.update(
            NEW_OBJECT_ID,
            object_type="composite",
            object_name=name,
            composite={"display_mode": display_mode},
        )
        for child_id in child or []:
            if not run(editor.attach_existing_subobject(NEW_OBJECT_ID, child_id)):
                fail(f"Could not attach object {child_id}.")
        object_id = save_or_exit(editor, NEW_OBJECT_ID)
        typer.echo(f"✅ Created composite object: {name} ({object_id})")
        _echo_layout(editor, object_id)


@composite_app.command("attach")
def composite_attach(
    parent_id: int = typer.Argument(..., help="Composite object id."),
    child_id: int = typer.Argument(..., help="Existing object to add."),
) -> None:
    """Add an existing object to the end of the first column."""
    with open_editor() as editor:
        load_or_exit(editor, parent_id)
        if not run(editor.attach_existing_subobject(parent_id, child_id)):
            link = editor.edited_objects.subobject_link(parent_id, child_id)
            fail(link.fetch_error if link and link.fetch_error else f"Could not attach object {child_id}.")
        save_or_exit(editor, parent_id)
        typer.echo(f"🔗 Attached {child_id} to {parent_id}")
        _echo_layout(editor, parent_id)


@composite_app.command("move")
def composite_move(
    parent_id: int = typer.Argument(..., help="Composite object id."),
    child_id: int = typer.Argument(..., help="Subobject to move."),
    onto: Optional[int] = typer.Option(None, "--onto", help="Take the place of this subobject."),
    column_end: Optional[int] = typer.Option(None, "--column-end", help="Append to this column."),
    new_column_left: Optional[int] = typer.Option(None, "--new-column-left", help="New column left of this one."),
    new_column_right: Optional[int] = typer.Option(None, "--new-column-right", help="New column right of this one."),
) -> None:
    """Move a subobject inside the composite's column grid."""
    targets = [
        OntoCard(onto) if onto is not None else None,
        OntoColumnEnd(column_end) if column_end is not None else None,
        NewColumnLeftOf(new_column_left) if new_column_left is not None else None,
        NewColumnRightOf(new_column_right) if new_column_right is not None else None,
    ]
    targets = [t for t in targets if t is not None]
    if len(targets) != 1:
        fail("Pass exactly one of --onto, --column-end, --new-column-left, --new-column-right.")

    with open_editor() as editor:
        load_or_exit(editor, parent_id)
        if not editor.move_subobject(parent_id, child_id, targets[0]):
            typer.echo("Layout unchanged.")
        else:
            save_or_exit(editor, parent_id)
            typer.echo(f"↔️  Moved {child_id}")
        _echo_layout(editor, parent_id)


@composite_app.command("remove")
def composite_remove(
    parent_id: int = typer.Argument(..., help="Composite object id."),
    child_id: int = typer.Argument(..., help="Subobject to remove."),
    full: bool = typer.Option(False, "--full", help="Delete the subobject itself, not just the link."),
) -> None:
    """Remove a subobject from a composite."""
    with open_editor() as editor:
        load_or_exit(editor, parent_id)
        mode = "full" if full else "subobjectOnly"
        if not editor.update_subobject_link(parent_id, child_id, delete_mode=mode):
            fail(f"Object {child_id} is not a subobject of {parent_id}.")
        save_or_exit(editor, parent_id)
        typer.echo(f"🗑️  Removed {child_id} from {parent_id}" + (" and deleted it" if full else ""))
