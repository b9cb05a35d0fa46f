"""Object commands: list, show, create and delete objects."""

from __future__ import annotations

from typing import List, Optional

import typer

from cli.context import fail, load_or_exit, open_editor, run, save_or_exit
from cli.rendering import render_object
from objedit.api.schemas import PageQuery
from objedit.editing import NEW_OBJECT_ID

objects_app = typer.Typer(help="List, show, create and delete objects.", no_args_is_help=True)


@objects_app.command("list")
def objects_list(
    page: int = typer.Option(1, "--page", min=1, help="Page number."),
    per_page: int = typer.Option(20, "--per-page", min=1, max=500, help="Objects per page."),
    object_type: Optional[List[str]] = typer.Option(None, "--type", help="Filter by object type (repeatable)."),
    filter_text: Optional[str] = typer.Option(None, "--filter", help="Filter by name."),
) -> None:
    """List objects, most recently modified first."""
    query = PageQuery(page=page, items_per_page=per_page, filter_text=filter_text, object_types=object_type or None)
    with open_editor() as editor:
        result = run(editor.backend.fetch_page(query))
        if not result.object_ids:
            typer.echo("No objects found.")
            return
        fetched = run(editor.backend.fetch_objects(result.object_ids))
        typer.echo(f"Objects (page {page}, {result.total_items} total):")
        for obj in fetched.objects:
            typer.echo(f"  {obj.object_id}\t[{obj.object_type}]\t{obj.object_name}")


@objects_app.command("show")
def objects_show(object_id: int = typer.Argument(..., help="Object id.")) -> None:
    """Show an object and, for composites, its subobject layout."""
    with open_editor() as editor:
        load_or_exit(editor, object_id)
        obj = editor.object_store.get(object_id)
        names = {i: editor.object_store.get(i).object_name for i in obj.subobject_ids() if i in editor.object_store}
        typer.echo(render_object(obj, names))


def _create(object_type: str, name: str, description: str, published: bool, tags: List[str], **data) -> None:
    with open_editor() as editor:
        editor.open_session(NEW_OBJECT_ID)
        editor.update(
            NEW_OBJECT_ID,
            object_type=object_type,
            object_name=name,
            object_description=description,
            is_published=published,
            **data,
        )
        editor.update_tags(NEW_OBJECT_ID, added=tags)
        object_id = save_or_exit(editor, NEW_OBJECT_ID)
    typer.echo(f"✅ Created {object_type} object: {name} ({object_id})")


@objects_app.command("new-link")
def objects_new_link(
    name: str = typer.Argument(..., help="Object name."),
    url: str = typer.Option(..., "--url", help="Link URL."),
    description: str = typer.Option("", "--description", help="Object description."),
    published: bool = typer.Option(False, "--published", help="Publish the object."),
    tag: Optional[List[str]] = typer.Option(None, "--tag", help="Tag name (repeatable)."),
) -> None:
    """Create a link object."""
    _create("link", name, description, published, tag or [], link={"link": url})


@objects_app.command("new-markdown")
def objects_new_markdown(
    name: str = typer.Argument(..., help="Object name."),
    text: str = typer.Option(..., "--text", help="Markdown text."),
    description: str = typer.Option("", "--description", help="Object description."),
    published: bool = typer.Option(False, "--published", help="Publish the object."),
    tag: Optional[List[str]] = typer.Option(None, "--tag", help="Tag name (repeatable)."),
) -> None:
    """Create a markdown object."""
    _create("markdown", name, description, published, tag or [], markdown={"raw_text": text})


@objects_app.command("delete")
def objects_delete(
    object_id: int = typer.Argument(..., help="Object id."),
    with_subobjects: bool = typer.Option(False, "--with-subobjects", help="Also delete direct subobjects."),
) -> None:
    """Delete an object.  Deleting an id which does not exist succeeds."""
    if object_id <= 0:
        fail("Object id must be positive.")
    with open_editor() as editor:
        result = run(editor.delete(object_id, delete_subobjects=with_subobjects))
        if not result.ok:
            fail(f"Delete failed: {result.error}")
    typer.echo(f"🗑️  Deleted object {object_id}")
