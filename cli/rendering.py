"""Plain-text rendering of objects for the CLI."""

from __future__ import annotations

from objedit.db.models import CompositeData, LinkData, MarkdownData, PersistedObject, ToDoListData
from objedit.editing.layout import display_order
from objedit.editing.models import SubobjectLink

_ITEM_MARKERS = {"active": " ", "completed": "x", "optional": "?", "cancelled": "-"}


def render_object(obj: PersistedObject, names: dict[int, str] | None = None) -> str:
    """Return a multi-line description of *obj*.

    *names* maps subobject ids to names for composite objects.
    """
    names = names or {}
    lines = [
        f"{obj.object_name}  [{obj.object_type}]  ({obj.object_id})",
        f"  published: {'yes' if obj.is_published else 'no'}   tags: {obj.current_tag_ids or '-'}",
    ]
    if obj.object_description:
        lines.append(f"  {obj.object_description}")

    data = obj.object_data
    if isinstance(data, LinkData):
        lines.append(f"  → {data.link}")
    elif isinstance(data, MarkdownData):
        lines.extend(f"  | {line}" for line in data.raw_text.splitlines())
    elif isinstance(data, ToDoListData):
        for item in data.items:
            indent = "  " * item.indent
            lines.append(f"  {indent}[{_ITEM_MARKERS.get(item.item_state, ' ')}] {item.item_text}")
    elif isinstance(data, CompositeData):
        lines.append(f"  display mode: {data.display_mode}")
        links = {so.subobject_id: SubobjectLink.from_persisted(so) for so in data.subobjects}
        lines.extend(render_layout(display_order(links), names))
    return "\n".join(lines)


def render_layout(grid: list[list[int]], names: dict[int, str]) -> list[str]:
    if not grid:
        return ["  (no subobjects)"]
    lines = []
    for column, ids in enumerate(grid):
        lines.append(f"  column {column}:")
        lines.extend(f"    {row}. {names.get(i, '?')} ({i})" for row, i in enumerate(ids))
    return lines
