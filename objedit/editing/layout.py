"""Column / row grid of a composite object's direct children.

The grid is read from a ``{child_id: SubobjectLink}`` map as an ordered list
of columns, each an ordered list of child ids.  Moves are computed on that
list form and the resulting dense ``column`` / ``row`` values are written
back into the links, so after any move:

* rows inside every column are exactly ``0..n-1``;
* columns with at least one member are exactly ``0..m-1``.

Only positions are touched; ``is_expanded`` and the other per-card fields
are kept as they are.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from objedit.editing.models import SubobjectLink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OntoCard:
    """Drop onto another card: take its place, pushing it and the cards below down."""

    other_id: int


@dataclass(frozen=True)
class OntoColumnEnd:
    """Append to the end of a column.  ``column`` equal to the column count opens a new last column."""

    column: int


@dataclass(frozen=True)
class NewColumnLeftOf:
    column: int


@dataclass(frozen=True)
class NewColumnRightOf:
    column: int


MoveTarget = Union[OntoCard, OntoColumnEnd, NewColumnLeftOf, NewColumnRightOf]


def display_order(subobjects: dict[int, SubobjectLink]) -> list[list[int]]:
    """Return child ids as a list of columns sorted by ``(column, row)``."""
    columns: dict[int, list[tuple[int, int]]] = {}
    for subobject_id, link in subobjects.items():
        columns.setdefault(link.column, []).append((link.row, subobject_id))
    return [[sid for _, sid in sorted(columns[c])] for c in sorted(columns)]


def _write_back(subobjects: dict[int, SubobjectLink], grid: list[list[int]]) -> None:
    for column, ids in enumerate(grid):
        for row, subobject_id in enumerate(ids):
            link = subobjects[subobject_id]
            link.column, link.row = column, row


def normalize(subobjects: dict[int, SubobjectLink]) -> bool:
    """Re-densify columns and rows, keeping the display order.

    Returns ``True`` if any position was changed.
    """
    grid = display_order(subobjects)
    changed = any(
        (subobjects[sid].column, subobjects[sid].row) != (column, row)
        for column, ids in enumerate(grid)
        for row, sid in enumerate(ids)
    )
    if changed:
        _write_back(subobjects, grid)
    return changed


def end_position(subobjects: dict[int, SubobjectLink], column: int = 0) -> tuple[int, int]:
    """Position after the last card of *column* (``(0, 0)`` for an empty grid)."""
    grid = display_order(subobjects)
    if column >= len(grid):
        return (len(grid), 0)
    return (column, len(grid[column]))


def move_subobject(subobjects: dict[int, SubobjectLink], child_id: int, target: MoveTarget) -> bool:
    """Move *child_id* to *target* and re-flow the grid.

    Returns ``False`` without touching *subobjects* when the move cannot be
    resolved (unknown card, card onto itself, column out of range) or when
    it would leave the grid unchanged.
    """
    if child_id not in subobjects:
        logger.debug("Move rejected: %d is not a subobject", child_id)
        return False

    grid = display_order(subobjects)
    moved = [list(ids) for ids in grid]
    source = next(i for i, ids in enumerate(grid) if child_id in ids)
    # Empty columns are kept until the end so that target indexes stay valid.
    moved[source].remove(child_id)

    if isinstance(target, OntoCard):
        if target.other_id == child_id or target.other_id not in subobjects:
            logger.debug("Move rejected: invalid target card %r", target.other_id)
            return False
        column = next(i for i, ids in enumerate(moved) if target.other_id in ids)
        moved[column].insert(moved[column].index(target.other_id), child_id)
    elif isinstance(target, OntoColumnEnd):
        if not 0 <= target.column <= len(grid):
            logger.debug("Move rejected: column %d out of range", target.column)
            return False
        if target.column == len(grid):
            moved.append([child_id])
        else:
            moved[target.column].append(child_id)
    elif isinstance(target, (NewColumnLeftOf, NewColumnRightOf)):
        if not 0 <= target.column < len(grid):
            logger.debug("Move rejected: column %d out of range", target.column)
            return False
        index = target.column if isinstance(target, NewColumnLeftOf) else target.column + 1
        moved.insert(index, [child_id])
    else:
        raise ValueError(f"Unknown move target {target!r}")

    moved = [ids for ids in moved if ids]
    if moved == grid:
        logger.debug("Move of %d is a no-op", child_id)
        return False
    _write_back(subobjects, moved)
    return True
