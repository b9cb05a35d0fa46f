"""Temporary identifiers of objects which have not been saved yet."""

from __future__ import annotations

# Scratch slot of the object being created at the top level.  It is re-keyed
# to the permanent id after its first save.
NEW_OBJECT_ID = 0


class IdentifierAllocator:
    """Issues process-unique negative ids, starting at ``-1``."""

    def __init__(self) -> None:
        self._last = NEW_OBJECT_ID

    def next_id(self) -> int:
        self._last -= 1
        return self._last

    @staticmethod
    def is_temporary(object_id: int) -> bool:
        return object_id <= NEW_OBJECT_ID
