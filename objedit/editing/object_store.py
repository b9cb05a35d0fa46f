"""Last-known persisted copies of objects, keyed by permanent id."""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, Optional

from objedit.db.models import CompositeData, PersistedObject

logger = logging.getLogger(__name__)


class ObjectStore:
    """Flat map of :class:`PersistedObject` records.

    Entries are replaced wholesale after a load or a successful save; the
    engine never edits a stored record in place, except for dropping links
    to deleted objects.
    """

    def __init__(self) -> None:
        self._objects: dict[int, PersistedObject] = {}

    def __contains__(self, object_id: object) -> bool:
        return object_id in self._objects

    def __len__(self) -> int:
        return len(self._objects)

    def __iter__(self) -> Iterator[int]:
        return iter(self._objects)

    def get(self, object_id: int) -> Optional[PersistedObject]:
        return self._objects.get(object_id)

    def put(self, obj: PersistedObject) -> None:
        if obj.object_id <= 0:
            raise ValueError(f"Persisted objects need a permanent id, got {obj.object_id!r}")
        self._objects[obj.object_id] = obj

    def put_many(self, objects: Iterable[PersistedObject]) -> None:
        for obj in objects:
            self.put(obj)

    def remove(self, object_ids: Iterable[int]) -> list[int]:
        """Drop objects and every persisted link pointing at them."""
        ids = set(object_ids)
        removed = [i for i in ids if self._objects.pop(i, None) is not None]
        for obj in self._objects.values():
            data = obj.object_data
            if isinstance(data, CompositeData) and any(so.subobject_id in ids for so in data.subobjects):
                data.subobjects = [so for so in data.subobjects if so.subobject_id not in ids]
        if removed:
            logger.debug("Removed persisted objects %s", sorted(removed))
        return removed
