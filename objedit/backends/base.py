"""Abstract persistence capability consumed by the editing engine.

All backends share a common async interface.  Failures are reported by
raising a :class:`~objedit.errors.FetchError` subclass (``NotFound``,
``BadRequest``, ``ServerError``, ``ValidationRejected``); objects which do
not exist are reported in result fields rather than raised, so callers can
treat a missing object on delete as already deleted.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable

from objedit.api.schemas import DeleteResult, ObjectsPage, PageQuery, UpsertRequest, UpsertResponse
from objedit.db.models import PersistedObject


@dataclass
class FetchedObjects:
    objects: list[PersistedObject] = field(default_factory=list)
    not_found: list[int] = field(default_factory=list)


class ObjectsBackend(ABC):
    """Abstract base class for a persistence backend."""

    @abstractmethod
    async def fetch_objects(self, object_ids: Iterable[int]) -> FetchedObjects:
        """Return attributes, tags & data of existing *object_ids*."""

    @abstractmethod
    async def fetch_page(self, query: PageQuery) -> ObjectsPage:
        """Return one page of object ids matching *query*."""

    @abstractmethod
    async def upsert_objects(self, request: UpsertRequest) -> UpsertResponse:
        """Apply a compiled save request and return the saved objects."""

    @abstractmethod
    async def delete_objects(
        self, object_ids: Iterable[int], delete_subobjects: bool = False
    ) -> DeleteResult:
        """Delete objects.  Ids which do not exist go to ``not_found``."""
