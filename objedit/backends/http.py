"""Persistence backend talking to the objedit HTTP API with ``httpx``."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Optional

import httpx

from objedit.api.schemas import DeleteResult, ObjectsPage, PageQuery, UpsertRequest, UpsertResponse, ViewResponse
from objedit.backends.base import FetchedObjects, ObjectsBackend
from objedit.config import settings
from objedit.errors import BadRequest, FetchError, NotFound, ServerError, ValidationRejected

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Extract a readable message from an error response body."""
    try:
        detail = response.json().get("detail")
    except (json.JSONDecodeError, AttributeError):
        return response.text or f"HTTP {response.status_code}"
    if isinstance(detail, list) and detail:
        # FastAPI / pydantic validation error list: report the first one.
        first = detail[0]
        loc = ".".join(str(part) for part in first.get("loc", []))
        return f"{first.get('msg', 'Invalid request')} ({loc})" if loc else first.get("msg", "")
    return str(detail) if detail else f"HTTP {response.status_code}"


def _raise_for_status(response: httpx.Response) -> None:
    status = response.status_code
    if status < 400:
        return
    message = _error_message(response)
    if status == 404:
        raise NotFound(message)
    if status == 422:
        raise ValidationRejected(message)
    if status < 500:
        raise BadRequest(message)
    raise ServerError(message)


class HttpObjectsBackend(ObjectsBackend):
    """Backend calling the ``/objects`` routes of :mod:`objedit.api`.

    Args:
        base_url: API root.  Defaults to ``settings.api_base_url``.
        client: Optional pre-configured ``httpx.AsyncClient`` (its own
            ``base_url`` is used and the caller keeps ownership).
    """

    def __init__(self, base_url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None) -> None:
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=settings.request_timeout,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def _request(self, method: str, url: str, body: Any) -> Any:
        try:
            response = await self.client.request(method, url, json=body)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise ServerError(f"Failed to fetch data from server: {exc}") from exc
        _raise_for_status(response)
        try:
            return response.json()
        except json.JSONDecodeError as exc:
            raise ServerError("Server returned an invalid response.") from exc

    async def fetch_objects(self, object_ids: Iterable[int]) -> FetchedObjects:
        ids = list(object_ids)
        if not ids:
            return FetchedObjects()
        data = await self._request("POST", "/objects/view", {"object_ids": ids})
        parsed = _parse(ViewResponse, data)
        return FetchedObjects(
            objects=[record.to_persisted() for record in parsed.objects],
            not_found=parsed.not_found,
        )

    async def fetch_page(self, query: PageQuery) -> ObjectsPage:
        data = await self._request("POST", "/objects/get_page_object_ids", query.model_dump())
        return _parse(ObjectsPage, data)

    async def upsert_objects(self, request: UpsertRequest) -> UpsertResponse:
        data = await self._request("POST", "/objects/bulk_upsert", request.model_dump(mode="json"))
        return _parse(UpsertResponse, data)

    async def delete_objects(
        self, object_ids: Iterable[int], delete_subobjects: bool = False
    ) -> DeleteResult:
        body = {"object_ids": list(object_ids), "delete_subobjects": delete_subobjects}
        data = await self._request("DELETE", "/objects", body)
        return _parse(DeleteResult, data)


def _parse(model: type, data: Any) -> Any:
    try:
        return model.model_validate(data)
    except ValueError as exc:
        raise FetchError(f"Server returned an invalid response: {exc}") from exc
