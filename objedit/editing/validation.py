"""Local validation of objects before they are sent for saving.

Every compiled object is checked against the same pydantic models the API
validates requests with; the first pydantic error is turned into one of the
messages below.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from objedit.api.schemas import UpsertedObject, upserted_object_adapter
from objedit.errors import ObjectValidationError

NAME_REQUIRED = "Object name is required."
NAME_TOO_LONG = "Object name can't be longer than 255 chars."
URL_REQUIRED = "Valid URL is required."
MARKDOWN_REQUIRED = "Markdown text is required."
TO_DO_LIST_REQUIRED = "At least one item is required in the to-do list."
COMPOSITE_REQUIRED = "Composite object must have at least one non-deleted subobject."


def error_message(error: dict[str, Any]) -> str:
    """Readable message for one pydantic error dict."""
    loc = tuple(error.get("loc", ()))
    if "object_name" in loc:
        return NAME_TOO_LONG if error.get("type") == "string_too_long" else NAME_REQUIRED
    if "object_data" in loc:
        data_loc = loc[loc.index("object_data") + 1:]
        if data_loc == ("link",):
            return URL_REQUIRED
        if data_loc == ("raw_text",):
            return MARKDOWN_REQUIRED
        if data_loc == ("items",):
            return TO_DO_LIST_REQUIRED
    field = ".".join(str(part) for part in loc[1:])
    return f"{error.get('msg', 'Invalid value')} ({field})" if field else error.get("msg", "Invalid value")


def with_object_suffix(message: str, object_id: int, object_name: str) -> str:
    """Point a message at a subobject of the object being saved."""
    return f'{message} [object "{object_name}" ({object_id})]'


def validate_object(payload: dict[str, Any]) -> UpsertedObject:
    """Validate one upserted object payload.

    Raises:
        ObjectValidationError: With the message of the first failure.
    """
    try:
        return upserted_object_adapter.validate_python(payload)
    except ValidationError as exc:
        raise ObjectValidationError(error_message(exc.errors()[0]), payload.get("object_id")) from exc
