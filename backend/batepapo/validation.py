"""Schema checks for client payloads.

Every payload goes through :func:`batepapo.sanitizer.sanitize` first, then
through the matching pydantic schema. All field violations are reported
together, in field declaration order.
"""

from typing import Any, Dict, List, Type

import pydantic
from pydantic import BaseModel

from .errors import ValidationError
from .models import MessageIn, ParticipantIn
from .sanitizer import sanitize

SCHEMAS: Dict[str, Type[BaseModel]] = {
    "participant": ParticipantIn,
    "message": MessageIn,
}


def format_errors(exc) -> List[str]:
    """Turn pydantic error entries into '<field>: <message>' strings."""
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "body"
        messages.append(f"{field}: {error['msg']}")
    return messages


def validate(kind: str, payload: Any) -> BaseModel:
    """Validate an already sanitized payload against the ``kind`` schema."""
    schema = SCHEMAS[kind]
    if not isinstance(payload, dict):
        raise ValidationError(["body: must be a JSON object"])
    try:
        return schema.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ValidationError(format_errors(e))


def clean_and_validate(kind: str, payload: Any) -> BaseModel:
    if isinstance(payload, dict):
        payload = sanitize(payload)
    return validate(kind, payload)
