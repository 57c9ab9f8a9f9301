import logging
from typing import Any, List, Optional

from .database import MessageCollection
from .errors import (
    Forbidden,
    NotFound,
    RecipientNotFound,
    Unauthorized,
    ValidationError,
)
from .events import EventEmitter
from .models import BROADCAST, STATUS, ChatEvent
from .registry import ParticipantRegistry
from .validation import clean_and_validate

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100


def parse_limit(limit: Any, default: int) -> int:
    """Accept None (use default) or a positive integer, possibly as text."""
    if limit is None:
        return default
    if isinstance(limit, bool):
        raise ValidationError(["limit: must be a positive integer"])
    try:
        value = int(limit)
    except (TypeError, ValueError):
        raise ValidationError(["limit: must be a positive integer"])
    if value <= 0 or (isinstance(limit, float) and value != limit):
        raise ValidationError(["limit: must be a positive integer"])
    return value


class MessageStore:
    """Chat log: posting, visibility-scoped reads and owner-only edits."""

    def __init__(
        self,
        messages: MessageCollection,
        registry: ParticipantRegistry,
        emitter: EventEmitter,
        default_limit: int = DEFAULT_LIMIT,
    ):
        self.messages = messages
        self.registry = registry
        self.emitter = emitter
        self.default_limit = default_limit

    def _require_user(self, user: str):
        if not self.registry.exists(user):
            raise Unauthorized(f"User is not in the room: {user}")

    def post(self, sender: str, payload: Any) -> ChatEvent:
        self._require_user(sender)
        data = clean_and_validate("message", payload)
        if data.to != BROADCAST and not self.registry.exists(data.to):
            raise RecipientNotFound(f"Recipient is not in the room: {data.to}")
        event = self.emitter.append(sender, data.to, data.text, data.type)
        logger.info(f"Message {event.id} from {sender} to {data.to} ({data.type})")
        return event

    def list_for(self, user: str, limit: Optional[Any] = None) -> List[ChatEvent]:
        self._require_user(user)
        limit = parse_limit(limit, self.default_limit)
        return self.messages.find_visible(user, limit)

    def _owned_event(self, message_id: str, requester: str) -> ChatEvent:
        event = self.messages.find_one(message_id)
        if event is None:
            raise NotFound(f"Message not found: {message_id}")
        if event.kind == STATUS:
            raise Forbidden("Status messages cannot be changed")
        self._require_user(requester)
        if event.sender != requester:
            raise Forbidden(f"Message {message_id} does not belong to {requester}")
        return event

    def update(self, message_id: str, requester: str, payload: Any) -> ChatEvent:
        event = self._owned_event(message_id, requester)
        data = clean_and_validate("message", payload)
        if not self.messages.update_text(message_id, data.text):
            raise NotFound(f"Message not found: {message_id}")
        logger.info(f"Message {message_id} edited by {requester}")
        return event.model_copy(update={"text": data.text})

    def delete(self, message_id: str, requester: str) -> None:
        self._owned_event(message_id, requester)
        if not self.messages.delete_one(message_id):
            raise NotFound(f"Message not found: {message_id}")
        logger.info(f"Message {message_id} deleted by {requester}")
