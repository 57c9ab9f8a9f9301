import time
from datetime import datetime
from typing import Callable, Iterable, List, Tuple

from .database import MessageCollection
from .models import BROADCAST, JOIN_TEXT, LEAVE_TEXT, STATUS, ChatEvent

TIME_FORMAT = "%H:%M:%S"


class EventEmitter:
    """Builds chat events with a uniform shape and stores them."""

    def __init__(self, messages: MessageCollection, clock: Callable[[], float] = time.time):
        self.messages = messages
        self.clock = clock

    def _stamp(self) -> str:
        return datetime.fromtimestamp(self.clock()).strftime(TIME_FORMAT)

    def _build(self, sender: str, to: str, text: str, kind: str, stamp: str) -> dict:
        return {"from": sender, "to": to, "text": text, "type": kind, "time": stamp}

    def append(self, sender: str, to: str, text: str, kind: str) -> ChatEvent:
        return self.messages.insert_one(self._build(sender, to, text, kind, self._stamp()))

    def append_many(self, entries: Iterable[Tuple[str, str, str, str]]) -> List[ChatEvent]:
        stamp = self._stamp()
        return self.messages.insert_many(
            [self._build(sender, to, text, kind, stamp) for sender, to, text, kind in entries]
        )

    def joined(self, name: str) -> ChatEvent:
        return self.append(name, BROADCAST, JOIN_TEXT, STATUS)

    def left(self, names: Iterable[str]) -> List[ChatEvent]:
        return self.append_many((name, BROADCAST, LEAVE_TEXT, STATUS) for name in names)
