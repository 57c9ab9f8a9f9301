import logging
import time
from typing import Any, Callable, List, Optional

from .database import ParticipantCollection
from .errors import Conflict, DuplicateKey, NotFound
from .events import EventEmitter
from .models import Participant
from .validation import clean_and_validate

logger = logging.getLogger(__name__)


class ParticipantRegistry:
    """Who is online, and when each participant was last heard from."""

    def __init__(
        self,
        participants: ParticipantCollection,
        emitter: EventEmitter,
        clock: Callable[[], float] = time.time,
    ):
        self.participants = participants
        self.emitter = emitter
        self.clock = clock

    def now(self) -> int:
        """Current time in milliseconds since the epoch."""
        return int(self.clock() * 1000)

    def register(self, name: str) -> Participant:
        participant = Participant(name=name, last_seen=self.now())
        try:
            self.participants.insert_one(participant)
        except DuplicateKey:
            logger.info(f"Registration refused, name taken: {name}")
            raise Conflict(f"Name already in use: {name}")
        self.emitter.joined(name)
        logger.info(f"User {name} joined")
        return participant

    def register_payload(self, payload: Any) -> Participant:
        data = clean_and_validate("participant", payload)
        return self.register(data.name)

    def list(self) -> List[Participant]:
        return self.participants.find()

    def get(self, name: str) -> Optional[Participant]:
        return self.participants.find_one(name)

    def exists(self, name: str) -> bool:
        return self.get(name) is not None

    def heartbeat(self, name: str) -> Participant:
        last_seen = self.now()
        if not self.participants.touch(name, last_seen):
            raise NotFound(f"User not found: {name}")
        logger.debug(f"Heartbeat from {name}")
        return Participant(name=name, last_seen=last_seen)
