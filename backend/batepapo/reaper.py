import logging
import threading
import time
from typing import Callable, List, Optional

from .database import ParticipantCollection
from .events import EventEmitter
from .models import Participant

logger = logging.getLogger(__name__)

# A participant silent for longer than this is considered gone
ONLINE_TIMEOUT = 10
SWEEP_INTERVAL = 15


class PresenceReaper(threading.Thread):
    """Periodically evicts silent participants and announces their departure."""

    def __init__(
        self,
        participants: ParticipantCollection,
        emitter: EventEmitter,
        ttl: float = ONLINE_TIMEOUT,
        interval: float = SWEEP_INTERVAL,
        clock: Callable[[], float] = time.time,
    ):
        threading.Thread.__init__(self, name="presence-reaper", daemon=True)
        self.participants = participants
        self.emitter = emitter
        self.ttl = ttl
        self.interval = interval
        self.clock = clock
        self._stopped = threading.Event()

    def sweep(self) -> List[Participant]:
        """Run one eviction cycle and return the participants removed."""
        cutoff = int((self.clock() - self.ttl) * 1000)
        removed = self.participants.delete_stale(cutoff)
        if not removed:
            return removed

        names = [participant.name for participant in removed]
        for name in names:
            logger.info(f"User {name} timed out")
        try:
            self.emitter.left(names)
        except Exception as e:
            logger.error(f"Departure events lost for {', '.join(names)}: {e}")
        return removed

    def run(self):
        logger.info(f"Presence reaper started (ttl={self.ttl}s, interval={self.interval}s)")
        while not self._stopped.wait(self.interval):
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Sweep failed, retrying next tick: {e}")
        logger.info("Presence reaper stopped")

    def stop(self, timeout: Optional[float] = None):
        self._stopped.set()
        if self.is_alive():
            self.join(timeout)
