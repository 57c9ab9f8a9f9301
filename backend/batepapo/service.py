import logging
import time
from typing import Callable

from .config_manager import ConfigManager
from .database import Store, open_store
from .events import EventEmitter
from .messages import DEFAULT_LIMIT, MessageStore
from .reaper import ONLINE_TIMEOUT, SWEEP_INTERVAL, PresenceReaper
from .registry import ParticipantRegistry

logger = logging.getLogger(__name__)


class ChatService:
    """Owns the store and every component built on top of it.

    One instance is created at startup and handed to the HTTP layer.
    ``start()`` launches the presence reaper, ``close()`` stops it and
    releases the store.
    """

    def __init__(
        self,
        store: Store,
        ttl: float = ONLINE_TIMEOUT,
        sweep_interval: float = SWEEP_INTERVAL,
        default_limit: int = DEFAULT_LIMIT,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.emitter = EventEmitter(store.messages, clock)
        self.registry = ParticipantRegistry(store.participants, self.emitter, clock)
        self.messages = MessageStore(store.messages, self.registry, self.emitter, default_limit)
        self.reaper = PresenceReaper(
            store.participants, self.emitter, ttl=ttl, interval=sweep_interval, clock=clock
        )

    @classmethod
    def from_config(cls, config: ConfigManager) -> "ChatService":
        presence = config.get_presence_config()
        return cls(
            open_store(config.get_storage_config()),
            ttl=presence.get("ttl_seconds", ONLINE_TIMEOUT),
            sweep_interval=presence.get("sweep_interval_seconds", SWEEP_INTERVAL),
            default_limit=config.get_messages_config().get("default_limit", DEFAULT_LIMIT),
        )

    def start(self):
        if self.reaper.ident is None:
            self.reaper.start()

    def close(self):
        self.reaper.stop(timeout=5.0)
        self.store.close()
        logger.info("Chat service closed")
