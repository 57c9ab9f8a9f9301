from batepapo.database import SQLiteStore
from batepapo.service import ChatService

START = 1_700_000_000.0


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def make_service(clock=None, ttl=10, sweep_interval=15, default_limit=100, store=None):
    clock = clock or FakeClock()
    return ChatService(
        store if store is not None else SQLiteStore(":memory:"),
        ttl=ttl,
        sweep_interval=sweep_interval,
        default_limit=default_limit,
        clock=clock,
    )
