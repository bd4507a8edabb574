"""Shared fixtures for engine and API tests."""

import pytest

from config.settings import load_game_config
from game.engine import GameEngine
from game.fairness import FairnessCommitment, compute_crash_multiplier


class RecordingBroadcaster:
    """Stands in for the WebSocket manager and records every emission."""

    def __init__(self):
        self.events = []
        self.direct = []

    async def broadcast(self, event, data):
        self.events.append((event, data))

    async def send_to(self, connection_id, event, data):
        self.direct.append((connection_id, event, data))

    def of(self, event):
        return [data for name, data in self.events if name == event]

    def names(self):
        return [name for name, _ in self.events]

    def sent(self, connection_id, event):
        return [data for cid, name, data in self.direct if cid == connection_id and name == event]


class FailingBroadcaster(RecordingBroadcaster):
    async def broadcast(self, event, data):
        await super().broadcast(event, data)
        raise ConnectionError("transport down")


class ManualTimer:
    """Phase timer that only fires when the test says so."""

    def __init__(self):
        self.delay = None
        self.callback = None
        self.scheduled = 0
        self.cancelled = 0

    @property
    def pending(self):
        return self.callback is not None

    def schedule(self, delay, callback):
        self.cancel()
        self.delay = delay
        self.callback = callback
        self.scheduled += 1

    def cancel(self):
        if self.callback is not None:
            self.cancelled += 1
        self.delay = None
        self.callback = None

    async def fire(self):
        assert self.callback is not None, "no timer pending"
        callback = self.callback
        self.delay = None
        self.callback = None
        await callback()


def fixed_oracle(value):
    def oracle(secret, sequence_number):
        oracle.calls.append((secret, sequence_number))
        return value
    oracle.calls = []
    return oracle


ZERO_SECRET = bytes(32)


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def timer():
    return ManualTimer()


@pytest.fixture
def make_engine(broadcaster, timer):
    def factory(crash_at=3.2, **overrides):
        config = load_game_config({
            "countdown_seconds": 3,
            "multiplier_increment": "0.5",
            "starting_balance": "1000",
            **overrides,
        })
        return GameEngine(
            broadcaster,
            config,
            fairness=FairnessCommitment(token_source=lambda n: ZERO_SECRET),
            timer=timer,
            crash_oracle=fixed_oracle(crash_at) if crash_at is not None else compute_crash_multiplier,
        )
    return factory


async def run_countdown(engine, timer):
    """Fire countdown ticks until the round is running (or crashed on entry)."""
    while engine.round.phase.value == "waiting":
        await timer.fire()


async def join(engine, connection_id, name="player"):
    await engine.register_participant(connection_id)
    if name:
        await engine.set_name(connection_id, name)
    return engine.participants.get(connection_id)
