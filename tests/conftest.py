"""
Pytest configuration and fixtures for the presence runtime tests.

Unit tests never touch the network: the Discord session is replaced by
FakeSession through the supervisor's session_factory seam.
"""

from __future__ import annotations

import asyncio
import os
import time
from typing import Callable, List, Optional

import pytest

# Console-only logging for tests (no logs/ files)
os.environ.setdefault("LOG_FILE", "0")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from services.discord.events import LifecycleEvent, LifecycleEventKind  # noqa: E402
from shared.config.presence import ActivityConfig, PresenceConfig  # noqa: E402


# ============================================================================
# FAKE SESSION TRANSPORT
# ============================================================================


class FakeSession:
    """In-memory stand-in for DiscordSession."""

    def __init__(
        self,
        events: "asyncio.Queue[LifecycleEvent]",
        *,
        fail_login: bool = False,
        emit_ready: bool = True,
        presence_error: Optional[Exception] = None,
    ):
        self.events = events
        self.fail_login = fail_login
        self.emit_ready = emit_ready
        self.presence_error = presence_error

        self.token: Optional[str] = None
        self.presence_calls: List[tuple] = []
        self.close_calls: int = 0
        self._gone = asyncio.Event()

    async def login(self, token: str) -> None:
        self.token = token
        if self.fail_login:
            raise RuntimeError("401 Unauthorized: improper token")

    async def connect(self) -> None:
        if self.emit_ready:
            self.emit(LifecycleEventKind.READY, "presence-bot#0001 (id=1) guilds=2")
        await self._gone.wait()

    async def change_presence(self, *, status, activity) -> None:
        if self.presence_error is not None:
            raise self.presence_error
        self.presence_calls.append((status, activity))

    async def close(self) -> None:
        self.close_calls += 1
        self._gone.set()

    def emit(self, kind: LifecycleEventKind, detail: Optional[str] = None) -> None:
        self.events.put_nowait(LifecycleEvent(kind=kind, detail=detail))

    def drop(self) -> None:
        """End the gateway connection as if Discord closed it for good."""
        self._gone.set()

    @property
    def user(self) -> str:
        return "presence-bot#0001"

    @property
    def guild_count(self) -> int:
        return 2


class FakeSessionFactory:
    """
    Creates FakeSessions; the first `failures` of them reject login.
    """

    def __init__(self, failures: int = 0, **session_kwargs):
        self.failures = failures
        self.session_kwargs = session_kwargs
        self.sessions: List[FakeSession] = []
        self.created_at: List[float] = []

    def __call__(self, events):
        session = FakeSession(
            events,
            fail_login=len(self.sessions) < self.failures,
            **self.session_kwargs,
        )
        self.sessions.append(session)
        self.created_at.append(time.monotonic())
        return session


# ============================================================================
# HELPERS
# ============================================================================


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


def make_config(**overrides) -> PresenceConfig:
    values = dict(
        token="test-token",
        presence="idle",
        activity=ActivityConfig(name="the servers", kind="Watching", url=None),
        update_interval_ms=60000,
        retry_delay_ms=50,
        http_enabled=False,
    )
    values.update(overrides)
    return PresenceConfig(**values)


@pytest.fixture
def config() -> PresenceConfig:
    return make_config()


@pytest.fixture
def factory() -> FakeSessionFactory:
    return FakeSessionFactory()
