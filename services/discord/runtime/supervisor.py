"""
Discord Runtime Supervisor

Owns the lifecycle of the single Discord session.

This supervisor is:
- entrypoint-owned
- event-loop agnostic
- the only writer of the session reference

Responsibilities:
- open the session, retrying failed attempts forever on a fixed delay
- consume lifecycle events from the session transport
- publish presence on READY and then on a fixed interval
- perform one idempotent, orderly teardown

IMPORTANT:
- MUST be started by core.presence_app
- MUST NOT create its own event loop
- MUST NOT install signal handlers
- MUST NOT exit the process
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, Optional

from shared.config.presence import PresenceConfig
from shared.logging.logger import get_logger
from services.discord.client import DiscordSession
from services.discord.events import LifecycleEvent, LifecycleEventKind
from services.discord.runtime.lifecycle import DiscordRuntimeLifecycle, SupervisorState
from services.discord.status import DiscordStatusPublisher

# NOTE: routed to Discord runtime log file
log = get_logger("discord.supervisor", runtime="discord")


SessionFactory = Callable[["asyncio.Queue[LifecycleEvent]"], Any]


class PresenceSupervisor:
    """
    Owns the Discord session lifecycle.

    Contract:
    - start() returns once the background tasks exist; it does not wait
      for the handshake
    - shutdown() is idempotent and never raises
    """

    def __init__(
        self,
        config: PresenceConfig,
        *,
        session_factory: Optional[SessionFactory] = None,
    ):
        self._config = config
        self._session_factory: SessionFactory = session_factory or DiscordSession

        self._session: Optional[Any] = None
        self._events: Optional["asyncio.Queue[LifecycleEvent]"] = None

        self._connect_task: Optional[asyncio.Task] = None
        self._event_task: Optional[asyncio.Task] = None
        self._publish_task: Optional[asyncio.Task] = None

        self._running: bool = False
        self._closed: bool = False

        self._lifecycle = DiscordRuntimeLifecycle()
        self._publisher = DiscordStatusPublisher(
            presence=config.presence,
            activity=config.activity,
            session_provider=self._ready_session,
        )

    # --------------------------------------------------
    # Session access (publisher-facing)
    # --------------------------------------------------

    def _ready_session(self) -> Optional[Any]:
        if self._lifecycle.state != SupervisorState.READY:
            return None
        return self._session

    # --------------------------------------------------
    # Lifecycle
    # --------------------------------------------------

    async def start(self):
        """
        Start connecting to Discord in the background.
        """
        if self._closed:
            log.warning("Presence supervisor already shut down; start ignored")
            return

        if self._running:
            log.warning("Presence supervisor already running")
            return

        log.info("Starting presence supervisor")

        self._running = True
        self._events = asyncio.Queue()

        self._event_task = asyncio.create_task(
            self._event_loop(), name="presence-events"
        )
        self._connect_task = asyncio.create_task(
            self._connect_loop(), name="presence-connect"
        )

    async def _connect_loop(self):
        """
        One session per attempt. A failed attempt discards its session and
        waits retry_delay before creating a fresh one. Never gives up.
        """
        while not self._closed:
            attempt = self._lifecycle.record_attempt()
            self._lifecycle.transition(SupervisorState.CONNECTING)

            session = None
            log.info(f"Connecting to Discord (attempt {attempt})")

            try:
                session = self._session_factory(self._events)
                await session.login(self._config.token)
                self._session = session
                log.info("Successfully logged in to Discord")

                await session.connect()
                log.warning("Discord gateway connection ended")
            except asyncio.CancelledError:
                if session is not None and session is not self._session:
                    await self._close_quietly(session)
                raise
            except Exception as e:
                if session is None:
                    log.error(f"Failed to create Discord session: {e!r}")
                elif session is self._session:
                    log.error(f"Discord session failed: {e!r}")
                else:
                    log.error(f"Failed to login: {e!r}")

            if self._closed:
                return

            self._session = None
            if session is not None:
                await self._close_quietly(session)
            self._lifecycle.transition(SupervisorState.DISCONNECTED)

            log.info(f"Retrying connection in {self._config.retry_delay:g}s")
            await asyncio.sleep(self._config.retry_delay)
            log.info("Retrying connection...")

    async def _close_quietly(self, session: Any):
        try:
            await session.close()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.warning(f"Discord session close error ignored: {e!r}")

    # --------------------------------------------------
    # Event channel
    # --------------------------------------------------

    async def _event_loop(self):
        while True:
            event = await self._events.get()
            try:
                await self._handle_event(event)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.error(f"Lifecycle event {event.kind.value} handling failed: {e!r}")

    async def _handle_event(self, event: LifecycleEvent):
        if self._closed:
            return

        kind = event.kind

        if kind == LifecycleEventKind.READY:
            await self._on_ready(event)
        elif kind == LifecycleEventKind.RESUME:
            log.info("Bot connection resumed")
            await self._on_ready(event)
        elif kind == LifecycleEventKind.DISCONNECT:
            log.warning("Bot disconnected")
            if self._lifecycle.state == SupervisorState.READY:
                self._lifecycle.transition(SupervisorState.CONNECTING)
        elif kind == LifecycleEventKind.RECONNECTING:
            log.info(f"Bot reconnecting... {event.detail or ''}".rstrip())
        elif kind == LifecycleEventKind.RATE_LIMIT:
            log.warning(f"Rate limit hit: {event.detail}")
        elif kind == LifecycleEventKind.WARNING:
            log.warning(f"Discord client warning: {event.detail}")
        elif kind == LifecycleEventKind.ERROR:
            log.error(f"Discord client error: {event.detail}")

    async def _on_ready(self, event: LifecycleEvent):
        if self._session is None:
            log.debug(f"Ignoring {event.kind.value} without a live session")
            return

        self._lifecycle.transition(SupervisorState.READY)

        if event.kind == LifecycleEventKind.READY:
            log.info(f"Bot is ready! Logged in as {event.detail}")
            log.info(f"Environment: {self._config.environment}")

        await self._publisher.publish()

        # Timer is armed once, after the first initial publish was issued
        if self._publish_task is None and not self._closed:
            self._publish_task = asyncio.create_task(
                self._publish_loop(), name="presence-publish"
            )
            log.info(
                f"Periodic status updates every {self._config.update_interval:g}s"
            )

    async def _publish_loop(self):
        interval = self._config.update_interval
        while True:
            await asyncio.sleep(interval)
            await self._publisher.publish()

    # --------------------------------------------------
    # Shutdown
    # --------------------------------------------------

    async def shutdown(self, reason: str = "shutdown"):
        """
        Stop the timer, cancel any pending retry, and close the session.
        Only the first call does anything.
        """
        if self._closed:
            return
        self._closed = True

        log.info(f"Shutting down presence supervisor ({reason})")
        self._lifecycle.transition(SupervisorState.SHUTTING_DOWN)

        tasks = [
            task
            for task in (self._publish_task, self._connect_task, self._event_task)
            if task is not None
        ]
        for task in tasks:
            if not task.done():
                task.cancel()

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        session = self._session
        self._session = None
        if session is not None:
            await self._close_quietly(session)
            log.info("Discord client destroyed")

        self._running = False
        log.info("Presence supervisor shutdown complete")

    # --------------------------------------------------
    # Read-only Introspection
    # --------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    @property
    def state(self) -> SupervisorState:
        return self._lifecycle.state

    @property
    def ready(self) -> bool:
        return self._lifecycle.ready

    @property
    def session(self) -> Optional[Any]:
        """
        The live session, or None between attempts and after shutdown.
        """
        return self._session

    @property
    def publisher(self) -> DiscordStatusPublisher:
        return self._publisher

    def snapshot(self) -> Dict[str, Any]:
        """
        Full supervisor state snapshot for diagnostics.
        """
        session = self._session
        return {
            "running": self._running,
            "lifecycle": self._lifecycle.snapshot(),
            "user": getattr(session, "user", None) if session else None,
            "guild_count": getattr(session, "guild_count", None) if session else None,
            "status": self._publisher.snapshot(),
        }
