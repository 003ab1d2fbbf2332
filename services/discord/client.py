"""
Discord Session Transport

This module owns one connection to the Discord gateway.
It is intentionally minimal and lifecycle-focused.

Responsibilities:
- log in and hold the gateway connection open
- translate discord.py callbacks into LifecycleEvents
- bridge discord.py warnings / rate-limit notices into the same channel
- expose a clean async login() / connect() / close() contract

IMPORTANT:
- A session MUST be owned by PresenceSupervisor
- A session MUST NOT create its own event loop
- A failed session is discarded, never reused
"""

from __future__ import annotations

import asyncio
import logging
import traceback
from typing import Optional

import discord

from shared.logging.logger import get_logger
from services.discord.events import LifecycleEvent, LifecycleEventKind

# NOTE: routed to Discord runtime log file
log = get_logger("discord.client", runtime="discord")

DISCORD_LIBRARY_LOGGER = "discord"


class DiscordLogBridge(logging.Handler):
    """
    Forwards WARNING+ records from discord.py's own loggers to the
    supervisor event channel.

    discord.py reports rate limits and gateway stalls only through logging,
    so this is the one place they can be observed.
    """

    def __init__(
        self,
        events: "asyncio.Queue[LifecycleEvent]",
        loop: asyncio.AbstractEventLoop,
    ):
        super().__init__(level=logging.WARNING)
        self._events = events
        self._loop = loop

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage()
        except Exception:
            self.handleError(record)
            return

        if "rate limit" in message.lower():
            kind = LifecycleEventKind.RATE_LIMIT
        elif record.levelno >= logging.ERROR:
            kind = LifecycleEventKind.ERROR
        else:
            kind = LifecycleEventKind.WARNING

        event = LifecycleEvent(kind=kind, detail=message)
        try:
            self._loop.call_soon_threadsafe(self._events.put_nowait, event)
        except RuntimeError:
            # loop already closed during interpreter teardown
            pass


class DiscordSession:
    """
    Thin wrapper around discord.Client.

    This class provides:
    - async login() / connect() / close()
    - change_presence() passthrough for the status publisher
    - lifecycle events pushed onto the supervisor-owned queue
    """

    def __init__(self, events: "asyncio.Queue[LifecycleEvent]"):
        self._events = events
        self._client: discord.Client = self._build_client()
        self._bridge: Optional[DiscordLogBridge] = None
        self._disconnected: bool = False
        self._closed: bool = False

    # --------------------------------------------------

    def _emit(self, kind: LifecycleEventKind, detail: Optional[str] = None) -> None:
        self._events.put_nowait(LifecycleEvent(kind=kind, detail=detail))

    def _build_client(self) -> discord.Client:
        """
        Construct the discord.py Client instance.

        Presence updates only need the guilds intent.
        """
        intents = discord.Intents.none()
        intents.guilds = True

        client = discord.Client(intents=intents)

        # --------------------------------------------------
        # Lifecycle Events
        # --------------------------------------------------

        @client.event
        async def on_ready():
            self._disconnected = False
            self._emit(
                LifecycleEventKind.READY,
                f"{client.user} (id={client.user.id}) guilds={len(client.guilds)}",
            )

        @client.event
        async def on_connect():
            if self._disconnected:
                self._emit(
                    LifecycleEventKind.RECONNECTING,
                    "gateway socket re-established",
                )

        @client.event
        async def on_resumed():
            self._disconnected = False
            self._emit(LifecycleEventKind.RESUME)

        @client.event
        async def on_disconnect():
            self._disconnected = True
            self._emit(LifecycleEventKind.DISCONNECT)

        @client.event
        async def on_error(event_method, *args, **kwargs):
            self._emit(
                LifecycleEventKind.ERROR,
                f"{event_method}: {traceback.format_exc()}",
            )

        return client

    def _attach_bridge(self) -> None:
        if self._bridge is not None:
            return
        self._bridge = DiscordLogBridge(self._events, asyncio.get_running_loop())
        logging.getLogger(DISCORD_LIBRARY_LOGGER).addHandler(self._bridge)

    def _detach_bridge(self) -> None:
        if self._bridge is None:
            return
        logging.getLogger(DISCORD_LIBRARY_LOGGER).removeHandler(self._bridge)
        self._bridge = None

    # --------------------------------------------------

    async def login(self, token: str) -> None:
        """
        Authenticate against the Discord HTTP API.

        Raises discord.LoginFailure on a rejected token and
        discord.HTTPException on other API failures.
        """
        if self._closed:
            raise RuntimeError("Discord session already closed")

        self._attach_bridge()
        await self._client.login(token)
        log.info("Discord login accepted")

    async def connect(self) -> None:
        """
        Open the gateway connection and block until it ends.

        discord.py reconnects transient drops internally; this only returns
        or raises when the session can no longer be recovered.
        """
        await self._client.connect(reconnect=True)

    async def change_presence(
        self,
        *,
        status: discord.Status,
        activity: Optional[discord.BaseActivity],
    ) -> None:
        await self._client.change_presence(status=status, activity=activity)

    async def close(self) -> None:
        """
        Close the gateway connection. Safe to call more than once.
        """
        if self._closed:
            return
        self._closed = True

        try:
            await self._client.close()
        finally:
            self._detach_bridge()

        log.info("Discord session closed")

    # --------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def user(self) -> Optional[str]:
        user = self._client.user
        return str(user) if user else None

    @property
    def guild_count(self) -> Optional[int]:
        if self._client.user is None:
            return None
        return len(self._client.guilds)
