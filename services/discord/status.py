"""
Discord Status Module

Responsibilities:
- Hold the configured presence (status + one activity)
- Push it onto the live session on demand
- Emit structured logs and counters for the health surface

IMPORTANT:
- This module does NOT own the session (it only reads it)
- This module does NOT schedule itself; PresenceSupervisor does
- Publish failures are logged and dropped, never raised
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Protocol

import discord

from shared.config.presence import ActivityConfig
from shared.logging.logger import get_logger

log = get_logger("discord.status", runtime="discord")


class PresenceSink(Protocol):
    async def change_presence(
        self,
        *,
        status: discord.Status,
        activity: Optional[discord.BaseActivity],
    ) -> None: ...


SessionProvider = Callable[[], Optional[PresenceSink]]


_STATUS_MAP: Dict[str, discord.Status] = {
    "online": discord.Status.online,
    "idle": discord.Status.idle,
    "dnd": discord.Status.dnd,
    "invisible": discord.Status.invisible,
}

_ACTIVITY_TYPE_MAP: Dict[str, discord.ActivityType] = {
    "Playing": discord.ActivityType.playing,
    "Streaming": discord.ActivityType.streaming,
    "Listening": discord.ActivityType.listening,
    "Watching": discord.ActivityType.watching,
    "Competing": discord.ActivityType.competing,
}


def build_status(presence: str) -> discord.Status:
    return _STATUS_MAP.get(presence, discord.Status.online)


def build_activity(activity: ActivityConfig) -> discord.Activity:
    activity_type = _ACTIVITY_TYPE_MAP.get(
        activity.kind, discord.ActivityType.watching
    )
    return discord.Activity(
        name=activity.name,
        type=activity_type,
        url=activity.url,
    )


class DiscordStatusPublisher:
    def __init__(
        self,
        *,
        presence: str,
        activity: ActivityConfig,
        session_provider: SessionProvider,
    ):
        self._presence = presence
        self._activity = activity
        self._session_provider = session_provider

        self._published: int = 0
        self._failed: int = 0
        self._skipped: int = 0
        self._last_published_at: Optional[datetime] = None
        self._last_error: Optional[str] = None

    # --------------------------------------------------

    async def publish(self) -> bool:
        """
        Apply the configured presence to the live session.
        Safe to call at any time; returns True only when Discord accepted it.
        """
        session = self._session_provider()
        if session is None:
            self._skipped += 1
            log.info("Bot not ready yet, skipping status update")
            return False

        try:
            await session.change_presence(
                status=build_status(self._presence),
                activity=build_activity(self._activity),
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._failed += 1
            self._last_error = str(e) or e.__class__.__name__
            log.error(f"Error updating status: {e!r}")
            return False

        self._published += 1
        self._last_published_at = datetime.now(timezone.utc)
        self._last_error = None
        log.info(
            f"Status updated: {self._activity.kind} {self._activity.name!r} "
            f"status={self._presence} | {self._last_published_at.isoformat()}"
        )
        return True

    # --------------------------------------------------

    @property
    def published(self) -> int:
        return self._published

    def snapshot(self) -> Dict[str, Any]:
        """
        Return current presence and publish counters for diagnostics.
        """
        return {
            "presence": self._presence,
            "activity": self._activity.snapshot(),
            "published": self._published,
            "failed": self._failed,
            "skipped": self._skipped,
            "last_published_at": (
                self._last_published_at.isoformat()
                if self._last_published_at
                else None
            ),
            "last_error": self._last_error,
        }
