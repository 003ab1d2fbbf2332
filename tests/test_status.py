"""
Unit tests for DiscordStatusPublisher and the presence builders.
"""

import discord
import pytest

from services.discord.status import DiscordStatusPublisher, build_activity, build_status
from shared.config.presence import ActivityConfig


class RecordingSink:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    async def change_presence(self, *, status, activity):
        if self.error is not None:
            raise self.error
        self.calls.append((status, activity))


def _publisher(session, presence="online", activity=None):
    return DiscordStatusPublisher(
        presence=presence,
        activity=activity or ActivityConfig(name="Bitcraft", kind="Playing"),
        session_provider=lambda: session,
    )


class TestBuilders:
    """Config values map onto discord.py types."""

    @pytest.mark.parametrize(
        "presence, expected",
        [
            ("online", discord.Status.online),
            ("idle", discord.Status.idle),
            ("dnd", discord.Status.dnd),
            ("invisible", discord.Status.invisible),
        ],
    )
    def test_build_status(self, presence, expected):
        assert build_status(presence) == expected

    def test_unknown_status_defaults_online(self):
        assert build_status("away") == discord.Status.online

    @pytest.mark.parametrize(
        "kind, expected",
        [
            ("Playing", discord.ActivityType.playing),
            ("Streaming", discord.ActivityType.streaming),
            ("Listening", discord.ActivityType.listening),
            ("Watching", discord.ActivityType.watching),
            ("Competing", discord.ActivityType.competing),
        ],
    )
    def test_build_activity_kind(self, kind, expected):
        activity = build_activity(ActivityConfig(name="x", kind=kind))
        assert activity.type == expected
        assert activity.name == "x"

    def test_build_activity_keeps_url(self):
        activity = build_activity(
            ActivityConfig(name="live", kind="Streaming", url="https://twitch.tv/x")
        )
        assert activity.url == "https://twitch.tv/x"


class TestPublish:
    """publish() behaviour with and without a live session."""

    @pytest.mark.asyncio
    async def test_skips_without_session(self):
        publisher = _publisher(None)

        assert await publisher.publish() is False
        snapshot = publisher.snapshot()
        assert snapshot["skipped"] == 1
        assert snapshot["published"] == 0

    @pytest.mark.asyncio
    async def test_sends_single_presence_update(self):
        sink = RecordingSink()
        publisher = _publisher(sink, presence="idle")

        assert await publisher.publish() is True

        assert len(sink.calls) == 1
        status, activity = sink.calls[0]
        assert status == discord.Status.idle
        assert activity.name == "Bitcraft"
        assert activity.type == discord.ActivityType.playing
        assert publisher.published == 1
        assert publisher.snapshot()["last_published_at"] is not None

    @pytest.mark.asyncio
    async def test_failure_is_swallowed_and_counted(self):
        sink = RecordingSink(error=discord.DiscordException("socket closed"))
        publisher = _publisher(sink)

        assert await publisher.publish() is False

        snapshot = publisher.snapshot()
        assert snapshot["failed"] == 1
        assert snapshot["last_error"] == "socket closed"

    @pytest.mark.asyncio
    async def test_success_clears_last_error(self):
        sink = RecordingSink(error=RuntimeError("boom"))
        publisher = _publisher(sink)
        await publisher.publish()

        sink.error = None
        await publisher.publish()

        assert publisher.snapshot()["last_error"] is None
        assert publisher.published == 1
