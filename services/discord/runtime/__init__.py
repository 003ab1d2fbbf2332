"""
Discord Runtime Package

This package defines the connection runtime of the presence bot.

Contained responsibilities:
- Connection supervision (connect / retry / shutdown orchestration)
- Lifecycle state tracking
- Periodic presence publishing

IMPORTANT:
- Importing this package MUST NOT start the Discord client
- Importing this package MUST NOT create asyncio tasks
- All runtime execution is owned by PresenceSupervisor
"""

from services.discord.runtime.supervisor import PresenceSupervisor
from services.discord.runtime.lifecycle import DiscordRuntimeLifecycle, SupervisorState

__all__ = [
    "PresenceSupervisor",
    "DiscordRuntimeLifecycle",
    "SupervisorState",
]
