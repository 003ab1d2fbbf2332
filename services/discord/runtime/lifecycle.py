"""
Discord Runtime Lifecycle

This module defines the connection state machine for the presence runtime.

Purpose:
- Name the supervisor states in one place
- Reject transitions the supervisor must never make
- Record when each milestone happened, for the health surface

This module does NOT:
- Start asyncio tasks
- Own the Discord session
- Perform network I/O
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from shared.logging.logger import get_logger

# NOTE: routed to Discord runtime log file
log = get_logger("discord.runtime.lifecycle", runtime="discord")


class SupervisorState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    SHUTTING_DOWN = "shutting_down"


_ALLOWED: Dict[SupervisorState, FrozenSet[SupervisorState]] = {
    SupervisorState.DISCONNECTED: frozenset({
        SupervisorState.CONNECTING,
        SupervisorState.SHUTTING_DOWN,
    }),
    SupervisorState.CONNECTING: frozenset({
        SupervisorState.READY,
        SupervisorState.DISCONNECTED,
        SupervisorState.SHUTTING_DOWN,
    }),
    SupervisorState.READY: frozenset({
        # CONNECTING: gateway dropped, discord.py is reconnecting
        SupervisorState.CONNECTING,
        SupervisorState.DISCONNECTED,
        SupervisorState.SHUTTING_DOWN,
    }),
    SupervisorState.SHUTTING_DOWN: frozenset(),
}


class InvalidTransition(RuntimeError):
    def __init__(self, current: SupervisorState, target: SupervisorState):
        super().__init__(f"Invalid lifecycle transition {current.value} -> {target.value}")
        self.current = current
        self.target = target


class DiscordRuntimeLifecycle:
    """
    State tracker for the Discord runtime.

    Owned by PresenceSupervisor; read by the health server from another
    thread (reads of a single attribute only).
    """

    def __init__(self):
        self._state: SupervisorState = SupervisorState.DISCONNECTED
        self._started_at: Optional[datetime] = None
        self._ready_at: Optional[datetime] = None
        self._stopped_at: Optional[datetime] = None
        self._attempts: int = 0

    # --------------------------------------------------
    # Transitions
    # --------------------------------------------------

    def transition(self, target: SupervisorState) -> None:
        """
        Move to target. A transition to the current state is a no-op.
        """
        current = self._state
        if target == current:
            return
        if target not in _ALLOWED[current]:
            raise InvalidTransition(current, target)

        now = datetime.now(timezone.utc)
        if target == SupervisorState.CONNECTING and self._started_at is None:
            self._started_at = now
        if target == SupervisorState.READY:
            self._ready_at = now
        if target == SupervisorState.SHUTTING_DOWN:
            self._stopped_at = now

        self._state = target
        log.debug(f"Lifecycle {current.value} -> {target.value}")

    def record_attempt(self) -> int:
        self._attempts += 1
        return self._attempts

    # --------------------------------------------------
    # Introspection
    # --------------------------------------------------

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def ready(self) -> bool:
        return self._state == SupervisorState.READY

    @property
    def stopped(self) -> bool:
        return self._state == SupervisorState.SHUTTING_DOWN

    def snapshot(self) -> Dict[str, Any]:
        """
        Return a structured snapshot of lifecycle state.
        """
        return {
            "state": self._state.value,
            "attempts": self._attempts,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "ready_at": self._ready_at.isoformat() if self._ready_at else None,
            "stopped_at": self._stopped_at.isoformat() if self._stopped_at else None,
        }
