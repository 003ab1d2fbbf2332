"""Lifecycle events emitted by the Discord session transport."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class LifecycleEventKind(str, Enum):
    READY = "ready"
    DISCONNECT = "disconnect"
    RECONNECTING = "reconnecting"
    RESUME = "resume"
    WARNING = "warning"
    RATE_LIMIT = "rate_limit"
    ERROR = "error"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LifecycleEvent:
    kind: LifecycleEventKind
    detail: Optional[str] = None
    ts: datetime = field(default_factory=_utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "detail": self.detail,
            "ts": self.ts.isoformat(),
        }
