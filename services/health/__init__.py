"""Process health HTTP endpoint."""

from .server import HealthServer, HealthServerConfig

__all__ = ["HealthServer", "HealthServerConfig"]
