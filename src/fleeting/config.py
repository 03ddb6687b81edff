"""FleetingConfig — tunables for the sharing core."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class FleetingConfig:
    """Configuration passed to ``FleetingAsync`` / ``Fleeting``."""

    view_once_ttl_hours: int = 24
    """Default lifetime of a view-once notification when no ``expires_at`` is given."""

    read_retention_days: int = 30
    """Read notifications older than this are removed by ``cleanup_expired``."""

    default_list_limit: int = 50
    """Maximum notifications returned by a listing when no limit is passed."""

    action_url_prefix: str = "/dashboard"
    """Prefix for the ``action_url`` stored on notifications."""

    def __post_init__(self) -> None:
        if self.view_once_ttl_hours <= 0:
            raise ValueError("view_once_ttl_hours must be positive")
        if self.read_retention_days <= 0:
            raise ValueError("read_retention_days must be positive")
        if self.default_list_limit <= 0:
            raise ValueError("default_list_limit must be positive")
        self.action_url_prefix = self.action_url_prefix.rstrip("/")
