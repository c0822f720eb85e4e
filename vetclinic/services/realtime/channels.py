from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

POSTGRES_CHANGES = "postgres_changes"

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"

# channel status values reported to subscribe() callbacks
SUBSCRIBED = "SUBSCRIBED"
CHANNEL_ERROR = "CHANNEL_ERROR"
TIMED_OUT = "TIMED_OUT"
CLOSED = "CLOSED"


@dataclass(frozen=True)
class ChangeSpec:
    table: str
    event: str = "*"
    schema: str = "public"
    filter: str | None = None

    def matches(self, change: "ChangeEvent") -> bool:
        if change.table != self.table or change.schema != self.schema:
            return False
        if self.event != "*" and self.event != change.event_type:
            return False
        if not self.filter:
            return True
        # only "<column>=eq.<value>" filters are supported
        column, _, expr = self.filter.partition("=")
        op, _, expected = expr.partition(".")
        if op != "eq":
            return False
        row = change.record or change.old_record
        return str(row.get(column, "")) == expected


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event_type: str
    record: dict[str, Any] = field(default_factory=dict)
    old_record: dict[str, Any] = field(default_factory=dict)
    schema: str = "public"
    commit_timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


ChangeCallback = Callable[[ChangeEvent], None]
StatusCallback = Callable[[str], None]


class RealtimeChannel(Protocol):
    name: str

    def on(self, event: str, spec: ChangeSpec, callback: ChangeCallback) -> "RealtimeChannel": ...

    def subscribe(self, status_callback: StatusCallback | None = None) -> "RealtimeChannel": ...


class RealtimeClient(Protocol):
    def channel(self, name: str) -> RealtimeChannel: ...

    def remove_channel(self, channel: RealtimeChannel) -> None: ...
