"""
In-process realtime backend.

Channels follow the hosted provider's shape:
channel(name).on("postgres_changes", spec, callback).subscribe(status_callback)
and remove_channel(channel). Row changes committed through a session factory
passed to install_change_publisher() are published to every joined channel
whose change filter matches.
"""
from __future__ import annotations

import enum
import logging
import threading
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session, sessionmaker

from vetclinic.services.realtime.channels import (
    CLOSED,
    DELETE,
    INSERT,
    POSTGRES_CHANGES,
    SUBSCRIBED,
    UPDATE,
    ChangeCallback,
    ChangeEvent,
    ChangeSpec,
    StatusCallback,
)

logger = logging.getLogger("vetclinic.realtime")

_PENDING_KEY = "vetclinic_pending_changes"


class LocalChannel:
    def __init__(self, hub: "LocalRealtimeHub", name: str):
        self.hub = hub
        self.name = name
        self.bindings: list[tuple[ChangeSpec, ChangeCallback]] = []
        self.status_callback: StatusCallback | None = None

    def on(self, event_name: str, spec: ChangeSpec, callback: ChangeCallback) -> "LocalChannel":
        if event_name != POSTGRES_CHANGES:
            raise ValueError(f"unsupported channel event: {event_name}")
        self.bindings.append((spec, callback))
        return self

    def subscribe(self, status_callback: StatusCallback | None = None) -> "LocalChannel":
        self.status_callback = status_callback
        self.hub._join(self)
        self.report(SUBSCRIBED)
        return self

    def report(self, status: str) -> None:
        if self.status_callback is not None:
            self.status_callback(status)


class LocalRealtimeHub:
    def __init__(self) -> None:
        self._channels: list[LocalChannel] = []
        self.installed_factories: set[int] = set()
        self._lock = threading.RLock()

    def channel(self, name: str) -> LocalChannel:
        return LocalChannel(self, name)

    def _join(self, channel: LocalChannel) -> None:
        with self._lock:
            self._channels.append(channel)

    def remove_channel(self, channel: LocalChannel) -> None:
        with self._lock:
            if channel in self._channels:
                self._channels.remove(channel)
        channel.report(CLOSED)

    def channels(self) -> list[LocalChannel]:
        with self._lock:
            return list(self._channels)

    def drop_channel(self, channel: LocalChannel, status: str) -> None:
        """Detach a channel as if the connection failed, reporting `status` to its owner."""
        with self._lock:
            if channel in self._channels:
                self._channels.remove(channel)
        channel.report(status)

    def publish(self, change: ChangeEvent) -> int:
        delivered = 0
        for channel in self.channels():
            for spec, callback in list(channel.bindings):
                if not spec.matches(change):
                    continue
                try:
                    callback(change)
                except Exception:
                    logger.exception(
                        "change_callback_failed channel=%s table=%s event=%s",
                        channel.name,
                        change.table,
                        change.event_type,
                    )
                    continue
                delivered += 1
        return delivered


def _plain(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def row_snapshot(obj) -> dict[str, Any]:
    state = inspect(obj)
    return {attr.key: _plain(state.dict.get(attr.key)) for attr in state.mapper.column_attrs}


def install_change_publisher(session_factory: sessionmaker, hub: LocalRealtimeHub) -> None:
    """Publish INSERT/UPDATE/DELETE for every row committed through sessions from session_factory."""
    if id(session_factory) in hub.installed_factories:
        return
    hub.installed_factories.add(id(session_factory))
    pending_key = (_PENDING_KEY, id(hub))

    @event.listens_for(session_factory, "after_flush")
    def _collect(session: Session, flush_context) -> None:
        # snapshot now, attributes may be expired after commit
        pending = session.info.setdefault(pending_key, [])
        pending.extend(_to_event(obj, INSERT) for obj in session.new)
        pending.extend(
            _to_event(obj, UPDATE) for obj in session.dirty if session.is_modified(obj, include_collections=False)
        )
        pending.extend(_to_event(obj, DELETE) for obj in session.deleted)

    @event.listens_for(session_factory, "after_commit")
    def _publish(session: Session) -> None:
        changes = session.info.pop(pending_key, [])
        for change in changes:
            hub.publish(change)

    @event.listens_for(session_factory, "after_soft_rollback")
    def _discard(session: Session, previous_transaction) -> None:
        session.info.pop(pending_key, None)


def _to_event(obj, event_type: str) -> ChangeEvent:
    table = obj.__table__.name
    snapshot = row_snapshot(obj)
    if event_type == DELETE:
        return ChangeEvent(table=table, event_type=event_type, old_record=snapshot)
    return ChangeEvent(table=table, event_type=event_type, record=snapshot)


realtime_hub = LocalRealtimeHub()
