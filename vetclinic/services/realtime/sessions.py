from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from fastapi import Depends

from vetclinic.core.auth import SessionUser, get_current_user
from vetclinic.core.config import settings
from vetclinic.services.accounting.summary_engine import SummaryMemo
from vetclinic.services.realtime.channels import RealtimeClient
from vetclinic.services.realtime.hub import realtime_hub
from vetclinic.services.realtime.query_cache import QueryCache
from vetclinic.services.realtime.router import (
    ACCOUNTING_SUMMARY_KEY,
    DASHBOARD_STATS_KEY,
    LEDGER_KEY,
    TRACKED_RESOURCES,
    RealtimeSync,
    ResourceType,
)

logger = logging.getLogger("vetclinic.realtime")

# resources whose rows feed the period summary or the ledger view
FINANCIAL_RESOURCES = frozenset(
    {
        ResourceType.CONSULTATIONS,
        ResourceType.VACCINATIONS,
        ResourceType.ANTIPARASITICS,
        ResourceType.PRESCRIPTIONS,
        ResourceType.STOCK_ITEMS,
        ResourceType.STOCK_MOVEMENTS,
        ResourceType.LEDGER,
    }
)

SESSION_RESOURCES = TRACKED_RESOURCES + (
    ResourceType.ANTIPARASITICS,
    ResourceType.STOCK_MOVEMENTS,
    ResourceType.LEDGER,
)


def financial_invalidator(cache: QueryCache):
    def on_change(resource: ResourceType, event_type: str) -> None:
        if resource in FINANCIAL_RESOURCES:
            cache.invalidate(ACCOUNTING_SUMMARY_KEY)
            cache.invalidate(LEDGER_KEY)
            cache.invalidate(DASHBOARD_STATS_KEY)

    return on_change


@dataclass
class UserSession:
    """Query cache, change subscriptions and summary memo owned by one signed-in user."""

    user: SessionUser
    cache: QueryCache
    sync: RealtimeSync
    summary_memo: SummaryMemo = field(default_factory=SummaryMemo)
    last_seen: float = 0.0


class SyncRegistry:
    """
    One UserSession per signed-in user. Sessions unused for longer than
    idle_timeout seconds (the session cookie lifetime by default) are
    released the next time any user resolves a session.
    """

    def __init__(
        self,
        client: RealtimeClient,
        *,
        idle_timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        **sync_options,
    ):
        self.client = client
        self.idle_timeout = settings.auth_session_hours * 3600 if idle_timeout is None else idle_timeout
        self.clock = clock
        self.sync_options = sync_options
        self._sessions: dict[str, UserSession] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, user_id: str) -> UserSession | None:
        return self._sessions.get(user_id)

    def for_user(self, user: SessionUser) -> UserSession:
        now = self.clock()
        self.release_idle(now)
        with self._lock:
            session = self._sessions.get(user.user_id)
            if session is not None and session.user.tenant_id == user.tenant_id:
                session.last_seen = now
                return session
            if session is not None:
                session.sync.close()
            cache = QueryCache()
            options = {"resources": SESSION_RESOURCES, **self.sync_options}
            sync = RealtimeSync(self.client, cache, on_change=financial_invalidator(cache), **options)
            session = UserSession(user=user, cache=cache, sync=sync, last_seen=now)
            sync.set_user(user.user_id, tenant_id=user.tenant_id)
            self._sessions[user.user_id] = session
            logger.info("user_session_opened user=%s tenant=%s", user.user_id, user.tenant_id)
            return session

    def release(self, user_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(user_id, None)
        if session is None:
            return False
        session.sync.close()
        session.summary_memo.reset()
        logger.info("user_session_closed user=%s", user_id)
        return True

    def release_idle(self, now: float | None = None) -> list[str]:
        now = self.clock() if now is None else now
        with self._lock:
            idle = [uid for uid, s in self._sessions.items() if now - s.last_seen > self.idle_timeout]
        for user_id in idle:
            logger.info("user_session_expired user=%s", user_id)
            self.release(user_id)
        return idle

    def close_all(self) -> None:
        for user_id in list(self._sessions):
            self.release(user_id)


sync_registry = SyncRegistry(realtime_hub)


def get_user_session(user: SessionUser = Depends(get_current_user)) -> UserSession:
    return sync_registry.for_user(user)
