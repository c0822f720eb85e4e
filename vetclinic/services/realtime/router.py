from __future__ import annotations

import asyncio
import enum
import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Protocol

from vetclinic.core.config import settings
from vetclinic.services.realtime.channels import (
    CHANNEL_ERROR,
    CLOSED,
    POSTGRES_CHANGES,
    SUBSCRIBED,
    TIMED_OUT,
    ChangeEvent,
    ChangeSpec,
    RealtimeChannel,
    RealtimeClient,
)

logger = logging.getLogger("vetclinic.realtime")


class ResourceType(str, enum.Enum):
    ANIMALS = "animals"
    CLIENTS = "clients"
    CONSULTATIONS = "consultations"
    APPOINTMENTS = "appointments"
    PRESCRIPTIONS = "prescriptions"
    VACCINATIONS = "vaccinations"
    INVOICES = "invoices"
    STOCK_ITEMS = "stock_items"
    ANTIPARASITICS = "antiparasitics"
    STOCK_MOVEMENTS = "stock_movements"
    LEDGER = "ledger"


@dataclass(frozen=True)
class ResourceBinding:
    table: str
    cache_key: tuple[str, ...]
    channel_name: str
    feeds_dashboard: bool = False


DASHBOARD_STATS_KEY = ("dashboard-stats",)
ACCOUNTING_SUMMARY_KEY = ("accounting-summary",)
LEDGER_KEY = ("ledger",)

RESOURCE_BINDINGS: dict[ResourceType, ResourceBinding] = {
    ResourceType.ANIMALS: ResourceBinding("animals", ("animals",), "animals-changes", feeds_dashboard=True),
    ResourceType.CLIENTS: ResourceBinding("clients", ("clients",), "clients-changes", feeds_dashboard=True),
    ResourceType.CONSULTATIONS: ResourceBinding(
        "consultations", ("consultations",), "consultations-changes", feeds_dashboard=True
    ),
    ResourceType.APPOINTMENTS: ResourceBinding(
        "appointments", ("appointments",), "appointments-changes", feeds_dashboard=True
    ),
    ResourceType.PRESCRIPTIONS: ResourceBinding("prescriptions", ("prescriptions",), "prescriptions-changes"),
    ResourceType.VACCINATIONS: ResourceBinding("vaccinations", ("vaccinations",), "vaccinations-changes"),
    ResourceType.INVOICES: ResourceBinding("invoices", ("invoices",), "invoices-changes"),
    ResourceType.STOCK_ITEMS: ResourceBinding("stock_items", ("stock",), "stock-changes"),
    ResourceType.ANTIPARASITICS: ResourceBinding("antiparasitics", ("antiparasitics",), "antiparasitics-changes"),
    ResourceType.STOCK_MOVEMENTS: ResourceBinding("stock_movements", ("stock-movements",), "stock-movements-changes"),
    ResourceType.LEDGER: ResourceBinding("ledger_entries", ("ledger",), "ledger-changes"),
}

TRACKED_RESOURCES: tuple[ResourceType, ...] = (
    ResourceType.ANIMALS,
    ResourceType.CLIENTS,
    ResourceType.CONSULTATIONS,
    ResourceType.APPOINTMENTS,
    ResourceType.PRESCRIPTIONS,
    ResourceType.VACCINATIONS,
    ResourceType.INVOICES,
    ResourceType.STOCK_ITEMS,
)


class SubscriptionState(str, enum.Enum):
    UNSUBSCRIBED = "unsubscribed"
    SUBSCRIBING = "subscribing"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBING = "unsubscribing"


class Invalidator(Protocol):
    def invalidate(self, prefix) -> Any: ...


class Cancellable(Protocol):
    def cancel(self) -> Any: ...


Scheduler = Callable[[float, Callable[[], None]], Cancellable]
OnChange = Callable[[ResourceType, str], None]
Unsubscribe = Callable[[], None]


def default_scheduler(delay: float, fn: Callable[[], None]) -> Cancellable:
    """Run fn after delay seconds on the running event loop, or on a timer thread when there is none."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        timer = threading.Timer(delay, fn)
        timer.daemon = True
        timer.start()
        return timer
    return loop.call_later(delay, fn)


def backoff_delay(attempt: int, base: float, maximum: float) -> float:
    return min(maximum, base * (2 ** max(0, attempt)))


class _Subscription:
    def __init__(self, resource: ResourceType, on_change: OnChange | None):
        self.resource = resource
        self.binding = RESOURCE_BINDINGS[resource]
        self.on_change = on_change
        self.state = SubscriptionState.UNSUBSCRIBED
        self.channel: RealtimeChannel | None = None
        self.attempts = 0
        self.retry: Cancellable | None = None
        self.wanted = True


class ChangeNotificationRouter:
    """
    Opens one change channel per resource type and turns every change event
    into cache invalidation: the resource's own key, plus the dashboard
    statistics key for the resources that feed the dashboard.

    Dropped channels (error, timeout, unexpected close) are reopened after an
    exponential backoff until the subscription is torn down.
    """

    def __init__(
        self,
        client: RealtimeClient,
        cache: Invalidator,
        *,
        tenant_id: str | None = None,
        scheduler: Scheduler | None = None,
        backoff_base: float | None = None,
        backoff_max: float | None = None,
    ):
        self.client = client
        self.cache = cache
        self.tenant_id = tenant_id
        self.scheduler = scheduler or default_scheduler
        self.backoff_base = settings.realtime_backoff_base if backoff_base is None else backoff_base
        self.backoff_max = settings.realtime_backoff_max if backoff_max is None else backoff_max
        self._subs: dict[ResourceType, _Subscription] = {}
        self._lock = threading.RLock()

    def state(self, resource: ResourceType) -> SubscriptionState:
        sub = self._subs.get(ResourceType(resource))
        return sub.state if sub else SubscriptionState.UNSUBSCRIBED

    def active_resources(self) -> list[ResourceType]:
        return [r for r, sub in self._subs.items() if sub.state == SubscriptionState.SUBSCRIBED]

    def subscribe(
        self,
        resource_types: Iterable[ResourceType] = TRACKED_RESOURCES,
        on_change: OnChange | None = None,
    ) -> Unsubscribe:
        created: list[ResourceType] = []
        with self._lock:
            for raw in resource_types:
                resource = ResourceType(raw)
                if resource in self._subs:
                    logger.debug("already_subscribed resource=%s", resource.value)
                    continue
                sub = _Subscription(resource, on_change)
                self._subs[resource] = sub
                created.append(resource)
        for resource in created:
            self._open(self._subs[resource])
        logger.info("realtime_subscribed tenant=%s resources=%s", self.tenant_id, [r.value for r in created])

        def unsubscribe() -> None:
            self.unsubscribe(created)

        return unsubscribe

    def unsubscribe(self, resource_types: Iterable[ResourceType] | None = None) -> None:
        with self._lock:
            targets = list(self._subs) if resource_types is None else [ResourceType(r) for r in resource_types]
            subs = [self._subs.pop(r) for r in targets if r in self._subs]
        for sub in subs:
            self._close(sub)
        if subs:
            logger.info("realtime_unsubscribed tenant=%s resources=%s", self.tenant_id, [s.resource.value for s in subs])

    def _spec(self, binding: ResourceBinding) -> ChangeSpec:
        row_filter = f"tenant_id=eq.{self.tenant_id}" if self.tenant_id else None
        return ChangeSpec(table=binding.table, event="*", schema="public", filter=row_filter)

    def _open(self, sub: _Subscription) -> None:
        with self._lock:
            if not sub.wanted:
                return
            sub.retry = None
            sub.state = SubscriptionState.SUBSCRIBING
            channel = self.client.channel(sub.binding.channel_name)
            if not sub.wanted:
                # torn down while the channel was being created
                self.client.remove_channel(channel)
                return
            sub.channel = channel
            self._join(sub, channel)

    def _join(self, sub: _Subscription, channel: RealtimeChannel) -> None:
        def on_event(change: ChangeEvent) -> None:
            self._handle_event(sub, channel, change)

        def on_status(status: str) -> None:
            self._handle_status(sub, channel, status)

        channel.on(POSTGRES_CHANGES, self._spec(sub.binding), on_event)
        channel.subscribe(on_status)

    def _close(self, sub: _Subscription) -> None:
        with self._lock:
            sub.wanted = False
            sub.state = SubscriptionState.UNSUBSCRIBING
            if sub.retry is not None:
                sub.retry.cancel()
                sub.retry = None
            channel, sub.channel = sub.channel, None
            if channel is not None:
                self.client.remove_channel(channel)
            sub.state = SubscriptionState.UNSUBSCRIBED

    def _handle_event(self, sub: _Subscription, channel: RealtimeChannel, change: ChangeEvent) -> None:
        if sub.state != SubscriptionState.SUBSCRIBED or sub.channel is not channel:
            logger.debug("late_event_ignored resource=%s event=%s", sub.resource.value, change.event_type)
            return
        logger.info("change_detected resource=%s event=%s", sub.resource.value, change.event_type)
        self.cache.invalidate(sub.binding.cache_key)
        if sub.binding.feeds_dashboard:
            self.cache.invalidate(DASHBOARD_STATS_KEY)
        if sub.on_change is not None:
            sub.on_change(sub.resource, change.event_type)

    def _handle_status(self, sub: _Subscription, channel: RealtimeChannel, status: str) -> None:
        with self._lock:
            if sub.channel is not channel or not sub.wanted:
                return
            if status == SUBSCRIBED:
                sub.state = SubscriptionState.SUBSCRIBED
                sub.attempts = 0
                return
            if status in (CHANNEL_ERROR, TIMED_OUT, CLOSED):
                self._schedule_retry(sub, status)

    def _schedule_retry(self, sub: _Subscription, status: str) -> None:
        channel, sub.channel = sub.channel, None
        sub.state = SubscriptionState.SUBSCRIBING
        if channel is not None:
            self.client.remove_channel(channel)
        delay = backoff_delay(sub.attempts, self.backoff_base, self.backoff_max)
        sub.attempts += 1
        logger.warning(
            "channel_dropped resource=%s status=%s retry_in=%.1fs attempt=%s",
            sub.resource.value,
            status,
            delay,
            sub.attempts,
        )
        sub.retry = self.scheduler(delay, lambda: self._open(sub))


class RealtimeSync:
    """
    Binds change subscriptions and the query cache to the signed-in identity.
    Any identity change tears every channel down and empties the cache.
    """

    def __init__(
        self,
        client: RealtimeClient,
        cache,
        *,
        resources: Iterable[ResourceType] = TRACKED_RESOURCES,
        on_change: OnChange | None = None,
        router_factory: Callable[..., ChangeNotificationRouter] = ChangeNotificationRouter,
        **router_options,
    ):
        self.client = client
        self.cache = cache
        self.resources = tuple(resources)
        self.on_change = on_change
        self.router_factory = router_factory
        self.router_options = router_options
        self.user_id: str | None = None
        self.tenant_id: str | None = None
        self.router: ChangeNotificationRouter | None = None
        self._unsubscribe: Unsubscribe | None = None

    def set_user(self, user_id: str | None, *, tenant_id: str | None = None) -> None:
        """The identity is the (user, tenant) pair; the tenant defaults to the user id."""
        tenant = (tenant_id or user_id) if user_id is not None else None
        if (user_id, tenant) == (self.user_id, self.tenant_id) and (user_id is None or self.router is not None):
            return
        previous = (self.user_id, self.tenant_id)
        self.user_id, self.tenant_id = user_id, tenant
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
            self.router = None
        self.cache.clear()
        logger.info(
            "identity_changed previous=%s/%s current=%s/%s", previous[0], previous[1], user_id, tenant
        )
        if user_id is None:
            return
        self.router = self.router_factory(
            self.client, self.cache, tenant_id=tenant, **self.router_options
        )
        self._unsubscribe = self.router.subscribe(self.resources, self.on_change)

    def close(self) -> None:
        self.set_user(None)
