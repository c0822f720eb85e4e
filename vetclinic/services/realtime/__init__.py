from vetclinic.services.realtime.hub import LocalRealtimeHub, install_change_publisher, realtime_hub
from vetclinic.services.realtime.query_cache import QueryCache
from vetclinic.services.realtime.router import (
    DASHBOARD_STATS_KEY,
    TRACKED_RESOURCES,
    ChangeNotificationRouter,
    RealtimeSync,
    ResourceType,
    SubscriptionState,
)
from vetclinic.services.realtime.sessions import SyncRegistry, UserSession, get_user_session, sync_registry

__all__ = [
    "DASHBOARD_STATS_KEY",
    "TRACKED_RESOURCES",
    "ChangeNotificationRouter",
    "LocalRealtimeHub",
    "QueryCache",
    "RealtimeSync",
    "ResourceType",
    "SubscriptionState",
    "SyncRegistry",
    "UserSession",
    "get_user_session",
    "install_change_publisher",
    "realtime_hub",
    "sync_registry",
]
