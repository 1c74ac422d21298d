"""Remote collaborators: persistence store, session provider, reachability probe."""
from tillsync.remote.client import RemoteStore, RestRemoteStore
from tillsync.remote.session import (
    CachedSessionProvider,
    Session,
    SessionProvider,
    User,
    resolve_user_id,
)
from tillsync.remote.probe import HttpProbe

__all__ = [
    "RemoteStore",
    "RestRemoteStore",
    "CachedSessionProvider",
    "Session",
    "SessionProvider",
    "User",
    "resolve_user_id",
    "HttpProbe",
]
