"""Session and identity provider.

The cached session is read from durable storage and works offline; the
current-user lookup needs the network. Either may legitimately return None.
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import requests

from tillsync.config import TillConfig
from tillsync.core.constants import AUTH_SESSION_KEY
from tillsync.storage import KeyValueStore

logger = logging.getLogger("tillsync.remote")


@dataclass(frozen=True)
class User:
    id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class Session:
    user: User
    access_token: Optional[str] = None


class SessionProvider(Protocol):
    async def get_cached_session(self) -> Optional[Session]: ...

    async def get_current_user(self) -> Optional[User]: ...


class CachedSessionProvider:
    """SessionProvider reading the cached session saved at login.

    Stored under AUTH_SESSION_KEY as
    {"access_token": "...", "user": {"id": "...", "email": "..."}}.
    """

    def __init__(self, storage: KeyValueStore, config: TillConfig,
                 session: requests.Session = None):
        self.storage = storage
        self.config = config
        self.http = session or requests.Session()
        self._cached: Optional[Session] = None

    @property
    def access_token(self) -> Optional[str]:
        """Token of the last loaded session, for the remote client."""
        return self._cached.access_token if self._cached else None

    async def get_cached_session(self) -> Optional[Session]:
        raw = await self.storage.get(AUTH_SESSION_KEY)
        if not raw:
            self._cached = None
            return None

        try:
            data = json.loads(raw)
            user = data["user"]
            self._cached = Session(
                user=User(id=user["id"], email=user.get("email")),
                access_token=data.get("access_token"),
            )
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Ignoring unreadable cached session: %s", e)
            self._cached = None
        return self._cached

    async def get_current_user(self) -> Optional[User]:
        """Ask the auth endpoint who the token belongs to."""
        token = self.access_token
        if token is None:
            session = await self.get_cached_session()
            token = session.access_token if session else None
        if not token:
            return None

        response = await asyncio.to_thread(
            self.http.get,
            f"{self.config.remote_url}/auth/v1/user",
            headers={"apikey": self.config.api_key, "Authorization": f"Bearer {token}"},
            timeout=self.config.fetch_timeout_ms / 1000,
        )
        if response.status_code != 200:
            return None

        try:
            data = response.json()
            return User(id=data["id"], email=data.get("email"))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Ignoring unreadable user lookup reply: %s", e)
            return None


async def resolve_user_id(sessions: SessionProvider) -> Optional[str]:
    """Acting user's id: cached session first, then a live lookup.

    Any failing lookup resolves to None instead of raising; a sale is
    never blocked on a missing user.
    """
    try:
        session = await sessions.get_cached_session()
        if session is not None and session.user.id:
            return session.user.id
        user = await sessions.get_current_user()
    except Exception as e:
        logger.info("User lookup unavailable: %s", e)
        return None
    return user.id if user and user.id else None
