"""Backend reachability probe.

Pings the backend itself rather than a public site, so captive portals and
networks that block only the backend are reported as offline.
"""
import asyncio
import logging

import requests

from tillsync.config import TillConfig
from tillsync.core.constants import PROBE_OK_STATUSES

logger = logging.getLogger("tillsync.remote")


class HttpProbe:
    """Async callable returning True when the backend answered."""

    def __init__(self, config: TillConfig, session: requests.Session = None):
        self.url = config.probe_url
        self.api_key = config.api_key
        self.timeout_ms = config.probe_timeout_ms
        self.http = session or requests.Session()

    async def __call__(self) -> bool:
        try:
            response = await asyncio.to_thread(
                self.http.get,
                self.url,
                headers={"apikey": self.api_key},
                timeout=self.timeout_ms / 1000,
                allow_redirects=False,
            )
        except requests.RequestException as e:
            logger.debug("Probe to %s failed: %s", self.url, e)
            return False

        status = response.status_code
        # 401/403 means the backend itself answered
        reachable = 200 <= status < 300 or status in PROBE_OK_STATUSES
        if not reachable:
            logger.debug("Probe to %s returned unexpected status %s", self.url, status)
        return reachable
