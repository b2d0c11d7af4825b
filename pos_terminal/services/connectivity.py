# services/connectivity.py
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from pos_terminal.config.config import CONNECTIVITY_CHECK_INTERVAL

logger = logging.getLogger(__name__)


class ConnectivityWatcher:
    """Polls the remote and fires a callback on every offline -> online transition."""

    def __init__(self, client, on_regained: Callable[[], Awaitable[None]],
                 interval: float = CONNECTIVITY_CHECK_INTERVAL):
        self._client = client
        self._on_regained = on_regained
        self._interval = interval
        self.online: Optional[bool] = None

    async def check(self) -> bool:
        online = await self._client.ping()
        previous, self.online = self.online, online
        if online == previous:
            return online
        if online:
            logger.info("Remote authority reachable")
            if previous is False:
                await self._on_regained()
        else:
            logger.warning("Remote authority unreachable, working offline")
        return online

    async def run(self) -> None:
        while True:
            try:
                await self.check()
            except Exception as e:
                logger.error(f"Connectivity check failed: {e}")
            await asyncio.sleep(self._interval)
