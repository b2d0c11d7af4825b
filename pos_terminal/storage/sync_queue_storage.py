# storage/sync_queue_storage.py
import json
import logging
import os
from typing import List

import aiofiles
import aiofiles.os

from pos_terminal.models.errors import StoreIOError

logger = logging.getLogger(__name__)

SYNC_ORDERS_TAG = "sync-orders"


class DeferredSyncQueue:
    """Named sync tasks that must run once connectivity allows, kept across restarts."""

    def __init__(self, path: str):
        self._path = path
        self._pending: List[str] = []

    async def load(self) -> List[str]:
        try:
            async with aiofiles.open(self._path, 'r', encoding='utf-8') as f:
                content = await f.read()
            self._pending = json.loads(content).get("pending", []) if content else []
        except FileNotFoundError:
            self._pending = []
        except (OSError, ValueError) as e:
            logger.error(f"Error loading sync queue from {self._path}: {e}")
            raise StoreIOError(f"cannot read sync queue: {e}") from e
        if self._pending:
            logger.info(f"Pending sync tasks from previous run: {self._pending}")
        return list(self._pending)

    def pending(self) -> List[str]:
        return list(self._pending)

    async def register(self, tag: str = SYNC_ORDERS_TAG) -> None:
        if tag in self._pending:
            return
        await self._save(self._pending + [tag])
        logger.info(f"Sync task '{tag}' registered")

    async def complete(self, tag: str = SYNC_ORDERS_TAG) -> None:
        if tag not in self._pending:
            return
        await self._save([t for t in self._pending if t != tag])
        logger.info(f"Sync task '{tag}' completed")

    async def _save(self, pending: List[str]) -> None:
        try:
            directory = os.path.dirname(self._path)
            if directory:
                await aiofiles.os.makedirs(directory, exist_ok=True)
            tmp_path = f"{self._path}.tmp"
            async with aiofiles.open(tmp_path, 'w', encoding='utf-8') as f:
                await f.write(json.dumps({"pending": pending}, ensure_ascii=False, indent=2))
            await aiofiles.os.replace(tmp_path, self._path)
        except OSError as e:
            logger.error(f"Error saving sync queue to {self._path}: {e}")
            raise StoreIOError(f"cannot write sync queue: {e}") from e
        self._pending = pending
