"""Storage backends for test execution history."""

import asyncio
import logging
from typing import Dict, List, Optional

import redis.asyncio as redis

from .base import HistoryStore
from ..models.healing_models import TestExecutionHistory

logger = logging.getLogger(__name__)

HISTORY_KEY_PREFIX = "test:history:"


class InMemoryHistoryStore(HistoryStore):
    """Process-local history store."""

    def __init__(self):
        self._histories: Dict[str, TestExecutionHistory] = {}
        self._lock = asyncio.Lock()

    async def get(self, test_id: str) -> Optional[TestExecutionHistory]:
        async with self._lock:
            history = self._histories.get(test_id)
            return history.model_copy(deep=True) if history else None

    async def put(self, history: TestExecutionHistory) -> None:
        async with self._lock:
            self._histories[history.test_id] = history.model_copy(deep=True)

    async def delete(self, test_id: str) -> None:
        async with self._lock:
            self._histories.pop(test_id, None)

    async def keys(self) -> List[str]:
        async with self._lock:
            return list(self._histories)


class RedisHistoryStore(HistoryStore):
    """
    Redis-backed history store.

    PATTERN: One JSON document per test under ``test:history:<id>``
    GOTCHA: The client must be created with decode_responses or return bytes;
            both are accepted
    """

    def __init__(self, redis_client=None, redis_url: Optional[str] = None):
        """
        Initialize store.

        Args:
            redis_client: Existing async Redis client
            redis_url: URL used to create a client when none is given
        """
        if redis_client is None:
            if not redis_url:
                raise ValueError("Either redis_client or redis_url is required")
            redis_client = redis.from_url(redis_url, decode_responses=True)
            self._owns_client = True
        else:
            self._owns_client = False
        self.redis = redis_client

    @staticmethod
    def _key(test_id: str) -> str:
        return f"{HISTORY_KEY_PREFIX}{test_id}"

    async def get(self, test_id: str) -> Optional[TestExecutionHistory]:
        data = await self.redis.get(self._key(test_id))
        if data is None:
            return None
        return TestExecutionHistory.model_validate_json(data)

    async def put(self, history: TestExecutionHistory) -> None:
        await self.redis.set(self._key(history.test_id), history.model_dump_json())

    async def delete(self, test_id: str) -> None:
        await self.redis.delete(self._key(test_id))

    async def keys(self) -> List[str]:
        test_ids = []
        async for key in self.redis.scan_iter(match=f"{HISTORY_KEY_PREFIX}*"):
            if isinstance(key, bytes):
                key = key.decode("utf-8")
            test_ids.append(key[len(HISTORY_KEY_PREFIX):])
        return test_ids

    async def close(self) -> None:
        if self._owns_client:
            await self.redis.aclose()
            logger.debug("Closed Redis history store connection")
