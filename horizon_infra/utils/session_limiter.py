import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Dict

from ..config import settings

class SessionLimiter:
    """Bounds how many connector sessions are open against one instance at a time.

    Connectors never pool or serialize their own sessions, so callers that fan
    out (health sweeps, discovery) acquire a slot here first.
    """

    def __init__(self, max_sessions_per_instance: int = 4):
        self.max_sessions_per_instance = max_sessions_per_instance
        self.active_sessions: Dict[str, int] = defaultdict(int)
        self._semaphores: Dict[str, asyncio.Semaphore] = {}

    def _semaphore(self, instance_id: str) -> asyncio.Semaphore:
        if instance_id not in self._semaphores:
            self._semaphores[instance_id] = asyncio.Semaphore(self.max_sessions_per_instance)
        return self._semaphores[instance_id]

    @asynccontextmanager
    async def acquire(self, instance_id: str):
        async with self._semaphore(instance_id):
            self.active_sessions[instance_id] += 1
            try:
                yield
            finally:
                self.active_sessions[instance_id] = max(0, self.active_sessions[instance_id] - 1)

    def is_saturated(self, instance_id: str) -> bool:
        return self.active_sessions.get(instance_id, 0) >= self.max_sessions_per_instance

    def forget(self, instance_id: str) -> None:
        """Drop the bookkeeping of a deleted instance unless a session is still open"""
        if self.active_sessions.get(instance_id, 0) == 0:
            self._semaphores.pop(instance_id, None)
            self.active_sessions.pop(instance_id, None)

# Shared limiter for request handlers and the background health loop
session_limiter = SessionLimiter(max_sessions_per_instance=settings.MAX_SESSIONS_PER_INSTANCE)
