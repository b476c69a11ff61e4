import asyncio
import json
from typing import Optional, Set

from nightshift.core.config import settings
from nightshift.core.errors import RegistryUnavailableError
from nightshift.core.logging_config import get_logger
from nightshift.services.registry import Registry

logger = get_logger(__name__)


class StatusNotifier:
    """read-only queue summary, pushed to connected dashboards on an interval"""

    def __init__(self, registry: Registry, scheduler):
        self.registry = registry
        self.scheduler = scheduler
        # active websocket connections
        self.connections: Set = set()

    def snapshot(self) -> dict:
        return {
            "pendingCount": self.registry.count_nonterminal(),
            "processingActive": bool(self.scheduler.active),
        }

    def register(self, websocket):
        self.connections.add(websocket)

    def unregister(self, websocket):
        self.connections.discard(websocket)

    async def broadcast(self, status: Optional[dict] = None) -> int:
        """send a status update to every client, dropping the ones that fail"""
        if not self.connections:
            return 0

        payload = json.dumps({"type": "status_update", **(status or self.snapshot())})

        disconnected = set()
        for connection in list(self.connections):
            try:
                await connection.send_text(payload)
            except Exception:
                disconnected.add(connection)

        # cleanup disconnected clients
        for conn in disconnected:
            self.connections.discard(conn)
        return len(self.connections)

    async def run(self, interval: float = None):
        interval = interval or settings.STATUS_PUSH_SECONDS
        while True:
            await asyncio.sleep(interval)
            try:
                await self.broadcast()
            except RegistryUnavailableError as e:
                logger.warning(f"status push skipped: {e}")
