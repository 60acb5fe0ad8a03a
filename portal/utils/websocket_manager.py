import logging
from typing import Dict, List

from fastapi import WebSocket


logger = logging.getLogger(__name__)


class ConnectionManager:
    """In-process websocket registry keyed by topic (``org:<id>``, ``user:<id>``)."""

    def __init__(self) -> None:
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, topics: List[str], websocket: WebSocket) -> None:
        await websocket.accept()
        for topic in topics:
            self.active_connections.setdefault(topic, []).append(websocket)

    def disconnect(self, topics: List[str], websocket: WebSocket) -> None:
        for topic in topics:
            if topic in self.active_connections:
                try:
                    self.active_connections[topic].remove(websocket)
                except ValueError:
                    pass
                if not self.active_connections[topic]:
                    del self.active_connections[topic]

    async def broadcast(self, topic: str, message: str) -> None:
        for conn in list(self.active_connections.get(topic, [])):
            try:
                await conn.send_text(message)
            except RuntimeError:
                logger.warning("dropping closed websocket on %s", topic)
                self.disconnect([topic], conn)


manager = ConnectionManager()
