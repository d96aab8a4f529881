from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class NotificationHub:
    """Open notification websockets, keyed by recipient."""

    def __init__(self) -> None:
        self._sockets: dict[str, set[WebSocket]] = {}
        self._guard = asyncio.Lock()

    async def register(self, recipient_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._guard:
            self._sockets.setdefault(recipient_id, set()).add(websocket)
        logger.debug("Recipient %s subscribed to notifications", recipient_id)

    async def unregister(self, recipient_id: str, websocket: WebSocket) -> None:
        async with self._guard:
            remaining = self._sockets.get(recipient_id, set())
            remaining.discard(websocket)
            if not remaining:
                self._sockets.pop(recipient_id, None)

    async def fan_out(self, messages: list[tuple[str, dict]]) -> int:
        """Send each (recipient, payload) pair to every socket of that recipient.

        Sockets that fail to receive are dropped. Returns the number of frames delivered.
        """
        delivered = 0
        for recipient_id, payload in messages:
            async with self._guard:
                targets = tuple(self._sockets.get(recipient_id, ()))
            for websocket in targets:
                try:
                    await websocket.send_json(payload)
                except Exception:
                    logger.debug("Dropping dead notification socket for %s", recipient_id, exc_info=True)
                    await self.unregister(recipient_id, websocket)
                    continue
                delivered += 1
        return delivered


notification_hub = NotificationHub()
