"""Outbound side of the remote conversational-agent transport."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from fastapi import WebSocket

logger = logging.getLogger("wokai.agent_channel")


class AgentChannel(ABC):
    """A duplex message stream to the remote agent, seen from the core.

    ``send_*`` methods never block; they hand the frame to the transport and
    return. Frames leave in the order they were sent.
    """

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    @abstractmethod
    def send_json(self, frame: dict[str, Any]) -> None:
        ...

    def send_contextual_update(self, text: str) -> None:
        self.send_json({"type": "contextual_update", "text": text})


class WebSocketAgentChannel(AgentChannel):
    """Channel over a FastAPI WebSocket with a single ordered writer task."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self._outbox: asyncio.Queue[Optional[dict[str, Any]]] = asyncio.Queue()
        self._writer: Optional[asyncio.Task] = None
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def start(self) -> None:
        self._open = True
        self._writer = asyncio.get_running_loop().create_task(self._drain())

    def send_json(self, frame: dict[str, Any]) -> None:
        if not self._open:
            logger.debug(f"Channel closed, dropping {frame.get('type')} frame")
            return
        self._outbox.put_nowait(frame)

    async def close(self) -> None:
        """Stop accepting frames and flush the ones already queued."""
        if not self._open:
            return
        self._open = False
        self._outbox.put_nowait(None)
        if self._writer is not None:
            try:
                await self._writer
            except Exception as e:
                logger.error(f"Agent channel writer failed: {e}")

    async def _drain(self) -> None:
        while True:
            frame = await self._outbox.get()
            if frame is None:
                return
            try:
                await self.websocket.send_json(frame)
            except Exception as e:
                # Peer went away; the receive loop will notice and detach us
                logger.warning(f"Agent channel send failed: {e}")
                self._open = False
                return
