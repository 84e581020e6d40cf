"""
Participant-side signaling connection to the relay.
"""
import asyncio
from typing import Any, Dict, Optional

import websockets

from ..core.config import ClientConfig
from ..core.exceptions import MalformedMessage
from ..core.logging import LoggerMixin
from ..signaling.messages import SignalingMessageFactory
from .media import MediaController
from .participant import Participant
from .peer_manager import WebRTCPeerManager


class SignalingClient(LoggerMixin):
    """Connects a participant to the relay and feeds it messages in order."""

    def __init__(self, config: ClientConfig, participant_id: str, room_id: str,
                 media: Optional[MediaController] = None):
        super().__init__()
        self.config = config
        self.media = media
        self.peer_manager = WebRTCPeerManager(config, media)
        self.participant = Participant(participant_id, room_id, self.peer_manager.create_backend, self.send)
        self.ws = None
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._writer_task: Optional[asyncio.Task] = None

    def send(self, message: Dict[str, Any]) -> bool:
        """Queue a message for the relay; dropped when not connected."""
        if self.ws is None:
            self.log_warning("Not connected, dropping message", {"type": message.get('type')})
            return False
        self._outbox.put_nowait(SignalingMessageFactory.encode(message))
        return True

    async def _drain(self):
        while True:
            frame = await self._outbox.get()
            try:
                await self.ws.send(frame)
            except websockets.exceptions.ConnectionClosed:
                self.log_debug("Relay connection closed while sending")
            finally:
                self._outbox.task_done()

    async def run(self):
        """Connect, join the room and process relay messages until disconnected."""
        if self.media is not None:
            self.media.acquire()
            await self.media.start()

        async with websockets.connect(self.config.signaling_url) as ws:
            self.ws = ws
            self._writer_task = asyncio.create_task(self._drain())
            self.log_info("Connected to relay", {"url": self.config.signaling_url})
            self.send(self.participant.join_message())
            try:
                async for raw in ws:
                    try:
                        message = SignalingMessageFactory.parse(raw)
                    except MalformedMessage as e:
                        self.log_warning("Ignoring malformed relay message", e.details)
                        continue
                    await self.participant.handle_message(message)
            except websockets.exceptions.ConnectionClosed:
                self.log_info("Relay connection closed")
            finally:
                await self._shutdown()

    async def leave(self):
        """Leave the room and close the relay connection."""
        if self.ws is None:
            return
        self.send(self.participant.leave_message())
        await self._outbox.join()
        await self.ws.close()

    async def _shutdown(self):
        await self.participant.leave()
        await self.peer_manager.close_all()
        if self._writer_task is not None:
            self._writer_task.cancel()
            self._writer_task = None
        self.ws = None
        if self.media is not None:
            await self.media.stop()
