"""
Connection handle for one signaling transport session.

A handle wraps a message-oriented, ordered, reliable transport (an aiohttp
``WebSocketResponse`` in production) behind a best-effort, non-blocking
``send``. Outbound frames are queued and written by a single writer task, so
frames to one endpoint keep their order and relay handlers never suspend
while delivering.
"""
import asyncio
import itertools
from typing import Any, Dict, Optional

from ..core.logging import LoggerMixin
from .messages import SignalingMessageFactory

_connection_ids = itertools.count(1)


class ConnectionHandle(LoggerMixin):
    """Bidirectional signaling connection with a remote participant process."""

    def __init__(self, transport: Any, outbox_size: int = 256, connection_id: Optional[str] = None):
        super().__init__()
        self.transport = transport
        self.connection_id = connection_id or f"conn-{next(_connection_ids)}"
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=outbox_size)
        self.room_id: Optional[str] = None
        self.participant_id: Optional[str] = None
        self._bound_once = False
        self._closed = False
        self._writer_task: Optional[asyncio.Task] = None

    @property
    def closed(self) -> bool:
        return self._closed or bool(getattr(self.transport, 'closed', False))

    @property
    def is_bound(self) -> bool:
        return self.room_id is not None and self.participant_id is not None

    @property
    def has_joined(self) -> bool:
        """True once the handle has been bound, even if it has since left."""
        return self._bound_once

    def bind(self, room_id: str, participant_id: str):
        """Associate the handle with a room membership. Allowed once per handle."""
        if self._bound_once:
            raise RuntimeError(f"{self.connection_id} is already bound to a room")
        self.room_id = room_id
        self.participant_id = participant_id
        self._bound_once = True

    def unbind(self):
        self.room_id = None
        self.participant_id = None

    def send(self, message: Dict[str, Any]) -> bool:
        """Queue a message for delivery. Returns False when it was dropped."""
        if self.closed:
            return False
        try:
            self.outbox.put_nowait(SignalingMessageFactory.encode(message))
        except asyncio.QueueFull:
            self.log_warning("Outbox full, dropping message", {
                "connection_id": self.connection_id,
                "type": message.get('type')
            })
            return False
        return True

    def start_writer(self) -> asyncio.Task:
        if self._writer_task is None:
            self._writer_task = asyncio.get_running_loop().create_task(self._drain())
        return self._writer_task

    async def _drain(self):
        """Write queued frames to the transport in order until closed."""
        while True:
            frame = await self.outbox.get()
            if self.closed:
                break
            try:
                await self.transport.send_str(frame)
            except (ConnectionError, RuntimeError) as e:
                # aiohttp raises these when the peer went away mid-write
                self.log_debug("Dropping frame on unwritable transport", {
                    "connection_id": self.connection_id,
                    "error": str(e)
                })
            finally:
                self.outbox.task_done()

    async def close(self):
        """Stop the writer and close the transport. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        if self._writer_task is not None:
            self._writer_task.cancel()
            try:
                await self._writer_task
            except asyncio.CancelledError:
                pass
        if not getattr(self.transport, 'closed', False):
            await self.transport.close()

    def __repr__(self) -> str:
        return (f"ConnectionHandle({self.connection_id}, room={self.room_id}, "
                f"participant={self.participant_id})")
