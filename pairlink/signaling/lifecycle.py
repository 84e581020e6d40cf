"""
Connection lifecycle management.

Binds each live connection handle to at most one (room, participant) pair and
turns transport termination into an implicit leave. There is no heartbeat or
timeout: liveness is entirely derived from the transport.
"""
from typing import Any, Dict, List, Optional

from ..core.exceptions import TransportLost
from ..core.logging import LoggerMixin
from .connection import ConnectionHandle
from .messages import SignalingMessageFactory
from .room_registry import RoomRegistry


class ConnectionLifecycleManager(LoggerMixin):
    """Owns live connection handles and their room bindings."""

    def __init__(self, registry: RoomRegistry, outbox_size: int = 256):
        super().__init__()
        self.registry = registry
        self.outbox_size = outbox_size
        self._handles: Dict[str, ConnectionHandle] = {}

    def open(self, transport: Any) -> ConnectionHandle:
        """Register a newly established transport session."""
        handle = ConnectionHandle(transport, outbox_size=self.outbox_size)
        self._handles[handle.connection_id] = handle
        handle.start_writer()
        self.log_info("Connection opened", {
            "connection_id": handle.connection_id,
            "total_connections": len(self._handles)
        })
        return handle

    def bind(self, handle: ConnectionHandle, room_id: str, participant_id: str):
        handle.bind(room_id, participant_id)
        self.log_debug("Connection bound", {
            "connection_id": handle.connection_id,
            "room_id": room_id,
            "participant_id": participant_id
        })

    def leave(self, handle: ConnectionHandle) -> Optional[List[str]]:
        """
        Remove the handle's participant from its room and tell whoever remains.

        Returns the notified participant ids, or None when the handle was not
        in a room. Calling it twice notifies only once.
        """
        if not handle.is_bound:
            return None

        room_id, participant_id = handle.room_id, handle.participant_id
        handle.unbind()

        remaining = self.registry.leave(room_id, participant_id)
        if remaining is None:
            return None

        self.registry.notify(room_id, remaining, SignalingMessageFactory.user_left(participant_id))
        return remaining

    async def release(self, handle: ConnectionHandle):
        """Handle transport termination for any cause. Idempotent."""
        if self._handles.pop(handle.connection_id, None) is None and handle.closed:
            return

        if handle.is_bound:
            # Logged only; the lost connection has nobody left to tell.
            lost = TransportLost(details={
                "connection_id": handle.connection_id,
                "room_id": handle.room_id,
                "participant_id": handle.participant_id
            })
            self.log_info(f"{lost.message}, leaving room", lost.details)
            self.leave(handle)

        await handle.close()
        self.log_info("Connection released", {
            "connection_id": handle.connection_id,
            "total_connections": len(self._handles)
        })

    @property
    def connection_count(self) -> int:
        return len(self._handles)

    async def close_all(self):
        for handle in list(self._handles.values()):
            await self.release(handle)
