"""
Signaling relay: classifies inbound messages and routes them.

Membership control goes to the room registry; negotiation payloads are
forwarded to the peer untouched apart from the injected ``fromUserId``.
"""
from typing import Any, Callable, Dict

from ..core.exceptions import (
    InvalidRequest,
    InvalidRoom,
    PairLinkError,
    UnknownMessageKind,
)
from ..core.logging import LoggerMixin
from ..core.validation_utils import ValidationUtils
from . import messages
from .connection import ConnectionHandle
from .lifecycle import ConnectionLifecycleManager
from .messages import SignalingMessageFactory
from .room_registry import RoomRegistry


class SignalingRelay(LoggerMixin):
    """Routes signaling messages between the members of a room."""

    def __init__(self, registry: RoomRegistry, lifecycle: ConnectionLifecycleManager):
        super().__init__()
        self.registry = registry
        self.lifecycle = lifecycle
        self._handlers: Dict[str, Callable[[ConnectionHandle, Dict[str, Any]], None]] = {
            messages.JOIN_ROOM: self._handle_join,
            messages.LEAVE_ROOM: self._handle_leave,
        }
        for kind in messages.NEGOTIATION_KINDS:
            self._handlers[kind] = self._handle_negotiation

    def on_message(self, handle: ConnectionHandle, raw_payload: Any):
        """
        Process one inbound frame to completion.

        Errors are reported back on the same handle as an ``error`` message and
        never change room state. The connection stays open.
        """
        try:
            data = SignalingMessageFactory.parse(raw_payload)
            kind = data.get('type')
            handler = self._handlers.get(kind) if isinstance(kind, str) else None
            if handler is None:
                raise UnknownMessageKind(details={"type": kind})
            self.log_debug("Message received", {
                "connection_id": handle.connection_id,
                "type": kind
            })
            handler(handle, data)
        except PairLinkError as e:
            self.log_warning("Rejected message", {
                "connection_id": handle.connection_id,
                "error": type(e).__name__,
                "message": e.message,
                "details": e.details
            })
            handle.send(SignalingMessageFactory.error(e.message))

    def _handle_join(self, handle: ConnectionHandle, data: Dict[str, Any]):
        room_id = ValidationUtils.normalize_identifier(data.get('roomId'))
        participant_id = ValidationUtils.normalize_identifier(
            data.get('participantId', data.get('userId'))
        )
        if not room_id or not participant_id:
            raise InvalidRequest()
        if handle.has_joined:
            raise InvalidRequest(details={
                "reason": "connection already joined a room",
                "connection_id": handle.connection_id,
                "room_id": handle.room_id
            })

        existing = self.registry.join(room_id, participant_id, handle)
        self.lifecycle.bind(handle, room_id, participant_id)

        handle.send(SignalingMessageFactory.joined_room(room_id, participant_id, existing))
        # Only members present before the arrival are told; they become Initiator.
        self.registry.notify(room_id, existing, SignalingMessageFactory.user_joined(participant_id))

    def _handle_leave(self, handle: ConnectionHandle, data: Dict[str, Any]):
        # Identifiers come from the binding, not from the payload.
        self.lifecycle.leave(handle)

    def _handle_negotiation(self, handle: ConnectionHandle, data: Dict[str, Any]):
        room_id = data.get('roomId')
        if not room_id or not handle.is_bound or handle.room_id != room_id:
            raise InvalidRoom(details={
                "connection_id": handle.connection_id,
                "room_id": room_id,
                "bound_room_id": handle.room_id
            })

        target_id = ValidationUtils.normalize_identifier(data.get('targetUserId'))
        payload = SignalingMessageFactory.forwarded(data, handle.participant_id)
        self.registry.forward(room_id, handle.participant_id, target_id, payload)
