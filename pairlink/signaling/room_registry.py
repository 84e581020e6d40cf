"""
Room registry: the single owner of room membership.

All operations are synchronous. On a single event loop a call runs to
completion before any other handler, so the capacity check and the
registration in ``join`` can never be split by a concurrent join or leave.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..core.exceptions import InvalidRequest, InvalidRoom, RoomFull, RoomNotFound
from ..core.logging import LoggerMixin
from .connection import ConnectionHandle

ROOM_CAPACITY = 2


@dataclass
class Room:
    """A rendezvous point for at most two participants."""

    room_id: str
    participants: Dict[str, ConnectionHandle] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.participants)

    def others(self, participant_id: str) -> List[str]:
        return [pid for pid in self.participants if pid != participant_id]


class RoomRegistry(LoggerMixin):
    """Maps room identifiers to participant sets and enforces room capacity."""

    def __init__(self, capacity: int = ROOM_CAPACITY):
        super().__init__()
        self.capacity = capacity
        self._rooms: Dict[str, Room] = {}

    def join(self, room_id: str, participant_id: str, handle: ConnectionHandle) -> List[str]:
        """
        Register a participant in a room, creating the room if needed.

        Returns:
            The identifiers of the other participants already present.

        Raises:
            InvalidRequest: an identifier is empty, or the participant is already present.
            RoomFull: the room already holds ``capacity`` participants.
        """
        if not room_id or not participant_id:
            raise InvalidRequest()

        room = self._rooms.get(room_id)
        if room is not None:
            if participant_id in room.participants:
                raise InvalidRequest(details={
                    "reason": "participant already in room",
                    "room_id": room_id,
                    "participant_id": participant_id
                })
            if room.size >= self.capacity:
                raise RoomFull(details={"room_id": room_id})
        else:
            room = Room(room_id)
            self._rooms[room_id] = room
            self.log_debug("Room created", {"room_id": room_id})

        others = room.others(participant_id)
        room.participants[participant_id] = handle

        self.log_info("Participant joined room", {
            "room_id": room_id,
            "participant_id": participant_id,
            "room_size": room.size
        })
        return others

    def leave(self, room_id: Optional[str], participant_id: Optional[str]) -> Optional[List[str]]:
        """
        Remove a participant. A missing room or participant is a no-op.

        Returns:
            The remaining participant identifiers, or None if nothing was removed.
        """
        room = self._rooms.get(room_id) if room_id else None
        if room is None or participant_id not in room.participants:
            return None

        del room.participants[participant_id]
        remaining = list(room.participants)

        if not remaining:
            del self._rooms[room_id]
            self.log_debug("Room destroyed", {"room_id": room_id})

        self.log_info("Participant left room", {
            "room_id": room_id,
            "participant_id": participant_id,
            "remaining": remaining
        })
        return remaining

    def forward(self, room_id: str, sender_id: str, target_id: Optional[str],
                payload: Dict[str, Any]) -> int:
        """
        Deliver a payload to the target participant, or to every other member when
        no target is given. Unwritable recipients are skipped without error.

        Returns:
            The number of recipients the payload was queued for.
        """
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFound(details={"room_id": room_id})
        if sender_id not in room.participants:
            raise InvalidRoom(details={"room_id": room_id, "sender_id": sender_id})

        if target_id:
            handle = room.participants.get(target_id)
            recipients = [handle] if handle is not None else []
        else:
            recipients = [room.participants[pid] for pid in room.others(sender_id)]

        delivered = 0
        for handle in recipients:
            # A dropped frame is not an error here
            if handle.send(payload):
                delivered += 1

        self.log_debug("Forwarded payload", {
            "room_id": room_id,
            "from": sender_id,
            "to": target_id or "*",
            "type": payload.get('type'),
            "delivered": delivered
        })
        return delivered

    def notify(self, room_id: str, participant_ids: List[str], message: Dict[str, Any]) -> int:
        """Send a relay event to the listed members of a room."""
        room = self._rooms.get(room_id)
        if room is None:
            return 0
        delivered = 0
        for pid in participant_ids:
            handle = room.participants.get(pid)
            if handle is not None and handle.send(message):
                delivered += 1
        return delivered

    def has_room(self, room_id: str) -> bool:
        return room_id in self._rooms

    def participants(self, room_id: str) -> List[str]:
        room = self._rooms.get(room_id)
        return list(room.participants) if room else []

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    def snapshot(self) -> Dict[str, List[str]]:
        """Copy of the membership table, for status reporting."""
        return {room_id: list(room.participants) for room_id, room in self._rooms.items()}
