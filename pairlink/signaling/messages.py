"""
Signaling message factory.
Centralizes construction and parsing of the JSON wire messages.
"""

import json
from typing import Any, Dict, List, Optional

from ..core.exceptions import MalformedMessage

JOIN_ROOM = 'join-room'
JOINED_ROOM = 'joined-room'
USER_JOINED = 'user-joined'
USER_LEFT = 'user-left'
LEAVE_ROOM = 'leave-room'
OFFER = 'offer'
ANSWER = 'answer'
ICE_CANDIDATE = 'ice-candidate'
ERROR = 'error'

NEGOTIATION_KINDS = (OFFER, ANSWER, ICE_CANDIDATE)


class SignalingMessageFactory:
    """Factory for creating standardized signaling messages."""

    @staticmethod
    def parse(raw: Any) -> Dict[str, Any]:
        """Parse a raw text or bytes frame into a message object."""
        if isinstance(raw, (bytes, bytearray)):
            try:
                raw = raw.decode('utf-8')
            except UnicodeDecodeError as e:
                raise MalformedMessage(details={"error": str(e)})
        try:
            data = json.loads(raw)
        except (TypeError, ValueError, RecursionError) as e:
            raise MalformedMessage(details={"error": str(e)})
        if not isinstance(data, dict):
            raise MalformedMessage(details={"error": "payload is not an object"})
        return data

    @staticmethod
    def encode(message: Dict[str, Any]) -> str:
        return json.dumps(message)

    @staticmethod
    def join_room(room_id: str, participant_id: str) -> Dict[str, Any]:
        return {'type': JOIN_ROOM, 'roomId': room_id, 'participantId': participant_id}

    @staticmethod
    def joined_room(room_id: str, participant_id: str, participants: List[str]) -> Dict[str, Any]:
        return {
            'type': JOINED_ROOM,
            'roomId': room_id,
            'participantId': participant_id,
            'participants': list(participants)
        }

    @staticmethod
    def user_joined(user_id: str) -> Dict[str, Any]:
        return {'type': USER_JOINED, 'userId': user_id}

    @staticmethod
    def user_left(user_id: str) -> Dict[str, Any]:
        return {'type': USER_LEFT, 'userId': user_id}

    @staticmethod
    def leave_room(room_id: str, participant_id: str) -> Dict[str, Any]:
        return {'type': LEAVE_ROOM, 'roomId': room_id, 'participantId': participant_id}

    @staticmethod
    def error(message: str) -> Dict[str, Any]:
        return {'type': ERROR, 'message': message}

    @staticmethod
    def description(kind: str, room_id: str, target_id: str, sdp: str) -> Dict[str, Any]:
        """Create an offer or answer addressed to a specific participant."""
        return {'type': kind, 'roomId': room_id, 'targetUserId': target_id, 'sdp': sdp}

    @staticmethod
    def ice_candidate(room_id: str, target_id: Optional[str], candidate: str,
                      sdp_mline_index: Optional[int], sdp_mid: Optional[str]) -> Dict[str, Any]:
        message = {
            'type': ICE_CANDIDATE,
            'roomId': room_id,
            'candidate': candidate,
            'sdpMLineIndex': sdp_mline_index,
            'sdpMid': sdp_mid
        }
        if target_id:
            message['targetUserId'] = target_id
        return message

    @staticmethod
    def forwarded(payload: Dict[str, Any], sender_id: str) -> Dict[str, Any]:
        """Copy a negotiation payload verbatim and stamp its provenance."""
        message = dict(payload)
        message['fromUserId'] = sender_id
        return message
