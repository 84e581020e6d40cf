"""
Participant process: reacts to relay messages and owns negotiation sessions.

Messages are handled one at a time in arrival order. While a handler is
suspended on the negotiation backend, later messages wait their turn.
"""
from typing import Any, Callable, Dict, List, Optional

from ..core.exceptions import NegotiationFailed
from ..core.logging import LoggerMixin
from ..core.validation_utils import ValidationUtils
from ..signaling import messages
from ..signaling.messages import SignalingMessageFactory
from .negotiation import (
    ICECandidate,
    NegotiationBackend,
    NegotiationSession,
    NegotiationState,
)

BackendFactory = Callable[[str], NegotiationBackend]


class Participant(LoggerMixin):
    """One endpoint of a two-person room."""

    def __init__(self, participant_id: str, room_id: str, backend_factory: BackendFactory,
                 send: Callable[[Dict[str, Any]], Any],
                 on_state_change: Optional[Callable[[str, NegotiationState], Any]] = None,
                 on_failure: Optional[Callable[[str, NegotiationFailed], Any]] = None,
                 on_error: Optional[Callable[[str], Any]] = None):
        super().__init__()
        self.participant_id = participant_id
        self.room_id = room_id
        self.backend_factory = backend_factory
        self.send = send
        self.on_state_change = on_state_change
        self.on_failure = on_failure
        self.on_error = on_error

        self.joined = False
        self.peers_at_join: List[str] = []
        self.sessions: Dict[str, NegotiationSession] = {}
        self.errors: List[str] = []

        self._handlers = {
            messages.JOINED_ROOM: self._handle_joined_room,
            messages.USER_JOINED: self._handle_user_joined,
            messages.USER_LEFT: self._handle_user_left,
            messages.OFFER: self._handle_offer,
            messages.ANSWER: self._handle_answer,
            messages.ICE_CANDIDATE: self._handle_ice_candidate,
            messages.ERROR: self._handle_error,
        }

    def join_message(self) -> Dict[str, Any]:
        return SignalingMessageFactory.join_room(self.room_id, self.participant_id)

    def leave_message(self) -> Dict[str, Any]:
        return SignalingMessageFactory.leave_room(self.room_id, self.participant_id)

    async def handle_message(self, message: Dict[str, Any]):
        kind = message.get('type')
        handler = self._handlers.get(kind)
        if handler is None:
            self.log_warning("Unknown message type", {"type": kind})
            return
        await handler(message)

    def _new_session(self, remote_id: str) -> NegotiationSession:
        session = NegotiationSession(
            self.participant_id, remote_id, self.room_id,
            self.backend_factory(remote_id), self.send,
            on_state_change=self._session_state_changed,
            on_failure=self._session_failed
        )
        session.mark_joined()
        self.sessions[remote_id] = session
        return session

    def _session_state_changed(self, session: NegotiationSession, state: NegotiationState):
        if self.on_state_change:
            self.on_state_change(session.remote_id, state)

    def _session_failed(self, session: NegotiationSession, error: NegotiationFailed):
        # Surfaced locally only; the remote peer is not told.
        if self.sessions.get(session.remote_id) is session:
            del self.sessions[session.remote_id]
        if self.on_failure:
            self.on_failure(session.remote_id, error)

    async def _handle_joined_room(self, message: Dict[str, Any]):
        self.joined = True
        self.peers_at_join = list(message.get('participants') or [])
        self.log_info("Joined room", {
            "room_id": message.get('roomId'),
            "participants": self.peers_at_join
        })

    async def _handle_user_joined(self, message: Dict[str, Any]):
        remote_id = message.get('userId')
        if not self.joined or not remote_id:
            self.log_warning("Ignoring user-joined", {"joined": self.joined, "user_id": remote_id})
            return
        await self._discard_session(remote_id)
        self.log_info("Peer arrived, initiating", {"remote_id": remote_id})
        await self._new_session(remote_id).start_as_initiator()

    async def _handle_user_left(self, message: Dict[str, Any]):
        remote_id = message.get('userId')
        self.log_info("Peer departed", {"remote_id": remote_id})
        await self._discard_session(remote_id)

    def _session_for(self, message: Dict[str, Any], create: bool) -> Optional[NegotiationSession]:
        remote_id = message.get('fromUserId')
        if not self.joined or not remote_id:
            self.log_warning("Ignoring negotiation message", {
                "type": message.get('type'),
                "joined": self.joined,
                "from": remote_id
            })
            return None
        session = self.sessions.get(remote_id)
        if session is None and create:
            session = self._new_session(remote_id)
        return session

    async def _handle_offer(self, message: Dict[str, Any]):
        session = self._session_for(message, create=True)
        if session is None:
            return
        error = ValidationUtils.validate_required_fields(message, ['sdp'])
        if error:
            await session.fail(NegotiationFailed(f"Malformed offer: {error}", {"remote_id": session.remote_id}))
            return
        await session.handle_offer(message['sdp'])

    async def _handle_answer(self, message: Dict[str, Any]):
        session = self._session_for(message, create=False)
        if session is None:
            self.log_warning("Answer without a negotiation in progress", {"from": message.get('fromUserId')})
            return
        error = ValidationUtils.validate_required_fields(message, ['sdp'])
        if error:
            await session.fail(NegotiationFailed(f"Malformed answer: {error}", {"remote_id": session.remote_id}))
            return
        await session.handle_answer(message['sdp'])

    async def _handle_ice_candidate(self, message: Dict[str, Any]):
        # A candidate may precede the offer; the session buffers it.
        session = self._session_for(message, create=True)
        if session is None:
            return
        try:
            candidate = ICECandidate.from_message(message)
        except (TypeError, ValueError) as e:
            await session.fail(NegotiationFailed(f"Malformed candidate: {e}", {"remote_id": session.remote_id}))
            return
        await session.handle_remote_candidate(candidate)

    async def _handle_error(self, message: Dict[str, Any]):
        text = message.get('message') or "unknown error"
        self.errors.append(text)
        self.log_error("Relay reported an error", {"message": text})
        if self.on_error:
            self.on_error(text)

    async def _discard_session(self, remote_id: Optional[str]):
        session = self.sessions.pop(remote_id, None) if remote_id else None
        if session is not None:
            await session.close()

    async def leave(self):
        """Local leave: discard every session. No state survives."""
        for remote_id in list(self.sessions):
            await self._discard_session(remote_id)
        self.joined = False
        self.peers_at_join = []
