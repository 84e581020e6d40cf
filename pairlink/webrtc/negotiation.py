"""
Negotiation state machine run by each participant for one remote peer.

Role assignment is deterministic: the participant that was already in the
room when the peer arrived is told ``user-joined`` and becomes Initiator; the
arriver only ever reacts to an offer and becomes Responder. Exactly one offer
is therefore produced per pairing without any tie-breaking.

The session drives an abstract ``NegotiationBackend`` (aiortc in production)
and sends its outbound signaling through a plain ``send`` callable.
"""
import abc
import enum
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..core.exceptions import NegotiationFailed
from ..core.logging import LoggerMixin
from ..signaling import messages
from ..signaling.messages import SignalingMessageFactory


class NegotiationState(enum.Enum):
    IDLE = "idle"
    JOINED = "joined"
    ROLE_ASSIGNED = "role-assigned"
    DESCRIPTION_EXCHANGED = "description-exchanged"
    CANDIDATES_EXCHANGING = "candidates-exchanging"
    CONNECTED = "connected"
    FAILED = "failed"
    CLOSED = "closed"


TERMINAL_STATES = (NegotiationState.FAILED, NegotiationState.CLOSED)


class Role(enum.Enum):
    INITIATOR = "initiator"
    RESPONDER = "responder"


@dataclass
class SessionDescription:
    """An offer or answer as exchanged on the wire."""

    type: str
    sdp: str


@dataclass
class ICECandidate:
    """Serialisable ICE candidate container."""

    candidate: str
    sdp_mid: Optional[str] = None
    sdp_mline_index: Optional[int] = None

    @classmethod
    def from_message(cls, message: Dict[str, Any]) -> "ICECandidate":
        index = message.get('sdpMLineIndex')
        return cls(
            candidate=message.get('candidate') or "",
            sdp_mid=message.get('sdpMid'),
            sdp_mline_index=int(index) if index is not None else None
        )


class NegotiationBackend(abc.ABC):
    """
    The transport-negotiation layer a session drives.

    Implementations call ``on_local_candidate`` for every locally discovered
    candidate and ``on_connection_state`` with W3C connection state strings
    (``connected``, ``failed``, ``closed``...).
    """

    on_local_candidate: Optional[Callable[[ICECandidate], Any]] = None
    on_connection_state: Optional[Callable[[str], Awaitable[None]]] = None

    @abc.abstractmethod
    async def create_offer(self) -> SessionDescription:
        ...

    @abc.abstractmethod
    async def create_answer(self) -> SessionDescription:
        ...

    @abc.abstractmethod
    async def set_local_description(self, description: SessionDescription) -> SessionDescription:
        """Apply a local description and return the one to send to the peer."""

    @abc.abstractmethod
    async def set_remote_description(self, description: SessionDescription) -> None:
        ...

    @abc.abstractmethod
    async def add_ice_candidate(self, candidate: ICECandidate) -> None:
        ...

    @abc.abstractmethod
    async def close(self) -> None:
        ...


SendCallable = Callable[[Dict[str, Any]], Any]
FailureCallback = Callable[["NegotiationSession", NegotiationFailed], Any]
StateCallback = Callable[["NegotiationSession", NegotiationState], Any]


class NegotiationSession(LoggerMixin):
    """Offer/answer and candidate exchange with one remote participant."""

    def __init__(self, local_id: str, remote_id: str, room_id: str,
                 backend: NegotiationBackend, send: SendCallable,
                 on_state_change: Optional[StateCallback] = None,
                 on_failure: Optional[FailureCallback] = None):
        super().__init__()
        self.local_id = local_id
        self.remote_id = remote_id
        self.room_id = room_id
        self.backend = backend
        self.send = send
        self.on_state_change = on_state_change
        self.on_failure = on_failure

        self.state = NegotiationState.IDLE
        self.role: Optional[Role] = None
        self.local_description: Optional[SessionDescription] = None
        self.remote_description: Optional[SessionDescription] = None
        self.pending_local_candidates: List[ICECandidate] = []
        self.pending_remote_candidates: List[ICECandidate] = []
        self.failure: Optional[NegotiationFailed] = None

        backend.on_local_candidate = self.handle_local_candidate
        backend.on_connection_state = self.handle_connection_state

    @property
    def is_active(self) -> bool:
        return self.state not in TERMINAL_STATES

    def _transition(self, state: NegotiationState):
        if state == self.state:
            return
        self.log_info("Negotiation state changed", {
            "local_id": self.local_id,
            "remote_id": self.remote_id,
            "from": self.state.value,
            "to": state.value
        })
        self.state = state
        if self.on_state_change:
            self.on_state_change(self, state)

    def mark_joined(self):
        """Idle -> Joined, on join confirmation from the relay."""
        if self.state == NegotiationState.IDLE:
            self._transition(NegotiationState.JOINED)

    def _assign_role(self, role: Role):
        if self.role is not None:
            raise NegotiationFailed(
                f"Role already assigned as {self.role.value}",
                {"remote_id": self.remote_id, "requested": role.value}
            )
        if self.state != NegotiationState.JOINED:
            raise NegotiationFailed(
                f"Cannot assign a role in state {self.state.value}",
                {"remote_id": self.remote_id}
            )
        self.role = role
        self._transition(NegotiationState.ROLE_ASSIGNED)

    async def start_as_initiator(self):
        """Peer arrived: produce the offer and send it to that peer."""
        try:
            self._assign_role(Role.INITIATOR)
            offer = await self.backend.create_offer()
            if not self.is_active:
                return
            self.local_description = await self.backend.set_local_description(offer)
            if not self.is_active:
                return
        except NegotiationFailed as e:
            await self.fail(e)
            return
        except Exception as e:
            await self.fail(NegotiationFailed(f"Offer creation failed: {e}", {"remote_id": self.remote_id}))
            return

        self.send(SignalingMessageFactory.description(
            messages.OFFER, self.room_id, self.remote_id, self.local_description.sdp
        ))
        self._flush_local_candidates()

    async def handle_offer(self, sdp: str):
        """Offer received: become Responder, apply it and answer."""
        if not self.is_active:
            return
        try:
            self._assign_role(Role.RESPONDER)
            await self._apply_remote_description(SessionDescription("offer", sdp))
            if not self.is_active:
                return
            answer = await self.backend.create_answer()
            if not self.is_active:
                return
            self.local_description = await self.backend.set_local_description(answer)
            if not self.is_active:
                return
        except NegotiationFailed as e:
            await self.fail(e)
            return
        except Exception as e:
            await self.fail(NegotiationFailed(f"Answer creation failed: {e}", {"remote_id": self.remote_id}))
            return

        self.send(SignalingMessageFactory.description(
            messages.ANSWER, self.room_id, self.remote_id, self.local_description.sdp
        ))
        self._flush_local_candidates()
        self._enter_candidates_exchanging()

    async def handle_answer(self, sdp: str):
        """Answer received by the Initiator: apply it as the remote description."""
        if not self.is_active:
            return
        try:
            if self.role != Role.INITIATOR or self.state != NegotiationState.ROLE_ASSIGNED:
                raise NegotiationFailed("Unexpected answer", {
                    "remote_id": self.remote_id,
                    "role": self.role.value if self.role else None,
                    "state": self.state.value
                })
            await self._apply_remote_description(SessionDescription("answer", sdp))
        except NegotiationFailed as e:
            await self.fail(e)
            return
        except Exception as e:
            await self.fail(NegotiationFailed(f"Applying answer failed: {e}", {"remote_id": self.remote_id}))
            return

        if self.is_active:
            self._enter_candidates_exchanging()

    async def _apply_remote_description(self, description: SessionDescription):
        await self.backend.set_remote_description(description)
        if not self.is_active:
            return
        self.remote_description = description
        self._transition(NegotiationState.DESCRIPTION_EXCHANGED)
        await self._flush_remote_candidates()

    async def _flush_remote_candidates(self):
        """Apply candidates buffered before the remote description, in receipt order."""
        while self.pending_remote_candidates and self.is_active:
            candidate = self.pending_remote_candidates.pop(0)
            await self._add_remote_candidate(candidate)

    def _enter_candidates_exchanging(self):
        if self.state == NegotiationState.DESCRIPTION_EXCHANGED:
            self._transition(NegotiationState.CANDIDATES_EXCHANGING)

    async def handle_remote_candidate(self, candidate: ICECandidate):
        """Apply a remote candidate, or buffer it until a remote description exists."""
        if not self.is_active:
            return
        if self.remote_description is None:
            self.pending_remote_candidates.append(candidate)
            self.log_debug("Buffered remote candidate", {
                "remote_id": self.remote_id,
                "buffered": len(self.pending_remote_candidates)
            })
            return
        try:
            await self._add_remote_candidate(candidate)
        except NegotiationFailed as e:
            await self.fail(e)

    async def _add_remote_candidate(self, candidate: ICECandidate):
        try:
            await self.backend.add_ice_candidate(candidate)
        except Exception as e:
            raise NegotiationFailed(f"Candidate rejected: {e}", {
                "remote_id": self.remote_id,
                "candidate": candidate.candidate
            })

    def handle_local_candidate(self, candidate: ICECandidate):
        """Forward a locally discovered candidate as soon as the peer knows our description."""
        if not self.is_active:
            return
        if self.local_description is None:
            self.pending_local_candidates.append(candidate)
            return
        self._send_candidate(candidate)

    def _flush_local_candidates(self):
        while self.pending_local_candidates:
            self._send_candidate(self.pending_local_candidates.pop(0))

    def _send_candidate(self, candidate: ICECandidate):
        self.send(SignalingMessageFactory.ice_candidate(
            self.room_id, self.remote_id, candidate.candidate,
            candidate.sdp_mline_index, candidate.sdp_mid
        ))

    async def handle_connection_state(self, connection_state: str):
        """Observe the backend's connection state. Connected is reported, never computed."""
        if not self.is_active:
            return
        if connection_state == "connected":
            self._transition(NegotiationState.CONNECTED)
        elif connection_state == "failed":
            await self.fail(NegotiationFailed("Transport negotiation failed", {"remote_id": self.remote_id}))

    async def fail(self, error: NegotiationFailed):
        """Terminate the session after an unrecoverable error. No retry."""
        if not self.is_active:
            return
        self.failure = error
        self.log_error("Negotiation failed", {
            "local_id": self.local_id,
            "remote_id": self.remote_id,
            "error": error.message,
            "details": error.details
        })
        self._discard()
        self._transition(NegotiationState.FAILED)
        await self.backend.close()
        if self.on_failure:
            self.on_failure(self, error)

    async def close(self):
        """Peer departed or local leave: discard everything."""
        if not self.is_active:
            return
        self._discard()
        self._transition(NegotiationState.CLOSED)
        await self.backend.close()

    def _discard(self):
        self.pending_local_candidates.clear()
        self.pending_remote_candidates.clear()
        self.local_description = None
        self.remote_description = None
