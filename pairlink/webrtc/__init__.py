"""
WebRTC module for PairLink.
Handles the negotiation state machine, peer connections and media.
"""

from .negotiation import (
    ICECandidate,
    NegotiationBackend,
    NegotiationSession,
    NegotiationState,
    Role,
    SessionDescription,
)
from .participant import Participant

__all__ = [
    'ICECandidate',
    'NegotiationBackend',
    'NegotiationSession',
    'NegotiationState',
    'Role',
    'SessionDescription',
    'Participant'
]
