"""
Exception classes for the PairLink signaling server.

Every relay-detected error carries the text that is sent back to the
originating connection in an ``error`` message.
"""


class PairLinkError(Exception):
    """Base exception for PairLink."""

    wire_message = "Internal error"

    def __init__(self, message: str = None, details: dict = None):
        super().__init__(message or self.wire_message)
        self.details = details or {}

    @property
    def message(self) -> str:
        return self.args[0]

    def __str__(self):
        if self.details:
            return f"{super().__str__()} - {self.details}"
        return super().__str__()


class InvalidRequest(PairLinkError):
    """Raised when identifiers are missing, empty or already taken."""
    wire_message = "Room ID and User ID required"


class RoomFull(PairLinkError):
    """Raised when a third participant tries to join a room."""
    wire_message = "Room is full"


class InvalidRoom(PairLinkError):
    """Raised when the sender is not a member of the addressed room."""
    wire_message = "Invalid room"


class RoomNotFound(PairLinkError):
    """Raised when the addressed room does not exist."""
    wire_message = "Room not found"


class MalformedMessage(PairLinkError):
    """Raised when an inbound payload cannot be parsed."""
    wire_message = "Invalid message format"


class UnknownMessageKind(PairLinkError):
    """Raised when an inbound payload has an unrecognized type."""
    wire_message = "Unknown message type"


class NegotiationFailed(PairLinkError):
    """Raised when a description or candidate is rejected by the negotiation layer."""
    wire_message = "Negotiation failed"


class TransportLost(PairLinkError):
    """A bound transport session ended without an explicit leave."""
    wire_message = "Transport lost"
