"""
Core module for PairLink.
Contains configuration, logging, and the error taxonomy.
"""

from .config import ClientConfig, ServerConfig
from .logging import LoggerMixin, debug_log, setup_logging
from .exceptions import (
    InvalidRequest,
    InvalidRoom,
    MalformedMessage,
    NegotiationFailed,
    PairLinkError,
    RoomFull,
    RoomNotFound,
    TransportLost,
    UnknownMessageKind,
)

__all__ = [
    'ClientConfig',
    'ServerConfig',
    'LoggerMixin',
    'debug_log',
    'setup_logging',
    'PairLinkError',
    'InvalidRequest',
    'RoomFull',
    'InvalidRoom',
    'RoomNotFound',
    'MalformedMessage',
    'UnknownMessageKind',
    'NegotiationFailed',
    'TransportLost',
]
