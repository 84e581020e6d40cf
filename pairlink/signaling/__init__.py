"""
Signaling module for PairLink.
Handles room membership, message relay and connection lifecycle.
"""

from .connection import ConnectionHandle
from .room_registry import Room, RoomRegistry
from .lifecycle import ConnectionLifecycleManager
from .relay import SignalingRelay
from .messages import SignalingMessageFactory

__all__ = [
    'ConnectionHandle',
    'Room',
    'RoomRegistry',
    'ConnectionLifecycleManager',
    'SignalingRelay',
    'SignalingMessageFactory'
]
