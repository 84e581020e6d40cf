"""
Configuration management for PairLink.
"""
import os
from dataclasses import dataclass, field
from typing import List, Optional

from aiortc import RTCConfiguration, RTCIceServer

DEFAULT_STUN_URLS = [
    "stun:stun.l.google.com:19302",
    "stun:stun1.l.google.com:19302",
]


def _split_urls(value: str) -> List[str]:
    return [url.strip() for url in value.split(",") if url.strip()]


@dataclass
class ServerConfig:
    """Signaling server configuration settings."""

    host: str = "0.0.0.0"
    port: int = 10000

    # Frames queued per connection before sends start being dropped
    outbox_size: int = 256

    log_level: str = "INFO"
    log_file: Optional[str] = None

    def __post_init__(self):
        """Initialize configuration from environment variables."""
        self.host = os.environ.get('PAIRLINK_HOST', self.host)
        self.port = int(os.environ.get('PORT', self.port))
        self.outbox_size = int(os.environ.get('PAIRLINK_OUTBOX_SIZE', self.outbox_size))
        self.log_level = os.environ.get('PAIRLINK_LOG_LEVEL', self.log_level)
        self.log_file = os.environ.get('PAIRLINK_LOG_FILE', self.log_file)

        if self.outbox_size <= 0:
            raise ValueError(f"outbox_size must be positive, got {self.outbox_size}")

    def __str__(self) -> str:
        return f"ServerConfig(host={self.host}, port={self.port}, outbox_size={self.outbox_size})"


@dataclass
class ClientConfig:
    """Participant (client) configuration settings."""

    signaling_url: str = "ws://localhost:10000/ws"

    stun_urls: List[str] = field(default_factory=lambda: list(DEFAULT_STUN_URLS))
    turn_address: Optional[str] = None
    turn_username: str = "user"
    turn_password: str = "password"

    # Media source handed to aiortc's MediaPlayer; None means no local track
    video_device: Optional[str] = None
    audio_device: Optional[str] = None
    media_format: Optional[str] = None

    log_level: str = "INFO"

    def __post_init__(self):
        """Initialize configuration from environment variables."""
        self.signaling_url = os.environ.get('PAIRLINK_SIGNALING_URL', self.signaling_url)

        stun_env = os.environ.get('PAIRLINK_STUN_URLS')
        if stun_env is not None:
            self.stun_urls = _split_urls(stun_env)

        self.turn_address = os.environ.get('TURN_ADDRESS', self.turn_address)
        self.turn_username = os.environ.get('TURN_USERNAME', self.turn_username)
        self.turn_password = os.environ.get('TURN_PASSWORD', self.turn_password)

        self.video_device = os.environ.get('PAIRLINK_VIDEO_DEVICE', self.video_device)
        self.audio_device = os.environ.get('PAIRLINK_AUDIO_DEVICE', self.audio_device)
        self.media_format = os.environ.get('PAIRLINK_MEDIA_FORMAT', self.media_format)

        self.log_level = os.environ.get('PAIRLINK_LOG_LEVEL', self.log_level)

    def build_rtc_config(self) -> RTCConfiguration:
        """Build the aiortc configuration from the STUN/TURN settings."""
        ice_servers = [RTCIceServer(urls=url) for url in self.stun_urls]

        if self.turn_address:
            ice_servers.append(
                RTCIceServer(
                    urls=f"turn:{self.turn_address}",
                    username=self.turn_username,
                    credential=self.turn_password
                )
            )

        return RTCConfiguration(iceServers=ice_servers)
