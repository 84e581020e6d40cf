"""
Local and remote media handling for a participant.

Only the boundary the negotiation core needs lives here: acquire local
tracks, enable or disable audio and video, and hand incoming remote tracks to
a sink. Device enumeration and rendering are out of scope.
"""
from typing import Callable, Dict, List, Optional, Set

from aiortc import MediaStreamTrack, RTCPeerConnection
from aiortc.contrib.media import MediaBlackhole, MediaPlayer

from ..core.config import ClientConfig
from ..core.logging import LoggerMixin

PlayerFactory = Callable[..., MediaPlayer]


class MediaController(LoggerMixin):
    """Owns local tracks and their senders across peer connections."""

    def __init__(self, config: ClientConfig, player_factory: PlayerFactory = MediaPlayer,
                 sink: Optional[MediaBlackhole] = None):
        super().__init__()
        self.config = config
        self.player_factory = player_factory
        self.sink = sink or MediaBlackhole()

        self.audio_track: Optional[MediaStreamTrack] = None
        self.video_track: Optional[MediaStreamTrack] = None
        self.is_audio_enabled = True
        self.is_video_enabled = True

        self._players: List[MediaPlayer] = []
        self._senders: Dict[RTCPeerConnection, Dict[str, object]] = {}
        self._sink_started = False

    def acquire(self) -> bool:
        """
        Open the configured devices.

        A device that fails to open is skipped, leaving the participant video
        only, audio only or receive only. Returns False when no local track is
        available.
        """
        video_source = self.config.video_device
        audio_source = self.config.audio_device
        if not video_source and not audio_source:
            self.log_info("No media devices configured, receive only")
            return False

        if video_source:
            try:
                player = self.player_factory(video_source, format=self.config.media_format)
                self._players.append(player)
                self.video_track = player.video
                if audio_source is None or audio_source == video_source:
                    self.audio_track = player.audio
            except Exception as e:
                self.log_warning("Video device unavailable", {"device": video_source, "error": str(e)})

        if audio_source and audio_source != video_source:
            try:
                player = self.player_factory(audio_source)
                self._players.append(player)
                self.audio_track = player.audio
            except Exception as e:
                self.log_warning("Audio device unavailable", {"device": audio_source, "error": str(e)})

        self.log_info("Media acquired", {
            "video": self.video_track is not None,
            "audio": self.audio_track is not None
        })
        return self.video_track is not None or self.audio_track is not None

    def attach(self, pc: RTCPeerConnection) -> Set[str]:
        """Add the local tracks to a peer connection. Returns the kinds sent."""
        senders = {}
        for kind, track, enabled in (("audio", self.audio_track, self.is_audio_enabled),
                                     ("video", self.video_track, self.is_video_enabled)):
            if track is None:
                continue
            sender = pc.addTrack(track)
            if not enabled:
                sender.replaceTrack(None)
            senders[kind] = sender
        self._senders[pc] = senders
        return set(senders)

    def detach(self, pc: RTCPeerConnection):
        self._senders.pop(pc, None)

    def _set_enabled(self, kind: str, enabled: bool):
        track = self.audio_track if kind == "audio" else self.video_track
        if track is None:
            self.log_warning("No local track to toggle", {"kind": kind})
            return
        for senders in self._senders.values():
            sender = senders.get(kind)
            if sender is not None:
                sender.replaceTrack(track if enabled else None)
        self.log_info(f"{kind.capitalize()} {'enabled' if enabled else 'disabled'}")

    def set_audio_enabled(self, enabled: bool):
        self.is_audio_enabled = enabled
        self._set_enabled("audio", enabled)

    def set_video_enabled(self, enabled: bool):
        self.is_video_enabled = enabled
        self._set_enabled("video", enabled)

    def toggle_audio(self) -> bool:
        self.set_audio_enabled(not self.is_audio_enabled)
        return self.is_audio_enabled

    def toggle_video(self) -> bool:
        self.set_video_enabled(not self.is_video_enabled)
        return self.is_video_enabled

    async def handle_remote_track(self, track: MediaStreamTrack):
        self.sink.addTrack(track)
        if self._sink_started:
            # The blackhole only consumes tracks known when start() runs
            await self.sink.start()

    async def start(self):
        """Start consuming remote media."""
        if not self._sink_started:
            await self.sink.start()
            self._sink_started = True

    async def stop(self):
        """Stop local devices and the remote sink."""
        for track in (self.audio_track, self.video_track):
            if track is not None:
                track.stop()
        self.audio_track = None
        self.video_track = None
        self._players.clear()
        self._senders.clear()
        if self._sink_started:
            await self.sink.stop()
            self._sink_started = False
