"""
WebRTC peer connection management backed by aiortc.
"""
from typing import Dict, Optional

from aiortc import RTCPeerConnection, RTCSessionDescription
from aiortc.sdp import candidate_from_sdp

from ..core.config import ClientConfig
from ..core.logging import LoggerMixin, debug_log
from .media import MediaController
from .negotiation import ICECandidate, NegotiationBackend, SessionDescription


class AiortcBackend(NegotiationBackend):
    """
    Negotiation backend around one ``RTCPeerConnection``.

    aiortc gathers candidates while setting the local description and embeds
    them in it, so the description returned by ``set_local_description``
    already carries the local candidates and ``on_local_candidate`` is not
    fired.
    """

    def __init__(self, pc: RTCPeerConnection, remote_id: str):
        self.pc = pc
        self.remote_id = remote_id
        self._setup_peer_connection_handlers()

    def _setup_peer_connection_handlers(self):
        pc = self.pc

        @pc.on("connectionstatechange")
        async def on_connection_state_change():
            debug_log("🔗 [PeerManager] Connection state changed", {
                "remote_id": self.remote_id,
                "connection_state": pc.connectionState
            })
            if self.on_connection_state:
                await self.on_connection_state(pc.connectionState)

        @pc.on("iceconnectionstatechange")
        async def on_ice_connection_state_change():
            debug_log("🧊 [PeerManager] ICE connection state changed", {
                "remote_id": self.remote_id,
                "ice_state": pc.iceConnectionState
            }, "DEBUG")

        @pc.on("icegatheringstatechange")
        async def on_ice_gathering_state_change():
            debug_log("🧊 [PeerManager] ICE gathering state changed", {
                "remote_id": self.remote_id,
                "ice_state": pc.iceGatheringState
            }, "DEBUG")

        @pc.on("signalingstatechange")
        async def on_signaling_state_change():
            debug_log("📡 [PeerManager] Signaling state changed", {
                "remote_id": self.remote_id,
                "signaling_state": pc.signalingState
            }, "DEBUG")

    async def create_offer(self) -> SessionDescription:
        offer = await self.pc.createOffer()
        return SessionDescription(offer.type, offer.sdp)

    async def create_answer(self) -> SessionDescription:
        answer = await self.pc.createAnswer()
        return SessionDescription(answer.type, answer.sdp)

    async def set_local_description(self, description: SessionDescription) -> SessionDescription:
        await self.pc.setLocalDescription(RTCSessionDescription(sdp=description.sdp, type=description.type))
        local = self.pc.localDescription
        return SessionDescription(local.type, local.sdp)

    async def set_remote_description(self, description: SessionDescription) -> None:
        await self.pc.setRemoteDescription(RTCSessionDescription(sdp=description.sdp, type=description.type))

    async def add_ice_candidate(self, candidate: ICECandidate) -> None:
        if not candidate.candidate:
            # End-of-candidates marker
            return
        sdp = candidate.candidate
        if sdp.startswith("candidate:"):
            sdp = sdp[len("candidate:"):]
        ice = candidate_from_sdp(sdp)
        ice.sdpMid = candidate.sdp_mid
        ice.sdpMLineIndex = candidate.sdp_mline_index
        await self.pc.addIceCandidate(ice)

    async def close(self) -> None:
        await self.pc.close()


class WebRTCPeerManager(LoggerMixin):
    """Creates and tracks one aiortc peer connection per remote participant."""

    def __init__(self, config: ClientConfig, media: Optional[MediaController] = None):
        super().__init__()
        self.config = config
        self.media = media
        self.peer_connections: Dict[str, RTCPeerConnection] = {}

    def create_backend(self, remote_id: str) -> AiortcBackend:
        """Create a fresh peer connection for a remote participant."""
        previous = self.peer_connections.pop(remote_id, None)
        if previous is not None:
            self.log_warning("Replacing existing peer connection", {"remote_id": remote_id})

        pc = RTCPeerConnection(configuration=self.config.build_rtc_config())
        self.peer_connections[remote_id] = pc

        sending = set()
        if self.media is not None:
            sending = self.media.attach(pc)

            @pc.on("track")
            async def on_track(track):
                self.log_info("Remote track received", {"remote_id": remote_id, "kind": track.kind})
                await self.media.handle_remote_track(track)

        # Receive-only kinds still need an m-line, or aiortc cannot create an offer
        for kind in ("audio", "video"):
            if kind not in sending:
                pc.addTransceiver(kind, direction="recvonly")

        @pc.on("connectionstatechange")
        async def on_connection_state_change():
            if pc.connectionState == "closed":
                self._forget(remote_id, pc)

        self.log_info("Peer connection created", {
            "remote_id": remote_id,
            "total_connections": len(self.peer_connections)
        })
        return AiortcBackend(pc, remote_id)

    def _forget(self, remote_id: str, pc: RTCPeerConnection):
        if self.peer_connections.get(remote_id) is pc:
            del self.peer_connections[remote_id]
            if self.media is not None:
                self.media.detach(pc)

    def get_peer_connection_count(self) -> int:
        return len(self.peer_connections)

    async def close_all(self):
        for remote_id, pc in list(self.peer_connections.items()):
            await pc.close()
            self._forget(remote_id, pc)
