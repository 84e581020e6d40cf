"""Fakes and helpers shared by the test modules."""

import asyncio
import json
from typing import Any, Dict, List, Optional, Set

from pairlink.signaling import ConnectionHandle
from pairlink.webrtc.negotiation import ICECandidate, NegotiationBackend, SessionDescription


class FakeTransport:
    """Stands in for an aiohttp WebSocketResponse."""

    def __init__(self):
        self.frames: List[str] = []
        self.closed = False

    async def send_str(self, data: str):
        if self.closed:
            raise ConnectionResetError("Cannot write to closing transport")
        self.frames.append(data)

    async def close(self):
        self.closed = True


def make_handle(outbox_size: int = 256) -> ConnectionHandle:
    return ConnectionHandle(FakeTransport(), outbox_size=outbox_size)


def sent(handle: ConnectionHandle) -> List[Dict[str, Any]]:
    """Pop every queued outbound message from a handle that has no writer."""
    messages = []
    while not handle.outbox.empty():
        messages.append(json.loads(handle.outbox.get_nowait()))
    return messages


class FakeBackend(NegotiationBackend):
    """Records calls; can fail or pause on selected operations."""

    def __init__(self, name: str = "peer", fail_on: Optional[Set[str]] = None,
                 local_candidates: Optional[List[ICECandidate]] = None):
        self.name = name
        self.fail_on = fail_on or set()
        self.local_candidates = local_candidates or []
        self.calls: List[str] = []
        self.remote_descriptions: List[SessionDescription] = []
        self.added_candidates: List[ICECandidate] = []
        self.closed = False
        self.gates: Dict[str, asyncio.Event] = {}

    async def _step(self, name: str):
        self.calls.append(name)
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        if name in self.fail_on:
            raise ValueError(f"{name} rejected")

    async def create_offer(self) -> SessionDescription:
        await self._step("create_offer")
        return SessionDescription("offer", f"offer-from-{self.name}")

    async def create_answer(self) -> SessionDescription:
        await self._step("create_answer")
        return SessionDescription("answer", f"answer-from-{self.name}")

    async def set_local_description(self, description: SessionDescription) -> SessionDescription:
        await self._step("set_local_description")
        for candidate in self.local_candidates:
            self.on_local_candidate(candidate)
        return description

    async def set_remote_description(self, description: SessionDescription) -> None:
        await self._step("set_remote_description")
        self.remote_descriptions.append(description)

    async def add_ice_candidate(self, candidate: ICECandidate) -> None:
        await self._step("add_ice_candidate")
        self.added_candidates.append(candidate)

    async def close(self) -> None:
        self.calls.append("close")
        self.closed = True


