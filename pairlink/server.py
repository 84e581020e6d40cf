"""
PairLink signaling server.

aiohttp application exposing the WebSocket signaling endpoint and a status
endpoint. Static assets and TLS termination are handled elsewhere.
"""
import asyncio
from typing import Optional

from aiohttp import WSMsgType, web

from .core.config import ServerConfig
from .core.logging import debug_log, setup_logging
from .signaling import ConnectionLifecycleManager, RoomRegistry, SignalingRelay

SERVER_KEY = web.AppKey("server", "SignalingServer")


class SignalingServer:
    """Wires the room registry, lifecycle manager and relay together."""

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()

        # One registry per process, handed to everything that needs it
        self.registry = RoomRegistry()
        self.lifecycle = ConnectionLifecycleManager(self.registry, outbox_size=self.config.outbox_size)
        self.relay = SignalingRelay(self.registry, self.lifecycle)

        debug_log("🚀 [Server] Signaling server initialized", {"config": str(self.config)})

    def get_server_status(self) -> dict:
        """Get server status."""
        return {
            'status': 'ok',
            'connections': self.lifecycle.connection_count,
            'rooms': self.registry.room_count,
            'members': self.registry.snapshot()
        }

    async def handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        """Serve one participant connection until its transport ends."""
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        handle = self.lifecycle.open(ws)
        debug_log("🔌 [WebSocket] Participant connected", {
            "connection_id": handle.connection_id,
            "remote": request.remote
        })

        try:
            async for msg in ws:
                if msg.type in (WSMsgType.TEXT, WSMsgType.BINARY):
                    self.relay.on_message(handle, msg.data)
                elif msg.type == WSMsgType.ERROR:
                    debug_log("❌ [WebSocket] Transport error", {
                        "connection_id": handle.connection_id,
                        "error": str(ws.exception())
                    }, "WARNING")
                    break
        finally:
            await self.lifecycle.release(handle)
            debug_log("🔌 [WebSocket] Participant disconnected", {
                "connection_id": handle.connection_id
            })

        return ws

    async def cleanup(self, app: Optional[web.Application] = None):
        """Release every live connection."""
        debug_log("🧹 [Server] Cleaning up server")
        await self.lifecycle.close_all()

    def create_app(self) -> web.Application:
        app = web.Application()
        app[SERVER_KEY] = self
        app.router.add_get("/", self.handle_websocket)
        app.router.add_get("/ws", self.handle_websocket)
        app.router.add_get("/status", handle_status)
        app.on_shutdown.append(self.cleanup)
        return app


async def handle_status(request: web.Request) -> web.Response:
    """Handle status requests."""
    server = request.app[SERVER_KEY]
    return web.json_response(server.get_server_status())


async def main(config: Optional[ServerConfig] = None):
    """Main server function."""
    config = config or ServerConfig()
    setup_logging(config.log_level, config.log_file)
    debug_log("🚀 [Main] Starting PairLink signaling server")

    server = SignalingServer(config)
    runner = web.AppRunner(server.create_app())
    await runner.setup()

    site = web.TCPSite(runner, config.host, config.port)
    await site.start()
    debug_log(f"🌐 [Main] Signaling server listening on ws://{config.host}:{config.port}/ws")

    try:
        await asyncio.Future()
    finally:
        await runner.cleanup()
