"""
Main entry point for PairLink.

Run the relay with ``python -m pairlink serve`` and a participant with
``python -m pairlink join --room r1 --user alice``.
"""
import argparse
import asyncio
import signal
import sys

from .core.config import ClientConfig, ServerConfig
from .core.logging import debug_log, setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pairlink", description="Two-person WebRTC signaling")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="run the signaling relay")
    serve.add_argument("--host", help="interface to bind")
    serve.add_argument("--port", type=int, help="port to listen on")
    serve.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    serve.add_argument("--log-file", help="also write logs to this file")

    join = subparsers.add_parser("join", help="join a room as a participant")
    join.add_argument("--room", required=True, help="room identifier")
    join.add_argument("--user", required=True, help="participant identifier")
    join.add_argument("--url", help="signaling relay URL")
    join.add_argument("--video", help="video device or file for aiortc's MediaPlayer")
    join.add_argument("--audio", help="audio device or file, if separate from --video")
    join.add_argument("--format", help="MediaPlayer input format, e.g. v4l2 or avfoundation")
    join.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")

    return parser


def run_server(args: argparse.Namespace):
    from .server import main

    config = ServerConfig()
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    if args.log_level:
        config.log_level = args.log_level
    if args.log_file:
        config.log_file = args.log_file

    asyncio.run(main(config))


def run_participant(args: argparse.Namespace):
    from .webrtc.media import MediaController
    from .webrtc.signaling import SignalingClient

    config = ClientConfig()
    if args.url:
        config.signaling_url = args.url
    if args.video:
        config.video_device = args.video
    if args.audio:
        config.audio_device = args.audio
    if args.format:
        config.media_format = args.format
    if args.log_level:
        config.log_level = args.log_level

    setup_logging(config.log_level)
    client = SignalingClient(config, args.user, args.room, media=MediaController(config))
    debug_log("🚀 [Main] Joining room", {"room_id": args.room, "participant_id": args.user})
    asyncio.run(participate(client))


async def participate(client):
    """Run a participant until the relay goes away or the user interrupts."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            # Interrupts send leave-room before the connection closes
            loop.add_signal_handler(sig, lambda: asyncio.ensure_future(client.leave()))
        except NotImplementedError:
            debug_log("⚠️ [Main] Signal handlers unavailable, leave will be implicit", level="WARNING")
            break
    await client.run()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        if args.command == "serve":
            run_server(args)
        else:
            run_participant(args)
    except KeyboardInterrupt:
        return 0
    return 0


if __name__ == "__main__":
    sys.exit(main())
