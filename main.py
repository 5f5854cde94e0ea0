"""
Main command-line interface for pyavrcontrol.

This script runs the voice skill web service, or sends single commands to a
Pioneer AVR for testing the connection.
"""

import argparse
import asyncio
import logging
import sys

from aiohttp import web

from pyavrcontrol.avr import AVRController
from pyavrcontrol.codec import (
    DEFAULT_POWER_OFF_ACK,
    DEFAULT_VOLUME_CEILING,
    ChangeInput,
    Mute,
    PowerOff,
    PowerOn,
    SetVolume,
    Unmute,
)
from pyavrcontrol.connection import DEFAULT_PORT, DEFAULT_RECONNECT_TIME
from pyavrcontrol.errors import AVRError
from pyavrcontrol.listener import LoggingListener
from pyavrcontrol.skill import create_app


def build_controller(args) -> AVRController:
    controller = AVRController(
        args.host,
        args.port,
        volume_ceiling=args.volume_ceiling,
        power_off_ack=args.power_off_ack,
        reconnect_time=args.reconnect_time,
        idle_timeout=args.idle_timeout,
    )
    controller.connection.register_listener(LoggingListener(logging.getLogger("pyavrcontrol.events")))
    return controller


async def serve(args):
    """Keep the AVR connection open and answer skill requests until interrupted."""
    controller = build_controller(args)
    await controller.async_connect()

    runner = web.AppRunner(create_app(controller))
    await runner.setup()
    site = web.TCPSite(runner, "0.0.0.0", args.listen_port)
    await site.start()
    logging.info(f"Starting server on 0.0.0.0:{args.listen_port}")
    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()
        controller.close()


async def send_command(args, cmd) -> int:
    """Connect, run a single command and report the outcome."""
    print(f"Connecting to AVR at {args.host}:{args.port}...")

    controller = build_controller(args)
    await controller.async_connect()
    if not await controller.wait_connected(timeout=args.connect_wait):
        print("Error: could not connect to AVR")
        controller.close()
        return 1

    print(f"Sending {cmd}...")
    try:
        await controller.process(cmd)
    except AVRError as e:
        print(f"Error: {e}")
        return 1
    finally:
        controller.close()
    print("Done")
    return 0


def parse_command(args):
    if args.command == "power":
        return PowerOn() if args.state == "on" else PowerOff()
    if args.command == "mute":
        return Mute()
    if args.command == "unmute":
        return Unmute()
    if args.command == "volume":
        return SetVolume(args.level)
    if args.command == "input":
        return ChangeInput(args.input)
    return None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Control a Pioneer AVR through telnet commands")
    parser.add_argument("--host", required=True, help="AVR hostname or IP")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help=f"AVR telnet port (default: {DEFAULT_PORT})")
    parser.add_argument("--volume-ceiling", type=int, default=DEFAULT_VOLUME_CEILING,
                        help=f"Native volume that level 10 maps to (default: {DEFAULT_VOLUME_CEILING})")
    parser.add_argument("--power-off-ack", default=DEFAULT_POWER_OFF_ACK,
                        help=f"Power query reply meaning standby (default: {DEFAULT_POWER_OFF_ACK})")
    parser.add_argument("--reconnect-time", type=float, default=DEFAULT_RECONNECT_TIME,
                        help=f"Seconds between reconnection attempts (default: {DEFAULT_RECONNECT_TIME})")
    parser.add_argument("--idle-timeout", type=float, default=None,
                        help="Reset the connection after this many seconds without any data from the AVR "
                             "(default: disabled)")
    parser.add_argument("--connect-wait", type=float, default=5.0,
                        help="Seconds to wait for the connection before sending a single command (default: 5)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the voice skill web service")
    serve_parser.add_argument("--listen-port", type=int, default=8080,
                              help="Port to run the skill web service on (default: 8080)")

    # Power command
    power_parser = subparsers.add_parser("power", help="Turn the AVR on or off")
    power_parser.add_argument("state", choices=["on", "off"])

    subparsers.add_parser("mute", help="Mute the AVR")
    subparsers.add_parser("unmute", help="Unmute the AVR")

    # Volume command
    volume_parser = subparsers.add_parser("volume", help="Set volume level")
    volume_parser.add_argument("level", type=int, help="Volume level (1-10)")

    # Input command
    input_parser = subparsers.add_parser("input", help="Change input")
    input_parser.add_argument("input", type=int, help="Input (1-22)")

    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO)

    if args.command == "serve":
        try:
            asyncio.run(serve(args))
        except KeyboardInterrupt:
            pass
        return

    try:
        cmd = parse_command(args)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(2)
    if cmd is None:
        parser.print_help()
        return
    sys.exit(asyncio.run(send_command(args, cmd)))


if __name__ == "__main__":
    main()
