import asyncio
import logging
import re
from typing import Optional

from pyavrcontrol.codec import RESPONSE_TERMINATOR
from pyavrcontrol.listener import ConnectionListener

# The AVR emits "R\r\n" on a fixed period whether or not a command is in flight
HEARTBEAT_FRAMES = frozenset({"R"})

# Replies end in CR, usually followed by LF, and a single read can carry
# several of them or only part of one
LINE_SPLIT = re.compile(r"\r\n|\r|\n")


class AVRProtocol(asyncio.Protocol):
    """Byte-stream side of the AVR connection.

    Splits what the AVR sends into lines, drops heartbeat noise and reports
    everything else to the callback. Each reported frame is normalised to end
    in CR LF so it can be compared against expected acknowledgements.
    """

    _buffer: str
    _callback: ConnectionListener

    def __init__(self, callback: ConnectionListener, noise_frames=HEARTBEAT_FRAMES):
        self._logger = logging.getLogger(__name__)
        self._callback = callback
        self._noise_frames = frozenset(noise_frames)
        self._transport: Optional[asyncio.Transport] = None
        self._buffer = ""
        self.peer_name = None

    @property
    def connected(self) -> bool:
        return self._transport is not None and not self._transport.is_closing()

    def connection_made(self, transport):
        """Method from asyncio.Protocol"""
        self._transport = transport
        self._buffer = ""
        self.peer_name = transport.get_extra_info("peername")
        self._logger.info(f"Connection Made: {self.peer_name}")
        self._callback.connected()

    def connection_lost(self, exc):
        """Method from asyncio.Protocol"""
        if exc is not None:
            self._logger.debug(f"Connection lost: {exc}")
        self._transport = None
        self._callback.disconnected()

    def data_received(self, data):
        """Method from asyncio.Protocol"""
        self._logger.debug(f"data_received client: {data}")
        self._callback.data_received(data)

        self._buffer += data.decode("ascii", errors="ignore")
        *lines, self._buffer = LINE_SPLIT.split(self._buffer)
        for line in lines:
            line = line.strip()
            if not line:
                continue
            frame = line + RESPONSE_TERMINATOR
            if line in self._noise_frames:
                self._logger.debug(f"Heartbeat received: {frame!r}")
                self._callback.noise_received(frame)
                continue
            self._logger.debug(f"Whole message: {frame!r}")
            self._callback.frame_received(frame)

    def write(self, code: str) -> bool:
        if not self.connected:
            self._logger.error(f"SEND FAILED: {code!r} - not connected")
            return False
        self._transport.write(code.encode("ascii"))
        return True

    def close(self):
        if self._transport:
            self._transport.close()
