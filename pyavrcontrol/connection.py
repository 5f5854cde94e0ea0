"""Connection manager for the AVR telnet link.

This module owns the one persistent connection to the receiver:
- Exchange worker: takes wire codes from the Bridge, writes them and forwards the reply
- Noise draining: frames arriving while no exchange is outstanding are discarded
- Dead connection detection: a code that gets no reply at all resets the connection
- Optional idle watchdog for connections that die silently
- Reconnection with a fixed delay, for the life of the process

Nothing else may read from or write to the connection."""

import asyncio
import logging
import time
from asyncio import Task
from enum import Enum
from typing import Any, Optional

from pyavrcontrol.bridge import Bridge
from pyavrcontrol.errors import ConnectionLostError
from pyavrcontrol.listener import ConnectionListener, MultiplexingListener
from pyavrcontrol.protocol import AVRProtocol

DEFAULT_PORT = 5555
DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_RECONNECT_TIME = 10
# How long to wait for the AVR to start answering a code
DEFAULT_RESPONSE_WINDOW = 0.5
# Quiet gap that ends a multi-line reply (one line per VU/VD step)
DEFAULT_FRAME_SETTLE_TIME = 0.1

# The AVR answers PowerOn with a stale echo first and the real acknowledgement
# second. Observed device behaviour, not part of the protocol.
DOUBLE_FRAME_CODES = frozenset({"PO\r"})


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    # Connection lost, reconnect pending
    DEGRADED = "degraded"


class ManagerListener(ConnectionListener):
    """Forwards protocol events to the connection manager."""

    def __init__(self, manager: "ConnectionManager"):
        self._manager = manager

    def connected(self):
        self._manager._on_connected()

    def disconnected(self):
        self._manager._on_disconnected()

    def data_received(self, data: bytes):
        """Update last-receive timestamp on any inbound data."""
        self._manager._last_receive_timestamp = time.time()

    def frame_received(self, frame: str):
        self._manager._on_frame(frame)


class ConnectionManager:
    """Keeps the AVR connection alive and runs one exchange at a time over it.

    Connection lifecycle events are forwarded from ManagerListener.
    """

    def __init__(self, hostname, port, bridge: Bridge, reconnect_time=DEFAULT_RECONNECT_TIME,
                 response_window=DEFAULT_RESPONSE_WINDOW, frame_settle_time=DEFAULT_FRAME_SETTLE_TIME,
                 idle_timeout=None, connect_timeout=DEFAULT_CONNECT_TIMEOUT,
                 double_frame_codes=DOUBLE_FRAME_CODES):
        """Initialize connection manager.

        Args:
            hostname: AVR hostname or IP
            port: Telnet port of the AVR
            bridge: Handoff shared with the AVRController
            reconnect_time: Seconds to wait between reconnection attempts
            response_window: Seconds to wait for the first line of a reply
            frame_settle_time: Seconds of silence that end a reply
            idle_timeout: Seconds without any data before the connection is
                considered dead, None to disable the watchdog
            connect_timeout: Seconds allowed for opening the connection
            double_frame_codes: Codes whose first reply line is a stale echo
        """
        self._hostname: str = hostname
        self._port = port
        self._bridge = bridge
        self._reconnect_time = reconnect_time
        self._response_window = response_window
        self._frame_settle_time = frame_settle_time
        self._idle_timeout: Optional[float] = idle_timeout
        self._connect_timeout = connect_timeout
        self._double_frame_codes = frozenset(double_frame_codes)

        self._logger = logging.getLogger(__name__)
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        # Connection state
        self._state = ConnectionState.DISCONNECTED
        self._reconnect = True
        self._connected_event = asyncio.Event()

        # Tasks
        self._exchange_worker_task: Optional[Task[Any]] = None
        self._connection_watchdog_task: Optional[Task[Any]] = None
        self._reconnect_task: Optional[Task[Any]] = None

        # Reply lines for the exchange in flight, None while idle
        self._reply_frames: Optional[asyncio.Queue] = None
        # Track last received data time to detect silent/stalled connections
        self._last_receive_timestamp: float = time.time()

        # Create multiplexing listener for external listeners
        self._multiplex_callback = MultiplexingListener()
        self._manager_listener = ManagerListener(self)
        self._multiplex_callback.register_listener(self._manager_listener)

        self._protocol = AVRProtocol(self._multiplex_callback)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def idle_timeout(self) -> Optional[float]:
        return self._idle_timeout

    @property
    def max_reply_time(self) -> float:
        """Longest an exchange can take between writing a code and forwarding its reply."""
        return 2 * self._response_window

    def register_listener(self, listener: ConnectionListener):
        self._multiplex_callback.register_listener(listener)

    def unregister_listener(self, listener: ConnectionListener):
        self._multiplex_callback.unregister_listener(listener)

    # ========== Lifecycle ==========

    async def async_connect(self):
        """Connect to the AVR. On failure keep retrying in the background."""
        self._loop = asyncio.get_running_loop()
        self._reconnect = True
        try:
            await self._open_connection()
        except (OSError, asyncio.TimeoutError) as e:
            self._logger.error(
                f"Could not connect to AVR at {self._hostname}:{self._port}: {e!r}, "
                f"will try to reconnect in {self._reconnect_time} seconds"
            )
            self._state = ConnectionState.DEGRADED
            self._schedule_reconnect()

    async def wait_connected(self, timeout: float) -> bool:
        """Wait up to `timeout` seconds for the connection to be up."""
        try:
            await asyncio.wait_for(self._connected_event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def close(self):
        """Close the connection and stop reconnection attempts."""
        self._reconnect = False
        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()
        if self._protocol.connected:
            self._protocol.close()
        else:
            self._stop_tasks()
            self._state = ConnectionState.DISCONNECTED

    async def _open_connection(self):
        await asyncio.wait_for(
            self._loop.create_connection(lambda: self._protocol, host=self._hostname, port=self._port),
            self._connect_timeout,
        )

    def _on_connected(self):
        """Called by ManagerListener when connection is established."""
        self._logger.info(f"Connected to AVR at {self._hostname}:{self._port}")
        self._state = ConnectionState.CONNECTED
        self._last_receive_timestamp = time.time()
        self._connected_event.set()

        # A code queued while disconnected belongs to an exchange that has already timed out
        stale = self._bridge.clear_outbound()
        if stale is not None:
            self._logger.warning(f"Discarding code queued before reconnection: {stale!r}")

        self._stop_tasks()
        self._exchange_worker_task = self._loop.create_task(self._exchange_worker())
        if self._idle_timeout is not None:
            self._connection_watchdog_task = self._loop.create_task(self._connection_watchdog())

    def _on_disconnected(self):
        """Called by ManagerListener when connection is lost."""
        self._handle_connection_broken()

    def _handle_connection_broken(self):
        self._connected_event.clear()
        self._stop_tasks()

        disconnected_message = f"Disconnected from {self._hostname}"
        if self._reconnect:
            self._state = ConnectionState.DEGRADED
            disconnected_message = disconnected_message + f", will try to reconnect in {self._reconnect_time} seconds"
            self._logger.error(disconnected_message)
            self._schedule_reconnect()
        else:
            self._state = ConnectionState.DISCONNECTED
            disconnected_message = disconnected_message + ", not reconnecting"
            # Only info in here as close has been called.
            self._logger.info(disconnected_message)

    def _drop_connection(self):
        """Close a connection that is considered dead; reconnection follows from connection_lost()."""
        self._state = ConnectionState.DEGRADED
        self._connected_event.clear()
        self._protocol.close()

    def _stop_tasks(self):
        try:
            current = asyncio.current_task()
        except RuntimeError:
            # No running loop, e.g. close() after the loop has stopped
            current = None
        for task in (self._exchange_worker_task, self._connection_watchdog_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._exchange_worker_task = None
        self._connection_watchdog_task = None
        self._reply_frames = None

    def _schedule_reconnect(self):
        if self._reconnect_task is None or self._reconnect_task.done():
            self._reconnect_task = self._loop.create_task(self._wait_to_reconnect())

    async def _wait_to_reconnect(self):
        """Attempt to reconnect after connection loss."""
        while not self.connected and self._reconnect:
            await asyncio.sleep(self._reconnect_time)
            if not self._reconnect:
                break
            try:
                await self._open_connection()
            except (OSError, asyncio.TimeoutError) as e:
                self._logger.warning(f"Reconnect attempt failed: {e!r}")

    # ========== Exchanges ==========

    async def _exchange_worker(self):
        """Worker task that runs every exchange the Bridge hands over."""
        while True:
            try:
                code = await self._bridge.recv_outbound()
                self._logger.debug(f"Code received via outbound slot: {code!r}")
                try:
                    reply = await self._exchange(code)
                except ConnectionLostError as e:
                    self._logger.error(f"{e}. Resetting connection to AVR")
                    self._drop_connection()
                    break
                self._bridge.send_inbound(reply)
            except asyncio.CancelledError:
                self._logger.debug("Exchange worker cancelled")
                break

    async def _exchange(self, code: str) -> str:
        self._reply_frames = asyncio.Queue()
        try:
            self._logger.info(f"SEND: {code!r}")
            if not self._protocol.write(code):
                raise ConnectionLostError(f"Could not write {code!r} to AVR")
            frames = await self._collect_reply(code)
        finally:
            self._reply_frames = None
        reply = "".join(frames)
        self._logger.info(f"Code sent to AVR: {code!r}. Received back: {reply!r}")
        return reply

    async def _collect_reply(self, code: str) -> list[str]:
        """Collect the reply lines to `code`, within max_reply_time of writing it."""
        try:
            frames = [await asyncio.wait_for(self._reply_frames.get(), self._response_window)]
        except asyncio.TimeoutError:
            # The AVR always answers; silence means the connection is gone
            raise ConnectionLostError(f"Timeout waiting for reply to {code!r}") from None

        wanted = 2 if code in self._double_frame_codes else 1
        deadline = self._loop.time() + self._response_window
        while True:
            remaining = deadline - self._loop.time()
            if len(frames) >= wanted:
                remaining = min(self._frame_settle_time, remaining)
            if remaining <= 0:
                break
            try:
                frames.append(await asyncio.wait_for(self._reply_frames.get(), remaining))
            except asyncio.TimeoutError:
                break

        if wanted > 1 and len(frames) > 1:
            self._logger.debug(f"Discarding leading frame {frames[0]!r} sent in reply to {code!r}")
            self._multiplex_callback.frame_discarded(frames[0])
            frames = frames[1:]
        return frames

    def _on_frame(self, frame: str):
        if self._reply_frames is None:
            # Nobody is waiting: heartbeat echoes, late duplicates, front panel changes
            self._logger.debug(f"Discarding unsolicited frame: {frame!r}")
            self._multiplex_callback.frame_discarded(frame)
            return
        self._logger.info(f"RECV: {frame!r}")
        self._reply_frames.put_nowait(frame)

    async def _connection_watchdog(self):
        """Trigger reconnection if no data at all arrives for idle_timeout seconds.

        The AVR sends a heartbeat on a fixed period, so a silent connection is a dead one.
        """
        check_interval = min(5.0, self._idle_timeout / 2)
        while self._reconnect:
            try:
                await asyncio.sleep(check_interval)
                if not self.connected:
                    continue
                time_since_last_data = time.time() - self._last_receive_timestamp
                if time_since_last_data > self._idle_timeout:
                    self._logger.error(
                        f"[WATCHDOG] Connection appears dead: no data received for {time_since_last_data:.1f}s, "
                        "reconnecting..."
                    )
                    self._drop_connection()
                    return
            except asyncio.CancelledError:
                self._logger.debug("Connection watchdog cancelled")
                break
