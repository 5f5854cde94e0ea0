"""AVR command orchestration.

AVRController is the only entry point callers need: process() runs one full
request/response exchange per command:
- Power precondition check (the AVR rejects most commands while in standby)
- Volume set by relative VU/VD stepping from the current volume
- Settle delays where the AVR needs time before status queries are meaningful
- Confirmation query and validation against the expected acknowledgement

Failures are raised as AVRError subclasses. Nothing is retried automatically."""

import asyncio
import logging

from pyavrcontrol.bridge import Bridge
from pyavrcontrol.codec import (
    DEFAULT_POWER_OFF_ACK,
    DEFAULT_VOLUME_CEILING,
    DEFAULT_VOLUME_STEP,
    Command,
    CommandCodec,
    PowerOff,
    PowerOn,
    Query,
    SetVolume,
    VolumeDown,
    VolumeUp,
)
from pyavrcontrol.connection import (
    DEFAULT_FRAME_SETTLE_TIME,
    DEFAULT_PORT,
    DEFAULT_RECONNECT_TIME,
    DEFAULT_RESPONSE_WINDOW,
    ConnectionManager,
    ConnectionState,
)
from pyavrcontrol.errors import (
    PowerAlreadyOffError,
    PowerAlreadyOnError,
    PowerOffError,
    ResponseMismatchError,
)

# If a reply takes longer than this, assume the exchange failed
DEFAULT_RESPONSE_TIMEOUT = 1.5
# Time for the AVR to finish stepping before the final volume query
DEFAULT_VOLUME_SETTLE_TIME = 2.0
# Time for the AVR to power up before status queries are meaningful
DEFAULT_POWER_ON_SETTLE_TIME = 1.0


class AVRController:
    """High-level AVR control over a single persistent connection.

    This class:
    - Creates the Bridge, CommandCodec and ConnectionManager
    - Translates commands into wire codes and sends them through the Bridge
    - Confirms every command by querying the AVR afterwards

    Concurrent process() calls are not safe: the Bridge holds one exchange at a
    time, so callers must serialize commands themselves.
    """

    def __init__(self, hostname, port=DEFAULT_PORT, volume_ceiling=DEFAULT_VOLUME_CEILING,
                 power_off_ack=DEFAULT_POWER_OFF_ACK, volume_step=DEFAULT_VOLUME_STEP,
                 response_timeout=DEFAULT_RESPONSE_TIMEOUT, volume_settle_time=DEFAULT_VOLUME_SETTLE_TIME,
                 power_on_settle_time=DEFAULT_POWER_ON_SETTLE_TIME, reconnect_time=DEFAULT_RECONNECT_TIME,
                 response_window=DEFAULT_RESPONSE_WINDOW, frame_settle_time=DEFAULT_FRAME_SETTLE_TIME,
                 idle_timeout=None):
        """Initialize controller.

        Args:
            hostname: AVR hostname or IP
            port: Telnet port of the AVR
            volume_ceiling: Native volume that voice level 10 maps to
            power_off_ack: Power query reply meaning standby (PWR2, PWR1 on older firmware)
            volume_step: Native volume units moved by one VU/VD code
            response_timeout: Seconds to wait for each reply, longer than twice response_window
            volume_settle_time: Seconds to wait after volume stepping before confirming
            power_on_settle_time: Seconds to wait after power on before confirming
            reconnect_time: Seconds to wait between reconnection attempts
            response_window: Seconds the connection waits for a reply before resetting
            frame_settle_time: Seconds of silence that end a multi-line reply
            idle_timeout: Seconds without data before the connection is reset, None to disable
        """
        if volume_step <= 0:
            raise ValueError(f"Invalid volume step {volume_step}, must be positive")
        self._hostname = hostname
        self._volume_step = volume_step
        self._response_timeout = response_timeout
        self._volume_settle_time = volume_settle_time
        self._power_on_settle_time = power_on_settle_time

        self._logger = logging.getLogger(__name__)

        self._codec = CommandCodec(volume_ceiling, power_off_ack)
        self._bridge = Bridge()
        self._connection = ConnectionManager(
            hostname,
            port,
            self._bridge,
            reconnect_time=reconnect_time,
            response_window=response_window,
            frame_settle_time=frame_settle_time,
            idle_timeout=idle_timeout,
        )
        # Every reply must be forwarded before its caller stops waiting for it
        if response_timeout <= self._connection.max_reply_time:
            raise ValueError(
                f"Response timeout {response_timeout} must be longer than the connection's "
                f"reply time {self._connection.max_reply_time} (twice the response window)"
            )

    @property
    def codec(self) -> CommandCodec:
        return self._codec

    @property
    def connection(self) -> ConnectionManager:
        return self._connection

    @property
    def state(self) -> ConnectionState:
        return self._connection.state

    async def async_connect(self):
        """Connect to the AVR; reconnection is handled in the background from here on."""
        await self._connection.async_connect()

    async def wait_connected(self, timeout: float = 10.0) -> bool:
        return await self._connection.wait_connected(timeout)

    def close(self):
        """Close the connection and stop reconnection attempts."""
        self._connection.close()

    # ========== Public API ==========

    async def process(self, cmd: Command):
        """Send a command to the AVR and confirm it took effect.

        Raises:
            PreconditionViolatedError: AVR power state does not allow the command
            AVRTimeoutError: AVR did not answer in time
            ResponseMismatchError: AVR state after the command is not the requested one
        """
        code = self._codec.encode(cmd)
        self._logger.info(f"Translated {cmd} to code: {code!r}")

        await self._validate_power(cmd)

        # The immediate acknowledgement is unreliable, the query below confirms
        if isinstance(cmd, SetVolume):
            await self._adjust_volume(code)
            await asyncio.sleep(self._volume_settle_time)
        elif isinstance(cmd, PowerOn):
            await self._send_command(code)
            await asyncio.sleep(self._power_on_settle_time)
        else:
            await self._send_command(code)

        response = await self._query(self._codec.query_for(cmd))
        self._validate_response(cmd, code, response)

    # ========== Exchange steps ==========

    async def _validate_power(self, cmd: Command):
        current_power = await self._query(Query.POWER)
        if self._codec.power_off_pattern in current_power and not isinstance(cmd, PowerOn):
            if isinstance(cmd, PowerOff):
                raise PowerAlreadyOffError()
            raise PowerOffError()
        if self._codec.power_on_pattern in current_power and isinstance(cmd, PowerOn):
            raise PowerAlreadyOnError()

    async def _adjust_volume(self, code: str):
        """Step from the current volume to the one encoded in `code`.

        The AVR's absolute volume acknowledgement is unreliable, relative steps are not.
        """
        response = await self._query(Query.VOLUME)
        current_volume = self._codec.parse_volume(response)
        if current_volume is None:
            raise ResponseMismatchError("VOL", response)
        desired_volume = int(code[0:3])
        steps = int((desired_volume - current_volume) / self._volume_step)
        if steps == 0:
            self._logger.info(f"Volume {current_volume} already within one step of {desired_volume}")
            return

        step_code = self._codec.encode(VolumeUp() if steps > 0 else VolumeDown())
        self._logger.info(
            f"Adjusting volume {current_volume} -> {desired_volume}: {abs(steps)} x {step_code!r}"
        )
        await self._send_command(step_code * abs(steps))

    async def _query(self, query: Query) -> str:
        return await self._send_command(query.code)

    async def _send_command(self, code: str) -> str:
        """Hand a code to the connection and wait for its reply."""
        self._bridge.send_outbound(code)
        self._logger.debug(f"Sent code via outbound slot: {code!r}")
        return await self._bridge.recv_inbound(self._response_timeout)

    def _validate_response(self, cmd: Command, code: str, response: str):
        """The AVR reports its state back; confirm it matches what was requested."""
        expected = self._codec.expected(cmd, code)
        if expected not in response:
            raise ResponseMismatchError(expected, response)
        self._logger.info(
            f"AVR response matches expected code: {expected!r}. Update appears to have worked."
        )
