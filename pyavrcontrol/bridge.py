import asyncio
import logging
from typing import Optional

from pyavrcontrol.errors import AVRTimeoutError


class Bridge:
    """Single-slot handoff between AVRController and the ConnectionManager.

    Outbound carries wire codes from the controller to the connection, inbound
    carries replies back. Only one exchange is ever in flight, so each slot
    holds at most one value: a value nobody collected is stale and is
    overwritten rather than queued behind.
    """

    def __init__(self):
        self._logger = logging.getLogger(__name__)
        self._outbound: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._inbound: asyncio.Queue = asyncio.Queue(maxsize=1)

    def send_outbound(self, code: str):
        """Hand a wire code to the connection. Never blocks."""
        self._put_overwriting(self._outbound, code, "outbound")

    async def recv_outbound(self) -> str:
        return await self._outbound.get()

    def send_inbound(self, frame: str):
        """Hand a device reply to the waiting controller. Never blocks."""
        self._put_overwriting(self._inbound, frame, "inbound")

    async def recv_inbound(self, timeout: float) -> str:
        """Wait up to `timeout` seconds for the reply to the current exchange.

        A reply already sitting in the slot belongs to an earlier exchange and
        is discarded before waiting.
        """
        self._drain(self._inbound, "inbound")
        try:
            frame = await asyncio.wait_for(self._inbound.get(), timeout)
        except asyncio.TimeoutError as exc:
            raise AVRTimeoutError() from exc
        self._logger.debug(f"Response received via inbound slot: {frame!r}")
        return frame

    def clear_outbound(self) -> Optional[str]:
        """Drop an outbound code nobody will wait for any more."""
        return self._drain(self._outbound, "outbound")

    def _put_overwriting(self, slot: asyncio.Queue, value: str, name: str):
        self._drain(slot, name)
        slot.put_nowait(value)
        self._logger.debug(f"Sent via {name} slot: {value!r}")

    def _drain(self, slot: asyncio.Queue, name: str) -> Optional[str]:
        try:
            stale = slot.get_nowait()
        except asyncio.QueueEmpty:
            return None
        self._logger.debug(f"Had to clear {name} slot, discarded {stale!r}")
        return stale
