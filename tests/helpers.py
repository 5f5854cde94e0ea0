# tests/helpers.py

import asyncio

from pyavrcontrol.listener import ConnectionListener

# Timings scaled down so exchanges, settle delays and reconnects run in milliseconds
FAST_TIMINGS = dict(
    response_timeout=1.0,
    volume_settle_time=0.05,
    power_on_settle_time=0.05,
    reconnect_time=0.05,
    response_window=0.2,
    frame_settle_time=0.02,
)


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.01) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(interval)
    return predicate()


class CapturingListener(ConnectionListener):
    """Records every connection event for assertions."""

    def __init__(self):
        self.events: list[str] = []
        self.frames: list[str] = []
        self.noise: list[str] = []
        self.discarded: list[str] = []

    def connected(self):
        self.events.append("connected")

    def disconnected(self):
        self.events.append("disconnected")

    def frame_received(self, frame: str):
        self.frames.append(frame)

    def noise_received(self, frame: str):
        self.noise.append(frame)

    def frame_discarded(self, frame: str):
        self.discarded.append(frame)
