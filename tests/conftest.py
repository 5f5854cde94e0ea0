# tests/conftest.py

import pytest
import pytest_asyncio

from fakes.fake_avr import FakeAVR
from helpers import FAST_TIMINGS
from pyavrcontrol.avr import AVRController
from pyavrcontrol.bridge import Bridge
from pyavrcontrol.codec import CommandCodec
from pyavrcontrol.connection import ConnectionManager


@pytest.fixture
def codec():
    return CommandCodec()


@pytest_asyncio.fixture
async def fake_avr():
    avr = FakeAVR()
    await avr.start()
    yield avr
    await avr.stop()


@pytest_asyncio.fixture
async def connection(fake_avr):
    bridge = Bridge()
    manager = ConnectionManager(
        "127.0.0.1",
        fake_avr.port,
        bridge,
        reconnect_time=FAST_TIMINGS["reconnect_time"],
        response_window=FAST_TIMINGS["response_window"],
        frame_settle_time=FAST_TIMINGS["frame_settle_time"],
    )
    await manager.async_connect()
    assert await manager.wait_connected(2.0)
    yield manager, bridge
    manager.close()


@pytest_asyncio.fixture
async def controller(fake_avr):
    avr_controller = AVRController("127.0.0.1", fake_avr.port, **FAST_TIMINGS)
    await avr_controller.async_connect()
    assert await avr_controller.wait_connected(2.0)
    yield avr_controller
    avr_controller.close()
