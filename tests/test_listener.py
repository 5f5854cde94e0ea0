from unittest.mock import MagicMock

from helpers import CapturingListener
from pyavrcontrol.listener import LoggingListener, MultiplexingListener


def test_multiplexing_listener_fans_out_events():
    first, second = CapturingListener(), CapturingListener()
    multiplexer = MultiplexingListener()
    multiplexer.register_listener(first)
    multiplexer.register_listener(second)

    multiplexer.connected()
    multiplexer.frame_received("PWR0\r\n")
    multiplexer.noise_received("R\r\n")
    multiplexer.frame_discarded("VOL041\r\n")

    for listener in (first, second):
        assert listener.events == ["connected"]
        assert listener.frames == ["PWR0\r\n"]
        assert listener.noise == ["R\r\n"]
        assert listener.discarded == ["VOL041\r\n"]


def test_unregistered_listener_gets_nothing():
    listener = CapturingListener()
    multiplexer = MultiplexingListener()
    multiplexer.register_listener(listener)
    multiplexer.unregister_listener(listener)
    multiplexer.unregister_listener(listener)

    multiplexer.disconnected()
    assert listener.events == []


def test_logging_listener_logs_lifecycle():
    logger = MagicMock()
    listener = LoggingListener(logger)

    listener.connected()
    listener.frame_discarded("VOL041\r\n")
    listener.disconnected()

    assert [call.args[0] for call in logger.info.call_args_list] == [
        "Connected",
        "Discarded unsolicited frame: 'VOL041\\r\\n'",
        "Disconnected",
    ]
