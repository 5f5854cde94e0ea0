from unittest.mock import MagicMock

from helpers import CapturingListener
from pyavrcontrol.protocol import AVRProtocol


def make_protocol():
    listener = CapturingListener()
    protocol = AVRProtocol(listener)
    transport = MagicMock()
    transport.is_closing.return_value = False
    transport.get_extra_info.return_value = ("192.168.1.50", 5555)
    protocol.connection_made(transport)
    return protocol, listener, transport


def test_connection_made_notifies_listener():
    protocol, listener, _ = make_protocol()
    assert listener.events == ["connected"]
    assert protocol.connected
    assert protocol.peer_name == ("192.168.1.50", 5555)


def test_splits_multiple_frames_in_one_packet():
    protocol, listener, _ = make_protocol()
    protocol.data_received(b"VOL043\r\nVOL045\r\n")
    assert listener.frames == ["VOL043\r\n", "VOL045\r\n"]


def test_reassembles_frame_split_across_packets():
    protocol, listener, _ = make_protocol()
    protocol.data_received(b"VO")
    assert listener.frames == []
    protocol.data_received(b"L051\r")
    protocol.data_received(b"\n")
    assert listener.frames == ["VOL051\r\n"]


def test_bare_carriage_return_terminates_frame():
    protocol, listener, _ = make_protocol()
    protocol.data_received(b"PWR0\rMUT1\r")
    assert listener.frames == ["PWR0\r\n", "MUT1\r\n"]


def test_heartbeat_is_never_forwarded():
    protocol, listener, _ = make_protocol()
    protocol.data_received(b"R\r\nFN05\r\nR\r\n")
    assert listener.frames == ["FN05\r\n"]
    assert listener.noise == ["R\r\n", "R\r\n"]


def test_write_encodes_ascii():
    protocol, _, transport = make_protocol()
    assert protocol.write("?P\r")
    transport.write.assert_called_once_with(b"?P\r")


def test_write_fails_when_not_connected():
    listener = CapturingListener()
    protocol = AVRProtocol(listener)
    assert not protocol.write("?P\r")


def test_connection_lost_clears_transport_and_buffer_is_reset_on_reconnect():
    protocol, listener, transport = make_protocol()
    protocol.data_received(b"VOL0")
    protocol.connection_lost(None)
    assert listener.events == ["connected", "disconnected"]
    assert not protocol.connected

    protocol.connection_made(transport)
    protocol.data_received(b"PWR0\r\n")
    assert listener.frames == ["PWR0\r\n"]
