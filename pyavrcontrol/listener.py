from abc import ABC, abstractmethod
from typing import List
import logging


class ConnectionListener(ABC):

    @abstractmethod
    def connected(self):
        pass

    @abstractmethod
    def disconnected(self):
        pass

    def data_received(self, data: bytes):
        """Called with every raw chunk read from the AVR, noise included."""
        pass

    def frame_received(self, frame: str):
        """Called with each complete line that is not heartbeat noise. Frame ends in CR LF."""
        pass

    def noise_received(self, frame: str):
        # By default, do nothing but can be overwritten to be notified of heartbeats.
        pass

    def frame_discarded(self, frame: str):
        # By default, do nothing but can be overwritten to be notified of these messages.
        pass


class MultiplexingListener(ConnectionListener):

    _listeners: List[ConnectionListener]

    def __init__(self):
        self._listeners = []

    def connected(self):
        for listener in self._listeners:
            listener.connected()

    def disconnected(self):
        for listener in self._listeners:
            listener.disconnected()

    def data_received(self, data: bytes):
        for listener in self._listeners:
            listener.data_received(data)

    def frame_received(self, frame: str):
        for listener in self._listeners:
            listener.frame_received(frame)

    def noise_received(self, frame: str):
        for listener in self._listeners:
            listener.noise_received(frame)

    def frame_discarded(self, frame: str):
        for listener in self._listeners:
            listener.frame_discarded(frame)

    def register_listener(self, listener: ConnectionListener):
        self._listeners.append(listener)

    def unregister_listener(self, listener: ConnectionListener):
        if listener in self._listeners:
            self._listeners.remove(listener)
        else:
            logging.info("Listener isn't registered")


class LoggingListener(ConnectionListener):

    def __init__(self, logger=logging):
        self.logger = logger

    def connected(self):
        self.logger.info("Connected")

    def disconnected(self):
        self.logger.info("Disconnected")

    def noise_received(self, frame: str):
        self.logger.debug(f"Heartbeat: {frame!r}")

    def frame_discarded(self, frame: str):
        self.logger.info(f"Discarded unsolicited frame: {frame!r}")
