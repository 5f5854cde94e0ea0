"""pyavrcontrol Python Package

Python library for controlling a networked Pioneer AVR over telnet, with a
voice skill webhook on top.
"""

from pyavrcontrol.avr import AVRController
from pyavrcontrol.codec import (
    ChangeInput,
    Command,
    Mute,
    PowerOff,
    PowerOn,
    SetVolume,
    Unmute,
    VolumeDown,
    VolumeUp,
)
from pyavrcontrol.errors import (
    AVRError,
    AVRTimeoutError,
    PreconditionViolatedError,
    ResponseMismatchError,
)

__all__ = [
    "AVRController",
    "AVRError",
    "AVRTimeoutError",
    "ChangeInput",
    "Command",
    "Mute",
    "PowerOff",
    "PowerOn",
    "PreconditionViolatedError",
    "ResponseMismatchError",
    "SetVolume",
    "Unmute",
    "VolumeDown",
    "VolumeUp",
]
