"""Translation between AVR commands and Pioneer telnet wire codes.

Every command has a request code, a status query that reads back the attribute
it changes, and an expected acknowledgement the query reply must contain. The
expected pattern for numeric commands is sliced out of the generated request
code, so encoding and validation can never disagree.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

# Requests end in a carriage return, replies in CR LF
REQUEST_TERMINATOR = "\r"
RESPONSE_TERMINATOR = "\r\n"

# 161 is 0.0dB on the reference receiver; voice control stays well below it.
# Any level maps to an odd native value with this ceiling, which keeps the
# two-unit VU/VD steps aligned with the target.
DEFAULT_VOLUME_CEILING = 101
# Native volume units moved by one VU/VD code
DEFAULT_VOLUME_STEP = 2
# Older firmware reports PWR1 when in standby
DEFAULT_POWER_OFF_ACK = "PWR2"
POWER_ON_ACK = "PWR0"

VOLUME_LEVEL_MIN = 1
VOLUME_LEVEL_MAX = 10

# Volume response: VOL051
VOLUME_RESPONSE = re.compile(r"VOL(\d{3})")

# Logical input id -> receiver input code
INPUT_CODES: dict[int, str] = {
    1: "25",   # BD
    2: "49",   # GAME
    3: "19",   # HDMI 1
    4: "15",   # DVR/BDR
    5: "10",   # VIDEO 1 (VIDEO)
    6: "14",   # VIDEO 2
    7: "05",   # TV/SAT
    8: "20",   # HDMI 2
    9: "21",   # HDMI 3
    10: "22",  # HDMI 4
    11: "23",  # HDMI 5
    12: "24",  # HDMI 6
    13: "26",  # HOME MEDIA GALLERY (Internet Radio)
    14: "17",  # iPod/USB
    15: "01",  # CD
    16: "03",  # CD-R/TAPE
    17: "02",  # TUNER
    18: "00",  # PHONO
    19: "12",  # MULTI CH IN
    20: "33",  # ADAPTER PORT
    21: "27",  # SIRIUS
    22: "31",  # HDMI (cyclic)
}


class Command:
    """Base class for commands that can be sent to the AVR."""


@dataclass(frozen=True)
class SetVolume(Command):
    level: int

    def __post_init__(self):
        if isinstance(self.level, bool) or not isinstance(self.level, int):
            raise ValueError(f"Volume level must be an integer, got {self.level!r}")
        if not (VOLUME_LEVEL_MIN <= self.level <= VOLUME_LEVEL_MAX):
            raise ValueError(
                f"Volume level {self.level} not between {VOLUME_LEVEL_MIN} and {VOLUME_LEVEL_MAX}"
            )


@dataclass(frozen=True)
class ChangeInput(Command):
    input_id: int

    def __post_init__(self):
        if isinstance(self.input_id, bool) or self.input_id not in INPUT_CODES:
            raise ValueError(f"Input {self.input_id!r} not between 1 and {len(INPUT_CODES)}")


@dataclass(frozen=True)
class Mute(Command):
    pass


@dataclass(frozen=True)
class Unmute(Command):
    pass


@dataclass(frozen=True)
class PowerOn(Command):
    pass


@dataclass(frozen=True)
class PowerOff(Command):
    pass


@dataclass(frozen=True)
class VolumeUp(Command):
    pass


@dataclass(frozen=True)
class VolumeDown(Command):
    pass


class Query(Enum):
    """Status queries, one per attribute a command can change."""
    VOLUME = "?V\r"
    MUTE = "?M\r"
    POWER = "?P\r"
    INPUT = "?F\r"

    @property
    def code(self) -> str:
        return self.value


_FIXED_CODES: dict[type, str] = {
    PowerOn: "PO\r",
    PowerOff: "PF\r",
    Mute: "MO\r",
    Unmute: "MF\r",
    VolumeUp: "VU\r",
    VolumeDown: "VD\r",
}

_QUERIES: dict[type, Query] = {
    SetVolume: Query.VOLUME,
    VolumeUp: Query.VOLUME,
    VolumeDown: Query.VOLUME,
    ChangeInput: Query.INPUT,
    PowerOn: Query.POWER,
    PowerOff: Query.POWER,
    Mute: Query.MUTE,
    Unmute: Query.MUTE,
}


class CommandCodec:
    """Builds wire codes and expected acknowledgements for one receiver model.

    Args:
        volume_ceiling: Native volume value that voice level 10 maps to
        power_off_ack: Power query reply (without terminator) meaning standby
    """

    def __init__(self, volume_ceiling: int = DEFAULT_VOLUME_CEILING,
                 power_off_ack: str = DEFAULT_POWER_OFF_ACK):
        if volume_ceiling <= 0 or volume_ceiling > 999:
            raise ValueError(f"Invalid volume ceiling {volume_ceiling}, must be 1-999")
        self._volume_ceiling = volume_ceiling
        self._power_off_ack = power_off_ack

    @property
    def volume_ceiling(self) -> int:
        return self._volume_ceiling

    @property
    def power_on_pattern(self) -> str:
        return POWER_ON_ACK + RESPONSE_TERMINATOR

    @property
    def power_off_pattern(self) -> str:
        return self._power_off_ack + RESPONSE_TERMINATOR

    def native_volume(self, level: int) -> int:
        """Map a voice level (1-10) onto the receiver scale, rounding up."""
        return -(-level * self._volume_ceiling // 10)

    def encode(self, cmd: Command) -> str:
        if isinstance(cmd, SetVolume):
            return f"{self.native_volume(cmd.level):03d}VL{REQUEST_TERMINATOR}"
        if isinstance(cmd, ChangeInput):
            return f"{INPUT_CODES[cmd.input_id]}FN{REQUEST_TERMINATOR}"
        return _FIXED_CODES[type(cmd)]

    def expected(self, cmd: Command, code: str) -> str:
        """Acknowledgement the status query reply must contain after `code` was sent."""
        if isinstance(cmd, SetVolume):
            return f"VOL{code[0:3]}{RESPONSE_TERMINATOR}"
        if isinstance(cmd, ChangeInput):
            return f"FN{code[0:2]}{RESPONSE_TERMINATOR}"
        if isinstance(cmd, Mute):
            return "MUT0" + RESPONSE_TERMINATOR
        if isinstance(cmd, Unmute):
            return "MUT1" + RESPONSE_TERMINATOR
        if isinstance(cmd, PowerOn):
            return self.power_on_pattern
        if isinstance(cmd, PowerOff):
            return self.power_off_pattern
        # VolumeUp / VolumeDown: any volume report will do
        return "VOL"

    @staticmethod
    def query_for(cmd: Command) -> Query:
        return _QUERIES[type(cmd)]

    @staticmethod
    def parse_volume(response: str) -> Optional[int]:
        """Return the last volume reported in a (possibly concatenated) response."""
        matches = VOLUME_RESPONSE.findall(response)
        if not matches:
            return None
        return int(matches[-1])
