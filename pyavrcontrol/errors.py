"""Errors raised while talking to the AVR."""


class AVRError(Exception):
    """Base error for pyavrcontrol."""


class AVRTimeoutError(AVRError):
    """Raised when the AVR does not answer within the bounded wait."""

    def __init__(self, message: str = "Timeout. Didn't get response from AVR."):
        super().__init__(message)


class PreconditionViolatedError(AVRError):
    """Raised when the AVR power state does not allow the requested command."""


class PowerAlreadyOnError(PreconditionViolatedError):
    def __init__(self):
        super().__init__("Power already on.")


class PowerAlreadyOffError(PreconditionViolatedError):
    def __init__(self):
        super().__init__("Power already off.")


class PowerOffError(PreconditionViolatedError):
    def __init__(self):
        super().__init__("Power is off, it must be turned on to execute command.")


class ResponseMismatchError(AVRError):
    """Raised when the AVR answered, but not with the expected acknowledgement.

    The command most likely did not take effect.
    """

    def __init__(self, expected: str, response: str):
        self.expected = expected
        self.response = response
        super().__init__(
            f"AVR response doesn't match expected code: {expected!r} (got {response!r}). "
            "Can't confirm update took place."
        )


class ConnectionLostError(AVRError):
    """Raised inside the connection manager when the device connection is dead.

    Never reaches callers of AVRController.process(); they observe a timeout instead.
    """
