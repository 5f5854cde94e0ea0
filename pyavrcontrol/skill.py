"""Voice skill webhook.

A single POST route receives the skill's JSON requests, turns the requested
intent into a Command, runs it through the AVRController and answers with
plain-text speech. Request signature verification is left to the proxy in
front of this server.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from aiohttp import web

from pyavrcontrol import speech
from pyavrcontrol.codec import ChangeInput, Command, Mute, PowerOff, PowerOn, SetVolume, Unmute
from pyavrcontrol.errors import (
    AVRError,
    PowerAlreadyOffError,
    PowerAlreadyOnError,
    PowerOffError,
)

# Custom intents defined for this skill
USER_INTENTS: dict[str, Callable[[str], Command]] = {
    "Volume": lambda value: SetVolume(int(value)),
    "Input": lambda value: ChangeInput(int(value)),
    "Mute": lambda value: Mute(),
    "Unmute": lambda value: Unmute(),
    "On": lambda value: PowerOn(),
    "Off": lambda value: PowerOff(),
}

# Speech used when the slot value of an intent can't be validated
SLOT_ERRORS = {
    "Volume": speech.VOLUME_ERROR,
    "Input": speech.INPUT_ERROR,
}

END_SESSION_INTENTS = {"AMAZON.CancelIntent", "AMAZON.StopIntent", "AMAZON.NavigateHomeIntent"}


def build_response(text: Optional[str], end_session: bool = True) -> dict[str, Any]:
    response: dict[str, Any] = {"shouldEndSession": end_session}
    if text is not None:
        response["outputSpeech"] = {"type": "PlainText", "text": text}
    return {"version": "1.0", "response": response}


def _check_type(value: Any, expected: type, field: str):
    if value is not None and not isinstance(value, expected):
        raise TypeError(f"{field} must be {expected.__name__}, got {type(value).__name__}")


def check_request_shape(request: Any):
    """Raise TypeError unless the parts of the request read later have the right JSON types."""
    _check_type(request, dict, "request")
    _check_type(request["type"], str, "request.type")
    intent = request.get("intent")
    _check_type(intent, dict, "request.intent")
    if intent is None:
        return
    _check_type(intent.get("name"), str, "intent.name")
    slots = intent.get("slots")
    _check_type(slots, dict, "intent.slots")
    for name, slot in (slots or {}).items():
        _check_type(slot, dict, f"slots.{name}")
        if slot is not None:
            _check_type(slot.get("value"), str, f"slots.{name}.value")


def verbalize_error(error: AVRError) -> str:
    if isinstance(error, PowerAlreadyOnError):
        return speech.POWER_ALREADY_ON
    if isinstance(error, PowerAlreadyOffError):
        return speech.POWER_ALREADY_OFF
    if isinstance(error, PowerOffError):
        return speech.TURN_POWER_ON
    return speech.RESPONSE_ERROR


class AVRSkill:
    """Handles skill requests for one AVRController.

    The controller runs one exchange at a time, so requests are processed
    strictly one after another.
    """

    def __init__(self, controller):
        self._controller = controller
        self._command_lock = asyncio.Lock()
        self._logger = logging.getLogger(__name__)

    async def handle(self, request: web.Request) -> web.Response:
        """POST / route."""
        self._logger.info("Request received...")
        try:
            body = await request.json()
            skill_request = body["request"]
            request_type = skill_request["type"]
            check_request_shape(skill_request)
        except (ValueError, KeyError, TypeError) as e:
            self._logger.error(f"Could not deserialize request: {e!r}")
            return web.Response(status=400)

        self._logger.info(f"Request Type: {request_type}")
        async with self._command_lock:
            response = await self.process_request(request_type, skill_request)
        self._logger.debug(f"Sending back response: {response}")
        return web.json_response(response)

    async def process_request(self, request_type: str, request: dict[str, Any]) -> dict[str, Any]:
        """LaunchRequests are left open, waiting for an intent. SessionEndedRequests end silently."""
        if request_type == "LaunchRequest":
            return build_response(speech.HELLO, end_session=False)
        if request_type == "SessionEndedRequest":
            return build_response(None)
        if request_type == "IntentRequest":
            return await self.process_intent(request.get("intent") or {})
        return build_response(speech.HMM)

    async def process_intent(self, intent: dict[str, Any]) -> dict[str, Any]:
        name = intent.get("name", "")
        self._logger.info(f"Intent: {name}")

        if name == "AMAZON.HelpIntent":
            return build_response(speech.HELP, end_session=False)
        if name in END_SESSION_INTENTS:
            return build_response(speech.OK)
        if name not in USER_INTENTS:
            return build_response(speech.HMM)

        slot_value = self._slot_value(intent, name)
        try:
            cmd = USER_INTENTS[name](slot_value)
        except ValueError as e:
            self._logger.error(f"{name} error: {e}")
            return build_response(SLOT_ERRORS.get(name, speech.HMM))

        try:
            await self._controller.process(cmd)
        except AVRError as e:
            self._logger.error(f"{name} failed: {e}")
            return build_response(verbalize_error(e))
        return build_response(speech.OK)

    def _slot_value(self, intent: dict[str, Any], name: str) -> str:
        """Slot values are never missing; unknown values arrive as "?"."""
        slot = (intent.get("slots") or {}).get(f"{name}_slot") or {}
        value = slot.get("value") or "?"
        self._logger.info(f"Slot Value: {value}")
        return value


def create_app(controller) -> web.Application:
    skill = AVRSkill(controller)
    app = web.Application()
    app.router.add_post("/", skill.handle)
    return app
