import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from pyavrcontrol import speech
from pyavrcontrol.codec import ChangeInput, Mute, PowerOff, PowerOn, SetVolume, Unmute
from pyavrcontrol.errors import (
    AVRTimeoutError,
    PowerAlreadyOffError,
    PowerAlreadyOnError,
    PowerOffError,
    ResponseMismatchError,
)
from pyavrcontrol.skill import create_app


class StubController:
    def __init__(self):
        self.processed = []
        self.error = None

    async def process(self, cmd):
        self.processed.append(cmd)
        if self.error is not None:
            raise self.error


@pytest.fixture
def stub_controller():
    return StubController()


@pytest_asyncio.fixture
async def client(stub_controller):
    test_client = TestClient(TestServer(create_app(stub_controller)))
    await test_client.start_server()
    yield test_client
    await test_client.close()


def intent_request(name, slot_value=None):
    intent = {"name": name}
    if slot_value is not None:
        intent["slots"] = {f"{name}_slot": {"name": f"{name}_slot", "value": slot_value}}
    return {"version": "1.0", "request": {"type": "IntentRequest", "intent": intent}}


async def post(client, body):
    resp = await client.post("/", json=body)
    assert resp.status == 200
    return await resp.json()


def speech_of(body):
    return body["response"]["outputSpeech"]["text"]


@pytest.mark.asyncio
async def test_launch_keeps_session_open(client):
    body = await post(client, {"version": "1.0", "request": {"type": "LaunchRequest"}})

    assert body["version"] == "1.0"
    assert speech_of(body) == speech.HELLO
    assert body["response"]["shouldEndSession"] is False


@pytest.mark.asyncio
async def test_session_ended_has_no_speech(client):
    body = await post(client, {"request": {"type": "SessionEndedRequest"}})

    assert "outputSpeech" not in body["response"]
    assert body["response"]["shouldEndSession"] is True


@pytest.mark.asyncio
async def test_unknown_request_type(client):
    body = await post(client, {"request": {"type": "CanFulfillIntentRequest"}})
    assert speech_of(body) == speech.HMM


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "name,slot_value,expected",
    [
        ("Volume", "5", SetVolume(5)),
        ("Input", "7", ChangeInput(7)),
        ("Mute", None, Mute()),
        ("Unmute", None, Unmute()),
        ("On", None, PowerOn()),
        ("Off", None, PowerOff()),
    ],
)
async def test_intent_runs_command(client, stub_controller, name, slot_value, expected):
    body = await post(client, intent_request(name, slot_value))

    assert stub_controller.processed == [expected]
    assert speech_of(body) == speech.OK
    assert body["response"]["shouldEndSession"] is True


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "name,slot_value,expected",
    [
        ("Volume", "11", speech.VOLUME_ERROR),
        ("Volume", "loud", speech.VOLUME_ERROR),
        ("Volume", None, speech.VOLUME_ERROR),
        ("Input", "23", speech.INPUT_ERROR),
        ("Input", "?", speech.INPUT_ERROR),
    ],
)
async def test_invalid_slot_value(client, stub_controller, name, slot_value, expected):
    body = await post(client, intent_request(name, slot_value))

    assert stub_controller.processed == []
    assert speech_of(body) == expected


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error,expected",
    [
        (PowerAlreadyOnError(), speech.POWER_ALREADY_ON),
        (PowerAlreadyOffError(), speech.POWER_ALREADY_OFF),
        (PowerOffError(), speech.TURN_POWER_ON),
        (AVRTimeoutError(), speech.RESPONSE_ERROR),
        (ResponseMismatchError("MUT0\r\n", "MUT1\r\n"), speech.RESPONSE_ERROR),
    ],
)
async def test_avr_errors_are_spoken(client, stub_controller, error, expected):
    stub_controller.error = error

    body = await post(client, intent_request("Mute"))

    assert speech_of(body) == expected
    assert body["response"]["shouldEndSession"] is True


@pytest.mark.asyncio
async def test_help_keeps_session_open(client):
    body = await post(client, intent_request("AMAZON.HelpIntent"))

    assert speech_of(body) == speech.HELP
    assert body["response"]["shouldEndSession"] is False


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["AMAZON.CancelIntent", "AMAZON.StopIntent", "AMAZON.NavigateHomeIntent"])
async def test_stop_intents_end_session(client, stub_controller, name):
    body = await post(client, intent_request(name))

    assert speech_of(body) == speech.OK
    assert body["response"]["shouldEndSession"] is True
    assert stub_controller.processed == []


@pytest.mark.asyncio
async def test_unknown_intent(client, stub_controller):
    body = await post(client, intent_request("AMAZON.FallbackIntent"))

    assert speech_of(body) == speech.HMM
    assert stub_controller.processed == []


@pytest.mark.asyncio
async def test_malformed_json_is_rejected(client):
    resp = await client.post("/", data="{not json", headers={"Content-Type": "application/json"})
    assert resp.status == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"request": {}}, {"request": "LaunchRequest"}, []])
async def test_request_without_type_is_rejected(client, body):
    resp = await client.post("/", json=body)
    assert resp.status == 400


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "skill_request",
    [
        {"type": "IntentRequest", "intent": "Volume"},
        {"type": "IntentRequest", "intent": {"name": "Volume", "slots": [1]}},
        {"type": "IntentRequest", "intent": {"name": "Volume", "slots": {"Volume_slot": "5"}}},
        {"type": "IntentRequest", "intent": {"name": "Volume", "slots": {"Volume_slot": {"value": [5]}}}},
        {"type": "IntentRequest", "intent": {"name": ["Volume"]}},
        {"type": ["IntentRequest"]},
    ],
)
async def test_badly_shaped_request_is_rejected(client, stub_controller, skill_request):
    resp = await client.post("/", json={"version": "1.0", "request": skill_request})

    assert resp.status == 400
    assert stub_controller.processed == []
