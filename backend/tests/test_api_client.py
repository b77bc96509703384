import json

import httpx
import pytest

from ruralcare.client import api_client
from ruralcare.client.api_client import RuralCareClient
from ruralcare.client.errors import ServiceError, ServiceTimeout, ServiceUnavailable
from ruralcare.models.assistant import ChatTurn, UserContext


def make_client(handler, config=None):
    return RuralCareClient(base_url="http://testserver", config=config, transport=httpx.MockTransport(handler))


async def test_chat_posts_history_and_context():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"response": "Drink water", "type": "text", "powered_by": "OpenAI"})

    async with make_client(handler) as client:
        reply = await client.chat(
            "I feel dizzy", UserContext(role="patient", name="Sarah"), [ChatTurn(role="user", content="hi")]
        )

    assert reply.response == "Drink water"
    body = json.loads(seen[0].content)
    assert body["message"] == "I feel dizzy"
    assert body["user_context"]["name"] == "Sarah"
    assert body["conversation_history"] == [{"role": "user", "content": "hi"}]


async def test_transient_failure_is_retried_once():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(503, json={"detail": "busy"})
        return httpx.Response(200, json={"api_key_configured": True, "test_result": "API working"})

    async with make_client(handler) as client:
        status = await client.test_ai()

    assert len(calls) == 2
    assert status.is_live


async def test_timeout_after_retry_raises_service_timeout():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ReadTimeout("slow", request=request)

    async with make_client(handler) as client:
        with pytest.raises(ServiceTimeout):
            await client.transcribe(b"audio")

    assert len(calls) == 2


async def test_connection_error_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async with make_client(handler) as client:
        with pytest.raises(ServiceUnavailable):
            await client.translate("hello", "zu")


async def test_client_errors_are_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(400, json={"detail": "Invalid login credentials"})

    async with make_client(handler) as client:
        with pytest.raises(ServiceError) as excinfo:
            await client.sign_in("patient@demo.com", "nope")

    assert len(calls) == 1
    assert excinfo.value.status_code == 400
    assert str(excinfo.value) == "Invalid login credentials"
    assert not isinstance(excinfo.value, ServiceUnavailable)


async def test_unauthorized_maps_to_unavailable():
    def handler(request):
        return httpx.Response(401, json={"error": "No authorization token provided"})

    async with make_client(handler) as client:
        with pytest.raises(ServiceUnavailable) as excinfo:
            await client.image_history()

    assert excinfo.value.status_code == 401


async def test_unexpected_body_is_a_service_error():
    def handler(request):
        return httpx.Response(200, json={"unexpected": True})

    async with make_client(handler) as client:
        with pytest.raises(ServiceError):
            await client.chat("hello")


async def test_call_classes_use_their_own_timeouts(fast_config):
    config = fast_config.model_copy(
        update={"CHAT_TIMEOUT_SECONDS": 7.0, "SUMMARY_TIMEOUT_SECONDS": 42.0, "TRANSCRIBE_TIMEOUT_SECONDS": 9.0}
    )
    timeouts = []

    def handler(request):
        timeouts.append(request.extensions["timeout"]["read"])
        if request.url.path == "/ai/transcribe":
            return httpx.Response(200, json={"transcription": "hello", "confidence": 0.9})
        return httpx.Response(200, json={"response": "ok"})

    async with make_client(handler, config) as client:
        await client.chat("hello")
        await client.chat("summarise", call_class=api_client.SUMMARY)
        await client.transcribe(b"audio")

    assert timeouts == [7.0, 42.0, 9.0]


async def test_bearer_token_is_sent():
    headers = []

    def handler(request):
        headers.append(request.headers.get("Authorization"))
        return httpx.Response(200, json={"analyses": []})

    async with make_client(handler) as client:
        client.access_token = "abc"
        assert await client.image_history() == []

    assert headers == ["Bearer abc"]
