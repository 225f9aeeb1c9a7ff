import json

import httpx
import pytest

from schoolconnect.email.client import EmailError, EmailMessage, LoggingEmailClient
from schoolconnect.email.factory import get_email_client
from schoolconnect.email.resend import ResendEmailClient
from schoolconnect.llm.client import LLMError, LLMUnavailable
from schoolconnect.llm.factory import get_llm_client
from schoolconnect.llm.gemini import GeminiClient
from schoolconnect.llm.mock import MockLLMClient
from schoolconnect.llm.types import LLMMessage, LLMRequest


@pytest.fixture
def transport(monkeypatch):
    """Route every httpx.AsyncClient through a handler the test installs."""
    seen = []
    state = {"handler": None}
    real_client = httpx.AsyncClient

    def handler(request):
        seen.append(request)
        return state["handler"](request)

    monkeypatch.setattr(
        httpx, "AsyncClient", lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs)
    )

    def install(fn):
        state["handler"] = fn
        return seen

    return install


def llm_request():
    return LLMRequest(
        messages=[LLMMessage(role="system", content="be brief"), LLMMessage(role="user", content="hi")],
        model="gemini-test",
        temperature=0.2,
    )


async def test_gemini_request_and_reply(transport):
    seen = transport(
        lambda request: httpx.Response(
            200,
            json={
                "candidates": [{"content": {"parts": [{"text": "hello "}, {"text": "there"}]}}],
                "usageMetadata": {"promptTokenCount": 3, "candidatesTokenCount": 2, "totalTokenCount": 5},
            },
        )
    )

    reply = await GeminiClient(api_key="k", base_url="https://gemini.test/v1/").generate(llm_request())

    assert reply.text == "hello there"
    assert reply.total_tokens == 5
    request = seen[0]
    assert request.url.path == "/v1/models/gemini-test:generateContent"
    assert request.url.params["key"] == "k"
    body = json.loads(request.content)
    assert body["systemInstruction"]["parts"][0]["text"] == "be brief"
    assert body["contents"] == [{"role": "user", "parts": [{"text": "hi"}]}]
    assert body["generationConfig"]["temperature"] == 0.2


@pytest.mark.parametrize("status", [401, 403, 429])
async def test_gemini_key_or_quota_problems_are_unavailable(transport, status):
    transport(lambda request: httpx.Response(status, json={}))
    with pytest.raises(LLMUnavailable):
        await GeminiClient(api_key="k").generate(llm_request())


async def test_gemini_server_error(transport):
    transport(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(LLMError) as exc:
        await GeminiClient(api_key="k").generate(llm_request())
    assert not isinstance(exc.value, LLMUnavailable)


async def test_gemini_without_key():
    with pytest.raises(LLMUnavailable):
        await GeminiClient(api_key=None).generate(llm_request())


async def test_resend_posts_message(transport):
    seen = transport(lambda request: httpx.Response(200, json={"id": "re_123"}))
    client = ResendEmailClient("secret", "School <no-reply@school.edu>", base_url="https://mail.test")

    message_id = await client.send(EmailMessage(to="kid@school.edu", subject="Hi", html="<p>Hi</p>"))

    assert message_id == "re_123"
    assert seen[0].url == "https://mail.test/emails"
    assert seen[0].headers["authorization"] == "Bearer secret"
    assert json.loads(seen[0].content)["to"] == ["kid@school.edu"]


async def test_resend_rejection(transport):
    transport(lambda request: httpx.Response(422, json={"message": "invalid from"}))
    with pytest.raises(EmailError):
        await ResendEmailClient("secret", "x@school.edu").send(EmailMessage(to="a@b.edu", subject="s", html="h"))


def test_factories_pick_providers():
    assert isinstance(get_llm_client("mock"), MockLLMClient)
    assert isinstance(get_llm_client("GEMINI"), GeminiClient)
    assert isinstance(get_llm_client("unknown"), MockLLMClient)
    assert isinstance(get_email_client("resend"), ResendEmailClient)
    assert isinstance(get_email_client("log"), LoggingEmailClient)
