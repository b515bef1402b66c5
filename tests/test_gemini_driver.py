"""Gemini driver wire format."""

from __future__ import annotations

import base64

import httpx
import pytest

from llm_orchestrator.drivers.gemini import GeminiDriver
from llm_orchestrator.errors import MessageValidationError
from llm_orchestrator.request import Request
from llm_orchestrator.schema import Property, Schema, Tool
from llm_orchestrator.types import Content, Message
from tests.conftest import make_settings
from tests.helpers import RecordingTransport

pytestmark = pytest.mark.contract

GENERATION = {
    "candidates": [
        {
            "content": {"role": "model", "parts": [{"text": "Hello "}, {"text": "there"}]},
            "finishReason": "STOP",
        }
    ],
    "usageMetadata": {"promptTokenCount": 7, "candidatesTokenCount": 2},
    "modelVersion": "gemini-1.5-pro-002",
}


def _driver(transport: RecordingTransport) -> GeminiDriver:
    settings = make_settings()
    return GeminiDriver("gemini", settings.client("gemini"), transport=transport.transport)


@pytest.mark.asyncio
async def test_translates_roles_system_and_generation_config() -> None:
    transport = RecordingTransport([GENERATION])
    request = (
        Request.builder()
        .system("Be kind.")
        .prompt("Hi")
        .add_message(Message.assistant("Hello"))
        .prompt("Again")
        .max_tokens(64)
        .temperature(0.5)
        .build()
    )

    response = await _driver(transport).send(request)

    sent = transport.requests[-1]
    assert str(sent.url) == (
        "https://gemini.test/v1beta/models/gemini-1.5-pro:generateContent"
    )
    assert sent.headers["x-goog-api-key"] == "g-test"
    assert transport.last_json == {
        "contents": [
            {"role": "user", "parts": [{"text": "Hi"}]},
            {"role": "model", "parts": [{"text": "Hello"}]},
            {"role": "user", "parts": [{"text": "Again"}]},
        ],
        "generationConfig": {"maxOutputTokens": 64, "temperature": 0.5},
        "systemInstruction": {"parts": [{"text": "Be kind."}]},
    }
    assert response.content == "Hello "
    assert response.model == "gemini-1.5-pro"
    assert response.metadata == {"model": "gemini-1.5-pro-002"}
    assert response.total_tokens == 9
    assert response.finish_reason == "STOP"


@pytest.mark.asyncio
async def test_model_override_changes_endpoint() -> None:
    transport = RecordingTransport([GENERATION])

    await _driver(transport).send(
        Request.builder().prompt("x").model("gemini-1.5-flash").build()
    )

    assert transport.requests[-1].url.path == (
        "/v1beta/models/gemini-1.5-flash:generateContent"
    )


@pytest.mark.asyncio
async def test_schema_tools_and_inline_media() -> None:
    transport = RecordingTransport([GENERATION])
    schema = Schema("answer", properties=[Property.string("text", required=True)])
    request = (
        Request.builder()
        .add_message(
            Message.user(
                [
                    Content.image("data:image/png;base64,YWJj"),
                    Content.audio("YWJj"),
                    Content.document("YWJj", {"mime_type": "text/plain"}),
                ]
            )
        )
        .add_tool(Tool("lookup", "Find", [Property.string("q", required=True)]))
        .as_structured_output(schema)
        .build()
    )

    await _driver(transport).send(request)

    body = transport.last_json
    assert body["contents"][0]["parts"] == [
        {"inlineData": {"mimeType": "image/png", "data": "YWJj"}},
        {"inlineData": {"mimeType": "audio/wav", "data": "YWJj"}},
        {"inlineData": {"mimeType": "text/plain", "data": "YWJj"}},
    ]
    assert body["generationConfig"]["responseMimeType"] == "application/json"
    assert body["generationConfig"]["responseJsonSchema"] == schema.to_dict()["schema"]
    assert body["tools"] == [
        {
            "functionDeclarations": [
                {
                    "name": "lookup",
                    "description": "Find",
                    "parameters": {
                        "type": "object",
                        "properties": {"q": {"type": "string"}},
                        "required": ["q"],
                    },
                }
            ]
        }
    ]


@pytest.mark.asyncio
async def test_image_url_requires_opt_in() -> None:
    transport = RecordingTransport([GENERATION])
    request = (
        Request.builder()
        .add_message(Message.user(Content.image("https://x/cat.png")))
        .build()
    )

    with pytest.raises(MessageValidationError, match="allow_url"):
        await _driver(transport).send(request)

    assert transport.requests == []


@pytest.mark.asyncio
async def test_image_url_is_fetched_and_inlined_when_allowed() -> None:
    image = httpx.Response(200, content=b"img", headers={"Content-Type": "image/png"})
    transport = RecordingTransport([image, GENERATION])
    request = (
        Request.builder()
        .add_message(
            Message.user(Content.image("https://x/cat.png", {"allow_url": True}))
        )
        .build()
    )

    await _driver(transport).send(request)

    assert str(transport.requests[0].url) == "https://x/cat.png"
    assert transport.last_json["contents"][0]["parts"] == [
        {
            "inlineData": {
                "mimeType": "image/png",
                "data": base64.b64encode(b"img").decode("ascii"),
            }
        }
    ]


@pytest.mark.asyncio
async def test_failed_image_fetch_is_a_validation_error() -> None:
    transport = RecordingTransport([httpx.Response(404)])
    request = (
        Request.builder()
        .add_message(
            Message.user(Content.image("https://x/cat.png", {"allow_url": True}))
        )
        .build()
    )

    with pytest.raises(MessageValidationError):
        await _driver(transport).send(request)


@pytest.mark.asyncio
async def test_function_calls_use_name_as_id_fallback() -> None:
    body = {
        "candidates": [
            {
                "content": {
                    "parts": [{"functionCall": {"name": "lookup", "args": {"q": "x"}}}]
                },
                "finishReason": "STOP",
            }
        ],
        "usageMetadata": {
            "promptTokenCount": 3,
            "candidatesTokenCount": 1,
            "totalTokenCount": 11,
        },
    }
    transport = RecordingTransport([body])

    response = await _driver(transport).send(
        Request.builder().prompt("x").as_json().build()
    )

    assert response.tool_calls[0].id == "lookup"
    assert response.tool_calls[0].arguments == {"q": "x"}
    assert response.total_tokens == 11
    assert response.structured_output == {"q": "x"}


@pytest.mark.asyncio
async def test_media_in_system_message_is_rejected() -> None:
    transport = RecordingTransport([GENERATION])
    system = Message.system([Content.text("Be brief."), Content.image("YWJj")])

    with pytest.raises(MessageValidationError, match="text only"):
        await _driver(transport).send(
            Request.builder().add_message(system).prompt("hi").build()
        )

    assert transport.requests == []


@pytest.mark.asyncio
async def test_raw_payload_is_sent_verbatim_to_the_model_endpoint() -> None:
    transport = RecordingTransport([GENERATION])
    raw = {
        "contents": [{"role": "user", "parts": [{"text": "raw"}]}],
        "safetySettings": [
            {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"}
        ],
    }
    request = (
        Request.builder()
        .prompt("ignored")
        .model("gemini-2.0-flash")
        .max_tokens(1)
        .with_raw_payload(raw)
        .build()
    )

    await _driver(transport).send(request)

    assert transport.last_json == raw
    assert transport.requests[0].url.path == (
        "/v1beta/models/gemini-2.0-flash:generateContent"
    )


@pytest.mark.asyncio
async def test_only_the_first_text_part_becomes_content() -> None:
    body = dict(
        GENERATION,
        candidates=[{"content": {"parts": [{"text": "first"}, {"text": "second"}]}}],
    )
    transport = RecordingTransport([body])

    response = await _driver(transport).send(Request.builder().prompt("x").build())

    assert response.content == "first"
