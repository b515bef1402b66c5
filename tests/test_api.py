"""Real API integration tests.

These tests make real provider calls and are intentionally compact:
- ENABLE_API_TESTS=1 is required to run any API tests
- OPENAI_API_KEY is required by the provider fixture
"""

from __future__ import annotations

import pytest

from llm_orchestrator import Manager, Property, Request, Schema, Settings

pytestmark = [pytest.mark.api, pytest.mark.slow]


@pytest.mark.asyncio
async def test_openai_round_trip(openai_api_key: str) -> None:
    settings = Settings.from_env({"OPENAI_API_KEY": openai_api_key})
    manager = Manager(settings)

    response = await manager.send(
        Request.builder().prompt("Reply with the single word: pong").max_tokens(20).build(),
        "openai",
    )

    assert "pong" in response.content.lower()
    assert response.input_tokens > 0
    assert response.cost is not None and response.cost > 0
    assert response.attempted_clients == ("openai",)


@pytest.mark.asyncio
async def test_openai_structured_output(openai_api_key: str) -> None:
    settings = Settings.from_env({"OPENAI_API_KEY": openai_api_key})
    schema = Schema("capital", properties=[Property.string("city", required=True)])

    response = await Manager(settings).send(
        Request.builder()
        .prompt("What is the capital of France?")
        .as_structured_output(schema)
        .build(),
        "openai",
    )

    assert isinstance(response.structured_output, dict)
    assert response.structured_output["city"].lower() == "paris"
