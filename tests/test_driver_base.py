"""Driver.send: cost accounting, recording and structured output."""

from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st
import pytest

from llm_orchestrator.config import ClientSettings, ModelPrice
from llm_orchestrator.drivers.base import parse_structured_output
from llm_orchestrator.errors import MessageValidationError, RequestFailedError
from llm_orchestrator.request import Request
from llm_orchestrator.types import ToolCall
from tests.helpers import CaptureSink, ScriptedDriver

pytestmark = pytest.mark.unit

PRICES = {"m": ModelPrice(input=2.5, output=10.0)}


def _driver(script: list, sink: CaptureSink | None = None, **kwargs) -> ScriptedDriver:
    return ScriptedDriver(
        "primary",
        ClientSettings(driver="custom", model="m"),
        script=script,
        log_sink=sink,
        metrics_sink=sink,
        **kwargs,
    )


def _request() -> Request:
    return Request.builder().prompt("hello").build()


def test_cost_uses_per_million_prices() -> None:
    driver = _driver([], prices=PRICES)

    assert driver.calculate_cost("m", 1_000_000, 500_000) == pytest.approx(7.5)


def test_unpriced_model_costs_zero() -> None:
    assert _driver([], prices=PRICES).calculate_cost("other", 10**6, 10**6) == 0.0


@given(
    st.integers(min_value=0, max_value=10**8),
    st.integers(min_value=0, max_value=10**8),
    st.integers(min_value=0, max_value=10**6),
)
def test_cost_is_non_negative_and_monotone(inp: int, out: int, extra: int) -> None:
    driver = _driver([], prices=PRICES)

    base = driver.calculate_cost("m", inp, out)

    assert base >= 0
    assert driver.calculate_cost("m", inp + extra, out) >= base
    assert driver.calculate_cost("m", inp, out + extra) >= base


@pytest.mark.asyncio
async def test_send_records_success_once() -> None:
    sink = CaptureSink()
    driver = _driver(["hi there"], sink, prices=PRICES)

    response = await driver.send(_request())

    assert response.content == "hi there"
    assert response.cost == pytest.approx((3 * 2.5 + 2 * 10.0) / 1_000_000)
    assert len(sink.entries) == 1
    assert len(sink.events) == 1
    entry, event = sink.entries[0], sink.events[0]
    assert entry.is_successful is True
    assert entry.client == "primary"
    assert entry.model == "m"
    assert entry.request_data["messages"] == [{"role": "user", "content": ["hello"]}]
    assert event.total_tokens == 5
    assert event.cost == response.cost


@pytest.mark.asyncio
async def test_send_records_request_failure_then_reraises() -> None:
    sink = CaptureSink()
    driver = _driver([RequestFailedError("down", status_code=503)], sink)

    with pytest.raises(RequestFailedError):
        await driver.send(_request())

    assert len(sink.entries) == 1
    assert sink.entries[0].is_successful is False
    assert sink.entries[0].failed_reason == "down"
    assert sink.events[0].is_successful is False
    assert sink.events[0].total_tokens == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error", [MessageValidationError("bad"), ZeroDivisionError("bug")]
)
async def test_other_errors_are_not_recorded(error: Exception) -> None:
    sink = CaptureSink()
    driver = _driver([error], sink)

    with pytest.raises(type(error)):
        await driver.send(_request())

    assert sink.entries == []
    assert sink.events == []


@pytest.mark.asyncio
async def test_failing_sink_does_not_mask_the_response(caplog) -> None:
    class BrokenSink:
        def record_execution(self, entry) -> None:
            raise RuntimeError("db gone")

        def record_metric(self, event) -> None:
            raise RuntimeError("db gone")

    driver = ScriptedDriver(
        "primary",
        script=["fine"],
        log_sink=BrokenSink(),
        metrics_sink=BrokenSink(),
    )

    response = await driver.send(_request())

    assert response.content == "fine"
    assert "db gone" in caplog.text


def _json_request(response_format: dict | None) -> Request:
    return Request.builder().prompt("x").with_response_format(response_format).build()


def test_structured_output_only_when_requested() -> None:
    assert parse_structured_output(_json_request(None), '{"a": 1}', None) is None


def test_structured_output_decodes_nested_json() -> None:
    request = _json_request({"type": "json_object"})

    assert parse_structured_output(request, '{"a": {"b": [1, 2]}}', None) == {
        "a": {"b": [1, 2]}
    }


def test_structured_output_returns_none_for_prose() -> None:
    request = _json_request({"type": "json_schema", "json_schema": {}})

    assert parse_structured_output(request, "not json", None) is None


def test_structured_output_falls_back_to_first_tool_call() -> None:
    request = _json_request({"type": "json_object"})
    calls = [ToolCall(id="1", name="f", arguments={"x": 1}), ToolCall(id="2", name="g")]

    assert parse_structured_output(request, "", calls) == {"x": 1}


@pytest.mark.parametrize("text", ["NaN", '{"score": Infinity}', "[-Infinity]"])
def test_structured_output_rejects_non_standard_constants(text: str) -> None:
    request = _json_request({"type": "json_object"})

    assert parse_structured_output(request, text, None) is None
