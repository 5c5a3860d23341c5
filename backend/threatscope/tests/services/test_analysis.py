import json
import random
from datetime import datetime, timezone

import httpx
import pytest

from threatscope.client import RelayClient, SessionState
from threatscope.services.analysis import (
    ANALYSIS_MAX_TOKENS,
    ANALYST_SYSTEM_PROMPT,
    CHAT_MAX_TOKENS,
    ThreatAnalyst,
    build_threat_prompt,
)
from threatscope.services.threats import ThreatGenerator
from threatscope.tests.utils.sse import ChunkedStream, FakeUpstream, delta_frame, sse_body


def _threats():
    generator = ThreatGenerator(
        rng=random.Random(11), clock=lambda: datetime(2025, 1, 1, tzinfo=timezone.utc)
    )
    return generator.generate_for_countries(["FR"], names={"FR": "France"})


def _analyst(upstream: FakeUpstream) -> ThreatAnalyst:
    return ThreatAnalyst(RelayClient("http://relay.test", transport=upstream.transport))


def test_threat_prompt_lists_threats_and_context():
    prompt = build_threat_prompt(
        "France", ["Malware (High): a", "DDoS (Low): b"], "Paris", "Europe"
    )

    assert prompt.startswith("Analyze the cybersecurity threat landscape for France:")
    assert "- Malware (High): a\n- DDoS (Low): b" in prompt
    assert "- Capital: Paris" in prompt
    assert "- Region: Europe" in prompt
    assert prompt.endswith("3. Long-term security strategy")


def test_analysis_request_shape():
    analyst = _analyst(FakeUpstream())
    threats = _threats()

    request = analyst.analysis_request("France", threats, "Paris", "Europe")

    assert request.max_tokens == ANALYSIS_MAX_TOKENS
    assert request.stream is True
    assert [m.role for m in request.messages] == ["system", "user"]
    assert request.messages[0].content == ANALYST_SYSTEM_PROMPT
    assert threats[0].description in request.messages[1].content


@pytest.mark.asyncio
async def test_analyze_threats_streams_through_relay():
    upstream = FakeUpstream(
        lambda request: httpx.Response(200, stream=ChunkedStream([sse_body("Risk: ", "high")]))
    )
    analyst = _analyst(upstream)
    updates = []

    session = analyst.analyze_threats(
        "France", _threats(), "Paris", "Europe", on_update=updates.append
    )
    result = await session.wait()
    await analyst.client.aclose()

    assert result.state is SessionState.COMPLETED
    assert result.text == "Risk: high"
    assert updates[-1] == "Risk: high"
    assert json.loads(upstream.calls[0].content)["max_tokens"] == ANALYSIS_MAX_TOKENS


@pytest.mark.asyncio
async def test_stopping_analysis_reports_stopped_by_user():
    stream = ChunkedStream([delta_frame("Risk"), delta_frame(" assessment")])
    analyst = _analyst(FakeUpstream(lambda request: httpx.Response(200, stream=stream)))

    session = analyst.analyze_threats(
        "France", _threats(), on_update=lambda text: analyst.stop()
    )
    result = await session.wait()
    await analyst.client.aclose()

    assert result.state is SessionState.STOPPED
    assert result.text == "Risk"
    assert result.message == "Analysis was stopped by user"


@pytest.mark.asyncio
async def test_chat_preserves_turn_order():
    upstream = FakeUpstream(
        lambda request: httpx.Response(200, stream=ChunkedStream([sse_body("Sure.")]))
    )
    analyst = _analyst(upstream)
    history = [
        {"role": "system", "content": "s"},
        {"role": "user", "content": "u1"},
        {"role": "assistant", "content": "a1"},
        {"role": "user", "content": "u2"},
    ]

    reply = await analyst.ask(history)
    await analyst.client.aclose()

    assert reply == "Sure."
    payload = json.loads(upstream.calls[0].content)
    assert [m["content"] for m in payload["messages"]] == ["s", "u1", "a1", "u2"]
    assert payload["max_tokens"] == CHAT_MAX_TOKENS


@pytest.mark.asyncio
async def test_ask_returns_none_on_failure():
    analyst = _analyst(FakeUpstream(lambda request: httpx.Response(500, json={"error": "x"})))

    reply = await analyst.ask([{"role": "user", "content": "hi"}])
    await analyst.client.aclose()

    assert reply is None
