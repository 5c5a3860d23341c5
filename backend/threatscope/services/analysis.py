from typing import Iterable, List, Mapping, Optional, Sequence

from threatscope.client.relay_client import RelayClient
from threatscope.client.session import (
    SessionResult,
    SkippedFrameCallback,
    StreamSession,
    UpdateCallback,
)
from threatscope.schemas import ChatMessage, CompletionRequest, Threat

ANALYST_SYSTEM_PROMPT = (
    "You are a cybersecurity expert providing threat analysis and recommendations "
    "for countries. Be specific, actionable, and professional in your responses."
)

ANALYSIS_MAX_TOKENS = 2000
CHAT_MAX_TOKENS = 1000


def describe_threats(threats: Iterable[Threat]) -> List[str]:
    return [f"{t.type} ({t.level}): {t.description}" for t in threats]


def build_threat_prompt(
    country_name: str,
    threat_descriptions: Sequence[str],
    capital: Optional[str],
    continent: Optional[str],
) -> str:
    threat_lines = "\n- ".join(threat_descriptions)
    return (
        f"Analyze the cybersecurity threat landscape for {country_name}:\n"
        "\n"
        "Current Threats:\n"
        f"- {threat_lines}\n"
        "\n"
        "Country Context:\n"
        f"- Capital: {capital or 'Unknown'}\n"
        f"- Region: {continent or 'Unknown'}\n"
        "\n"
        "Provide:\n"
        "1. Risk assessment summary\n"
        "2. Top 3 immediate recommendations\n"
        "3. Long-term security strategy"
    )


class ThreatAnalyst:
    """Builds analysis and chat prompts and streams them through the relay."""

    def __init__(self, client: RelayClient):
        self.client = client

    def analysis_request(
        self,
        country_name: str,
        threats: Iterable[Threat],
        capital: Optional[str] = None,
        continent: Optional[str] = None,
    ) -> CompletionRequest:
        prompt = build_threat_prompt(country_name, describe_threats(threats), capital, continent)
        return self.client.build_request(
            [
                ChatMessage(role="system", content=ANALYST_SYSTEM_PROMPT),
                ChatMessage(role="user", content=prompt),
            ],
            max_tokens=ANALYSIS_MAX_TOKENS,
        )

    def analyze_threats(
        self,
        country_name: str,
        threats: Iterable[Threat],
        capital: Optional[str] = None,
        continent: Optional[str] = None,
        *,
        on_update: Optional[UpdateCallback] = None,
        on_skipped_frame: Optional[SkippedFrameCallback] = None,
    ) -> StreamSession:
        request = self.analysis_request(country_name, threats, capital, continent)
        return self.client.start(
            request,
            label="Analysis",
            on_update=on_update,
            on_skipped_frame=on_skipped_frame,
        )

    def chat(
        self,
        messages: Iterable[ChatMessage | Mapping[str, str]],
        *,
        on_update: Optional[UpdateCallback] = None,
        on_skipped_frame: Optional[SkippedFrameCallback] = None,
    ) -> StreamSession:
        request = self.client.build_request(messages, max_tokens=CHAT_MAX_TOKENS)
        return self.client.start(
            request,
            label="Chat",
            on_update=on_update,
            on_skipped_frame=on_skipped_frame,
        )

    async def ask(self, messages: Iterable[ChatMessage | Mapping[str, str]]) -> Optional[str]:
        """Run a chat turn to completion; None when it was stopped or failed."""
        result: SessionResult = await self.chat(messages).wait()
        return result.text if result.error is None else None

    def stop(self) -> bool:
        return self.client.stop()
