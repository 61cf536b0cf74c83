"""
Call analysis client.

Turns the finalized message items of a transcript into a natural-language
report via OpenAI chat completions. `analyze()` never raises: it returns a
fixed fallback sentence when there is nothing to analyze or the request fails.
"""

import asyncio
import json
import time
import uuid
from typing import Callable, Dict, List, Optional, Sequence

import aiohttp
from jinja2 import Template

from ..config import AnalysisConfig
from ..core.classifier import LanguageClassifier, classify
from ..core.models import Item, ItemKind, ItemRole
from ..logging_config import get_logger
from .base import AnalysisClient, AnalysisError

logger = get_logger(__name__)

NO_CONTENT_MESSAGE = "No message content found in the transcript to analyze."
ANALYSIS_ERROR_MESSAGE = "Error analyzing call transcript. Please try again later."
NO_ANALYSIS_MESSAGE = "No analysis available"

NON_DEFAULT_LANGUAGE_NOTE = "[Note: This message may be in a non-English language]"

ANALYSIS_PROMPT_TEMPLATE = """{{ instructions }}
{% if bilingual %}
IMPORTANT: This transcript contains content in a non-English language. Please analyze it in both
languages where possible, quoting the original wording and giving an English rendering alongside it.
{% elif non_default %}
IMPORTANT: This transcript contains content in a non-English language. Please do your best to analyze it,
focusing on any English portions and the overall structure of the conversation.
{% endif %}
Transcript:
{{ transcript }}
"""

_ROLE_LABELS = {
    ItemRole.USER: "Caller",
    ItemRole.TOOL: "Tool",
    ItemRole.ASSISTANT: "Assistant",
    ItemRole.SYSTEM: "System",
}


def format_transcript(items: Sequence[Item], classifier: Callable = classify) -> str:
    """Render message items as `Role: text` blocks, flagging non-default language."""
    lines = []
    for item in items:
        if item.kind != ItemKind.MESSAGE:
            continue
        label = _ROLE_LABELS.get(item.role, "Assistant")
        text = item.text
        note = ""
        if text and classifier(text).is_non_default_language:
            note = f" {NON_DEFAULT_LANGUAGE_NOTE}"
        lines.append(f"{label}: {text}{note}")
    return "\n\n".join(lines)


class CallAnalyzer(AnalysisClient):
    """OpenAI chat-completions backed analysis of a finished call."""

    def __init__(
        self,
        config: AnalysisConfig,
        *,
        classifier: Optional[LanguageClassifier] = None,
        session_factory: Optional[Callable[[], aiohttp.ClientSession]] = None,
    ):
        self._config = config
        self._classify = classifier or classify
        self._session_factory = session_factory
        self._session: Optional[aiohttp.ClientSession] = None
        self._template = Template(ANALYSIS_PROMPT_TEMPLATE)

    async def analyze(self, items: Sequence[Item]) -> str:
        messages = [item for item in items if item.kind == ItemKind.MESSAGE]
        if not messages:
            return NO_CONTENT_MESSAGE
        try:
            return await self.generate_report(messages)
        except AnalysisError as e:
            logger.error("Call analysis failed", error=str(e), status=e.status)
            return ANALYSIS_ERROR_MESSAGE

    def build_prompt(self, items: Sequence[Item]) -> str:
        classifications = [self._classify(item.text) for item in items if item.kind == ItemKind.MESSAGE]
        return self._template.render(
            instructions=self._config.instructions,
            bilingual=any(c.is_target_locale for c in classifications),
            non_default=any(c.is_non_default_language for c in classifications),
            transcript=format_transcript(items, self._classify),
        )

    async def generate_report(self, items: Sequence[Item]) -> str:
        """
        Request the report for `items`.

        Raises:
            AnalysisError: missing API key, transport failure, non-2xx status,
                or an unparseable response body
        """
        if not self._config.api_key:
            raise AnalysisError("OpenAI analysis requires an API key")

        await self._ensure_session()
        assert self._session

        payload = {
            "model": self._config.model,
            "messages": self._build_messages(items),
        }
        url = self._config.chat_base_url.rstrip("/") + "/chat/completions"
        request_id = f"analysis-{uuid.uuid4().hex[:12]}"
        started_at = time.perf_counter()

        logger.debug("Call analysis request", request_id=request_id, model=self._config.model, items=len(items))
        try:
            async with self._session.post(
                url,
                json=payload,
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=self._config.request_timeout_sec),
            ) as resp:
                body = await resp.text()
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AnalysisError(f"Analysis connection error: {e}") from e

        if status >= 400:
            logger.error("Call analysis request failed", request_id=request_id, status=status, body_preview=body[:128])
            raise AnalysisError(f"Analysis request failed (status {status})", status=status)

        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise AnalysisError("Analysis response was not valid JSON", status=status) from e

        choices = (data.get("choices") or []) if isinstance(data, dict) else []
        message = (choices[0].get("message") or {}) if choices else {}
        analysis = message.get("content") or NO_ANALYSIS_MESSAGE
        logger.info(
            "Call analysis received",
            request_id=request_id,
            model=self._config.model,
            latency_ms=round((time.perf_counter() - started_at) * 1000.0, 2),
            analysis_length=len(analysis),
        )
        return analysis

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _build_messages(self, items: Sequence[Item]) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": self._config.system_prompt},
            {"role": "user", "content": self.build_prompt(items)},
        ]

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._config.api_key}",
            "Content-Type": "application/json",
        }
        if self._config.organization:
            headers["OpenAI-Organization"] = self._config.organization
        return headers

    async def _ensure_session(self) -> None:
        if self._session and not self._session.closed:
            return
        factory = self._session_factory or aiohttp.ClientSession
        self._session = factory()
