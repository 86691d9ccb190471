"""Client for the scoring oracle (Groq, OpenAI-compatible chat completions)."""
from __future__ import annotations

from typing import Any

from placement_engine.config import Settings
from placement_engine.deadline import call_with_deadline
from placement_engine.exceptions import UpstreamUnavailable
from placement_engine.log import get_logger
from placement_engine.response_parser import extract_first_object

log = get_logger(__name__)

SYSTEM_PROMPT = "Return only valid JSON."


class Oracle:
    """One attempt per call, hard timeout, no retries.

    ``complete_json`` either returns a parsed JSON object or raises
    ``UpstreamUnavailable``; callers own the fallback.
    """

    def __init__(self, settings: Settings, client: Any = None) -> None:
        self.model = settings.oracle_model
        self.temperature = settings.scoring.temperature
        self.timeout = settings.timeout
        self.configured = bool(settings.oracle_api_key) or client is not None
        self._client = client
        self._api_key = settings.oracle_api_key
        self._base_url = settings.oracle_base_url

    def _get_client(self) -> Any:
        if self._client is None:
            from openai import OpenAI

            self._client = OpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    def complete_json(self, prompt: str, max_tokens: int) -> dict[str, Any]:
        if not self.configured:
            raise UpstreamUnavailable("oracle not configured")
        try:
            client = self._get_client()
            r = call_with_deadline(
                lambda: client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                    temperature=self.temperature,
                    max_tokens=max_tokens,
                    response_format={"type": "json_object"},
                    timeout=self.timeout,
                ),
                self.timeout,
                "oracle call",
            )
            text = (r.choices[0].message.content or "").strip()
        except Exception as exc:
            raise UpstreamUnavailable(f"oracle call failed: {exc}") from exc

        data = extract_first_object(text)
        if data is None:
            raise UpstreamUnavailable("oracle returned no JSON object")
        return data
