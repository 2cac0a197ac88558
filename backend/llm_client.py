"""Gemini streaming client (generativelanguage v1beta, server-sent events)."""

import json as _json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from backend.app.config import DEFAULT_GEMINI_BASE_URL, DEFAULT_GEMINI_TIMEOUT, ForecastSettings
from backend.app.core.cancellation import CancelToken, is_cancelled

logger = logging.getLogger(__name__)

# Request config keys that Gemini expects under generationConfig
_GENERATION_KEYS = ("responseMimeType", "responseSchema", "temperature", "seed", "maxOutputTokens")


class LLMClientError(Exception):
    """Raised when a provider request fails (transport, HTTP status, or malformed stream)."""


def to_gemini_body(request: Dict[str, Any]) -> Dict[str, Any]:
    """Translate an engine request ``{model, contents, config}`` into a REST body."""
    config = request.get("config") or {}
    body: Dict[str, Any] = {
        "contents": [{"role": "user", "parts": [{"text": request.get("contents", "")}]}],
    }
    system = config.get("systemInstruction")
    if system:
        body["systemInstruction"] = {"parts": [{"text": system}]}
    generation = {k: config[k] for k in _GENERATION_KEYS if k in config}
    if generation:
        body["generationConfig"] = generation
    return body


def extract_text(payload: Dict[str, Any]) -> str:
    """Concatenate candidates[0].content.parts[].text from one streamed response."""
    candidates = payload.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict))


class GeminiProvider:
    """Live provider: POSTs the request and yields text fragments as they stream in."""

    name = "gemini"
    sdk = "httpx"

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise LLMClientError("GEMINI_API_KEY is not set")
        self.api_key = api_key
        self.base_url = (base_url or DEFAULT_GEMINI_BASE_URL).strip().rstrip("/")
        self._timeout = timeout or DEFAULT_GEMINI_TIMEOUT
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: ForecastSettings) -> "GeminiProvider":
        return cls(settings.api_key, base_url=settings.base_url, timeout=settings.timeout)

    def _url(self, model: str) -> str:
        return f"{self.base_url}/v1beta/models/{model}:streamGenerateContent?alt=sse"

    def stream(self, request: Dict[str, Any], cancel: CancelToken | None = None) -> AsyncIterator[str]:
        return self._stream(request, cancel)

    async def _stream(self, request: Dict[str, Any], cancel: CancelToken | None) -> AsyncIterator[str]:
        model = request.get("model", "")
        headers = {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                async with client.stream("POST", self._url(model), json=to_gemini_body(request), headers=headers) as response:
                    if response.status_code >= 400:
                        detail = (await response.aread()).decode("utf-8", "replace")
                        logger.error("Gemini returned HTTP %d: %s", response.status_code, detail[:500])
                        raise LLMClientError(f"Gemini HTTP error {response.status_code}")
                    async for line in response.aiter_lines():
                        if is_cancelled(cancel):
                            logger.info("Gemini stream cancelled by caller")
                            break
                        if not line.startswith("data:"):
                            continue
                        data = line[len("data:"):].strip()
                        if not data:
                            continue
                        try:
                            payload = _json.loads(data)
                        except _json.JSONDecodeError as exc:
                            logger.error("Gemini stream sent non-JSON event: %s", data[:500])
                            raise LLMClientError("Gemini stream sent a non-JSON event") from exc
                        text = extract_text(payload)
                        if text:
                            yield text
        except httpx.TimeoutException as exc:
            logger.error("Gemini stream timed out (model=%s): %s", model, exc)
            raise LLMClientError(f"Gemini stream timed out after {self._timeout}s") from exc
        except httpx.ConnectError as exc:
            logger.error("Cannot connect to Gemini at %s: %s", self.base_url, exc)
            raise LLMClientError(f"Cannot connect to Gemini at {self.base_url}") from exc
        except httpx.HTTPError as exc:
            logger.error("Gemini stream network error: %s", exc)
            raise LLMClientError(f"Gemini stream network error: {exc}") from exc
