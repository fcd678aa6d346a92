"""Ollama-style remote generation: one non-streaming /api/generate call."""

import logging
from urllib.parse import urlsplit

import httpx

from config.config_loader import OllamaConfig
from council.providers.base import GeneratorError, TextGenerator

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:11434"
_ALLOWED_SCHEMES = ("http", "https")


def normalize_base_url(url: str) -> str:
    """Return url without trailing slashes, or the local default unless it is a well-formed http(s) URL."""
    candidate = (url or "").strip().rstrip("/")
    try:
        parts = urlsplit(candidate)
        # .port raises ValueError for a non-numeric or out-of-range port.
        parts.port
        httpx.URL(candidate)
        valid = (
            parts.scheme in _ALLOWED_SCHEMES
            and bool(parts.hostname)
            and not any(c.isspace() for c in parts.netloc)
        )
    except (ValueError, httpx.InvalidURL):
        valid = False
    if not valid:
        logger.warning("Invalid Ollama base URL %r, using %s", url, DEFAULT_BASE_URL)
        return DEFAULT_BASE_URL
    return candidate


class OllamaProvider(TextGenerator):
    """Remote generator speaking the Ollama generate API via httpx."""

    def __init__(self, config: OllamaConfig, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._config = config
        self._transport = transport

    def name(self) -> str:
        return "ollama"

    def _build_body(self, prompt: str, max_tokens: int | None) -> dict:
        options: dict[str, float | int] = {}
        if self._config.temperature is not None:
            options["temperature"] = self._config.temperature
        if self._config.top_p is not None:
            options["top_p"] = self._config.top_p
        num_predict = max_tokens if max_tokens is not None else self._config.max_tokens
        if num_predict is not None:
            options["num_predict"] = num_predict
        return {
            "model": self._config.model,
            "prompt": prompt,
            "stream": False,
            "options": options,
        }

    async def generate(self, prompt: str, *, max_tokens: int | None = None) -> str:
        url = f"{normalize_base_url(self._config.base_url)}/api/generate"
        body = self._build_body(prompt, max_tokens)
        logger.info("Ollama request -> %s (model=%s)", url, self._config.model)

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.timeout_sec),
                transport=self._transport,
            ) as client:
                response = await client.post(url, json=body)
        except httpx.TimeoutException as exc:
            raise GeneratorError(self.name(), f"Request timed out after {self._config.timeout_sec}s") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise GeneratorError(self.name(), f"Request failed: {exc}") from exc

        if not response.is_success:
            detail = response.text.strip()
            raise GeneratorError(
                self.name(),
                f"/api/generate failed: HTTP {response.status_code} {response.reason_phrase}"
                + (f" - {detail}" if detail else ""),
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise GeneratorError(self.name(), f"Invalid JSON response: {exc}") from exc

        if not isinstance(data, dict):
            raise GeneratorError(self.name(), "Unexpected response shape")
        if data.get("error"):
            raise GeneratorError(self.name(), f"Service error: {data['error']}")

        text = str(data.get("response") or "").strip()
        if not text:
            raise GeneratorError(self.name(), "Empty response")
        return text
