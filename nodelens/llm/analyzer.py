"""LLM analyzer: OpenAI-compatible chat-completions client.

Sends the assembled analysis context to the configured model (Ollama by
default) and returns its free-text diagnosis.  Every failure mode, whether a
timeout, an unreachable endpoint, a non-2xx status or a malformed body, is
raised as AnalysisEngineError; the coordinator turns it into a visible
failure notice.
"""

from __future__ import annotations

import time

import httpx
import structlog

from nodelens.errors import AnalysisEngineError
from nodelens.models.config import LLMConfig
from nodelens.observability.metrics import llm_available, llm_requests_total

_logger = structlog.get_logger(component="llm_analyzer")

SYSTEM_PROMPT = (
    "You are a site reliability engineer diagnosing infrastructure alerts. "
    "You receive node-level resource metrics, an hourly trend and, when available, "
    "per-workload usage. Base every statement on the numbers provided and say so "
    "when the data is insufficient."
)


class LLMAnalyzer:
    """Wraps an OpenAI-compatible /v1/chat/completions endpoint.

    Uses a persistent httpx.AsyncClient connection pool shared across alerts.
    The caller is responsible for calling aclose() during shutdown.
    """

    def __init__(self, config: LLMConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        headers = {"Authorization": f"Bearer {config.api_key}"} if config.api_key else None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(float(config.timeout_seconds)),
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
            headers=headers,
        )
        self._available: bool = False

    @property
    def available(self) -> bool:
        """Whether the last health check found the endpoint reachable."""
        return self._available

    async def health_check(self) -> bool:
        """GET /v1/models to verify the endpoint is reachable and the model is served.

        Updates the internal _available flag and the prometheus gauge.
        Returns True on success, False on any failure.
        """
        try:
            response = await self._client.get(f"{self._config.endpoint}/v1/models", timeout=5.0)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            self._available = False
            llm_available.set(0.0)
            _logger.warning("llm_health_check_failed", error=str(exc))
            return False

        models = body.get("data", []) if isinstance(body, dict) else []
        model_ids = [m.get("id", "") for m in models if isinstance(m, dict)]
        configured = self._config.model
        loaded = any(mid == configured or mid.startswith(configured.split(":")[0]) for mid in model_ids)
        self._available = loaded
        llm_available.set(1.0 if loaded else 0.0)
        if not loaded:
            _logger.warning("llm_model_not_served", model=configured, available_models=model_ids)
        return loaded

    async def analyze(self, prompt: str) -> str:
        """Return the model's diagnosis for *prompt*.

        Makes exactly one request.  Raises AnalysisEngineError on any failure.
        """
        start_ms = time.monotonic_ns() // 1_000_000
        try:
            content = await self._call(prompt)
        except AnalysisEngineError:
            llm_requests_total.labels(success="false").inc()
            raise

        latency_ms = (time.monotonic_ns() // 1_000_000) - start_ms
        llm_requests_total.labels(success="true").inc()
        _logger.info("llm_analysis_complete", latency_ms=latency_ms, chars=len(content))
        return content

    async def _call(self, prompt: str) -> str:
        payload = {
            "model": self._config.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self._config.temperature,
            "max_tokens": self._config.max_tokens,
            "stream": False,
        }

        try:
            response = await self._client.post(f"{self._config.endpoint}/v1/chat/completions", json=payload)
        except httpx.TimeoutException as exc:
            _logger.warning("llm_timeout", timeout_s=self._config.timeout_seconds)
            raise AnalysisEngineError(f"LLM timeout after {self._config.timeout_seconds}s") from exc
        except httpx.HTTPError as exc:
            self._available = False
            llm_available.set(0.0)
            raise AnalysisEngineError(f"LLM unavailable: {exc}") from exc

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise AnalysisEngineError(f"LLM returned HTTP {exc.response.status_code}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise AnalysisEngineError(f"Response body not JSON: {exc}") from exc

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise AnalysisEngineError(f"Unexpected response structure: {exc}") from exc

        if not isinstance(content, str) or not content.strip():
            raise AnalysisEngineError("Response content is empty")

        return content.strip()

    async def aclose(self) -> None:
        """Close the underlying HTTP client and release connections."""
        await self._client.aclose()
