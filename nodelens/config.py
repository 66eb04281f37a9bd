"""Environment-variable configuration loader.

Every setting is read from a ``NODELENS_*`` variable.  Integer and float
settings are clamped into their documented range rather than rejected, so a
slightly-off deployment value still yields a working service.  Values that
cannot be interpreted at all (unknown log level, non-HTTP URL, unknown
notification backend) raise ValueError at startup.
"""

from __future__ import annotations

import os

from nodelens.models.config import (
    ApiConfig,
    LLMConfig,
    LogConfig,
    NodeLensConfig,
    NotificationConfig,
    PipelineConfig,
    PrometheusConfig,
)

_PREFIX = "NODELENS_"
_TRUTHY = frozenset({"true", "1", "yes", "on"})
_VALID_LOG_LEVELS = frozenset({"debug", "info", "warning", "error"})
_VALID_NOTIFY_BACKENDS = frozenset({"webhook", "slack"})


def _env(name: str, default: str) -> str:
    return os.environ.get(_PREFIX + name, default).strip()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(_PREFIX + name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


def _env_int(name: str, default: int, minimum: int, maximum: int) -> int:
    raw = os.environ.get(_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"Invalid integer for {_PREFIX}{name}: {raw!r}") from exc
    return max(minimum, min(maximum, value))


def _env_float(name: str, default: float, minimum: float, maximum: float) -> float:
    raw = os.environ.get(_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip())
    except ValueError as exc:
        raise ValueError(f"Invalid number for {_PREFIX}{name}: {raw!r}") from exc
    return max(minimum, min(maximum, value))


def _validate_url(name: str, value: str) -> str:
    if not value.startswith(("http://", "https://")):
        raise ValueError(f"Invalid URL for {_PREFIX}{name}: {value!r} (must start with http:// or https://)")
    return value.rstrip("/")


def _env_list(name: str) -> list[str]:
    raw = _env(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_config() -> NodeLensConfig:
    """Build a NodeLensConfig from the process environment."""
    log_level = _env("LOG_LEVEL", "info").lower()
    if log_level not in _VALID_LOG_LEVELS:
        raise ValueError(f"Invalid log level: {log_level!r} (expected one of {sorted(_VALID_LOG_LEVELS)})")

    backend = _env("NOTIFY_BACKEND", "webhook").lower()
    if backend not in _VALID_NOTIFY_BACKENDS:
        raise ValueError(
            f"Invalid notification backend: {backend!r} (expected one of {sorted(_VALID_NOTIFY_BACKENDS)})"
        )

    workload_label = _env("WORKLOAD_LABEL", "name")
    if not workload_label:
        raise ValueError(f"{_PREFIX}WORKLOAD_LABEL must not be empty")

    notify_url = _env("NOTIFY_URL", "")
    if notify_url:
        notify_url = _validate_url("NOTIFY_URL", notify_url)

    return NodeLensConfig(
        prometheus=PrometheusConfig(
            url=_validate_url("PROMETHEUS_URL", _env("PROMETHEUS_URL", "http://localhost:9090")),
            timeout_seconds=_env_int("PROMETHEUS_TIMEOUT", 5, 1, 30),
            workload_label=workload_label,
        ),
        llm=LLMConfig(
            endpoint=_validate_url("LLM_ENDPOINT", _env("LLM_ENDPOINT", "http://localhost:11434")),
            model=_env("LLM_MODEL", "qwen2.5:7b"),
            api_key=_env("LLM_API_KEY", ""),
            timeout_seconds=_env_int("LLM_TIMEOUT", 30, 5, 120),
            max_tokens=_env_int("LLM_MAX_TOKENS", 1024, 128, 8192),
            temperature=_env_float("LLM_TEMPERATURE", 0.2, 0.0, 1.0),
        ),
        notifications=NotificationConfig(
            backend=backend,
            url=notify_url,
            topic=_env("NOTIFY_TOPIC", "monitoring.notification"),
            recipient_ids=_env_list("NOTIFY_RECIPIENTS"),
            timeout_seconds=_env_int("NOTIFY_TIMEOUT", 10, 1, 60),
        ),
        pipeline=PipelineConfig(
            history_hours=_env_int("HISTORY_HOURS", 6, 1, 24),
        ),
        api=ApiConfig(
            port=_env_int("API_PORT", 8080, 1024, 65535),
        ),
        log=LogConfig(
            level=log_level,
            json_output=_env_bool("LOG_JSON", True),
        ),
    )
