"""Configuration data structures.

Populated from NODELENS_* environment variables by ``nodelens.config``.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class PrometheusConfig:
    """Metrics backend connection settings."""

    url: str = "http://localhost:9090"
    timeout_seconds: int = 5
    # Series label that carries the workload (container) name
    workload_label: str = "name"


@dataclass
class LLMConfig:
    """OpenAI-compatible analysis engine settings (Ollama by default)."""

    endpoint: str = "http://localhost:11434"
    model: str = "qwen2.5:7b"
    api_key: str = ""
    timeout_seconds: int = 30
    max_tokens: int = 1024
    temperature: float = 0.2


@dataclass
class NotificationConfig:
    """Notification bus settings.

    backend is ``webhook`` (generic JSON publish endpoint) or ``slack``
    (incoming webhook).
    """

    backend: str = "webhook"
    url: str = ""
    topic: str = "monitoring.notification"
    recipient_ids: list[str] = field(default_factory=list)
    timeout_seconds: int = 10


@dataclass
class PipelineConfig:
    history_hours: int = 6


@dataclass
class ApiConfig:
    port: int = 8080


@dataclass
class LogConfig:
    level: str = "info"
    json_output: bool = True


@dataclass
class NodeLensConfig:
    """Top-level configuration object."""

    prometheus: PrometheusConfig = field(default_factory=PrometheusConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    log: LogConfig = field(default_factory=LogConfig)
