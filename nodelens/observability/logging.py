"""Structured logging for NodeLens.

All components log through structlog.  Output is JSON on stderr by default;
``json_output=False`` switches to the console renderer for local runs.
Per-alert fields (node name, alert name, trigger source) are carried in
contextvars so every log line emitted while a pipeline runs is tagged with
them without threading a logger through each call.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import cast

import structlog
from structlog.typing import FilteringBoundLogger, Processor


def setup_logging(level: str = "info", json_output: bool = True) -> None:
    """Configure structlog and render stdlib records (uvicorn, httpx) with the same renderer."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    renderer: Processor = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            ],
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(log_level)

    # httpx logs every request at INFO; keep it out of the pipeline logs.
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))


def get_logger(component: str) -> FilteringBoundLogger:
    """Get a logger bound with a component name."""
    return cast(FilteringBoundLogger, structlog.get_logger(component=component))


@contextmanager
def pipeline_context(**fields: str) -> Iterator[None]:
    """Bind *fields* to every log line emitted inside the block."""
    with structlog.contextvars.bound_contextvars(**fields):
        yield
