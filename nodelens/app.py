"""Application bootstrap for NodeLens.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → metrics gateway → LLM analyzer
              → notification bus → coordinator → REST

Shutdown is graceful: components are stopped in reverse startup order.
Each component's stop error is caught and logged independently so that a
single failure does not prevent the rest from shutting down cleanly.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from nodelens.config import load_config
from nodelens.models.config import NodeLensConfig
from nodelens.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from nodelens.analyst.coordinator import AlertCoordinator
    from nodelens.llm.analyzer import LLMAnalyzer
    from nodelens.metrics.gateway import MetricsGateway
    from nodelens.notifications.base import NotificationBus

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class NodeLensApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    Calling ``stop()`` on an app that was never started (or already stopped)
    is safe.
    """

    def __init__(self, config: NodeLensConfig | None = None) -> None:
        self.config: NodeLensConfig | None = config

        self._gateway: MetricsGateway | None = None
        self._llm_analyzer: LLMAnalyzer | None = None
        self._bus: NotificationBus | None = None
        self._coordinator: AlertCoordinator | None = None
        self._rest_server: object | None = None

        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._log: FilteringBoundLogger | None = None

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        if self.config is None:
            self.config = load_config()

        setup_logging(self.config.log.level, json_output=self.config.log.json_output)
        self._log = get_logger("app")
        self._log.info("nodelens starting", version=_nodelens_version())

        await self._start_gateway()
        await self._start_llm()
        await self._start_notifications()
        await self._start_coordinator()
        await self._start_rest()

        self._running = True
        self._log.info("nodelens started", port=self.config.api.port)

    async def _start_gateway(self) -> None:
        assert self._log is not None
        assert self.config is not None
        try:
            from nodelens.metrics.gateway import MetricsGateway

            self._gateway = MetricsGateway(self.config.prometheus)
            self._log.info(
                "metrics gateway started",
                url=self.config.prometheus.url,
                timeout_s=self.config.prometheus.timeout_seconds,
            )
        except Exception as exc:
            raise _ComponentError("metrics_gateway", exc) from exc

    async def _start_llm(self) -> None:
        """Create the LLM analyzer.  An unhealthy endpoint is logged, not fatal."""
        assert self._log is not None
        assert self.config is not None
        try:
            from nodelens.llm.analyzer import LLMAnalyzer

            analyzer = LLMAnalyzer(self.config.llm)
        except Exception as exc:
            raise _ComponentError("llm", exc) from exc

        # Alerts must still be delivered while the LLM is down; each one
        # then carries the analysis failure notice.
        healthy = await analyzer.health_check()
        self._llm_analyzer = analyzer
        self._log.info("llm analyzer started", model=self.config.llm.model, healthy=healthy)

    async def _start_notifications(self) -> None:
        assert self._log is not None
        assert self.config is not None
        try:
            from nodelens.notifications import build_notification_bus

            self._bus = build_notification_bus(self.config.notifications)
            self._log.info("notification bus started", backend=self._bus.backend_name)
        except Exception as exc:
            raise _ComponentError("notifications", exc) from exc

    async def _start_coordinator(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self._gateway is not None
        assert self._llm_analyzer is not None
        assert self._bus is not None
        try:
            from nodelens.analyst.coordinator import AlertCoordinator
            from nodelens.metrics.history import HistoryAccumulator

            self._coordinator = AlertCoordinator(
                accumulator=HistoryAccumulator(self._gateway),
                analyzer=self._llm_analyzer,
                bus=self._bus,
                recipient_ids=self.config.notifications.recipient_ids,
                history_hours=self.config.pipeline.history_hours,
            )
            self._log.info("alert coordinator started", history_hours=self.config.pipeline.history_hours)
        except Exception as exc:
            raise _ComponentError("coordinator", exc) from exc

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server."""
        assert self._log is not None
        assert self.config is not None
        assert self._coordinator is not None
        try:
            import uvicorn

            from nodelens.api import create_app

            fastapi_app = create_app(coordinator=self._coordinator, config=self.config)
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("nodelens shutting down")
        self._running = False

        server = self._rest_server
        if server is not None and hasattr(server, "should_exit"):
            server.should_exit = True

        for task in reversed(self._background_tasks):
            if not task.done():
                task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()

        await self._close_component("notifications", self._bus)
        await self._close_component("llm", self._llm_analyzer)
        await self._close_component("metrics_gateway", self._gateway)
        self._rest_server = None
        self._coordinator = None

        log.info("nodelens stopped")

    async def _close_component(self, name: str, component: object | None) -> None:
        """Call aclose() on a component if it has one, catching all errors."""
        if component is None:
            return
        log = self._log or get_logger("app")
        close_fn = getattr(component, "aclose", None)
        if close_fn is None:
            return
        try:
            await asyncio.wait_for(close_fn(), timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component close timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component close raised an error", component=name, error=str(exc))


def _nodelens_version() -> str:
    from nodelens import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main(config: NodeLensConfig | None = None) -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = NodeLensApp(config)
    loop = asyncio.get_running_loop()

    shutdown_triggered = False

    def _request_shutdown() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            return
        shutdown_triggered = True
        asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        while app._running:
            await asyncio.sleep(1)
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical("fatal startup error", component=exc.component, error=str(exc.cause))
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app._running:
            await app.stop()
