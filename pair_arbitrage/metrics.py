"""
Prometheus Metrics Server for Pair Arbitrage

Exposes cycle, quote and execution metrics for monitoring and alerting.
"""

import logging
import threading
from typing import Any, Dict, Optional

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from .events import (
    CycleReportEvent,
    EventBus,
    GasAddedEvent,
    TradeEvent,
    TxHashEvent,
    WithdrawalEvent,
)

logger = logging.getLogger(__name__)

CYCLE_OUTCOMES = ("skipped", "executed", "error", "dropped")


class TradingMetrics:
    """
    Trading metrics collection and exposure

    Provides Prometheus-compatible metrics for:
    - Cycle outcomes and duration
    - Venue quotes and expected profit
    - Flash swap execution results
    - Contract events observed on chain
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize metrics with custom registry or default"""
        self.registry = registry or REGISTRY
        self._initialize_metrics()

        # Server components
        self._app = None
        self._runner = None
        self._site = None

        # Thread-safe access
        self._lock = threading.RLock()

    def _initialize_metrics(self):
        """Initialize all Prometheus metrics"""

        # === CYCLE METRICS ===
        self.cycles_total = Counter(
            "pair_arbitrage_cycles_total",
            "Block-driven evaluation cycles by outcome",
            ["outcome"],
            registry=self.registry,
        )

        self.cycle_duration_seconds = Histogram(
            "pair_arbitrage_cycle_duration_seconds",
            "Time from block trigger to idle",
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 120.0],
            registry=self.registry,
        )

        # === QUOTE METRICS ===
        self.quote_price = Gauge(
            "pair_arbitrage_quote_price",
            "Latest reserve0/reserve1 price per venue",
            ["venue"],
            registry=self.registry,
        )

        self.expected_profit = Gauge(
            "pair_arbitrage_expected_profit_native",
            "Expected profit of the latest decision in native coin units",
            registry=self.registry,
        )

        # === EXECUTION METRICS ===
        self.executions_total = Counter(
            "pair_arbitrage_executions_total",
            "Flash swap executions by status",
            ["status"],
            registry=self.registry,
        )

        self.chain_events_total = Counter(
            "pair_arbitrage_chain_events_total",
            "Domain events observed, by event name",
            ["event"],
            registry=self.registry,
        )

        self.last_block = Gauge(
            "pair_arbitrage_last_block",
            "Latest block number that triggered a cycle",
            registry=self.registry,
        )

    # === METRIC RECORDING METHODS ===

    def record_cycle(self, outcome: str, duration_seconds: float = 0.0):
        """Record a finished (or dropped) cycle"""
        if outcome not in CYCLE_OUTCOMES:
            raise ValueError(f"Unknown cycle outcome: {outcome}")
        with self._lock:
            self.cycles_total.labels(outcome=outcome).inc()
            if duration_seconds > 0:
                self.cycle_duration_seconds.observe(duration_seconds)

    def record_quote(self, venue: str, price: float):
        with self._lock:
            self.quote_price.labels(venue=venue).set(price)

    def record_expected_profit(self, profit_native: float):
        with self._lock:
            self.expected_profit.set(profit_native)

    def record_execution(self, status: str):
        """Record an execution result (confirmed, reverted, timeout, ...)"""
        with self._lock:
            self.executions_total.labels(status=status).inc()

    def record_chain_event(self, event_name: str):
        with self._lock:
            self.chain_events_total.labels(event=event_name).inc()

    def update_block(self, block_number: int):
        with self._lock:
            self.last_block.set(block_number)

    # === EVENT CONSUMER ===

    def attach(self, bus: EventBus):
        """Subscribe this collector to the domain events it counts"""
        for event_type in (TxHashEvent, TradeEvent, GasAddedEvent, WithdrawalEvent):
            bus.subscribe(event_type, self._on_chain_event)
        bus.subscribe(CycleReportEvent, self._on_cycle_report)

    def _on_chain_event(self, event):
        self.record_chain_event(event.name)

    def _on_cycle_report(self, event: CycleReportEvent):
        report = event.report
        if report.block_number is not None:
            self.update_block(report.block_number)
        for quote in report.quotes:
            self.record_quote(quote.venue.value, float(quote.price))
        if report.decision is not None:
            self.record_expected_profit(float(report.decision.profit_native))
        if report.result is not None:
            self.record_execution(report.execution_status)
        self.record_cycle(report.outcome, report.duration_seconds)

    # === SERVER MANAGEMENT ===

    async def start_server(
        self, port: int = 8000, host: str = "0.0.0.0", path: str = "/metrics"
    ):
        """Start Prometheus metrics HTTP server"""
        try:
            self._app = web.Application()
            self._app.router.add_get(path, self._metrics_handler)
            self._app.router.add_get("/health", self._health_handler)

            self._runner = web.AppRunner(self._app)
            await self._runner.setup()

            self._site = web.TCPSite(self._runner, host, port)
            await self._site.start()

            logger.info(f"Prometheus metrics server started on http://{host}:{port}{path}")
            return True

        except OSError as e:
            logger.error(f"Failed to start metrics server: {e}")
            return False

    async def stop_server(self):
        """Stop the metrics server"""
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        self._site = None
        self._runner = None
        logger.info("Metrics server stopped")

    async def _metrics_handler(self, request):
        """Handle metrics endpoint requests"""
        metrics_output = generate_latest(self.registry)
        # aiohttp sets the charset itself
        content_type = CONTENT_TYPE_LATEST.split(";")[0]
        return web.Response(text=metrics_output.decode("utf-8"), content_type=content_type)

    async def _health_handler(self, request):
        """Handle health check endpoint"""
        return web.json_response({"status": "healthy", "service": "pair_arbitrage_metrics"})

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Current cycle counts by outcome"""
        with self._lock:
            return {
                outcome: self.registry.get_sample_value(
                    "pair_arbitrage_cycles_total", {"outcome": outcome}
                )
                or 0.0
                for outcome in CYCLE_OUTCOMES
            }


# Global metrics instance (singleton pattern)
_global_metrics: Optional[TradingMetrics] = None


def get_metrics() -> TradingMetrics:
    """Get or create global metrics instance"""
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = TradingMetrics()
    return _global_metrics


def initialize_metrics(registry: Optional[CollectorRegistry] = None) -> TradingMetrics:
    """Initialize global metrics with custom registry"""
    global _global_metrics
    _global_metrics = TradingMetrics(registry)
    return _global_metrics
