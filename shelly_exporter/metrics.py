from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Optional, Set

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest

from .errors import InvalidInputError
from .models import Metrics

logger = logging.getLogger(__name__)

TARGET_LABEL = "target"


@dataclass
class TargetMetrics:
    voltage: float = 0.0
    power: float = 0.0
    current: float = 0.0
    temperature_c: float = 0.0
    temperature_f: float = 0.0
    success_queries: int = 0
    error_queries: int = 0
    last_updated: float = 0.0


class MetricsRegistry:
    """Per-target gauges and counters on a prometheus_client registry.

    Acts as the poller's sink: on_success() and on_error() may be called
    concurrently for different targets. Each instance owns its own
    CollectorRegistry, so several registries can live in one process.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self._lock = Lock()
        self._targets: Set[str] = set()

        labels = [TARGET_LABEL]
        self._voltage = Gauge("shelly_voltage", "Last observed voltage of the target", labels, registry=self.registry)
        self._power = Gauge("shelly_apower", "Last observed power of the target", labels, registry=self.registry)
        self._current = Gauge("shelly_current", "Last observed current of the target", labels, registry=self.registry)
        self._temp_c = Gauge("shelly_temp_c", "Last observed temperature of the target", labels, registry=self.registry)
        self._temp_f = Gauge("shelly_temp_f", "Last observed temperature of the target", labels, registry=self.registry)
        self._success = Counter(
            "shelly_success_counter",
            "Number of successful metrics queries for the target",
            labels,
            registry=self.registry,
        )
        self._error = Counter(
            "shelly_error_counter",
            "Number of failed metrics queries for the target",
            labels,
            registry=self.registry,
        )
        self._last_updated = Gauge(
            "shelly_last_updated",
            "Timestamp for the most recent update for this target",
            labels,
            registry=self.registry,
        )

    def add_target(self, name: str) -> None:
        """Create every series for ``name`` so they are exported at 0 before the first poll."""
        with self._lock:
            if name in self._targets:
                raise InvalidInputError(f'Duplicate target name "{name}"')
            self._targets.add(name)
            for family in (
                self._voltage,
                self._power,
                self._current,
                self._temp_c,
                self._temp_f,
                self._success,
                self._error,
                self._last_updated,
            ):
                family.labels(name)

    def on_success(self, name: str, metrics: Metrics) -> None:
        with self._lock:
            if name not in self._targets:
                logger.error('Unknown target "%s"', name)
                return
            self._voltage.labels(name).set(metrics.voltage)
            self._power.labels(name).set(metrics.power)
            self._current.labels(name).set(metrics.current)
            self._temp_c.labels(name).set(metrics.temperature_c)
            self._temp_f.labels(name).set(metrics.temperature_f)
            self._success.labels(name).inc()
            self._last_updated.labels(name).set_to_current_time()

    def on_error(self, name: str, error: Exception) -> None:
        with self._lock:
            if name not in self._targets:
                logger.error('Unknown target "%s"', name)
                return
            self._error.labels(name).inc()

    def get(self, name: str) -> TargetMetrics:
        """Return the current values for one target."""
        with self._lock:
            if name not in self._targets:
                raise KeyError(name)

        labels = {TARGET_LABEL: name}

        def sample(metric_name: str) -> float:
            value = self.registry.get_sample_value(metric_name, labels)
            return 0.0 if value is None else value

        return TargetMetrics(
            voltage=sample("shelly_voltage"),
            power=sample("shelly_apower"),
            current=sample("shelly_current"),
            temperature_c=sample("shelly_temp_c"),
            temperature_f=sample("shelly_temp_f"),
            success_queries=int(sample("shelly_success_counter_total")),
            error_queries=int(sample("shelly_error_counter_total")),
            last_updated=sample("shelly_last_updated"),
        )

    def render(self) -> str:
        """Render the registry in the Prometheus text exposition format."""
        return generate_latest(self.registry).decode("utf-8")
