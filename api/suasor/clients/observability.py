"""Circuit breaking and call metrics for external clients.

Circuits are keyed per configured client (``"<client_type>:<client_id>"``) so
one unreachable server does not block its siblings of the same vendor.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, DefaultDict

from suasor.utils.redaction import redact_secrets

logger = logging.getLogger("suasor.clients.monitor")


class CircuitOpenError(Exception):
    """Raised when a client circuit is open and calls are temporarily blocked."""

    def __init__(self, key: str, remaining: float) -> None:
        super().__init__(f"{key} circuit open for {remaining:.2f}s")
        self.key = key
        self.remaining = remaining


def monitor_key(client_type: Any, client_id: int) -> str:
    return f"{getattr(client_type, 'value', client_type)}:{client_id}"


@dataclass
class CircuitBreakerState:
    """Failure streak and cooldown window for one client."""
    threshold: int = 3
    base_backoff_seconds: float = 15.0
    max_backoff_seconds: float = 300.0
    failure_streak: int = 0
    open_until: float = 0.0
    current_backoff: float = field(init=False)
    opened_count: int = 0

    def __post_init__(self) -> None:
        self.current_backoff = self.base_backoff_seconds

    def can_call(self) -> bool:
        return time.monotonic() >= self.open_until

    def remaining_cooldown(self) -> float:
        if self.can_call():
            return 0.0
        return self.open_until - time.monotonic()

    def record_success(self) -> None:
        self.failure_streak = 0
        self.open_until = 0.0
        self.current_backoff = self.base_backoff_seconds

    def record_failure(self) -> None:
        """Open the circuit once the streak reaches the threshold, doubling the backoff."""
        self.failure_streak += 1
        if self.failure_streak < self.threshold:
            return
        self.open_until = time.monotonic() + self.current_backoff
        self.failure_streak = 0
        self.opened_count += 1
        self.current_backoff = min(self.current_backoff * 2, self.max_backoff_seconds)

    def snapshot(self) -> dict[str, Any]:
        return {
            "failure_streak": self.failure_streak,
            "remaining_cooldown": round(self.remaining_cooldown(), 2),
            "current_backoff": self.current_backoff,
            "opened_count": self.opened_count,
        }


@dataclass
class OperationMetrics:
    """Counters for one client operation (fetch, search, test)."""
    started: int = 0
    succeeded: int = 0
    failed: int = 0
    rejected: int = 0
    last_latency_ms: float | None = None
    last_error: str | None = None


class ClientMonitor:
    """Wrap client calls with metrics, structured logs and a circuit breaker."""

    def __init__(
        self,
        *,
        circuit_threshold: int = 3,
        base_backoff_seconds: float = 15.0,
        max_backoff_seconds: float = 300.0,
    ) -> None:
        self._circuit_threshold = circuit_threshold
        self._base_backoff_seconds = base_backoff_seconds
        self._max_backoff_seconds = max_backoff_seconds
        self._metrics: DefaultDict[str, DefaultDict[str, OperationMetrics]] = defaultdict(
            lambda: defaultdict(OperationMetrics)
        )
        self._circuits: DefaultDict[str, CircuitBreakerState] = defaultdict(self._new_circuit)
        self._lock = asyncio.Lock()

    def _new_circuit(self) -> CircuitBreakerState:
        return CircuitBreakerState(
            threshold=self._circuit_threshold,
            base_backoff_seconds=self._base_backoff_seconds,
            max_backoff_seconds=self._max_backoff_seconds,
        )

    def allow_call(self, key: str) -> bool:
        return self._circuits[key].can_call()

    async def track(
        self,
        key: str,
        operation: str,
        func: Callable[[], Awaitable[Any]],
        *,
        context: dict[str, Any] | None = None,
    ) -> Any:
        """Run ``func`` for client ``key``, raising CircuitOpenError while the circuit is open.

        Failures are re-raised after the circuit and metrics are updated.
        """
        context = context or {}
        async with self._lock:
            circuit = self._circuits[key]
            metrics = self._metrics[key][operation]
            if not circuit.can_call():
                remaining = circuit.remaining_cooldown()
                metrics.rejected += 1
                payload = {
                    "event": "client_circuit_open",
                    "client": key,
                    "operation": operation,
                    "context": context,
                    "remaining_cooldown": round(remaining, 2),
                }
                logger.warning(json.dumps(payload))
                raise CircuitOpenError(key, remaining)
            metrics.started += 1

        start = time.monotonic()
        try:
            result = await func()
        except Exception as exc:
            latency_ms = (time.monotonic() - start) * 1000
            error = redact_secrets(str(exc) or exc.__class__.__name__)
            async with self._lock:
                metrics = self._metrics[key][operation]
                metrics.failed += 1
                metrics.last_latency_ms = latency_ms
                metrics.last_error = error
                self._circuits[key].record_failure()
                payload = {
                    "event": "client_call_failed",
                    "client": key,
                    "operation": operation,
                    "error": error,
                    "latency_ms": round(latency_ms, 2),
                    "context": context,
                    "circuit": self._circuits[key].snapshot(),
                }
            logger.warning(json.dumps(payload))
            raise

        latency_ms = (time.monotonic() - start) * 1000
        async with self._lock:
            metrics = self._metrics[key][operation]
            metrics.succeeded += 1
            metrics.last_latency_ms = latency_ms
            metrics.last_error = None
            self._circuits[key].record_success()
            payload = {
                "event": "client_call_succeeded",
                "client": key,
                "operation": operation,
                "latency_ms": round(latency_ms, 2),
                "context": context,
            }
        logger.info(json.dumps(payload))
        return result

    async def snapshot(self) -> dict[str, Any]:
        """Return circuit state and per-operation counters for every client seen."""
        async with self._lock:
            return {
                key: {
                    "circuit": self._circuits[key].snapshot(),
                    "operations": {name: asdict(metrics) for name, metrics in operations.items()},
                }
                for key, operations in self._metrics.items()
            }

    async def reset(self, key: str | None = None) -> None:
        async with self._lock:
            if key is None:
                self._metrics.clear()
                self._circuits.clear()
                return
            self._metrics.pop(key, None)
            self._circuits.pop(key, None)


client_monitor = ClientMonitor()
