"""FastAPI application entrypoint and health reporting utilities.

Invariants:
- Health detail is only exposed to allowlisted hosts.
"""

import ipaddress
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from suasor.api.router import api_router
from suasor.clients.observability import client_monitor
from suasor.clients.registry import build_client_registry
from suasor.core.config import settings
from suasor.core.logging import configure_logging

configure_logging()

app = FastAPI(title=settings.app_name)
app.state.client_registry = build_client_registry()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router, prefix=settings.api_prefix)


def _summarize_clients(snapshot: dict[str, Any]) -> dict[str, Any]:
    """Condense client monitor state into health-friendly telemetry.

    Implementation notes:
    - Open circuits and repeated failures mark a client degraded.
    - Per-operation errors are kept for troubleshooting.
    """
    issues: list[dict[str, Any]] = []
    clients: dict[str, Any] = {}
    for client, payload in snapshot.items():
        circuit = payload.get("circuit", {})
        remaining = float(circuit.get("remaining_cooldown") or 0.0)
        state = "ok"
        circuit_open = remaining > 0
        if circuit_open:
            issues.append(
                {
                    "client": client,
                    "reason": "circuit_open",
                    "remaining_cooldown": round(remaining, 2),
                }
            )
            state = "degraded"
        operations = payload.get("operations", {})
        failure_total = 0
        repeated_failure: dict[str, Any] | None = None
        last_error: str | None = None
        for operation, metrics in operations.items():
            if metrics.get("last_error"):
                last_error = metrics["last_error"]
                issues.append(
                    {
                        "client": client,
                        "operation": operation,
                        "reason": "last_error",
                        "error": last_error,
                    }
                )
            failed_count = int(metrics.get("failed") or 0)
            failure_total += failed_count
            if failed_count >= 3:
                repeated_failure = {"operation": operation, "failed": failed_count}
        if repeated_failure:
            issues.append({"client": client, "reason": "repeated_failures", **repeated_failure})
        if repeated_failure or last_error:
            state = "degraded"
        clients[client] = {
            "state": state,
            "circuit_open": circuit_open,
            "circuit": circuit,
            "operations": operations,
            "failure_total": failure_total,
            "last_error": last_error,
            "repeated_failure": repeated_failure,
        }
    return {"clients": clients, "issues": issues}


def _entry_matches(entry: str, candidate: str) -> bool:
    """Return True if an allowlist entry matches a candidate host/IP."""
    try:
        network = ipaddress.ip_network(entry, strict=False)
        return ipaddress.ip_address(candidate) in network
    except ValueError:
        return entry.casefold() == candidate.casefold()


def _ip_or_host_allowlisted(request: Request) -> bool:
    """Check request client/host headers against the health allowlist."""
    if not settings.health_allowlist:
        return False
    candidates: list[str] = []
    if request.client and request.client.host:
        candidates.append(request.client.host)
    host_header = request.headers.get("host")
    if host_header:
        candidates.append(host_header.split(":")[0])
    for candidate in candidates:
        for entry in settings.health_allowlist:
            if entry and _entry_matches(entry, candidate):
                return True
    return False


@app.get("/health", tags=["internal"])
@app.get(f"{settings.api_prefix}/health", tags=["internal"])
async def health(request: Request) -> dict[str, Any]:
    """Return health status and, for allowlisted callers, client telemetry."""
    if not _ip_or_host_allowlisted(request):
        return {"status": "ok"}

    snapshot = await client_monitor.snapshot()
    telemetry = _summarize_clients(snapshot)
    status = "ok" if not telemetry["issues"] else "degraded"
    return {"status": status, "clients": telemetry}
