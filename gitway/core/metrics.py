"""Prometheus metrics for the gitway server.

Metrics Categories:
- Requests: routed requests by route kind and response status
- Git processes: launches and currently running git subprocesses
"""

from prometheus_client import Counter, Gauge


# ==============================================================================
# Request Metrics
# ==============================================================================

REQUESTS_TOTAL = Counter(
    "gitway_requests_total",
    "Git HTTP requests handled",
    ["route", "status"],  # route: route kind or "unmatched"
)


# ==============================================================================
# Git Process Metrics
# ==============================================================================

GIT_PROCESS_LAUNCHES_TOTAL = Counter(
    "gitway_git_process_launches_total",
    "Git subprocess launch attempts",
    ["command", "status"],  # status: started, failed
)

GIT_PROCESSES_ACTIVE = Gauge(
    "gitway_git_processes_active",
    "Git subprocesses currently running",
    ["command"],
)


def record_request(route: str, status: int) -> None:
    """Count a handled request."""
    REQUESTS_TOTAL.labels(route=route, status=str(status)).inc()


def record_launch(command: str, started: bool) -> None:
    """Count a git subprocess launch attempt."""
    GIT_PROCESS_LAUNCHES_TOTAL.labels(
        command=command, status="started" if started else "failed"
    ).inc()
