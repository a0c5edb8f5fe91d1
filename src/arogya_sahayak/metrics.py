from __future__ import annotations

from prometheus_client import Counter, Histogram, start_http_server

server_requests_total = Counter(
    "arogya_server_requests_total",
    "Total HTTP requests handled by server",
    labelnames=["path", "status"],
)

server_request_latency_seconds = Histogram(
    "arogya_server_request_latency_seconds",
    "HTTP request latency (seconds)",
    buckets=[0.05, 0.1, 0.3, 0.5, 1, 2, 5, 10, 30, 60, 120, 300],
    labelnames=["path"],
)

server_errors_total = Counter(
    "arogya_server_errors_total",
    "Total errors returned by server",
    labelnames=["type"],
)

provider_attempts_total = Counter(
    "arogya_provider_attempts_total",
    "Outbound completion attempts by provider, model and result",
    labelnames=["provider", "model", "status"],
)

completion_outcomes_total = Counter(
    "arogya_completion_outcomes_total",
    "Completion calls by final outcome",
    labelnames=["outcome"],
)

completion_latency_seconds = Histogram(
    "arogya_completion_latency_seconds",
    "End-to-end completion latency including retries and backoff",
    buckets=[0.1, 0.3, 0.5, 1, 2, 5, 10, 30, 60, 120, 300],
)

health_tip_cache_total = Counter(
    "arogya_health_tip_cache_total",
    "Health tip cache lookups",
    labelnames=["result"],
)


def maybe_start_metrics(*, enable: bool, bind: str, port: int) -> None:
    if not enable:
        return
    start_http_server(port, addr=bind)
