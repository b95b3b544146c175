from __future__ import annotations

from prometheus_client import Counter, Histogram, start_http_server

server_requests_total = Counter(
    "postcraft_server_requests_total",
    "Total HTTP requests handled by server",
    labelnames=["path", "status"],
)

server_request_latency_seconds = Histogram(
    "postcraft_server_request_latency_seconds",
    "HTTP request latency (seconds)",
    buckets=[0.05, 0.1, 0.3, 0.5, 1, 2, 5, 10, 30, 60, 120, 300],
    labelnames=["path"],
)

server_errors_total = Counter(
    "postcraft_server_errors_total",
    "Total errors returned by server",
    labelnames=["type"],
)

completion_attempts_total = Counter(
    "postcraft_completion_attempts_total",
    "Completion round-trips by dialect and finish reason",
    labelnames=["dialect", "finish_reason"],
)

completion_escalations_total = Counter(
    "postcraft_completion_escalations_total",
    "Second attempts issued with an enlarged output budget",
    labelnames=["dialect"],
)

extraction_strategy_total = Counter(
    "postcraft_extraction_strategy_total",
    "Which extraction step produced the post fields",
    labelnames=["strategy"],
)

pipeline_requests_total = Counter(
    "postcraft_pipeline_requests_total",
    "Pipeline invocations by outcome",
    labelnames=["status"],
)

pipeline_latency_seconds = Histogram(
    "postcraft_pipeline_latency_seconds",
    "End-to-end pipeline latency",
    buckets=[0.5, 1, 2, 5, 10, 20, 30, 60, 120],
)


def maybe_start_metrics(*, enable: bool, bind: str, port: int) -> None:
    if not enable:
        return
    start_http_server(port, addr=bind)
