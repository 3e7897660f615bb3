from __future__ import annotations

from typing import Optional

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest


http_requests_total = Counter(
    "relay_http_requests_total",
    "HTTP requests served by the relay.",
    ["method", "path", "status_code"],
)

http_request_latency_seconds = Histogram(
    "relay_http_request_latency_seconds",
    "HTTP request latency in seconds.",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
)

checks_total = Counter(
    "relay_checks_total",
    "Check-messages invocations by result.",
    ["result"],
)

messages_total = Counter(
    "relay_messages_total",
    "Messages classified by the forwarder.",
    ["outcome"],
)

flood_waits_total = Counter(
    "relay_flood_waits_total",
    "Telegram flood-wait rejections surfaced to the caller.",
)

swallowed_exceptions_total = Counter(
    "relay_swallowed_exceptions_total",
    "Exceptions that were swallowed (logged but not re-raised) for observability.",
    ["context", "exception_type"],
)


def observe_request(
    *,
    method: str,
    path: str,
    status_code: Optional[int] = None,
    latency_s: Optional[float] = None,
) -> None:
    code = int(status_code if status_code is not None else 200)
    http_requests_total.labels(method=method, path=path, status_code=str(code)).inc()
    http_request_latency_seconds.labels(method=method, path=path).observe(max(0.0, float(latency_s or 0.0)))


def metrics_payload() -> tuple[bytes, str]:
    data = generate_latest()
    return data, CONTENT_TYPE_LATEST
