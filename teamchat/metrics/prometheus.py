from __future__ import annotations

from dataclasses import dataclass

from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Counter, Gauge, Histogram, generate_latest


@dataclass(frozen=True)
class AITurnMetricLabels:
    provider: str
    api: str
    model: str


_TURN_LABELS = ("provider", "api", "model")

_TURNS = Counter(
    "teamchat_ai_turns_total",
    "Total AI turns executed.",
    labelnames=_TURN_LABELS,
)
_TURN_FAILURES = Counter(
    "teamchat_ai_turn_failures_total",
    "Total AI turns that ended with the apology fallback.",
    labelnames=_TURN_LABELS,
)
_TURN_LATENCY = Histogram(
    "teamchat_ai_turn_latency_seconds",
    "End-to-end AI turn latency in seconds.",
    labelnames=_TURN_LABELS,
)
_TURN_TTFD = Histogram(
    "teamchat_ai_turn_first_delta_seconds",
    "Time from turn start to the first streamed delta in seconds.",
    labelnames=_TURN_LABELS,
)
_OUT_CHUNKS = Counter(
    "teamchat_ai_turn_output_chunks_total",
    "Total deltas streamed by AI turns.",
    labelnames=_TURN_LABELS,
)
_OUT_CHARS = Counter(
    "teamchat_ai_turn_output_chars_total",
    "Total characters streamed by AI turns.",
    labelnames=_TURN_LABELS,
)

_LIVE_CONNECTIONS = Gauge(
    "teamchat_ws_live_connections",
    "Currently registered real-time connections.",
)
_DROPPED_DELIVERIES = Counter(
    "teamchat_ws_dropped_frames_total",
    "Frames dropped because the connection failed while sending.",
)


def record_ai_turn(
    *,
    labels: AITurnMetricLabels,
    latency_ms: int,
    first_delta_ms: int | None,
    output_chunks: int,
    output_chars: int,
    failed: bool,
) -> None:
    l = (labels.provider, labels.api, labels.model)

    _TURNS.labels(*l).inc()
    if failed:
        _TURN_FAILURES.labels(*l).inc()

    if latency_ms >= 0:
        _TURN_LATENCY.labels(*l).observe(float(latency_ms) / 1000.0)
    if first_delta_ms is not None and first_delta_ms >= 0:
        _TURN_TTFD.labels(*l).observe(float(first_delta_ms) / 1000.0)

    if output_chunks > 0:
        _OUT_CHUNKS.labels(*l).inc(output_chunks)
    if output_chars > 0:
        _OUT_CHARS.labels(*l).inc(output_chars)


def set_live_connections(count: int) -> None:
    _LIVE_CONNECTIONS.set(max(0, count))


def record_dropped_delivery(frames: int = 1) -> None:
    if frames > 0:
        _DROPPED_DELIVERIES.inc(frames)


def metrics_payload() -> tuple[bytes, str]:
    payload = generate_latest(REGISTRY)
    content_type = str(CONTENT_TYPE_LATEST)
    return payload, content_type
