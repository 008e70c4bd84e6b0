from __future__ import annotations

from typing import Optional

from flask import Blueprint, Response
from prometheus_client import Counter, Histogram, generate_latest

metrics_blueprint = Blueprint("metrics_bp", __name__)

CONTENT_TYPE_LATEST = "text/plain; version=0.0.4; charset=utf-8"

SYNC_RUNS = Counter(
    "tempocatalog_sync_runs_total",
    "Sync runs by final status.",
    ["status"],
)
TRACKS_SAVED = Counter(
    "tempocatalog_tracks_saved_total",
    "Track rows written through the upsert gateway.",
)
ARTIST_FAILURES = Counter(
    "tempocatalog_artist_failures_total",
    "Artists skipped during a sync because of an error.",
)
REMOTE_RETRIES = Counter(
    "tempocatalog_remote_retries_total",
    "Spotify API request retries by reason.",
    ["reason"],
)
SYNC_DURATION = Histogram(
    "tempocatalog_sync_duration_seconds",
    "Wall-clock duration of sync runs.",
    buckets=(1, 5, 10, 30, 60, 120, 180, 300, float("inf")),
)


def record_sync_run(status: str, duration_seconds: Optional[float] = None) -> None:
    SYNC_RUNS.labels(status=status).inc()
    if duration_seconds is not None:
        SYNC_DURATION.observe(duration_seconds)


def record_tracks_saved(count: int) -> None:
    if count > 0:
        TRACKS_SAVED.inc(count)


def record_artist_failure() -> None:
    ARTIST_FAILURES.inc()


def record_remote_retry(reason: str) -> None:
    REMOTE_RETRIES.labels(reason=reason).inc()


@metrics_blueprint.route("/metrics")
def metrics_endpoint() -> Response:
    return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)
