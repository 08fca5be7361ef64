"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNTER = Counter(
	"pbtrack_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"pbtrack_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

REDIS_UP = Gauge(
	"pbtrack_redis_up",
	"Redis reachability as seen by the readiness probe",
)

REDIS_LATENCY = Gauge(
	"pbtrack_redis_ping_seconds",
	"Latency of the last Redis readiness ping",
)

RECORDS_NEW = Counter(
	"pbtrack_records_new_total",
	"New personal records persisted",
	["scope"],
)

RECORD_WRITE_FAILURES = Counter(
	"pbtrack_record_write_failures_total",
	"Record writes that did not land",
	["scope"],
)

RECORD_WRITE_CONFLICTS = Counter(
	"pbtrack_record_write_conflicts_total",
	"Optimistic transaction retries caused by concurrent writers",
	["scope"],
)

BANANAS_AWARDED = Counter(
	"pbtrack_bananas_awarded_total",
	"Banana counter increments",
)

RANK_MEMORY_UPDATES = Counter(
	"pbtrack_rank_memory_updates_total",
	"Leaderboard rank memory writes",
)

SUBMISSIONS = Counter(
	"pbtrack_submissions_total",
	"Result submissions processed",
	["eligible"],
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def mark_redis(ok: bool, *, latency_seconds: float | None = None) -> None:
	REDIS_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		REDIS_LATENCY.set(latency_seconds)


def inc_record_new(scope: str) -> None:
	RECORDS_NEW.labels(scope=scope).inc()


def inc_record_write_failure(scope: str) -> None:
	RECORD_WRITE_FAILURES.labels(scope=scope).inc()


def inc_record_write_conflict(scope: str) -> None:
	RECORD_WRITE_CONFLICTS.labels(scope=scope).inc()


def inc_banana_awarded() -> None:
	BANANAS_AWARDED.inc()


def inc_rank_memory_update() -> None:
	RANK_MEMORY_UPDATES.inc()


def inc_submission(eligible: bool) -> None:
	SUBMISSIONS.labels(eligible="yes" if eligible else "no").inc()
