"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Histogram


REQUEST_COUNTER = Counter(
	"moddesk_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"moddesk_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

MOD_ITEMS_SUBMITTED_TOTAL = Counter(
	"mod_items_submitted_total",
	"Moderation items filed",
	["kind", "reason"],
)

MOD_ITEM_TRANSITIONS_TOTAL = Counter(
	"mod_item_transitions_total",
	"Moderation item state transitions",
	["transition"],
)

MOD_ESCALATIONS_TOTAL = Counter(
	"mod_escalations_total",
	"Moderation escalations processed",
	["to_role"],
)

MOD_CAS_CONFLICTS_TOTAL = Counter(
	"mod_cas_conflicts_total",
	"Conditional moderation writes that matched zero rows",
	["operation"],
)

MOD_POST_SYNC_FAILURES_TOTAL = Counter(
	"mod_post_sync_failures_total",
	"Post moderation side effects that failed after a resolution was recorded",
	["disposition"],
)

MOD_ITEM_LIST_LATENCY_MS = Histogram(
	"mod_item_list_latency_ms",
	"Moderation item list latency (milliseconds)",
	buckets=(5.0, 10.0, 25.0, 50.0, 100.0, 250.0, 500.0, 1000.0),
)


def observe_request(route: str, method: str, status: int, duration_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(duration_seconds)
