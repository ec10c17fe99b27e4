"""Prometheus metrics for the short-link engine."""

from prometheus_client import Counter, Histogram

__all__ = [
    "LINK_CREATION_REQUESTS_TOTAL",
    "LINK_CREATION_DURATION",
    "RESOLVE_REQUESTS_TOTAL",
    "RESOLVE_DURATION",
    "DETAILS_REQUESTS_TOTAL",
    "CLICKS_RECORDED_TOTAL",
    "CLICK_TRACKING_FAILURES_TOTAL",
    "ALIAS_COLLISIONS_TOTAL",
    "QUOTA_REJECTIONS_TOTAL",
    "LINK_EVENTS_PUBLISHED_TOTAL",
    "KAFKA_EVENTS_PUBLISHED_TOTAL",
    "KAFKA_EVENTS_FAILED_TOTAL",
]

# Request metrics
LINK_CREATION_REQUESTS_TOTAL = Counter(
    "shortlinks_creation_requests_total",
    "Total short link creation requests",
    ["status"],
)
RESOLVE_REQUESTS_TOTAL = Counter(
    "shortlinks_resolve_requests_total",
    "Total alias resolutions",
    ["status", "cache_hit"],
)
DETAILS_REQUESTS_TOTAL = Counter(
    "shortlinks_details_requests_total",
    "Total details view requests",
    ["cache_hit"],
)

# Performance metrics
LINK_CREATION_DURATION = Histogram(
    "shortlinks_creation_duration_seconds",
    "Time taken to create short links",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)
RESOLVE_DURATION = Histogram(
    "shortlinks_resolve_duration_seconds",
    "Time taken to resolve and track an alias",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
)

# Click tracking
CLICKS_RECORDED_TOTAL = Counter(
    "shortlinks_clicks_recorded_total",
    "Clicks committed to the click log",
)
CLICK_TRACKING_FAILURES_TOTAL = Counter(
    "shortlinks_click_tracking_failures_total",
    "Clicks that could not be persisted",
)

# Allocation and quota
ALIAS_COLLISIONS_TOTAL = Counter(
    "shortlinks_alias_collisions_total",
    "Generated or custom aliases rejected because they were taken",
    ["source"],
)
QUOTA_REJECTIONS_TOTAL = Counter(
    "shortlinks_quota_rejections_total",
    "Creation requests rejected by plan limits",
    ["reason"],
)

# Events
LINK_EVENTS_PUBLISHED_TOTAL = Counter(
    "shortlinks_link_events_published_total",
    "Link events published on the in-process bus",
    ["type"],
)
KAFKA_EVENTS_PUBLISHED_TOTAL = Counter(
    "shortlinks_kafka_events_published_total",
    "Link events successfully forwarded to Kafka",
)
KAFKA_EVENTS_FAILED_TOTAL = Counter(
    "shortlinks_kafka_events_failed_total",
    "Link events that could not be forwarded to Kafka",
)
