from prometheus_client import Counter, Histogram, REGISTRY


# Re-use already registered collectors so reloads and repeated test imports work
def get_or_create_metric(name, documentation, metric_type, **kwargs):
    try:
        return metric_type(name, documentation, **kwargs)
    except ValueError:
        return REGISTRY._names_to_collectors[name]


REQUESTS_TOTAL = get_or_create_metric(
    "planner_requests_total",
    "Total requests",
    Counter,
    labelnames=["endpoint", "status"],
)

REQUEST_LATENCY_SECONDS = get_or_create_metric(
    "planner_request_latency_seconds",
    "Request latency",
    Histogram,
    labelnames=["endpoint"],
)

SUBTASKS_GENERATED_TOTAL = get_or_create_metric(
    "planner_subtasks_generated_total", "Subtasks produced by the AI breakdown", Counter
)

EVENTS_SCHEDULED_TOTAL = get_or_create_metric(
    "planner_events_scheduled_total", "Events emitted by the scheduler", Counter
)

CALENDAR_EVENTS_TOTAL = get_or_create_metric(
    "planner_calendar_events_total",
    "Calendar insert outcomes",
    Counter,
    labelnames=["outcome"],
)


def record_request(endpoint: str, status: str, started: float, now: float) -> None:
    REQUESTS_TOTAL.labels(endpoint=endpoint, status=status).inc()
    REQUEST_LATENCY_SECONDS.labels(endpoint=endpoint).observe(now - started)
