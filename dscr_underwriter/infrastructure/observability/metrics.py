"""Prometheus metrics for rate computations, approval outcomes and notice delivery"""

from decimal import Decimal

from prometheus_client import Counter, Histogram

# Underwriting metrics
rate_computation_counter = Counter(
    "dscr_rate_computation_total",
    "Total rate computations",
    ["outcome"],  # applied | pending_approval
)

dscr_target_counter = Counter(
    "dscr_target_evaluation_total",
    "Rate computations by whether the target DSCR was met",
    ["meets_target"],  # true | false
)

computed_rate_histogram = Histogram(
    "dscr_computed_rate_percent",
    "Annual interest rate returned by the solver",
    buckets=[1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0, 10.0],
)

# Approval workflow metrics
rate_change_resolution_counter = Counter(
    "dscr_rate_change_resolution_total",
    "Approve/reject attempts on pending rate changes",
    ["resolution", "result"],  # approved | rejected, success | refused
)

# Notice metrics
notice_latency_histogram = Histogram(
    "rate_notice_latency_seconds",
    "Rate notice webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

notice_failure_counter = Counter(
    "rate_notice_failures_total",
    "Failed rate notice deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_rate_computation(interest_rate: Decimal, meets_target: bool, rate_pending: bool) -> None:
    """Record solver output and the apply/queue decision"""
    outcome = "pending_approval" if rate_pending else "applied"
    rate_computation_counter.labels(outcome=outcome).inc()
    dscr_target_counter.labels(meets_target=str(meets_target).lower()).inc()
    computed_rate_histogram.observe(float(interest_rate))


def record_resolution(resolution: str, success: bool) -> None:
    rate_change_resolution_counter.labels(
        resolution=resolution,
        result="success" if success else "refused",
    ).inc()
