"""
Prometheus metrics for the service desk.

HTTP traffic is measured per endpoint by hooks installed from the app
factory. Folio allocation and public tracking have their own counters,
incremented from the services that own those operations.

/metrics is unauthenticated; keep it behind the internal network.
"""
import os
import time

from flask import Blueprint, Response, request, g
from prometheus_client import (
    Counter, Histogram, Gauge, CollectorRegistry, REGISTRY,
    CONTENT_TYPE_LATEST, generate_latest, multiprocess,
)

metrics_bp = Blueprint('metrics', __name__)

# Under gunicorn each worker writes to PROMETHEUS_MULTIPROC_DIR and the
# scrape aggregates them through a throwaway registry.
MULTIPROCESS_MODE = 'PROMETHEUS_MULTIPROC_DIR' in os.environ

if MULTIPROCESS_MODE:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
    _metric_registry = None
else:
    registry = REGISTRY
    _metric_registry = REGISTRY

UNMEASURED_ENDPOINTS = {'metrics.metrics', 'static'}

http_requests_total = Counter(
    'http_requests_total',
    'HTTP requests by endpoint and status',
    ['method', 'endpoint', 'http_status'],
    registry=_metric_registry
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request latency in seconds',
    ['method', 'endpoint'],
    registry=_metric_registry,
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
)

http_requests_in_flight = Gauge(
    'http_requests_in_flight',
    'Requests currently being served',
    registry=_metric_registry,
    multiprocess_mode='livesum'
)

folios_allocated_total = Counter(
    'folios_allocated_total',
    'Document numbers handed out by the sequence allocator',
    ['kind'],
    registry=_metric_registry
)

sequence_conflicts_total = Counter(
    'sequence_conflicts_total',
    'Sequence writes that lost a race and were retried',
    ['kind'],
    registry=_metric_registry
)

public_tokens_issued_total = Counter(
    'public_tokens_issued_total',
    'Public tracking tokens attached to service records',
    registry=_metric_registry
)

public_lookups_total = Counter(
    'public_lookups_total',
    'Public tracking lookups by outcome',
    ['result'],
    registry=_metric_registry
)


def setup_metrics_instrumentation(app):
    """Install the request hooks that feed the http_* metrics."""

    @app.before_request
    def start_request_timer():
        if request.endpoint in UNMEASURED_ENDPOINTS:
            return
        g._metrics_started_at = time.perf_counter()
        http_requests_in_flight.inc()

    @app.after_request
    def record_request(response):
        started_at = g.get('_metrics_started_at')
        if started_at is None:
            return response

        endpoint = request.endpoint or 'unknown'
        http_request_duration_seconds.labels(
            method=request.method, endpoint=endpoint
        ).observe(time.perf_counter() - started_at)
        http_requests_total.labels(
            method=request.method, endpoint=endpoint, http_status=response.status_code
        ).inc()
        return response

    @app.teardown_request
    def release_in_flight(exc):
        # runs even when the view raised, so the gauge cannot drift upward
        if g.pop('_metrics_started_at', None) is not None:
            http_requests_in_flight.dec()


@metrics_bp.route('/metrics')
def metrics():
    """Prometheus scrape endpoint."""
    return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)
