"""Prometheus metrics for CartPilot."""
from prometheus_client import Counter, Histogram, Info


# Worker metrics
worker_attempts_total = Counter(
    'cartpilot_worker_attempts_total',
    'Total number of worker execution attempts',
    ['worker']
)

workers_succeeded_total = Counter(
    'cartpilot_workers_succeeded_total',
    'Total number of workers that finished successfully',
    ['worker']
)

workers_failed_total = Counter(
    'cartpilot_workers_failed_total',
    'Total number of workers that finished in failure',
    ['worker']
)

worker_retries_total = Counter(
    'cartpilot_worker_retries_total',
    'Total number of worker retries after a transient failure',
    ['worker']
)

workers_blocked_total = Counter(
    'cartpilot_workers_blocked_total',
    'Total number of workers skipped because an earlier worker failed',
    ['worker']
)

worker_duration_seconds = Histogram(
    'cartpilot_worker_duration_seconds',
    'Worker execution duration in seconds, retries included',
    ['worker', 'status'],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0]
)

# Session metrics
sessions_started_total = Counter(
    'cartpilot_sessions_started_total',
    'Total number of coordinator sessions started'
)

sessions_finished_total = Counter(
    'cartpilot_sessions_finished_total',
    'Total number of coordinator sessions finished',
    ['status']
)

sessions_cleaned_up_total = Counter(
    'cartpilot_sessions_cleaned_up_total',
    'Total number of stored sessions deleted by retention cleanup'
)

# System info
system_info = Info(
    'cartpilot_system',
    'CartPilot system information'
)


def record_worker_attempt(worker: str) -> None:
    """Record a worker attempt."""
    worker_attempts_total.labels(worker=worker).inc()


def record_worker_succeeded(worker: str, duration: float) -> None:
    """Record worker success metric."""
    workers_succeeded_total.labels(worker=worker).inc()
    worker_duration_seconds.labels(worker=worker, status="success").observe(duration)


def record_worker_failed(worker: str, duration: float) -> None:
    """Record worker failure metric."""
    workers_failed_total.labels(worker=worker).inc()
    worker_duration_seconds.labels(worker=worker, status="failed").observe(duration)


def record_worker_retrying(worker: str) -> None:
    """Record worker retry metric."""
    worker_retries_total.labels(worker=worker).inc()


def record_worker_blocked(worker: str) -> None:
    """Record a worker skipped as blocked."""
    workers_blocked_total.labels(worker=worker).inc()


def record_session_started() -> None:
    """Record session start."""
    sessions_started_total.inc()


def record_session_finished(status: str) -> None:
    """Record the status a session run ended in."""
    sessions_finished_total.labels(status=status).inc()


def record_sessions_cleaned_up(count: int) -> None:
    """Record sessions deleted by retention cleanup."""
    if count > 0:
        sessions_cleaned_up_total.inc(count)


def init_system_info(version: str) -> None:
    """
    Initialize system information metric.

    Args:
        version: Application version
    """
    system_info.info({
        'version': version,
        'name': 'CartPilot'
    })
