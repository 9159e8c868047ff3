"""
Prometheus metrics for monitoring cell covering performance and behavior.
"""
from prometheus_client import Counter, Histogram

# Request metrics
covering_requests_total = Counter(
    'covering_requests_total',
    'Total number of cell covering requests',
    ['engine', 'area', 'status']
)

# Latency metrics
covering_duration_seconds = Histogram(
    'covering_duration_seconds',
    'Cell covering latency in seconds',
    ['engine']
)

# Result metrics
covering_cells_returned = Histogram(
    'covering_cells_returned',
    'Number of cells returned per covering',
    ['engine'],
    buckets=(1, 5, 10, 25, 50, 100, 250, 500, 1000)
)

covering_truncated_total = Counter(
    'covering_truncated_total',
    'Coverings cut down to their cell cap',
    ['engine']
)

# Grid metrics
pentagon_direction_skips_total = Counter(
    'pentagon_direction_skips_total',
    'Neighbor lookups that hit the missing axis of a pentagon'
)
