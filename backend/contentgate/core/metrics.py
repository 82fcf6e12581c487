"""Prometheus metrics for the application"""
from prometheus_client import Counter, REGISTRY


def _counter(name, documentation, labelnames=()):
    # Re-imports (test reloads, multiple app instances) must reuse the registered collector
    try:
        return Counter(name, documentation, labelnames)
    except ValueError:
        return REGISTRY._names_to_collectors.get(name)


# Mint endpoint outcomes
content_access_counter = _counter(
    'contentgate_access_requests_total',
    'Total number of content access (mint) requests',
    ['content_family', 'outcome']
)

# Redirect endpoint outcomes
redirects_counter = _counter(
    'contentgate_redirects_total',
    'Total number of signed link redirects',
    ['family', 'outcome']
)

# Rate limiting
rate_limit_denials_counter = _counter(
    'contentgate_rate_limit_denials_total',
    'Total number of content requests denied by the rate limiter'
)

rate_limit_sweeps_counter = _counter(
    'contentgate_rate_limit_sweeps_total',
    'Total number of rate limit sweep runs',
    ['status']
)

rate_limit_records_removed_counter = _counter(
    'contentgate_rate_limit_records_removed_total',
    'Total number of expired rate limit records removed by sweeps'
)
