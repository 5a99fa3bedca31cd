"""Prometheus metrics for the application"""
from prometheus_client import Counter, REGISTRY

# OAuth metrics
try:
    oauth_initiations_counter = Counter(
        'socialink_oauth_initiations_total',
        'Total number of OAuth authorization URLs issued',
        ['provider']
    )
except ValueError:
    oauth_initiations_counter = REGISTRY._names_to_collectors.get('socialink_oauth_initiations_total')

try:
    oauth_completions_counter = Counter(
        'socialink_oauth_completions_total',
        'Total number of OAuth callbacks processed',
        ['provider', 'status']
    )
except ValueError:
    oauth_completions_counter = REGISTRY._names_to_collectors.get('socialink_oauth_completions_total')

try:
    token_refreshes_counter = Counter(
        'socialink_token_refreshes_total',
        'Total number of provider token refreshes',
        ['provider', 'status']
    )
except ValueError:
    token_refreshes_counter = REGISTRY._names_to_collectors.get('socialink_token_refreshes_total')
