# /quickscan/utils/metrics.py

from prometheus_client import Counter

# This file defines all Prometheus metrics used by the flow engine and its
# collaborators. Centralizing them here makes them easy to find and manage.

# Flow Engine Metrics
flow_advance_counter = Counter('quickscan_flow_advance_total', 'Advance attempts by outcome', ['outcome'])
condition_failures_counter = Counter(
    'quickscan_condition_evaluation_failures_total', 'Condition expressions that failed to evaluate'
)

# Loader Metrics
definitions_loaded_counter = Counter('quickscan_flow_definitions_loaded_total', 'Flow definition loads', ['status'])

# Packaging Metrics
packages_built_counter = Counter('quickscan_packages_built_total', 'Quickscan packages built')
