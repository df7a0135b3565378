"""Prometheus metrics for kubedeploy."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

apply_attempts_total = Counter(
    "kubedeploy_apply_attempts_total",
    "Apply calls issued to the cluster API",
    ["kind", "result"],
)

node_results_total = Counter(
    "kubedeploy_node_results_total",
    "Nodes reaching a terminal status",
    ["kind", "status"],
)

readiness_polls_total = Counter(
    "kubedeploy_readiness_polls_total",
    "Status reads issued while waiting for workload convergence",
    ["kind"],
)

deployments_total = Counter(
    "kubedeploy_deployments_total",
    "Completed orchestration runs",
    ["status"],
)

deployment_duration_seconds = Histogram(
    "kubedeploy_deployment_duration_seconds",
    "Wall-clock duration of an orchestration run",
    buckets=(1, 5, 15, 30, 60, 120, 300, 600, 1200),
)
