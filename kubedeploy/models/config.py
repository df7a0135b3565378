"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class RetryConfig:
    """Backoff for transient cluster API errors during apply."""

    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 30.0


@dataclass
class ConvergenceConfig:
    """Readiness polling for workload kinds."""

    timeout_seconds: float = 300.0
    initial_interval: float = 2.0
    max_interval: float = 16.0


@dataclass
class EngineConfig:
    """Apply engine worker pool."""

    max_workers: int = 8


@dataclass
class ClusterConfig:
    """Cluster client configuration."""

    field_manager: str = "kubedeploy"
    force_conflicts: bool = False
    kube_context: str = ""
    dry_run: bool = False


@dataclass
class AuditConfig:
    """Where finished deployment reports are recorded."""

    file_path: str = ""
    webhook_secret_ref: str = ""


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class KubeDeployConfig:
    """Top-level kubedeploy configuration."""

    retry: RetryConfig = field(default_factory=RetryConfig)
    convergence: ConvergenceConfig = field(default_factory=ConvergenceConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    log: LogConfig = field(default_factory=LogConfig)
