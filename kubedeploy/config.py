"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from kubedeploy.errors import ConfigError
from kubedeploy.models.config import (
    AuditConfig,
    ClusterConfig,
    ConvergenceConfig,
    EngineConfig,
    KubeDeployConfig,
    LogConfig,
    RetryConfig,
)


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBEDEPLOY_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    raw = _env(key, str(default))
    try:
        val = int(raw)
    except ValueError as exc:
        raise ConfigError(f"KUBEDEPLOY_{key} must be an integer, got {raw!r}") from exc
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None, max_val: float | None = None) -> float:
    raw = _env(key, str(default))
    try:
        val = float(raw)
    except ValueError as exc:
        raise ConfigError(f"KUBEDEPLOY_{key} must be a number, got {raw!r}") from exc
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ConfigError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_intervals(convergence: ConvergenceConfig) -> ConvergenceConfig:
    if convergence.initial_interval > convergence.max_interval:
        raise ConfigError(
            f"Poll interval {convergence.initial_interval}s exceeds cap {convergence.max_interval}s"
        )
    return convergence


def load_config() -> KubeDeployConfig:
    """Load configuration from KUBEDEPLOY_* environment variables."""
    return KubeDeployConfig(
        retry=RetryConfig(
            max_attempts=_env_int("RETRY_MAX_ATTEMPTS", 5, min_val=1, max_val=10),
            base_delay=_env_float("RETRY_BASE_DELAY", 1.0, min_val=0.0),
            max_delay=_env_float("RETRY_MAX_DELAY", 30.0, min_val=0.0, max_val=300.0),
        ),
        convergence=_validate_intervals(
            ConvergenceConfig(
                timeout_seconds=_env_float("READINESS_TIMEOUT", 300.0, min_val=1.0),
                initial_interval=_env_float("POLL_INITIAL_INTERVAL", 2.0, min_val=0.0),
                max_interval=_env_float("POLL_MAX_INTERVAL", 16.0, min_val=0.0, max_val=120.0),
            )
        ),
        engine=EngineConfig(
            max_workers=_env_int("MAX_WORKERS", 8, min_val=1, max_val=64),
        ),
        cluster=ClusterConfig(
            field_manager=_env("FIELD_MANAGER", "kubedeploy"),
            force_conflicts=_env_bool("FORCE_CONFLICTS", False),
            kube_context=_env("KUBE_CONTEXT", ""),
            dry_run=_env_bool("DRY_RUN", False),
        ),
        audit=AuditConfig(
            file_path=_env("AUDIT_FILE", ""),
            webhook_secret_ref=_env("AUDIT_WEBHOOK_SECRET_REF", ""),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
