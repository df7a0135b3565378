"""Apply results and the aggregate deployment report."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from kubedeploy.errors import InvalidTransitionError


class ApplyStatus(StrEnum):
    """Lifecycle status of a single node."""

    PENDING = "pending"
    APPLIED = "applied"
    READY = "ready"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ErrorKind(StrEnum):
    """Why a node ended Failed."""

    CYCLE = "CycleError"
    UNRESOLVED_DEPENDENCY = "UnresolvedDependencyError"
    TRANSIENT = "TransientError"
    REJECTED = "RejectedError"
    BLOCKED_BY_DEPENDENCY = "BlockedByDependency"
    READINESS_TIMEOUT = "ReadinessTimeout"


class ApplyOutcome(StrEnum):
    """What a declarative apply did to the live object."""

    CREATED = "created"
    CONFIGURED = "configured"
    UNCHANGED = "unchanged"


class RunStatus(StrEnum):
    """Aggregate status of one orchestration run."""

    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"
    FAILURE = "failure"
    CANCELLED = "cancelled"


TERMINAL_STATUSES: frozenset[ApplyStatus] = frozenset(
    {ApplyStatus.READY, ApplyStatus.FAILED, ApplyStatus.CANCELLED}
)

_ALLOWED: dict[ApplyStatus, frozenset[ApplyStatus]] = {
    ApplyStatus.PENDING: frozenset({ApplyStatus.APPLIED, ApplyStatus.FAILED, ApplyStatus.CANCELLED}),
    ApplyStatus.APPLIED: frozenset({ApplyStatus.READY, ApplyStatus.FAILED, ApplyStatus.CANCELLED}),
    ApplyStatus.READY: frozenset(),
    ApplyStatus.FAILED: frozenset(),
    ApplyStatus.CANCELLED: frozenset(),
}


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _iso(ts: datetime | None) -> str | None:
    return ts.isoformat() if ts is not None else None


@dataclass
class ApplyResult:
    """Mutable per-node record owned by exactly one node task.

    Status only moves forward: pending -> applied -> ready, or to failed /
    cancelled from any non-terminal status.
    """

    id: str
    kind: str
    namespace: str
    name: str
    status: ApplyStatus = ApplyStatus.PENDING
    error: ErrorKind | None = None
    detail: str = ""
    outcome: ApplyOutcome | None = None
    attempts: int = 0
    applied_at: datetime | None = None
    ready_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def _transition(self, target: ApplyStatus) -> None:
        if target not in _ALLOWED[self.status]:
            raise InvalidTransitionError(self.id, self.status.value, target.value)
        self.status = target
        if target in TERMINAL_STATUSES:
            self.finished_at = _now()

    def mark_applied(self, outcome: ApplyOutcome) -> None:
        self._transition(ApplyStatus.APPLIED)
        self.outcome = outcome
        self.applied_at = _now()

    def mark_ready(self) -> None:
        self._transition(ApplyStatus.READY)
        self.ready_at = self.finished_at

    def mark_failed(self, error: ErrorKind, detail: str = "") -> None:
        self._transition(ApplyStatus.FAILED)
        self.error = error
        self.detail = detail

    def mark_cancelled(self, detail: str = "") -> None:
        self._transition(ApplyStatus.CANCELLED)
        self.detail = detail

    def to_record(self) -> dict[str, Any]:
        """Serialise to a plain dict for audit records."""
        return {
            "id": self.id,
            "kind": self.kind,
            "namespace": self.namespace,
            "name": self.name,
            "status": self.status.value,
            "error": self.error.value if self.error else None,
            "detail": self.detail,
            "outcome": self.outcome.value if self.outcome else None,
            "attempts": self.attempts,
            "appliedAt": _iso(self.applied_at),
            "readyAt": _iso(self.ready_at),
        }


@dataclass
class DeploymentReport:
    """Aggregate of every ApplyResult for one orchestration run."""

    run_id: str = field(default_factory=lambda: str(uuid4()))
    started_at: datetime = field(default_factory=_now)
    finished_at: datetime | None = None
    cancelled: bool = False
    results: dict[str, ApplyResult] = field(default_factory=dict)

    @property
    def status(self) -> RunStatus:
        if self.cancelled:
            return RunStatus.CANCELLED
        ready = sum(1 for r in self.results.values() if r.status == ApplyStatus.READY)
        if ready == len(self.results):
            return RunStatus.SUCCESS
        if ready == 0:
            return RunStatus.FAILURE
        return RunStatus.PARTIAL_FAILURE

    def get(self, node_id: str) -> ApplyResult:
        return self.results[node_id]

    def by_status(self, status: ApplyStatus) -> list[ApplyResult]:
        return [r for r in self.results.values() if r.status == status]

    def counts(self) -> dict[str, int]:
        counts = {s.value: 0 for s in ApplyStatus}
        for result in self.results.values():
            counts[result.status.value] += 1
        return counts

    def to_record(self) -> dict[str, Any]:
        """Serialise as ``{runId, timestamp, status, nodes}`` for auditing."""
        return {
            "runId": self.run_id,
            "timestamp": self.started_at.isoformat(),
            "finishedAt": _iso(self.finished_at),
            "status": self.status.value,
            "nodes": [r.to_record() for r in self.results.values()],
        }
