"""Convergence tracker: waits for applied objects to become ready.

Non-workload kinds are ready as soon as they are applied. Workloads are
polled until the cluster reports as many observed instances as desired,
with a doubling poll interval and a hard deadline.
"""

from __future__ import annotations

import asyncio
from contextlib import nullcontext

from kubedeploy.cluster.base import ClusterAPI
from kubedeploy.engine.retry import cancellable_sleep, poll_intervals
from kubedeploy.errors import ClusterAPIError, NotFoundError, TransientError
from kubedeploy.models.config import ConvergenceConfig
from kubedeploy.models.documents import WORKLOAD_KINDS
from kubedeploy.models.results import ApplyResult, ApplyStatus, ErrorKind
from kubedeploy.observability.logging import get_logger
from kubedeploy.observability.metrics import readiness_polls_total

_logger = get_logger("engine.convergence")


class ConvergenceTracker:
    """Confirms readiness of Applied nodes, one node per call."""

    def __init__(self, config: ConvergenceConfig | None = None) -> None:
        self._config = config or ConvergenceConfig()

    @property
    def timeout_seconds(self) -> float:
        return self._config.timeout_seconds

    def deadline(self) -> float:
        """Return a loop-time deadline ``timeout_seconds`` from now."""
        return asyncio.get_running_loop().time() + self._config.timeout_seconds

    async def await_ready(
        self,
        result: ApplyResult,
        client: ClusterAPI,
        deadline: float,
        cancel: asyncio.Event | None = None,
        slots: asyncio.Semaphore | None = None,
    ) -> ApplyResult:
        """Drive *result* from Applied to Ready, Failed or Cancelled.

        Args:
            result:   An Applied result. Any other status is returned as is.
            client:   Cluster API used for status reads.
            deadline: Loop time (``loop.time()``) after which the node fails
                      with ``ReadinessTimeout``. A status read still in flight at
                      the deadline is abandoned.
            cancel:   Set by the orchestrator to stop polling.
            slots:    Optional worker pool shared with the apply engine.
        """
        if result.status != ApplyStatus.APPLIED:
            return result
        if result.kind not in WORKLOAD_KINDS:
            result.mark_ready()
            return result

        loop = asyncio.get_running_loop()
        intervals = poll_intervals(self._config.initial_interval, self._config.max_interval)
        sleep = cancellable_sleep(cancel)
        last_seen = "no status observed"
        while True:
            if cancel is not None and cancel.is_set():
                result.mark_cancelled("run cancelled while waiting for readiness")
                return result
            read_limit = asyncio.timeout(max(deadline - loop.time(), 0))
            try:
                async with read_limit:
                    async with slots if slots is not None else nullcontext():
                        status = await client.get_resource_status(result.kind, result.namespace, result.name)
                readiness_polls_total.labels(kind=result.kind).inc()
                if status.converged:
                    result.mark_ready()
                    _logger.debug("workload_converged", node=result.id, observed=status.observed)
                    return result
                last_seen = f"observed {status.observed}/{status.desired}"
            except (NotFoundError, TransientError) as exc:
                last_seen = str(exc)
            except ClusterAPIError as exc:
                result.mark_failed(ErrorKind.REJECTED, f"status read rejected: {exc}")
                return result
            except TimeoutError:
                last_seen = "status read did not complete" if read_limit.expired() else "status read timed out"
            except Exception as exc:
                _logger.error("status_read_unexpected_error", node=result.id, error=str(exc), exc_info=True)
                result.mark_failed(ErrorKind.REJECTED, f"unexpected error reading status: {exc}")
                return result

            remaining = deadline - loop.time()
            if remaining <= 0:
                result.mark_failed(ErrorKind.READINESS_TIMEOUT, f"not ready before deadline: {last_seen}")
                _logger.warning("readiness_timeout", node=result.id, last_seen=last_seen)
                return result
            await sleep(min(next(intervals), remaining))
