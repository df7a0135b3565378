"""Deployment orchestrator.

Composes graph building, the apply engine and the convergence tracker into
a single deployment operation::

    orchestrator = Orchestrator(client, config)
    report = await orchestrator.deploy(documents)

Graph errors (cycles, unresolved or duplicate documents) are raised before
any apply happens. Everything after that is recorded per node on the
DeploymentReport: every submitted document appears with a terminal status.

Convergence is pipelined: a node's readiness check starts the moment the
engine reports it Applied, while other nodes are still being applied.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable
from contextlib import aclosing
from datetime import UTC, datetime

from kubedeploy.cluster.base import ClusterAPI
from kubedeploy.engine.apply import ApplyEngine, new_result
from kubedeploy.engine.convergence import ConvergenceTracker
from kubedeploy.graph import DependencyGraph, build_graph
from kubedeploy.models.config import KubeDeployConfig
from kubedeploy.models.documents import ResourceDocument
from kubedeploy.models.results import ApplyResult, ApplyStatus, DeploymentReport, ErrorKind
from kubedeploy.observability.logging import bind_run, get_logger
from kubedeploy.observability.metrics import (
    deployment_duration_seconds,
    deployments_total,
    node_results_total,
)

_logger = get_logger("orchestrator")


class DeploymentRun:
    """Handle for one in-progress orchestration run.

    The run owns its graph and its report; the report is complete once
    :meth:`wait` returns.
    """

    def __init__(
        self,
        graph: DependencyGraph,
        report: DeploymentReport,
        task: asyncio.Task[DeploymentReport],
        cancel_event: asyncio.Event,
    ) -> None:
        self.graph = graph
        self.report = report
        self._task = task
        self._cancel_event = cancel_event

    @property
    def run_id(self) -> str:
        return self.report.run_id

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        """Stop scheduling new nodes.

        Calls already in flight are allowed to complete but their nodes are
        recorded Cancelled. Has no effect once the run has finished.
        """
        if self._task.done() or self._cancel_event.is_set():
            return
        _logger.info("deployment_cancel_requested", run_id=self.run_id)
        self.report.cancelled = True
        self._cancel_event.set()

    async def wait(self) -> DeploymentReport:
        """Wait for every node to reach a terminal status and return the report."""
        return await self._task


class Orchestrator:
    """Applies a batch of resource documents to a cluster.

    Args:
        client:  ClusterAPI implementation used for every call of a run.
        config:  Retry, convergence and worker pool settings.
        engine:  Optional pre-built ApplyEngine (defaults from *config*).
        tracker: Optional pre-built ConvergenceTracker (defaults from *config*).
    """

    def __init__(
        self,
        client: ClusterAPI,
        config: KubeDeployConfig | None = None,
        engine: ApplyEngine | None = None,
        tracker: ConvergenceTracker | None = None,
    ) -> None:
        self._client = client
        self._config = config or KubeDeployConfig()
        self._engine = engine or ApplyEngine(
            retry=self._config.retry,
            max_workers=self._config.engine.max_workers,
        )
        self._tracker = tracker or ConvergenceTracker(self._config.convergence)

    async def deploy(
        self,
        documents: Iterable[ResourceDocument],
        external: Iterable[str] = (),
    ) -> DeploymentReport:
        """Apply *documents* and return the aggregate report.

        Raises:
            GraphError: the batch is invalid; nothing was applied.
        """
        run = self.start(documents, external)
        return await run.wait()

    def start(
        self,
        documents: Iterable[ResourceDocument],
        external: Iterable[str] = (),
    ) -> DeploymentRun:
        """Validate *documents* and start applying them in the background.

        Must be called from a running event loop.

        Raises:
            GraphError: the batch is invalid; nothing was applied.
        """
        graph = build_graph(documents, external)
        report = DeploymentReport(results={doc.id: new_result(doc) for doc in graph})
        cancel_event = asyncio.Event()
        with bind_run(report.run_id):
            task = asyncio.create_task(self._run(graph, report, cancel_event), name=f"deploy:{report.run_id}")
        return DeploymentRun(graph, report, task, cancel_event)

    async def _run(
        self,
        graph: DependencyGraph,
        report: DeploymentReport,
        cancel: asyncio.Event,
    ) -> DeploymentReport:
        _logger.info(
            "deployment_started",
            nodes=graph.node_count,
            edges=graph.edge_count,
            waves=len(graph.waves()),
            external=sorted(graph.external),
        )
        t_start = time.monotonic()
        slots = asyncio.Semaphore(self._config.engine.max_workers)
        convergence: list[asyncio.Task[ApplyResult]] = []
        try:
            stream = self._engine.apply(graph, self._client, report.results, cancel, slots)
            async with aclosing(stream) as results:
                async for result in results:
                    if result.status == ApplyStatus.APPLIED:
                        _logger.info("node_applied", node=result.id, outcome=result.outcome, attempts=result.attempts)
                        convergence.append(
                            asyncio.create_task(
                                self._converge(result, cancel, slots),
                                name=f"converge:{result.id}",
                            )
                        )
                    else:
                        _record_terminal(result)
            if convergence:
                await asyncio.gather(*convergence, return_exceptions=True)
        except asyncio.CancelledError:
            report.cancelled = True
            cancel.set()
            raise
        except Exception:
            _logger.error("deployment_aborted", exc_info=True)
            cancel.set()
            raise
        finally:
            for task in convergence:
                if not task.done():
                    task.cancel()
            if convergence:
                await asyncio.gather(*convergence, return_exceptions=True)
            for result in report.results.values():
                if not result.is_terminal:
                    result.mark_cancelled("run interrupted")
                    _record_terminal(result)
            report.finished_at = datetime.now(tz=UTC)
            duration = time.monotonic() - t_start
            deployment_duration_seconds.observe(duration)
            deployments_total.labels(status=report.status.value).inc()
            _logger.info(
                "deployment_finished",
                status=report.status.value,
                duration_seconds=round(duration, 3),
                **report.counts(),
            )
        return report

    async def _converge(
        self,
        result: ApplyResult,
        cancel: asyncio.Event,
        slots: asyncio.Semaphore,
    ) -> ApplyResult:
        deadline = self._tracker.deadline()
        try:
            await self._tracker.await_ready(result, self._client, deadline, cancel, slots)
        except Exception as exc:
            _logger.error("convergence_failed", node=result.id, error=str(exc), exc_info=True)
            if not result.is_terminal:
                result.mark_failed(ErrorKind.REJECTED, f"unexpected error: {exc}")
        _record_terminal(result)
        return result


def _record_terminal(result: ApplyResult) -> None:
    """Log and count a node that reached a terminal status."""
    node_results_total.labels(kind=result.kind, status=result.status.value).inc()
    if result.status == ApplyStatus.READY:
        _logger.info("node_ready", node=result.id)
    elif result.status == ApplyStatus.FAILED:
        _logger.warning("node_failed", node=result.id, error=result.error, detail=result.detail)
    elif result.status == ApplyStatus.CANCELLED:
        _logger.info("node_cancelled", node=result.id, detail=result.detail)
