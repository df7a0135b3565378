"""Apply engine: executes documents against a ClusterAPI in dependency order.

Every node gets its own task, started in graph order. A task waits on the
gates of its in-batch dependencies, then takes a worker slot and applies the
document. Gates open with ``True`` once a node is Applied, and with
``False`` if it failed or was cancelled, so a failure propagates to every
transitive dependent as ``BlockedByDependency`` without an apply call.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from kubedeploy.cluster.base import ClusterAPI
from kubedeploy.engine.retry import apply_retrying
from kubedeploy.errors import ClusterAPIError, RejectedError, TransientError
from kubedeploy.graph.dependency_graph import DependencyGraph
from kubedeploy.models.config import RetryConfig
from kubedeploy.models.documents import ResourceDocument
from kubedeploy.models.results import ApplyResult, ApplyStatus, ErrorKind
from kubedeploy.observability.logging import get_logger
from kubedeploy.observability.metrics import apply_attempts_total

_logger = get_logger("engine.apply")


def new_result(doc: ResourceDocument) -> ApplyResult:
    """Create the Pending result a document starts with."""
    return ApplyResult(id=doc.id, kind=doc.kind, namespace=doc.namespace, name=doc.name)


class ApplyEngine:
    """Applies a DependencyGraph with a bounded pool of concurrent API calls.

    Args:
        retry:       Backoff policy for transient cluster errors.
        max_workers: Maximum number of in-flight apply calls.
    """

    def __init__(self, retry: RetryConfig | None = None, max_workers: int = 8) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._retry = retry or RetryConfig()
        self._max_workers = max_workers

    async def apply(
        self,
        graph: DependencyGraph,
        client: ClusterAPI,
        results: dict[str, ApplyResult] | None = None,
        cancel: asyncio.Event | None = None,
        slots: asyncio.Semaphore | None = None,
    ) -> AsyncIterator[ApplyResult]:
        """Apply every node and yield each result as it leaves Pending.

        Exactly one result is yielded per node, with status Applied, Failed
        or Cancelled. Results are mutated in place; pass *results* to share
        them with a report.
        """
        if results is None:
            results = {doc.id: new_result(doc) for doc in graph}
        cancel = cancel or asyncio.Event()
        slots = slots or asyncio.Semaphore(self._max_workers)
        loop = asyncio.get_running_loop()
        gates: dict[str, asyncio.Future[bool]] = {node_id: loop.create_future() for node_id in graph.order}
        finished: asyncio.Queue[ApplyResult] = asyncio.Queue()

        tasks = [
            asyncio.create_task(
                self._run_node(graph, node_id, client, results, gates, finished, cancel, slots),
                name=f"apply:{node_id}",
            )
            for node_id in graph.order
        ]
        try:
            for _ in range(len(tasks)):
                yield await finished.get()
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run_node(
        self,
        graph: DependencyGraph,
        node_id: str,
        client: ClusterAPI,
        results: dict[str, ApplyResult],
        gates: dict[str, asyncio.Future[bool]],
        finished: asyncio.Queue[ApplyResult],
        cancel: asyncio.Event,
        slots: asyncio.Semaphore,
    ) -> None:
        result = results[node_id]
        try:
            deps = sorted(graph.dependencies(node_id))
            # Gate values record whether each dependency was applied; its status may move on later.
            applied = {dep: await gates[dep] for dep in deps}
            not_applied = [dep for dep, ok in applied.items() if not ok]
            failed = [dep for dep in not_applied if results[dep].status == ApplyStatus.FAILED]
            cancelled = [dep for dep in not_applied if dep not in failed]
            if cancel.is_set() or cancelled:
                result.mark_cancelled("run cancelled before apply")
            elif failed:
                result.mark_failed(ErrorKind.BLOCKED_BY_DEPENDENCY, f"blocked by {', '.join(failed)}")
            else:
                async with slots:
                    if cancel.is_set():
                        result.mark_cancelled("run cancelled before apply")
                    else:
                        await self._apply_document(graph.document(node_id), client, result, cancel)
        except Exception as exc:
            _logger.error("apply_node_unexpected_error", node=node_id, error=str(exc), exc_info=True)
            if not result.is_terminal:
                result.mark_failed(ErrorKind.REJECTED, f"unexpected error: {exc}")
        finally:
            gate = gates[node_id]
            if not gate.done():
                gate.set_result(result.status in (ApplyStatus.APPLIED, ApplyStatus.READY))
            finished.put_nowait(result)

    async def _apply_document(
        self,
        doc: ResourceDocument,
        client: ClusterAPI,
        result: ApplyResult,
        cancel: asyncio.Event,
    ) -> None:
        """Apply one document, retrying transient errors, and record the outcome."""
        manifest = doc.to_manifest()
        try:
            async for attempt in apply_retrying(self._retry, doc.id, cancel):
                if cancel.is_set():
                    result.mark_cancelled("run cancelled during retries")
                    return
                with attempt:
                    result.attempts += 1
                    try:
                        outcome = await client.apply_resource(doc.kind, doc.namespace, doc.name, manifest)
                    except TransientError:
                        apply_attempts_total.labels(kind=doc.kind, result="transient").inc()
                        raise
        except TransientError as exc:
            if cancel.is_set():
                result.mark_cancelled(f"run cancelled during retries: {exc}")
                return
            _logger.warning("apply_retries_exhausted", node=doc.id, attempts=result.attempts, error=str(exc))
            result.mark_failed(ErrorKind.TRANSIENT, str(exc))
            return
        except RejectedError as exc:
            apply_attempts_total.labels(kind=doc.kind, result="rejected").inc()
            _logger.warning("apply_rejected", node=doc.id, error=str(exc), status_code=exc.status_code)
            result.mark_failed(ErrorKind.REJECTED, str(exc))
            return
        except ClusterAPIError as exc:
            apply_attempts_total.labels(kind=doc.kind, result="error").inc()
            _logger.warning("apply_failed", node=doc.id, error=str(exc), status_code=exc.status_code)
            result.mark_failed(ErrorKind.REJECTED, str(exc))
            return

        apply_attempts_total.labels(kind=doc.kind, result="applied").inc()
        if cancel.is_set():
            # In-flight call completed after cancellation; keep the outcome for auditing.
            result.outcome = outcome
            result.mark_cancelled("run cancelled while apply was in flight")
            return
        result.mark_applied(outcome)
        _logger.debug(
            "document_applied",
            node=doc.id,
            outcome=outcome.value,
            attempts=result.attempts,
            content_hash=doc.content_hash[:12],
        )
