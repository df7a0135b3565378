"""Application bootstrap for kubedeploy.

Wires components in dependency order for one deployment:
config → logging → cluster client → orchestrator → audit sinks.

SIGINT and SIGTERM cancel the run: no new nodes are scheduled, in-flight
calls finish and are recorded Cancelled, and the report is still written
to the audit sinks. The cluster client is always closed.
"""

from __future__ import annotations

import asyncio
import os
import signal
from collections.abc import Iterable

from kubedeploy.audit import build_report_sinks, record_report
from kubedeploy.cluster.base import ClusterAPI
from kubedeploy.cluster.memory import InMemoryClusterAPI
from kubedeploy.config import load_config
from kubedeploy.models.config import KubeDeployConfig
from kubedeploy.models.documents import ResourceDocument
from kubedeploy.models.results import DeploymentReport, RunStatus
from kubedeploy.observability.logging import get_logger, setup_logging
from kubedeploy.orchestrator import Orchestrator


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


async def _connect_cluster(config: KubeDeployConfig) -> ClusterAPI:
    """Return the cluster client for this run (in-memory when dry_run is set)."""
    log = get_logger("app")
    if config.cluster.dry_run:
        log.info("dry_run_enabled", cluster="in-memory")
        return InMemoryClusterAPI()
    try:
        # Imported lazily so dry runs do not need a kubeconfig.
        from kubedeploy.cluster.kubernetes import KubernetesClusterAPI

        return await KubernetesClusterAPI.connect(config.cluster)
    except Exception as exc:
        raise _ComponentError("cluster_client", exc) from exc


async def run_deployment(
    documents: Iterable[ResourceDocument],
    external: Iterable[str] = (),
    config: KubeDeployConfig | None = None,
    client: ClusterAPI | None = None,
) -> DeploymentReport:
    """Deploy *documents* end to end and record the report.

    Args:
        documents: Batch supplied by a document source.
        external:  Ids of objects that already exist outside the batch.
        config:    Configuration; loaded from KUBEDEPLOY_* when omitted.
        client:    Cluster client; built from *config* when omitted. A
                   client passed in is not closed by this function.

    Raises:
        GraphError: the batch is invalid; nothing was applied.
    """
    config = config or load_config()
    setup_logging(config.log.level)
    log = get_logger("app")
    from kubedeploy import __version__

    log.info("kubedeploy_starting", version=__version__)

    owns_client = client is None
    cluster = client or await _connect_cluster(config)
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    try:
        orchestrator = Orchestrator(cluster, config)
        run = orchestrator.start(documents, external)
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, run.cancel)
                installed.append(sig)
            except (NotImplementedError, RuntimeError):
                log.debug("signal_handler_unavailable", signal=sig.name)
        report = await run.wait()
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
        if owns_client:
            try:
                await cluster.close()
            except Exception as exc:
                log.debug("cluster_client_close_failed", error=str(exc))

    sinks = build_report_sinks(config.audit)
    if sinks:
        delivered = await record_report(report, sinks)
        log.info("report_recorded", run_id=report.run_id, sinks=delivered)
    return report


async def main() -> None:
    """Deploy the bundled CloudWatch agent documents.

    Reads KUBEDEPLOY_CLUSTER_NAME (required), KUBEDEPLOY_NAMESPACE and
    KUBEDEPLOY_ROLE_ARN. Exits non-zero unless every node became ready.
    """
    from kubedeploy.bundles import cloudwatch_agent_documents

    cluster_name = os.environ.get("KUBEDEPLOY_CLUSTER_NAME", "")
    if not cluster_name:
        get_logger("app").critical("missing_required_setting", setting="KUBEDEPLOY_CLUSTER_NAME")
        raise SystemExit(2)

    documents = cloudwatch_agent_documents(
        cluster_name=cluster_name,
        namespace=os.environ.get("KUBEDEPLOY_NAMESPACE", "amazon-cloudwatch"),
        role_arn=os.environ.get("KUBEDEPLOY_ROLE_ARN", ""),
    )
    try:
        report = await run_deployment(documents)
    except _ComponentError as exc:
        get_logger("app").critical("fatal_startup_error", component=exc.component, error=str(exc.cause))
        raise SystemExit(1) from exc
    if report.status != RunStatus.SUCCESS:
        raise SystemExit(1)
