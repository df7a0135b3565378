"""Audit sinks for finished deployment reports.

Exports:
    ReportSink          -- Abstract base for all sinks.
    FileReportSink      -- Appends one JSON record per run to a file.
    WebhookReportSink   -- POSTs the JSON record to an HTTP endpoint.
    record_report       -- Sends a report to every sink; never raises.
    build_report_sinks  -- Factory used by the application bootstrap.
"""

from __future__ import annotations

import asyncio
import os
from typing import TYPE_CHECKING

import structlog

from kubedeploy.audit.sinks import FileReportSink, ReportSink
from kubedeploy.audit.webhook import WebhookReportSink

if TYPE_CHECKING:
    from kubedeploy.models.config import AuditConfig
    from kubedeploy.models.results import DeploymentReport

_log = structlog.get_logger(component="audit")

__all__ = [
    "FileReportSink",
    "ReportSink",
    "WebhookReportSink",
    "build_report_sinks",
    "record_report",
]


def build_report_sinks(config: AuditConfig) -> list[ReportSink]:
    """Build the configured sinks.

    File:
        KUBEDEPLOY_AUDIT_FILE is the path of a JSON-lines file.

    Webhook:
        KUBEDEPLOY_AUDIT_WEBHOOK_SECRET_REF (env var name) ->
        env var value is the webhook URL.
    """
    sinks: list[ReportSink] = []

    if config.file_path:
        sinks.append(FileReportSink(path=config.file_path))
        _log.info("file_sink_enabled", path=config.file_path)

    webhook_ref = config.webhook_secret_ref
    if webhook_ref:
        webhook_url = os.environ.get(webhook_ref, "")
        if webhook_url:
            try:
                sinks.append(WebhookReportSink(url=webhook_url))
                _log.info("webhook_sink_enabled")
            except ValueError as exc:
                _log.warning("webhook_sink_disabled", reason=str(exc))
        else:
            _log.debug("webhook_sink_skipped", reason="secret ref env var is empty")

    if not sinks:
        _log.debug("no_audit_sinks_configured")
    return sinks


async def record_report(report: DeploymentReport, sinks: list[ReportSink]) -> dict[str, bool]:
    """Deliver *report* to every sink concurrently.

    Returns a map of sink name to delivery success. Exceptions raised by a
    sink are logged and counted as failures.
    """

    async def _one(sink: ReportSink) -> bool:
        try:
            return await sink.record(report)
        except Exception as exc:  # noqa: BLE001
            _log.error("audit_sink_unexpected_error", sink=sink.sink_name, run_id=report.run_id, error=str(exc))
            return False

    outcomes = await asyncio.gather(*(_one(sink) for sink in sinks))
    return {sink.sink_name: ok for sink, ok in zip(sinks, outcomes, strict=True)}
