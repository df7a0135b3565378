"""JSON webhook audit sink.

Posts the deployment record (``{runId, timestamp, status, nodes}``) to any
configured HTTP endpoint.
"""

from __future__ import annotations

import httpx
import structlog

from kubedeploy.audit.sinks import ReportSink
from kubedeploy.models.results import DeploymentReport

_log = structlog.get_logger(component="audit.webhook")


class WebhookReportSink(ReportSink):
    """Delivers reports by POSTing a JSON payload to a configurable URL.

    Args:
        url:       Full endpoint URL (must be HTTPS in production).
        headers:   Optional extra headers (e.g. Authorization).
        timeout:   HTTP request timeout in seconds. Defaults to 10.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not url:
            raise ValueError("Webhook url must not be empty")
        self._url = url
        self._headers = headers or {}
        self._timeout = timeout
        self._transport = transport

    @property
    def sink_name(self) -> str:
        return "webhook"

    async def record(self, report: DeploymentReport) -> bool:
        """POST the report as JSON. Returns True on a 2xx response."""
        request_headers = {
            "Content-Type": "application/json",
            **self._headers,
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    self._url,
                    json=report.to_record(),
                    headers=request_headers,
                )
                if response.is_success:
                    return True
                _log.warning(
                    "webhook_non_2xx_response",
                    status_code=response.status_code,
                    body=response.text[:200],
                    run_id=report.run_id,
                )
                return False
        except httpx.TimeoutException:
            _log.warning("webhook_request_timeout", run_id=report.run_id, url=self._url)
            return False
        except httpx.HTTPError as exc:
            _log.warning("webhook_http_error", error=str(exc), run_id=report.run_id)
            return False
