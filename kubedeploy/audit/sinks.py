"""Report sink base class and the JSON-lines file sink."""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path

import structlog

from kubedeploy.models.results import DeploymentReport

_log = structlog.get_logger(component="audit.sinks")


class ReportSink(ABC):
    """Abstract base class for audit sinks.

    ``record`` should not raise; return ``False`` on delivery failure.
    """

    @property
    @abstractmethod
    def sink_name(self) -> str:
        """Identifier used in logs."""

    @abstractmethod
    async def record(self, report: DeploymentReport) -> bool:
        """Persist or forward *report*. Returns True on success."""


class FileReportSink(ReportSink):
    """Appends ``report.to_record()`` as one JSON line per run."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def sink_name(self) -> str:
        return "file"

    async def record(self, report: DeploymentReport) -> bool:
        line = json.dumps(report.to_record(), sort_keys=True)
        try:
            await asyncio.to_thread(self._append, line)
        except OSError as exc:
            _log.warning("file_sink_write_failed", path=str(self._path), error=str(exc))
            return False
        _log.debug("report_recorded", sink="file", run_id=report.run_id)
        return True

    def _append(self, line: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")
