"""Tests for structured logging setup."""

from __future__ import annotations

import asyncio
import io
import json
from collections.abc import Iterator

import pytest
import structlog

from kubedeploy.observability.logging import bind_run, get_logger, setup_logging


@pytest.fixture
def stream() -> Iterator[io.StringIO]:
    buf = io.StringIO()
    yield buf
    structlog.reset_defaults()


def _events(buf: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in buf.getvalue().splitlines()]


class TestSetupLogging:
    def test_json_events_carry_component_and_level(self, stream: io.StringIO) -> None:
        setup_logging("info", stream=stream)
        get_logger("engine.apply").info("document_applied", node="Namespace/ns1")

        [event] = _events(stream)
        assert event["event"] == "document_applied"
        assert event["component"] == "engine.apply"
        assert event["level"] == "info"
        assert event["node"] == "Namespace/ns1"
        assert "ts" in event

    def test_level_filters_events(self, stream: io.StringIO) -> None:
        setup_logging("warning", stream=stream)
        log = get_logger("orchestrator")
        log.info("deployment_started")
        log.warning("node_failed")
        assert [e["event"] for e in _events(stream)] == ["node_failed"]

    def test_invalid_level(self) -> None:
        with pytest.raises(ValueError, match="Invalid log level"):
            setup_logging("verbose")


class TestBindRun:
    def test_run_id_bound_inside_block_only(self, stream: io.StringIO) -> None:
        setup_logging("debug", stream=stream)
        log = get_logger("orchestrator")
        with bind_run("run-1"):
            log.info("inside")
        log.info("outside")

        inside, outside = _events(stream)
        assert inside["run_id"] == "run-1"
        assert "run_id" not in outside

    async def test_tasks_inherit_binding(self, stream: io.StringIO) -> None:
        setup_logging("debug", stream=stream)

        async def _child() -> None:
            get_logger("engine.apply").info("child_event")

        with bind_run("run-2"):
            task = asyncio.create_task(_child())
        await task

        [event] = _events(stream)
        assert event["run_id"] == "run-2"
