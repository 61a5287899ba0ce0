from __future__ import annotations

import json
import logging

import pytest
import structlog
from opentelemetry.sdk.metrics.export import InMemoryMetricReader

from src.infra.config.settings import AppSettings
from src.infra.observability import engine_metrics, otel


@pytest.fixture
def restore_logging():
    root_logger = logging.getLogger()
    handlers, level = list(root_logger.handlers), root_logger.level
    yield
    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)
    structlog.reset_defaults()


def test_configure_logging_writes_json_files(tmp_path, monkeypatch, restore_logging) -> None:
    monkeypatch.setattr(otel, "get_settings", lambda: AppSettings(log_dir=str(tmp_path)))

    otel.configure_logging()
    structlog.get_logger("timeline_test").warning("track_allocator.band_exhausted", track_type="text")
    for handler in logging.getLogger().handlers:
        handler.flush()

    app_events = [json.loads(line)["event"] for line in (tmp_path / "app.log").read_text().splitlines()]
    error_events = [json.loads(line)["event"] for line in (tmp_path / "error.log").read_text().splitlines()]
    assert "logging_configured" in app_events
    assert "track_allocator.band_exhausted" in app_events
    assert error_events == ["track_allocator.band_exhausted"]


def test_configure_metrics_collects_engine_counters() -> None:
    reader = InMemoryMetricReader()
    otel.configure_metrics(reader=reader)

    engine_metrics.add_command("ADD_CLIP")
    engine_metrics.observe_flush_size(3)

    data = reader.get_metrics_data()
    names = {
        metric.name
        for resource_metrics in data.resource_metrics
        for scope_metrics in resource_metrics.scope_metrics
        for metric in scope_metrics.metrics
    }
    assert {"timeline_commands_total", "timeline_debounce_batch_size"} <= names
