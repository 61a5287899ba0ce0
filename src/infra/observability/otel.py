"""OpenTelemetry 指标与结构化日志初始化。"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from opentelemetry import metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    MetricReader,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import Resource
import structlog

from src.infra.config.settings import get_settings


def configure_metrics(
    service_name: str = "timeline-engine",
    reader: MetricReader | None = None,
    export_interval_ms: int = 60000,
) -> MeterProvider:
    """注册全局 MeterProvider。

    未传入 reader 时使用控制台导出（开发调试用）。
    """
    resource = Resource.create({"service.name": service_name})
    if reader is None:
        reader = PeriodicExportingMetricReader(
            ConsoleMetricExporter(), export_interval_millis=export_interval_ms
        )
    provider = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(provider)
    return provider


def configure_logging() -> None:
    """配置结构化日志，支持同时输出到控制台和文件。

    日志输出:
    - 控制台: 彩色格式化输出（便于人类阅读）
    - 文件: JSON 格式（便于程序分析）

    注意：此函数可以被多次调用，会清除 root logger 上已有的 handlers。
    """
    settings = get_settings()
    level = getattr(logging, settings.log_level)

    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    # 主日志文件（JSON 格式）
    json_handler = RotatingFileHandler(
        log_dir / "app.log",
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding="utf-8",
    )
    json_handler.setLevel(level)

    # 错误日志文件（单独记录 WARNING 及以上）
    error_handler = RotatingFileHandler(
        log_dir / "error.log",
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding="utf-8",
    )
    error_handler.setLevel(logging.WARNING)

    is_tty = sys.stdout.isatty()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    console_renderer: Any
    if is_tty:
        console_renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        console_renderer = structlog.processors.JSONRenderer(ensure_ascii=False)

    structlog.configure(
        processors=shared_processors  # type: ignore[arg-type]
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
    )

    console_formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            console_renderer,
        ],
    )

    json_handler.setFormatter(formatter)
    error_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    root_logger.addHandler(json_handler)
    root_logger.addHandler(error_handler)

    logger = structlog.get_logger(__name__)
    logger.info(
        "logging_configured",
        log_dir=str(log_dir.absolute()),
        json_log="app.log",
        error_log="error.log",
        console_mode="color" if is_tty else "json",
    )
