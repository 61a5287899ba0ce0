"""时间线命令引擎指标的 OpenTelemetry 封装。

提供统一的 OTEL Counter/Histogram helper，用于观察命令执行、撤销重做、
防抖合并批次以及轨道分段溢出情况。
"""

from __future__ import annotations

from typing import Any

from opentelemetry import metrics
from opentelemetry.metrics import Meter

# 获取全局 meter
meter: Meter = metrics.get_meter("timeline_engine.commands")

timeline_commands_total = meter.create_counter(
    name="timeline_commands_total",
    description="进入历史栈的命令数（按命令类型）",
    unit="commands",
)

timeline_history_moves_total = meter.create_counter(
    name="timeline_history_moves_total",
    description="撤销/重做次数",
    unit="moves",
)

timeline_debounce_batch_size = meter.create_histogram(
    name="timeline_debounce_batch_size",
    description="防抖执行器单次 flush 合并的命令数",
    unit="commands",
)

timeline_band_overflow_total = meter.create_counter(
    name="timeline_band_overflow_total",
    description="轨道类型分段已满、回退到分段上界的次数",
    unit="tracks",
)


def add_command(command_type: str, *, checkpoint: bool = False) -> None:
    labels: dict[str, Any] = {"command_type": command_type}
    if checkpoint:
        labels["checkpoint"] = True
    timeline_commands_total.add(1, attributes=labels)


def add_history_move(direction: str) -> None:
    """记录一次历史移动。

    Args:
        direction: "undo" 或 "redo"
    """
    timeline_history_moves_total.add(1, attributes={"direction": direction})


def observe_flush_size(size: int) -> None:
    timeline_debounce_batch_size.record(size)


def add_band_overflow(track_type: str) -> None:
    timeline_band_overflow_total.add(1, attributes={"track_type": track_type})
