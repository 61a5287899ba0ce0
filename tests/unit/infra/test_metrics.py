from __future__ import annotations

import pytest

from src.domain.models.commands import AddTrack, Reset
from src.domain.models.timeline import TrackType
from src.infra.observability import engine_metrics as metrics
from src.timeline.history import HistoryManager
from src.timeline.track_allocator import get_next_available_index


class DummyCounter:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []

    def add(self, value: int, attributes: dict | None = None) -> None:
        self.calls.append(("add", attributes or {}))


class DummyHistogram:
    def __init__(self) -> None:
        self.calls: list[tuple[float, dict]] = []

    def record(self, value: float, attributes: dict | None = None) -> None:
        self.calls.append((value, attributes or {}))


def test_metric_helpers(monkeypatch: pytest.MonkeyPatch) -> None:
    commands = DummyCounter()
    moves = DummyCounter()
    batch_size = DummyHistogram()
    overflow = DummyCounter()

    monkeypatch.setattr(metrics, "timeline_commands_total", commands)
    monkeypatch.setattr(metrics, "timeline_history_moves_total", moves)
    monkeypatch.setattr(metrics, "timeline_debounce_batch_size", batch_size)
    monkeypatch.setattr(metrics, "timeline_band_overflow_total", overflow)

    metrics.add_command("ADD_CLIP")
    metrics.add_command("RESET", checkpoint=True)
    metrics.add_history_move("undo")
    metrics.observe_flush_size(5)
    metrics.add_band_overflow("text")

    assert commands.calls == [
        ("add", {"command_type": "ADD_CLIP"}),
        ("add", {"command_type": "RESET", "checkpoint": True}),
    ]
    assert moves.calls == [("add", {"direction": "undo"})]
    assert batch_size.calls == [(5, {})]
    assert overflow.calls == [("add", {"track_type": "text"})]


def test_history_manager_records_commands_and_moves(
    monkeypatch: pytest.MonkeyPatch, track_factory
) -> None:
    commands = DummyCounter()
    moves = DummyCounter()
    monkeypatch.setattr(metrics, "timeline_commands_total", commands)
    monkeypatch.setattr(metrics, "timeline_history_moves_total", moves)

    manager = HistoryManager()
    manager.execute(AddTrack(track=track_factory(track_id="v1")))
    manager.undo()
    manager.redo()
    manager.redo()  # future 为空，不计数
    manager.execute(Reset())

    assert commands.calls == [
        ("add", {"command_type": "ADD_TRACK"}),
        ("add", {"command_type": "RESET", "checkpoint": True}),
    ]
    assert moves.calls == [("add", {"direction": "undo"}), ("add", {"direction": "redo"})]


def test_band_overflow_is_counted(monkeypatch: pytest.MonkeyPatch, track_factory) -> None:
    overflow = DummyCounter()
    monkeypatch.setattr(metrics, "timeline_band_overflow_total", overflow)
    tracks = [track_factory(index=i, track_type=TrackType.CAPTION) for i in range(15, 18)]

    assert get_next_available_index(tracks, TrackType.CAPTION) == 17
    assert overflow.calls == [("add", {"track_type": "caption"})]
