#!/usr/bin/env python
"""Pytest fixtures for timeline command engine."""
# ruff: noqa: E402

import sys
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.domain.models.timeline import Clip, ClipType, Track, TrackType


# =============================================================================
# Factory Fixtures
# =============================================================================


@pytest.fixture
def track_factory() -> Callable[..., Track]:
    """创建 Track 的工厂函数。"""

    def _create(
        track_id: str | None = None,
        index: int = 0,
        track_type: TrackType = TrackType.VIDEO,
        project_id: str = "project-1",
        **kwargs: Any,
    ) -> Track:
        return Track(
            id=track_id or str(uuid.uuid4()),
            project_id=project_id,
            index=index,
            type=track_type,
            **kwargs,
        )

    return _create


@pytest.fixture
def clip_factory() -> Callable[..., Clip]:
    """创建 Clip 的工厂函数，source 区间默认与时间线时长一致。"""

    def _create(
        clip_id: str | None = None,
        track_id: str = "track-1",
        start_ms: int = 0,
        end_ms: int = 1000,
        clip_type: ClipType = ClipType.VIDEO,
        asset_id: str | None = "asset-1",
        **kwargs: Any,
    ) -> Clip:
        duration = end_ms - start_ms
        kwargs.setdefault("source_end_ms", duration)
        kwargs.setdefault("asset_duration_ms", duration)
        return Clip(
            id=clip_id or str(uuid.uuid4()),
            track_id=track_id,
            asset_id=asset_id,
            type=clip_type,
            timeline_start_ms=start_ms,
            timeline_end_ms=end_ms,
            **kwargs,
        )

    return _create
