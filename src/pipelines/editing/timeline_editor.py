"""交互式时间线编辑服务：历史栈、防抖拖拽与几何辅助的组合入口。"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Iterable
from uuid import uuid4

import structlog

from src.domain.models.commands import Command, UpdateClip
from src.domain.models.editor_preferences import EditorPreferences
from src.domain.models.timeline import Clip, TimelineState, Track, TrackType
from src.domain.services.debounced_executor import DebouncedCommandExecutor
from src.infra.config.settings import get_settings
from src.timeline import clip_operations
from src.timeline.assets import Asset, PlacedAsset, add_asset_commands
from src.timeline.geometry import TimelineGeometry
from src.timeline.history import HistoryManager
from src.timeline.track_allocator import insert_track_commands

logger = structlog.get_logger(__name__)


class TimelineEditor:
    def __init__(
        self,
        history: HistoryManager | None = None,
        preferences: EditorPreferences | None = None,
        time_scale: float | None = None,
        debounce_delay_ms: int | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        settings = get_settings()
        self.history = history or HistoryManager()
        self.preferences = preferences or EditorPreferences.from_settings(settings)
        self.time_scale = time_scale if time_scale is not None else settings.base_time_scale
        self._debouncer = DebouncedCommandExecutor(
            self._commit_debounced, delay_ms=debounce_delay_ms, loop=loop
        )
        # 拖拽中尚未 flush 的片段最新版本
        self._drag_preview: dict[str, Clip] = {}

    @property
    def present(self) -> TimelineState:
        return self.history.present

    def geometry(self) -> TimelineGeometry:
        present = self.present
        return TimelineGeometry(
            present.ordered_tracks(),
            present.clips.values(),
            self.time_scale,
            snap_threshold_px=self.preferences.snap_threshold_px,
            grid_snap_ms=self.preferences.grid_snap_ms,
        )

    # ------------------------------------------------------------------
    # 历史

    def load(self, tracks: Iterable[Track], clips: Iterable[Clip]) -> TimelineState:
        """批量加载持久化数据，清空历史。"""
        self.cancel_drag()
        return self.history.reset(tracks, clips)

    def execute(self, command: Command) -> TimelineState:
        # 先把拖拽缓冲落地，保证命令顺序与用户操作顺序一致
        self._debouncer.flush()
        return self.history.execute(command)

    def undo(self) -> TimelineState:
        self._debouncer.flush()
        return self.history.undo()

    def redo(self) -> TimelineState:
        self._debouncer.flush()
        return self.history.redo()

    # ------------------------------------------------------------------
    # 拖拽

    def snap_ms(
        self, time_ms: float, exclude_clip_id: str | None = None, playhead_ms: float | None = None
    ) -> int:
        """按偏好把时间吸附到网格/片段边缘/播放头。"""
        if not self.preferences.magnetic_snapping:
            return round(time_ms)
        geometry = self.geometry()
        points = geometry.snap_points(
            exclude_clip_id=exclude_clip_id,
            playhead_ms=playhead_ms,
            include_grid=self.preferences.grid_snapping,
        )
        result = geometry.find_snap_position(geometry.ms_to_pixels(time_ms), points)
        return round(geometry.pixels_to_ms(result.position))

    def drag_clip(
        self, clip_id: str, new_start_ms: float, playhead_ms: float | None = None
    ) -> Clip:
        """拖拽中的一帧：吸附后生成 UPDATE_CLIP 交给防抖执行器。"""
        current = self._drag_preview.get(clip_id) or clip_operations.require_clip(
            self.present, clip_id
        )
        start_ms = max(0, self.snap_ms(new_start_ms, exclude_clip_id=clip_id, playhead_ms=playhead_ms))
        update = clip_operations.move_clip(current, start_ms)
        if update.after != current:
            self._debouncer.execute(update)
            self._drag_preview[clip_id] = update.after
        return update.after

    def commit_drag(self) -> TimelineState:
        self._debouncer.flush()
        self._drag_preview.clear()
        return self.present

    def cancel_drag(self) -> None:
        self._debouncer.cancel()
        self._drag_preview.clear()

    def collisions_for(self, clip: Clip) -> list[Clip]:
        """拖拽结束前给调用方的碰撞提示（仅建议，不阻止提交）。"""
        return self.geometry().check_collisions(
            clip.id, clip.timeline_start_ms, clip.timeline_end_ms, clip.track_id
        )

    # ------------------------------------------------------------------
    # 编辑操作

    def move_clip(self, clip_id: str, new_start_ms: int) -> TimelineState:
        self._debouncer.flush()
        clip = clip_operations.require_clip(self.present, clip_id)
        command = clip_operations.move_clip_with_ripple(
            self.geometry(), clip, new_start_ms, self.preferences.ripple_mode
        )
        return self.execute(command)

    def split_clip(self, clip_id: str, split_ms: int | None = None) -> TimelineState:
        self._debouncer.flush()
        clip = clip_operations.require_clip(self.present, clip_id)
        return self.execute(clip_operations.split_clip(clip, split_ms))

    def delete_clips(self, clip_ids: Iterable[str]) -> TimelineState:
        self._debouncer.flush()
        command = clip_operations.delete_clips(
            self.present,
            clip_ids,
            close_gaps=self.preferences.auto_close_gaps,
            time_scale=self.time_scale,
        )
        return self.execute(command)

    def remove_track(self, track_id: str) -> TimelineState:
        self._debouncer.flush()
        return self.execute(clip_operations.remove_track_with_clips(self.present, track_id))

    def add_track(self, track_type: TrackType, project_id: str) -> Track:
        self._debouncer.flush()
        track = Track(
            id=str(uuid4()),
            project_id=project_id,
            index=0,
            type=track_type,
            created_at=datetime.now(timezone.utc),
        )
        self.execute(insert_track_commands(self.present.tracks.values(), track))
        return self.present.tracks[track.id]

    def add_asset(self, asset: Asset, project_id: str, start_ms: int | None = None) -> PlacedAsset:
        self._debouncer.flush()
        placed = add_asset_commands(self.present, asset, project_id, start_ms=start_ms)
        self.execute(placed.command)
        return placed

    def _commit_debounced(self, command: Command) -> None:
        self.history.execute(command)
        self._drag_preview.clear()
        if isinstance(command, UpdateClip):
            logger.debug("timeline_editor.drag_committed", clip_id=command.after.id)
