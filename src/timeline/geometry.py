"""时间线几何计算：间隙、吸附、碰撞、波纹编辑与插入点搜索。

所有查询都在构造时传入的不可变快照上进行，不修改任何状态；
需要修改时间线的结果以 UPDATE_CLIP 命令列表的形式返回，由调用方执行。
区间一律是左闭右开 [start, end)。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Literal

from src.domain.models.commands import UpdateClip
from src.domain.models.timeline import Clip, Track
from src.infra.config.settings import get_settings

RippleMode = Literal["all", "right", "none"]
SnapKind = Literal["grid", "clip-start", "clip-end", "playhead"]


@dataclass(frozen=True)
class Gap:
    track_id: str
    start_ms: int
    end_ms: int

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms


@dataclass(frozen=True)
class SnapPoint:
    position: float  # 像素
    kind: SnapKind
    strength: float
    clip_id: str | None = None


@dataclass(frozen=True)
class SnapResult:
    position: float
    snapped: bool
    point: SnapPoint | None = None


@dataclass(frozen=True)
class Placement:
    start_ms: int
    end_ms: int


@dataclass(frozen=True)
class InsertionResult:
    start_ms: int
    end_ms: int
    has_collision: bool
    alternatives: list[Placement] = field(default_factory=list)


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """左闭右开区间是否重叠；首尾相接不算重叠。"""
    return not (end_a <= start_b or start_a >= end_b)


class TimelineGeometry:
    """在一份轨道/片段快照上做交互所需的几何查询。

    Args:
        tracks: 轨道快照
        clips: 片段快照
        time_scale: 像素/毫秒
        snap_threshold_px: 吸附阈值（像素），默认取配置
        grid_snap_ms: 网格间隔（毫秒），默认取配置
    """

    def __init__(
        self,
        tracks: Iterable[Track],
        clips: Iterable[Clip],
        time_scale: float,
        snap_threshold_px: float | None = None,
        grid_snap_ms: int | None = None,
    ) -> None:
        settings = get_settings()
        self.tracks: tuple[Track, ...] = tuple(tracks)
        self.clips: tuple[Clip, ...] = tuple(clips)
        self.time_scale = time_scale
        self.snap_threshold_px = (
            snap_threshold_px if snap_threshold_px is not None else settings.snap_threshold_px
        )
        self.grid_snap_ms = grid_snap_ms if grid_snap_ms is not None else settings.grid_snap_ms
        self._grid_min_extent_ms = settings.grid_min_extent_ms
        self._strengths = {
            "grid": settings.snap_grid_strength,
            "clip-edge": settings.snap_clip_edge_strength,
            "playhead": settings.snap_playhead_strength,
        }

    # ------------------------------------------------------------------
    # 坐标换算

    def ms_to_pixels(self, ms: float) -> float:
        return ms * self.time_scale

    def pixels_to_ms(self, pixels: float) -> float:
        return pixels / self.time_scale

    def snap_to_grid(self, ms: float) -> int:
        return int(round(ms / self.grid_snap_ms)) * self.grid_snap_ms

    def clips_on_track(self, track_id: str, exclude_clip_id: str | None = None) -> list[Clip]:
        return sorted(
            (c for c in self.clips if c.track_id == track_id and c.id != exclude_clip_id),
            key=lambda c: c.timeline_start_ms,
        )

    # ------------------------------------------------------------------
    # 间隙

    def find_gaps(self) -> list[Gap]:
        """逐轨道查找相邻片段之间的空隙。"""
        gaps: list[Gap] = []
        for track in self.tracks:
            track_clips = self.clips_on_track(track.id)
            for current, following in zip(track_clips, track_clips[1:]):
                if following.timeline_start_ms > current.timeline_end_ms:
                    gaps.append(
                        Gap(
                            track_id=track.id,
                            start_ms=current.timeline_end_ms,
                            end_ms=following.timeline_start_ms,
                        )
                    )
        return gaps

    def gap_closure_commands(self, deleted_clip: Clip, fill_gaps: bool = True) -> list[UpdateClip]:
        """删除片段后，把同轨道后续片段左移被删片段的时长。

        左移后起点会小于 0 的片段保持不动。
        """
        if not fill_gaps:
            return []

        gap_ms = deleted_clip.duration_ms
        commands: list[UpdateClip] = []
        for clip in self.clips_on_track(deleted_clip.track_id, exclude_clip_id=deleted_clip.id):
            if clip.timeline_start_ms < deleted_clip.timeline_end_ms:
                continue
            if clip.timeline_start_ms - gap_ms < 0:
                continue
            commands.append(UpdateClip(before=clip, after=clip.shifted(-gap_ms)))
        return commands

    # ------------------------------------------------------------------
    # 波纹编辑

    def ripple_commands(
        self, moved_clip: Clip, new_start_ms: int, mode: RippleMode = "right"
    ) -> list[UpdateClip]:
        """移动片段起点时，把位移传播到同轨道的其他片段。

        - all: 同轨道所有其他片段
        - right: 原起点 >= 被移动片段原起点的片段
        - none: 不传播

        平移后起点为负的片段被排除，而不是被截断到 0。
        """
        if mode == "none":
            return []

        delta_ms = new_start_ms - moved_clip.timeline_start_ms
        if delta_ms == 0:
            return []

        siblings = self.clips_on_track(moved_clip.track_id, exclude_clip_id=moved_clip.id)
        if mode == "right":
            siblings = [c for c in siblings if c.timeline_start_ms >= moved_clip.timeline_start_ms]

        return [
            UpdateClip(before=clip, after=clip.shifted(delta_ms))
            for clip in siblings
            if clip.timeline_start_ms + delta_ms >= 0
        ]

    # ------------------------------------------------------------------
    # 磁性吸附

    def snap_points(
        self,
        exclude_clip_id: str | None = None,
        playhead_ms: float | None = None,
        include_grid: bool = True,
    ) -> list[SnapPoint]:
        """生成按像素位置升序的吸附候选点。"""
        points: list[SnapPoint] = []

        max_ms = max([c.timeline_end_ms for c in self.clips] + [self._grid_min_extent_ms])
        grid_range = range(0, max_ms + 1, self.grid_snap_ms) if include_grid else range(0)
        for ms in grid_range:
            points.append(
                SnapPoint(
                    position=self.ms_to_pixels(ms),
                    kind="grid",
                    strength=self._strengths["grid"],
                )
            )

        for clip in self.clips:
            if clip.id == exclude_clip_id:
                continue
            points.append(
                SnapPoint(
                    position=self.ms_to_pixels(clip.timeline_start_ms),
                    kind="clip-start",
                    strength=self._strengths["clip-edge"],
                    clip_id=clip.id,
                )
            )
            points.append(
                SnapPoint(
                    position=self.ms_to_pixels(clip.timeline_end_ms),
                    kind="clip-end",
                    strength=self._strengths["clip-edge"],
                    clip_id=clip.id,
                )
            )

        if playhead_ms is not None:
            points.append(
                SnapPoint(
                    position=self.ms_to_pixels(playhead_ms),
                    kind="playhead",
                    strength=self._strengths["playhead"],
                )
            )

        return sorted(points, key=lambda p: p.position)

    def find_snap_position(self, target_px: float, points: Iterable[SnapPoint]) -> SnapResult:
        """在阈值内选距离最近的候选点。

        距离相同时保留位置顺序上先出现的点，不比较 strength。
        """
        best: SnapPoint | None = None
        best_distance = float("inf")
        for point in points:
            distance = abs(target_px - point.position)
            if distance <= self.snap_threshold_px and distance < best_distance:
                best = point
                best_distance = distance

        if best is None:
            return SnapResult(position=target_px, snapped=False)
        return SnapResult(position=best.position, snapped=True, point=best)

    # ------------------------------------------------------------------
    # 碰撞与插入

    def check_collisions(
        self, clip_id: str | None, start_ms: int, end_ms: int, track_id: str
    ) -> list[Clip]:
        """返回同轨道上与 [start_ms, end_ms) 重叠的片段（排除 clip_id 自身）。"""
        return [
            clip
            for clip in self.clips
            if clip.track_id == track_id
            and clip.id != clip_id
            and intervals_overlap(start_ms, end_ms, clip.timeline_start_ms, clip.timeline_end_ms)
        ]

    def find_insertion_point(
        self, track_id: str, preferred_start_ms: int, duration_ms: int
    ) -> InsertionResult:
        """为新片段寻找插入位置。

        首选位置无碰撞时直接返回；否则按优先级给出备选：
        1. 紧接轨道最后一个片段之后
        2. 从左到右第一个放得下的间隙
        3. 轨道开头（第一个片段之前空间足够时）
        备选仅供参考，调用方自行决定。
        """
        end_ms = preferred_start_ms + duration_ms
        if not self.check_collisions(None, preferred_start_ms, end_ms, track_id):
            return InsertionResult(start_ms=preferred_start_ms, end_ms=end_ms, has_collision=False)

        track_clips = self.clips_on_track(track_id)
        alternatives: list[Placement] = []

        if track_clips:
            last_end = max(c.timeline_end_ms for c in track_clips)
            alternatives.append(Placement(start_ms=last_end, end_ms=last_end + duration_ms))

        for current, following in zip(track_clips, track_clips[1:]):
            if following.timeline_start_ms - current.timeline_end_ms >= duration_ms:
                alternatives.append(
                    Placement(
                        start_ms=current.timeline_end_ms,
                        end_ms=current.timeline_end_ms + duration_ms,
                    )
                )
                break

        if track_clips and track_clips[0].timeline_start_ms >= duration_ms:
            alternatives.append(Placement(start_ms=0, end_ms=duration_ms))

        return InsertionResult(
            start_ms=preferred_start_ms,
            end_ms=end_ms,
            has_collision=True,
            alternatives=alternatives,
        )
