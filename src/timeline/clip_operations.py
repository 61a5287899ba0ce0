"""片段编辑命令构造：拆分、裁剪、移动、属性调整、删除。

这些函数只生成命令，不修改快照；对调用方的非法请求抛出
TimelineError 子类，命令本身的应用仍然是全函数。
"""

from __future__ import annotations

from typing import Any, Iterable
from uuid import uuid4

import structlog

from src.domain.models.commands import (
    AddClip,
    Batch,
    Command,
    RemoveClip,
    RemoveTrack,
    UpdateClip,
)
from src.domain.models.timeline import Clip, TimelineState
from src.timeline.errors import ClipNotFoundError, InvalidEditError, TrackNotFoundError
from src.timeline.geometry import RippleMode, TimelineGeometry

logger = structlog.get_logger(__name__)


def require_clip(state: TimelineState, clip_id: str) -> Clip:
    clip = state.get_clip(clip_id)
    if clip is None:
        raise ClipNotFoundError(clip_id)
    return clip


def split_clip(clip: Clip, split_ms: int | None = None, new_clip_id: str | None = None) -> Batch:
    """在 split_ms 处把片段一分为二（默认取中点）。

    前半段原地更新，后半段作为新片段加入；素材裁剪区间随时间线偏移同步调整。
    """
    if split_ms is None:
        split_ms = (clip.timeline_start_ms + clip.timeline_end_ms) // 2
    if not clip.timeline_start_ms < split_ms < clip.timeline_end_ms:
        raise InvalidEditError(
            f"Split point {split_ms} outside clip "
            f"[{clip.timeline_start_ms}, {clip.timeline_end_ms})"
        )

    source_split_ms = clip.source_start_ms + (split_ms - clip.timeline_start_ms)
    first = clip.model_copy(update={"timeline_end_ms": split_ms, "source_end_ms": source_split_ms})
    second = clip.model_copy(
        update={
            "id": new_clip_id or str(uuid4()),
            "timeline_start_ms": split_ms,
            "source_start_ms": source_split_ms,
        }
    )
    return Batch(commands=(UpdateClip(before=clip, after=first), AddClip(clip=second)))


def trim_clip(clip: Clip, start_ms: int | None = None, end_ms: int | None = None) -> UpdateClip:
    new_start = clip.timeline_start_ms if start_ms is None else start_ms
    new_end = clip.timeline_end_ms if end_ms is None else end_ms
    if new_end <= new_start:
        raise InvalidEditError(f"Invalid clip range: end ({new_end}) must be after start ({new_start})")
    return UpdateClip(
        before=clip,
        after=clip.model_copy(update={"timeline_start_ms": new_start, "timeline_end_ms": new_end}),
    )


def move_clip(clip: Clip, new_start_ms: int, track_id: str | None = None) -> UpdateClip:
    """平移片段（保持时长），可同时换轨。"""
    if new_start_ms < 0:
        raise InvalidEditError(f"Clip cannot start before 0 (got {new_start_ms})")
    moved = clip.shifted(new_start_ms - clip.timeline_start_ms)
    if track_id is not None and track_id != clip.track_id:
        moved = moved.model_copy(update={"track_id": track_id})
    return UpdateClip(before=clip, after=moved)


def move_clip_with_ripple(
    geometry: TimelineGeometry, clip: Clip, new_start_ms: int, mode: RippleMode = "right"
) -> Batch:
    """移动片段并按 mode 把位移传播到同轨道的兄弟片段。"""
    ripple = geometry.ripple_commands(clip, new_start_ms, mode)
    return Batch(commands=(move_clip(clip, new_start_ms), *ripple))


def set_clip_volume(clip: Clip, volume: float) -> UpdateClip:
    if volume < 0:
        raise InvalidEditError(f"Volume must be non-negative (got {volume})")
    return UpdateClip(before=clip, after=clip.model_copy(update={"volume": volume}))


def set_clip_speed(clip: Clip, speed: float) -> UpdateClip:
    if speed <= 0:
        raise InvalidEditError(f"Speed must be positive (got {speed})")
    return UpdateClip(before=clip, after=clip.model_copy(update={"speed": speed}))


def set_clip_properties(clip: Clip, **properties: Any) -> UpdateClip:
    """合并更新 properties（按片段类型约定的不透明载荷）。"""
    merged = {**clip.properties, **properties}
    return UpdateClip(before=clip, after=clip.model_copy(update={"properties": merged}))


def delete_clips(
    state: TimelineState,
    clip_ids: Iterable[str],
    close_gaps: bool = False,
    time_scale: float = 1.0,
) -> Batch:
    """删除一组片段，作为一个撤销单元。

    close_gaps 为真时，同轨道后续片段左移补齐；删除后变空的轨道一并删除。
    """
    targets = [require_clip(state, clip_id) for clip_id in dict.fromkeys(clip_ids)]
    target_ids = {c.id for c in targets}

    commands: list[Command] = [RemoveClip(clip=clip) for clip in targets]

    if close_gaps:
        # 从右往左逐个补齐，每一步都在上一步结果的快照上计算
        remaining = {k: v for k, v in state.clips.items() if k not in target_ids}
        for deleted in sorted(targets, key=lambda c: c.timeline_start_ms, reverse=True):
            geometry = TimelineGeometry(state.tracks.values(), remaining.values(), time_scale)
            for update in geometry.gap_closure_commands(deleted):
                commands.append(update)
                remaining[update.after.id] = update.after

    emptied_track_ids = []
    for track_id in dict.fromkeys(c.track_id for c in targets):
        leftover = [c for c in state.clips_on_track(track_id) if c.id not in target_ids]
        track = state.get_track(track_id)
        if track is not None and not leftover:
            commands.append(RemoveTrack(track=track))
            emptied_track_ids.append(track_id)

    logger.debug(
        "clip_operations.delete",
        clips=len(targets),
        close_gaps=close_gaps,
        removed_tracks=emptied_track_ids,
    )
    return Batch(commands=tuple(commands))


def remove_track_with_clips(state: TimelineState, track_id: str) -> Batch:
    """删除轨道：先逐个 REMOVE_CLIP 再 REMOVE_TRACK。

    撤销时逆序执行，轨道和全部片段都能恢复。
    """
    track = state.get_track(track_id)
    if track is None:
        raise TrackNotFoundError(track_id)
    clips = state.clips_on_track(track_id)
    return Batch(
        commands=(
            *(RemoveClip(clip=clip) for clip in clips),
            RemoveTrack(track=track, affected_clips=tuple(clips)),
        )
    )
