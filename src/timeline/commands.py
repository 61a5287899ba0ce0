"""命令代数：apply / inverse。

apply_command 是全函数：任何命令都能应用到任何快照上，
引用不存在的 id 时静默跳过（命令可能被重放到已经前进过的旧快照上）。
"""

from __future__ import annotations

from typing import Iterator

import structlog

from src.domain.models.commands import (
    AddClip,
    AddTrack,
    Batch,
    Command,
    RemoveClip,
    RemoveTrack,
    Reset,
    UpdateClip,
    UpdateTrack,
)
from src.domain.models.timeline import Clip, TimelineState, Track
from src.timeline.errors import NonInvertibleCommandError

logger = structlog.get_logger(__name__)


def apply_command(state: TimelineState, command: Command) -> TimelineState:
    """将命令应用到快照上，返回新快照（输入快照不被修改）。"""
    if isinstance(command, Batch):
        for sub_command in command.commands:
            state = apply_command(state, sub_command)
        return state

    if isinstance(command, AddTrack):
        return TimelineState.build(_insert_track(state.tracks, command.track), state.clips)

    if isinstance(command, RemoveTrack):
        return _remove_track(state, command.track.id)

    if isinstance(command, UpdateTrack):
        if command.before.id not in state.tracks:
            logger.debug("timeline_command.stale_track", track_id=command.before.id)
            return state
        tracks = _replace(state.tracks, command.before.id, command.after)
        return TimelineState.build(tracks, state.clips)

    if isinstance(command, AddClip):
        clips = dict(state.clips)
        clips[command.clip.id] = command.clip
        return TimelineState.build(state.tracks, clips)

    if isinstance(command, RemoveClip):
        if command.clip.id not in state.clips:
            logger.debug("timeline_command.stale_clip", clip_id=command.clip.id)
            return state
        clips = {k: v for k, v in state.clips.items() if k != command.clip.id}
        return TimelineState.build(state.tracks, clips)

    if isinstance(command, UpdateClip):
        if command.before.id not in state.clips:
            logger.debug("timeline_command.stale_clip", clip_id=command.before.id)
            return state
        clips = _replace(state.clips, command.before.id, command.after)
        return TimelineState.build(state.tracks, clips)

    if isinstance(command, Reset):
        return TimelineState.from_lists(command.tracks, command.clips)

    logger.warning("timeline_command.unknown_type", command=type(command).__name__)
    return state


def inverse_command(command: Command) -> Command:
    """求逆命令。

    BATCH 逆序并逐个求逆，保证最后生效的子命令最先被撤销。
    REMOVE_TRACK 的逆只恢复轨道本身，不会重放 affected_clips。
    """
    if isinstance(command, Batch):
        return Batch(commands=tuple(inverse_command(c) for c in reversed(command.commands)))
    if isinstance(command, AddTrack):
        return RemoveTrack(track=command.track)
    if isinstance(command, RemoveTrack):
        return AddTrack(track=command.track)
    if isinstance(command, UpdateTrack):
        return UpdateTrack(before=command.after, after=command.before)
    if isinstance(command, AddClip):
        return RemoveClip(clip=command.clip)
    if isinstance(command, RemoveClip):
        return AddClip(clip=command.clip)
    if isinstance(command, UpdateClip):
        return UpdateClip(before=command.after, after=command.before)
    raise NonInvertibleCommandError(f"{command.type} has no inverse")


def is_invertible(command: Command) -> bool:
    return not any(isinstance(c, Reset) for c in iter_commands(command))


def iter_commands(command: Command) -> Iterator[Command]:
    """深度优先展开 BATCH，依次产出叶子命令。"""
    if isinstance(command, Batch):
        for sub_command in command.commands:
            yield from iter_commands(sub_command)
    else:
        yield command


def _insert_track(tracks: dict[str, Track], track: Track) -> dict[str, Track]:
    # 新轨道排在第一位，稳定排序后与已有轨道同 index 时新轨道在前（按位置插入语义）
    candidates = [track, *(t for t in tracks.values() if t.id != track.id)]
    return _renormalize(sorted(candidates, key=lambda t: t.index))


def _remove_track(state: TimelineState, track_id: str) -> TimelineState:
    if track_id not in state.tracks:
        logger.debug("timeline_command.stale_track", track_id=track_id)
    remaining = sorted(
        (t for t in state.tracks.values() if t.id != track_id), key=lambda t: t.index
    )
    clips = {k: c for k, c in state.clips.items() if c.track_id != track_id}
    return TimelineState.build(_renormalize(remaining), clips)


def _renormalize(ordered: list[Track]) -> dict[str, Track]:
    return {
        t.id: t if t.index == position else t.model_copy(update={"index": position})
        for position, t in enumerate(ordered)
    }


def _replace(
    items: dict[str, Track] | dict[str, Clip], key: str, value: Track | Clip
) -> dict:
    return {(value.id if k == key else k): (value if k == key else v) for k, v in items.items()}
