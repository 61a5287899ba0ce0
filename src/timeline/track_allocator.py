"""轨道排序分配。

索引空间按轨道类型切成互不重叠的连续分段（band），从上到下依次是
text、stickers、video、caption、audio。ADD_TRACK 会把 index 重新归一化
为 0..n-1，所以分段只在插入那一刻充当排序依据。
"""

from __future__ import annotations

from typing import Iterable, NamedTuple

import structlog

from src.domain.models.commands import AddTrack, Batch, UpdateTrack
from src.domain.models.timeline import Track, TrackType
from src.infra.observability import engine_metrics

logger = structlog.get_logger(__name__)


class Band(NamedTuple):
    start: int
    end: int  # 包含

    @property
    def capacity(self) -> int:
        return self.end - self.start + 1


TRACK_BANDS: dict[TrackType, Band] = {
    TrackType.TEXT: Band(1, 4),
    TrackType.STICKERS: Band(5, 8),
    TrackType.VIDEO: Band(9, 14),
    TrackType.CAPTION: Band(15, 17),
    TrackType.AUDIO: Band(18, 22),
}

_BAND_ORDER: dict[TrackType, int] = {
    track_type: rank
    for rank, track_type in enumerate(sorted(TRACK_BANDS, key=lambda t: TRACK_BANDS[t].start))
}


def get_next_available_index(tracks: Iterable[Track], track_type: TrackType) -> int:
    """返回该类型分段内最小的未占用 index。

    分段已满时返回分段上界，允许与已有轨道 index 冲突（降级而不是报错）。
    """
    band = TRACK_BANDS[track_type]
    used = {t.index for t in tracks if t.type == track_type}
    for index in range(band.start, band.end + 1):
        if index not in used:
            return index

    logger.warning(
        "track_allocator.band_exhausted",
        track_type=track_type.value,
        band_start=band.start,
        band_end=band.end,
    )
    engine_metrics.add_band_overflow(track_type.value)
    return band.end


def shift_tracks_for_new_track(tracks: Iterable[Track], new_index: int) -> Batch:
    """把 index >= new_index 的轨道整体下移一位，合成一个可撤销的 BATCH。"""
    to_shift = sorted(
        (t for t in tracks if t.index >= new_index), key=lambda t: t.index, reverse=True
    )
    return Batch(
        commands=tuple(
            UpdateTrack(before=t, after=t.model_copy(update={"index": t.index + 1}))
            for t in to_shift
        )
    )


def plan_track_insertion(tracks: Iterable[Track], track_type: TrackType) -> int:
    """在连续排序中为新轨道找到其分段对应的位置。

    新轨道放在最后一条“分段不晚于自己”的轨道之后；同类型轨道按创建先后
    自上而下排列。
    """
    rank = _BAND_ORDER[track_type]
    ordered = sorted(tracks, key=lambda t: t.index)
    position = 0
    for offset, track in enumerate(ordered):
        if _BAND_ORDER[track.type] <= rank:
            position = offset + 1
    return position


def insert_track_commands(tracks: Iterable[Track], track: Track) -> Batch:
    """按分段策略插入轨道：先下移后续轨道，再 ADD_TRACK，一步可撤销。

    传入 track 的 index 会被改写为规划出的位置。
    """
    tracks = list(tracks)
    position = plan_track_insertion(tracks, track.type)
    placed = track.model_copy(update={"index": position})
    shift = shift_tracks_for_new_track(tracks, position)
    logger.debug(
        "track_allocator.insert",
        track_id=track.id,
        track_type=track.type.value,
        position=position,
        shifted=len(shift.commands),
    )
    return Batch(commands=(*shift.commands, AddTrack(track=placed)))


def reindex_commands(tracks: Iterable[Track]) -> Batch:
    """为 index 不连续的快照生成恢复 0..n-1 的 UPDATE_TRACK。"""
    ordered = sorted(tracks, key=lambda t: t.index)
    return Batch(
        commands=tuple(
            UpdateTrack(before=t, after=t.model_copy(update={"index": position}))
            for position, t in enumerate(ordered)
            if t.index != position
        )
    )
