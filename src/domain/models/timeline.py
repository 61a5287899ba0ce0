"""时间线实体模型：轨道、片段与内存快照。

实体是不可变的 pydantic 模型，Python 侧使用 snake_case 字段，
对外（前端/持久化 JSON）使用 camelCase 别名，两种写法都可以用来构造。
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TrackType(str, Enum):
    """轨道承载的媒体类别。"""

    VIDEO = "video"
    AUDIO = "audio"
    TEXT = "text"
    CAPTION = "caption"
    STICKERS = "stickers"


class ClipType(str, Enum):
    VIDEO = "video"
    IMAGE = "image"
    AUDIO = "audio"
    TEXT = "text"
    CAPTION = "caption"


class TimelineEntity(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class Track(TimelineEntity):
    """时间线上的一条轨道。

    同一项目内，任何结构性变更之后 index 都构成连续的 0..n-1。
    """

    id: str
    project_id: str
    index: int
    type: TrackType
    created_at: datetime | None = None


class Clip(TimelineEntity):
    """放置在轨道上的一段素材。

    source_* 描述素材内部的裁剪区间，timeline_* 描述在时间线上的位置，
    两者相互独立。调用方必须保证 timeline_end_ms > timeline_start_ms，
    引擎本身不做拒绝。
    """

    id: str
    track_id: str
    asset_id: str | None = None
    type: ClipType
    source_start_ms: int = 0
    source_end_ms: int = 0
    timeline_start_ms: int
    timeline_end_ms: int
    asset_duration_ms: int = 0
    volume: float = 1.0
    speed: float = 1.0
    properties: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None

    @property
    def duration_ms(self) -> int:
        return self.timeline_end_ms - self.timeline_start_ms

    def shifted(self, delta_ms: int) -> Clip:
        """返回整体平移 delta_ms 后的副本。"""
        return self.model_copy(
            update={
                "timeline_start_ms": self.timeline_start_ms + delta_ms,
                "timeline_end_ms": self.timeline_end_ms + delta_ms,
            }
        )


class TimelineState(BaseModel):
    """轨道与片段的扁平快照，按 id 索引。

    相等性是集合语义：字典插入顺序不参与比较，轨道顺序只由 index 决定。
    """

    model_config = ConfigDict(frozen=True)

    tracks: dict[str, Track] = Field(default_factory=dict)
    clips: dict[str, Clip] = Field(default_factory=dict)

    @classmethod
    def from_lists(
        cls, tracks: Iterable[Track] = (), clips: Iterable[Clip] = ()
    ) -> TimelineState:
        return cls.build({t.id: t for t in tracks}, {c.id: c for c in clips})

    @classmethod
    def build(cls, tracks: dict[str, Track], clips: dict[str, Clip]) -> TimelineState:
        """跳过校验直接构造（实体已经是校验过的模型）。"""
        return cls.model_construct(tracks=tracks, clips=clips)

    def ordered_tracks(self) -> list[Track]:
        return sorted(self.tracks.values(), key=lambda t: t.index)

    def clips_on_track(self, track_id: str) -> list[Clip]:
        return sorted(
            (c for c in self.clips.values() if c.track_id == track_id),
            key=lambda c: c.timeline_start_ms,
        )

    def get_track(self, track_id: str) -> Track | None:
        return self.tracks.get(track_id)

    def get_clip(self, clip_id: str) -> Clip | None:
        return self.clips.get(clip_id)

    @property
    def is_empty(self) -> bool:
        return not self.tracks and not self.clips
