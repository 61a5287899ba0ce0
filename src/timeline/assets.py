"""把素材放到时间线上：素材描述、时长推断与 ADD_CLIP 构造。"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal
from uuid import uuid4

import structlog

from src.domain.models.commands import AddClip, Batch, Command
from src.domain.models.timeline import Clip, ClipType, TimelineState, Track, TrackType
from src.infra.config.settings import get_settings
from src.timeline.track_allocator import insert_track_commands

logger = structlog.get_logger(__name__)

ExternalKind = Literal["image", "video", "music", "sound"]


@dataclass(frozen=True)
class AssetDescriptor:
    """用户上传的素材。"""

    id: str
    mime_type: str
    duration_ms: int | None = None
    name: str | None = None


@dataclass(frozen=True)
class ExternalAssetDescriptor:
    """第三方素材（图库/贴纸/音效），只有远程 URL。"""

    url: str
    kind: ExternalKind
    is_sticker: bool = False
    duration_s: float | None = None
    name: str | None = None
    id: str = field(default_factory=lambda: f"external_{uuid4().hex}")

    @property
    def mime_type(self) -> str:
        if self.kind == "video":
            return "video/mp4"
        if self.kind in ("music", "sound"):
            return "audio/mpeg"
        if self.is_sticker or self.url.lower().endswith(".gif"):
            return "image/gif"
        return "image/jpeg"


@dataclass(frozen=True)
class PlacedAsset:
    command: Batch
    track: Track
    clip: Clip


Asset = AssetDescriptor | ExternalAssetDescriptor


def infer_duration_ms(asset: Asset) -> int:
    """推断素材放上时间线时的默认时长（毫秒）。"""
    settings = get_settings()
    if isinstance(asset, ExternalAssetDescriptor):
        if asset.kind == "video":
            return settings.default_video_duration_ms
        if asset.kind in ("music", "sound"):
            if asset.duration_s:
                return round(asset.duration_s * 1000)
            return settings.default_audio_duration_ms
        if asset.is_sticker or asset.url.lower().endswith(".gif"):
            return settings.default_gif_duration_ms
        return settings.default_image_duration_ms

    if asset.duration_ms and asset.duration_ms > 0:
        return int(asset.duration_ms)
    if asset.mime_type.startswith("image/"):
        return settings.default_image_duration_ms
    return settings.min_clip_duration_ms


def track_type_for(asset: Asset) -> TrackType:
    if isinstance(asset, ExternalAssetDescriptor):
        if asset.kind in ("music", "sound"):
            return TrackType.AUDIO
        if asset.is_sticker:
            return TrackType.STICKERS
        return TrackType.VIDEO
    if asset.mime_type.startswith("audio/"):
        return TrackType.AUDIO
    return TrackType.VIDEO


def clip_type_for(asset: Asset) -> ClipType:
    if asset.mime_type.startswith("audio/"):
        return ClipType.AUDIO
    if asset.mime_type.startswith("image/"):
        return ClipType.IMAGE
    return ClipType.VIDEO


def _clip_properties(asset: Asset) -> dict[str, Any]:
    if isinstance(asset, ExternalAssetDescriptor):
        return {
            "externalAsset": {
                "id": asset.id,
                "url": asset.url,
                "name": asset.name or f"External {asset.kind}",
                "mime_type": asset.mime_type,
                "duration": infer_duration_ms(asset),
                "isExternal": True,
            }
        }
    if asset.mime_type.startswith("image/"):
        # 默认 16:9 裁剪框
        return {
            "crop": {"width": 320, "height": 180, "left": 0, "top": 0},
            "mediaPos": {"x": 0, "y": 0},
            "mediaScale": 1,
        }
    return {}


def add_asset_commands(
    state: TimelineState,
    asset: Asset,
    project_id: str,
    start_ms: int | None = None,
) -> PlacedAsset:
    """生成把素材放到时间线上的命令。

    复用同类型的第一条轨道，没有则按分段策略新建；未指定 start_ms 时
    片段接在该轨道已有内容之后。新建轨道和片段在同一个 BATCH 里，一次撤销。
    """
    track_type = track_type_for(asset)
    duration_ms = infer_duration_ms(asset)
    commands: list[Command] = []

    track = next((t for t in state.ordered_tracks() if t.type == track_type), None)
    if track is None:
        insertion = insert_track_commands(
            state.tracks.values(),
            Track(
                id=str(uuid4()),
                project_id=project_id,
                index=0,
                type=track_type,
                created_at=datetime.now(timezone.utc),
            ),
        )
        commands.extend(insertion.commands)
        track = insertion.commands[-1].track  # type: ignore[union-attr]
        placed_start = start_ms if start_ms is not None else 0
    else:
        existing = state.clips_on_track(track.id)
        if start_ms is not None:
            placed_start = start_ms
        else:
            placed_start = max((c.timeline_end_ms for c in existing), default=0)

    clip = Clip(
        id=str(uuid4()),
        track_id=track.id,
        asset_id=asset.id,
        type=ClipType.IMAGE if track_type == TrackType.STICKERS else clip_type_for(asset),
        source_start_ms=0,
        source_end_ms=duration_ms,
        timeline_start_ms=placed_start,
        timeline_end_ms=placed_start + duration_ms,
        asset_duration_ms=duration_ms,
        properties=_clip_properties(asset),
        created_at=datetime.now(timezone.utc),
    )
    commands.append(AddClip(clip=clip))

    logger.info(
        "asset_placement.planned",
        asset_id=asset.id,
        track_id=track.id,
        track_type=track_type.value,
        new_track=len(commands) > 1,
        start_ms=placed_start,
        duration_ms=duration_ms,
    )
    return PlacedAsset(command=Batch(commands=tuple(commands)), track=track, clip=clip)
