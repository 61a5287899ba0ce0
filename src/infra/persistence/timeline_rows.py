"""时间线实体与数据库行（snake_case dict）之间的映射，以及导出快照。

数据库行进入引擎前会补齐非正时长，引擎出来的实体写库前会把
外部素材/占位素材的 asset_id 置空。
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

import structlog

from src.domain.models.timeline import Clip, ClipType, TimelineState, Track, TrackType
from src.infra.config.settings import get_settings

logger = structlog.get_logger(__name__)

MISSING_ASSET_PREFIX = "missing_"
EXTERNAL_ASSET_PREFIX = "external_"

# 数据库只认识 video/audio/text 三种轨道类型
_DB_TRACK_TYPES = {
    TrackType.CAPTION: "text",
    TrackType.STICKERS: "video",
}

_STILL_CLIP_TYPES = {ClipType.IMAGE, ClipType.TEXT, ClipType.CAPTION}


def _number(value: Any, default: float = 0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if number == number else default  # NaN


def row_to_track(row: Mapping[str, Any]) -> Track:
    return Track(
        id=row["id"],
        project_id=row["project_id"],
        index=int(_number(row.get("index"))),
        type=TrackType(row["type"]),
        created_at=row.get("created_at") or datetime.now(timezone.utc),
    )


def row_to_clip(row: Mapping[str, Any]) -> Clip:
    """数据库行 -> Clip，时长非正的行按类型补默认时长。"""
    settings = get_settings()
    clip_type = ClipType(row["type"])
    start = int(_number(row.get("timeline_start_ms")))
    end = int(_number(row.get("timeline_end_ms")))

    if end <= start:
        if clip_type in (ClipType.IMAGE, ClipType.TEXT):
            end = start + settings.default_image_duration_ms
        else:
            end = start + int(_number(row.get("asset_duration_ms")) or settings.min_clip_duration_ms)
        logger.info(
            "timeline_rows.duration_backfilled",
            clip_id=row["id"],
            clip_type=clip_type.value,
            start_ms=start,
            end_ms=end,
        )

    properties = dict(row.get("properties") or {})
    asset_id = row.get("asset_id")
    if not asset_id:
        external = properties.get("externalAsset")
        asset_id = external["id"] if external else f"{MISSING_ASSET_PREFIX}{row['id']}"

    duration = end - start
    return Clip(
        id=row["id"],
        track_id=row["track_id"],
        asset_id=asset_id,
        type=clip_type,
        source_start_ms=int(_number(row.get("source_start_ms"))),
        source_end_ms=int(_number(row.get("source_end_ms"))) or duration,
        timeline_start_ms=start,
        timeline_end_ms=end,
        asset_duration_ms=int(_number(row.get("asset_duration_ms"))) or duration,
        volume=_number(row.get("volume"), default=1.0),
        speed=_number(row.get("speed")) or 1.0,
        properties=properties,
        created_at=row.get("created_at"),
    )


def track_to_row(track: Track, project_id: str) -> dict[str, Any]:
    if not track.id or not project_id:
        raise ValueError(f"Invalid track data: missing id ({track.id}) or projectId ({project_id})")
    created_at = track.created_at or datetime.now(timezone.utc)
    return {
        "id": track.id,
        "project_id": project_id,
        "index": track.index,
        "type": _DB_TRACK_TYPES.get(track.type, track.type.value),
        "created_at": created_at.isoformat(),
    }


def is_placeholder_asset(clip: Clip) -> bool:
    return bool(clip.asset_id and clip.asset_id.startswith(MISSING_ASSET_PREFIX))


def is_external_asset(clip: Clip) -> bool:
    if clip.properties.get("externalAsset"):
        return True
    return bool(clip.asset_id and clip.asset_id.startswith(EXTERNAL_ASSET_PREFIX))


def clip_to_row(clip: Clip) -> dict[str, Any]:
    """Clip -> 数据库行。

    静态类型（图片/文字/字幕）零时长时补默认时长，其余类型直接报错。
    """
    if not clip.id or not clip.track_id:
        raise ValueError(f"Invalid clip data: missing id ({clip.id}) or trackId ({clip.track_id})")

    start = round(clip.timeline_start_ms)
    end = round(clip.timeline_end_ms)
    if end <= start:
        if clip.type not in _STILL_CLIP_TYPES:
            raise ValueError(
                f"Invalid clip duration: end ({clip.timeline_end_ms}) must be after start "
                f"({clip.timeline_start_ms})"
            )
        end = start + get_settings().default_image_duration_ms

    duration = end - start
    asset_duration = (
        round(clip.asset_duration_ms)
        if clip.asset_duration_ms and clip.asset_duration_ms > 0
        else max(duration, get_settings().min_clip_duration_ms)
    )
    created_at = clip.created_at or datetime.now(timezone.utc)

    return {
        "id": clip.id,
        "track_id": clip.track_id,
        "asset_id": None if is_external_asset(clip) or is_placeholder_asset(clip) else clip.asset_id,
        "type": "text" if clip.type == ClipType.CAPTION else clip.type.value,
        "source_start_ms": round(clip.source_start_ms or 0),
        "source_end_ms": round(clip.source_end_ms or asset_duration),
        "timeline_start_ms": start,
        "timeline_end_ms": end,
        "asset_duration_ms": asset_duration,
        "volume": clip.volume,
        "speed": clip.speed or 1.0,
        "properties": {**clip.properties, "isSfx": bool(clip.properties.get("isSfx", False))},
        "created_at": created_at.isoformat(),
    }


def build_export_snapshot(state: TimelineState) -> dict[str, Any]:
    """给导出管线的扁平快照。

    外部素材解析为远程 URL；占位素材的片段被过滤（文字/字幕不依赖素材，保留）。
    """
    tracks = state.ordered_tracks()
    clips: list[dict[str, Any]] = []
    dropped: list[str] = []

    for track in tracks:
        for clip in state.clips_on_track(track.id):
            if is_placeholder_asset(clip) and clip.type not in (ClipType.TEXT, ClipType.CAPTION):
                dropped.append(clip.id)
                continue
            external = clip.properties.get("externalAsset")
            clips.append(
                {
                    **clip.model_dump(mode="json", by_alias=True),
                    "trackIndex": track.index,
                    "trackType": track.type.value,
                    "assetUrl": external.get("url") if external else None,
                    "assetId": None if external or is_placeholder_asset(clip) else clip.asset_id,
                }
            )

    if dropped:
        logger.warning("timeline_rows.export_dropped_placeholders", clip_ids=dropped)

    return {
        "tracks": [t.model_dump(mode="json", by_alias=True) for t in tracks],
        "clips": clips,
    }
