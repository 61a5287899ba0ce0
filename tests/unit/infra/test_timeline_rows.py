from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.domain.models.timeline import ClipType, TimelineState, TrackType
from src.infra.persistence.timeline_rows import (
    build_export_snapshot,
    clip_to_row,
    row_to_clip,
    row_to_track,
    track_to_row,
)


def _clip_row(**overrides):
    row = {
        "id": "c1",
        "track_id": "t1",
        "asset_id": "asset-1",
        "type": "video",
        "source_start_ms": 0,
        "source_end_ms": 4000,
        "timeline_start_ms": 1000,
        "timeline_end_ms": 5000,
        "asset_duration_ms": 4000,
        "volume": 0.8,
        "speed": 1.0,
        "properties": {},
    }
    row.update(overrides)
    return row


def test_row_to_track() -> None:
    created = datetime(2024, 1, 1, tzinfo=timezone.utc)

    track = row_to_track(
        {"id": "t1", "project_id": "p1", "index": 2, "type": "audio", "created_at": created}
    )

    assert (track.id, track.index, track.type, track.created_at) == ("t1", 2, TrackType.AUDIO, created)


def test_row_to_clip_keeps_valid_rows() -> None:
    clip = row_to_clip(_clip_row())

    assert (clip.timeline_start_ms, clip.timeline_end_ms) == (1000, 5000)
    assert clip.asset_id == "asset-1"
    assert clip.volume == pytest.approx(0.8)


@pytest.mark.parametrize(
    ("overrides", "expected_end"),
    [
        ({"type": "image", "timeline_end_ms": 1000}, 6000),
        ({"type": "text", "timeline_end_ms": 0}, 6000),
        ({"type": "video", "timeline_end_ms": 1000, "asset_duration_ms": 8000}, 9000),
        ({"type": "audio", "timeline_end_ms": 1000, "asset_duration_ms": None}, 2000),
    ],
)
def test_row_to_clip_backfills_duration(overrides, expected_end) -> None:
    assert row_to_clip(_clip_row(**overrides)).timeline_end_ms == expected_end


def test_row_to_clip_resolves_missing_asset_id() -> None:
    external = row_to_clip(
        _clip_row(asset_id=None, properties={"externalAsset": {"id": "external_abc", "url": "u"}})
    )
    placeholder = row_to_clip(_clip_row(asset_id=None))

    assert external.asset_id == "external_abc"
    assert placeholder.asset_id == "missing_c1"


@pytest.mark.parametrize(
    ("track_type", "db_type"),
    [
        (TrackType.CAPTION, "text"),
        (TrackType.STICKERS, "video"),
        (TrackType.AUDIO, "audio"),
    ],
)
def test_track_to_row_maps_types(track_factory, track_type, db_type) -> None:
    row = track_to_row(track_factory(track_id="t1", track_type=track_type), "p1")

    assert row["type"] == db_type
    assert row["project_id"] == "p1"


def test_clip_to_row_rejects_zero_duration_media(clip_factory) -> None:
    clip = clip_factory(start_ms=1000, end_ms=1000)

    with pytest.raises(ValueError, match="Invalid clip duration"):
        clip_to_row(clip)


def test_clip_to_row_backfills_still_clip(clip_factory) -> None:
    row = clip_to_row(clip_factory(start_ms=1000, end_ms=1000, clip_type=ClipType.CAPTION))

    assert row["timeline_end_ms"] == 6000
    assert row["type"] == "text"


def test_clip_to_row_nulls_external_and_placeholder_ids(clip_factory) -> None:
    uploaded = clip_to_row(clip_factory(asset_id="asset-1"))
    external = clip_to_row(clip_factory(asset_id="external_123"))
    placeholder = clip_to_row(clip_factory(asset_id="missing_c1"))

    assert uploaded["asset_id"] == "asset-1"
    assert external["asset_id"] is None
    assert placeholder["asset_id"] is None
    assert uploaded["properties"]["isSfx"] is False


def test_export_snapshot_orders_and_filters(track_factory, clip_factory) -> None:
    state = TimelineState.from_lists(
        [
            track_factory(track_id="audio", index=1, track_type=TrackType.AUDIO),
            track_factory(track_id="video", index=0),
        ],
        [
            clip_factory(clip_id="late", track_id="video", start_ms=5000, end_ms=6000),
            clip_factory(clip_id="early", track_id="video", start_ms=0, end_ms=1000),
            clip_factory(clip_id="ghost", track_id="video", start_ms=2000, end_ms=3000, asset_id="missing_ghost"),
            clip_factory(
                clip_id="title",
                track_id="video",
                start_ms=3000,
                end_ms=4000,
                clip_type=ClipType.TEXT,
                asset_id="missing_title",
            ),
            clip_factory(
                clip_id="music",
                track_id="audio",
                clip_type=ClipType.AUDIO,
                asset_id="external_1",
                properties={"externalAsset": {"id": "external_1", "url": "https://cdn/m.mp3"}},
            ),
        ],
    )

    snapshot = build_export_snapshot(state)

    assert [t["id"] for t in snapshot["tracks"]] == ["video", "audio"]
    assert [c["id"] for c in snapshot["clips"]] == ["early", "title", "late", "music"]
    music = snapshot["clips"][-1]
    assert music["assetUrl"] == "https://cdn/m.mp3"
    assert music["assetId"] is None
    assert music["trackIndex"] == 1
    assert snapshot["clips"][0]["assetId"] == "asset-1"
    assert snapshot["clips"][0]["timelineStartMs"] == 0


def test_muted_clip_survives_save_and_reload(clip_factory) -> None:
    row = clip_to_row(clip_factory(clip_id="c1", track_id="t1", volume=0.0))

    assert row["volume"] == 0.0
    assert row_to_clip(row).volume == 0.0
    assert row_to_clip(_clip_row(volume=None)).volume == 1.0
