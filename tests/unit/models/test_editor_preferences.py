from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.domain.models.editor_preferences import EditorPreferences
from src.infra.config.settings import AppSettings


def test_from_settings_copies_toggles() -> None:
    settings = AppSettings(
        ripple_mode="right",
        auto_close_gaps=False,
        magnetic_snapping=False,
        snap_threshold_px=12,
        grid_snap_ms=500,
    )

    prefs = EditorPreferences.from_settings(settings)

    assert prefs.ripple_mode == "right"
    assert prefs.auto_close_gaps is False
    assert prefs.magnetic_snapping is False
    assert prefs.snap_threshold_px == 12
    assert prefs.grid_snap_ms == 500


def test_defaults_match_editor_behaviour() -> None:
    prefs = EditorPreferences()

    assert prefs.magnetic_snapping and prefs.grid_snapping and prefs.auto_close_gaps
    assert prefs.ripple_mode == "none"
    assert prefs.snap_threshold_px == 8.0


@pytest.mark.parametrize(
    "kwargs",
    [{"ripple_mode": "left"}, {"snap_threshold_px": 0}, {"grid_snap_ms": 0}],
)
def test_invalid_preferences_are_rejected(kwargs) -> None:
    with pytest.raises(ValidationError):
        EditorPreferences(**kwargs)
