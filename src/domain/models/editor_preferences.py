"""时间线编辑偏好（每个编辑会话可单独调整）。"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from src.infra.config.settings import AppSettings


class EditorPreferences(BaseModel):
    """描述拖拽、删除时引擎辅助行为的开关。"""

    magnetic_snapping: bool = True
    grid_snapping: bool = True
    ripple_mode: Literal["all", "right", "none"] = "none"
    auto_close_gaps: bool = True
    snap_threshold_px: float = Field(8.0, gt=0)
    grid_snap_ms: int = Field(250, ge=1)

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "EditorPreferences":
        """根据全局配置构造默认值。"""

        return cls(
            magnetic_snapping=settings.magnetic_snapping,
            grid_snapping=settings.grid_snapping,
            ripple_mode=settings.ripple_mode,
            auto_close_gaps=settings.auto_close_gaps,
            snap_threshold_px=settings.snap_threshold_px,
            grid_snap_ms=settings.grid_snap_ms,
        )
