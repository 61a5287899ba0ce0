"""集中化配置管理。"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: Literal["dev", "staging", "prod"] = "dev"

    # 吸附（磁性时间线）配置
    snap_threshold_px: float = 8.0  # 吸附像素阈值
    grid_snap_ms: int = 250  # 网格间隔（0.25 秒）
    grid_min_extent_ms: int = 30000  # 网格至少覆盖 30 秒
    snap_grid_strength: float = 0.3
    snap_clip_edge_strength: float = 0.8
    snap_playhead_strength: float = 0.6

    # 时间缩放：像素/毫秒，100% 缩放时约 30 秒一格
    base_time_scale: float = 0.00333

    # 拖拽/缩放命令合并窗口（约 60fps）
    debounce_delay_ms: int = 16

    # 编辑器默认行为
    ripple_mode: Literal["all", "right", "none"] = "none"
    auto_close_gaps: bool = True
    magnetic_snapping: bool = True
    grid_snapping: bool = True

    # 媒体默认时长（毫秒）
    default_image_duration_ms: int = 5000
    default_gif_duration_ms: int = 3000
    default_video_duration_ms: int = 10000
    default_audio_duration_ms: int = 30000
    min_clip_duration_ms: int = 1000

    # 日志
    log_dir: str = "logs"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


@lru_cache()
def get_settings() -> AppSettings:
    return AppSettings()


# 便捷别名
settings = get_settings()
