"""集中化配置管理。"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LESSON_TIMELINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: Literal["dev", "staging", "prod"] = "dev"

    # 时间线构建默认时长（毫秒）
    intro_duration_ms: int = 4000
    item_duration_ms: int = 3000
    outro_duration_ms: int = 5000

    # 播放器调度
    transition_delay_ms: int = 100  # 片段切换的两阶段提交窗口
    frame_interval_ms: int = 16  # 约 60fps 的帧回调间隔
    auto_start: bool = True

    # 编辑器默认布局时长
    default_layout_duration_ms: int = 5000

    # 日志
    log_dir: str = "logs"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_to_file: bool = True


@lru_cache()
def get_settings() -> AppSettings:
    return AppSettings()
