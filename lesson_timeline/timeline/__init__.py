"""时间线模块

提供时间线定义的构建与播放调度功能。
"""

from lesson_timeline.timeline.models import (
    HighlightWindow,
    Segment,
    SegmentContent,
    TimelineDefinition,
)
from lesson_timeline.timeline.builder import TimelineBuilder, build_timeline
from lesson_timeline.timeline.player import PlaybackState, PlayerSnapshot, TimelinePlayer

__all__ = [
    "HighlightWindow",
    "Segment",
    "SegmentContent",
    "TimelineDefinition",
    "TimelineBuilder",
    "build_timeline",
    "PlaybackState",
    "PlayerSnapshot",
    "TimelinePlayer",
]
