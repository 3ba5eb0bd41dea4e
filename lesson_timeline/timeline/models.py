"""时间线数据模型"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional, Tuple

HighlightKind = Literal["vocabulary", "concept", "section", "element"]

HIGHLIGHT_KINDS: Tuple[HighlightKind, ...] = ("vocabulary", "concept", "section", "element")


@dataclass(frozen=True)
class SegmentContent:
    """片段的展示内容

    对调度器而言是不透明的负载，仅由渲染方解释。
    """

    component: str
    title: str = ""
    subtitle: str = ""
    description: str = ""
    icon: Optional[str] = None


@dataclass(frozen=True)
class Segment:
    """时间线片段"""

    id: str
    start_time: float
    duration: float
    payload: Optional[SegmentContent] = None

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration

    @property
    def component(self) -> Optional[str]:
        return self.payload.component if self.payload else None


@dataclass(frozen=True)
class HighlightWindow:
    """高亮时间窗

    与片段边界无关，可以和其他时间窗任意重叠。
    """

    element_id: str
    start_time: float
    duration: float
    kind: HighlightKind = "element"

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration

    def is_active_at(self, elapsed: float) -> bool:
        """左闭右开区间 [start, end)。"""
        return self.start_time <= elapsed < self.end_time


@dataclass(frozen=True)
class TimelineDefinition:
    """完整时间线

    片段按 start_time 升序排列；最后一个片段视为延伸到无穷远。
    不可变，生产者与播放器之间可以直接传递引用。
    """

    segments: Tuple[Segment, ...] = field(default_factory=tuple)
    highlights: Tuple[HighlightWindow, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # 允许传入 list，统一转换为 tuple
        object.__setattr__(self, "segments", tuple(self.segments))
        object.__setattr__(self, "highlights", tuple(self.highlights))

    @property
    def total_duration(self) -> float:
        if not self.segments:
            return 0
        return max(seg.end_time for seg in self.segments)

    def segment_index_at(self, elapsed: float) -> int:
        """返回 start_time <= elapsed 的最大下标

        elapsed 早于第一个片段时返回 0；空时间线返回 -1。
        """
        if not self.segments:
            return -1
        index = 0
        for i, segment in enumerate(self.segments):
            if segment.start_time <= elapsed:
                index = i
            else:
                break
        return index

    def active_highlights_at(self, elapsed: float) -> frozenset[str]:
        # 全量线性扫描，结果只依赖 elapsed
        return frozenset(w.element_id for w in self.highlights if w.is_active_at(elapsed))

    def find_issues(self) -> list[str]:
        """检测软性约束违例

        不抛出异常，调用方自行决定如何处理。

        Returns:
            问题描述列表，为空表示定义有效
        """
        issues: list[str] = []

        for prev, curr in zip(self.segments, self.segments[1:]):
            if curr.start_time < prev.start_time:
                issues.append(f"segment {curr.id!r} starts before {prev.id!r}")

        seen_ids: set[str] = set()
        for segment in self.segments:
            if segment.id in seen_ids:
                issues.append(f"duplicate segment id {segment.id!r}")
            seen_ids.add(segment.id)
            if segment.duration <= 0:
                issues.append(f"segment {segment.id!r} has non-positive duration")

        seen_windows: set[tuple[str, float, float]] = set()
        for window in self.highlights:
            key = (window.element_id, window.start_time, window.duration)
            if key in seen_windows:
                issues.append(f"duplicate highlight window for {window.element_id!r}")
            seen_windows.add(key)

        return issues
