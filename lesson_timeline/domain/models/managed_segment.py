"""编辑器侧的片段与高亮模型。"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Literal, Optional, Tuple

from lesson_timeline.timeline.models import HighlightWindow, SegmentContent

AnimationType = Literal["glow", "pulse", "scale", "border", "swirl"]

ANIMATION_TYPES: Tuple[AnimationType, ...] = ("glow", "pulse", "scale", "border", "swirl")


@dataclass(frozen=True)
class SegmentDefinition:
    """新增片段时的原始布局配置。"""

    id: str
    name: str
    duration: float
    component: str
    description: str = ""


@dataclass(frozen=True)
class TimingHighlight:
    """作者定义的高亮

    start_time 相对于所属片段的起点。
    """

    id: str
    element_selector: str
    start_time: float
    duration: float
    animation_type: AnimationType = "glow"
    color: Optional[str] = None
    intensity: Optional[float] = None

    def to_window(self, offset: float = 0) -> HighlightWindow:
        return HighlightWindow(
            element_id=self.element_selector,
            start_time=offset + self.start_time,
            duration=self.duration,
            kind="element",
        )


@dataclass(frozen=True)
class TimingConfig:
    highlights: Tuple[TimingHighlight, ...] = field(default_factory=tuple)
    total_duration: float = 0
    auto_advance: bool = True


@dataclass(frozen=True)
class ManagedSegment:
    """带编辑元数据的片段

    order 在所属集合内为 0..n-1 的稠密序号（删除片段后不重排）。
    """

    id: str
    name: str
    duration: float
    component: str
    description: str = ""
    start_time: float = 0
    is_enabled: bool = True
    order: int = 0
    timing_config: Optional[TimingConfig] = None

    @classmethod
    def from_definition(cls, definition: SegmentDefinition, *, order: int) -> "ManagedSegment":
        return cls(
            id=definition.id,
            name=definition.name,
            description=definition.description,
            duration=definition.duration,
            component=definition.component,
            is_enabled=True,
            order=order,
        )

    @property
    def highlights(self) -> Tuple[TimingHighlight, ...]:
        if self.timing_config is None:
            return ()
        return self.timing_config.highlights

    @property
    def payload(self) -> SegmentContent:
        return SegmentContent(
            component=self.component,
            title=self.name,
            description=self.description,
        )

    def with_highlights(self, highlights: Tuple[TimingHighlight, ...]) -> "ManagedSegment":
        """替换高亮列表，必要时惰性创建 timing_config。"""
        config = self.timing_config or TimingConfig(total_duration=self.duration, auto_advance=True)
        return replace(self, timing_config=replace(config, highlights=tuple(highlights)))
