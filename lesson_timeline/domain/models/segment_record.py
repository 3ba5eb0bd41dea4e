"""片段持久化（JSON）记录模型。

JSON 字段采用 camelCase，与前端导入导出格式一致。
"""

from __future__ import annotations

from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from lesson_timeline.domain.models.managed_segment import (
    AnimationType,
    ManagedSegment,
    TimingConfig,
    TimingHighlight,
)


class _RecordModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class TimingHighlightRecord(_RecordModel):
    id: str
    element_selector: str
    start_time: int = Field(..., ge=0)
    duration: int = Field(..., gt=0)
    animation_type: AnimationType
    color: Optional[str] = None
    intensity: Optional[float] = Field(default=None, ge=0.1, le=1.0)

    @classmethod
    def from_highlight(cls, highlight: TimingHighlight) -> "TimingHighlightRecord":
        return cls(
            id=highlight.id,
            element_selector=highlight.element_selector,
            start_time=round(highlight.start_time),
            duration=round(highlight.duration),
            animation_type=highlight.animation_type,
            color=highlight.color,
            intensity=highlight.intensity,
        )

    def to_highlight(self) -> TimingHighlight:
        return TimingHighlight(
            id=self.id,
            element_selector=self.element_selector,
            start_time=self.start_time,
            duration=self.duration,
            animation_type=self.animation_type,
            color=self.color,
            intensity=self.intensity,
        )


class TimingConfigRecord(_RecordModel):
    highlights: list[TimingHighlightRecord] = Field(default_factory=list)
    total_duration: int
    auto_advance: bool


class SegmentRecord(_RecordModel):
    id: str
    name: str
    description: str = ""
    duration: int = Field(..., gt=0)
    component: str
    is_enabled: bool = True
    order: int = Field(default=0, ge=0)
    timing_config: Optional[TimingConfigRecord] = None

    @classmethod
    def from_segment(cls, segment: ManagedSegment) -> "SegmentRecord":
        timing: TimingConfigRecord | None = None
        if segment.timing_config is not None:
            timing = TimingConfigRecord(
                highlights=[
                    TimingHighlightRecord.from_highlight(h) for h in segment.timing_config.highlights
                ],
                total_duration=round(segment.timing_config.total_duration),
                auto_advance=segment.timing_config.auto_advance,
            )
        return cls(
            id=segment.id,
            name=segment.name,
            description=segment.description,
            duration=round(segment.duration),
            component=segment.component,
            is_enabled=segment.is_enabled,
            order=segment.order,
            timing_config=timing,
        )

    def to_segment(self) -> ManagedSegment:
        timing: TimingConfig | None = None
        if self.timing_config is not None:
            timing = TimingConfig(
                highlights=tuple(h.to_highlight() for h in self.timing_config.highlights),
                total_duration=self.timing_config.total_duration,
                auto_advance=self.timing_config.auto_advance,
            )
        return ManagedSegment(
            id=self.id,
            name=self.name,
            description=self.description,
            duration=self.duration,
            component=self.component,
            is_enabled=self.is_enabled,
            order=self.order,
            timing_config=timing,
        )


_records_adapter = TypeAdapter(list[SegmentRecord])


def dump_segments(segments: Sequence[ManagedSegment], *, indent: int | None = 2) -> str:
    """序列化片段列表为 JSON 字符串。"""
    records = [SegmentRecord.from_segment(segment) for segment in segments]
    return _records_adapter.dump_json(records, by_alias=True, exclude_none=True, indent=indent).decode(
        "utf-8"
    )


def load_segments(data: str | bytes) -> list[ManagedSegment]:
    """从 JSON 解析片段列表

    Raises:
        pydantic.ValidationError: 记录不符合持久化格式
    """
    records = _records_adapter.validate_json(data)
    return [record.to_segment() for record in records]
