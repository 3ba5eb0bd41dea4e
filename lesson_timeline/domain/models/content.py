"""课件内容与时间覆盖配置模型。"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VocabularyItem(_CamelModel):
    id: str
    term: str
    definition: str
    icon: Optional[str] = None


class ConceptItem(_CamelModel):
    id: str
    text: str
    icon: Optional[str] = None
    emphasis: Optional[Literal["normal", "strong", "subtle"]] = None


class ElementTiming(_CamelModel):
    """单个元素的时间配置。

    不做范围校验：负数起点等异常值按原样接受，由调度器自然降级。
    """

    start_time: float = 0
    duration: float = 0
    delay: Optional[float] = None

    @property
    def effective_start(self) -> float:
        return self.start_time + (self.delay or 0)


class SlideTiming(_CamelModel):
    """幻灯片级别的时间覆盖。

    vocabulary / concepts 以条目 id 为键；其余字段为独立高亮元素。
    """

    title: Optional[ElementTiming] = None
    subtitle: Optional[ElementTiming] = None
    bridge_text: Optional[ElementTiming] = None
    floating_icon: Optional[ElementTiming] = None

    vocabulary_section: Optional[ElementTiming] = None
    vocabulary: dict[str, ElementTiming] = Field(default_factory=dict)

    concepts_section: Optional[ElementTiming] = None
    concepts: dict[str, ElementTiming] = Field(default_factory=dict)
