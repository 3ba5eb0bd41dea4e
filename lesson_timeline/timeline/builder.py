"""时间线构建器

将词汇、概念条目与可选的时间覆盖配置转换为时间线定义。
"""

from __future__ import annotations

from typing import List, Optional, Sequence

import structlog

from lesson_timeline.domain.models.content import (
    ConceptItem,
    ElementTiming,
    SlideTiming,
    VocabularyItem,
)
from lesson_timeline.infra.config.settings import get_settings
from lesson_timeline.timeline.models import (
    HighlightKind,
    HighlightWindow,
    Segment,
    SegmentContent,
    TimelineDefinition,
)

logger = structlog.get_logger(__name__)

INTRO_CONTENT = SegmentContent(
    component="intro",
    title="Exploring the Concepts",
    subtitle="Understanding the fundamentals step by step",
    description="Follow how each term and concept connects to form the complete picture.",
    icon="lightbulb",
)

OUTRO_CONTENT = SegmentContent(
    component="outro",
    title="The Complete Picture",
    subtitle="Everything comes together",
    description="You now understand how the vocabulary and concepts form one working system.",
    icon="check-circle",
)

# 独立高亮元素：(覆盖字段名, element_id, 类型)，顺序即输出顺序
STANDALONE_HIGHLIGHTS: tuple[tuple[str, str, HighlightKind], ...] = (
    ("vocabulary_section", "vocabularySection", "section"),
    ("concepts_section", "conceptsSection", "section"),
    ("title", "title", "element"),
    ("subtitle", "subtitle", "element"),
    ("bridge_text", "bridgeText", "element"),
    ("floating_icon", "floatingIcon", "element"),
)


def describe_concept(concept: ConceptItem) -> str:
    """概念片段的说明文案。"""
    return f"{concept.text} is a fundamental element of the system, contributing to how the whole works together."


class TimelineBuilder:
    """时间线构建器

    纯计算：相同输入总是得到相同输出，不读取时钟也不使用随机数。
    """

    def __init__(
        self,
        *,
        intro_duration_ms: Optional[float] = None,
        item_duration_ms: Optional[float] = None,
        outro_duration_ms: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self._intro_duration = intro_duration_ms or settings.intro_duration_ms
        self._item_duration = item_duration_ms or settings.item_duration_ms
        self._outro_duration = outro_duration_ms or settings.outro_duration_ms

    def build(
        self,
        vocabulary_items: Sequence[VocabularyItem],
        concept_items: Sequence[ConceptItem],
        overrides: Optional[SlideTiming] = None,
    ) -> TimelineDefinition:
        """构建时间线

        Args:
            vocabulary_items: 词汇条目（按数组顺序排布）
            concept_items: 概念条目（排在词汇之后）
            overrides: 按条目 id 的时长覆盖与独立元素高亮

        Returns:
            时间线定义
        """
        segments: List[Segment] = [
            Segment(id="intro", start_time=0, duration=self._intro_duration, payload=INTRO_CONTENT)
        ]
        highlights: List[HighlightWindow] = []
        cursor = self._intro_duration

        vocabulary_timing = overrides.vocabulary if overrides else {}
        for item in vocabulary_items:
            duration = self._item_duration_for(vocabulary_timing.get(item.id))
            content = SegmentContent(
                component="vocabulary",
                title=item.term,
                subtitle="Vocabulary Term",
                description=item.definition,
                icon=item.icon or "book",
            )
            segments.append(Segment(id=item.id, start_time=cursor, duration=duration, payload=content))
            highlights.append(
                HighlightWindow(element_id=item.id, start_time=cursor, duration=duration, kind="vocabulary")
            )
            cursor += duration

        concept_timing = overrides.concepts if overrides else {}
        for concept in concept_items:
            duration = self._item_duration_for(concept_timing.get(concept.id))
            content = SegmentContent(
                component="concept",
                title=concept.text,
                subtitle="Key Concept",
                description=describe_concept(concept),
                icon=concept.icon or "zap",
            )
            segments.append(Segment(id=concept.id, start_time=cursor, duration=duration, payload=content))
            highlights.append(
                HighlightWindow(element_id=concept.id, start_time=cursor, duration=duration, kind="concept")
            )
            cursor += duration

        segments.append(
            Segment(id="outro", start_time=cursor, duration=self._outro_duration, payload=OUTRO_CONTENT)
        )

        if overrides is not None:
            highlights.extend(self._standalone_highlights(overrides))

        timeline = TimelineDefinition(segments=tuple(segments), highlights=tuple(highlights))
        logger.debug(
            "timeline_builder.built",
            segments=len(timeline.segments),
            highlights=len(timeline.highlights),
            total_duration_ms=timeline.total_duration,
        )
        return timeline

    def _item_duration_for(self, timing: Optional[ElementTiming]) -> float:
        # 缺省或非正数时长回退到默认值
        if timing is not None and timing.duration and timing.duration > 0:
            return timing.duration
        return self._item_duration

    def _standalone_highlights(self, overrides: SlideTiming) -> List[HighlightWindow]:
        windows: List[HighlightWindow] = []
        for field_name, element_id, kind in STANDALONE_HIGHLIGHTS:
            timing: Optional[ElementTiming] = getattr(overrides, field_name)
            if timing is None:
                continue
            windows.append(
                HighlightWindow(
                    element_id=element_id,
                    start_time=timing.effective_start,
                    duration=timing.duration,
                    kind=kind,
                )
            )
        return windows


def build_timeline(
    vocabulary_items: Sequence[VocabularyItem],
    concept_items: Sequence[ConceptItem],
    overrides: Optional[SlideTiming] = None,
) -> TimelineDefinition:
    """使用默认配置构建时间线。"""
    return TimelineBuilder().build(vocabulary_items, concept_items, overrides)
