#!/usr/bin/env python
"""Pytest fixtures for lesson timeline project."""
# ruff: noqa: E402

import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from lesson_timeline.domain.models.content import ConceptItem, VocabularyItem
from lesson_timeline.domain.models.managed_segment import (
    ManagedSegment,
    SegmentDefinition,
    TimingHighlight,
)
from lesson_timeline.timeline.builder import build_timeline
from lesson_timeline.timeline.models import TimelineDefinition


class FakeClock:
    """可手动推进的毫秒时钟。"""

    def __init__(self, now: float = 0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def hash_timeline() -> TimelineDefinition:
    """intro[0,4000) hash[4000,7000) outro[7000,12000)"""
    return build_timeline(
        [VocabularyItem(id="hash", term="Hash", definition="A unique fingerprint of data.")],
        [],
    )


# =============================================================================
# Factory Fixtures
# =============================================================================


@pytest.fixture
def vocabulary_item_factory() -> Callable[..., VocabularyItem]:
    """创建 VocabularyItem 的工厂函数。"""

    def _create(item_id: str = "hash", term: str | None = None, **kwargs: Any) -> VocabularyItem:
        return VocabularyItem(
            id=item_id,
            term=term or item_id.title(),
            definition=kwargs.pop("definition", f"Definition of {item_id}"),
            **kwargs,
        )

    return _create


@pytest.fixture
def concept_item_factory() -> Callable[..., ConceptItem]:
    """创建 ConceptItem 的工厂函数。"""

    def _create(item_id: str = "consensus", text: str | None = None, **kwargs: Any) -> ConceptItem:
        return ConceptItem(id=item_id, text=text or item_id.title(), **kwargs)

    return _create


@pytest.fixture
def segment_definition_factory() -> Callable[..., SegmentDefinition]:
    """创建 SegmentDefinition 的工厂函数。"""

    def _create(
        segment_id: str = "layout",
        duration: float = 5000,
        component: str = "DefinitionLayout",
        **kwargs: Any,
    ) -> SegmentDefinition:
        return SegmentDefinition(
            id=segment_id,
            name=kwargs.pop("name", segment_id.title()),
            duration=duration,
            component=component,
            **kwargs,
        )

    return _create


@pytest.fixture
def managed_segment_factory() -> Callable[..., ManagedSegment]:
    """创建 ManagedSegment 的工厂函数。"""

    def _create(
        segment_id: str = "layout",
        order: int = 0,
        duration: float = 5000,
        is_enabled: bool = True,
        **kwargs: Any,
    ) -> ManagedSegment:
        return ManagedSegment(
            id=segment_id,
            name=kwargs.pop("name", segment_id.title()),
            duration=duration,
            component=kwargs.pop("component", "DefinitionLayout"),
            is_enabled=is_enabled,
            order=order,
            **kwargs,
        )

    return _create


@pytest.fixture
def highlight_factory() -> Callable[..., TimingHighlight]:
    """创建 TimingHighlight 的工厂函数。"""

    def _create(
        highlight_id: str = "h1",
        element_selector: str = "#title",
        start_time: float = 0,
        duration: float = 1000,
        **kwargs: Any,
    ) -> TimingHighlight:
        return TimingHighlight(
            id=highlight_id,
            element_selector=element_selector,
            start_time=start_time,
            duration=duration,
            **kwargs,
        )

    return _create
