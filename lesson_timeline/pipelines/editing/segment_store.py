"""编辑器片段存储。

reducer 风格：每个动作都是 ``(state, action) -> state`` 的纯函数，
``SegmentStore`` 只负责持有当前状态并通知订阅者。
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, Tuple, Union

import structlog

from lesson_timeline.domain.models.managed_segment import (
    ANIMATION_TYPES,
    ManagedSegment,
    SegmentDefinition,
    TimingHighlight,
)
from lesson_timeline.domain.models.segment_record import dump_segments, load_segments
from lesson_timeline.infra.config.settings import get_settings
from lesson_timeline.timeline.models import HighlightWindow, Segment, TimelineDefinition

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class EditorState:
    segments: Tuple[ManagedSegment, ...] = field(default_factory=tuple)
    current_segment_index: int = 0
    is_playing: bool = False
    is_paused: bool = False
    current_time: float = 0
    playback_speed: float = 1.0
    preview_mode: bool = False


# ----------------------------------------------------------------------
# 动作
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class AddSegment:
    definition: SegmentDefinition


@dataclass(frozen=True)
class RemoveSegment:
    segment_id: str


@dataclass(frozen=True)
class ReorderSegments:
    from_index: int
    to_index: int


@dataclass(frozen=True)
class ToggleEnabled:
    segment_id: str


@dataclass(frozen=True)
class UpdateDuration:
    segment_id: str
    duration: Any


@dataclass(frozen=True)
class AddHighlight:
    segment_id: str
    highlight: TimingHighlight


@dataclass(frozen=True)
class RemoveHighlight:
    segment_id: str
    highlight_id: str


@dataclass(frozen=True)
class UpdateHighlight:
    segment_id: str
    highlight_id: str
    changes: Mapping[str, Any]


@dataclass(frozen=True)
class Play:
    pass


@dataclass(frozen=True)
class Pause:
    pass


@dataclass(frozen=True)
class Stop:
    pass


@dataclass(frozen=True)
class GoToSegment:
    index: int


@dataclass(frozen=True)
class NextSegment:
    pass


@dataclass(frozen=True)
class PreviousSegment:
    pass


@dataclass(frozen=True)
class SetPlaybackSpeed:
    speed: Any


@dataclass(frozen=True)
class SetCurrentTime:
    time_ms: float


@dataclass(frozen=True)
class SetPreviewMode:
    enabled: bool


EditorAction = Union[
    AddSegment,
    RemoveSegment,
    ReorderSegments,
    ToggleEnabled,
    UpdateDuration,
    AddHighlight,
    RemoveHighlight,
    UpdateHighlight,
    Play,
    Pause,
    Stop,
    GoToSegment,
    NextSegment,
    PreviousSegment,
    SetPlaybackSpeed,
    SetCurrentTime,
    SetPreviewMode,
]

# 高亮允许更新的字段（id 不可改）
_HIGHLIGHT_FIELDS = frozenset(
    {"element_selector", "start_time", "duration", "animation_type", "color", "intensity"}
)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _is_positive_number(value: Any) -> bool:
    return _is_number(value) and value > 0


def _is_valid_duration(value: Any) -> bool:
    # 持久化按整数毫秒保存，取整后必须仍为正数
    return _is_positive_number(value) and round(value) >= 1


def _highlight_problem(highlight: TimingHighlight) -> Optional[str]:
    """返回高亮不满足持久化约束的原因，合法时返回 None。"""
    if not isinstance(highlight.element_selector, str) or not highlight.element_selector:
        return "element_selector"
    if not _is_number(highlight.start_time) or highlight.start_time < 0:
        return "start_time"
    if not _is_valid_duration(highlight.duration):
        return "duration"
    if highlight.animation_type not in ANIMATION_TYPES:
        return "animation_type"
    if highlight.color is not None and not isinstance(highlight.color, str):
        return "color"
    if highlight.intensity is not None and not (
        _is_number(highlight.intensity) and 0.1 <= highlight.intensity <= 1.0
    ):
        return "intensity"
    return None


def _find_segment(state: EditorState, segment_id: str) -> Optional[ManagedSegment]:
    return next((segment for segment in state.segments if segment.id == segment_id), None)


def _map_segment(
    state: EditorState, segment_id: str, fn: Callable[[ManagedSegment], ManagedSegment]
) -> EditorState:
    if not any(segment.id == segment_id for segment in state.segments):
        logger.debug("segment_store.unknown_segment", segment_id=segment_id)
        return state
    segments = tuple(fn(segment) if segment.id == segment_id else segment for segment in state.segments)
    return replace(state, segments=segments)


# ----------------------------------------------------------------------
# reducer
# ----------------------------------------------------------------------


def _add_segment(state: EditorState, action: AddSegment) -> EditorState:
    if not _is_valid_duration(action.definition.duration):
        logger.warning(
            "segment_store.duration_rejected",
            segment_id=action.definition.id,
            duration=repr(action.definition.duration),
        )
        return state
    segment = ManagedSegment.from_definition(action.definition, order=len(state.segments))
    return replace(state, segments=state.segments + (segment,))


def _remove_segment(state: EditorState, action: RemoveSegment) -> EditorState:
    # 不重排 order；片段自带的高亮随片段一起移除
    segments = tuple(segment for segment in state.segments if segment.id != action.segment_id)
    return replace(state, segments=segments)


def _reorder_segments(state: EditorState, action: ReorderSegments) -> EditorState:
    count = len(state.segments)
    if not (0 <= action.from_index < count and 0 <= action.to_index < count):
        logger.debug(
            "segment_store.reorder_out_of_range",
            from_index=action.from_index,
            to_index=action.to_index,
            count=count,
        )
        return state
    items = list(state.segments)
    moved = items.pop(action.from_index)
    items.insert(action.to_index, moved)
    segments = tuple(replace(segment, order=index) for index, segment in enumerate(items))
    return replace(state, segments=segments)


def _toggle_enabled(state: EditorState, action: ToggleEnabled) -> EditorState:
    return _map_segment(
        state, action.segment_id, lambda segment: replace(segment, is_enabled=not segment.is_enabled)
    )


def _update_duration(state: EditorState, action: UpdateDuration) -> EditorState:
    if not _is_valid_duration(action.duration):
        logger.warning(
            "segment_store.duration_rejected",
            segment_id=action.segment_id,
            duration=repr(action.duration),
        )
        return state

    def _apply(segment: ManagedSegment) -> ManagedSegment:
        updated = replace(segment, duration=action.duration)
        if segment.timing_config is not None:
            updated = replace(
                updated, timing_config=replace(segment.timing_config, total_duration=action.duration)
            )
        return updated

    return _map_segment(state, action.segment_id, _apply)


def _add_highlight(state: EditorState, action: AddHighlight) -> EditorState:
    problem = _highlight_problem(action.highlight)
    if problem is not None:
        logger.warning(
            "segment_store.highlight_rejected",
            segment_id=action.segment_id,
            highlight_id=action.highlight.id,
            field=problem,
        )
        return state
    return _map_segment(
        state,
        action.segment_id,
        lambda segment: segment.with_highlights(segment.highlights + (action.highlight,)),
    )


def _remove_highlight(state: EditorState, action: RemoveHighlight) -> EditorState:
    def _apply(segment: ManagedSegment) -> ManagedSegment:
        if segment.timing_config is None:
            return segment
        kept = tuple(h for h in segment.highlights if h.id != action.highlight_id)
        return segment.with_highlights(kept)

    return _map_segment(state, action.segment_id, _apply)


def _update_highlight(state: EditorState, action: UpdateHighlight) -> EditorState:
    changes = {key: value for key, value in action.changes.items() if key in _HIGHLIGHT_FIELDS}
    ignored = set(action.changes) - set(changes)
    if ignored:
        logger.debug("segment_store.highlight_fields_ignored", fields=sorted(ignored))

    segment = _find_segment(state, action.segment_id)
    current = None
    if segment is not None:
        current = next((h for h in segment.highlights if h.id == action.highlight_id), None)
    if current is None:
        logger.debug(
            "segment_store.unknown_highlight",
            segment_id=action.segment_id,
            highlight_id=action.highlight_id,
        )
        return state

    candidate = replace(current, **changes)
    problem = _highlight_problem(candidate)
    if problem is not None:
        logger.warning(
            "segment_store.highlight_rejected",
            segment_id=action.segment_id,
            highlight_id=action.highlight_id,
            field=problem,
        )
        return state

    def _apply(segment: ManagedSegment) -> ManagedSegment:
        updated = tuple(candidate if h.id == action.highlight_id else h for h in segment.highlights)
        return segment.with_highlights(updated)

    return _map_segment(state, action.segment_id, _apply)


def _play(state: EditorState, action: Play) -> EditorState:
    return replace(state, is_playing=True, is_paused=False)


def _pause(state: EditorState, action: Pause) -> EditorState:
    return replace(state, is_paused=True)


def _stop(state: EditorState, action: Stop) -> EditorState:
    return replace(state, is_playing=False, is_paused=False, current_time=0, current_segment_index=0)


def _enabled_count(state: EditorState) -> int:
    return sum(1 for segment in state.segments if segment.is_enabled)


def _go_to_segment(state: EditorState, action: GoToSegment) -> EditorState:
    if not 0 <= action.index < _enabled_count(state):
        return state
    return replace(state, current_segment_index=action.index)


def _next_segment(state: EditorState, action: NextSegment) -> EditorState:
    count = _enabled_count(state)
    if count == 0:
        return state
    return replace(state, current_segment_index=(state.current_segment_index + 1) % count)


def _previous_segment(state: EditorState, action: PreviousSegment) -> EditorState:
    count = _enabled_count(state)
    if count == 0:
        return state
    index = count - 1 if state.current_segment_index == 0 else state.current_segment_index - 1
    return replace(state, current_segment_index=min(index, count - 1))


def _set_playback_speed(state: EditorState, action: SetPlaybackSpeed) -> EditorState:
    if not _is_positive_number(action.speed):
        logger.warning("segment_store.speed_rejected", speed=repr(action.speed))
        return state
    return replace(state, playback_speed=float(action.speed))


def _set_current_time(state: EditorState, action: SetCurrentTime) -> EditorState:
    return replace(state, current_time=max(0, action.time_ms))


def _set_preview_mode(state: EditorState, action: SetPreviewMode) -> EditorState:
    return replace(state, preview_mode=bool(action.enabled))


_HANDLERS: dict[type, Callable[[EditorState, Any], EditorState]] = {
    AddSegment: _add_segment,
    RemoveSegment: _remove_segment,
    ReorderSegments: _reorder_segments,
    ToggleEnabled: _toggle_enabled,
    UpdateDuration: _update_duration,
    AddHighlight: _add_highlight,
    RemoveHighlight: _remove_highlight,
    UpdateHighlight: _update_highlight,
    Play: _play,
    Pause: _pause,
    Stop: _stop,
    GoToSegment: _go_to_segment,
    NextSegment: _next_segment,
    PreviousSegment: _previous_segment,
    SetPlaybackSpeed: _set_playback_speed,
    SetCurrentTime: _set_current_time,
    SetPreviewMode: _set_preview_mode,
}


def reduce(state: EditorState, action: EditorAction) -> EditorState:
    """纯状态转换：未知动作原样返回状态。"""
    handler = _HANDLERS.get(type(action))
    if handler is None:
        logger.warning("segment_store.unknown_action", action=type(action).__name__)
        return state
    return handler(state, action)


# ----------------------------------------------------------------------
# 时间线导出
# ----------------------------------------------------------------------


def definition_from_segments(segments: Iterable[ManagedSegment]) -> TimelineDefinition:
    """将启用的片段按 order 首尾相接排布为时间线定义。

    片段自带的高亮以所属片段起点为偏移，转换为 element 类型的时间窗。
    """
    enabled = sorted(
        (segment for segment in segments if segment.is_enabled), key=lambda segment: segment.order
    )
    timeline_segments: list[Segment] = []
    highlights: list[HighlightWindow] = []
    cursor: float = 0
    for segment in enabled:
        timeline_segments.append(
            Segment(id=segment.id, start_time=cursor, duration=segment.duration, payload=segment.payload)
        )
        highlights.extend(h.to_window(offset=cursor) for h in segment.highlights)
        cursor += segment.duration
    return TimelineDefinition(segments=tuple(timeline_segments), highlights=tuple(highlights))


def default_segments() -> Tuple[ManagedSegment, ...]:
    """编辑器初始的三个默认布局。"""
    duration = get_settings().default_layout_duration_ms
    definitions = (
        SegmentDefinition(
            id="definition",
            name="Definition",
            description="Classic presentation of the core definition",
            duration=duration,
            component="DefinitionLayout",
        ),
        SegmentDefinition(
            id="properties-grid",
            name="Properties Grid",
            description="Grid presentation of the vocabulary and concepts",
            duration=duration,
            component="PropertiesGridLayout",
        ),
        SegmentDefinition(
            id="comparison",
            name="Comparison",
            description="Side-by-side comparison of the traditional and new approach",
            duration=duration,
            component="ComparisonLayout",
        ),
    )
    return tuple(
        ManagedSegment.from_definition(definition, order=index) for index, definition in enumerate(definitions)
    )


# ----------------------------------------------------------------------
# Store
# ----------------------------------------------------------------------

StateListener = Callable[[EditorState], None]


class SegmentStore:
    def __init__(self, segments: Optional[Sequence[ManagedSegment]] = None) -> None:
        initial = default_segments() if segments is None else tuple(segments)
        self._state = EditorState(segments=initial)
        self._listeners: list[StateListener] = []

    @classmethod
    def from_json(cls, data: str | bytes) -> "SegmentStore":
        """从持久化 JSON 恢复。

        Raises:
            pydantic.ValidationError: JSON 不符合片段记录格式
        """
        return cls(load_segments(data))

    @property
    def state(self) -> EditorState:
        return self._state

    @property
    def segments(self) -> Tuple[ManagedSegment, ...]:
        return self._state.segments

    def get_segment(self, segment_id: str) -> Optional[ManagedSegment]:
        for segment in self._state.segments:
            if segment.id == segment_id:
                return segment
        return None

    def enabled_segments(self) -> list[ManagedSegment]:
        return sorted((s for s in self._state.segments if s.is_enabled), key=lambda s: s.order)

    def to_definition(self) -> TimelineDefinition:
        return definition_from_segments(self._state.segments)

    def dump_json(self, *, indent: int | None = 2) -> str:
        return dump_segments(self._state.segments, indent=indent)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def dispatch(self, action: EditorAction) -> EditorState:
        previous = self._state
        self._state = reduce(previous, action)
        if self._state is previous:
            return self._state
        logger.debug("segment_store.dispatched", action=type(action).__name__)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception as exc:  # noqa: BLE001
                logger.warning("segment_store.listener_failed", error=str(exc))
        return self._state

    # 便捷方法

    def add_segment(self, definition: SegmentDefinition) -> EditorState:
        return self.dispatch(AddSegment(definition))

    def remove_segment(self, segment_id: str) -> EditorState:
        return self.dispatch(RemoveSegment(segment_id))

    def reorder(self, from_index: int, to_index: int) -> EditorState:
        return self.dispatch(ReorderSegments(from_index, to_index))

    def toggle_enabled(self, segment_id: str) -> EditorState:
        return self.dispatch(ToggleEnabled(segment_id))

    def update_duration(self, segment_id: str, duration: Any) -> EditorState:
        return self.dispatch(UpdateDuration(segment_id, duration))

    def add_highlight(self, segment_id: str, highlight: TimingHighlight) -> EditorState:
        return self.dispatch(AddHighlight(segment_id, highlight))

    def remove_highlight(self, segment_id: str, highlight_id: str) -> EditorState:
        return self.dispatch(RemoveHighlight(segment_id, highlight_id))

    def update_highlight(self, segment_id: str, highlight_id: str, **changes: Any) -> EditorState:
        return self.dispatch(UpdateHighlight(segment_id, highlight_id, changes))

    def play(self) -> EditorState:
        return self.dispatch(Play())

    def pause(self) -> EditorState:
        return self.dispatch(Pause())

    def stop(self) -> EditorState:
        return self.dispatch(Stop())

    def go_to_segment(self, index: int) -> EditorState:
        return self.dispatch(GoToSegment(index))

    def next_segment(self) -> EditorState:
        return self.dispatch(NextSegment())

    def previous_segment(self) -> EditorState:
        return self.dispatch(PreviousSegment())

    def set_playback_speed(self, speed: Any) -> EditorState:
        return self.dispatch(SetPlaybackSpeed(speed))

    def set_current_time(self, time_ms: float) -> EditorState:
        return self.dispatch(SetCurrentTime(time_ms))

    def enable_preview(self) -> EditorState:
        return self.dispatch(SetPreviewMode(True))

    def disable_preview(self) -> EditorState:
        return self.dispatch(SetPreviewMode(False))
