"""编辑器片段存储单元测试。"""

from __future__ import annotations

import json
from collections.abc import Callable
from itertools import product

import pytest

from lesson_timeline.domain.models.managed_segment import (
    ManagedSegment,
    SegmentDefinition,
    TimingHighlight,
)
from lesson_timeline.pipelines.editing.segment_store import (
    EditorState,
    ReorderSegments,
    SegmentStore,
    UpdateDuration,
    definition_from_segments,
    reduce,
)


@pytest.fixture
def abc_store(managed_segment_factory: Callable[..., ManagedSegment]) -> SegmentStore:
    return SegmentStore(
        [
            managed_segment_factory("A", order=0, duration=1000),
            managed_segment_factory("B", order=1, duration=2000),
            managed_segment_factory("C", order=2, duration=3000),
        ]
    )


def _ids(store: SegmentStore) -> list[str]:
    return [segment.id for segment in store.segments]


def _orders(store: SegmentStore) -> list[int]:
    return [segment.order for segment in store.segments]


class TestDefaults:
    def test_seeds_default_layouts(self) -> None:
        store = SegmentStore()

        assert _ids(store) == ["definition", "properties-grid", "comparison"]
        assert _orders(store) == [0, 1, 2]
        assert all(segment.duration == 5000 for segment in store.segments)

    def test_transport_defaults(self) -> None:
        state = SegmentStore([]).state

        assert state == EditorState()
        assert state.playback_speed == 1.0
        assert state.preview_mode is False


class TestAddRemove:
    def test_add_appends_enabled_with_next_order(
        self, abc_store: SegmentStore, segment_definition_factory: Callable[..., SegmentDefinition]
    ) -> None:
        abc_store.add_segment(segment_definition_factory("D", duration=750))
        added = abc_store.get_segment("D")

        assert added is not None
        assert added.order == 3
        assert added.is_enabled is True
        assert added.duration == 750

    def test_remove_filters_by_id(self, abc_store: SegmentStore) -> None:
        abc_store.remove_segment("B")

        assert _ids(abc_store) == ["A", "C"]
        assert _orders(abc_store) == [0, 2]

    def test_remove_unknown_id_is_noop(self, abc_store: SegmentStore) -> None:
        before = abc_store.state
        abc_store.remove_segment("missing")

        assert abc_store.state.segments == before.segments

    def test_remove_takes_owned_highlights(
        self, abc_store: SegmentStore, highlight_factory: Callable[..., TimingHighlight]
    ) -> None:
        abc_store.add_highlight("B", highlight_factory("h1"))
        abc_store.remove_segment("B")

        assert abc_store.to_definition().highlights == ()


class TestReorder:
    def test_move_first_to_last(self, abc_store: SegmentStore) -> None:
        abc_store.reorder(0, 2)

        assert _ids(abc_store) == ["B", "C", "A"]
        assert _orders(abc_store) == [0, 1, 2]

    def test_every_pair_keeps_orders_dense(self, managed_segment_factory: Callable[..., ManagedSegment]) -> None:
        segments = tuple(managed_segment_factory(str(i), order=i) for i in range(4))
        for i, j in product(range(4), repeat=2):
            state = reduce(EditorState(segments=segments), ReorderSegments(i, j))
            assert [s.order for s in state.segments] == [0, 1, 2, 3]

    def test_same_index_renumbers(self, managed_segment_factory: Callable[..., ManagedSegment]) -> None:
        store = SegmentStore(
            [managed_segment_factory("A", order=4), managed_segment_factory("B", order=9)]
        )
        store.reorder(1, 1)

        assert _ids(store) == ["A", "B"]
        assert _orders(store) == [0, 1]

    def test_reorder_after_remove_closes_gaps(self, abc_store: SegmentStore) -> None:
        abc_store.remove_segment("A")
        abc_store.reorder(0, 0)

        assert _orders(abc_store) == [0, 1]

    @pytest.mark.parametrize(("from_index", "to_index"), [(-1, 0), (0, 3), (5, 1)])
    def test_out_of_range_is_noop(self, abc_store: SegmentStore, from_index: int, to_index: int) -> None:
        abc_store.reorder(from_index, to_index)
        assert _ids(abc_store) == ["A", "B", "C"]


class TestToggleAndDuration:
    def test_toggle_enabled(self, abc_store: SegmentStore) -> None:
        abc_store.toggle_enabled("B")
        assert abc_store.get_segment("B").is_enabled is False

        abc_store.toggle_enabled("B")
        assert abc_store.get_segment("B").is_enabled is True

    def test_update_duration(self, abc_store: SegmentStore) -> None:
        abc_store.update_duration("A", 2500)
        assert abc_store.get_segment("A").duration == 2500

    @pytest.mark.parametrize("duration", [0, -5, float("nan"), float("inf"), None, "1000", True])
    def test_invalid_duration_keeps_previous(self, abc_store: SegmentStore, duration: object) -> None:
        abc_store.update_duration("A", duration)
        assert abc_store.get_segment("A").duration == 1000

    @pytest.mark.parametrize("duration", [0.4, 0.49])
    def test_sub_millisecond_duration_rejected(self, abc_store: SegmentStore, duration: float) -> None:
        abc_store.update_duration("A", duration)

        assert abc_store.get_segment("A").duration == 1000
        assert json.loads(abc_store.dump_json())[0]["duration"] == 1000

    def test_add_segment_with_sub_millisecond_duration_is_rejected(
        self, abc_store: SegmentStore, segment_definition_factory: Callable[..., SegmentDefinition]
    ) -> None:
        abc_store.add_segment(segment_definition_factory("D", duration=0.4))

        assert abc_store.get_segment("D") is None
        assert len(json.loads(abc_store.dump_json())) == 3

    def test_duration_updates_timing_config_total(
        self, abc_store: SegmentStore, highlight_factory: Callable[..., TimingHighlight]
    ) -> None:
        abc_store.add_highlight("A", highlight_factory())
        abc_store.update_duration("A", 4200)

        assert abc_store.get_segment("A").timing_config.total_duration == 4200

    def test_reducer_is_pure(self, abc_store: SegmentStore) -> None:
        before = abc_store.state
        after = reduce(before, UpdateDuration("A", 9999))

        assert before.segments[0].duration == 1000
        assert after.segments[0].duration == 9999


class TestHighlights:
    def test_add_creates_timing_config_lazily(
        self, abc_store: SegmentStore, highlight_factory: Callable[..., TimingHighlight]
    ) -> None:
        assert abc_store.get_segment("A").timing_config is None

        abc_store.add_highlight("A", highlight_factory("h1"))
        config = abc_store.get_segment("A").timing_config

        assert config is not None
        assert [h.id for h in config.highlights] == ["h1"]
        assert config.total_duration == 1000
        assert config.auto_advance is True

    def test_remove_highlight(
        self, abc_store: SegmentStore, highlight_factory: Callable[..., TimingHighlight]
    ) -> None:
        abc_store.add_highlight("A", highlight_factory("h1"))
        abc_store.add_highlight("A", highlight_factory("h2"))
        abc_store.remove_highlight("A", "h1")

        assert [h.id for h in abc_store.get_segment("A").highlights] == ["h2"]

    def test_update_highlight(
        self, abc_store: SegmentStore, highlight_factory: Callable[..., TimingHighlight]
    ) -> None:
        abc_store.add_highlight("A", highlight_factory("h1"))
        abc_store.update_highlight("A", "h1", duration=250, animation_type="pulse", id="renamed")
        (highlight,) = abc_store.get_segment("A").highlights

        assert highlight.id == "h1"
        assert highlight.duration == 250
        assert highlight.animation_type == "pulse"

    def test_highlight_ops_on_segment_without_config(self, abc_store: SegmentStore) -> None:
        abc_store.remove_highlight("A", "h1")
        abc_store.update_highlight("A", "h1", duration=10)

        assert abc_store.get_segment("A").timing_config is None

    @pytest.mark.parametrize(
        "changes",
        [
            {"duration": -5},
            {"duration": 0.3},
            {"start_time": -1},
            {"start_time": "soon"},
            {"intensity": 7.0},
            {"intensity": 0.05},
            {"animation_type": "wobble"},
            {"element_selector": ""},
        ],
    )
    def test_invalid_highlight_update_keeps_previous(
        self,
        abc_store: SegmentStore,
        highlight_factory: Callable[..., TimingHighlight],
        changes: dict,
    ) -> None:
        original = highlight_factory("h1", start_time=100, duration=400)
        abc_store.add_highlight("A", original)
        received: list[EditorState] = []
        abc_store.subscribe(received.append)

        abc_store.update_highlight("A", "h1", **changes)

        assert abc_store.get_segment("A").highlights == (original,)
        assert received == []
        (window,) = abc_store.to_definition().highlights
        assert (window.start_time, window.duration) == (100, 400)
        assert json.loads(abc_store.dump_json())[0]["timingConfig"]["highlights"][0]["duration"] == 400

    def test_invalid_highlight_is_not_added(
        self, abc_store: SegmentStore, highlight_factory: Callable[..., TimingHighlight]
    ) -> None:
        abc_store.add_highlight("A", highlight_factory("h1", duration=-5, intensity=7.0))

        assert abc_store.get_segment("A").timing_config is None
        abc_store.dump_json()

    def test_update_unknown_highlight_is_noop(
        self, abc_store: SegmentStore, highlight_factory: Callable[..., TimingHighlight]
    ) -> None:
        abc_store.add_highlight("A", highlight_factory("h1"))
        before = abc_store.state
        abc_store.update_highlight("A", "missing", duration=10)

        assert abc_store.state is before


class TestTransport:
    def test_play_pause_stop(self, abc_store: SegmentStore) -> None:
        abc_store.play()
        assert (abc_store.state.is_playing, abc_store.state.is_paused) == (True, False)

        abc_store.pause()
        assert abc_store.state.is_paused is True

        abc_store.set_current_time(1500)
        abc_store.go_to_segment(2)
        abc_store.stop()
        state = abc_store.state
        assert (state.is_playing, state.is_paused, state.current_time, state.current_segment_index) == (
            False,
            False,
            0,
            0,
        )

    def test_navigation_wraps_over_enabled_segments(self, abc_store: SegmentStore) -> None:
        abc_store.toggle_enabled("C")

        abc_store.next_segment()
        assert abc_store.state.current_segment_index == 1
        abc_store.next_segment()
        assert abc_store.state.current_segment_index == 0
        abc_store.previous_segment()
        assert abc_store.state.current_segment_index == 1

    def test_go_to_segment_bounds(self, abc_store: SegmentStore) -> None:
        abc_store.toggle_enabled("C")
        abc_store.go_to_segment(2)
        assert abc_store.state.current_segment_index == 0

    def test_navigation_without_enabled_segments(self) -> None:
        store = SegmentStore([])
        store.next_segment()
        store.previous_segment()
        assert store.state.current_segment_index == 0

    def test_playback_speed(self, abc_store: SegmentStore) -> None:
        abc_store.set_playback_speed(1.5)
        assert abc_store.state.playback_speed == 1.5

        abc_store.set_playback_speed(0)
        assert abc_store.state.playback_speed == 1.5

    def test_preview_mode(self, abc_store: SegmentStore) -> None:
        abc_store.enable_preview()
        assert abc_store.state.preview_mode is True
        abc_store.disable_preview()
        assert abc_store.state.preview_mode is False

    def test_current_time_clamped(self, abc_store: SegmentStore) -> None:
        abc_store.set_current_time(-20)
        assert abc_store.state.current_time == 0


class TestDefinitionExport:
    def test_enabled_segments_laid_out_by_order(self, abc_store: SegmentStore) -> None:
        abc_store.reorder(2, 0)
        abc_store.toggle_enabled("A")
        timeline = abc_store.to_definition()

        spans = [(s.id, s.start_time, s.duration) for s in timeline.segments]
        assert spans == [("C", 0, 3000), ("B", 3000, 2000)]

    def test_highlights_offset_by_segment_start(
        self, abc_store: SegmentStore, highlight_factory: Callable[..., TimingHighlight]
    ) -> None:
        abc_store.add_highlight("B", highlight_factory("h1", "#badge", start_time=500, duration=200))
        (window,) = abc_store.to_definition().highlights

        assert window.element_id == "#badge"
        assert (window.start_time, window.duration, window.kind) == (1500, 200, "element")

    def test_payload_carries_component(self, abc_store: SegmentStore) -> None:
        segment = abc_store.to_definition().segments[0]
        assert segment.component == "DefinitionLayout"

    def test_empty_collection(self) -> None:
        assert definition_from_segments([]).segments == ()


class TestSubscriptions:
    def test_listener_notified_on_change(self, abc_store: SegmentStore) -> None:
        received: list[EditorState] = []
        abc_store.subscribe(received.append)
        abc_store.toggle_enabled("A")

        assert received == [abc_store.state]

    def test_noop_action_does_not_notify(self, abc_store: SegmentStore) -> None:
        received: list[EditorState] = []
        abc_store.subscribe(received.append)
        abc_store.update_duration("A", -1)
        abc_store.toggle_enabled("missing")

        assert received == []

    def test_unsubscribe(self, abc_store: SegmentStore) -> None:
        received: list[EditorState] = []
        unsubscribe = abc_store.subscribe(received.append)
        unsubscribe()
        abc_store.toggle_enabled("A")

        assert received == []
