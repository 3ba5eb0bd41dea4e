"""时间线播放器

持有一个虚拟时钟，根据已提交的时间线定义推导当前片段与高亮集合。

所有状态变更都在同一个事件循环线程上串行执行：
- 帧回调：``loop.call_later(frame_interval)``，播放时周期性 tick
- 片段切换提交：独立的 ``loop.call_later(transition_delay)`` 定时器
- 可见性自动播放：``loop.call_soon``，可取消

未 ``start()`` 时播放器完全由调用方驱动（手动 ``tick``），便于确定性测试。
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol, Union

import structlog

from lesson_timeline.infra.config.settings import get_settings
from lesson_timeline.timeline.models import Segment, TimelineDefinition

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class PlaybackState(str, Enum):
    IDLE = "idle"
    PAUSED = "paused"
    PLAYING = "playing"


@dataclass(frozen=True)
class Stable:
    """没有待提交的片段切换。"""


@dataclass(frozen=True)
class Committing:
    """片段切换已开始，deadline 到达时提交 target_index。"""

    target_index: int
    deadline: float


CommitState = Union[Stable, Committing]

STABLE = Stable()


@dataclass(frozen=True)
class PlayerSnapshot:
    """每次 tick 后暴露给渲染方的派生状态。"""

    current_segment: Optional[Segment]
    current_segment_index: int
    total_segments: int
    progress: float
    is_transitioning: bool
    active_highlights: frozenset[str]
    is_playing: bool
    current_time: float
    state: PlaybackState


SnapshotListener = Callable[[PlayerSnapshot], None]


class DefinitionSource(Protocol):
    """可订阅的时间线定义来源（例如编辑器的 SegmentStore）。"""

    def subscribe(self, listener: Callable[[Any], None]) -> Callable[[], None]: ...

    def to_definition(self) -> TimelineDefinition: ...


class TimelinePlayer:
    def __init__(
        self,
        definition: Optional[TimelineDefinition] = None,
        *,
        clock: Optional[Clock] = None,
        is_slide_active: bool = True,
        auto_start: Optional[bool] = None,
        transition_delay_ms: Optional[float] = None,
        frame_interval_ms: Optional[float] = None,
    ) -> None:
        """初始化播放器

        Args:
            definition: 初始时间线定义，默认为空时间线
            clock: 返回毫秒的单调时钟，默认 ``time.monotonic``
            is_slide_active: 所在幻灯片当前是否可见
            auto_start: 幻灯片可见时是否自动播放，默认取配置
            transition_delay_ms: 片段切换提交窗口，默认取配置
            frame_interval_ms: 帧回调间隔，默认取配置
        """
        settings = get_settings()
        self._definition = definition or TimelineDefinition()
        self._pending_definition: Optional[TimelineDefinition] = None
        self._clock = clock or monotonic_ms
        self._slide_active = is_slide_active
        self._auto_start = settings.auto_start if auto_start is None else auto_start
        self._transition_delay = (
            settings.transition_delay_ms if transition_delay_ms is None else transition_delay_ms
        )
        self._frame_interval = settings.frame_interval_ms if frame_interval_ms is None else frame_interval_ms

        self._state = PlaybackState.IDLE
        self._elapsed: float = 0
        self._origin: Optional[float] = None
        self._speed: float = 1.0
        self._committed_index = 0
        self._commit: CommitState = STABLE
        self._active_highlights: frozenset[str] = frozenset()
        self._user_paused = False

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._frame_handle: Optional[asyncio.TimerHandle] = None
        self._commit_handle: Optional[asyncio.TimerHandle] = None
        self._visibility_handle: Optional[asyncio.Handle] = None

        self._listeners: list[SnapshotListener] = []
        self._unbind_source: Optional[Callable[[], None]] = None
        self._disposed = False

    # ------------------------------------------------------------------
    # 只读属性
    # ------------------------------------------------------------------

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def is_playing(self) -> bool:
        return self._state is PlaybackState.PLAYING

    @property
    def is_transitioning(self) -> bool:
        return isinstance(self._commit, Committing)

    @property
    def commit_state(self) -> CommitState:
        return self._commit

    @property
    def current_time(self) -> float:
        return self._elapsed

    @property
    def current_segment_index(self) -> int:
        return self._committed_index

    @property
    def active_highlights(self) -> frozenset[str]:
        return self._active_highlights

    @property
    def definition(self) -> TimelineDefinition:
        return self._definition

    @property
    def playback_speed(self) -> float:
        return self._speed

    @property
    def is_slide_active(self) -> bool:
        return self._slide_active

    @property
    def auto_start(self) -> bool:
        return self._auto_start

    @property
    def is_attached(self) -> bool:
        return self._loop is not None

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def snapshot(self) -> PlayerSnapshot:
        segments = self._definition.segments
        total = len(segments)
        index = self._committed_index if total else 0
        return PlayerSnapshot(
            current_segment=segments[index] if total else None,
            current_segment_index=index,
            total_segments=total,
            progress=100 * (index + 1) / total if total else 0.0,
            is_transitioning=self.is_transitioning,
            active_highlights=self._active_highlights,
            is_playing=self.is_playing,
            current_time=self._elapsed,
            state=self._state,
        )

    # ------------------------------------------------------------------
    # 生命周期
    # ------------------------------------------------------------------

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """挂载到事件循环，开始响应帧回调与可见性变化。"""
        if self._disposed:
            logger.warning("player.start_after_dispose")
            return
        if self._loop is not None:
            return
        self._loop = loop or asyncio.get_running_loop()
        logger.debug("player.started", state=self._state.value)
        if self.is_playing:
            self._schedule_frame()
            if isinstance(self._commit, Committing):
                self._arm_commit_timer(self._commit.deadline - self._now(None))
        self._evaluate_visibility()

    def stop(self) -> None:
        """从事件循环卸载，取消全部待执行回调，保留播放状态。"""
        self._cancel_handles()
        if self._loop is not None:
            logger.debug("player.stopped", state=self._state.value)
        self._loop = None

    def dispose(self) -> None:
        if self._disposed:
            return
        self.stop()
        if self._unbind_source is not None:
            self._unbind_source()
            self._unbind_source = None
        self._listeners.clear()
        self._disposed = True
        logger.debug("player.disposed")

    def __enter__(self) -> "TimelinePlayer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()

    # ------------------------------------------------------------------
    # 播放控制
    # ------------------------------------------------------------------

    def play(self, now: Optional[float] = None) -> None:
        if self._disposed:
            logger.warning("player.play_after_dispose")
            return
        if not self._slide_active:
            logger.debug("player.play_ignored", reason="slide_inactive")
            return
        if self.is_playing:
            return
        now = self._now(now)
        self._swap_pending_definition()
        self._origin = now - self._elapsed / self._speed
        self._state = PlaybackState.PLAYING
        self._user_paused = False
        logger.info("player.play", current_time=self._elapsed)
        self.tick(now)
        self._schedule_frame()

    def pause(self, now: Optional[float] = None) -> None:
        if self._disposed:
            return
        self._user_paused = True
        self._pause(now)

    def reset(self) -> None:
        """回到 IDLE 初始状态。

        不会触发自动播放，即使幻灯片可见且开启了 auto_start；需要显式调用 ``play()``。
        """
        if self._disposed:
            return
        self._cancel_handles()
        self._swap_pending_definition()
        self._state = PlaybackState.IDLE
        self._elapsed = 0
        self._origin = None
        self._committed_index = 0
        self._commit = STABLE
        self._active_highlights = frozenset()
        self._user_paused = False
        logger.info("player.reset")
        self._notify()

    def seek(self, time_ms: float, now: Optional[float] = None) -> None:
        """跳转到指定时间，立即提交片段下标（无切换延迟）。"""
        if self._disposed:
            return
        if math.isnan(time_ms):
            logger.warning("player.seek_rejected", time_ms=time_ms)
            return
        now = self._now(now)
        self._swap_pending_definition()
        target = max(0.0, float(time_ms))

        self._elapsed = target
        self._discard_commit()
        self._committed_index = max(self._definition.segment_index_at(target), 0)
        self._active_highlights = self._definition.active_highlights_at(target)

        if self.is_playing:
            self._origin = now - target / self._speed
        elif self._state is PlaybackState.IDLE:
            self._state = PlaybackState.PAUSED

        logger.debug("player.seek", time_ms=target, segment_index=self._committed_index)
        self._notify()

    def go_to_segment(self, index: int, now: Optional[float] = None) -> None:
        if self._disposed:
            return
        self._swap_pending_definition()
        segments = self._definition.segments
        if not 0 <= index < len(segments):
            logger.debug("player.go_to_segment_ignored", index=index, total=len(segments))
            return
        self.seek(segments[index].start_time, now)

    def set_playback_speed(self, speed: float, now: Optional[float] = None) -> None:
        if self._disposed:
            return
        if not math.isfinite(speed) or speed <= 0:
            logger.warning("player.speed_rejected", speed=speed, current=self._speed)
            return
        if self.is_playing:
            now = self._now(now)
            self._elapsed = self._elapsed_at(now)
            self._speed = float(speed)
            self._origin = now - self._elapsed / self._speed
        else:
            self._speed = float(speed)
        logger.debug("player.speed_changed", speed=self._speed)

    # ------------------------------------------------------------------
    # 可见性联动（电平触发）
    # ------------------------------------------------------------------

    def set_slide_active(self, active: bool) -> None:
        if self._disposed:
            return
        self._slide_active = bool(active)
        self._evaluate_visibility()

    def set_auto_start(self, auto_start: bool) -> None:
        if self._disposed:
            return
        self._auto_start = bool(auto_start)
        self._evaluate_visibility()

    # ------------------------------------------------------------------
    # 时间线定义
    # ------------------------------------------------------------------

    def load(self, definition: TimelineDefinition) -> None:
        """暂存新的时间线定义，下一次 tick 开始时生效。"""
        if self._disposed:
            return
        self._pending_definition = definition
        logger.debug("player.definition_staged", segments=len(definition.segments))

    def bind_source(self, source: DefinitionSource) -> Callable[[], None]:
        """订阅定义来源，来源每次变化都暂存其最新定义。

        Returns:
            取消订阅的函数
        """
        if self._unbind_source is not None:
            self._unbind_source()

        def _on_change(_state: Any) -> None:
            self.load(source.to_definition())

        unsubscribe = source.subscribe(_on_change)
        self._unbind_source = unsubscribe
        self.load(source.to_definition())
        return unsubscribe

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # ------------------------------------------------------------------
    # tick
    # ------------------------------------------------------------------

    def tick(self, now: Optional[float] = None) -> PlayerSnapshot:
        """推进虚拟时钟并重新推导状态。

        IDLE 状态下不做任何计算。
        """
        if self._disposed or self._state is PlaybackState.IDLE:
            return self.snapshot()

        now = self._now(now)
        self._swap_pending_definition()
        if self.is_playing:
            self._elapsed = self._elapsed_at(now)

        if isinstance(self._commit, Committing) and now >= self._commit.deadline:
            self._commit_pending()
        self._track_segment(now)

        # 每次全量重算，重复 tick 与任意 seek 后结果一致
        self._active_highlights = self._definition.active_highlights_at(self._elapsed)

        snapshot = self.snapshot()
        self._notify(snapshot)
        return snapshot

    # ------------------------------------------------------------------
    # 内部实现
    # ------------------------------------------------------------------

    def _now(self, now: Optional[float]) -> float:
        return self._clock() if now is None else now

    def _elapsed_at(self, now: float) -> float:
        if self._origin is None:
            return self._elapsed
        return max(0.0, (now - self._origin) * self._speed)

    def _pause(self, now: Optional[float] = None) -> None:
        self._cancel_handles()
        self._discard_commit()
        if not self.is_playing:
            return
        self._elapsed = self._elapsed_at(self._now(now))
        self._origin = None
        self._state = PlaybackState.PAUSED
        logger.info("player.pause", current_time=self._elapsed)
        self._notify()

    def _swap_pending_definition(self) -> None:
        if self._pending_definition is None:
            return
        self._definition = self._pending_definition
        self._pending_definition = None
        self._discard_commit()
        last_index = max(len(self._definition.segments) - 1, 0)
        self._committed_index = min(self._committed_index, last_index)
        logger.debug(
            "player.definition_swapped",
            segments=len(self._definition.segments),
            highlights=len(self._definition.highlights),
        )

    def _track_segment(self, now: float) -> None:
        target = self._definition.segment_index_at(self._elapsed)
        if target < 0:
            return

        if not self.is_playing:
            # 暂停时没有切换过程，与 seek 一样立即提交
            self._discard_commit()
            self._committed_index = target
            return

        if isinstance(self._commit, Committing):
            if target == self._committed_index:
                self._discard_commit()
            elif target != self._commit.target_index:
                # 最多一个待提交：改写目标，不推迟 deadline
                self._commit = Committing(target_index=target, deadline=self._commit.deadline)
            return

        if target != self._committed_index:
            self._commit = Committing(target_index=target, deadline=now + self._transition_delay)
            logger.debug(
                "player.segment_transition_started",
                from_index=self._committed_index,
                to_index=target,
            )
            self._arm_commit_timer(self._transition_delay)

    def _commit_pending(self) -> None:
        if not isinstance(self._commit, Committing):
            return
        previous = self._committed_index
        self._committed_index = self._commit.target_index
        self._commit = STABLE
        self._cancel_commit_timer()
        logger.debug(
            "player.segment_committed",
            from_index=previous,
            to_index=self._committed_index,
            segment_id=self._definition.segments[self._committed_index].id,
        )

    def _discard_commit(self) -> None:
        self._cancel_commit_timer()
        self._commit = STABLE

    def _evaluate_visibility(self) -> None:
        self._cancel_visibility_reaction()
        if not self._slide_active:
            if self.is_playing:
                logger.info("player.paused_by_visibility")
            # 幻灯片隐藏后，用户的手动暂停不再阻止下次显示时的自动播放
            self._user_paused = False
            self._pause()
            return
        if not self._should_auto_play():
            return
        if self._loop is None:
            self.play()
        else:
            self._visibility_handle = self._loop.call_soon(self._on_visibility_reaction)

    def _should_auto_play(self) -> bool:
        return self._slide_active and self._auto_start and not self.is_playing and not self._user_paused

    def _schedule_frame(self) -> None:
        if self._loop is None or self._frame_handle is not None or not self.is_playing:
            return
        self._frame_handle = self._loop.call_later(self._frame_interval / 1000, self._on_frame)

    def _arm_commit_timer(self, delay_ms: float) -> None:
        if self._loop is None:
            return
        self._cancel_commit_timer()
        self._commit_handle = self._loop.call_later(max(delay_ms, 0) / 1000, self._on_commit_timer)

    def _on_frame(self) -> None:
        self._frame_handle = None
        if self._disposed or not self.is_playing:
            return
        self.tick()
        self._schedule_frame()

    def _on_commit_timer(self) -> None:
        self._commit_handle = None
        if self._disposed or not isinstance(self._commit, Committing):
            return
        self._commit_pending()
        self._notify()

    def _on_visibility_reaction(self) -> None:
        self._visibility_handle = None
        if self._disposed:
            return
        if self._should_auto_play():
            self.play()

    def _cancel_commit_timer(self) -> None:
        if self._commit_handle is not None:
            self._commit_handle.cancel()
            self._commit_handle = None

    def _cancel_visibility_reaction(self) -> None:
        if self._visibility_handle is not None:
            self._visibility_handle.cancel()
            self._visibility_handle = None

    def _cancel_handles(self) -> None:
        if self._frame_handle is not None:
            self._frame_handle.cancel()
            self._frame_handle = None
        self._cancel_commit_timer()
        self._cancel_visibility_reaction()

    def _notify(self, snapshot: Optional[PlayerSnapshot] = None) -> None:
        if not self._listeners:
            return
        snapshot = snapshot or self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as exc:  # noqa: BLE001
                logger.warning("player.listener_failed", error=str(exc))
