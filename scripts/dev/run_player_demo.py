#!/usr/bin/env python
"""运行播放器 Demo：构建示例时间线，在事件循环上播放并打印片段切换。"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:  # pragma: no cover - 路径注入
    sys.path.insert(0, str(REPO_ROOT))

import structlog

from lesson_timeline.domain.models.content import ConceptItem, ElementTiming, SlideTiming, VocabularyItem
from lesson_timeline.infra.observability.log_config import configure_logging
from lesson_timeline.timeline.builder import build_timeline
from lesson_timeline.timeline.player import PlayerSnapshot, TimelinePlayer

logger = structlog.get_logger("player_demo")

SAMPLE_VOCABULARY = [
    VocabularyItem(id="hash", term="Hash", definition="A unique fingerprint of a block of data."),
    VocabularyItem(id="node", term="Node", definition="A computer that keeps a copy of the ledger."),
]

SAMPLE_CONCEPTS = [
    ConceptItem(id="immutability", text="Immutability", emphasis="strong"),
    ConceptItem(id="consensus", text="Consensus"),
]

SAMPLE_TIMING = SlideTiming(
    title=ElementTiming(start_time=0, duration=2000),
    vocabulary_section=ElementTiming(start_time=4000, duration=6000),
    concepts_section=ElementTiming(start_time=10000, duration=6000),
    vocabulary={"node": ElementTiming(start_time=0, duration=2000)},
)


async def _run(duration_s: float, speed: float) -> None:
    definition = build_timeline(SAMPLE_VOCABULARY, SAMPLE_CONCEPTS, SAMPLE_TIMING)
    last_index: int | None = None

    def _on_snapshot(snapshot: PlayerSnapshot) -> None:
        nonlocal last_index
        if snapshot.current_segment_index == last_index:
            return
        last_index = snapshot.current_segment_index
        logger.info(
            "demo.segment",
            index=snapshot.current_segment_index,
            segment_id=snapshot.current_segment.id if snapshot.current_segment else None,
            progress=round(snapshot.progress, 1),
            highlights=sorted(snapshot.active_highlights),
            current_time_ms=round(snapshot.current_time),
        )

    with TimelinePlayer(definition, auto_start=True) as player:
        player.add_listener(_on_snapshot)
        player.set_playback_speed(speed)
        player.start()
        await asyncio.sleep(duration_s)
        logger.info("demo.finished", current_time_ms=round(player.current_time))


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--seconds", type=float, default=5.0, help="运行时长（秒）")
    parser.add_argument("--speed", type=float, default=4.0, help="播放倍速")
    args = parser.parse_args()

    configure_logging(to_file=False)
    asyncio.run(_run(args.seconds, args.speed))


if __name__ == "__main__":
    main()
