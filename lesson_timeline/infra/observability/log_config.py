"""结构化日志初始化。"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog

from lesson_timeline.infra.config.settings import get_settings


def configure_logging(log_dir: str | Path | None = None, *, to_file: bool | None = None) -> None:
    """配置结构化日志，控制台与文件同时输出。

    日志输出:
    - 控制台: 终端下彩色格式，否则 JSON
    - 文件: app.log（INFO 及以上）与 error.log（WARNING 及以上），均为 JSON

    可以被多次调用，每次调用都会替换 root logger 上已有的 handlers。
    """
    settings = get_settings()
    level = getattr(logging, settings.log_level)
    write_files = settings.log_to_file if to_file is None else to_file

    is_tty = sys.stdout.isatty()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    console_renderer: Any
    if is_tty:
        console_renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        console_renderer = structlog.processors.JSONRenderer(ensure_ascii=False)

    structlog.configure(
        processors=shared_processors  # type: ignore[arg-type]
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    json_formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
    )
    console_formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            console_renderer,
        ],
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    directory = Path(log_dir or settings.log_dir)
    if write_files:
        directory.mkdir(parents=True, exist_ok=True)

        json_handler = RotatingFileHandler(
            directory / "app.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        json_handler.setLevel(logging.INFO)
        json_handler.setFormatter(json_formatter)

        error_handler = RotatingFileHandler(
            directory / "error.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        error_handler.setLevel(logging.WARNING)
        error_handler.setFormatter(json_formatter)

        root_logger.addHandler(json_handler)
        root_logger.addHandler(error_handler)

    logger = structlog.get_logger(__name__)
    logger.info(
        "logging_configured",
        log_dir=str(directory.absolute()) if write_files else None,
        console_mode="color" if is_tty else "json",
        level=settings.log_level,
    )
