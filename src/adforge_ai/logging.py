"""Logging configuration for AdForge AI."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog

from adforge_ai.config import Settings, get_settings


def setup_logging(settings: Settings | None = None) -> None:
    """Configure structured logging with console and optional file outputs."""
    settings = settings or get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    log_to_file = settings.log_to_file

    if log_to_file:
        try:
            Path(settings.log_directory).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            # Fall back to console-only logging
            print(f"Warning: Could not create log directory: {e}", file=sys.stderr)
            log_to_file = False

    logging.basicConfig(
        format="%(message)s",
        level=log_level,
        handlers=[],
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    logging.root.addHandler(console_handler)

    file_handler = None
    if log_to_file:
        try:
            file_handler = RotatingFileHandler(
                filename=settings.log_file_path,
                maxBytes=settings.log_file_max_bytes,
                backupCount=settings.log_file_backup_count,
                encoding="utf-8",
            )
            file_handler.setLevel(log_level)
            logging.root.addHandler(file_handler)
        except OSError as e:
            print(f"Warning: Could not setup file logging: {e}", file=sys.stderr)
            file_handler = None

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Console: colored in dev, JSON in prod
    console_formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            (
                structlog.dev.ConsoleRenderer(colors=True)  # type: ignore[list-item]
                if settings.is_development
                else structlog.processors.JSONRenderer()
            ),
        ]
    )
    console_handler.setFormatter(console_formatter)

    # File: always JSON for easy parsing
    if file_handler:
        file_formatter = structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.JSONRenderer(),
            ]
        )
        file_handler.setFormatter(file_formatter)

    # Reduce noise from third-party packages
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)
    logging.getLogger("asyncpg").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance."""
    return structlog.get_logger(name)  # type: ignore[no-any-return]
