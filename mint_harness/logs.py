"""
structlog setup and per-request log capture.

The dashboard returns the log lines produced while serving a request next to
the result, so the processor chain includes `capture_processor`, which
copies the event into the list bound by `capture_logs()` (if any) for the
current task context.
"""

import contextlib
import contextvars
import logging
import sys
from typing import Any, Iterator, Optional

import structlog

_captured: contextvars.ContextVar[Optional[list[str]]] = contextvars.ContextVar(
    "mint_harness_captured_logs", default=None
)

_SKIP_KEYS = {"event", "level", "timestamp", "logger"}


def _render_line(event_dict: dict[str, Any]) -> str:
    level = str(event_dict.get("level", "info"))
    fields = " ".join(f"{k}={v}" for k, v in event_dict.items() if k not in _SKIP_KEYS)
    prefix = {"error": "[ERR] ", "warning": "[WARN] "}.get(level, "")
    line = f"{prefix}{event_dict.get('event', '')}"
    return f"{line} {fields}" if fields else line


def capture_processor(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Append the event to the active capture list, then pass it on."""
    lines = _captured.get()
    if lines is not None:
        lines.append(_render_line(event_dict))
    return event_dict


@contextlib.contextmanager
def capture_logs() -> Iterator[list[str]]:
    """Collect log lines emitted in the current context."""
    lines: list[str] = []
    token = _captured.set(lines)
    try:
        yield lines
    finally:
        _captured.reset(token)


def configure_logging(json_output: bool = False, level: int = logging.INFO) -> None:
    """Configure structlog for the CLI (console) or the server (JSON)."""
    renderer: Any = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            capture_processor,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
