"""Logging setup with feature context and readable console formatting."""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional


class BoardLogFormatter(logging.Formatter):
    """Formatter that prefixes messages with feature/phase context."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",      # Cyan
        "INFO": "\033[32m",       # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[35m",   # Magenta
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        feature_context = ""
        if hasattr(record, "feature_id"):
            feature_context = f"[{record.feature_id}] "

        phase_context = ""
        if hasattr(record, "phase"):
            phase_context = f"[{record.phase}] "

        if self.use_colors:
            level_color = self.LEVEL_COLORS.get(record.levelname, "")
            reset = "\033[0m"
        else:
            level_color = ""
            reset = ""

        component = record.name.rsplit(".", 1)[-1]
        message = (
            f"{timestamp} {level_color}{record.levelname:8s}{reset} "
            f"[{component}] {phase_context}{feature_context}{record.getMessage()}"
        )
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that adds feature context to all log messages.

    Stateful, so create one per execution rather than sharing it between
    concurrently running features.
    """

    def __init__(self, logger: logging.Logger, feature_id: Optional[str] = None):
        super().__init__(logger, {})
        self.current_feature_id: Optional[str] = feature_id
        self.current_phase: Optional[str] = None

    def set_feature_context(self, feature_id: Optional[str] = None, phase: Optional[str] = None):
        if feature_id:
            self.current_feature_id = feature_id
        if phase is not None:
            self.current_phase = phase

    def clear_context(self):
        self.current_feature_id = None
        self.current_phase = None

    def process(self, msg, kwargs):
        extra = kwargs.get("extra", {})

        if self.current_feature_id:
            extra["feature_id"] = self.current_feature_id
        if self.current_phase:
            extra["phase"] = self.current_phase

        kwargs["extra"] = extra
        return msg, kwargs

    def feature_started(self, feature_id: str, work_dir: Path):
        self.set_feature_context(feature_id=feature_id)
        self.info(f"Starting feature in {work_dir}")

    def phase_change(self, phase: str):
        self.set_feature_context(phase=phase)
        self.info(f"Phase: {phase}")

    def feature_completed(self, duration_seconds: float):
        self.info(f"Feature completed in {duration_seconds:.1f}s")
        self.clear_context()

    def feature_failed(self, error: str):
        self.error(f"Feature failed: {error}")
        self.clear_context()


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure the root logger for the server and CLI.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper()))

    # Close existing handlers before clearing (prevents file descriptor leak)
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)

    use_colors = sys.stderr.isatty() if hasattr(sys.stderr, "isatty") else False
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(BoardLogFormatter(use_colors=use_colors))
    root.addHandler(console_handler)
