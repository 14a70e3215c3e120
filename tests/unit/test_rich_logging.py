"""Tests for logging helpers."""

import logging

from worktree_board.utils.rich_logging import BoardLogFormatter, ContextLogger, setup_logging


def make_record(name="worktree_board.core.coordinator", msg="hello", **extra):
    record = logging.LogRecord(name, logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestBoardLogFormatter:
    def test_plain_format_with_context(self):
        formatter = BoardLogFormatter(use_colors=False)

        line = formatter.format(make_record(feature_id="add-login", phase="execute"))

        assert "INFO" in line
        assert "[coordinator] [execute] [add-login] hello" in line
        assert "\033[" not in line

    def test_colors(self):
        line = BoardLogFormatter(use_colors=True).format(make_record())
        assert "\033[32m" in line


class TestContextLogger:
    def test_context_added_and_cleared(self, caplog):
        log = ContextLogger(logging.getLogger("worktree_board.test"), "add-login")

        with caplog.at_level(logging.INFO, logger="worktree_board.test"):
            log.phase_change("execute")
            log.feature_completed(1.5)
            log.info("after")

        records = caplog.records
        assert records[0].feature_id == "add-login"
        assert records[0].phase == "execute"
        assert "1.5s" in records[1].getMessage()
        assert not hasattr(records[2], "feature_id")

    def test_feature_failed_logs_error(self, caplog):
        log = ContextLogger(logging.getLogger("worktree_board.test"), "x")

        with caplog.at_level(logging.INFO, logger="worktree_board.test"):
            log.feature_failed("agent gave up")

        assert caplog.records[0].levelno == logging.ERROR
        assert "agent gave up" in caplog.records[0].getMessage()


class TestSetupLogging:
    def test_replaces_root_handlers_with_one_console_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        root.handlers = []
        try:
            setup_logging("debug")

            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, BoardLogFormatter)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
