import logging

import pytest

from taskboard.logging_setup import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)
    logging.captureWarnings(False)


def test_console_only_without_log_dir(restore_root_logger):
    setup_logging(level="warning", log_dir="")

    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert root.handlers[0].level == logging.WARNING


def test_file_handler_writes_app_logs(tmp_path, restore_root_logger):
    setup_logging(level="INFO", log_dir=tmp_path / "logs")

    logging.getLogger("taskboard.services.tasks").debug("moved task 3")
    for h in logging.getLogger().handlers:
        h.flush()

    log_file = tmp_path / "logs" / "taskboard.log"
    assert log_file.exists()
    assert "moved task 3" in log_file.read_text(encoding="utf-8")


def test_console_filter_quiets_third_party(restore_root_logger):
    setup_logging(level="DEBUG", log_dir="")
    [console] = logging.getLogger().handlers

    noisy = logging.LogRecord("aiosqlite", logging.INFO, __file__, 1, "noise", None, None)
    ours = logging.LogRecord("taskboard.main", logging.INFO, __file__, 1, "hello", None, None)
    server = logging.LogRecord("uvicorn.error", logging.INFO, __file__, 1, "started", None, None)

    assert console.filter(noisy) is False
    assert console.filter(ours)
    assert console.filter(server)
