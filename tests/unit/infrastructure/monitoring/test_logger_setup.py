import logging
import logging.handlers

import pytest

from resilayer.infrastructure.config.settings import LoggingConfig
from resilayer.infrastructure.monitoring.logger_setup import setup_logging, setup_logging_from_config

@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in saved_handlers:
            handler.close()
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)

def test_setup_logging_console_only(restore_root_logger):
    setup_logging(log_level=logging.WARNING)
    root = restore_root_logger
    assert root.level == logging.WARNING
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0], logging.StreamHandler)

def test_setup_logging_with_rotating_file(restore_root_logger, tmp_path):
    log_file = tmp_path / "resilayer.log"
    setup_logging_from_config(LoggingConfig(level="DEBUG", file=str(log_file)))
    root = restore_root_logger
    assert root.level == logging.DEBUG
    assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in root.handlers)
    logging.getLogger("resilayer.test").info("hello file")
    for handler in root.handlers:
        handler.flush()
    assert "hello file" in log_file.read_text(encoding="utf-8")
