"""
Tests for logging setup and log sanitization.
"""
import logging
from logging.handlers import RotatingFileHandler

from applyai.core.logging_config import sanitize_log_data, setup_logging


def test_sanitize_redacts_secrets_and_bulky_text():
    data = {
        "user_id": 7,
        "api_key": "sk-live-123",
        "Authorization": "Bearer abc",
        "resume_text": "x" * 500,
        "cover_letter": "Dear Hiring Manager",
        "endpoint": "ats_score",
    }

    sanitized = sanitize_log_data(data)

    assert sanitized["user_id"] == 7
    assert sanitized["endpoint"] == "ats_score"
    assert sanitized["api_key"] == "***REDACTED***"
    assert sanitized["Authorization"] == "***REDACTED***"
    assert sanitized["resume_text"] == "<500 chars>"
    assert sanitized["cover_letter"] == "<19 chars>"
    # Original untouched
    assert data["api_key"] == "sk-live-123"


def test_setup_logging_adds_console_and_rotating_file(tmp_path):
    root = logging.getLogger()
    previous_handlers, previous_level = root.handlers[:], root.level
    try:
        setup_logging("debug", log_dir=str(tmp_path / "logs"))

        assert root.level == logging.DEBUG
        assert any(isinstance(h, RotatingFileHandler) for h in root.handlers)
        assert logging.getLogger("openai").level == logging.WARNING
        assert (tmp_path / "logs").is_dir()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers = previous_handlers
        root.setLevel(previous_level)
