"""
Logging configuration for ApplyAI.

Provides structured logging without exposing secrets.
"""
import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler


def setup_logging(log_level: str = "INFO", log_dir: str = "logs"):
    """
    Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for the rotating log file
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger()
    logger.setLevel(level)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))

    # File handler carries function/line for post-mortems
    file_handler = RotatingFileHandler(
        log_path / "applyai.log",
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)

    # Third-party libraries are noisy at INFO
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def sanitize_log_data(data: dict) -> dict:
    """
    Sanitize log data to remove sensitive information.

    Args:
        data: Dictionary to sanitize

    Returns:
        Sanitized copy without secrets or raw document text
    """
    sanitized = data.copy()
    sensitive_keys = [
        "password", "token", "secret", "key", "api_key",
        "openai_api_key", "database_url", "authorization",
    ]
    bulky_keys = ["resume_text", "job_description", "content", "cover_letter", "tailored_cv"]

    for key, value in sanitized.items():
        lowered = key.lower()
        if any(sensitive in lowered for sensitive in sensitive_keys):
            sanitized[key] = "***REDACTED***"
        elif lowered in bulky_keys and isinstance(value, str):
            sanitized[key] = f"<{len(value)} chars>"

    return sanitized
