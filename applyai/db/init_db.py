import logging

from applyai.db.session import engine
from applyai.db.base import Base

logger = logging.getLogger(__name__)


def init_db(bind=None) -> None:
    """Create all tables that do not exist yet (development / SQLite path)."""
    # Registers every model on Base.metadata
    import applyai.db.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables ensured")
