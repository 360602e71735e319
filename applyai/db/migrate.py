"""
Database migration runner for Alembic migrations.
"""
import logging
import os
from alembic.config import Config
from alembic import command
from sqlalchemy import create_engine, text

logger = logging.getLogger(__name__)

ADVISORY_LOCK_ID = 748213905
ALEMBIC_INI_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "alembic.ini")


def build_alembic_config(database_url: str) -> Config:
    alembic_cfg = Config(ALEMBIC_INI_PATH)
    alembic_cfg.set_main_option("script_location", os.path.join(os.path.dirname(ALEMBIC_INI_PATH), "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    return alembic_cfg


def run_migrations(database_url: str = None):
    """
    Run Alembic migrations to head revision.

    On PostgreSQL an advisory lock keeps concurrent app instances from
    migrating at the same time.
    """
    from applyai.core import config as app_config

    database_url = database_url or app_config.DATABASE_URL
    if not database_url:
        raise ValueError("DATABASE_URL is not set")

    logger.info("RUN_MIGRATIONS=1 -> running alembic upgrade head")
    alembic_cfg = build_alembic_config(database_url)

    is_postgres = database_url.startswith("postgresql")
    engine = create_engine(database_url, pool_pre_ping=True)
    lock_conn = None

    try:
        if is_postgres:
            # Keep the connection open to hold the lock
            lock_conn = engine.connect()
            lock_conn.execute(text(f"SELECT pg_advisory_lock({ADVISORY_LOCK_ID})"))
            lock_conn.commit()
            logger.info("Migration lock acquired")

        command.upgrade(alembic_cfg, "head")
        logger.info("Migrations complete")

    except Exception:
        logger.exception("Migration failed")
        raise
    finally:
        if lock_conn:
            try:
                lock_conn.execute(text(f"SELECT pg_advisory_unlock({ADVISORY_LOCK_ID})"))
                lock_conn.commit()
            finally:
                lock_conn.close()
        engine.dispose()
