"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.

All models must be imported here to be included in database migrations and table creation.
"""
from applyai.db.models.user import User
from applyai.db.models.daily_usage import DailyUsage
from applyai.db.models.usage import UsageEvent
from applyai.db.models.cv import Cv
from applyai.db.models.application import Application
from applyai.db.models.ats_score import ATSScore

__all__ = [
    "User",
    "DailyUsage",
    "UsageEvent",
    "Cv",
    "Application",
    "ATSScore",
]
