"""ORM models for the analysis cache and run history."""

from .analysis_run import AnalysisRun
from .base import Base, DEFAULT_DATABASE_URL, create_session_factory, get_database_url
from .cache_record import CacheRecord

__all__ = [
    "Base",
    "DEFAULT_DATABASE_URL",
    "create_session_factory",
    "get_database_url",
    "CacheRecord",
    "AnalysisRun",
]
