"""Key-value payload store and run history on top of SQLAlchemy."""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from profile_analyzer.models import AnalysisRun, CacheRecord, create_session_factory, get_database_url

logger = logging.getLogger("profile_analyzer.storage")


class AnalysisDatabase:
    """JSON payloads keyed by string, plus a log of analysis runs.

    Each write is its own transaction, so writes are atomic per key and there
    are no cross-key transactions.
    """

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or get_database_url()
        self.SessionLocal = create_session_factory(self.database_url)

    def get_value(self, key: str) -> Optional[dict]:
        with self.SessionLocal() as db:
            record = db.get(CacheRecord, key)
            return dict(record.payload) if record else None

    def set_value(self, key: str, payload: dict) -> None:
        with self.SessionLocal() as db:
            try:
                record = db.get(CacheRecord, key)
                if record is None:
                    db.add(CacheRecord(key=key, payload=payload))
                else:
                    record.payload = payload
                    record.updated_at = datetime.now(timezone.utc)
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                raise

    def remove(self, keys: list[str]) -> int:
        """Delete keys; returns how many existed."""
        with self.SessionLocal() as db:
            try:
                removed = db.query(CacheRecord).filter(CacheRecord.key.in_(keys)).delete(synchronize_session=False)
                db.commit()
                return removed
            except SQLAlchemyError:
                db.rollback()
                raise

    def keys_with_prefix(self, prefix: str) -> list[str]:
        with self.SessionLocal() as db:
            rows = db.execute(select(CacheRecord.key).where(CacheRecord.key.startswith(prefix, autoescape=True))).all()
            return [row[0] for row in rows]

    def record_run(
        self,
        subject_id: str,
        final_phase: str,
        completeness_score: Optional[int] = None,
        content_score: Optional[float] = None,
        from_cache: bool = False,
        ai_error: Optional[str] = None,
        error_message: Optional[str] = None,
        duration_seconds: Optional[float] = None,
    ) -> None:
        """Record a finished analysis run in history."""
        with self.SessionLocal() as db:
            try:
                db.add(AnalysisRun(
                    subject_id=subject_id,
                    final_phase=final_phase,
                    completeness_score=completeness_score,
                    content_score=content_score,
                    from_cache=from_cache,
                    ai_error=ai_error,
                    error_message=error_message,
                    duration_seconds=duration_seconds,
                ))
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                raise

    def get_stats(self) -> dict[str, Any]:
        """Get database statistics."""
        stats: dict[str, Any] = {}
        with self.SessionLocal() as db:
            stats["cache_entries"] = db.scalar(select(func.count()).select_from(CacheRecord)) or 0
            stats["total_runs"] = db.scalar(select(func.count()).select_from(AnalysisRun)) or 0

            rows = db.execute(
                select(AnalysisRun.final_phase, func.count()).group_by(AnalysisRun.final_phase)
            ).all()
            stats["by_phase"] = {phase: count for phase, count in rows}

            last = db.execute(select(AnalysisRun).order_by(AnalysisRun.id.desc()).limit(1)).scalar_one_or_none()
            if last:
                stats["last_run"] = {
                    "subject_id": last.subject_id,
                    "run_at": last.run_at.isoformat() if last.run_at else None,
                    "final_phase": last.final_phase,
                    "completeness_score": last.completeness_score,
                    "content_score": last.content_score,
                    "from_cache": bool(last.from_cache),
                    "ai_error": last.ai_error,
                    "error_message": last.error_message,
                }
        return stats

    def close(self):
        self.SessionLocal.kw["bind"].dispose()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
