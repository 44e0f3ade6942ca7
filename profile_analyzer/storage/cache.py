"""Content-addressed analysis cache.

Entries are invalidated by content change, not by age: the fingerprint is a
plain join of the snapshot fields and settings that affect analysis. It is not
a secure hash and doesn't need to be.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from profile_analyzer.config import AnalysisSettings
from profile_analyzer.profile.models import ProfileSnapshot
from profile_analyzer.scoring.completeness import CompletenessResult
from profile_analyzer.storage.database import AnalysisDatabase

logger = logging.getLogger("profile_analyzer.cache")

AI_CACHE_PREFIX = "aiCache_"
COMPLETENESS_CACHE_PREFIX = "completeness_"
CACHE_VERSION = "1.0"


@dataclass(frozen=True)
class AiBackedEntry:
    subject_id: str
    fingerprint: Optional[str]
    timestamp: float
    analysis: dict
    completeness: Optional[CompletenessResult] = None


@dataclass(frozen=True)
class CompletenessOnlyEntry:
    subject_id: str
    fingerprint: Optional[str]
    timestamp: float
    completeness: CompletenessResult


CacheEntry = Union[AiBackedEntry, CompletenessOnlyEntry]


def _exists(snapshot: ProfileSnapshot, section: str) -> int:
    record = snapshot.get(section)
    return 1 if record is not None and record.exists else 0


def _count(snapshot: ProfileSnapshot, section: str) -> int:
    record = snapshot.get(section)
    return record.count if record is not None else 0


def _chars(snapshot: ProfileSnapshot, section: str) -> int:
    record = snapshot.get(section)
    return record.char_count if record is not None else 0


def fingerprint(snapshot: ProfileSnapshot, settings: Optional[AnalysisSettings] = None) -> str:
    """Deterministic change-detection key for a snapshot and its settings.

    Field order and the "none"/"default" sentinels are part of the stored
    format; changing either invalidates every existing entry.
    """
    settings = settings or AnalysisSettings()
    data_points = [
        _exists(snapshot, "photo"),
        _chars(snapshot, "headline"),
        _chars(snapshot, "about"),
        _count(snapshot, "experience"),
        _count(snapshot, "skills"),
        _count(snapshot, "education"),
        _count(snapshot, "recommendations"),
        _count(snapshot, "certifications"),
        _exists(snapshot, "featured"),
        _count(snapshot, "projects"),
        snapshot.connections,
        settings.target_role or "none",
        settings.seniority_level or "none",
        "custom" if settings.custom_instructions else "default",
    ]
    return "-".join(str(point) for point in data_points)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ContentCache:
    """Per-subject cache with an AI-backed and a completeness-only variant."""

    def __init__(self, database: AnalysisDatabase, max_age_days: Optional[float] = None, clock=time.time):
        self.database = database
        self.max_age_days = max_age_days
        self._clock = clock

    def fingerprint(self, snapshot: ProfileSnapshot, settings: Optional[AnalysisSettings] = None) -> str:
        return fingerprint(snapshot, settings)

    def _read(self, key: str) -> Optional[dict]:
        try:
            return self.database.get_value(key)
        except SQLAlchemyError as e:
            logger.error("Error reading cache key %s: %s", key, e)
            return None

    def _write(self, key: str, payload: dict) -> bool:
        try:
            self.database.set_value(key, payload)
            return True
        except SQLAlchemyError as e:
            logger.error("Error saving cache key %s: %s", key, e)
            return False

    def _expired(self, timestamp: Any) -> bool:
        if self.max_age_days is None:
            return False
        if not _is_number(timestamp):
            return True
        return self._clock() - timestamp > self.max_age_days * 24 * 60 * 60

    def _ai_entry(self, subject_id: str) -> Optional[AiBackedEntry]:
        data = self._read(f"{AI_CACHE_PREFIX}{subject_id}")
        if not data or not isinstance(data.get("analysis"), dict):
            return None
        if self._expired(data.get("timestamp")):
            logger.info("AI cache expired for subject: %s", subject_id)
            return None

        completeness = None
        if isinstance(data.get("completeness"), dict):
            try:
                completeness = CompletenessResult.from_dict(data["completeness"])
            except (KeyError, TypeError, ValueError):
                logger.warning("Ignoring malformed completeness in AI cache for %s", subject_id)

        return AiBackedEntry(
            subject_id=subject_id,
            fingerprint=data.get("contentHash"),
            timestamp=data.get("timestamp", 0),
            analysis=data["analysis"],
            completeness=completeness,
        )

    def _completeness_entry(self, subject_id: str) -> Optional[CompletenessOnlyEntry]:
        data = self._read(f"{COMPLETENESS_CACHE_PREFIX}{subject_id}")
        if not data:
            return None
        if not _is_number(data.get("score")):
            logger.warning("Completeness cache for %s has no numeric score, treating as invalid", subject_id)
            return None
        if self._expired(data.get("timestamp")):
            logger.info("Completeness cache expired for subject: %s", subject_id)
            return None

        try:
            completeness = CompletenessResult.from_dict(data)
        except (KeyError, TypeError, ValueError):
            logger.warning("Malformed completeness cache for %s", subject_id)
            return None

        return CompletenessOnlyEntry(
            subject_id=subject_id,
            fingerprint=data.get("contentHash"),
            timestamp=data.get("timestamp", 0),
            completeness=completeness,
        )

    def get(self, subject_id: str) -> Optional[CacheEntry]:
        """Return the AI-backed entry if any, else the completeness-only one, else None."""
        if not subject_id:
            logger.info("No subject ID provided")
            return None

        entry: Optional[CacheEntry] = self._ai_entry(subject_id) or self._completeness_entry(subject_id)
        if entry is None:
            logger.info("No cache found for subject: %s", subject_id)
        return entry

    def get_with_completeness(self, subject_id: str) -> Optional[CacheEntry]:
        """Like ``get``, but skips an AI-backed entry that carries no completeness result."""
        if not subject_id:
            return None
        entry = self._ai_entry(subject_id)
        if entry is not None and entry.completeness is not None:
            return entry
        return self._completeness_entry(subject_id)

    def is_valid(
        self,
        entry: Optional[CacheEntry],
        snapshot: ProfileSnapshot,
        settings: Optional[AnalysisSettings] = None,
        force_refresh: bool = False,
    ) -> bool:
        if force_refresh:
            logger.debug("Force refresh requested, cache invalid")
            return False
        if entry is None or not entry.fingerprint:
            return False

        current = self.fingerprint(snapshot, settings)
        valid = entry.fingerprint == current
        logger.debug("Cache validation: cached=%s current=%s valid=%s", entry.fingerprint, current, valid)
        return valid

    def save(
        self,
        subject_id: str,
        analysis: dict,
        snapshot: ProfileSnapshot,
        settings: Optional[AnalysisSettings] = None,
        completeness: Optional[CompletenessResult] = None,
    ) -> bool:
        """Save an AI-backed analysis, fingerprinted against the snapshot it came from."""
        if not subject_id:
            logger.error("Cannot save cache without subject ID")
            return False

        content_hash = self.fingerprint(snapshot, settings)
        payload = {
            "timestamp": self._clock(),
            "contentHash": content_hash,
            "analysis": analysis,
            "version": CACHE_VERSION,
        }
        if completeness is not None:
            payload["completeness"] = completeness.to_dict()

        saved = self._write(f"{AI_CACHE_PREFIX}{subject_id}", payload)
        if saved:
            logger.info("Saved cache for subject %s (hash %s)", subject_id, content_hash)
        return saved

    def save_completeness_only(
        self,
        subject_id: str,
        completeness: CompletenessResult,
        snapshot: Optional[ProfileSnapshot] = None,
        settings: Optional[AnalysisSettings] = None,
    ) -> bool:
        if not subject_id:
            return False

        payload = completeness.to_dict()
        payload["timestamp"] = self._clock()
        payload["version"] = CACHE_VERSION
        if snapshot is not None:
            payload["contentHash"] = self.fingerprint(snapshot, settings)

        saved = self._write(f"{COMPLETENESS_CACHE_PREFIX}{subject_id}", payload)
        if saved:
            logger.info("Saved completeness cache for subject %s (score %d)", subject_id, completeness.score)
        return saved

    def clear(self, subject_id: str) -> bool:
        if not subject_id:
            return False
        try:
            self.database.remove([f"{AI_CACHE_PREFIX}{subject_id}", f"{COMPLETENESS_CACHE_PREFIX}{subject_id}"])
        except SQLAlchemyError as e:
            logger.error("Error clearing cache for %s: %s", subject_id, e)
            return False
        logger.info("Cleared cache for subject: %s", subject_id)
        return True

    def clear_all(self) -> int:
        """Remove every cache entry; returns the number removed."""
        try:
            keys = self.database.keys_with_prefix(AI_CACHE_PREFIX) + self.database.keys_with_prefix(COMPLETENESS_CACHE_PREFIX)
            removed = self.database.remove(keys) if keys else 0
        except SQLAlchemyError as e:
            logger.error("Error clearing all caches: %s", e)
            return 0
        logger.info("Cleared %d cache entries", removed)
        return removed

    def get_stats(self) -> dict:
        try:
            ai_keys = self.database.keys_with_prefix(AI_CACHE_PREFIX)
            completeness_keys = self.database.keys_with_prefix(COMPLETENESS_CACHE_PREFIX)
        except SQLAlchemyError as e:
            logger.error("Error getting cache stats: %s", e)
            return {"count": 0, "ai_entries": 0, "completeness_entries": 0}
        return {
            "count": len(ai_keys) + len(completeness_keys),
            "ai_entries": len(ai_keys),
            "completeness_entries": len(completeness_keys),
        }
