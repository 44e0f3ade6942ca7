"""Analysis orchestrator: scan, extract, score and (optionally) AI quality analysis."""

import asyncio
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from profile_analyzer.config import AnalysisSettings, AppConfig
from profile_analyzer.exceptions import ExtractionError, QualityRequestError
from profile_analyzer.profile.models import (
    ExtractionCollaborator,
    ProfileSnapshot,
    SectionRecord,
    degraded_record,
    has_content,
)
from profile_analyzer.scoring.completeness import CompletenessResult, calculate
from profile_analyzer.scoring.quality import QualityResult, prepare_for_ai, process
from profile_analyzer.session import AnalysisSession, Phase
from profile_analyzer.storage.cache import AiBackedEntry, ContentCache
from profile_analyzer.storage.database import AnalysisDatabase
from profile_analyzer.utils.retry import retry_with_backoff

logger = logging.getLogger("profile_analyzer.pipeline")

CONTENT_SECTIONS = ("about", "experience", "skills")

ROLE_SECTIONS = (
    ("engineer", ("projects", "certifications")),
    ("manager", ("recommendations",)),
)


@dataclass
class AnalysisOutcome:
    """What one orchestration run produced."""

    subject_id: str
    phase: Phase
    snapshot: Optional[ProfileSnapshot] = None
    completeness: Optional[CompletenessResult] = None
    quality: Optional[QualityResult] = None
    ai_disabled: bool = False
    ai_error: Optional[str] = None
    from_cache: bool = False
    error: Optional[str] = None
    recovered_from: Optional[str] = None
    retry_counts: dict[str, int] = field(default_factory=dict)
    skipped: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.phase == Phase.COMPLETE

    def to_dict(self) -> dict:
        return {
            "subjectId": self.subject_id,
            "phase": self.phase.value,
            "completeness": self.completeness.score if self.completeness else None,
            "completenessData": self.completeness.to_dict() if self.completeness else None,
            "contentScore": self.quality.content_score if self.quality else None,
            "qualityData": self.quality.to_dict() if self.quality else None,
            "aiDisabled": self.ai_disabled,
            "aiError": self.ai_error,
            "fromCache": self.from_cache,
            "error": self.error,
            "recoveredFrom": self.recovered_from,
            "retryCounts": dict(self.retry_counts),
            "skipped": self.skipped,
        }


def prioritize_sections(snapshot: ProfileSnapshot, settings: AnalysisSettings) -> list[str]:
    """Order sections for deep extraction.

    Content-bearing sections come first, then sections the target role cares
    about, then anything else with content.
    """
    ordered = [name for name in CONTENT_SECTIONS if has_content(snapshot.get(name))]

    role = (settings.target_role or "").lower()
    for keyword, sections in ROLE_SECTIONS:
        if keyword in role:
            for name in sections:
                record = snapshot.get(name)
                if record is not None and record.exists and name not in ordered:
                    ordered.append(name)
            break

    for name in snapshot.sections:
        if name not in ordered and has_content(snapshot.get(name)):
            ordered.append(name)
    return ordered


class AnalysisOrchestrator:
    """Drives one subject through the analysis phases.

    ``listener(phase, payload)`` is called on every phase transition; it is
    the hook a UI uses to show progress.
    """

    def __init__(
        self,
        extractor: ExtractionCollaborator,
        cache: ContentCache,
        config: Optional[AppConfig] = None,
        quality_client: Any = None,
        database: Optional[AnalysisDatabase] = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        listener: Optional[Callable[[Phase, dict], None]] = None,
    ):
        self.extractor = extractor
        self.cache = cache
        self.config = config or AppConfig()
        self.quality_client = quality_client
        self.database = database
        self._sleep = sleep
        self._clock = clock
        self._listener = listener

    def new_session(self, subject_id: str, force_refresh: bool = False) -> AnalysisSession:
        return AnalysisSession(
            subject_id=subject_id,
            force_refresh=force_refresh,
            is_own_profile=self.config.profile.is_own_profile,
            throttle_seconds=self.config.analysis.throttle_seconds,
        )

    def load_cached(self, subject_id: str):
        """Cached entry for initial display, before any run."""
        return self.cache.get(subject_id)

    async def run(self, session: AnalysisSession, settings: Optional[AnalysisSettings] = None) -> AnalysisOutcome:
        """Run the full pipeline for the session's subject.

        Never raises for pipeline failures: the returned outcome is COMPLETE,
        ERROR (carrying the best completeness data available), or skipped.
        """
        settings = settings or self.config.settings
        subject_id = session.subject_id

        skip_reason = session.try_begin(self._clock)
        if skip_reason:
            logger.info("[%s] Skipping analysis: %s", subject_id, skip_reason)
            return AnalysisOutcome(
                subject_id=subject_id,
                phase=session.phase,
                completeness=session.last_completeness_result,
                skipped=skip_reason,
            )

        logger.info("[%s] Starting analysis (force_refresh=%s)", subject_id, session.force_refresh)
        start = self._clock()
        previous = session.last_completeness_result
        try:
            outcome = await self._analyze(session, settings)
        except Exception as e:
            logger.error("[%s] Analysis failed: %s", subject_id, e, exc_info=True)
            # Set only when this run got past CALCULATE
            fresh = session.last_completeness_result if session.last_completeness_result is not previous else None
            outcome = await self._recover(session, e, completeness=fresh)
        finally:
            session.reset()

        self._record_run(outcome, round(self._clock() - start, 2))
        logger.info(
            "[%s] Analysis finished: phase=%s completeness=%s content=%s",
            subject_id,
            outcome.phase.value,
            outcome.completeness.score if outcome.completeness else None,
            outcome.quality.content_score if outcome.quality else None,
        )
        return outcome

    def _transition(self, session: AnalysisSession, phase: Phase, **payload: Any) -> None:
        session.phase = phase
        logger.debug("[%s] Phase -> %s", session.subject_id, phase.value)
        if self._listener is None:
            return
        try:
            self._listener(phase, payload)
        except Exception as e:
            logger.warning("Phase listener failed on %s: %s", phase.value, e)

    def _ai_enabled(self, session: AnalysisSession) -> bool:
        return bool(self.config.ai.enable_ai and self.quality_client is not None and session.is_own_profile)

    async def _analyze(self, session: AnalysisSession, settings: AnalysisSettings) -> AnalysisOutcome:
        subject_id = session.subject_id

        self._transition(session, Phase.SCAN)
        scan_results = await self._scan_all(subject_id)

        self._transition(session, Phase.EXTRACT)
        sections = await self._extract_all(session, scan_results)
        snapshot = ProfileSnapshot(subject_id=subject_id, sections=sections)

        self._transition(session, Phase.CALCULATE)
        completeness = calculate(snapshot)
        session.last_completeness_result = completeness
        # Saved before any AI work so completeness survives downstream failures
        self.cache.save_completeness_only(subject_id, completeness, snapshot, settings)

        outcome = AnalysisOutcome(
            subject_id=subject_id,
            phase=Phase.COMPLETE,
            snapshot=snapshot,
            completeness=completeness,
            retry_counts=dict(session.retry_counts),
        )

        if not self._ai_enabled(session):
            outcome.ai_disabled = True
            self._transition(session, Phase.COMPLETE, completeness=completeness.score, aiDisabled=True)
            return outcome

        self._transition(session, Phase.DEEP_EXTRACT, completeness=completeness.score)
        deep_data = await self._extract_deep_selectively(snapshot, settings)

        self._transition(session, Phase.QUALITY_REQUEST)
        await self._request_quality(session, settings, snapshot, completeness, deep_data, outcome)

        self._transition(
            session,
            Phase.COMPLETE,
            completeness=completeness.score,
            contentScore=outcome.quality.content_score if outcome.quality else None,
            aiError=outcome.ai_error,
        )
        return outcome

    async def _scan_one(self, section: str) -> SectionRecord:
        try:
            result = await self.extractor.scan(section)
        except Exception as e:
            logger.warning("Error scanning %s: %s", section, e)
            return degraded_record()
        return SectionRecord.from_dict(result)

    async def _scan_all(self, subject_id: str) -> dict[str, SectionRecord]:
        """Probe every known section concurrently, bounded by the scan timeout."""
        sections = list(self.extractor.sections)
        if not sections:
            return {}

        tasks = {asyncio.create_task(self._scan_one(section)): section for section in sections}
        done, pending = await asyncio.wait(tasks, timeout=self.config.analysis.scan_timeout)

        results: dict[str, SectionRecord] = {}
        for task in done:
            results[tasks[task]] = task.result()

        if pending:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            late = sorted(tasks[task] for task in pending)
            logger.warning("[%s] Scan timed out for sections: %s", subject_id, ", ".join(late))
            for section in late:
                results[section] = SectionRecord(exists=False, details={"timedOut": True})

        # Keep the extractor's section order
        return {section: results[section] for section in sections}

    async def _extract_once(self, section: str) -> SectionRecord:
        data = await self.extractor.extract(section)
        if not isinstance(data, Mapping) or "exists" not in data:
            raise ExtractionError(f"Malformed extraction result for {section}", section=section)
        return SectionRecord.from_dict(data)

    async def _extract_all(self, session: AnalysisSession, scan_results: dict[str, SectionRecord]) -> dict[str, SectionRecord]:
        analysis = self.config.analysis
        results: dict[str, SectionRecord] = {}

        for section, scanned in scan_results.items():
            if not scanned.exists:
                results[section] = scanned
                continue

            outcome = await retry_with_backoff(
                lambda section=section: self._extract_once(section),
                max_attempts=analysis.max_attempts,
                initial_delay=analysis.initial_delay,
                backoff_factor=analysis.backoff_factor,
                sleep=self._sleep,
                description=f"Extracting {section}",
            )
            session.retry_counts[section] = outcome.attempts

            if outcome.ok:
                results[section] = outcome.value
            else:
                logger.error(
                    "[%s] Giving up on %s after %d attempts: %s",
                    session.subject_id, section, outcome.attempts, outcome.error,
                )
                results[section] = degraded_record(attempts=outcome.attempts)

        return results

    async def _extract_deep_selectively(self, snapshot: ProfileSnapshot, settings: AnalysisSettings) -> dict[str, SectionRecord]:
        deep_results: dict[str, SectionRecord] = {}
        extract_deep = getattr(self.extractor, "extract_deep", None)

        for section in prioritize_sections(snapshot, settings):
            basic = snapshot.get(section)
            if extract_deep is None:
                deep_results[section] = basic
                continue
            try:
                data = await extract_deep(section)
            except Exception as e:
                logger.warning("Error deep extracting %s: %s", section, e)
                deep_results[section] = basic
                continue

            record = SectionRecord.from_dict(data)
            deep_results[section] = basic if record.error else record

        return deep_results

    async def _request_quality(
        self,
        session: AnalysisSession,
        settings: AnalysisSettings,
        snapshot: ProfileSnapshot,
        completeness: CompletenessResult,
        deep_data: dict[str, SectionRecord],
        outcome: AnalysisOutcome,
    ) -> None:
        """Best-effort AI quality analysis; failures only set ``outcome.ai_error``."""
        subject_id = session.subject_id

        cached = self.cache.get(subject_id)
        if isinstance(cached, AiBackedEntry) and self.cache.is_valid(cached, snapshot, settings, session.force_refresh):
            logger.info("[%s] Content unchanged, using cached quality analysis", subject_id)
            try:
                outcome.quality = QualityResult.from_dict(cached.analysis)
                outcome.from_cache = True
                return
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning("[%s] Cached quality analysis unusable: %s", subject_id, e)

        try:
            request = {
                "subjectId": subject_id,
                "prepared": prepare_for_ai(deep_data, settings, completeness),
                "snapshot": {name: record.to_dict() for name, record in deep_data.items()},
                "completenessResult": completeness.to_dict(),
                "settings": settings.to_dict(),
                "forceRefresh": session.force_refresh,
            }
            response = await asyncio.wait_for(
                self.quality_client.analyze(request),
                timeout=self.config.ai.request_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("[%s] AI analysis timed out", subject_id)
            outcome.ai_error = "AI analysis timed out"
            return
        except Exception as e:
            logger.warning("[%s] AI analysis failed: %s", subject_id, e)
            outcome.ai_error = str(e) or type(e).__name__
            return

        try:
            self._apply_quality_response(subject_id, response, settings, snapshot, completeness, outcome)
        except (QualityRequestError, TypeError, ValueError, AttributeError) as e:
            logger.warning("[%s] Could not process AI response: %s", subject_id, e)
            outcome.quality = None
            outcome.ai_error = str(e) or type(e).__name__

    def _apply_quality_response(
        self,
        subject_id: str,
        response: Any,
        settings: AnalysisSettings,
        snapshot: ProfileSnapshot,
        completeness: CompletenessResult,
        outcome: AnalysisOutcome,
    ) -> None:
        if not isinstance(response, Mapping):
            raise QualityRequestError("AI response was not an object")

        if response.get("error"):
            outcome.ai_error = str(response["error"])
            return

        section_scores = response.get("sectionScores") or {}
        content_score = response.get("contentScore")
        if content_score is None and not section_scores:
            if response.get("aiDisabled"):
                logger.info("[%s] AI analysis not available", subject_id)
                outcome.ai_disabled = True
            else:
                outcome.ai_error = "AI response contained no scores"
            return

        quality = process(
            section_scores,
            snapshot,
            recommendations=response.get("recommendations"),
            insights=response.get("insights"),
            fallback_score=content_score,
        )
        outcome.quality = quality
        outcome.from_cache = bool(response.get("fromCache"))

        if not outcome.from_cache:
            self.cache.save(subject_id, quality.to_dict(), snapshot, settings, completeness=completeness)

    async def _recover(
        self,
        session: AnalysisSession,
        error: Exception,
        completeness: Optional[CompletenessResult] = None,
    ) -> AnalysisOutcome:
        """Salvage completeness data after a pipeline-fatal error.

        A result this run already calculated wins. Otherwise tries the cache,
        then an existence-only scan. The outcome is always ERROR, but carries
        whatever completeness data was found.
        """
        subject_id = session.subject_id
        self._transition(session, Phase.RECOVERY)

        outcome = AnalysisOutcome(
            subject_id=subject_id,
            phase=Phase.ERROR,
            error=f"{type(error).__name__}: {error}",
            retry_counts=dict(session.retry_counts),
        )

        if completeness is not None:
            logger.info("[%s] Keeping completeness calculated before the failure", subject_id)
            outcome.completeness = completeness
            outcome.recovered_from = "session"
        else:
            await self._recover_from_cache_or_scan(subject_id, outcome)

        if outcome.completeness is None:
            outcome.completeness = session.last_completeness_result

        self._transition(
            session,
            Phase.ERROR,
            message=outcome.error,
            completeness=outcome.completeness.score if outcome.completeness else None,
        )
        return outcome

    async def _recover_from_cache_or_scan(self, subject_id: str, outcome: AnalysisOutcome) -> None:
        entry = None
        try:
            entry = self.cache.get_with_completeness(subject_id)
        except Exception as e:
            logger.error("[%s] Recovery cache lookup failed: %s", subject_id, e)

        if entry is not None:
            logger.info("[%s] Recovered completeness from cache", subject_id)
            outcome.completeness = entry.completeness
            outcome.recovered_from = "cache"
            outcome.from_cache = True
            if isinstance(entry, AiBackedEntry):
                try:
                    outcome.quality = QualityResult.from_dict(entry.analysis)
                except (TypeError, ValueError, AttributeError):
                    logger.warning("[%s] Cached quality analysis unusable", subject_id)
            return

        try:
            scanned = await self._scan_all(subject_id)
            snapshot = ProfileSnapshot(subject_id=subject_id, sections=scanned)
            outcome.snapshot = snapshot
            outcome.completeness = calculate(snapshot)
            outcome.recovered_from = "minimal_extraction"
            logger.info("[%s] Recovered completeness from existence-only scan", subject_id)
        except Exception as e:
            logger.error("[%s] Minimal extraction failed during recovery: %s", subject_id, e)

    def _record_run(self, outcome: AnalysisOutcome, duration: float) -> None:
        if self.database is None:
            return
        try:
            self.database.record_run(
                subject_id=outcome.subject_id,
                final_phase=outcome.phase.value,
                completeness_score=outcome.completeness.score if outcome.completeness else None,
                content_score=outcome.quality.content_score if outcome.quality else None,
                from_cache=outcome.from_cache,
                ai_error=outcome.ai_error,
                error_message=outcome.error,
                duration_seconds=duration,
            )
        except SQLAlchemyError as e:
            logger.error("[%s] Failed to record run: %s", outcome.subject_id, e)
