"""Tests for the analysis orchestrator."""

import asyncio
import os
import tempfile
from collections import Counter
from unittest.mock import AsyncMock, patch

import pytest

from profile_analyzer.config import AnalysisSettings, AppConfig
from profile_analyzer.exceptions import QualityRequestError, RateLimitError
from profile_analyzer.pipeline import AnalysisOrchestrator, prioritize_sections
from profile_analyzer.profile.models import ProfileSnapshot
from profile_analyzer.scoring.completeness import calculate
from profile_analyzer.session import Phase
from profile_analyzer.storage.cache import AiBackedEntry, CompletenessOnlyEntry, ContentCache
from profile_analyzer.storage.database import AnalysisDatabase

PROFILE = {
    "photo": {"exists": True},
    "headline": {"exists": True, "charCount": 120, "text": "Backend Engineer"},
    "about": {"exists": True, "charCount": 900, "text": "About me"},
    "experience": {"exists": True, "count": 3},
    "skills": {"exists": True, "count": 20},
    "education": {"exists": True, "count": 1},
    "recommendations": {"exists": True, "count": 2},
    "certifications": {"exists": False, "count": 0},
    "projects": {"exists": False, "count": 0},
}

AI_RESPONSE = {
    "sectionScores": {"about": 8, "experience": 7, "skills": 9, "headline": 6},
    "recommendations": {"high": ["Quantify your impact"]},
    "insights": {"strengths": "Clear focus"},
    "fromCache": False,
}


class FakeExtractor:
    """In-memory extraction collaborator with scripted failures and delays."""

    def __init__(self, data=None, failures=None, scan_delays=None, scan_errors=()):
        self.data = dict(data or PROFILE)
        self.sections = list(self.data)
        self.failures = failures or {}
        self.scan_delays = scan_delays or {}
        self.scan_errors = set(scan_errors)
        self.scan_calls = Counter()
        self.extract_calls = Counter()
        self.deep_calls = Counter()

    async def scan(self, section):
        self.scan_calls[section] += 1
        if section in self.scan_delays:
            await asyncio.sleep(self.scan_delays[section])
        if section in self.scan_errors:
            raise RuntimeError(f"scan blew up on {section}")
        record = self.data[section]
        return {"exists": record.get("exists", False), "visibleCount": record.get("count", 0)}

    async def extract(self, section):
        self.extract_calls[section] += 1
        if self.extract_calls[section] <= self.failures.get(section, 0):
            raise RuntimeError(f"{section} not rendered yet")
        return dict(self.data[section])

    async def extract_deep(self, section):
        self.deep_calls[section] += 1
        return dict(self.data[section], deep=True)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def db():
    with tempfile.TemporaryDirectory() as tmpdir:
        database = AnalysisDatabase(f"sqlite:///{os.path.join(tmpdir, 'test.db')}")
        yield database
        database.close()


@pytest.fixture
def cache(db):
    return ContentCache(db)


@pytest.fixture
def config():
    return AppConfig()


@pytest.fixture
def ai_config():
    config = AppConfig()
    config.ai.enable_ai = True
    return config


@pytest.fixture
def quality_client():
    client = AsyncMock()
    client.analyze.return_value = dict(AI_RESPONSE)
    return client


def make_orchestrator(extractor, cache, config, **kwargs):
    phases = []
    kwargs.setdefault("sleep", RecordingSleep())
    kwargs.setdefault("clock", FakeClock())
    orchestrator = AnalysisOrchestrator(
        extractor,
        cache,
        config,
        listener=lambda phase, payload: phases.append(phase),
        **kwargs,
    )
    return orchestrator, phases


class TestCompletenessOnlyRun:
    @pytest.mark.asyncio
    async def test_complete_run(self, cache, config):
        orchestrator, phases = make_orchestrator(FakeExtractor(), cache, config)
        session = orchestrator.new_session("jane")

        outcome = await orchestrator.run(session)

        assert outcome.phase == Phase.COMPLETE
        assert outcome.success
        assert outcome.completeness.score == 95
        assert outcome.ai_disabled
        assert outcome.quality is None
        assert phases == [Phase.SCAN, Phase.EXTRACT, Phase.CALCULATE, Phase.COMPLETE]
        assert session.last_completeness_result is outcome.completeness

    @pytest.mark.asyncio
    async def test_completeness_saved_with_fingerprint(self, cache, config):
        orchestrator, _ = make_orchestrator(FakeExtractor(), cache, config)
        outcome = await orchestrator.run(orchestrator.new_session("jane"))

        entry = cache.get("jane")
        assert isinstance(entry, CompletenessOnlyEntry)
        assert entry.completeness.score == 95
        assert entry.fingerprint == cache.fingerprint(outcome.snapshot, config.settings)

    @pytest.mark.asyncio
    async def test_missing_sections_not_extracted(self, cache, config):
        extractor = FakeExtractor()
        orchestrator, _ = make_orchestrator(extractor, cache, config)
        outcome = await orchestrator.run(orchestrator.new_session("jane"))

        assert extractor.extract_calls["certifications"] == 0
        assert extractor.extract_calls["about"] == 1
        assert not outcome.snapshot.get("certifications").exists

    @pytest.mark.asyncio
    async def test_extracted_details_reach_snapshot(self, cache, config):
        orchestrator, _ = make_orchestrator(FakeExtractor(), cache, config)
        outcome = await orchestrator.run(orchestrator.new_session("jane"))
        assert outcome.snapshot.get("headline").get("text") == "Backend Engineer"

    @pytest.mark.asyncio
    async def test_session_released(self, cache, config):
        orchestrator, _ = make_orchestrator(FakeExtractor(), cache, config)
        session = orchestrator.new_session("jane", force_refresh=True)
        await orchestrator.run(session)
        assert not session.is_extracting
        assert not session.force_refresh

    @pytest.mark.asyncio
    async def test_run_recorded(self, cache, config, db):
        orchestrator, _ = make_orchestrator(FakeExtractor(), cache, config, database=db)
        await orchestrator.run(orchestrator.new_session("jane"))

        stats = db.get_stats()
        assert stats["total_runs"] == 1
        assert stats["last_run"]["final_phase"] == "complete"
        assert stats["last_run"]["completeness_score"] == 95


class TestExtractionFailures:
    @pytest.mark.asyncio
    async def test_section_fails_every_attempt(self, cache, config):
        extractor = FakeExtractor(failures={"skills": 99})
        sleep = RecordingSleep()
        orchestrator, phases = make_orchestrator(extractor, cache, config, sleep=sleep)
        session = orchestrator.new_session("jane")

        outcome = await orchestrator.run(session)

        skills = outcome.snapshot.get("skills")
        assert not skills.exists
        assert skills.error
        assert skills.attempts == 3
        assert extractor.extract_calls["skills"] == 3
        assert session.retry_counts["skills"] == 3
        assert sleep.delays == [0.5, 1.0]
        assert Phase.CALCULATE in phases
        assert outcome.phase == Phase.COMPLETE
        # everything else still scores: 95 - 15 for skills
        assert outcome.completeness.score == 80

    @pytest.mark.asyncio
    async def test_retry_succeeds(self, cache, config):
        extractor = FakeExtractor(failures={"experience": 1})
        orchestrator, _ = make_orchestrator(extractor, cache, config)
        outcome = await orchestrator.run(orchestrator.new_session("jane"))

        assert outcome.snapshot.get("experience").count == 3
        assert outcome.retry_counts["experience"] == 2
        assert outcome.completeness.score == 95

    @pytest.mark.asyncio
    async def test_malformed_extract_result_degrades(self, cache, config):
        extractor = FakeExtractor()
        extractor.data["about"] = {"charCount": 900}
        orchestrator, _ = make_orchestrator(extractor, cache, config)

        async def scan_exists(section):
            return {"exists": True}

        extractor.scan = scan_exists
        outcome = await orchestrator.run(orchestrator.new_session("jane"))

        assert outcome.snapshot.get("about").error
        assert extractor.extract_calls["about"] == 3

    @pytest.mark.asyncio
    async def test_scan_timeout_marks_sections_missing(self, cache):
        config = AppConfig()
        config.analysis.scan_timeout = 0.05
        extractor = FakeExtractor(scan_delays={"recommendations": 5})
        orchestrator, _ = make_orchestrator(extractor, cache, config)

        outcome = await orchestrator.run(orchestrator.new_session("jane"))

        recommendations = outcome.snapshot.get("recommendations")
        assert not recommendations.exists
        assert recommendations.get("timedOut") is True
        assert extractor.extract_calls["recommendations"] == 0
        assert outcome.phase == Phase.COMPLETE
        assert outcome.completeness.score == 85
        assert list(outcome.snapshot.sections) == extractor.sections

    @pytest.mark.asyncio
    async def test_scan_error_degrades_section(self, cache, config):
        extractor = FakeExtractor(scan_errors={"photo"})
        orchestrator, _ = make_orchestrator(extractor, cache, config)
        outcome = await orchestrator.run(orchestrator.new_session("jane"))

        assert outcome.snapshot.get("photo").error
        assert outcome.completeness.score == 90


class TestRunGuard:
    @pytest.mark.asyncio
    async def test_in_progress_run_is_skipped(self, cache, config):
        extractor = FakeExtractor()
        orchestrator, _ = make_orchestrator(extractor, cache, config)
        session = orchestrator.new_session("jane")
        session.is_extracting = True

        outcome = await orchestrator.run(session)

        assert outcome.skipped == "analysis already in progress"
        assert sum(extractor.scan_calls.values()) == 0
        assert session.is_extracting

    @pytest.mark.asyncio
    async def test_concurrent_triggers_run_once(self, cache, config):
        extractor = FakeExtractor()
        orchestrator, _ = make_orchestrator(extractor, cache, config)
        session = orchestrator.new_session("jane")

        first, second = await asyncio.gather(orchestrator.run(session), orchestrator.run(session))

        assert first.phase == Phase.COMPLETE
        assert second.skipped == "analysis already in progress"
        assert extractor.scan_calls["about"] == 1

    @pytest.mark.asyncio
    async def test_throttle(self, cache, config):
        clock = FakeClock()
        orchestrator, _ = make_orchestrator(FakeExtractor(), cache, config, clock=clock)
        session = orchestrator.new_session("jane")

        assert (await orchestrator.run(session)).phase == Phase.COMPLETE

        clock.now += 2
        throttled = await orchestrator.run(session)
        assert throttled.skipped == "throttled"
        assert throttled.completeness.score == 95

        clock.now += 5
        assert (await orchestrator.run(session)).skipped is None


class TestQualityRequest:
    @pytest.mark.asyncio
    async def test_quality_analysis(self, cache, ai_config, quality_client):
        extractor = FakeExtractor()
        orchestrator, phases = make_orchestrator(extractor, cache, ai_config, quality_client=quality_client)
        settings = AnalysisSettings(target_role="Backend Engineer")

        outcome = await orchestrator.run(orchestrator.new_session("jane"), settings)

        assert phases == [
            Phase.SCAN, Phase.EXTRACT, Phase.CALCULATE,
            Phase.DEEP_EXTRACT, Phase.QUALITY_REQUEST, Phase.COMPLETE,
        ]
        assert outcome.quality is not None
        assert outcome.quality.recommendations["high"] == ["Quantify your impact"]
        assert not outcome.from_cache
        assert not outcome.ai_disabled
        assert extractor.deep_calls["about"] == 1

        request = quality_client.analyze.call_args.args[0]
        assert request["subjectId"] == "jane"
        assert request["prepared"]["targetRole"] == "Backend Engineer"
        assert request["completenessResult"]["score"] == 95

        entry = cache.get("jane")
        assert isinstance(entry, AiBackedEntry)
        assert entry.completeness.score == 95
        assert entry.analysis["contentScore"] == outcome.quality.content_score

    @pytest.mark.asyncio
    async def test_unchanged_profile_reuses_cached_quality(self, cache, ai_config, quality_client):
        clock = FakeClock()
        orchestrator, _ = make_orchestrator(FakeExtractor(), cache, ai_config, quality_client=quality_client, clock=clock)
        session = orchestrator.new_session("jane")

        first = await orchestrator.run(session)
        clock.now += 10
        second = await orchestrator.run(session)

        assert quality_client.analyze.await_count == 1
        assert second.from_cache
        assert second.quality.content_score == first.quality.content_score

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_cache(self, cache, ai_config, quality_client):
        clock = FakeClock()
        orchestrator, _ = make_orchestrator(FakeExtractor(), cache, ai_config, quality_client=quality_client, clock=clock)
        session = orchestrator.new_session("jane")

        await orchestrator.run(session)
        clock.now += 10
        session.force_refresh = True
        outcome = await orchestrator.run(session)

        assert quality_client.analyze.await_count == 2
        assert not outcome.from_cache

    @pytest.mark.asyncio
    async def test_changed_profile_invalidates_cached_quality(self, cache, ai_config, quality_client):
        clock = FakeClock()
        extractor = FakeExtractor()
        orchestrator, _ = make_orchestrator(extractor, cache, ai_config, quality_client=quality_client, clock=clock)
        session = orchestrator.new_session("jane")

        await orchestrator.run(session)
        extractor.data["about"] = {"exists": True, "charCount": 950, "text": "Rewritten"}
        clock.now += 10
        await orchestrator.run(session)

        assert quality_client.analyze.await_count == 2

    @pytest.mark.asyncio
    async def test_quality_failure_keeps_completeness(self, cache, ai_config, quality_client):
        quality_client.analyze.side_effect = QualityRequestError("service unavailable")
        orchestrator, phases = make_orchestrator(FakeExtractor(), cache, ai_config, quality_client=quality_client)

        outcome = await orchestrator.run(orchestrator.new_session("jane"))

        assert outcome.phase == Phase.COMPLETE
        assert outcome.ai_error == "service unavailable"
        assert outcome.quality is None
        assert outcome.completeness.score == 95
        assert Phase.ERROR not in phases
        assert Phase.RECOVERY not in phases
        assert isinstance(cache.get("jane"), CompletenessOnlyEntry)

    @pytest.mark.asyncio
    async def test_rate_limited_request(self, cache, ai_config, quality_client):
        quality_client.analyze.side_effect = RateLimitError(30)
        orchestrator, _ = make_orchestrator(FakeExtractor(), cache, ai_config, quality_client=quality_client)

        outcome = await orchestrator.run(orchestrator.new_session("jane"))

        assert outcome.phase == Phase.COMPLETE
        assert outcome.ai_error == "Rate limit exceeded. Please wait 30 seconds."
        assert outcome.completeness.score == 95

    @pytest.mark.asyncio
    async def test_quality_timeout(self, cache, ai_config, quality_client):
        ai_config.ai.request_timeout = 0.05

        async def hang(request):
            await asyncio.sleep(5)

        quality_client.analyze.side_effect = hang
        orchestrator, _ = make_orchestrator(FakeExtractor(), cache, ai_config, quality_client=quality_client)

        outcome = await orchestrator.run(orchestrator.new_session("jane"))

        assert outcome.phase == Phase.COMPLETE
        assert outcome.ai_error == "AI analysis timed out"

    @pytest.mark.asyncio
    async def test_error_response(self, cache, ai_config, quality_client):
        quality_client.analyze.return_value = {"error": "rate limited"}
        orchestrator, _ = make_orchestrator(FakeExtractor(), cache, ai_config, quality_client=quality_client)
        outcome = await orchestrator.run(orchestrator.new_session("jane"))

        assert outcome.ai_error == "rate limited"
        assert outcome.phase == Phase.COMPLETE

    @pytest.mark.asyncio
    async def test_ai_disabled_response(self, cache, ai_config, quality_client):
        quality_client.analyze.return_value = {"aiDisabled": True}
        orchestrator, _ = make_orchestrator(FakeExtractor(), cache, ai_config, quality_client=quality_client)
        outcome = await orchestrator.run(orchestrator.new_session("jane"))

        assert outcome.ai_disabled
        assert outcome.ai_error is None
        assert outcome.quality is None

    @pytest.mark.asyncio
    async def test_empty_response_is_an_error(self, cache, ai_config, quality_client):
        quality_client.analyze.return_value = {}
        orchestrator, _ = make_orchestrator(FakeExtractor(), cache, ai_config, quality_client=quality_client)
        outcome = await orchestrator.run(orchestrator.new_session("jane"))

        assert outcome.ai_error == "AI response contained no scores"

    @pytest.mark.asyncio
    async def test_content_score_only_response(self, cache, ai_config, quality_client):
        quality_client.analyze.return_value = {"contentScore": 7.2}
        orchestrator, _ = make_orchestrator(FakeExtractor(), cache, ai_config, quality_client=quality_client)
        outcome = await orchestrator.run(orchestrator.new_session("jane"))

        assert outcome.quality.content_score == 7.2

    @pytest.mark.asyncio
    async def test_cached_response_not_resaved(self, cache, ai_config, quality_client):
        quality_client.analyze.return_value = dict(AI_RESPONSE, fromCache=True)
        orchestrator, _ = make_orchestrator(FakeExtractor(), cache, ai_config, quality_client=quality_client)
        outcome = await orchestrator.run(orchestrator.new_session("jane"))

        assert outcome.from_cache
        assert isinstance(cache.get("jane"), CompletenessOnlyEntry)

    @pytest.mark.asyncio
    async def test_other_profiles_skip_ai(self, cache, ai_config, quality_client):
        ai_config.profile.is_own_profile = False
        extractor = FakeExtractor()
        orchestrator, phases = make_orchestrator(extractor, cache, ai_config, quality_client=quality_client)

        outcome = await orchestrator.run(orchestrator.new_session("someone-else"))

        assert outcome.ai_disabled
        assert Phase.DEEP_EXTRACT not in phases
        assert sum(extractor.deep_calls.values()) == 0
        quality_client.analyze.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_deep_extract_failure_falls_back_to_basic(self, cache, ai_config, quality_client):
        extractor = FakeExtractor()

        async def broken_deep(section):
            raise RuntimeError("expand button missing")

        extractor.extract_deep = broken_deep
        orchestrator, _ = make_orchestrator(extractor, cache, ai_config, quality_client=quality_client)
        outcome = await orchestrator.run(orchestrator.new_session("jane"))

        assert outcome.quality is not None
        request = quality_client.analyze.call_args.args[0]
        assert request["prepared"]["sections"]["about"]["text"] == "About me"

    @pytest.mark.asyncio
    async def test_malformed_deep_record_keeps_run_complete(self, cache, ai_config, quality_client):
        data = dict(PROFILE, skills={"exists": True, "count": 20, "skills": 20})
        orchestrator, phases = make_orchestrator(FakeExtractor(data), cache, ai_config, quality_client=quality_client)

        outcome = await orchestrator.run(orchestrator.new_session("jane"))

        assert outcome.phase == Phase.COMPLETE
        assert Phase.RECOVERY not in phases
        assert outcome.completeness.score == 95
        assert outcome.quality is not None
        request = quality_client.analyze.call_args.args[0]
        assert request["prepared"]["sections"]["skills"]["topSkills"] == []

    @pytest.mark.asyncio
    async def test_request_build_failure_sets_ai_error(self, cache, ai_config, quality_client):
        orchestrator, phases = make_orchestrator(FakeExtractor(), cache, ai_config, quality_client=quality_client)

        with patch("profile_analyzer.pipeline.prepare_for_ai", side_effect=TypeError("bad section payload")):
            outcome = await orchestrator.run(orchestrator.new_session("jane"))

        assert outcome.phase == Phase.COMPLETE
        assert outcome.ai_error == "bad section payload"
        assert outcome.completeness.score == 95
        assert Phase.ERROR not in phases
        quality_client.analyze.assert_not_awaited()


class TestRecovery:
    @pytest.mark.asyncio
    async def test_recovers_from_existence_scan(self, cache, config):
        extractor = FakeExtractor()
        orchestrator, phases = make_orchestrator(extractor, cache, config)
        session = orchestrator.new_session("jane")

        with patch.object(orchestrator, "_extract_all", side_effect=RuntimeError("page navigated away")):
            outcome = await orchestrator.run(session)

        assert outcome.phase == Phase.ERROR
        assert phases[-2:] == [Phase.RECOVERY, Phase.ERROR]
        assert outcome.recovered_from == "minimal_extraction"
        assert "page navigated away" in outcome.error
        assert outcome.completeness is not None
        assert outcome.snapshot.get("experience").count == 3
        assert not session.is_extracting

    @pytest.mark.asyncio
    async def test_recovers_from_cache_first(self, cache, config):
        orchestrator, _ = make_orchestrator(FakeExtractor(), cache, config)
        snapshot = ProfileSnapshot.from_dict("jane", PROFILE)
        cache.save_completeness_only("jane", calculate(snapshot), snapshot)

        with patch.object(orchestrator, "_extract_all", side_effect=RuntimeError("boom")):
            outcome = await orchestrator.run(orchestrator.new_session("jane"))

        assert outcome.phase == Phase.ERROR
        assert outcome.recovered_from == "cache"
        assert outcome.from_cache
        assert outcome.completeness.score == 95

    @pytest.mark.asyncio
    async def test_late_failure_keeps_fresh_completeness(self, cache, ai_config, quality_client):
        empty = ProfileSnapshot.from_dict("jane", {})
        cache.save("jane", {"contentScore": 2.0}, empty, completeness=calculate(empty))
        orchestrator, phases = make_orchestrator(FakeExtractor(), cache, ai_config, quality_client=quality_client)

        with patch.object(orchestrator, "_extract_deep_selectively", side_effect=RuntimeError("tab closed")):
            outcome = await orchestrator.run(orchestrator.new_session("jane"))

        assert outcome.phase == Phase.ERROR
        assert phases[-2:] == [Phase.RECOVERY, Phase.ERROR]
        assert outcome.recovered_from == "session"
        assert outcome.completeness.score == 95
        assert outcome.quality is None
        assert not outcome.from_cache

    @pytest.mark.asyncio
    async def test_ai_entry_without_completeness_falls_through(self, cache, config):
        snapshot = ProfileSnapshot.from_dict("jane", PROFILE)
        cache.save("jane", {"contentScore": 6.0}, snapshot)
        cache.save_completeness_only("jane", calculate(snapshot), snapshot)
        orchestrator, _ = make_orchestrator(FakeExtractor(), cache, config)

        with patch.object(orchestrator, "_extract_all", side_effect=RuntimeError("boom")):
            outcome = await orchestrator.run(orchestrator.new_session("jane"))

        assert outcome.recovered_from == "cache"
        assert outcome.completeness.score == 95
        assert outcome.quality is None

    @pytest.mark.asyncio
    async def test_previous_run_result_not_taken_as_fresh(self, cache, config):
        clock = FakeClock()
        orchestrator, _ = make_orchestrator(FakeExtractor(), cache, config, clock=clock)
        session = orchestrator.new_session("jane")
        await orchestrator.run(session)

        clock.now += 60
        with patch.object(orchestrator, "_extract_all", side_effect=RuntimeError("boom")):
            outcome = await orchestrator.run(session)

        assert outcome.phase == Phase.ERROR
        assert outcome.recovered_from == "cache"

    @pytest.mark.asyncio
    async def test_error_run_recorded(self, cache, config, db):
        orchestrator, _ = make_orchestrator(FakeExtractor(), cache, config, database=db)
        with patch.object(orchestrator, "_extract_all", side_effect=RuntimeError("boom")):
            await orchestrator.run(orchestrator.new_session("jane"))

        last = db.get_stats()["last_run"]
        assert last["final_phase"] == "error"
        assert "boom" in last["error_message"]

    @pytest.mark.asyncio
    async def test_listener_errors_do_not_break_run(self, cache, config):
        def broken_listener(phase, payload):
            raise ValueError("ui gone")

        orchestrator = AnalysisOrchestrator(
            FakeExtractor(), cache, config, sleep=RecordingSleep(), clock=FakeClock(), listener=broken_listener,
        )
        outcome = await orchestrator.run(orchestrator.new_session("jane"))
        assert outcome.phase == Phase.COMPLETE


class TestPrioritizeSections:
    def snapshot(self):
        return ProfileSnapshot.from_dict("jane", {
            "photo": {"exists": True},
            "headline": {"exists": True, "charCount": 40},
            "about": {"exists": True, "charCount": 900},
            "experience": {"exists": True, "count": 2},
            "skills": {"exists": True, "count": 10},
            "recommendations": {"exists": True, "count": 1},
            "certifications": {"exists": True, "count": 0},
            "projects": {"exists": False},
        })

    def test_content_sections_first(self):
        order = prioritize_sections(self.snapshot(), AnalysisSettings())
        assert order[:3] == ["about", "experience", "skills"]
        assert "photo" not in order
        assert "projects" not in order

    def test_engineer_adds_existing_role_sections(self):
        order = prioritize_sections(self.snapshot(), AnalysisSettings(target_role="Software Engineer"))
        assert order[:4] == ["about", "experience", "skills", "certifications"]
        assert "projects" not in order

    def test_manager_prioritizes_recommendations(self):
        order = prioritize_sections(self.snapshot(), AnalysisSettings(target_role="Product Manager"))
        assert len(order) == len(set(order))
        assert order[3] == "recommendations"
