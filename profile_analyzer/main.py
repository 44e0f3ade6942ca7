"""CLI entry point: analyse one profile and print the scores."""

import argparse
import asyncio
import logging
import sys

from profile_analyzer.config import AppConfig, load_config, resolve_log_level, validate_config
from profile_analyzer.exceptions import ConfigError, ProfileAnalyzerError
from profile_analyzer.pipeline import AnalysisOrchestrator, AnalysisOutcome
from profile_analyzer.profile.html_extractor import HtmlProfileExtractor, derive_subject_id, fetch_profile_html
from profile_analyzer.session import Phase
from profile_analyzer.storage.cache import ContentCache
from profile_analyzer.storage.database import AnalysisDatabase
from profile_analyzer.utils.logging_config import setup_logging

logger = logging.getLogger("profile_analyzer")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Profile Analyzer - completeness and content quality scoring for LinkedIn profiles",
    )
    parser.add_argument(
        "--config", default="config.yaml",
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "--html",
        help="Saved profile HTML to analyse (overrides profile.html_path)",
    )
    parser.add_argument(
        "--force-refresh", action="store_true",
        help="Ignore cached AI analysis and re-run it",
    )
    parser.add_argument(
        "--stats", action="store_true",
        help="Print cache and run statistics and exit",
    )
    parser.add_argument(
        "--clear", action="store_true",
        help="Remove cached results for the configured profile and exit",
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Log at DEBUG level regardless of log_level",
    )
    return parser.parse_args(argv)


def build_quality_client(config: AppConfig):
    """OpenAI client when AI analysis is enabled and a key is configured."""
    if not config.ai.enable_ai or not config.api_keys.openai_api_key:
        return None
    from profile_analyzer.scoring.ai_client import OpenAIQualityClient, RateLimiter
    return OpenAIQualityClient(
        config.api_keys.openai_api_key,
        model=config.ai.model,
        rate_limiter=RateLimiter(max_requests=config.ai.max_requests_per_minute),
    )


def print_stats(db: AnalysisDatabase, cache: ContentCache):
    stats = db.get_stats()
    cache_stats = cache.get_stats()
    print("\n=== Profile Analyzer Statistics ===")
    print(f"Cached analyses: {cache_stats['ai_entries']}")
    print(f"Cached completeness results: {cache_stats['completeness_entries']}")
    print(f"Total analysis runs: {stats['total_runs']}")

    if stats.get("by_phase"):
        print("\nRuns by final phase:")
        for phase, count in stats["by_phase"].items():
            print(f"  {phase}: {count}")

    if stats.get("last_run"):
        run = stats["last_run"]
        print(f"\nLast run: {run['run_at']} ({run['subject_id']})")
        print(f"  Phase: {run['final_phase']}")
        print(f"  Completeness: {run['completeness_score']}")
        print(f"  Content score: {run['content_score']}")
        print(f"  From cache: {'Yes' if run['from_cache'] else 'No'}")
        if run["ai_error"]:
            print(f"  AI error: {run['ai_error']}")
        if run["error_message"]:
            print(f"  Error: {run['error_message']}")
    print()


def print_outcome(outcome: AnalysisOutcome):
    print(f"\n=== {outcome.subject_id} ===")
    if outcome.skipped:
        print(f"Skipped: {outcome.skipped}")
        return

    completeness = outcome.completeness
    if completeness is not None:
        print(f"Completeness: {completeness.score}% ({completeness.level})")
        for rec in completeness.recommendations:
            print(f"  [{rec.priority}] {rec.message}")

    if outcome.quality is not None:
        source = " (cached)" if outcome.from_cache else ""
        print(f"Content quality: {outcome.quality.content_score}/10{source}")
        for priority, items in outcome.quality.recommendations.items():
            for item in items:
                print(f"  [{priority}] {item}")
    elif outcome.ai_error:
        print(f"Content quality unavailable: {outcome.ai_error}")
    elif outcome.ai_disabled:
        print("Content quality: AI analysis disabled")

    if outcome.error:
        print(f"Analysis failed: {outcome.error}")
        if outcome.recovered_from:
            print(f"Showing recovered results from {outcome.recovered_from}")
    print()


async def run_analysis(config: AppConfig, db: AnalysisDatabase, cache: ContentCache, force_refresh: bool = False) -> AnalysisOutcome:
    html = fetch_profile_html(config.profile.html_path, config.profile.profile_url)
    orchestrator = AnalysisOrchestrator(
        extractor=HtmlProfileExtractor(html),
        cache=cache,
        config=config,
        quality_client=build_quality_client(config),
        database=db,
    )

    cached = orchestrator.load_cached(config.profile.subject_id)
    if cached is not None and cached.completeness is not None:
        logger.info("Last known completeness for %s: %d%%", config.profile.subject_id, cached.completeness.score)

    session = orchestrator.new_session(config.profile.subject_id, force_refresh=force_refresh)
    return await orchestrator.run(session, config.settings)


def main(argv=None):
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ConfigError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.html:
        config.profile.html_path = args.html
    if not config.profile.subject_id:
        config.profile.subject_id = derive_subject_id(config.profile.profile_url, config.profile.html_path)

    level = logging.DEBUG if args.verbose else resolve_log_level(config.log_level)
    setup_logging(config.log_dir, level=level)

    for w in validate_config(config):
        logger.warning("Config: %s", w)

    with AnalysisDatabase(config.cache.database_url) as db:
        cache = ContentCache(db, max_age_days=config.cache.max_age_days)

        if args.stats:
            print_stats(db, cache)
            return

        if args.clear:
            if cache.clear(config.profile.subject_id):
                print(f"Cleared cached results for {config.profile.subject_id}")
            else:
                print("Failed to clear cache. Check logs for details.", file=sys.stderr)
                sys.exit(1)
            return

        try:
            outcome = asyncio.run(run_analysis(config, db, cache, force_refresh=args.force_refresh))
        except ProfileAnalyzerError as e:
            logger.error("Cannot analyse profile: %s", e)
            sys.exit(1)

    print_outcome(outcome)
    if outcome.phase == Phase.ERROR:
        sys.exit(1)


if __name__ == "__main__":
    main()
