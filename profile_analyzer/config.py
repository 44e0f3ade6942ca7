"""YAML config loading and validation."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from profile_analyzer.exceptions import ConfigError
from profile_analyzer.models.base import DEFAULT_DATABASE_URL


@dataclass
class AnalysisConfig:
    scan_timeout: float = 5.0
    max_attempts: int = 3
    initial_delay: float = 0.5
    backoff_factor: float = 2.0
    throttle_seconds: float = 5.0


@dataclass
class AIConfig:
    enable_ai: bool = False
    model: str = "gpt-4o-mini"
    request_timeout: float = 60.0
    max_requests_per_minute: int = 10


@dataclass
class ApiKeys:
    openai_api_key: str = ""


@dataclass
class AnalysisSettings:
    """Settings that change what the AI is asked, and so feed the cache fingerprint."""

    target_role: str = ""
    seniority_level: str = ""
    custom_instructions: str = ""

    def to_dict(self) -> dict:
        return {
            "targetRole": self.target_role,
            "seniorityLevel": self.seniority_level,
            "customInstructions": self.custom_instructions,
        }


@dataclass
class CacheConfig:
    database_url: str = DEFAULT_DATABASE_URL
    max_age_days: Optional[float] = None  # None = content-based invalidation only


@dataclass
class ProfileConfig:
    html_path: str = ""
    profile_url: str = ""
    subject_id: str = ""
    is_own_profile: bool = True


@dataclass
class AppConfig:
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    ai: AIConfig = field(default_factory=AIConfig)
    api_keys: ApiKeys = field(default_factory=ApiKeys)
    settings: AnalysisSettings = field(default_factory=AnalysisSettings)
    cache: CacheConfig = field(default_factory=CacheConfig)
    profile: ProfileConfig = field(default_factory=ProfileConfig)
    log_dir: str = "logs"
    log_level: str = "INFO"


def resolve_log_level(name: str) -> int:
    """Map a level name such as "DEBUG" to its logging constant."""
    level = logging.getLevelName(str(name).upper())
    if not isinstance(level, int):
        raise ConfigError(f"Unknown log_level: {name!r}", field="log_level")
    return level


def _number(section_raw: dict, section: str, key: str, default, cast=float):
    value = section_raw.get(key, default)
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{section}.{key} must be a number, got {value!r}", field=f"{section}.{key}")


def load_config(config_path: str = "config.yaml") -> AppConfig:
    """Load configuration from a YAML file.

    Raises FileNotFoundError when the file is missing and ConfigError when a
    value is unusable. Softer problems are reported by ``validate_config``.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Copy config.example.yaml to config.yaml and fill in your settings."
        )

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    config = AppConfig()

    # Analysis pipeline tuning
    analysis_raw = raw.get("analysis", {})
    config.analysis = AnalysisConfig(
        scan_timeout=_number(analysis_raw, "analysis", "scan_timeout", 5.0),
        max_attempts=_number(analysis_raw, "analysis", "max_attempts", 3, int),
        initial_delay=_number(analysis_raw, "analysis", "initial_delay", 0.5),
        backoff_factor=_number(analysis_raw, "analysis", "backoff_factor", 2.0),
        throttle_seconds=_number(analysis_raw, "analysis", "throttle_seconds", 5.0),
    )
    if config.analysis.scan_timeout <= 0:
        raise ConfigError("analysis.scan_timeout must be positive", field="analysis.scan_timeout")

    # AI
    ai_raw = raw.get("ai", {})
    config.ai = AIConfig(
        enable_ai=ai_raw.get("enable_ai", False),
        model=ai_raw.get("model", "gpt-4o-mini"),
        request_timeout=_number(ai_raw, "ai", "request_timeout", 60.0),
        max_requests_per_minute=_number(ai_raw, "ai", "max_requests_per_minute", 10, int),
    )
    if config.ai.request_timeout <= 0:
        raise ConfigError("ai.request_timeout must be positive", field="ai.request_timeout")
    if config.ai.max_requests_per_minute < 1:
        raise ConfigError("ai.max_requests_per_minute must be at least 1", field="ai.max_requests_per_minute")

    # API keys (env vars take precedence)
    keys_raw = raw.get("api_keys", {})
    config.api_keys = ApiKeys(
        openai_api_key=os.environ.get("OPENAI_API_KEY", keys_raw.get("openai_api_key", "")),
    )

    # Analysis settings
    settings_raw = raw.get("settings", {})
    config.settings = AnalysisSettings(
        target_role=settings_raw.get("target_role", "") or "",
        seniority_level=settings_raw.get("seniority_level", "") or "",
        custom_instructions=settings_raw.get("custom_instructions", "") or "",
    )

    # Cache
    cache_raw = raw.get("cache", {})
    config.cache = CacheConfig(
        database_url=os.environ.get(
            "PROFILE_ANALYZER_DATABASE_URL", cache_raw.get("database_url", DEFAULT_DATABASE_URL)
        ),
        max_age_days=cache_raw.get("max_age_days"),
    )

    # Profile
    profile_raw = raw.get("profile", {})
    config.profile = ProfileConfig(
        html_path=profile_raw.get("html_path", ""),
        profile_url=profile_raw.get("profile_url", ""),
        subject_id=str(profile_raw.get("subject_id", "") or ""),
        is_own_profile=profile_raw.get("is_own_profile", True),
    )

    config.log_dir = raw.get("log_dir", "logs")
    config.log_level = str(raw.get("log_level", "INFO")).upper()
    resolve_log_level(config.log_level)

    return config


def validate_config(config: AppConfig) -> list[str]:
    """Return list of validation warnings (empty = OK)."""
    warnings = []

    if not config.profile.html_path and not config.profile.profile_url:
        warnings.append("No profile source configured (html_path or profile_url required)")

    if not config.profile.subject_id:
        warnings.append("No subject_id configured - it will be derived from the profile source")

    if config.ai.enable_ai and not config.api_keys.openai_api_key:
        warnings.append("AI analysis enabled but no OpenAI API key configured - only completeness will be scored")

    if config.analysis.max_attempts < 1:
        warnings.append("analysis.max_attempts must be at least 1 - using 1")

    if config.analysis.scan_timeout <= 0:
        warnings.append("analysis.scan_timeout must be positive")

    return warnings
