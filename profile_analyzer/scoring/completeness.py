"""Rubric-based profile completeness scoring (pure, no I/O)."""

import logging
from dataclasses import dataclass, field
from typing import Callable

from profile_analyzer.profile.models import ProfileSnapshot, SectionRecord

logger = logging.getLogger("profile_analyzer.scoring.completeness")

TOP_RECOMMENDATIONS = 5
OPTIMIZED_THRESHOLD = 85

LEVEL_BANDS = (
    (90, "excellent"),
    (75, "good"),
    (60, "fair"),
    (40, "needs_work"),
)


@dataclass(frozen=True)
class RubricRule:
    section: str
    weight: int
    predicate: Callable[[SectionRecord], bool]
    message: Callable[[SectionRecord], str]


def _headline_message(rec: SectionRecord) -> str:
    if not rec.exists:
        return "Add a professional headline"
    if rec.char_count < 30:
        return "Expand your headline (minimum 50 characters)"
    if rec.get("isGeneric"):
        return "Make your headline more specific and value-focused"
    return "Optimize your headline with keywords"


def _about_message(rec: SectionRecord) -> str:
    if not rec.exists or rec.char_count == 0:
        return "Add an About section"
    if rec.char_count < 400:
        return "Expand your About section (aim for 800+ characters)"
    return "Add more detail to your About section"


def _experience_message(rec: SectionRecord) -> str:
    if not rec.exists or rec.count == 0:
        return "Add your work experience"
    if rec.count == 1:
        return "Add more work experiences (at least 2)"
    if not rec.get("hasCurrentRole", True):
        return "Update with your current position"
    return "Enhance experience descriptions"


def _skills_message(rec: SectionRecord) -> str:
    if not rec.exists or rec.count == 0:
        return "Add relevant skills"
    if rec.count < 5:
        return "Add more skills (aim for 15+)"
    return f"Add {15 - rec.count} more skills"


def _education_message(rec: SectionRecord) -> str:
    if not rec.exists or rec.count == 0:
        return "Add your education"
    return "Complete your education details"


def _recommendations_message(rec: SectionRecord) -> str:
    if not rec.exists or rec.count == 0:
        return "Request at least one recommendation"
    return "Request more recommendations (aim for 3+)"


RUBRIC: tuple[RubricRule, ...] = (
    RubricRule("photo", 5, lambda r: r.exists, lambda r: "Add a professional photo"),
    RubricRule("headline", 10, lambda r: r.exists and r.char_count >= 50, _headline_message),
    RubricRule("about", 20, lambda r: r.exists and r.char_count >= 800, _about_message),
    RubricRule("experience", 25, lambda r: r.exists and r.count >= 2, _experience_message),
    RubricRule("skills", 15, lambda r: r.exists and r.count >= 15, _skills_message),
    RubricRule("education", 10, lambda r: r.exists and r.count >= 1, _education_message),
    RubricRule("recommendations", 10, lambda r: r.exists and r.count >= 1, _recommendations_message),
    RubricRule("certifications", 3, lambda r: r.exists and r.count >= 1, lambda r: "Add relevant certifications"),
    RubricRule("projects", 2, lambda r: r.exists and r.count >= 1, lambda r: "Showcase projects you've worked on"),
)

RUBRIC_WEIGHTS = {rule.section: rule.weight for rule in RUBRIC}


@dataclass(frozen=True)
class Recommendation:
    section: str
    priority: str
    message: str
    impact: int

    def to_dict(self) -> dict:
        return {
            "section": self.section,
            "priority": self.priority,
            "message": self.message,
            "impact": self.impact,
        }


@dataclass
class CompletenessResult:
    score: int
    earned_points: int
    total_points: int
    breakdown: dict[str, dict] = field(default_factory=dict)
    recommendations: list[Recommendation] = field(default_factory=list)
    all_recommendations: list[Recommendation] = field(default_factory=list)
    is_optimized: bool = False
    level: str = "poor"

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "earnedPoints": self.earned_points,
            "totalPoints": self.total_points,
            "breakdown": {name: dict(entry) for name, entry in self.breakdown.items()},
            "recommendations": [r.to_dict() for r in self.recommendations],
            "allRecommendations": [r.to_dict() for r in self.all_recommendations],
            "isOptimized": self.is_optimized,
            "level": self.level,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CompletenessResult":
        """Rehydrate a cached result. Raises on a missing or non-numeric score."""
        score = data["score"]
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            raise ValueError(f"Non-numeric completeness score: {score!r}")

        def _recs(items):
            return [
                Recommendation(
                    section=str(item.get("section", "")),
                    priority=str(item.get("priority", "high")),
                    message=str(item.get("message", "")),
                    impact=int(item.get("impact", 0)),
                )
                for item in items or []
                if isinstance(item, dict)
            ]

        return cls(
            score=int(score),
            earned_points=int(data.get("earnedPoints", score)),
            total_points=int(data.get("totalPoints", 100)),
            breakdown=dict(data.get("breakdown") or {}),
            recommendations=_recs(data.get("recommendations")),
            all_recommendations=_recs(data.get("allRecommendations")),
            is_optimized=bool(data.get("isOptimized", score >= OPTIMIZED_THRESHOLD)),
            level=str(data.get("level", get_level(int(score)))),
        )


def get_priority(weight: int) -> str:
    if weight >= 20:
        return "critical"
    if weight >= 10:
        return "high"
    if weight >= 5:
        return "medium"
    return "low"


def get_level(score: int) -> str:
    for threshold, level in LEVEL_BANDS:
        if score >= threshold:
            return level
    return "poor"


def _evaluate(rule: RubricRule, record: SectionRecord) -> bool:
    try:
        return bool(rule.predicate(record))
    except Exception:
        logger.debug("Predicate for %s failed on %r", rule.section, record, exc_info=True)
        return False


def calculate(snapshot: ProfileSnapshot, rubric: tuple[RubricRule, ...] = RUBRIC) -> CompletenessResult:
    """Score a snapshot against the rubric.

    Sections missing from the snapshot count as failed with a "high" priority
    recommendation. Recommendations are ordered by impact, ties keeping rubric
    order (sorted() is stable).
    """
    breakdown: dict[str, dict] = {}
    recommendations: list[Recommendation] = []
    earned = 0
    total = 0

    for rule in rubric:
        total += rule.weight
        record = snapshot.get(rule.section)

        if record is None:
            breakdown[rule.section] = {"weight": rule.weight, "earned": 0, "passed": False}
            recommendations.append(Recommendation(
                section=rule.section,
                priority="high",
                message=f"Add {rule.section} section",
                impact=rule.weight,
            ))
            continue

        passed = _evaluate(rule, record)
        points = rule.weight if passed else 0
        earned += points
        breakdown[rule.section] = {"weight": rule.weight, "earned": points, "passed": passed}

        if not passed:
            recommendations.append(Recommendation(
                section=rule.section,
                priority=get_priority(rule.weight),
                message=rule.message(record),
                impact=rule.weight,
            ))

    recommendations = sorted(recommendations, key=lambda r: r.impact, reverse=True)
    score = round(earned / total * 100) if total else 0

    return CompletenessResult(
        score=score,
        earned_points=earned,
        total_points=total,
        breakdown=breakdown,
        recommendations=recommendations[:TOP_RECOMMENDATIONS],
        all_recommendations=recommendations,
        is_optimized=score >= OPTIMIZED_THRESHOLD,
        level=get_level(score),
    )


def score_section(section: str, record: SectionRecord, rubric: tuple[RubricRule, ...] = RUBRIC) -> dict:
    """Score a single section in isolation."""
    rule = next((r for r in rubric if r.section == section), None)
    if rule is None:
        return {"score": 0, "maxScore": 0, "percentage": 0, "passed": False, "recommendation": None}

    passed = _evaluate(rule, record)
    return {
        "score": rule.weight if passed else 0,
        "maxScore": rule.weight,
        "percentage": 100 if passed else 0,
        "passed": passed,
        "recommendation": None if passed else rule.message(record),
    }


def actionable_recommendations(result: CompletenessResult, target_role: str = "", seniority_level: str = "") -> list[Recommendation]:
    """Pick a short, role-aware list: up to 2 critical, 2 high and 1 medium."""
    role = (target_role or "").lower()
    seniority = (seniority_level or "").lower()

    grouped: dict[str, list[Recommendation]] = {"critical": [], "high": [], "medium": [], "low": []}
    for rec in result.all_recommendations:
        priority = rec.priority
        if "engineer" in role and rec.section == "skills":
            priority = "critical"
        if seniority == "senior" and rec.section == "experience":
            priority = "critical"
        if priority != rec.priority:
            rec = Recommendation(rec.section, priority, rec.message, rec.impact)
        grouped.setdefault(priority, []).append(rec)

    return grouped["critical"][:2] + grouped["high"][:2] + grouped["medium"][:1]
