"""AI quality score normalization and request preparation.

The external AI call returns per-section scores on a 0-10 scale. This module
turns them into a single weighted content score and caps it using structural
signals from the snapshot, so a well-written but incomplete profile can't score
artificially high. The cap never looks at the AI's numbers.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from profile_analyzer.profile.models import ProfileSnapshot, SectionRecord, has_content

logger = logging.getLogger("profile_analyzer.scoring.quality")

SECTION_WEIGHTS = {
    "about": 0.30,
    "experience": 0.30,
    "skills": 0.15,
    "headline": 0.10,
    "education": 0.05,
    "photo": 0.05,
    "other": 0.05,
}

PRIORITY_BUCKETS = ("critical", "high", "medium", "low")

# Bucket names used by older prompt formats
_BUCKET_ALIASES = {
    "important": "high",
    "niceToHave": "medium",
    "nice_to_have": "medium",
}

MAX_SCORE = 10.0


@dataclass
class QualityResult:
    content_score: float
    raw_score: float
    score_cap: float
    section_scores: dict[str, float] = field(default_factory=dict)
    recommendations: dict[str, list] = field(default_factory=lambda: {b: [] for b in PRIORITY_BUCKETS})
    insights: dict[str, str] = field(default_factory=dict)
    analysis: dict[str, list] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "contentScore": self.content_score,
            "rawScore": self.raw_score,
            "scoreCap": self.score_cap,
            "sectionScores": dict(self.section_scores),
            "recommendations": {k: list(v) for k, v in self.recommendations.items()},
            "insights": dict(self.insights),
            "analysis": {k: list(v) for k, v in self.analysis.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QualityResult":
        score = _clamp_score(data.get("contentScore"))
        return cls(
            content_score=score,
            raw_score=_clamp_score(data.get("rawScore", score)),
            score_cap=_clamp_score(data.get("scoreCap", MAX_SCORE)),
            section_scores=parse_section_scores(data.get("sectionScores") or {}),
            recommendations=parse_recommendations(data.get("recommendations") or {}),
            insights=parse_insights(data.get("insights") or {}),
            analysis=dict(data.get("analysis") or {}),
        )


def _clamp_score(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    if score != score:  # NaN
        return 0.0
    return max(0.0, min(MAX_SCORE, score))


def parse_section_scores(scores: Any) -> dict[str, float]:
    if not isinstance(scores, Mapping):
        return {}
    return {str(section): _clamp_score(score) for section, score in scores.items()}


def calculate_overall_score(section_scores: Mapping[str, float]) -> Optional[float]:
    """Weighted mean over the weighted sections actually scored.

    Returns None when no weighted section is present.
    """
    total_score = 0.0
    total_weight = 0.0
    for section, weight in SECTION_WEIGHTS.items():
        if section in section_scores:
            total_score += section_scores[section] * weight
            total_weight += weight

    if total_weight <= 0:
        return None
    # Renormalize so unscored sections don't drag the mean down
    if total_weight < 1.0:
        total_score = total_score / total_weight
    return round(total_score, 1)


def _missing(record: Optional[SectionRecord]) -> bool:
    return record is None or not record.exists


def determine_score_cap(snapshot: ProfileSnapshot) -> float:
    cap = MAX_SCORE
    about = snapshot.get("about")
    if _missing(about) or about.char_count < 100:
        cap = min(cap, 7.0)
    experience = snapshot.get("experience")
    if _missing(experience) or experience.count == 0:
        cap = min(cap, 6.0)
    skills = snapshot.get("skills")
    if _missing(skills) or skills.count < 5:
        cap = min(cap, 8.0)
    headline = snapshot.get("headline")
    if _missing(headline) or headline.char_count < 30:
        cap = min(cap, 8.0)
    return cap


def parse_recommendations(recommendations: Any) -> dict[str, list]:
    """Normalize AI recommendations into priority buckets.

    A flat list has no priority information, so it lands in "high".
    """
    structured: dict[str, list] = {bucket: [] for bucket in PRIORITY_BUCKETS}

    if isinstance(recommendations, (list, tuple)):
        structured["high"] = list(recommendations)[:5]
    elif isinstance(recommendations, Mapping):
        for priority, items in recommendations.items():
            bucket = _BUCKET_ALIASES.get(priority, priority)
            if bucket in structured and isinstance(items, (list, tuple)):
                structured[bucket].extend(items)
    elif isinstance(recommendations, str) and recommendations.strip():
        structured["high"] = [recommendations.strip()]

    return structured


def parse_insights(insights: Any) -> dict[str, str]:
    if not isinstance(insights, Mapping):
        insights = {"overallAssessment": insights} if isinstance(insights, str) else {}
    return {
        "strengths": insights.get("strengths") or "",
        "improvements": insights.get("improvements") or "",
        "industry_alignment": insights.get("industryAlignment") or insights.get("industry_alignment") or "",
        "overall_assessment": insights.get("overallAssessment") or insights.get("overall_assessment") or "",
    }


def identify_strengths(section_scores: Mapping[str, float]) -> list[str]:
    return [f"Strong {section} section ({score}/10)" for section, score in section_scores.items() if score >= 8]


def identify_weaknesses(section_scores: Mapping[str, float]) -> list[str]:
    return [f"Weak {section} section ({score}/10)" for section, score in section_scores.items() if score < 6]


def prioritize_improvements(section_scores: Mapping[str, float]) -> list[dict]:
    improvements = []
    for section, weight in SECTION_WEIGHTS.items():
        score = section_scores.get(section, 0.0)
        if score >= 8:
            continue
        gain = round((MAX_SCORE - score) * weight, 3)
        if gain > 1:
            priority = "high"
        elif gain > 0.5:
            priority = "medium"
        else:
            priority = "low"
        improvements.append({
            "section": section,
            "currentScore": score,
            "weight": weight,
            "potentialGain": gain,
            "priority": priority,
        })
    improvements.sort(key=lambda item: item["potentialGain"], reverse=True)
    return improvements


def process(
    raw_section_scores: Any,
    snapshot: ProfileSnapshot,
    recommendations: Any = None,
    insights: Any = None,
    fallback_score: Any = None,
) -> QualityResult:
    """Turn a raw AI response into a capped QualityResult."""
    section_scores = parse_section_scores(raw_section_scores)
    overall = calculate_overall_score(section_scores)
    if overall is None:
        overall = round(_clamp_score(fallback_score), 1) if fallback_score is not None else 0.0

    cap = determine_score_cap(snapshot)
    final = min(overall, cap)

    logger.debug("Quality score raw=%.1f cap=%.1f final=%.1f", overall, cap, final)

    return QualityResult(
        content_score=final,
        raw_score=overall,
        score_cap=cap,
        section_scores=section_scores,
        recommendations=parse_recommendations(recommendations or {}),
        insights=parse_insights(insights or {}),
        analysis={
            "strengths": identify_strengths(section_scores),
            "weaknesses": identify_weaknesses(section_scores),
            "priority": prioritize_improvements(section_scores),
        },
    )


def truncate_text(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _items(record: SectionRecord, *keys: str) -> list:
    """First list-valued detail among ``keys``; anything else counts as empty."""
    for key in keys:
        value = record.get(key)
        if isinstance(value, list) and value:
            return value
    return []


def _prepare_section(name: str, record: SectionRecord) -> dict:
    if name == "headline":
        return {
            "text": _text(record.get("text")),
            "charCount": record.char_count,
            "isGeneric": bool(record.get("isGeneric", False)),
            "hasKeywords": bool(record.get("hasKeywords", False)),
        }
    if name == "about":
        return {
            "text": truncate_text(_text(record.get("text")), 2600),
            "charCount": record.char_count,
            "wordCount": record.get("wordCount", 0),
        }
    if name == "experience":
        roles = _items(record, "experiences", "items")
        return {
            "count": record.count,
            "hasCurrentRole": bool(record.get("hasCurrentRole", False)),
            "experiences": [
                {
                    "title": _text(role.get("title")),
                    "company": _text(role.get("company")),
                    "duration": _text(role.get("duration")),
                    "description": truncate_text(_text(role.get("description")), 300),
                }
                for role in roles[:5]
                if isinstance(role, Mapping)
            ],
        }
    if name == "skills":
        skills = _items(record, "skills", "items")
        return {
            "count": record.count,
            "topSkills": [
                _text(s.get("name")) if isinstance(s, Mapping) else str(s)
                for s in skills[:20]
            ],
        }
    if name == "education":
        schools = _items(record, "schools", "items")
        return {
            "count": record.count,
            "schools": [
                {"name": _text(s.get("school")) or _text(s.get("name")), "degree": _text(s.get("degree"))}
                for s in schools[:3]
                if isinstance(s, Mapping)
            ],
        }
    return {"exists": record.exists, "count": record.count}


def prepare_for_ai(deep_data: Mapping[str, SectionRecord], settings, completeness) -> dict:
    """Build the bounded request payload for the external quality call."""
    sections = {}
    for name, record in deep_data.items():
        if name in ("headline", "about", "experience", "skills", "education"):
            sections[name] = _prepare_section(name, record)

    sections["other"] = {
        name: {"exists": record.exists, "count": record.count}
        for name, record in deep_data.items()
        if name in ("recommendations", "certifications", "projects", "featured") and has_content(record)
    }

    return {
        "targetRole": getattr(settings, "target_role", "") or "general professional",
        "seniorityLevel": getattr(settings, "seniority_level", "") or "mid-level",
        "customInstructions": getattr(settings, "custom_instructions", "") or "",
        "sections": sections,
        "completenessScore": completeness.score,
        "missingElements": [r.message for r in completeness.recommendations],
    }


def generate_prompt(prepared: Mapping[str, Any]) -> str:
    missing = ", ".join(prepared.get("missingElements") or []) or "none"
    return (
        f"Analyze this professional profile for a {prepared['targetRole']} "
        f"at {prepared['seniorityLevel']} level.\n"
        "Score each section from 0-10 based on clarity, impact, and relevance to the target role.\n"
        f"Current completeness: {prepared['completenessScore']}%.\n"
        f"Missing elements: {missing}.\n\n"
        f"PROFILE SECTIONS:\n{json.dumps(prepared.get('sections', {}), indent=2, default=str)}\n\n"
        "Respond with ONLY a JSON object (no markdown) containing:\n"
        '- "sectionScores": object with 0-10 scores for headline, about, experience, skills, education, other\n'
        '- "recommendations": object with "critical", "high", "medium", "low" lists of strings\n'
        '- "insights": object with "strengths", "improvements", "industryAlignment", "overallAssessment"\n\n'
        f"{prepared.get('customInstructions', '')}"
    ).rstrip()
