"""Profile snapshot data model."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Protocol

SECTION_NAMES = (
    "photo",
    "headline",
    "about",
    "experience",
    "skills",
    "education",
    "recommendations",
    "certifications",
    "projects",
    "featured",
    "connections",
)

# Keys consumed by SectionRecord itself; everything else goes to details.
_CORE_KEYS = {"exists", "count", "charCount", "char_count", "error", "attempts"}


def _as_int(value: Any) -> int:
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class SectionRecord:
    """Facts about one profile section at extraction time."""

    exists: bool = False
    count: int = 0
    char_count: int = 0
    error: bool = False
    attempts: int = 0
    details: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "SectionRecord":
        """Build a record from an extractor result.

        Anything that isn't a mapping with an ``exists`` key is a shape
        violation and yields a degraded record.
        """
        if isinstance(data, SectionRecord):
            return data
        if isinstance(data, bool):
            # Bare booleans are accepted for presence-only sections like photo
            return cls(exists=data)
        if not isinstance(data, Mapping) or "exists" not in data:
            return degraded_record()

        char_count = data.get("charCount", data.get("char_count", 0))
        count = data.get("count", data.get("visibleCount", 0))
        return cls(
            exists=bool(data.get("exists")),
            count=_as_int(count),
            char_count=_as_int(char_count),
            error=bool(data.get("error", False)),
            attempts=_as_int(data.get("attempts", 0)),
            details=MappingProxyType({k: v for k, v in data.items() if k not in _CORE_KEYS}),
        )

    def get(self, key: str, default: Any = None) -> Any:
        return self.details.get(key, default)

    def to_dict(self) -> dict:
        result = {
            "exists": self.exists,
            "count": self.count,
            "charCount": self.char_count,
        }
        if self.error:
            result["error"] = True
        if self.attempts:
            result["attempts"] = self.attempts
        result.update(self.details)
        return result


def degraded_record(attempts: int = 0, **extra: Any) -> SectionRecord:
    """Stand-in for a section whose data could not be read."""
    return SectionRecord(
        exists=False,
        error=True,
        attempts=attempts,
        details=MappingProxyType(dict(extra)),
    )


def has_content(record: SectionRecord | None) -> bool:
    """True when a section exists and carries any countable content."""
    if record is None or not record.exists:
        return False
    if record.count > 0 or record.char_count > 0:
        return True
    items = record.get("items")
    if items:
        return True
    text = record.get("text")
    return bool(text)


@dataclass(frozen=True)
class ProfileSnapshot:
    """Per-section facts about one subject, produced fresh for every run."""

    subject_id: str
    sections: Mapping[str, SectionRecord] = field(default_factory=dict)

    def __post_init__(self):
        frozen = {name: SectionRecord.from_dict(rec) for name, rec in dict(self.sections).items()}
        object.__setattr__(self, "sections", MappingProxyType(frozen))

    @classmethod
    def from_dict(cls, subject_id: str, data: Mapping[str, Any]) -> "ProfileSnapshot":
        return cls(subject_id=subject_id, sections=dict(data))

    def get(self, section: str) -> SectionRecord | None:
        return self.sections.get(section)

    def __contains__(self, section: str) -> bool:
        return section in self.sections

    @property
    def connections(self) -> int:
        record = self.sections.get("connections")
        return record.count if record else 0

    def to_dict(self) -> dict:
        return {name: record.to_dict() for name, record in self.sections.items()}


class ExtractionCollaborator(Protocol):
    """What the pipeline needs from a page/document extractor."""

    sections: Iterable[str]

    async def scan(self, section: str) -> Mapping[str, Any]: ...

    async def extract(self, section: str) -> Mapping[str, Any]: ...

    async def extract_deep(self, section: str) -> Mapping[str, Any]: ...
