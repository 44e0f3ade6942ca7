"""Text signals used when reading profile sections."""

import re
from collections import Counter

GENERIC_HEADLINE_PHRASES = (
    "looking for opportunities",
    "seeking new role",
    "open to work",
    "unemployed",
    "student at",
)

STOP_WORDS = {
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "is", "are", "was", "were", "be", "been",
    "i", "you", "we", "they", "my", "your", "our", "their", "it", "its",
    "this", "that", "as", "so", "if", "not", "no", "all", "also",
}

_CONNECTIONS_RE = re.compile(r"(\d[\d,]*)\+?\s*(?:connections|followers)", re.IGNORECASE)
_QUANTIFIED_RE = re.compile(r"\d+(?:\.\d+)?\s*(?:%|percent|x\b|k\b|m\b|\+)|\$\s?\d", re.IGNORECASE)


def normalize_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def word_count(text: str) -> int:
    return len(re.findall(r"\b\w+\b", text or ""))


def is_generic_headline(text: str) -> bool:
    """Check if a headline only advertises job-seeking rather than value."""
    lower = (text or "").lower()
    return any(phrase in lower for phrase in GENERIC_HEADLINE_PHRASES)


def extract_keywords(text: str, top_n: int = 10) -> list[str]:
    """Most frequent non-stop words, in frequency order."""
    words = re.findall(r"\b[a-z][a-z+#.]{1,30}\b", (text or "").lower())
    counts = Counter(w for w in words if w not in STOP_WORDS)
    return [word for word, _ in counts.most_common(top_n)]


def has_quantified_achievements(text: str) -> bool:
    """True when text mentions numbers like '30%', '$2M' or '10x'."""
    return bool(_QUANTIFIED_RE.search(text or ""))


def parse_connections(text: str) -> int:
    """Pull a connection/follower count out of text like '500+ connections'."""
    match = _CONNECTIONS_RE.search(text or "")
    if not match:
        return 0
    return int(match.group(1).replace(",", ""))
