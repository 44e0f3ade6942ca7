"""Section extraction from a saved or fetched LinkedIn profile page."""

import logging
import re
from pathlib import Path
from typing import Any, Optional

import requests
from bs4 import BeautifulSoup, Tag

from profile_analyzer.exceptions import ExtractionError
from profile_analyzer.profile.models import SECTION_NAMES
from profile_analyzer.utils.http_client import create_session, fetch_text
from profile_analyzer.utils.text_processing import (
    extract_keywords,
    has_quantified_achievements,
    is_generic_headline,
    normalize_whitespace,
    parse_connections,
    word_count,
)

logger = logging.getLogger("profile_analyzer.profile.html")

LIST_SECTIONS = ("experience", "skills", "education", "recommendations", "certifications", "projects", "featured")

HEADLINE_SELECTORS = (
    ".text-body-medium[data-generated-suggestion-target]",
    ".pv-text-details__left-panel .text-body-medium",
    ".top-card-layout__headline",
    ".text-body-medium",
)

PHOTO_SELECTORS = (
    ".pv-top-card-profile-picture img",
    "img.pv-top-card-profile-picture__image",
    "img.profile-photo-edit__preview",
    ".pv-top-card__photo img",
)

_SHOW_ALL_RE = re.compile(r"show all (\d+)", re.IGNORECASE)


def derive_subject_id(profile_url: str = "", html_path: str = "") -> str:
    """Stable subject ID from a profile URL slug, else the HTML file name."""
    match = re.search(r"linkedin\.com/in/([^/?#]+)", profile_url or "")
    if match:
        return match.group(1).lower()
    if html_path:
        return Path(html_path).stem
    return ""


def fetch_profile_html(html_path: str = "", profile_url: str = "", session: Optional[requests.Session] = None) -> str:
    """Read profile HTML from a saved file, or fetch it from the profile URL."""
    if html_path:
        path = Path(html_path)
        if not path.exists():
            raise ExtractionError(f"Profile HTML file not found: {html_path}")
        return path.read_text(encoding="utf-8")

    if profile_url:
        if "linkedin.com/in/" not in profile_url:
            raise ExtractionError(f"Invalid LinkedIn profile URL: {profile_url}")
        html = fetch_text(profile_url, session=session or create_session())
        if html is None:
            raise ExtractionError(
                f"Failed to fetch LinkedIn profile: {profile_url}. "
                "LinkedIn may be blocking the request. Save the page and use html_path instead."
            )
        return html

    raise ExtractionError("No profile source given (html_path or profile_url required)")


def _visible_texts(element: Tag) -> list[str]:
    """Text of the screen-visible spans, skipping the section heading."""
    texts = []
    for span in element.select('span[aria-hidden="true"]'):
        if span.find_parent(["h2"]) is not None:
            continue
        text = normalize_whitespace(span.get_text(" ", strip=True))
        if text:
            texts.append(text)
    return texts


class HtmlProfileExtractor:
    """Extraction collaborator over a static profile page.

    All three operations read the same parsed document, so scan and extract
    differ only in how much detail they return.
    """

    sections = SECTION_NAMES

    def __init__(self, html: str):
        self.soup = BeautifulSoup(html, "lxml")

    def _find_section(self, name: str) -> Optional[Tag]:
        section = self.soup.find("section", attrs={"data-section": name})
        if section is not None:
            return section
        anchor = self.soup.find(id=name)
        if anchor is None:
            return None
        return anchor.find_parent("section") or anchor

    def _items(self, section: Tag) -> list[Tag]:
        items = section.select("li.pvs-list__paged-list-item")
        if items:
            return items
        return section.find_all("li")

    def _item_count(self, section: Tag, items: list[Tag]) -> int:
        # "Show all 25 skills" links report more than the page renders
        match = _SHOW_ALL_RE.search(section.get_text(" ", strip=True))
        shown = int(match.group(1)) if match else 0
        return max(len(items), shown)

    def _headline_text(self) -> Optional[str]:
        for selector in HEADLINE_SELECTORS:
            element = self.soup.select_one(selector)
            if element is not None:
                return normalize_whitespace(element.get_text(" ", strip=True))
        return None

    def _has_photo(self) -> bool:
        for selector in PHOTO_SELECTORS:
            img = self.soup.select_one(selector)
            if img is not None:
                src = img.get("src") or ""
                return bool(src) and "ghost" not in src.lower()
        return False

    def _about_text(self, section: Tag) -> str:
        texts = _visible_texts(section)
        if texts:
            return " ".join(texts)
        heading = section.find("h2")
        text = section.get_text(" ", strip=True)
        if heading is not None:
            text = text.replace(heading.get_text(" ", strip=True), "", 1)
        return normalize_whitespace(text)

    async def scan(self, section: str) -> dict[str, Any]:
        """Cheap existence check."""
        if section == "photo":
            return {"exists": self._has_photo()}
        if section == "headline":
            return {"exists": bool(self._headline_text())}
        if section == "connections":
            count = parse_connections(self.soup.get_text(" ", strip=True))
            return {"exists": count > 0, "visibleCount": count}

        element = self._find_section(section)
        if element is None:
            return {"exists": False, "visibleCount": 0}
        if section in LIST_SECTIONS:
            return {"exists": True, "visibleCount": len(self._items(element))}
        return {"exists": True, "visibleCount": 0}

    async def extract(self, section: str) -> dict[str, Any]:
        """Counts and signals needed for completeness scoring."""
        if section == "photo":
            return {"exists": self._has_photo()}

        if section == "headline":
            text = self._headline_text() or ""
            return {
                "exists": bool(text),
                "charCount": len(text),
                "text": text,
                "isGeneric": is_generic_headline(text),
            }

        if section == "connections":
            count = parse_connections(self.soup.get_text(" ", strip=True))
            return {"exists": count > 0, "count": count}

        element = self._find_section(section)
        if element is None:
            return {"exists": False, "count": 0, "charCount": 0}

        if section == "about":
            text = self._about_text(element)
            return {"exists": bool(text), "charCount": len(text), "text": text}

        if section in LIST_SECTIONS:
            items = self._items(element)
            result: dict[str, Any] = {"exists": True, "count": self._item_count(element, items)}
            if section == "experience":
                result["hasCurrentRole"] = any(
                    "present" in item.get_text(" ", strip=True).lower() for item in items
                )
            return result

        logger.warning("No extraction rule for section: %s", section)
        return {"exists": True, "count": 0}

    async def extract_deep(self, section: str) -> dict[str, Any]:
        """Full detail for AI analysis; builds on extract()."""
        result = await self.extract(section)
        if not result.get("exists"):
            return result

        if section == "headline":
            text = result["text"]
            result["wordCount"] = word_count(text)
            result["keywords"] = extract_keywords(text)
            result["hasKeywords"] = bool(result["keywords"])
            return result

        if section == "about":
            text = result["text"]
            result["wordCount"] = word_count(text)
            result["hasQuantifiedAchievements"] = has_quantified_achievements(text)
            return result

        element = self._find_section(section)
        if element is None or section not in LIST_SECTIONS:
            return result

        items = [_visible_texts(item) for item in self._items(element)]
        if section == "experience":
            result["experiences"] = [
                {
                    "title": texts[0] if texts else "",
                    "company": texts[1] if len(texts) > 1 else "",
                    "duration": texts[2] if len(texts) > 2 else "",
                    "description": " ".join(texts[3:]),
                }
                for texts in items
            ]
        elif section == "skills":
            result["skills"] = [{"name": texts[0]} for texts in items if texts]
        elif section == "education":
            result["schools"] = [
                {"school": texts[0], "degree": texts[1] if len(texts) > 1 else ""}
                for texts in items
                if texts
            ]
        else:
            result["items"] = [" ".join(texts) for texts in items if texts]
        return result
