"""Task categorization for Streakline.

The upstream classifier is Gemini (google-genai). Anything that goes wrong
upstream degrades to a deterministic keyword classifier, so categorization
never fails a task creation.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Protocol

from google import genai
from google.genai import types

from streakline.models import CATEGORIES, Settings

logger = logging.getLogger("streakline.classifier")

FALLBACK_CONFIDENCE = 0.5
DEFAULT_UPSTREAM_CONFIDENCE = 0.8
DEFAULT_CATEGORY = "personal"

# Declaration order breaks ties.
KEYWORDS: dict[str, tuple[str, ...]] = {
    "work": ("meeting", "deadline", "project", "client", "email", "report",
             "presentation", "work", "office", "business"),
    "health": ("exercise", "workout", "gym", "run", "walk", "diet", "doctor",
               "appointment", "meditation", "yoga", "health"),
    "personal": ("family", "friend", "movie", "dinner", "shopping", "clean",
                 "laundry", "hobby", "game", "personal"),
    "learning": ("study", "read", "course", "learn", "practice", "research",
                 "book", "tutorial", "skill", "education"),
}

PROMPT_TEMPLATE = """Categorize the following task into one of these categories: work, health, personal, learning.

Task: {title}
Description: {description}

Respond with ONLY a valid JSON object in this exact format: {{"category": "category_name", "confidence": 0.95}}

Guidelines:
- work: Professional tasks, job-related activities, business meetings, deadlines
- health: Exercise, diet, medical appointments, wellness activities
- personal: Family, relationships, hobbies, entertainment, personal errands
- learning: Studying, reading, courses, skill development, educational activities

Do not include any markdown formatting, code blocks, or additional text. Only return the JSON object.
"""


@dataclass(frozen=True)
class Classification:
    category: str
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {"category": self.category, "confidence": self.confidence}


class Classifier(Protocol):
    def classify(self, title: str, description: str = "") -> Classification: ...


class ClassificationError(Exception):
    """Upstream classifier returned something unusable."""


# ── Keyword fallback ──────────────────────────────────────────


def keyword_scores(title: str, description: str = "") -> dict[str, int]:
    text = f"{title or ''} {description or ''}".lower()
    return {
        category: sum(1 for word in words if word in text)
        for category, words in KEYWORDS.items()
    }


def fallback_category(title: str, description: str = "") -> str:
    best, best_score = DEFAULT_CATEGORY, 0
    for category, score in keyword_scores(title, description).items():
        if score > best_score:
            best, best_score = category, score
    return best


class KeywordClassifier:
    """Local, deterministic classifier."""

    def classify(self, title: str, description: str = "") -> Classification:
        return Classification(fallback_category(title, description), FALLBACK_CONFIDENCE)


# ── Gemini ────────────────────────────────────────────────────


_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


def parse_response(text: str) -> Classification:
    """Parse the model's JSON answer, validating category and confidence."""
    clean = _FENCE_RE.sub("", (text or "").strip())
    try:
        data = json.loads(clean)
    except json.JSONDecodeError as e:
        raise ClassificationError(f"Malformed classifier response: {text!r}") from e
    if not isinstance(data, dict):
        raise ClassificationError(f"Unexpected classifier response: {text!r}")

    category = data.get("category")
    if category not in CATEGORIES:
        raise ClassificationError(f"Invalid category from classifier: {category!r}")

    confidence = data.get("confidence")
    if (
        isinstance(confidence, bool)
        or not isinstance(confidence, (int, float))
        or not 0 <= confidence <= 1
    ):
        confidence = DEFAULT_UPSTREAM_CONFIDENCE
    return Classification(category, float(confidence))


class GeminiClassifier:
    """Classifier backed by a Gemini model with a bounded request timeout."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        timeout_seconds: float = 10.0,
        client: Any = None,
    ) -> None:
        self.model = model
        if client is None:
            client = genai.Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=int(timeout_seconds * 1000)),
            )
        self._client = client
        self._fallback = KeywordClassifier()

    def classify(self, title: str, description: str = "") -> Classification:
        prompt = PROMPT_TEMPLATE.format(title=title, description=description or "")
        try:
            response = self._client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    temperature=0,
                    response_mime_type="application/json",
                ),
            )
            return parse_response(response.text)
        except Exception as e:
            logger.warning("Gemini categorization failed, using keyword fallback: %s", e)
            return self._fallback.classify(title, description)


# ── Wiring ────────────────────────────────────────────────────


def build_classifier(settings: Settings | None = None) -> Classifier:
    """Gemini when GEMINI_API_KEY is set, keyword matching otherwise."""
    settings = settings or Settings()
    api_key = os.environ.get("GEMINI_API_KEY", "")
    if not api_key:
        logger.info("GEMINI_API_KEY not set, using keyword categorization")
        return KeywordClassifier()
    return GeminiClassifier(
        api_key,
        model=settings.classifier_model,
        timeout_seconds=settings.classifier_timeout_seconds,
    )


def safe_classify(classifier: Classifier | None, title: str, description: str = "") -> Classification:
    """Run any classifier, degrading to keyword matching on error or bad output."""
    if classifier is None:
        return KeywordClassifier().classify(title, description)
    try:
        result = classifier.classify(title, description)
    except Exception as e:
        logger.warning("Classifier error, using keyword fallback: %s", e)
        return KeywordClassifier().classify(title, description)
    if result.category not in CATEGORIES:
        logger.warning("Classifier returned invalid category %r, using keyword fallback", result.category)
        return KeywordClassifier().classify(title, description)
    confidence = result.confidence
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)) or not 0 <= confidence <= 1:
        confidence = DEFAULT_UPSTREAM_CONFIDENCE
    return Classification(result.category, float(confidence))
