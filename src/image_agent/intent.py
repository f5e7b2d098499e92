"""Keyword-based intent classification."""
from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Tuple

from .config import ScoringConfig
from .schemas import DetectedIntent, IntentValidation, Platform, StylePreference, UseCase

LOGGER = logging.getLogger("image_agent.intent")

USE_CASE_PATTERNS: List[Tuple[UseCase, List[str]]] = [
    ("blog-header", ["blog", "article", "post header", "header image", "blog banner", "article header"]),
    ("social-post", ["social", "tweet", "linkedin post", "instagram", "facebook post", "social media"]),
    ("hero-banner", ["hero", "banner", "landing page", "hero section", "main banner", "website header"]),
    ("product-feature", ["product", "feature", "showcase", "demo", "product shot", "feature image"]),
    ("team-photo", ["team", "portrait", "headshot", "team member", "staff photo", "employee"]),
    (
        "concept-illustration",
        ["concept", "illustration", "abstract", "diagram", "infographic", "visual concept"],
    ),
]

STYLE_SIGNALS: List[Tuple[StylePreference, List[str], float]] = [
    ("photorealistic", ["photo", "photograph", "realistic", "real", "photorealistic", "camera"], 1.0),
    ("illustration", ["illustration", "illustrated", "drawn", "graphic", "cartoon", "animated"], 1.0),
    ("minimalist", ["minimal", "minimalist", "simple", "clean", "basic", "stripped down"], 1.0),
    ("professional", ["professional", "corporate", "business", "formal", "executive"], 0.8),
    ("marketing", ["marketing", "promotional", "advertising", "campaign", "commercial"], 0.8),
    ("editorial", ["editorial", "magazine", "publication", "journalistic"], 0.8),
    ("social-media", ["social media", "shareable", "viral", "engaging", "trendy"], 0.8),
]

PLATFORM_KEYWORDS: List[Tuple[Platform, List[str]]] = [
    ("web", ["website", "web", "landing page", "homepage"]),
    ("blog", ["blog", "article", "post"]),
    ("twitter", ["twitter", "tweet", "x post"]),
    ("linkedin", ["linkedin", "professional network"]),
    ("instagram", ["instagram", "ig", "insta"]),
    ("facebook", ["facebook", "fb"]),
    ("email", ["email", "newsletter", "campaign"]),
    ("print", ["print", "brochure", "flyer", "poster"]),
]

STOP_WORDS = ["about", "for", "of", "with", "showing", "depicting", "a", "an", "the"]

GENERIC_TOPICS: Dict[UseCase, str] = {
    "blog-header": "article content",
    "social-post": "social media content",
    "hero-banner": "website hero",
    "product-feature": "product showcase",
    "team-photo": "team member",
    "concept-illustration": "abstract concept",
    "custom": "custom content",
}

VAGUE_TERMS = ["image", "picture", "graphic", "visual", "something"]
MIN_INTENT_LENGTH = 10

_PATTERN_CACHE: Dict[str, "re.Pattern[str]"] = {}


def _keyword_pattern(keyword: str) -> "re.Pattern[str]":
    if keyword not in _PATTERN_CACHE:
        _PATTERN_CACHE[keyword] = re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE)
    return _PATTERN_CACHE[keyword]


def contains_keyword(text: str, keyword: str, whole_word: bool = False) -> bool:
    """Case-insensitive substring test; ``whole_word`` requires word boundaries."""

    if whole_word:
        return bool(_keyword_pattern(keyword).search(text))
    return keyword.lower() in text.lower()


def _retain_signals(signals: List[str], use_case: UseCase, style: StylePreference) -> List[str]:
    use_case_keywords = {kw for uc, kws in USE_CASE_PATTERNS if uc == use_case for kw in kws}
    style_keywords = {kw for st, kws, _ in STYLE_SIGNALS if st == style for kw in kws}
    kept = []
    for signal in signals:
        kind, _, keyword = signal.partition(": ")
        if kind == "use-case" and keyword in use_case_keywords:
            kept.append(signal)
        elif kind == "style" and keyword in style_keywords:
            kept.append(signal)
    return kept


class IntentClassifier:
    """Scores an intent against use-case and style keyword tables."""

    def __init__(self, scoring: Optional[ScoringConfig] = None) -> None:
        self.scoring = scoring or ScoringConfig()

    def detect_intent(self, intent: str) -> DetectedIntent:
        text = intent.strip().lower()
        use_case = self._detect_use_case(text)
        style = self._detect_style(text)
        detected = DetectedIntent(
            use_case=use_case,
            topic=self.extract_topic(intent, use_case),
            style=style,
            platform=self._detect_platform(text),
            confidence=self._confidence(text, use_case, style),
            signals=self._signals(text, use_case, style),
        )
        LOGGER.debug(
            "Classified intent as %s/%s (confidence %s, signals=%s)",
            detected.use_case,
            detected.style,
            detected.confidence,
            detected.signals,
        )
        return detected

    def _detect_use_case(self, text: str) -> UseCase:
        best: UseCase = "custom"
        best_score = 0
        for use_case, keywords in USE_CASE_PATTERNS:
            score = sum(
                self.scoring.use_case_keyword_boost for kw in keywords if contains_keyword(text, kw)
            )
            if score > best_score:
                best, best_score = use_case, score
        return best

    def _detect_style(self, text: str) -> StylePreference:
        best: StylePreference = "professional"
        best_score = 0.0
        for style, keywords, weight in STYLE_SIGNALS:
            score = sum(
                weight * self.scoring.style_weight_multiplier
                for kw in keywords
                if contains_keyword(text, kw)
            )
            if score > best_score:
                best, best_score = style, score
        return best

    def _detect_platform(self, text: str) -> Optional[Platform]:
        for platform, keywords in PLATFORM_KEYWORDS:
            if any(contains_keyword(text, kw, whole_word=True) for kw in keywords):
                return platform
        return None

    def _matched(
        self, text: str, use_case: UseCase, style: StylePreference
    ) -> Tuple[List[str], List[str]]:
        use_case_hits = [
            kw for uc, keywords in USE_CASE_PATTERNS if uc == use_case
            for kw in keywords if contains_keyword(text, kw)
        ]
        style_hits = [
            kw for st, keywords, _ in STYLE_SIGNALS if st == style
            for kw in keywords if contains_keyword(text, kw)
        ]
        return use_case_hits, style_hits

    def _confidence(self, text: str, use_case: UseCase, style: StylePreference) -> int:
        s = self.scoring
        use_case_hits, style_hits = self._matched(text, use_case, style)
        confidence = s.base_confidence
        if use_case_hits:
            confidence += s.use_case_hit_bonus
        if style_hits:
            confidence += s.style_hit_bonus
        words = len(text.split())
        if words >= s.min_words_for_bonus:
            confidence += s.word_count_bonus
        if words >= s.long_intent_words:
            confidence += s.long_intent_bonus
        return max(0, min(confidence, 100))

    def _signals(self, text: str, use_case: UseCase, style: StylePreference) -> List[str]:
        use_case_hits, style_hits = self._matched(text, use_case, style)
        return [f"use-case: {kw}" for kw in use_case_hits] + [f"style: {kw}" for kw in style_hits]

    def extract_topic(self, intent: str, use_case: UseCase) -> str:
        """Strip classification keywords and stop-words, keeping the subject matter."""

        keywords = [kw for _, kws in USE_CASE_PATTERNS for kw in kws]
        keywords += [kw for _, kws, _ in STYLE_SIGNALS for kw in kws]
        topic = intent
        # Longest first so "header image" goes before "header".
        for keyword in sorted(set(keywords), key=len, reverse=True):
            topic = _keyword_pattern(keyword).sub("", topic)
        for word in STOP_WORDS:
            topic = _keyword_pattern(word).sub("", topic)
        topic = re.sub(r"\s+", " ", topic).strip()
        return topic or GENERIC_TOPICS[use_case]

    def apply_hints(
        self,
        detected: DetectedIntent,
        use_case: Optional[UseCase] = None,
        style: Optional[StylePreference] = None,
        platform: Optional[Platform] = None,
        *,
        intent: Optional[str] = None,
    ) -> DetectedIntent:
        """Override detection with caller hints; each hint adds ``hint_bonus``.

        Signals and the topic are rebuilt for the hinted use case and style.
        Without the original ``intent`` text, signals that no longer describe
        the final classification are dropped and a generic topic is swapped
        for the hinted use case's.
        """

        update: Dict[str, object] = {}
        confidence = detected.confidence
        if use_case:
            update["use_case"] = use_case
            confidence = min(confidence + self.scoring.hint_bonus, 100)
        if style:
            update["style"] = style
            confidence = min(confidence + self.scoring.hint_bonus, 100)
        if platform:
            update["platform"] = platform
        if not update:
            return detected
        update["confidence"] = max(confidence, detected.confidence)
        final_use_case = use_case or detected.use_case
        final_style = style or detected.style
        if intent is not None:
            update["signals"] = self._signals(intent.strip().lower(), final_use_case, final_style)
            update["topic"] = self.extract_topic(intent, final_use_case)
        else:
            update["signals"] = _retain_signals(detected.signals, final_use_case, final_style)
            if use_case and detected.topic == GENERIC_TOPICS[detected.use_case]:
                update["topic"] = GENERIC_TOPICS[final_use_case]
        return detected.model_copy(update=update)

    def validate_intent(self, intent: str) -> IntentValidation:
        suggestions: List[str] = []
        if len(intent) < MIN_INTENT_LENGTH:
            suggestions.append(
                "Intent is too short. Provide more detail about what you want to create."
            )
        lowered = intent.strip().lower()
        if any(lowered in (term, f"a {term}") for term in VAGUE_TERMS):
            suggestions.append(
                "Intent is too vague. Specify what the image should depict "
                '(e.g., "blog header about AI marketing").'
            )
        return IntentValidation(is_valid=not suggestions, suggestions=suggestions)


__all__ = [
    "GENERIC_TOPICS",
    "IntentClassifier",
    "PLATFORM_KEYWORDS",
    "STYLE_SIGNALS",
    "USE_CASE_PATTERNS",
    "contains_keyword",
]
