"""Deterministic negative-prompt construction."""
from __future__ import annotations

import re
from typing import Iterable, List, Optional

from .schemas import EnhancementRequest

COMMON_ARTIFACTS = [
    "blurry",
    "low quality",
    "distorted",
    "pixelated",
    "amateur",
    "synthetic",
    "artificial",
    "fake looking",
    "watermark",
    "text overlay",
    "logo",
    "signature",
]

ANATOMICAL_ARTIFACTS = [
    "extra fingers",
    "missing fingers",
    "deformed hands",
    "mutated hands",
    "extra limbs",
    "missing limbs",
    "fused fingers",
    "bad anatomy",
    "unnatural proportions",
    "asymmetric face",
]

PHOTOGRAPHY_ARTIFACTS = [
    "poor composition",
    "cluttered background",
    "messy",
    "chaotic",
    "oversaturated",
    "undersaturated",
    "overexposed",
    "underexposed",
    "harsh shadows",
    "flat lighting",
    "unnatural lighting",
]

GENERIC_ISSUES = [
    "generic stock photo",
    "cliché",
    "boring",
    "uninspired",
    "typical",
    "overused concept",
    "clickbait",
    "sensational",
]

USE_CASE_ARTIFACTS = {
    "blog-header": ["clickbait style", "sensational", "over-dramatic", "cheesy"],
    "social-post": ["too busy", "overwhelming", "hard to read", "cluttered"],
    "hero-banner": ["empty space", "sparse", "underwhelming", "plain"],
    "product-feature": ["unrealistic product", "floating objects", "impossible physics"],
    "team-photo": ["stiff poses", "forced smiles", "awkward positioning"],
    "concept-illustration": ["too literal", "uninspired metaphor", "confusing concept"],
}

# Whole words only, so "management" does not count as a person.
_PEOPLE_WORDS = re.compile(r"\b(person|people|man|woman|team|worker|executive)\b", re.IGNORECASE)

_CRITIQUE_PATTERNS = [
    re.compile(rf"{verb}\s+([^.,]+)", re.IGNORECASE)
    for verb in ("avoid", "remove", "eliminate", "reduce", "fix")
]


def dedupe_terms(terms: Iterable[str]) -> List[str]:
    """Trim, drop empties and keep the first occurrence of each term."""

    seen = set()
    unique: List[str] = []
    for term in terms:
        cleaned = term.strip()
        key = cleaned.lower()
        if cleaned and key not in seen:
            seen.add(key)
            unique.append(cleaned)
    return unique


def split_terms(negative_prompt: Optional[str]) -> List[str]:
    return [part.strip() for part in (negative_prompt or "").split(",") if part.strip()]


def merge_negative_prompts(*prompts: Optional[str]) -> str:
    """Union of several comma-joined negative prompts, deduplicated in order."""

    terms: List[str] = []
    for prompt in prompts:
        terms.extend(split_terms(prompt))
    return ", ".join(dedupe_terms(terms))


def mentions_people(request: EnhancementRequest) -> bool:
    return request.use_case == "team-photo" or bool(_PEOPLE_WORDS.search(request.user_intent))


def build_negative_prompt(
    request: EnhancementRequest, additional: Optional[Iterable[str]] = None
) -> str:
    negatives: List[str] = []
    negatives.extend(COMMON_ARTIFACTS)
    negatives.extend(PHOTOGRAPHY_ARTIFACTS)
    negatives.extend(GENERIC_ISSUES)
    if mentions_people(request):
        negatives.extend(ANATOMICAL_ARTIFACTS)
    negatives.extend(USE_CASE_ARTIFACTS.get(request.use_case, []))
    if additional:
        negatives.extend(additional)
    return ", ".join(dedupe_terms(negatives))


def extract_negatives_from_critique(critique: str) -> List[str]:
    """Harvest 'avoid X' / 'remove X' / 'fix X' style phrases from free text."""

    found: List[str] = []
    for pattern in _CRITIQUE_PATTERNS:
        for match in pattern.finditer(critique or ""):
            phrase = match.group(1).strip().lower()
            if phrase:
                found.append(phrase)
    return found


__all__ = [
    "build_negative_prompt",
    "dedupe_terms",
    "extract_negatives_from_critique",
    "mentions_people",
    "merge_negative_prompts",
    "split_terms",
]
