import itertools
from typing import get_args

import pytest

from image_agent.context import ContextDeriver
from image_agent.schemas import DetectedIntent, StylePreference, UseCase
from image_agent.translator import PromptTranslator, score_prompt


def _context(style="photorealistic", use_case="blog-header"):
    detected = DetectedIntent(
        use_case=use_case, topic="AI automation", style=style, confidence=90
    )
    return ContextDeriver().derive(detected)


class TestTranslate:
    def test_subject_first_and_ordered_sections(self):
        context = _context()
        translated = PromptTranslator().translate(context)
        prompt = translated.prompt
        assert prompt.startswith(context.subject)
        assert "aspect ratio 16:9" in prompt
        assert prompt.index("wide banner format") < prompt.index("natural lighting")
        assert prompt.index("natural lighting") < prompt.index("color palette")
        assert prompt.endswith("atmosphere")
        assert "high resolution" in prompt

    def test_translation_is_deterministic(self):
        context = _context()
        translator = PromptTranslator()
        assert translator.translate(context) == translator.translate(context)

    def test_negative_prompt_combines_defaults_use_case_and_style(self):
        negative = PromptTranslator().translate(_context()).negative_prompt
        terms = negative.split(", ")
        assert terms[0] == "blurry"
        assert "clickbait" in terms
        assert "CGI" in terms
        assert len(terms) == len(set(terms))

    def test_switches_disable_enhancement_and_negatives(self):
        translator = PromptTranslator(enhance_prompts=False, add_negative_prompts=False)
        translated = translator.translate(_context())
        assert "high resolution" not in translated.prompt
        assert "atmosphere" not in translated.prompt
        assert translated.negative_prompt == ""

    def test_validation_flags_missing_quality_terms(self):
        translator = PromptTranslator(enhance_prompts=False)
        validation = translator.validate_translation(translator.translate(_context()))
        assert "Missing quality specifications" in validation.issues


class TestScorePrompt:
    def test_very_short_vague_prompt(self):
        result = score_prompt("nice")
        assert result.score == 35
        assert not result.is_valid

    def test_detailed_prompt_scores_full_marks(self):
        result = score_prompt(
            "photorealistic office interior, soft window lighting, wide camera angle"
        )
        assert result.score == 100
        assert result.suggestions == []


def test_refinement_prompt_wraps_instruction():
    translator = PromptTranslator()
    translated = translator.translate(_context())
    assert translator.optimize_for_refinement(translated, " make it brighter. ") == (
        "Based on the previous image, make it brighter. Maintain the overall style and quality."
    )


def test_enhance_prompt_appends_details():
    translator = PromptTranslator()
    translated = translator.translate(_context())
    enhanced = translator.enhance_prompt(translated, "with a sunrise skyline")
    assert enhanced.prompt.endswith(", with a sunrise skyline")
    assert enhanced.optimizations[-1] == "Enhanced with additional user details"
    assert translated.prompt != enhanced.prompt


@pytest.mark.parametrize(
    "use_case,style", list(itertools.product(get_args(UseCase), get_args(StylePreference)))
)
def test_negative_terms_are_unique_for_every_context(use_case, style):
    context = _context(style=style, use_case=use_case)
    negative = PromptTranslator().translate(context).negative_prompt
    terms = [term.lower() for term in negative.split(", ")]
    assert terms
    assert len(terms) == len(set(terms))


def test_minimalist_negatives_do_not_repeat_defaults():
    negative = PromptTranslator().translate(_context(style="minimalist")).negative_prompt
    assert negative.split(", ").count("cluttered") == 1
    assert "busy" in negative
