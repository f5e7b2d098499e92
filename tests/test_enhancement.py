import json

from conftest import FakeLLM
from prompt_enhancement.critique import CritiqueAnalyzer, critique_negatives, critique_to_feedback
from prompt_enhancement.enhancement import (
    INITIAL_FEEDBACK,
    PromptEnhancementAgent,
    build_iterative_feedback,
    clamp_confidence,
)
from prompt_enhancement.schemas import EnhancedPrompt, EnhancementRequest, ImageCritique
from providers.errors import ProviderAuthError, ProviderTransientError

ATTRIBUTES = json.dumps({
    "subject": "marketing team reviewing automation dashboards",
    "composition": {"framing": "wide", "perspective": "eye-level", "focalPoint": "screens"},
    "mood": ["focused", "optimistic"],
})

REQUEST = EnhancementRequest(
    user_intent="blog header about AI marketing automation", use_case="blog-header"
)


def optimization(prompt, confidence=None, negative="", issues=None):
    body = {
        "optimizedPrompt": prompt,
        "negativePrompt": negative,
        "reasoning": "more specific lighting",
        "expectedIssues": issues or [],
    }
    if confidence is not None:
        body["confidenceScore"] = confidence
    return json.dumps(body)


def _agent(replies, **kwargs):
    llm = FakeLLM(replies)
    return PromptEnhancementAgent(llm, clock=lambda: 1700000000.0, **kwargs), llm


async def test_stops_early_on_high_confidence():
    agent, llm = _agent(
        [ATTRIBUTES, optimization("first draft", 75), optimization("second draft", 92)],
        max_iterations=4,
    )
    result = await agent.enhance(REQUEST)
    assert result.success
    assert result.total_iterations == 2
    assert result.final_prompt.optimized_prompt == "second draft"
    assert result.final_prompt.confidence_score == 92
    assert len(llm.calls) == 3


async def test_high_confidence_on_first_iteration_does_not_exit():
    agent, _ = _agent(
        [ATTRIBUTES, optimization("one", 95), optimization("two", 60), optimization("three", 70)],
        max_iterations=3,
    )
    result = await agent.enhance(REQUEST)
    assert result.total_iterations == 3
    assert result.final_prompt.optimized_prompt == "three"


async def test_feedback_from_previous_iteration_is_carried():
    agent, llm = _agent(
        [ATTRIBUTES, optimization("one", 70, issues=["flat lighting"]), optimization("two", 80)],
        max_iterations=2,
    )
    await agent.enhance(REQUEST)
    first_prompt = llm.calls[1][0]["content"]
    second_prompt = llm.calls[2][0]["content"]
    assert INITIAL_FEEDBACK in first_prompt
    assert "Iteration 1 generated a prompt with 70% confidence." in second_prompt
    assert "- flat lighting" in second_prompt


async def test_failed_attempts_are_skipped_and_numbering_stays_dense():
    agent, _ = _agent(
        [
            ATTRIBUTES,
            "not json at all",
            optimization("recovered", 70),
            ProviderTransientError("upstream 503"),
            optimization("final", 85),
        ],
        max_iterations=4,
    )
    result = await agent.enhance(REQUEST)
    assert result.success
    assert result.attempts == 4
    assert [record.iteration for record in result.iterations] == [1, 2]
    assert result.final_prompt.iteration_number == 2


async def test_missing_confidence_defaults_and_negatives_merge():
    agent, _ = _agent(
        [ATTRIBUTES, optimization("only", None, negative="Blurry, lens flare")], max_iterations=1
    )
    result = await agent.enhance(REQUEST)
    final = result.final_prompt
    assert final.confidence_score == 70
    terms = final.negative_prompt.split(", ")
    assert terms[0] == "blurry"
    assert "lens flare" in terms
    assert "Blurry" not in terms


async def test_attribute_failure_is_reported_not_raised():
    agent, _ = _agent(["```json\n{\"mood\": []}\n```"])
    result = await agent.enhance(REQUEST)
    assert not result.success
    assert result.error_type == "AttributeExtractionError"
    assert result.total_iterations == 0


async def test_every_attempt_failing_reports_prompt_generation_error():
    agent, _ = _agent([ATTRIBUTES, "nope", "still nope"], max_iterations=2)
    result = await agent.enhance(REQUEST)
    assert not result.success
    assert result.error_type == "PromptGenerationError"
    assert result.attempts == 2


async def test_auth_error_aborts_the_loop():
    agent, llm = _agent([ATTRIBUTES, ProviderAuthError("bad key"), optimization("unused", 90)])
    result = await agent.enhance(REQUEST)
    assert result.error_type == "PromptGenerationError"
    assert len(llm.calls) == 2


def test_confidence_is_clamped():
    assert clamp_confidence(None) == 70
    assert clamp_confidence(140) == 100
    assert clamp_confidence(-3) == 0


def test_iterative_feedback_asks_for_more_when_below_target():
    prompt = EnhancedPrompt(
        optimized_prompt="draft", negative_prompt="", iteration_number=1, confidence_score=60
    )
    assert "Aim for 80+ confidence" in build_iterative_feedback(prompt, 80)
    assert "Aim for" not in build_iterative_feedback(prompt, 50)


async def test_critique_overrides_should_refine_from_quality():
    reply = json.dumps({
        "artifacts": ["Extra fingers"],
        "overallQuality": 85,
        "suggestedImprovements": ["Avoid harsh shadows on the left"],
        "shouldRefine": True,
    })
    llm = FakeLLM([reply])
    critique = await CritiqueAnalyzer(llm).analyze("QUJD", "a prompt")
    assert critique.should_refine is False
    image_part = llm.calls[0][0]["content"][1]
    assert image_part["image_url"]["url"].startswith("data:image/png;base64,")


def test_critique_feedback_and_negatives():
    critique = ImageCritique(
        artifacts=["Extra fingers"],
        lighting_issues=["flat"],
        overall_quality=55,
        suggested_improvements=["Avoid harsh shadows", "Remove clutter"],
    )
    feedback = critique_to_feedback(critique)
    assert feedback.startswith("The generated image scored 55/100")
    assert "Lighting issues:" in feedback
    assert critique_negatives(critique) == ["harsh shadows", "clutter", "extra fingers"]
