from prompt_enhancement.negatives import (
    ANATOMICAL_ARTIFACTS,
    build_negative_prompt,
    extract_negatives_from_critique,
    mentions_people,
    merge_negative_prompts,
)
from prompt_enhancement.schemas import EnhancementRequest


def _request(intent, use_case="blog-header"):
    return EnhancementRequest(user_intent=intent, use_case=use_case)


def test_people_detection_uses_whole_words():
    assert mentions_people(_request("a woman reviewing charts"))
    assert mentions_people(_request("quiet office", use_case="team-photo"))
    assert not mentions_people(_request("project management dashboard"))


def test_anatomical_terms_only_when_people_are_present():
    without = build_negative_prompt(_request("city skyline at night"))
    with_people = build_negative_prompt(_request("a team of engineers at work"))
    assert ANATOMICAL_ARTIFACTS[0] not in without
    assert ANATOMICAL_ARTIFACTS[0] in with_people


def test_use_case_terms_and_additional_terms_are_deduplicated():
    negative = build_negative_prompt(_request("city skyline"), additional=["Blurry", "lens flare"])
    terms = negative.split(", ")
    assert "over-dramatic" in terms
    assert "lens flare" in terms
    assert "Blurry" not in terms
    assert terms.count("sensational") == 1


def test_merge_is_case_insensitive_and_ordered():
    assert merge_negative_prompts("blurry, watermark", "Watermark, grain", None) == (
        "blurry, watermark, grain"
    )


def test_critique_phrases_are_harvested():
    found = extract_negatives_from_critique(
        "Avoid harsh shadows. Remove the watermark, then fix uneven skin tones."
    )
    assert found == ["harsh shadows", "the watermark", "uneven skin tones"]
