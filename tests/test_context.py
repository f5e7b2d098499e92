from image_agent.context import MAX_MOODS, ContextDeriver
from image_agent.schemas import DetectedIntent


def _intent(**overrides):
    values = {
        "use_case": "blog-header",
        "topic": "technology trends",
        "style": "photorealistic",
        "confidence": 80,
    }
    values.update(overrides)
    return DetectedIntent(**values)


def test_derive_fills_every_section():
    context = ContextDeriver().derive(_intent())
    assert context.composition.aspect_ratio == "16:9"
    assert context.subject == "Editorial photography for blog article about technology trends"
    assert context.technical.lighting == "natural lighting, soft diffused"
    assert context.colors == ["blue", "cyan", "silver", "modern gradients"]
    assert 0 < len(context.mood) <= MAX_MOODS
    assert ContextDeriver().validate_context(context).is_valid


def test_team_photo_is_portrait():
    context = ContextDeriver().derive(_intent(use_case="team-photo", topic="engineers"))
    assert context.composition.aspect_ratio == "3:4"


def test_templates_can_be_disabled():
    context = ContextDeriver(use_templates=False).derive(_intent())
    assert context.subject == "technology trends"


def test_palette_from_mentioned_colors_or_default():
    deriver = ContextDeriver()
    assert deriver.palette_for("a red and purple sunset") == ["red", "purple"]
    assert deriver.palette_for("quarterly roadmap") == ["professional", "modern", "balanced"]


def test_moods_are_unique():
    moods = ContextDeriver().moods_for("blog-header", "editorial", "innovative platform")
    assert len(moods) == len(set(moods))
    assert len(moods) <= MAX_MOODS


def test_enhance_context_returns_new_spec():
    context = ContextDeriver().derive(_intent())
    enhanced = ContextDeriver().enhance_context(context, "make it calm and warm")
    assert "calm" in enhanced.mood
    assert "warm" in enhanced.colors
    assert "calm" not in context.mood
