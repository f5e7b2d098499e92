import itertools

import pytest

from image_agent.intent import STYLE_SIGNALS, USE_CASE_PATTERNS, IntentClassifier, contains_keyword


class TestDetectIntent:
    def setup_method(self):
        self.classifier = IntentClassifier()

    def test_blog_header_intent(self):
        detected = self.classifier.detect_intent(
            "Create a professional blog header about AI marketing automation"
        )
        assert detected.use_case == "blog-header"
        assert detected.style == "professional"
        assert detected.confidence >= 70
        assert "use-case: blog" in detected.signals

    def test_no_keywords_falls_back_to_defaults(self):
        detected = self.classifier.detect_intent("a quiet lake at dawn with mist")
        assert detected.use_case == "custom"
        assert detected.style == "professional"
        assert detected.confidence == 60

    def test_style_tie_keeps_first_declared(self):
        detected = self.classifier.detect_intent("marketing visual for a corporate launch")
        assert detected.style == "professional"

    def test_photorealistic_wins_on_weight(self):
        detected = self.classifier.detect_intent("realistic photo of a product on a desk")
        assert detected.style == "photorealistic"
        assert detected.use_case == "product-feature"

    def test_platform_is_whole_word(self):
        assert self.classifier.detect_intent("share this on linkedin today").platform == "linkedin"
        assert self.classifier.detect_intent("a big ship in the harbor").platform is None

    def test_topic_strips_keywords_and_stop_words(self):
        topic = self.classifier.extract_topic(
            "Create a professional blog header about AI marketing automation", "blog-header"
        )
        assert topic == "Create header AI automation"

    def test_topic_falls_back_to_generic(self):
        assert self.classifier.extract_topic("professional blog", "blog-header") == (
            "article content"
        )

    def test_hints_override_and_raise_confidence(self):
        detected = self.classifier.detect_intent("a quiet lake at dawn with mist")
        hinted = self.classifier.apply_hints(detected, use_case="hero-banner", style="minimalist")
        assert hinted.use_case == "hero-banner"
        assert hinted.style == "minimalist"
        assert hinted.confidence == detected.confidence + 20
        assert detected.use_case == "custom"

    def test_hint_confidence_is_capped(self):
        detected = self.classifier.detect_intent(
            "Create a professional blog header about AI marketing automation"
        )
        hinted = self.classifier.apply_hints(detected, use_case="blog-header", style="editorial")
        assert hinted.confidence == 100


class TestValidateIntent:
    def test_vague_intent_is_rejected(self):
        validation = IntentClassifier().validate_intent("image")
        assert validation.is_valid is False
        assert len(validation.suggestions) == 2

    def test_short_intent_is_rejected(self):
        validation = IntentClassifier().validate_intent("a cat")
        assert validation.is_valid is False

    def test_descriptive_intent_passes(self):
        validation = IntentClassifier().validate_intent("team photo for the about page")
        assert validation.is_valid
        assert validation.suggestions == []

    @pytest.mark.parametrize(
        "intent", ["", " ", "cat", "a dog", "         ", "tiny tree", "\t\n  ", "123456789"]
    )
    def test_anything_under_ten_characters_is_rejected(self, intent):
        validation = IntentClassifier().validate_intent(intent)
        assert validation.is_valid is False
        assert validation.suggestions


def test_contains_keyword_matches_substrings_case_insensitively():
    assert contains_keyword("blogging tips", "blog")
    assert contains_keyword("weblog tips", "blog")
    assert contains_keyword("A SURREAL city", "real")
    assert not contains_keyword("blogging tips", "blog", whole_word=True)
    assert contains_keyword("my Blog today", "blog", whole_word=True)


def test_keywords_count_inside_longer_words():
    detected = IntentClassifier().detect_intent("An illustration of a surreal floating city")
    assert detected.use_case == "concept-illustration"
    # "real" inside "surreal" ties with "illustration"; the first declared style wins.
    assert detected.style == "photorealistic"
    assert "style: real" in detected.signals


class TestHintSignals:
    def setup_method(self):
        self.classifier = IntentClassifier()
        self.intent = "realistic photo of a product on a desk"
        self.detected = self.classifier.detect_intent(self.intent)

    def test_signals_recomputed_for_hinted_classification(self):
        assert "use-case: product" in self.detected.signals
        hinted = self.classifier.apply_hints(
            self.detected, use_case="team-photo", style="minimalist", intent=self.intent
        )
        assert hinted.signals == []

    def test_stale_signals_dropped_without_intent_text(self):
        hinted = self.classifier.apply_hints(self.detected, style="minimalist")
        assert hinted.signals == ["use-case: product"]

    def test_generic_topic_follows_hinted_use_case(self):
        detected = self.classifier.detect_intent("professional blog")
        assert detected.topic == "article content"
        hinted = self.classifier.apply_hints(detected, use_case="hero-banner")
        assert hinted.topic == "website hero"
        with_text = self.classifier.apply_hints(
            detected, use_case="hero-banner", intent="professional blog"
        )
        assert with_text.topic == "website hero"
        assert with_text.signals == ["style: professional"]


USE_CASE_HINTS = [None, "custom"] + [use_case for use_case, _ in USE_CASE_PATTERNS]
STYLE_HINTS = [None] + [style for style, _, _ in STYLE_SIGNALS]


@pytest.mark.parametrize(
    "intent",
    [
        "a quiet lake at dawn with mist",
        "Create a professional blog header about AI marketing automation",
        "realistic photo of a product on a desk",
    ],
)
def test_hints_never_lower_confidence(intent):
    classifier = IntentClassifier()
    detected = classifier.detect_intent(intent)
    for use_case, style, platform in itertools.product(USE_CASE_HINTS, STYLE_HINTS, [None, "web"]):
        hinted = classifier.apply_hints(
            detected, use_case=use_case, style=style, platform=platform, intent=intent
        )
        assert detected.confidence <= hinted.confidence <= 100
