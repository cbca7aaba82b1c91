"""Tests for fallback rotations and title validation."""

import pytest

from config import FALLBACK_RESPONSE_PREFIX, FALLBACK_TITLES, MAX_TITLE_LENGTH
from services.errors import InvalidTitleError, TitleGenerationError
from services.fallbacks import FallbackRotation, Fallbacks, clean_title, validate_title


class TestFallbackRotation:
    """Test suite for the round-robin rotation."""

    def test_cycles_in_order(self):
        rotation = FallbackRotation(["one", "two"])
        assert [rotation.next() for _ in range(5)] == ["one", "two", "one", "two", "one"]

    def test_empty_rotation_rejected(self):
        with pytest.raises(ValueError):
            FallbackRotation([])

    def test_fallback_titles_come_from_fixed_set(self):
        fallbacks = Fallbacks()
        titles = [fallbacks.title() for _ in range(len(FALLBACK_TITLES) + 1)]
        assert titles[:len(FALLBACK_TITLES)] == FALLBACK_TITLES
        assert titles[-1] == FALLBACK_TITLES[0]

    def test_fallback_response_is_marked(self):
        assert Fallbacks().response().startswith(FALLBACK_RESPONSE_PREFIX)

    def test_separate_instances_do_not_share_position(self):
        first = Fallbacks(titles=["a", "b"])
        second = Fallbacks(titles=["a", "b"])
        first.title()
        assert second.title() == "a"


class TestValidateTitle:
    """Test suite for generated-title validation."""

    def test_strips_quotes_and_markdown(self):
        assert clean_title('  "**Timeline Fork**"  ') == "Timeline Fork"
        assert validate_title("# 'Quiet Orbit'", "Tell me about planets") == "Quiet Orbit"

    def test_empty_title_rejected(self):
        with pytest.raises(InvalidTitleError):
            validate_title("  ", "Hello there")
        with pytest.raises(InvalidTitleError):
            validate_title(None, "Hello there")

    def test_long_title_rejected(self):
        with pytest.raises(InvalidTitleError):
            validate_title("x" * (MAX_TITLE_LENGTH + 1), "Hello there")

    def test_title_at_length_bound_accepted(self):
        title = "y" * MAX_TITLE_LENGTH
        assert validate_title(title, "Hello there") == title

    def test_prompt_echo_rejected(self):
        with pytest.raises(InvalidTitleError):
            validate_title("Explain recursion please", "Explain recursion please")
        with pytest.raises(InvalidTitleError):
            validate_title("About EXPLAIN things", "Explain recursion please")

    def test_short_prompt_only_rejects_exact_echo(self):
        assert validate_title("Thinking Paths", "hi") == "Thinking Paths"
        with pytest.raises(InvalidTitleError):
            validate_title("Hi", "hi")

    def test_invalid_title_is_a_title_generation_error(self):
        assert issubclass(InvalidTitleError, TitleGenerationError)
