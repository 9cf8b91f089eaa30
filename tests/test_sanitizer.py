"""
Tests for tools/sanitizer.py — bracket and placeholder stripping.
"""

from tools.sanitizer import (
    is_placeholder,
    remove_empty_labels,
    remove_placeholders,
    strip_brackets,
    strip_wrapping,
)


class TestStripWrapping:

    def test_removes_single_layer(self):
        assert strip_wrapping("[Health: 80%]") == "Health: 80%"

    def test_removes_nested_layers(self):
        assert strip_wrapping("{ [ (Health: 80%) ] }") == "Health: 80%"

    def test_keeps_brackets_that_do_not_wrap_everything(self):
        text = "[Health] and [Energy]"
        assert strip_wrapping(text) == text

    def test_unbalanced_text_untouched(self):
        assert strip_wrapping("[Health: 80%") == "[Health: 80%"


class TestPlaceholders:

    def test_keyword_placeholder(self):
        assert is_placeholder("Location")
        assert is_placeholder("Mood Emoji")

    def test_short_generic_phrase(self):
        assert is_placeholder("Old Mill")

    def test_long_phrase_without_keyword_survives(self):
        assert not is_placeholder("the old road going north past the river")

    def test_removes_only_placeholders(self):
        text = "Weather: [Weather] Sunny [see the old road going north past it]"
        result = remove_placeholders(text)
        assert "[Weather]" not in result
        assert "[see the old road going north past it]" in result

    def test_digits_are_not_placeholders(self):
        assert remove_placeholders("Stats: [0-100]") == "Stats: [0-100]"


class TestEmptyLabels:

    def test_empty_label_removed(self):
        assert remove_empty_labels("Location:\nHealth: 80%") == "Health: 80%"

    def test_label_heading_bullets_kept(self):
        text = "Combat:\n- Slash"
        assert remove_empty_labels(text) == text

    def test_structural_header_kept_with_content_ahead(self):
        text = "Inventory:\nOn Person:\n\nSword"
        result = remove_empty_labels(text)
        assert result.startswith("Inventory:")

    def test_structural_header_needs_content(self):
        assert "Inventory:" in remove_empty_labels("Inventory:\nHealth: 80%")
        assert remove_empty_labels("Inventory:\n\n").strip() == ""

    def test_non_structural_label_dropped_even_with_content(self):
        assert remove_empty_labels("Weather:\nSunny") == "Sunny"


class TestStripBrackets:

    def test_placeholder_location_removed_health_kept(self):
        result = strip_brackets("Location: [Location]\nHealth: 80%")
        assert result == "Health: 80%"

    def test_real_location_preserved(self):
        assert strip_brackets("Location: Forest Clearing") == "Location: Forest Clearing"

    def test_line_structure_preserved(self):
        text = "Stats\n---\nHealth:   80%\n\n\nEnergy: 50%"
        assert strip_brackets(text) == "Stats\n---\nHealth: 80%\nEnergy: 50%"

    def test_wrapped_section_with_placeholders(self):
        text = "[Mood: [Mood Emoji]\nHealth: 80%]"
        assert strip_brackets(text) == "Health: 80%"

    def test_pipe_cleanup(self):
        text = "Details: [Emoji] | Tall | [Demeanor] |"
        assert strip_brackets(text) == "Details: Tall"

    def test_label_comma_cleanup(self):
        assert strip_brackets("On Person: [Item], Rope") == "On Person: Rope"

    def test_empty_input(self):
        assert strip_brackets("") == ""
