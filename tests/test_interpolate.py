"""Tests for placeholder interpolation."""

from prompt_studio.core.interpolate import interpolate, placeholders


class TestInterpolate:
    def test_replaces_known_keys(self):
        assert interpolate("Hi {{name}}, you are {{age}}", {"name": "Ada", "age": "36"}) == (
            "Hi Ada, you are 36"
        )

    def test_unknown_keys_left_verbatim(self):
        assert interpolate("Hi {{name}} from {{city}}", {"name": "Ada"}) == "Hi Ada from {{city}}"

    def test_none_value_left_verbatim(self):
        assert interpolate("{{a}}", {"a": None}) == "{{a}}"

    def test_repeated_placeholder(self):
        assert interpolate("{{x}}-{{x}}", {"x": "1"}) == "1-1"

    def test_no_placeholders(self):
        assert interpolate("plain text", {"x": "1"}) == "plain text"

    def test_spaces_inside_braces_not_matched(self):
        assert interpolate("{{ x }}", {"x": "1"}) == "{{ x }}"

    def test_values_are_not_reinterpolated(self):
        assert interpolate("{{a}}", {"a": "{{b}}", "b": "no"}) == "{{b}}"

    def test_empty_string_value_replaces(self):
        assert interpolate("[{{a}}]", {"a": ""}) == "[]"


class TestPlaceholders:
    def test_distinct_in_order(self):
        assert placeholders("{{b}} {{a}} {{b}}") == ["b", "a"]

    def test_none(self):
        assert placeholders("nothing here") == []
