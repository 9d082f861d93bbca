"""
Unit Tests for the navigation classifier
"""

import pytest

from webpilot.planning.navigation_classifier import classify_navigation, classify_with_rule


class TestNavigationClassifier:
    """Tests for the rule table."""

    @pytest.mark.parametrize("instruction,expected,rule", [
        ("Go to https://example.com and read the title", True, "explicit_url"),
        ("Check www.python.org for the latest release", True, "explicit_url"),
        ("Visit amazon.com and search for shoes", True, "domain_in_context"),
        ("Open the company website", True, "strong_navigation_verb"),
        ("Go to youtube and search for cats", True, "known_site"),
        ("Click the submit button", False, "ui_interaction_only"),
        ("Fill the form with my details", False, "ui_interaction_only"),
        ("Summarize the weather", False, "default"),
    ])
    def test_rules(self, instruction, expected, rule):
        assert classify_with_rule(instruction) == (expected, rule)

    def test_blank_instruction(self):
        assert classify_navigation("") is False
        assert classify_navigation(None) is False
