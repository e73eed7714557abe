"""
Tests for mention extraction and share of voice.
"""

import pytest

from src.pipeline.mentions import (
    count_occurrences,
    extract_mentions,
    tracked_companies,
)
from src.pipeline.share_of_voice import calculate_share_of_voice, percentage


class TestMentionMatching:
    """Case-insensitive, whole-word company matching."""

    @pytest.mark.parametrize("text,name,expected", [
        ("Acme is great. ACME is cheap.", "Acme", 2),
        ("Try acme's starter plan", "Acme", 1),
        ("Visit Acmeville for more", "Acme", 0),
        ("Try monday.com today", "Monday.com", 1),
        ("Rival One and rival one again", "Rival One", 2),
        ("", "Acme", 0),
        ("Acme", "  ", 0),
    ])
    def test_count_occurrences(self, text, name, expected):
        assert count_occurrences(text, name) == expected

    def test_extract_mentions_in_company_order(self):
        text = "Rival Two beats Example, but Example is cheaper."
        mentions = extract_mentions(text, ["Example", "Rival One", "Rival Two"])

        assert [(m.company_name, m.occurrences) for m in mentions] == [
            ("Example", 2),
            ("Rival Two", 1),
        ]

    def test_tracked_companies(self):
        assert tracked_companies("Example", ["Rival", "example", " ", "Other"]) == [
            "Example", "Rival", "Other",
        ]


class TestShareOfVoice:
    """Tests for share of voice and AI visibility."""

    def test_percentage(self):
        assert percentage(1, 3) == 33.33
        assert percentage(5, 0) == 0.0

    def test_counts_responses_not_occurrences(self):
        result = calculate_share_of_voice(
            "Example",
            ["Rival One", "Rival Two"],
            [
                ["Example", "Rival One"],
                ["Rival Two"],
                [],
                ["example", "EXAMPLE"],
            ],
        )

        assert result.mention_counts == {"Example": 2, "Rival One": 1, "Rival Two": 1}
        assert result.total_mentions == sum(result.mention_counts.values()) == 4
        assert result.share_of_voice == {"Example": 50.0, "Rival One": 25.0, "Rival Two": 25.0}
        assert result.brand_share == 50.0
        assert result.ai_visibility_score == 50.0
        assert result.competitors == ["Rival One", "Rival Two"]

    def test_untracked_names_ignored(self):
        result = calculate_share_of_voice("Example", ["Rival"], [["Someone Else"], ["Rival"]])

        assert result.mention_counts == {"Example": 0, "Rival": 1}
        assert result.brand_share == 0.0
        assert result.share_of_voice["Rival"] == 100.0

    def test_no_responses(self):
        result = calculate_share_of_voice("Example", ["Rival"], [])

        assert result.total_mentions == 0
        assert result.share_of_voice == {"Example": 0.0, "Rival": 0.0}
        assert result.ai_visibility_score == 0.0

    def test_wire_format(self):
        data = calculate_share_of_voice("Example", [], [["Example"]]).to_json()

        assert data["shareOfVoice"] == {"Example": 100.0}
        assert data["aiVisibilityScore"] == 100.0
        assert data["brandShare"] == 100.0
