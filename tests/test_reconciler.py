"""
Tests for the Result Reconciler

Share-of-voice normalization, prompt/response text recovery from typed
and legacy documents, and the view-model built for reports.
"""

import pytest

from src.reconciler import (
    NO_RESPONSE,
    accepts_as_response,
    build_share_rows,
    build_view_model,
    distribute_prompts,
    extract_prompt_text,
    extract_response_text,
    normalize_share,
)

PROMPT = "Which CRM is best for growing teams?"


# =============================================================================
# SHARE OF VOICE
# =============================================================================

class TestNormalizeShare:
    """Tests for share-of-voice value normalization."""

    @pytest.mark.parametrize("value,expected", [
        (17, 17.0),
        (33.333, 33.33),
        ("25.5", 25.5),
        ("42.5%", 42.5),
        (" 10 % ", 10.0),
        (-5, 0.0),
        ("abc", 0.0),
        (float("nan"), 0.0),
        (True, 0.0),
    ])
    def test_values(self, value, expected):
        assert normalize_share(value) == expected

    def test_derived_from_mentions(self):
        assert normalize_share(None, 5, 20) == 25.0
        assert normalize_share(None, "5", "20") == 25.0

    def test_zero_total(self):
        assert normalize_share(None, 5, 0) == 0.0


class TestShareRows:
    """Tests for the per-brand share table."""

    def test_rows_sorted_and_brand_flagged(self):
        rows = build_share_rows(
            {"Example": "40%", "Rival": 60},
            {"Example": 2, "Rival": 3, "Other": 1},
            None,
            brand_name="example",
        )

        assert [row["name"] for row in rows] == ["Rival", "Example", "Other"]
        assert rows[1] == {"name": "Example", "share": 40.0, "mentions": 2, "isBrand": True}
        # Only in mention counts: derived from the computed total of 6
        assert rows[2]["share"] == 16.67
        assert rows[2]["isBrand"] is False


# =============================================================================
# PROMPT TEXT
# =============================================================================

class TestPromptText:
    """Tests for prompt text recovery."""

    def test_first_usable_field(self):
        prompt = {"promptText": "short", "question": "What is the best CRM for startups?"}
        assert extract_prompt_text(prompt) == "What is the best CRM for startups?"

    def test_identifier_is_not_text(self):
        prompt = {"_id": "507f1f77bcf86cd799439011", "promptText": "507f1f77bcf86cd799439011"}
        assert extract_prompt_text(prompt) == "Prompt text unavailable (ref ...439011)"

    def test_placeholder_by_position(self):
        assert extract_prompt_text("too short", index=2) == "Prompt text unavailable (#3)"

    def test_plain_string(self):
        assert extract_prompt_text(f"  {PROMPT}  ") == PROMPT


# =============================================================================
# RESPONSE TEXT
# =============================================================================

class TestResponseText:
    """Tests for response text recovery."""

    def test_typed_content_trusted(self):
        source = {"content": {"kind": "text", "value": "Acme."}, "text": PROMPT}
        assert extract_response_text(source, PROMPT) == "Acme."

    def test_typed_content_nested(self):
        source = {"aiResponse": {"content": {"kind": "text", "value": "Nested answer"}}}
        assert extract_response_text(source, PROMPT) == "Nested answer"

    def test_legacy_field_must_differ_from_prompt(self):
        source = {
            "text": PROMPT,
            "data": "Acme and Beta are both strong options for small and large teams alike.",
        }
        assert extract_response_text(source, PROMPT).startswith("Acme and Beta")

    def test_short_legacy_candidate_rejected(self):
        assert accepts_as_response(PROMPT + " Yes.", PROMPT) is False
        assert accepts_as_response(PROMPT + " " + "x" * 20, PROMPT) is True

    def test_long_response_wins_over_prompt_check(self):
        """Anything over 1000 characters is a response, even if it matches the prompt."""
        long_text = "word " * 250
        assert extract_response_text({"message": long_text}, long_text) == long_text.strip()

    def test_long_candidates_follow_field_priority(self):
        """With several long fields, the earliest field in priority order wins."""
        preferred = "A" * 1200
        later = "B" * 1500
        source = {"data": later, "message": later, "aiResponseText": preferred}
        assert extract_response_text(source, PROMPT) == preferred

    def test_nested_long_candidates_follow_field_priority(self):
        preferred = "A" * 1200
        source = {"aiResponse": {"data": "B" * 1500, "aiResponseText": preferred}}
        assert extract_response_text(source, PROMPT) == preferred

    def test_flagged_response_accepted(self):
        source = {"_dataValidation": {"isValidResponse": True}, "content": "Short ok"}
        assert extract_response_text(source, PROMPT) == "Short ok"

    def test_emergency_fallback(self):
        source = {"weirdField": "z" * 600}
        assert extract_response_text(source, PROMPT) == "z" * 600

    def test_placeholder_names_fields(self):
        assert extract_response_text({"foo": "bar", "baz": 1}, PROMPT) == (
            "Response content could not be extracted (fields: baz, foo)"
        )


# =============================================================================
# VIEW-MODEL
# =============================================================================

class TestDistributePrompts:
    """Every prompt lands in exactly one category."""

    @pytest.mark.parametrize("count,categories,sizes", [
        (5, ["A", "B"], [3, 2]),
        (7, ["A", "B", "C"], [3, 3, 1]),
        (2, ["A", "B", "C", "D"], [1, 1, 0, 0]),
        (0, ["A", "B"], [0, 0]),
    ])
    def test_sizes(self, count, categories, sizes):
        prompts = list(range(count))
        buckets = distribute_prompts(prompts, categories)

        assert [len(chunk) for _, chunk in buckets] == sizes
        assert [p for _, chunk in buckets for p in chunk] == prompts

    def test_no_categories(self):
        assert distribute_prompts([1, 2], []) == [("Uncategorized", [1, 2])]


@pytest.fixture
def analysis_document():
    return {
        "analysisId": "SUA_test",
        "domain": "example.com",
        "brandName": "Example",
        "brandInformation": "Example sells software.",
        "step2Data": {"categories": ["Tools", "Services"]},
        "step3Data": {"competitors": ["Rival"]},
        "step4Data": {"prompts": [
            {"_id": "p1", "promptText": "Which tools are best for teams?"},
            {"_id": "p2", "promptText": "Which services are most reliable?"},
            {"_id": "p3", "promptText": "Any affordable tools out there?"},
        ]},
        "analysisResults": {
            "shareOfVoice": {"Example": "42.5%", "Rival": 57.5},
            "mentionCounts": {"Example": 17, "Rival": 23},
            "totalMentions": 40,
            "aiVisibilityScore": "66.67",
        },
    }


class TestBuildViewModel:
    """Tests for the reconciled view-model."""

    def test_brand_metrics(self, analysis_document):
        view_model = build_view_model(analysis_document)
        brand = view_model["brand"]

        assert brand["name"] == "Example"
        assert brand["domain"] == "example.com"
        assert brand["description"] == "Example sells software."
        assert brand["brandShare"] == 42.5
        assert brand["aiVisibilityScore"] == 66.67
        assert brand["totalMentions"] == 40
        assert view_model["competitors"] == ["Rival"]
        assert view_model["shareOfVoice"][0]["name"] == "Rival"

    def test_flat_prompts_with_responses(self, analysis_document):
        responses = [
            {"promptId": {"_id": "p1"}, "content": {"kind": "text", "value": "Example is best."}},
            {
                "promptId": "p2",
                "responseText": "Rival is the most reliable services provider in nearly every review.",
            },
        ]

        view_model = build_view_model(analysis_document, responses)
        categories = view_model["categories"]

        assert [c["name"] for c in categories] == ["Tools", "Services"]
        assert [p["id"] for p in categories[0]["prompts"]] == ["p1", "p2"]
        assert categories[0]["prompts"][0]["responseText"] == "Example is best."
        assert categories[0]["prompts"][1]["responseText"].startswith("Rival is the most reliable")
        assert categories[1]["prompts"][0]["responseText"] == NO_RESPONSE
        assert [r["promptId"] for r in view_model["responses"]] == ["p1", "p2"]

    def test_populated_categories_preferred(self, analysis_document):
        analysis_document["populatedCategories"] = [{
            "categoryName": "Tools",
            "prompts": [{
                "_id": "p1",
                "promptText": "Which tools are best for teams?",
                "aiResponse": {"content": {"kind": "text", "value": "Example."}},
            }],
        }]

        view_model = build_view_model(analysis_document)

        assert len(view_model["categories"]) == 1
        assert view_model["prompts"][0]["responseText"] == "Example."
        assert view_model["prompts"][0]["categoryName"] == "Tools"

    def test_response_stored_on_legacy_prompt(self):
        """A legacy prompt carrying its answer directly is not reported as unanswered."""
        answer = "Teams mostly rely on shared boards and chat tools. " * 30
        document = {"populatedCategories": [{
            "categoryName": "Tools",
            "prompts": [
                {"_id": "p1", "promptText": "Which tools do teams use most often?", "responseText": answer},
                {"_id": "p2", "promptText": "Which tools are cheapest?", "content": "Which tools are cheapest?"},
            ],
        }]}

        prompts = build_view_model(document)["prompts"]

        assert prompts[0]["responseText"] == answer.strip()
        assert prompts[0]["promptText"] == "Which tools do teams use most often?"
        assert prompts[1]["responseText"] == NO_RESPONSE

    def test_explicit_brand_share(self, analysis_document):
        analysis_document["analysisResults"]["brandShare"] = "30%"
        assert build_view_model(analysis_document)["brand"]["brandShare"] == 30.0

    def test_empty_document(self):
        view_model = build_view_model({})

        assert view_model["brand"]["brandShare"] == 0.0
        assert view_model["brand"]["totalMentions"] == 0
        assert view_model["categories"] == [{"name": "Uncategorized", "prompts": []}]
        assert view_model["responses"] == []
