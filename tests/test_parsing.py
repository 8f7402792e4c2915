"""Tests for moderation response parsing."""

import pytest

from chat_safety.clients.moderation_client import ModerationResponseError
from chat_safety.components.evaluators.parsing import (
    normalize_category_name,
    parse_moderation_response,
)
from chat_safety.models.schemas import HarmCategory

from conftest import moderation_body


class TestNormalizeCategoryName:
    """Tests for provider category name normalisation."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("self-harm", "self_harm"),
            ("self-harm/intent", "self_harm_intent"),
            ("hate/threatening", "hate_threatening"),
            ("Violence", "violence"),
        ],
    )
    def test_normalize(self, name, expected):
        assert normalize_category_name(name) == expected


class TestMapShape:
    """Tests for the categories / category_scores shape."""

    def test_clean_response(self):
        """Nothing flagged yields no flagged categories."""
        moderation = parse_moderation_response(moderation_body())

        assert moderation.id == "modr-123"
        assert moderation.model == "omni-moderation-latest"
        assert moderation.flagged is False
        assert moderation.flagged_categories == {}
        assert moderation.max_flagged_score == 0.0

    def test_sub_categories_fold(self):
        """A category is flagged if any sub-category is; score is the flagged maximum."""
        body = moderation_body(
            {"self-harm": 0.3, "self-harm/intent": 0.7, "violence/graphic": 0.5},
        )
        moderation = parse_moderation_response(body)
        flagged = moderation.flagged_categories

        assert set(flagged) == {HarmCategory.SELF_HARM, HarmCategory.VIOLENCE}
        assert flagged[HarmCategory.SELF_HARM].score == 0.7
        assert flagged[HarmCategory.VIOLENCE].score == 0.5
        assert moderation.max_flagged_score == 0.7

    def test_unflagged_sub_category_does_not_raise_score(self):
        """Only flagged sub-categories contribute to a flagged category's score."""
        body = moderation_body(
            {"hate": 0.4, "hate/threatening": 0.9},
            flagged=["hate"],
        )
        moderation = parse_moderation_response(body)

        assert moderation.flagged_categories[HarmCategory.HATE].score == 0.4

    def test_unknown_categories_ignored(self):
        body = moderation_body({"illicit": 0.99})
        moderation = parse_moderation_response(body)

        assert moderation.flagged_categories == {}

    def test_flagged_categories_in_taxonomy_order(self):
        body = moderation_body({"violence": 0.9, "hate": 0.5})
        moderation = parse_moderation_response(body)

        assert list(moderation.flagged_categories) == [HarmCategory.HATE, HarmCategory.VIOLENCE]


class TestLegacyShape:
    """Tests for the legacy flat-field shape."""

    def test_legacy_fields(self):
        body = {
            "id": "modr-legacy",
            "model": "text-moderation-stable",
            "results": [
                {
                    "flagged": True,
                    "hate": False,
                    "hate_score": 0.02,
                    "self_harm": True,
                    "self_harm_score": 0.66,
                    "sexual": False,
                    "sexual_score": 0.01,
                    "violence": True,
                    "violence_score": 0.41,
                }
            ],
        }
        moderation = parse_moderation_response(body)
        flagged = moderation.flagged_categories

        assert set(flagged) == {HarmCategory.SELF_HARM, HarmCategory.VIOLENCE}
        assert flagged[HarmCategory.SELF_HARM].score == 0.66

    def test_maps_preferred_over_legacy_fields(self):
        """Legacy fields are ignored when the maps are present."""
        body = moderation_body({"hate": 0.8})
        body["results"][0]["violence"] = True
        body["results"][0]["violence_score"] = 0.99

        moderation = parse_moderation_response(body)

        assert set(moderation.flagged_categories) == {HarmCategory.HATE}


class TestMalformedResponses:
    """Tests for responses that cannot be parsed."""

    def test_non_dict_body(self):
        with pytest.raises(ModerationResponseError):
            parse_moderation_response(["not", "a", "dict"])

    def test_empty_results(self):
        with pytest.raises(ModerationResponseError):
            parse_moderation_response({"id": "x", "model": "m", "results": []})

    def test_invalid_results_type(self):
        with pytest.raises(ModerationResponseError):
            parse_moderation_response({"results": "oops"})

    def test_invalid_score_type(self):
        body = moderation_body()
        body["results"][0]["category_scores"]["hate"] = "high"

        with pytest.raises(ModerationResponseError):
            parse_moderation_response(body)

    @pytest.mark.parametrize("score", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_score(self, score):
        body = moderation_body({"violence": 0.9})
        body["results"][0]["category_scores"]["violence"] = score

        with pytest.raises(ModerationResponseError):
            parse_moderation_response(body)

    def test_non_finite_legacy_score(self):
        body = {"results": [{"flagged": True, "violence": True, "violence_score": float("nan")}]}

        with pytest.raises(ModerationResponseError):
            parse_moderation_response(body)
