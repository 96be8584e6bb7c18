"""Tests for response normalization."""
import pytest

from sollar.shared.models import Question, Response
from sollar.services.analytics_service.config import LikertScale
from sollar.services.analytics_service.normalizer import (
    normalize_score,
    parse_raw_value,
    score_response,
)


def likert(risk_inverted=True):
    return Question(id="q1", category="demands_and_pace", type="likert_scale", risk_inverted=risk_inverted)


def answer(raw):
    return Response(id="r1", assessment_id="a1", question_id="q1", anonymous_id="anon_1", raw_value=raw)


class TestParseRawValue:
    """Tests for raw value parsing."""

    @pytest.mark.parametrize("raw,expected", [
        ("4", 4.0),
        (" 3 ", 3.0),
        ("2.5", 2.5),
        (5, 5.0),
    ])
    def test_numeric_values(self, raw, expected):
        assert parse_raw_value(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   ", "abc", "nan", "inf", True])
    def test_unparseable_values(self, raw):
        assert parse_raw_value(raw) is None


class TestNormalizeScore:
    """Tests for polarity normalization."""

    def test_risk_inverted_keeps_raw(self):
        assert normalize_score(4, risk_inverted=True) == 4

    def test_positive_question_flipped(self):
        assert normalize_score(4, risk_inverted=False) == 2
        assert normalize_score(5, risk_inverted=False) == 1
        assert normalize_score(1, risk_inverted=False) == 5

    def test_polarity_pair_sums_to_six(self):
        for raw in range(1, 6):
            assert normalize_score(raw, True) + normalize_score(raw, False) == 6


class TestScoreResponse:
    """Tests for scoring one stored response."""

    def test_scores_in_range_likert(self):
        assert score_response(answer("4"), likert()) == 4.0

    def test_flips_positive_question(self):
        assert score_response(answer("4"), likert(risk_inverted=False)) == 2.0

    @pytest.mark.parametrize("raw", ["0", "6", "-1", "10"])
    def test_out_of_range_not_clamped(self, raw):
        assert score_response(answer(raw), likert()) is None

    def test_unparseable_not_scorable(self):
        assert score_response(answer("muito"), likert()) is None

    def test_text_question_not_scorable(self):
        question = Question(id="q1", category="suggestions", type="text")
        assert score_response(answer("3"), question) is None

    def test_unknown_type_not_scorable(self):
        question = Question(id="q1", category="anchors", type="slider")
        assert score_response(answer("3"), question) is None

    def test_unknown_question_not_scorable(self):
        assert score_response(answer("3"), None) is None

    def test_custom_scale(self):
        scale = LikertScale(minimum=1, maximum=7)
        assert score_response(answer("7"), likert(risk_inverted=False), scale) == 1.0
