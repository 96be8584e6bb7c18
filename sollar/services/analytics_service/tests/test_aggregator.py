"""Tests for score aggregation."""
from datetime import datetime

import pytest

from sollar.shared.models import Department, Question, Response, RiskLevel
from sollar.services.analytics_service.aggregator import (
    CategoryAggregator,
    DepartmentAggregator,
    ParticipationAccumulator,
    QuestionDistributionAggregator,
    completion_rate,
)
from sollar.services.analytics_service.config import (
    CategoryDefinition,
    DEFAULT_CATEGORIES,
)

DEMANDS = Question(id="q_demands", category="demands_and_pace", type="likert_scale", risk_inverted=True)
LEADERSHIP = Question(id="q_leader", category="leadership_recognition", type="likert_scale", risk_inverted=False)
SUGGESTION = Question(id="q_text", category="suggestions", type="text")


def response(question, raw, anon, rid=None, created_at=None):
    return Response(
        id=rid or f"r_{question.id}_{anon}",
        assessment_id="a1",
        question_id=question.id,
        anonymous_id=anon,
        raw_value=raw,
        created_at=created_at,
    )


@pytest.fixture
def pairs():
    return [
        (response(DEMANDS, "5", "anon_1"), DEMANDS),
        (response(DEMANDS, "4", "anon_2"), DEMANDS),
        (response(DEMANDS, "x", "anon_3"), DEMANDS),
        (response(LEADERSHIP, "4", "anon_1"), LEADERSHIP),
        (response(LEADERSHIP, "5", "anon_2"), LEADERSHIP),
        (response(SUGGESTION, "Mais pausas", "anon_1"), SUGGESTION),
    ]


class TestCategoryAggregator:
    """Tests for per-category folding."""

    def test_every_registered_category_present(self):
        aggregator = CategoryAggregator(DEFAULT_CATEGORIES)

        results = aggregator.results()

        assert [r.key for r in results] == list(DEFAULT_CATEGORIES.keys)
        assert all(not r.has_data and r.mean == 0 for r in results)
        assert all(r.risk_level is RiskLevel.LOW for r in results)

    def test_extended_registry_included(self):
        registry = DEFAULT_CATEGORIES.with_category(CategoryDefinition("ergonomics", "Ergonomia"))

        results = CategoryAggregator(registry).results()

        assert results[-1].key == "ergonomics"

    def test_means_use_normalized_scores(self, pairs):
        aggregator = CategoryAggregator(DEFAULT_CATEGORIES)
        aggregator.add_all(pairs)
        by_key = {r.key: r for r in aggregator.results()}

        demands = by_key["demands_and_pace"]
        assert demands.mean == 4.5
        assert demands.score_count == 2
        assert demands.response_count == 3
        assert demands.participant_count == 3
        assert demands.question_count == 1
        assert demands.risk_level is RiskLevel.HIGH

        leadership = by_key["leadership_recognition"]
        assert leadership.mean == 1.5
        assert leadership.risk_level is RiskLevel.LOW

    def test_text_category_has_no_data(self, pairs):
        aggregator = CategoryAggregator(DEFAULT_CATEGORIES)
        aggregator.add_all(pairs)
        suggestions = {r.key: r for r in aggregator.results()}["suggestions"]

        assert suggestions.has_data is False
        assert suggestions.response_count == 1
        assert suggestions.question_count == 1

    def test_unknown_category_and_question_skipped(self):
        aggregator = CategoryAggregator(DEFAULT_CATEGORIES)
        stray = Question(id="q_x", category="not_registered", type="likert_scale")

        aggregator.add(response(stray, "5", "anon_1"), stray)
        aggregator.add(response(DEMANDS, "5", "anon_1"), None)

        assert aggregator.skipped == 2
        assert all(not r.has_data for r in aggregator.results())

    def test_idempotent(self, pairs):
        first = CategoryAggregator(DEFAULT_CATEGORIES)
        first.add_all(pairs)
        second = CategoryAggregator(DEFAULT_CATEGORIES)
        second.add_all(pairs)

        assert first.results() == second.results()

    def test_fold_order_independent(self, pairs):
        forward = CategoryAggregator(DEFAULT_CATEGORIES)
        forward.add_all(pairs)
        backward = CategoryAggregator(DEFAULT_CATEGORIES)
        backward.add_all(reversed(pairs))

        assert forward.results() == backward.results()

    def test_merge_matches_single_fold(self, pairs):
        whole = CategoryAggregator(DEFAULT_CATEGORIES)
        whole.add_all(pairs)
        left = CategoryAggregator(DEFAULT_CATEGORIES)
        left.add_all(pairs[:3])
        right = CategoryAggregator(DEFAULT_CATEGORIES)
        right.add_all(pairs[3:])

        assert left.merge(right).results() == whole.results()
        assert right.merge(left).results() == whole.results()

    def test_mean_rounded_to_two_decimals(self):
        aggregator = CategoryAggregator(DEFAULT_CATEGORIES)
        for anon, raw in (("a", "1"), ("b", "1"), ("c", "2")):
            aggregator.add(response(DEMANDS, raw, anon), DEMANDS)

        demands = aggregator.results()[0]
        assert demands.mean == 1.33

    @pytest.mark.parametrize("upper, lower, expected", [
        ("4", "3", RiskLevel.MEDIUM),
        ("3", "2", RiskLevel.LOW),
    ])
    def test_band_uses_unrounded_mean(self, upper, lower, expected):
        """100 upper and 101 lower answers average x.4975, displayed as x.5."""
        aggregator = CategoryAggregator(DEFAULT_CATEGORIES)
        for i in range(201):
            aggregator.add(response(DEMANDS, upper if i < 100 else lower, f"anon_{i}"), DEMANDS)

        demands = aggregator.results()[0]
        assert demands.mean == float(int(upper) - 0.5)
        assert demands.risk_level is expected


class TestDepartmentAggregator:
    """Tests for per-department folding."""

    @pytest.fixture
    def departments(self):
        return [
            Department(id="d_ops", name="Operações", employee_count=8),
            Department(id="d_hr", name="RH", employee_count=3),
        ]

    def test_scores_normalized(self, departments):
        aggregator = DepartmentAggregator(departments)

        aggregator.add("d_ops", response(LEADERSHIP, "5", "anon_1"), LEADERSHIP)
        aggregator.add("d_ops", response(DEMANDS, "5", "anon_1"), DEMANDS)

        ops = dict((d.id, s) for d, s in aggregator.results())["d_ops"]
        assert ops.mean == 3.0
        assert ops.participant_count == 1
        assert ops.response_count == 2

    def test_unassigned_skipped(self, departments):
        aggregator = DepartmentAggregator(departments)

        aggregator.add(None, response(DEMANDS, "5", "anon_1"), DEMANDS)
        aggregator.add("d_unknown", response(DEMANDS, "5", "anon_2"), DEMANDS)

        assert aggregator.unassigned == 2
        assert all(not s.has_data for _, s in aggregator.results())

    def test_every_department_listed(self, departments):
        results = DepartmentAggregator(departments).results()

        assert [d.id for d, _ in results] == ["d_ops", "d_hr"]

    def test_merge(self, departments):
        left = DepartmentAggregator(departments)
        left.add("d_ops", response(DEMANDS, "5", "anon_1"), DEMANDS)
        right = DepartmentAggregator(departments)
        right.add("d_ops", response(DEMANDS, "3", "anon_2"), DEMANDS)

        ops = dict((d.id, s) for d, s in left.merge(right).results())["d_ops"]
        assert ops.mean == 4.0
        assert ops.participant_count == 2


class TestQuestionDistributionAggregator:
    """Tests for literal answer distributions."""

    def test_counts_and_percentages(self):
        counter = QuestionDistributionAggregator()
        for raw in ["1", "1", "2", "3", "3", "3"]:
            counter.add(raw)

        distribution = counter.distribution()

        assert [(e.value, e.count, e.percentage) for e in distribution] == [
            ("1", 2, 33.33),
            ("2", 1, 16.67),
            ("3", 3, 50.0),
        ]
        assert counter.total == 6

    def test_blank_answers_ignored(self):
        counter = QuestionDistributionAggregator()
        for raw in ["Sim", "", "   ", None, "Não"]:
            counter.add(raw)

        assert counter.total == 2

    def test_numeric_values_before_text(self):
        counter = QuestionDistributionAggregator()
        for raw in ["Talvez", "10", "2", "Não"]:
            counter.add(raw)

        assert [e.value for e in counter.distribution()] == ["2", "10", "Não", "Talvez"]

    def test_empty_distribution(self):
        assert QuestionDistributionAggregator().distribution() == []

    def test_merge(self):
        left = QuestionDistributionAggregator()
        left.add("1")
        right = QuestionDistributionAggregator()
        right.add("1")
        right.add("2")

        merged = left.merge(right)

        assert merged.total == 3
        assert [(e.value, e.count) for e in merged.distribution()] == [("1", 2), ("2", 1)]


class TestParticipation:
    """Tests for assessment-wide participation figures."""

    def test_distinct_participants_and_latest_response(self):
        participation = ParticipationAccumulator()
        participation.add(response(DEMANDS, "3", "anon_1", created_at=datetime(2025, 3, 1)))
        participation.add(response(LEADERSHIP, "3", "anon_1", created_at=datetime(2025, 3, 4)))
        participation.add(response(DEMANDS, "3", "anon_2"))

        assert participation.participant_count == 2
        assert participation.response_count == 3
        assert participation.last_response_at == datetime(2025, 3, 4)

    def test_completion_rate(self):
        assert completion_rate(45, 5, 10) == 90.0
        assert completion_rate(10, 3, 7) == 47.62

    def test_completion_rate_without_denominator(self):
        assert completion_rate(0, 0, 10) == 0.0
        assert completion_rate(5, 5, 0) == 0.0
