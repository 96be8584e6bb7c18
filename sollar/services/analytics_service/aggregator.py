"""Folding of normalized scores into per-group aggregates.

One module serves the dashboard, the report and the export paths so the
normalization and grouping rules cannot drift between them. Accumulators
are associative and commutative: pages can be folded in any order, or in
separate accumulators that are merged afterwards, with identical results.
"""
from dataclasses import dataclass, field
from datetime import datetime
from fractions import Fraction
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sollar.shared.models import Department, Question, Response, RiskLevel
from .config import CategoryRegistry, LikertScale, RiskBands
from .normalizer import DEFAULT_SCALE, parse_raw_value, score_response


def round_score(value: float) -> float:
    return round(value, 2)


@dataclass(frozen=True)
class GroupSummary:
    """Aggregated, not yet anonymity-checked, figures for one group.

    Attributes:
        key: Category key, department id or question id
        mean: Mean normalized score rounded to 2 decimals (0 if no data)
        score_count: Scorable responses that entered the mean
        response_count: All responses attributed to the group
        participant_count: Distinct anonymous participants
        question_count: Distinct questions with at least one response
        has_data: False when no scorable response exists
        risk_level: Band of the unrounded mean, LOW when there is no data
    """
    key: str
    mean: float
    score_count: int
    response_count: int
    participant_count: int
    question_count: int
    has_data: bool
    risk_level: RiskLevel


@dataclass
class GroupAccumulator:
    """Running fold state for one group."""
    score_sum: Fraction = Fraction(0)
    score_count: int = 0
    response_count: int = 0
    participants: Set[str] = field(default_factory=set)
    question_ids: Set[str] = field(default_factory=set)

    def add(self, response: Response, score: Optional[float]) -> None:
        self.response_count += 1
        self.participants.add(response.anonymous_id)
        self.question_ids.add(response.question_id)
        if score is not None:
            self.score_sum += Fraction(score)
            self.score_count += 1

    def merge(self, other: "GroupAccumulator") -> "GroupAccumulator":
        return GroupAccumulator(
            score_sum=self.score_sum + other.score_sum,
            score_count=self.score_count + other.score_count,
            response_count=self.response_count + other.response_count,
            participants=self.participants | other.participants,
            question_ids=self.question_ids | other.question_ids,
        )

    @property
    def mean(self) -> float:
        if self.score_count == 0:
            return 0.0
        return float(self.score_sum / self.score_count)

    def summarize(self, key: str, bands: RiskBands) -> GroupSummary:
        has_data = self.score_count > 0
        return GroupSummary(
            key=key,
            mean=round_score(self.mean),
            score_count=self.score_count,
            response_count=self.response_count,
            participant_count=len(self.participants),
            question_count=len(self.question_ids),
            has_data=has_data,
            risk_level=bands.classify(self.mean) if has_data else RiskLevel.LOW,
        )


def _merge_groups(
    left: Dict[str, GroupAccumulator],
    right: Dict[str, GroupAccumulator],
) -> Dict[str, GroupAccumulator]:
    merged = dict(left)
    for key, acc in right.items():
        merged[key] = merged[key].merge(acc) if key in merged else acc
    return merged


class CategoryAggregator:
    """Per-category fold, always covering every registered category."""

    def __init__(
        self,
        registry: CategoryRegistry,
        bands: Optional[RiskBands] = None,
        scale: LikertScale = DEFAULT_SCALE,
    ):
        self.registry = registry
        self.bands = bands or RiskBands()
        self.scale = scale
        self._groups: Dict[str, GroupAccumulator] = {
            key: GroupAccumulator() for key in registry.keys
        }
        self.skipped = 0

    def add(self, response: Response, question: Optional[Question]) -> None:
        """Fold one response. Unknown questions and categories are skipped."""
        if question is None or question.category not in self._groups:
            self.skipped += 1
            return
        score = score_response(response, question, self.scale)
        self._groups[question.category].add(response, score)

    def add_all(self, pairs: Iterable[Tuple[Response, Optional[Question]]]) -> None:
        for response, question in pairs:
            self.add(response, question)

    def merge(self, other: "CategoryAggregator") -> "CategoryAggregator":
        merged = CategoryAggregator(self.registry, self.bands, self.scale)
        merged._groups = _merge_groups(self._groups, other._groups)
        merged.skipped = self.skipped + other.skipped
        return merged

    def results(self) -> List[GroupSummary]:
        """One summary per registered category, in registry order."""
        return [
            self._groups[key].summarize(key, self.bands)
            for key in self.registry.keys
        ]


class DepartmentAggregator:
    """Per-department fold.

    Receives the department id already resolved by the retrieval layer;
    responses without a known department are skipped.
    """

    def __init__(
        self,
        departments: Iterable[Department],
        bands: Optional[RiskBands] = None,
        scale: LikertScale = DEFAULT_SCALE,
    ):
        self.departments = {d.id: d for d in departments}
        self.bands = bands or RiskBands()
        self.scale = scale
        self._groups: Dict[str, GroupAccumulator] = {
            dept_id: GroupAccumulator() for dept_id in self.departments
        }
        self.unassigned = 0

    def add(
        self,
        department_id: Optional[str],
        response: Response,
        question: Optional[Question],
    ) -> None:
        if department_id is None or department_id not in self._groups:
            self.unassigned += 1
            return
        score = score_response(response, question, self.scale)
        self._groups[department_id].add(response, score)

    def merge(self, other: "DepartmentAggregator") -> "DepartmentAggregator":
        merged = DepartmentAggregator(self.departments.values(), self.bands, self.scale)
        merged._groups = _merge_groups(self._groups, other._groups)
        merged.unassigned = self.unassigned + other.unassigned
        return merged

    def results(self) -> List[Tuple[Department, GroupSummary]]:
        return [
            (dept, self._groups[dept_id].summarize(dept_id, self.bands))
            for dept_id, dept in self.departments.items()
        ]


@dataclass(frozen=True)
class DistributionEntry:
    """Share of one literal answer value."""
    value: str
    count: int
    percentage: float


def _distribution_order(value: str) -> Tuple[int, float, str]:
    number = parse_raw_value(value)
    if number is None:
        return (1, 0.0, value)
    return (0, number, value)


class QuestionDistributionAggregator:
    """Counts literal answer values for one question (not normalized)."""

    def __init__(self):
        self._counts: Dict[str, int] = {}
        self.total = 0

    def add(self, raw_value: Optional[str]) -> None:
        """Count a value. Blank and missing answers are ignored."""
        if raw_value is None:
            return
        value = str(raw_value)
        if not value.strip():
            return
        self._counts[value] = self._counts.get(value, 0) + 1
        self.total += 1

    def merge(self, other: "QuestionDistributionAggregator") -> "QuestionDistributionAggregator":
        merged = QuestionDistributionAggregator()
        for source in (self, other):
            for value, count in source._counts.items():
                merged._counts[value] = merged._counts.get(value, 0) + count
            merged.total += source.total
        return merged

    def distribution(self) -> List[DistributionEntry]:
        """Entries ordered numerically, then text values alphabetically."""
        if self.total == 0:
            return []
        return [
            DistributionEntry(
                value=value,
                count=count,
                percentage=round_score(count / self.total * 100),
            )
            for value, count in sorted(self._counts.items(), key=lambda kv: _distribution_order(kv[0]))
        ]


class ParticipationAccumulator:
    """Assessment-wide participation figures."""

    def __init__(self):
        self.participants: Set[str] = set()
        self.response_count = 0
        self.last_response_at: Optional[datetime] = None

    def add(self, response: Response) -> None:
        self.participants.add(response.anonymous_id)
        self.response_count += 1
        if response.created_at is not None and (
            self.last_response_at is None or response.created_at > self.last_response_at
        ):
            self.last_response_at = response.created_at

    @property
    def participant_count(self) -> int:
        return len(self.participants)


def completion_rate(response_count: int, participant_count: int, question_count: int) -> float:
    """Answered share of all (participant, question) pairs, in percent."""
    expected = participant_count * question_count
    if expected == 0:
        return 0.0
    return round_score(response_count / expected * 100)
