"""Disclosure-safe analytics results.

Builders here are the only place a GroupOutcome becomes caller-visible
numbers. Suppressed and no-data groups always carry zero means and
counts; only department headcount survives suppression.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sollar.shared.models import Department, RiskLevel
from .aggregator import DistributionEntry, GroupSummary
from .k_anonymity import Computed, ExportGate, GroupOutcome, Suppressed, SuppressionStatus


class ResultState(Enum):
    """What a caller is looking at."""
    AVAILABLE = "available"
    SUPPRESSED = "suppressed"
    NO_DATA = "no_data"


def _state(is_suppressed: bool, has_data: bool) -> ResultState:
    if is_suppressed:
        return ResultState.SUPPRESSED
    if not has_data:
        return ResultState.NO_DATA
    return ResultState.AVAILABLE


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _status_dict(status: Optional[SuppressionStatus]) -> Optional[Dict[str, Any]]:
    return status.to_dict() if status is not None else None


@dataclass(frozen=True)
class CategoryResult:
    """Disclosed figures for one risk category."""
    category: str
    label: str
    average_score: float
    question_count: int
    response_count: int
    participant_count: int
    risk_level: RiskLevel
    is_suppressed: bool
    has_data: bool
    suppression_info: Optional[SuppressionStatus] = None

    @property
    def state(self) -> ResultState:
        return _state(self.is_suppressed, self.has_data)

    @classmethod
    def from_outcome(cls, summary: GroupSummary, outcome: GroupOutcome, label: str) -> "CategoryResult":
        if isinstance(outcome, Computed):
            return cls(
                category=summary.key,
                label=label,
                average_score=summary.mean,
                question_count=summary.question_count,
                response_count=summary.score_count,
                participant_count=summary.participant_count,
                risk_level=summary.risk_level,
                is_suppressed=False,
                has_data=summary.has_data,
            )
        return cls(
            category=summary.key,
            label=label,
            average_score=0.0,
            question_count=0,
            response_count=0,
            participant_count=0,
            risk_level=RiskLevel.LOW,
            is_suppressed=isinstance(outcome, Suppressed),
            has_data=False,
            suppression_info=outcome.status if isinstance(outcome, Suppressed) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "label": self.label,
            "average_score": self.average_score,
            "question_count": self.question_count,
            "response_count": self.response_count,
            "participant_count": self.participant_count,
            "risk_level": self.risk_level.value,
            "is_suppressed": self.is_suppressed,
            "has_data": self.has_data,
            "state": self.state.value,
            "suppression_info": _status_dict(self.suppression_info),
        }


@dataclass(frozen=True)
class AssessmentAnalytics:
    """Dashboard overview of one assessment."""
    assessment_id: str
    total_participants: int
    total_questions: int
    total_responses: int
    completion_rate: float
    per_category: List[CategoryResult]
    last_response_date: Optional[datetime]
    is_suppressed: bool
    suppression_info: Optional[SuppressionStatus] = None

    @property
    def state(self) -> ResultState:
        return _state(self.is_suppressed, self.total_participants > 0)

    def category(self, key: str) -> Optional[CategoryResult]:
        for result in self.per_category:
            if result.category == key:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assessment_id": self.assessment_id,
            "total_participants": self.total_participants,
            "total_questions": self.total_questions,
            "total_responses": self.total_responses,
            "completion_rate": self.completion_rate,
            "per_category": [c.to_dict() for c in self.per_category],
            "last_response_date": _iso(self.last_response_date),
            "is_suppressed": self.is_suppressed,
            "state": self.state.value,
            "suppression_info": _status_dict(self.suppression_info),
        }


@dataclass(frozen=True)
class QuestionDistribution:
    """Answer histogram of one question."""
    question_id: str
    question_text: str
    question_type: str
    question_category: str
    distribution: List[DistributionEntry]
    is_suppressed: bool
    total_responses: int
    suppression_info: Optional[SuppressionStatus] = None

    @property
    def state(self) -> ResultState:
        return _state(self.is_suppressed, self.total_responses > 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question_id": self.question_id,
            "question_text": self.question_text,
            "question_type": self.question_type,
            "question_category": self.question_category,
            "distribution": [
                {"value": e.value, "count": e.count, "percentage": e.percentage}
                for e in self.distribution
            ],
            "is_suppressed": self.is_suppressed,
            "total_responses": self.total_responses,
            "state": self.state.value,
            "suppression_info": _status_dict(self.suppression_info),
        }


@dataclass(frozen=True)
class DepartmentResult:
    """Disclosed figures for one department.

    employee_count is headcount metadata and stays visible when suppressed.
    """
    department_id: str
    name: str
    average_score: float
    risk_level: RiskLevel
    participant_count: int
    response_count: int
    employee_count: int
    is_suppressed: bool
    has_data: bool
    suppression_info: Optional[SuppressionStatus] = None

    @property
    def state(self) -> ResultState:
        return _state(self.is_suppressed, self.has_data)

    @classmethod
    def from_outcome(
        cls,
        department: Department,
        summary: GroupSummary,
        outcome: GroupOutcome,
    ) -> "DepartmentResult":
        if isinstance(outcome, Computed):
            return cls(
                department_id=department.id,
                name=department.name,
                average_score=summary.mean,
                risk_level=summary.risk_level,
                participant_count=summary.participant_count,
                response_count=summary.response_count,
                employee_count=department.employee_count,
                is_suppressed=False,
                has_data=summary.has_data,
            )
        return cls(
            department_id=department.id,
            name=department.name,
            average_score=0.0,
            risk_level=RiskLevel.LOW,
            participant_count=0,
            response_count=0,
            employee_count=department.employee_count,
            is_suppressed=isinstance(outcome, Suppressed),
            has_data=False,
            suppression_info=outcome.status if isinstance(outcome, Suppressed) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.department_id,
            "name": self.name,
            "average_score": self.average_score,
            "risk_level": self.risk_level.value,
            "participant_count": self.participant_count,
            "response_count": self.response_count,
            "employee_count": self.employee_count,
            "is_suppressed": self.is_suppressed,
            "has_data": self.has_data,
            "state": self.state.value,
            "suppression_info": _status_dict(self.suppression_info),
        }


@dataclass(frozen=True)
class RiskAlertSummary:
    """Outcome of a risk threshold check.

    categories lists every category that crossed the alert threshold;
    alerts_sent counts the notifications the publisher accepted.
    """
    alerts_sent: int = 0
    categories: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"alerts_sent": self.alerts_sent, "categories": list(self.categories)}


@dataclass(frozen=True)
class DetailedResponseRow:
    """One literal answer, as released by the detailed export."""
    response_id: str
    anonymous_id: str
    question_text: str
    category: str
    question_type: str
    value: str
    created_at: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response_id": self.response_id,
            "anonymous_id": self.anonymous_id,
            "question_text": self.question_text,
            "category": self.category,
            "question_type": self.question_type,
            "value": self.value,
            "created_at": _iso(self.created_at),
        }


@dataclass(frozen=True)
class ReportCategory:
    """Category line of a report, labelled for presentation."""
    category: str
    category_name: str
    avg_score: float
    risk_level: RiskLevel
    risk_label: str
    response_count: int
    question_count: int
    is_suppressed: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "category_name": self.category_name,
            "avg_score": self.avg_score,
            "risk_level": self.risk_level.value,
            "risk_label": self.risk_label,
            "response_count": self.response_count,
            "question_count": self.question_count,
            "is_suppressed": self.is_suppressed,
        }


@dataclass(frozen=True)
class ReportData:
    """Aggregated content for PDF/CSV/XLSX report generators."""
    assessment_id: str
    assessment_title: str
    organization_id: str
    total_participants: int
    total_questions: int
    completion_rate: float
    last_response_date: Optional[datetime]
    category_scores: List[ReportCategory]
    generated_at: datetime
    responses: Optional[List[DetailedResponseRow]] = None
    responses_blocked: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assessment_id": self.assessment_id,
            "assessment_title": self.assessment_title,
            "organization_id": self.organization_id,
            "total_participants": self.total_participants,
            "total_questions": self.total_questions,
            "completion_rate": self.completion_rate,
            "last_response_date": _iso(self.last_response_date),
            "category_scores": [c.to_dict() for c in self.category_scores],
            "generated_at": self.generated_at.isoformat() + "Z",
            "responses": (
                [r.to_dict() for r in self.responses] if self.responses is not None else None
            ),
            "responses_blocked": self.responses_blocked,
        }


@dataclass(frozen=True)
class ExportResult:
    """Result of an export path.

    status READY carries data; BLOCKED means the anonymity gate refused
    and is distinct from NO_DATA, where nothing was collected yet.
    """
    status: ExportGate
    data: Any = None
    suppression_note: Optional[str] = None
    suppression_info: Optional[SuppressionStatus] = None

    @property
    def success(self) -> bool:
        return self.status is ExportGate.READY

    @property
    def anonymity_protected(self) -> bool:
        return self.status is ExportGate.BLOCKED

    def to_dict(self) -> Dict[str, Any]:
        if isinstance(self.data, list):
            data = [row.to_dict() for row in self.data]
        elif self.data is not None:
            data = self.data.to_dict()
        else:
            data = None
        return {
            "success": self.success,
            "status": self.status.value,
            "anonymity_protected": self.anonymity_protected,
            "suppression_note": self.suppression_note,
            "suppression_info": _status_dict(self.suppression_info),
            "data": data,
        }
