"""Survey domain models for psychosocial-risk assessments.

Questions and responses are read-only inputs to the analytics pipeline.
Responses are keyed by an opaque anonymous_id that is stable within one
assessment and never linked to a real identity by the analytics core.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class RiskCategory(Enum):
    """NR-1 thematic blocks of the Sollar questionnaire, in canonical order."""
    DEMANDS_AND_PACE = "demands_and_pace"
    AUTONOMY_CLARITY_CHANGE = "autonomy_clarity_change"
    LEADERSHIP_RECOGNITION = "leadership_recognition"
    RELATIONSHIPS_COMMUNICATION = "relationships_communication"
    WORK_LIFE_HEALTH = "work_life_health"
    VIOLENCE_HARASSMENT = "violence_harassment"
    ANCHORS = "anchors"              # Satisfaction, health, retention
    SUGGESTIONS = "suggestions"      # Free-text, qualitative only


class QuestionType(Enum):
    """Answer formats a question can take."""
    LIKERT_SCALE = "likert_scale"    # 1-5, the only scorable type
    TEXT = "text"
    MULTIPLE_CHOICE = "multiple_choice"
    YES_NO = "yes_no"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["QuestionType"]:
        """Map a stored type string to a QuestionType, None if unknown."""
        try:
            return cls(value)
        except ValueError:
            return None


class RiskLevel(Enum):
    """Risk classification of an aggregated, normalized score."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AlertLevel(Enum):
    """Severity attached to risk threshold notifications."""
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Question:
    """One survey item.

    risk_inverted=True means a high raw answer already signals high risk;
    False means the answer must be flipped before aggregation. Immutable for
    the lifetime of any assessment that references it.
    """
    id: str
    category: str
    type: str
    risk_inverted: bool = True
    text: str = ""

    @property
    def question_type(self) -> Optional[QuestionType]:
        return QuestionType.parse(self.type)

    @property
    def is_scorable(self) -> bool:
        return self.question_type is QuestionType.LIKERT_SCALE


@dataclass(frozen=True)
class Response:
    """One respondent's answer to one question within one assessment.

    member_id links the respondent to an organizational member for
    department aggregation only. It never appears in analytics output.
    """
    id: str
    assessment_id: str
    question_id: str
    anonymous_id: str
    raw_value: Optional[str]
    created_at: Optional[datetime] = None
    member_id: Optional[str] = None


@dataclass(frozen=True)
class Assessment:
    """A survey run for one organization, with its questionnaire questions."""
    id: str
    organization_id: str
    title: str = ""
    questions: Tuple[Question, ...] = field(default_factory=tuple)

    def question_by_id(self, question_id: str) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None


@dataclass(frozen=True)
class Department:
    """Organizational department with its employee headcount."""
    id: str
    name: str
    employee_count: int = 0


@dataclass(frozen=True)
class DepartmentMembership:
    """Member to department relation resolved by the retrieval layer."""
    member_id: str
    department_id: str
