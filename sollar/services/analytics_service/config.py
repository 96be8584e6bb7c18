"""Analytics configuration: anonymity thresholds, categories and risk bands.

Threshold values follow the Sollar anonymity policy: no analysis is shown
for fewer than 5 participants, and raw per-response exports need at
least 10.
"""
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, Optional, Tuple

from sollar.shared.database import DEFAULT_PAGE_SIZE
from sollar.shared.models import AlertLevel, RiskCategory, RiskLevel


class Granularity(Enum):
    """Level at which an aggregate is disclosed."""
    ASSESSMENT = "assessment"    # Distinct participants in the assessment
    CATEGORY = "category"        # Scorable responses in the category
    QUESTION = "question"        # Non-blank responses to the question
    DEPARTMENT = "department"    # Employees in the department
    DETAILED = "detailed"        # Participants, for raw per-response export


@dataclass(frozen=True)
class AnonymityThresholds:
    """Minimum qualifying counts before a result may be disclosed."""
    assessment_minimum: int = 5
    category_minimum: int = 5
    department_minimum: int = 5
    question_minimum: int = 3
    detailed_responses: int = 10

    def __post_init__(self):
        for name, value in self.as_dict().items():
            if value < 1:
                raise ValueError(f"{name} must be at least 1, got {value}")
        strictest_display = max(
            self.assessment_minimum,
            self.category_minimum,
            self.department_minimum,
            self.question_minimum,
        )
        if self.detailed_responses < strictest_display:
            raise ValueError(
                f"detailed_responses ({self.detailed_responses}) must be at least "
                f"as strict as every display threshold ({strictest_display})"
            )

    def for_granularity(self, granularity: Granularity) -> int:
        return {
            Granularity.ASSESSMENT: self.assessment_minimum,
            Granularity.CATEGORY: self.category_minimum,
            Granularity.QUESTION: self.question_minimum,
            Granularity.DEPARTMENT: self.department_minimum,
            Granularity.DETAILED: self.detailed_responses,
        }[granularity]

    def as_dict(self) -> Dict[str, int]:
        return {
            "assessment_minimum": self.assessment_minimum,
            "category_minimum": self.category_minimum,
            "department_minimum": self.department_minimum,
            "question_minimum": self.question_minimum,
            "detailed_responses": self.detailed_responses,
        }

    @classmethod
    def from_env(cls) -> "AnonymityThresholds":
        """Read overrides from ANALYTICS_MIN_* environment variables."""
        defaults = cls()
        return cls(
            assessment_minimum=int(os.getenv("ANALYTICS_MIN_ASSESSMENT", defaults.assessment_minimum)),
            category_minimum=int(os.getenv("ANALYTICS_MIN_CATEGORY", defaults.category_minimum)),
            department_minimum=int(os.getenv("ANALYTICS_MIN_DEPARTMENT", defaults.department_minimum)),
            question_minimum=int(os.getenv("ANALYTICS_MIN_QUESTION", defaults.question_minimum)),
            detailed_responses=int(os.getenv("ANALYTICS_MIN_DETAILED", defaults.detailed_responses)),
        )


# User-facing suppression notes (pt-BR, shown verbatim by the dashboard)
SUPPRESSION_MESSAGES: Dict[Granularity, str] = {
    Granularity.ASSESSMENT: "Dados suprimidos para proteger o anonimato dos respondentes",
    Granularity.CATEGORY: "Categoria com respostas insuficientes",
    Granularity.QUESTION: "Pergunta com respostas insuficientes",
    Granularity.DEPARTMENT: "Departamento com poucos funcionarios para exibir analise",
    Granularity.DETAILED: "Respostas detalhadas requerem mais participantes",
}


@dataclass(frozen=True)
class CategoryDefinition:
    """One entry of the category registry."""
    key: str
    label: str


class CategoryRegistry:
    """Ordered lookup of the categories every category report must contain.

    Output order is registry order, never arrival order.
    """

    def __init__(self, definitions: Tuple[CategoryDefinition, ...]):
        keys = [d.key for d in definitions]
        if len(keys) != len(set(keys)):
            raise ValueError("Category keys must be unique")
        self._definitions = tuple(definitions)
        self._by_key = {d.key: d for d in definitions}

    def __iter__(self) -> Iterator[CategoryDefinition]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    @property
    def keys(self) -> Tuple[str, ...]:
        return tuple(d.key for d in self._definitions)

    def get(self, key: str) -> Optional[CategoryDefinition]:
        return self._by_key.get(key)

    def label(self, key: str) -> str:
        definition = self._by_key.get(key)
        return definition.label if definition else key

    def with_category(self, definition: CategoryDefinition) -> "CategoryRegistry":
        """Return a new registry with one more category appended."""
        return CategoryRegistry(self._definitions + (definition,))


DEFAULT_CATEGORIES = CategoryRegistry((
    CategoryDefinition(RiskCategory.DEMANDS_AND_PACE.value, "Demandas e Ritmo de Trabalho"),
    CategoryDefinition(RiskCategory.AUTONOMY_CLARITY_CHANGE.value, "Autonomia, Clareza e Mudanças"),
    CategoryDefinition(RiskCategory.LEADERSHIP_RECOGNITION.value, "Liderança e Reconhecimento"),
    CategoryDefinition(RiskCategory.RELATIONSHIPS_COMMUNICATION.value, "Relações, Clima e Comunicação"),
    CategoryDefinition(RiskCategory.WORK_LIFE_HEALTH.value, "Equilíbrio Trabalho-Vida e Saúde"),
    CategoryDefinition(RiskCategory.VIOLENCE_HARASSMENT.value, "Violência, Assédio e Medo de Repressão"),
    CategoryDefinition(RiskCategory.ANCHORS.value, "Âncoras (Satisfação, Saúde, Permanência)"),
    CategoryDefinition(RiskCategory.SUGGESTIONS.value, "Sugestões"),
))


RISK_LABELS: Dict[RiskLevel, str] = {
    RiskLevel.LOW: "Baixo",
    RiskLevel.MEDIUM: "Médio",
    RiskLevel.HIGH: "Alto",
}


@dataclass(frozen=True)
class RiskBands:
    """Classification of normalized (higher = riskier) mean scores."""
    high_min: float = 3.5
    medium_min: float = 2.5

    def classify(self, score: float) -> RiskLevel:
        if score >= self.high_min:
            return RiskLevel.HIGH
        if score >= self.medium_min:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW


@dataclass(frozen=True)
class AlertThresholds:
    """Category scores that trigger risk notifications."""
    alert_min: float = 3.5
    critical_min: float = 4.0

    def level_for(self, score: float) -> Optional[AlertLevel]:
        if score >= self.critical_min:
            return AlertLevel.CRITICAL
        if score >= self.alert_min:
            return AlertLevel.HIGH
        return None


@dataclass(frozen=True)
class LikertScale:
    """The 1-5 answer scale shared by every scorable question."""
    minimum: float = 1.0
    maximum: float = 5.0

    def contains(self, value: float) -> bool:
        return self.minimum <= value <= self.maximum

    def invert(self, value: float) -> float:
        return self.maximum + self.minimum - value


@dataclass(frozen=True)
class AnalyticsConfig:
    """Configuration for the analytics service."""
    thresholds: AnonymityThresholds = field(default_factory=AnonymityThresholds)
    risk_bands: RiskBands = field(default_factory=RiskBands)
    alert_thresholds: AlertThresholds = field(default_factory=AlertThresholds)
    scale: LikertScale = field(default_factory=LikertScale)
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self):
        if self.page_size < 1:
            raise ValueError(f"page_size must be positive, got {self.page_size}")

    @classmethod
    def from_env(cls) -> "AnalyticsConfig":
        """Create config from environment variables.

        Environment variables:
            ANALYTICS_PAGE_SIZE: Rows per page read (default 1000)
            ANALYTICS_MIN_*: Anonymity threshold overrides
        """
        return cls(
            thresholds=AnonymityThresholds.from_env(),
            page_size=int(os.getenv("ANALYTICS_PAGE_SIZE", str(DEFAULT_PAGE_SIZE))),
        )
