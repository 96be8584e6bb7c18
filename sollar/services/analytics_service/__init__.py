"""Analytics Service: psychosocial-risk survey analytics with anonymity protection.

Every aggregate computed from survey responses passes the anonymity guard
before it leaves the service. Groups below their threshold are suppressed
so managers cannot identify respondents in small teams.

This service provides:
- Response normalization onto a single risk polarity
- Per-category, per-question and per-department aggregation
- K-anonymity enforcement with assessment-level cascade
- Risk threshold notifications
- Report content and gated per-response export
"""

from .config import (
    AnalyticsConfig,
    AnonymityThresholds,
    CategoryDefinition,
    CategoryRegistry,
    DEFAULT_CATEGORIES,
    Granularity,
)
from .k_anonymity import (
    AnonymityGuard,
    Computed,
    ExportGate,
    NoData,
    Suppressed,
    SuppressionStatus,
)
from .normalizer import normalize_score, score_response
from .repository import (
    InMemorySurveyDataSource,
    PostgresSurveyDataSource,
    SurveyDataSource,
)
from .results import (
    AssessmentAnalytics,
    CategoryResult,
    DepartmentResult,
    ExportResult,
    QuestionDistribution,
    ReportData,
    ResultState,
    RiskAlertSummary,
)
from .service import (
    AnalyticsError,
    AnalyticsService,
    AnalyticsUnavailableError,
)

__all__ = [
    "AnalyticsConfig",
    "AnonymityThresholds",
    "CategoryDefinition",
    "CategoryRegistry",
    "DEFAULT_CATEGORIES",
    "Granularity",
    "AnonymityGuard",
    "Computed",
    "ExportGate",
    "NoData",
    "Suppressed",
    "SuppressionStatus",
    "normalize_score",
    "score_response",
    "InMemorySurveyDataSource",
    "PostgresSurveyDataSource",
    "SurveyDataSource",
    "AssessmentAnalytics",
    "CategoryResult",
    "DepartmentResult",
    "ExportResult",
    "QuestionDistribution",
    "ReportData",
    "ResultState",
    "RiskAlertSummary",
    "AnalyticsError",
    "AnalyticsService",
    "AnalyticsUnavailableError",
]
