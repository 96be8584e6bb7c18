"""Shared domain models for the Sollar platform."""
from .survey import (
    RiskCategory,
    QuestionType,
    RiskLevel,
    AlertLevel,
    Question,
    Response,
    Assessment,
    Department,
    DepartmentMembership,
)

__all__ = [
    "RiskCategory",
    "QuestionType",
    "RiskLevel",
    "AlertLevel",
    "Question",
    "Response",
    "Assessment",
    "Department",
    "DepartmentMembership",
]
