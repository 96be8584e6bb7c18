"""Analytics orchestration for psychosocial-risk assessments.

Each call is stateless: it pages through the raw responses of one
assessment, folds them through the shared aggregator and passes every
group through the anonymity guard before anything is returned. Nothing
is cached; recomputation is the model.

Failure contract:
- Unknown assessment or question: the call returns None
- Any read failure: AnalyticsUnavailableError, never a partial aggregate
- Suppressed and no-data groups are normal results with distinct states
"""
import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, Dict, List, Optional

from sollar.shared.database import iter_pages
from sollar.shared.models import Assessment, Question, Response, RiskLevel
from .aggregator import (
    CategoryAggregator,
    DepartmentAggregator,
    ParticipationAccumulator,
    QuestionDistributionAggregator,
    completion_rate,
)
from .alert_publisher import RiskAlertPublisher
from .config import (
    AnalyticsConfig,
    CategoryRegistry,
    DEFAULT_CATEGORIES,
    Granularity,
    RISK_LABELS,
)
from .k_anonymity import (
    AnonymityGuard,
    Computed,
    ExportGate,
    Suppressed,
    SuppressionStatus,
)
from .repository import DepartmentDirectory, SurveyDataSource
from .results import (
    AssessmentAnalytics,
    CategoryResult,
    DepartmentResult,
    DetailedResponseRow,
    ExportResult,
    QuestionDistribution,
    ReportCategory,
    ReportData,
    RiskAlertSummary,
)

logger = logging.getLogger(__name__)


class AnalyticsError(Exception):
    """Base exception for analytics computations."""
    pass


class AnalyticsUnavailableError(AnalyticsError):
    """The computation could not read its complete input."""

    def __init__(self, operation: str, assessment_id: str, cause: Exception):
        super().__init__(f"{operation} unavailable for assessment {assessment_id}: {cause}")
        self.operation = operation
        self.assessment_id = assessment_id


@dataclass
class _AssessmentFold:
    categories: CategoryAggregator
    participation: ParticipationAccumulator


class AnalyticsService:
    """Computes disclosure-safe analytics for one assessment per call."""

    def __init__(
        self,
        data_source: SurveyDataSource,
        config: Optional[AnalyticsConfig] = None,
        categories: Optional[CategoryRegistry] = None,
        guard: Optional[AnonymityGuard] = None,
        alert_publisher: Optional[RiskAlertPublisher] = None,
    ):
        """Initialize service with dependencies.

        Args:
            data_source: Async reader over the survey store
            config: Analytics configuration
            categories: Category registry (defaults to the NR-1 blocks)
            guard: Anonymity guard (injected for testing)
            alert_publisher: Risk notification publisher
        """
        self.data_source = data_source
        self.config = config or AnalyticsConfig()
        self.categories = categories if categories is not None else DEFAULT_CATEGORIES
        self.guard = guard or AnonymityGuard(self.config.thresholds)
        self.alert_publisher = alert_publisher or RiskAlertPublisher(enabled=False)

        logger.info(
            "ANALYTICS_SERVICE_INITIALIZED",
            extra={
                "page_size": self.config.page_size,
                "categories": len(self.categories),
                **self.config.thresholds.as_dict(),
            }
        )

    @contextmanager
    def _computation(self, operation: str, assessment_id: str):
        """Turn any read failure into a single AnalyticsUnavailableError."""
        try:
            yield
        except AnalyticsError:
            raise
        except Exception as e:
            logger.error(
                "ANALYTICS_COMPUTATION_FAILED",
                extra={
                    "operation": operation,
                    "assessment_id": assessment_id,
                    "error": str(e),
                }
            )
            raise AnalyticsUnavailableError(operation, assessment_id, e) from e

    async def _scan_responses(
        self,
        assessment_id: str,
        question_id: Optional[str] = None,
    ) -> AsyncIterator[Response]:
        async def fetch(limit: int, offset: int) -> List[Response]:
            return await self.data_source.fetch_responses(assessment_id, limit, offset, question_id)

        context = f"responses:{assessment_id}" + (f":{question_id}" if question_id else "")
        async for page in iter_pages(fetch, self.config.page_size, context=context):
            for response in page:
                yield response

    async def _load_assessment(self, operation: str, assessment_id: str) -> Optional[Assessment]:
        assessment = await self.data_source.get_assessment(assessment_id)
        if assessment is None:
            logger.warning(
                "ASSESSMENT_NOT_FOUND",
                extra={"operation": operation, "assessment_id": assessment_id}
            )
        return assessment

    def _assessment_status(self, participant_count: int) -> Optional[SuppressionStatus]:
        """Assessment-level status to cascade, None when there is no data."""
        if participant_count == 0:
            return None
        return self.guard.evaluate(Granularity.ASSESSMENT, participant_count)

    async def _fold_assessment(self, assessment: Assessment) -> _AssessmentFold:
        questions: Dict[str, Question] = {q.id: q for q in assessment.questions}
        fold = _AssessmentFold(
            categories=CategoryAggregator(self.categories, self.config.risk_bands, self.config.scale),
            participation=ParticipationAccumulator(),
        )
        async for response in self._scan_responses(assessment.id):
            fold.participation.add(response)
            fold.categories.add(response, questions.get(response.question_id))
        return fold

    def _category_results(
        self,
        fold: _AssessmentFold,
        parent: Optional[SuppressionStatus],
        assessment_id: str,
    ) -> List[CategoryResult]:
        results = []
        for summary in fold.categories.results():
            outcome = self.guard.protect(
                summary,
                Granularity.CATEGORY,
                summary.score_count,
                parent=parent,
                context=f"category:{assessment_id}:{summary.key}",
            )
            results.append(
                CategoryResult.from_outcome(summary, outcome, self.categories.label(summary.key))
            )
        return results

    async def _analyze(self, assessment: Assessment) -> AssessmentAnalytics:
        fold = await self._fold_assessment(assessment)
        participation = fold.participation
        status = self._assessment_status(participation.participant_count)
        is_suppressed = status is not None and status.is_suppressed

        analytics = AssessmentAnalytics(
            assessment_id=assessment.id,
            total_participants=participation.participant_count,
            total_questions=len(assessment.questions),
            total_responses=participation.response_count,
            completion_rate=completion_rate(
                participation.response_count,
                participation.participant_count,
                len(assessment.questions),
            ),
            per_category=self._category_results(fold, status, assessment.id),
            last_response_date=participation.last_response_at,
            is_suppressed=is_suppressed,
            suppression_info=status if is_suppressed else None,
        )

        logger.info(
            "ASSESSMENT_ANALYTICS_COMPUTED",
            extra={
                "assessment_id": assessment.id,
                "total_participants": analytics.total_participants,
                "total_questions": analytics.total_questions,
                "total_responses": analytics.total_responses,
                "completion_rate": analytics.completion_rate,
                "state": analytics.state.value,
                "skipped_responses": fold.categories.skipped,
            }
        )
        return analytics

    async def compute_assessment_analytics(self, assessment_id: str) -> Optional[AssessmentAnalytics]:
        """Overall analytics with per-category scores.

        Returns:
            AssessmentAnalytics, or None if the assessment does not exist

        Raises:
            AnalyticsUnavailableError: If any read fails
        """
        with self._computation("assessment_analytics", assessment_id):
            assessment = await self._load_assessment("assessment_analytics", assessment_id)
            if assessment is None:
                return None
            return await self._analyze(assessment)

    async def _distribution_for(
        self,
        assessment: Assessment,
        question: Question,
        parent: Optional[SuppressionStatus],
    ) -> QuestionDistribution:
        counter = QuestionDistributionAggregator()
        async for response in self._scan_responses(assessment.id, question_id=question.id):
            counter.add(response.raw_value)

        outcome = self.guard.protect(
            counter,
            Granularity.QUESTION,
            counter.total,
            parent=parent,
            context=f"question:{assessment.id}:{question.id}",
        )
        disclosed = isinstance(outcome, Computed)
        suppression_info = outcome.status if isinstance(outcome, Suppressed) else None

        return QuestionDistribution(
            question_id=question.id,
            question_text=question.text,
            question_type=question.type,
            question_category=question.category,
            distribution=counter.distribution() if disclosed else [],
            is_suppressed=suppression_info is not None,
            total_responses=counter.total if disclosed else 0,
            suppression_info=suppression_info,
        )

    async def compute_question_distribution(
        self,
        assessment_id: str,
        question_id: str,
    ) -> Optional[QuestionDistribution]:
        """Literal answer distribution of one question.

        Returns:
            QuestionDistribution, or None if the assessment or question
            does not exist

        Raises:
            AnalyticsUnavailableError: If any read fails
        """
        with self._computation("question_distribution", assessment_id):
            assessment = await self._load_assessment("question_distribution", assessment_id)
            if assessment is None:
                return None

            question = assessment.question_by_id(question_id)
            if question is None:
                question = await self.data_source.get_question(question_id)
            if question is None:
                logger.warning(
                    "QUESTION_NOT_FOUND",
                    extra={"assessment_id": assessment_id, "question_id": question_id}
                )
                return None

            participants = await self.data_source.count_participants(assessment_id)
            return await self._distribution_for(
                assessment, question, self._assessment_status(participants)
            )

    async def compute_all_question_distributions(
        self,
        assessment_id: str,
    ) -> Optional[List[QuestionDistribution]]:
        """Distributions for every questionnaire question, in questionnaire order."""
        with self._computation("all_question_distributions", assessment_id):
            assessment = await self._load_assessment("all_question_distributions", assessment_id)
            if assessment is None:
                return None

            participants = await self.data_source.count_participants(assessment_id)
            parent = self._assessment_status(participants)
            return [
                await self._distribution_for(assessment, question, parent)
                for question in assessment.questions
            ]

    async def compute_department_analytics(
        self,
        assessment_id: str,
    ) -> Optional[List[DepartmentResult]]:
        """Per-department scores, suppressed below the headcount threshold.

        Returns:
            Departments sorted disclosed first, then by participant count;
            None if the assessment does not exist

        Raises:
            AnalyticsUnavailableError: If any read fails
        """
        with self._computation("department_analytics", assessment_id):
            assessment = await self._load_assessment("department_analytics", assessment_id)
            if assessment is None:
                return None

            departments = await self.data_source.fetch_departments(assessment.organization_id)
            if not departments:
                logger.info(
                    "NO_DEPARTMENTS_FOR_ORGANIZATION",
                    extra={"assessment_id": assessment_id, "organization_id": assessment.organization_id}
                )
                return []

            directory = await DepartmentDirectory.load(
                self.data_source, assessment.organization_id, self.config.page_size
            )
            questions = {q.id: q for q in assessment.questions}
            aggregator = DepartmentAggregator(departments, self.config.risk_bands, self.config.scale)
            participation = ParticipationAccumulator()

            async for response in self._scan_responses(assessment_id):
                participation.add(response)
                aggregator.add(
                    directory.department_of(response.member_id),
                    response,
                    questions.get(response.question_id),
                )

        parent = self._assessment_status(participation.participant_count)
        results = [
            DepartmentResult.from_outcome(
                department,
                summary,
                self.guard.protect(
                    summary,
                    Granularity.DEPARTMENT,
                    department.employee_count,
                    parent=parent,
                    context=f"department:{assessment_id}:{department.id}",
                ),
            )
            for department, summary in aggregator.results()
        ]
        results.sort(key=lambda r: (r.is_suppressed, -r.participant_count, r.name))

        logger.info(
            "DEPARTMENT_ANALYTICS_COMPUTED",
            extra={
                "assessment_id": assessment_id,
                "departments": len(results),
                "suppressed": sum(1 for r in results if r.is_suppressed),
                "unassigned_responses": aggregator.unassigned,
            }
        )
        return results

    async def check_risk_thresholds(self, assessment_id: str) -> Optional[RiskAlertSummary]:
        """Notify once per disclosed high-risk category at or above the alert threshold.

        Returns None for an unknown assessment. Unreadable data raises
        AnalyticsUnavailableError; notification failures are logged and
        never abort the check.
        """
        with self._computation("risk_thresholds", assessment_id):
            assessment = await self._load_assessment("risk_thresholds", assessment_id)
            if assessment is None:
                return None
            analytics = await self._analyze(assessment)

        thresholds = self.config.alert_thresholds
        alerts_sent = 0
        categories: List[str] = []

        for category in analytics.per_category:
            if category.is_suppressed or not category.has_data:
                continue
            if category.risk_level is not RiskLevel.HIGH:
                continue
            level = thresholds.level_for(category.average_score)
            if level is None:
                continue

            categories.append(category.category)
            try:
                published = await asyncio.to_thread(
                    self.alert_publisher.publish_risk_alert,
                    organization_id=assessment.organization_id,
                    assessment_id=assessment.id,
                    category=category.category,
                    score=category.average_score,
                    threshold=thresholds.alert_min,
                    level=level.value,
                    assessment_title=assessment.title,
                    category_name=category.label,
                )
            except Exception as e:
                logger.error(
                    "RISK_ALERT_DISPATCH_FAILED",
                    extra={
                        "assessment_id": assessment_id,
                        "category": category.category,
                        "error": str(e),
                    }
                )
                continue
            if published:
                alerts_sent += 1

        logger.info(
            "RISK_THRESHOLDS_CHECKED",
            extra={
                "assessment_id": assessment_id,
                "categories_over_threshold": len(categories),
                "alerts_sent": alerts_sent,
            }
        )
        return RiskAlertSummary(alerts_sent=alerts_sent, categories=categories)

    async def _detailed_rows(self, assessment: Assessment) -> List[DetailedResponseRow]:
        questions = {q.id: q for q in assessment.questions}
        rows = []
        async for response in self._scan_responses(assessment.id):
            question = questions.get(response.question_id)
            rows.append(DetailedResponseRow(
                response_id=response.id,
                anonymous_id=response.anonymous_id,
                question_text=question.text if question else "",
                category=question.category if question else "",
                question_type=question.type if question else "",
                value=response.raw_value or "",
                created_at=response.created_at,
            ))
        return rows

    def _blocked(self, status: SuppressionStatus) -> ExportResult:
        note = (
            f"Mínimo de {status.minimum_required} participantes necessário. "
            f"Atual: {status.current_count}"
        )
        return ExportResult(
            status=ExportGate.BLOCKED,
            suppression_note=f"{status.message}. {note}",
            suppression_info=status,
        )

    async def compute_report_data(
        self,
        assessment_id: str,
        include_responses: bool = False,
    ) -> Optional[ExportResult]:
        """Report content built from the same aggregation as the dashboard.

        Args:
            assessment_id: Assessment identifier
            include_responses: Attach literal per-response rows; they are
                only attached when the detailed export gate passes

        Returns:
            ExportResult carrying ReportData, or None if the assessment
            does not exist

        Raises:
            AnalyticsUnavailableError: If any read fails
        """
        with self._computation("report_data", assessment_id):
            assessment = await self._load_assessment("report_data", assessment_id)
            if assessment is None:
                return None
            analytics = await self._analyze(assessment)

            if analytics.total_participants == 0:
                return ExportResult(status=ExportGate.NO_DATA)
            if analytics.is_suppressed:
                return self._blocked(analytics.suppression_info)

            responses = None
            responses_blocked = False
            if include_responses:
                gate, status = self.guard.gate_export(
                    analytics.total_participants, context=f"report:{assessment_id}"
                )
                if gate is ExportGate.READY:
                    responses = await self._detailed_rows(assessment)
                else:
                    responses_blocked = True

        report = ReportData(
            assessment_id=assessment.id,
            assessment_title=assessment.title,
            organization_id=assessment.organization_id,
            total_participants=analytics.total_participants,
            total_questions=analytics.total_questions,
            completion_rate=analytics.completion_rate,
            last_response_date=analytics.last_response_date,
            category_scores=[
                ReportCategory(
                    category=c.category,
                    category_name=c.label,
                    avg_score=c.average_score,
                    risk_level=c.risk_level,
                    risk_label=RISK_LABELS[c.risk_level],
                    response_count=c.response_count,
                    question_count=c.question_count,
                    is_suppressed=c.is_suppressed,
                )
                for c in analytics.per_category
            ],
            generated_at=datetime.utcnow(),
            responses=responses,
            responses_blocked=responses_blocked,
        )

        logger.info(
            "REPORT_DATA_COMPUTED",
            extra={
                "assessment_id": assessment_id,
                "include_responses": include_responses,
                "responses_blocked": responses_blocked,
            }
        )
        return ExportResult(status=ExportGate.READY, data=report)

    async def export_responses_detailed(self, assessment_id: str) -> Optional[ExportResult]:
        """Literal per-response rows behind the strictest anonymity gate.

        Returns:
            ExportResult READY with rows, BLOCKED below the detailed
            threshold, NO_DATA with no participants; None if the
            assessment does not exist

        Raises:
            AnalyticsUnavailableError: If any read fails
        """
        with self._computation("detailed_export", assessment_id):
            assessment = await self._load_assessment("detailed_export", assessment_id)
            if assessment is None:
                return None

            participants = await self.data_source.count_participants(assessment_id)
            gate, status = self.guard.gate_export(participants, context=f"export:{assessment_id}")

            if gate is ExportGate.NO_DATA:
                return ExportResult(status=ExportGate.NO_DATA)
            if gate is ExportGate.BLOCKED:
                logger.warning(
                    "DETAILED_EXPORT_BLOCKED",
                    extra={
                        "assessment_id": assessment_id,
                        "k_threshold": status.minimum_required,
                    }
                )
                return self._blocked(status)

            rows = await self._detailed_rows(assessment)

        logger.info(
            "DETAILED_EXPORT_READY",
            extra={"assessment_id": assessment_id, "rows": len(rows)}
        )
        return ExportResult(status=ExportGate.READY, data=rows)
