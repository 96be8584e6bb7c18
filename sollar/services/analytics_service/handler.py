"""Analytics Service HTTP Handler - Assessment Dashboard API.

Every figure served here has passed the anonymity guard. Suppressed and
no-data results are normal 200 responses with their own state; only
unknown ids (404), unreadable data (503) and blocked raw exports (403)
change the status code.

Endpoints:
- GET /health - Health check
- GET /ready - Readiness check
- GET /assessments/<id>/analytics - Overview with per-category scores
- GET /assessments/<id>/questions/<qid>/distribution - One question's answers
- GET /assessments/<id>/questions/distribution - Every question's answers
- GET /assessments/<id>/departments - Per-department scores
- POST /assessments/<id>/risk-alerts - Notify categories over threshold
- GET /assessments/<id>/report - Report content
- GET /assessments/<id>/export/responses - Literal per-response rows
"""
import logging
import os
from typing import Optional

from flask import Flask, jsonify, request

from sollar.shared.database import get_connection_manager
from sollar.shared.utils import configure_pii_salt_from_env
from .alert_publisher import RiskAlertPublisher
from .config import AnalyticsConfig
from .k_anonymity import ExportGate
from .repository import PostgresSurveyDataSource
from .service import AnalyticsService, AnalyticsUnavailableError

logger = logging.getLogger(__name__)

app = Flask(__name__)


# Global service instance
_service: Optional[AnalyticsService] = None


def get_service() -> AnalyticsService:
    """Get or create the global service instance."""
    global _service
    if _service is None:
        _service = AnalyticsService(
            data_source=PostgresSurveyDataSource(get_connection_manager()),
            config=AnalyticsConfig.from_env(),
            alert_publisher=RiskAlertPublisher.from_env(),
        )
    return _service


def set_service(service: AnalyticsService) -> None:
    """Set the global service (for testing)."""
    global _service
    _service = service


def _not_found(resource: str, resource_id: str):
    return jsonify({"error": f"{resource} not found", "id": resource_id}), 404


def _export_response(result):
    body = result.to_dict()
    if result.status is ExportGate.BLOCKED:
        return jsonify(body), 403
    return jsonify(body)


@app.errorhandler(AnalyticsUnavailableError)
def analytics_unavailable(error: AnalyticsUnavailableError):
    logger.error(
        "ANALYTICS_REQUEST_FAILED",
        extra={"operation": error.operation, "assessment_id": error.assessment_id}
    )
    return jsonify({"error": "analytics_unavailable", "operation": error.operation}), 503


@app.route("/health", methods=["GET"])
def health():
    """Health check endpoint."""
    return jsonify({"status": "healthy", "service": "analytics-service"})


@app.route("/ready", methods=["GET"])
def ready():
    """Readiness check endpoint."""
    return jsonify({"status": "ready", "service": "analytics-service"})


@app.route("/assessments/<assessment_id>/analytics", methods=["GET"])
async def assessment_analytics(assessment_id: str):
    """Overview of one assessment with every category."""
    result = await get_service().compute_assessment_analytics(assessment_id)
    if result is None:
        return _not_found("assessment", assessment_id)
    return jsonify(result.to_dict())


@app.route("/assessments/<assessment_id>/questions/<question_id>/distribution", methods=["GET"])
async def question_distribution(assessment_id: str, question_id: str):
    """Answer distribution of one question."""
    result = await get_service().compute_question_distribution(assessment_id, question_id)
    if result is None:
        return _not_found("question", question_id)
    return jsonify(result.to_dict())


@app.route("/assessments/<assessment_id>/questions/distribution", methods=["GET"])
async def all_question_distributions(assessment_id: str):
    """Answer distributions of every questionnaire question."""
    results = await get_service().compute_all_question_distributions(assessment_id)
    if results is None:
        return _not_found("assessment", assessment_id)
    return jsonify({
        "assessment_id": assessment_id,
        "questions": [r.to_dict() for r in results],
    })


@app.route("/assessments/<assessment_id>/departments", methods=["GET"])
async def department_analytics(assessment_id: str):
    """Per-department scores."""
    results = await get_service().compute_department_analytics(assessment_id)
    if results is None:
        return _not_found("assessment", assessment_id)
    return jsonify({
        "assessment_id": assessment_id,
        "departments": [r.to_dict() for r in results],
    })


@app.route("/assessments/<assessment_id>/risk-alerts", methods=["POST"])
async def risk_alerts(assessment_id: str):
    """Check risk thresholds and notify once per category over them."""
    summary = await get_service().check_risk_thresholds(assessment_id)
    if summary is None:
        return _not_found("assessment", assessment_id)
    return jsonify({"assessment_id": assessment_id, **summary.to_dict()})


@app.route("/assessments/<assessment_id>/report", methods=["GET"])
async def report(assessment_id: str):
    """Report content.

    Query params:
        include_responses: Optional - "true" to attach per-response rows
    """
    include_responses = request.args.get("include_responses", "false").lower() == "true"
    result = await get_service().compute_report_data(assessment_id, include_responses)
    if result is None:
        return _not_found("assessment", assessment_id)
    return _export_response(result)


@app.route("/assessments/<assessment_id>/export/responses", methods=["GET"])
async def export_responses(assessment_id: str):
    """Literal per-response rows behind the detailed export threshold."""
    result = await get_service().export_responses_detailed(assessment_id)
    if result is None:
        return _not_found("assessment", assessment_id)
    return _export_response(result)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    configure_pii_salt_from_env()
    port = int(os.getenv("PORT", "8080"))
    app.run(host="0.0.0.0", port=port)
