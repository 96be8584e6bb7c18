"""Risk threshold event publisher.

Publishes risk.threshold.exceeded events to Kinesis when a category's
normalized score crosses the alert threshold. Downstream automations
(webhooks, e-mail) consume the stream; publishing is fire-and-forget and
never affects analytics results.
"""
import json
import logging
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import boto3

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RiskThresholdEvent:
    """Immutable risk threshold exceeded event."""
    event_id: str
    organization_id: str
    assessment_id: str
    category: str
    current_score: float
    threshold: float
    risk_level: str
    event_type: str = "risk.threshold.exceeded"
    assessment_title: str = ""
    category_name: str = ""
    triggered_by: str = "analytics-calculation"
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_kinesis_payload(self) -> dict:
        """Convert to Kinesis record payload."""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "organization_id": self.organization_id,
            "timestamp": self.timestamp.isoformat() + "Z",
            "source": "analytics-service",
            "data": {
                "diagnostic_id": self.assessment_id,
                "diagnostic_title": self.assessment_title,
                "category": self.category,
                "category_name": self.category_name,
                "current_score": self.current_score,
                "threshold": self.threshold,
                "risk_level": self.risk_level,
            },
            "metadata": {
                "triggered_by": self.triggered_by,
            },
        }


class RiskAlertPublisher:
    """Publishes risk threshold events to Kinesis."""

    def __init__(
        self,
        stream_name: str = "sollar-risk-events",
        enabled: bool = True,
        region: Optional[str] = None,
        kinesis_client=None,
    ):
        self.stream_name = stream_name
        self.enabled = enabled
        self.region = region or os.getenv("AWS_REGION", "sa-east-1")
        self._kinesis_client = kinesis_client

        logger.info(
            "RISK_ALERT_PUBLISHER_INITIALIZED",
            extra={"stream_name": stream_name, "enabled": enabled}
        )

    @classmethod
    def from_env(cls) -> "RiskAlertPublisher":
        """Create publisher from RISK_ALERT_STREAM / RISK_ALERTS_ENABLED."""
        return cls(
            stream_name=os.getenv("RISK_ALERT_STREAM", "sollar-risk-events"),
            enabled=os.getenv("RISK_ALERTS_ENABLED", "true").lower() == "true",
        )

    @property
    def kinesis_client(self):
        """Lazy initialization of Kinesis client."""
        if self._kinesis_client is None and self.enabled:
            try:
                self._kinesis_client = boto3.client("kinesis", region_name=self.region)
            except Exception as e:
                logger.error("KINESIS_CLIENT_INIT_FAILED", extra={"error": str(e)})
        return self._kinesis_client

    def publish_risk_alert(
        self,
        organization_id: str,
        assessment_id: str,
        category: str,
        score: float,
        threshold: float,
        level: str,
        assessment_title: str = "",
        category_name: str = "",
    ) -> bool:
        """Publish one risk threshold event.

        Returns:
            True if the record was accepted by Kinesis
        """
        if not self.enabled:
            logger.info("RISK_ALERT_PUBLISH_SKIPPED", extra={"reason": "disabled"})
            return False

        event = RiskThresholdEvent(
            event_id=f"evt_{uuid.uuid4().hex[:12]}",
            organization_id=organization_id,
            assessment_id=assessment_id,
            assessment_title=assessment_title,
            category=category,
            category_name=category_name,
            current_score=score,
            threshold=threshold,
            risk_level=level,
        )

        payload = event.to_kinesis_payload()

        try:
            if self.kinesis_client is None:
                logger.warning(
                    "RISK_ALERT_FALLBACK_LOG",
                    extra={"event_id": event.event_id, "payload": json.dumps(payload)}
                )
                return False

            response = self.kinesis_client.put_record(
                StreamName=self.stream_name,
                Data=json.dumps(payload),
                PartitionKey=organization_id,
            )

            logger.info(
                "RISK_ALERT_PUBLISHED",
                extra={
                    "event_id": event.event_id,
                    "assessment_id": assessment_id,
                    "category": category,
                    "risk_level": level,
                    "shard_id": response.get("ShardId"),
                }
            )
            return True

        except Exception as e:
            logger.error(
                "RISK_ALERT_PUBLISH_FAILED",
                extra={"event_id": event.event_id, "error": str(e)}
            )
            return False
