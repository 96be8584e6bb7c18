"""K-anonymity enforcement for survey analytics.

Every aggregate leaves the service through AnonymityGuard. A group whose
qualifying count is below the threshold for its granularity is suppressed,
so managers cannot identify respondents in small groups.

Outcomes are a tagged variant so "no data", "suppressed" and "computed"
can never be confused:

- NoData: nothing was collected, there is nothing to protect
- Suppressed: data exists but is below the threshold
- Computed: data passed the threshold and is disclosed unmodified
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, Tuple, TypeVar, Union

from .config import AnonymityThresholds, Granularity, SUPPRESSION_MESSAGES

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class SuppressionStatus:
    """Threshold check for one qualifying count.

    remaining discloses how many more are needed. When it is small it
    implicitly reveals the true count; this is accepted product behavior.
    """
    granularity: Granularity
    is_suppressed: bool
    current_count: int
    minimum_required: int
    remaining: int
    percent_complete: float

    @property
    def message(self) -> Optional[str]:
        return SUPPRESSION_MESSAGES[self.granularity] if self.is_suppressed else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "granularity": self.granularity.value,
            "current_count": self.current_count,
            "minimum_required": self.minimum_required,
            "remaining": self.remaining,
            "percent_complete": self.percent_complete,
            "message": self.message,
        }


@dataclass(frozen=True)
class NoData:
    """No qualifying data at all. Not suppressed, legitimately empty."""


@dataclass(frozen=True)
class Suppressed:
    """Data exists but may not be disclosed."""
    status: SuppressionStatus

    @property
    def remaining(self) -> int:
        return self.status.remaining


@dataclass(frozen=True)
class Computed(Generic[T]):
    """Data passed the threshold and is disclosed as computed."""
    value: T


GroupOutcome = Union[NoData, Suppressed, Computed]


class ExportGate(Enum):
    """Decision for paths that return literal per-response rows."""
    READY = "ready"
    BLOCKED = "blocked"
    NO_DATA = "no_data"


class AnonymityGuard:
    """Applies per-granularity anonymity thresholds.

    Thresholds are distinct per granularity; the detailed export threshold
    is always at least as strict as every display threshold.
    """

    def __init__(self, thresholds: Optional[AnonymityThresholds] = None):
        self.thresholds = thresholds or AnonymityThresholds()

        logger.info(
            "ANONYMITY_GUARD_INITIALIZED",
            extra=self.thresholds.as_dict()
        )

    def threshold(self, granularity: Granularity) -> int:
        return self.thresholds.for_granularity(granularity)

    def evaluate(self, granularity: Granularity, qualifying_count: int) -> SuppressionStatus:
        """Compare a qualifying count against its granularity's threshold."""
        minimum = self.threshold(granularity)
        return SuppressionStatus(
            granularity=granularity,
            is_suppressed=qualifying_count < minimum,
            current_count=qualifying_count,
            minimum_required=minimum,
            remaining=max(0, minimum - qualifying_count),
            percent_complete=round(min(100.0, qualifying_count / minimum * 100), 2),
        )

    def protect(
        self,
        value: T,
        granularity: Granularity,
        qualifying_count: int,
        parent: Optional[SuppressionStatus] = None,
        context: Optional[str] = None,
    ) -> GroupOutcome:
        """Decide disclosure for one group.

        Args:
            value: The aggregated group to potentially suppress
            granularity: Level the group is disclosed at
            qualifying_count: Participants, responses or employees
            parent: Status of an enclosing level; a suppressed parent
                force-suppresses this group regardless of its own count
            context: Description of the group for logging

        Returns:
            NoData, Suppressed or Computed

        Logs:
            - K_ANONYMITY_SUPPRESSED: When data is suppressed
            - K_ANONYMITY_PASSED: When data passes threshold
        """
        if parent is not None and parent.is_suppressed:
            logger.info(
                "K_ANONYMITY_CASCADE_SUPPRESSED",
                extra={
                    "granularity": granularity.value,
                    "parent_granularity": parent.granularity.value,
                    "context": context,
                }
            )
            return Suppressed(status=parent)

        if qualifying_count == 0:
            return NoData()

        status = self.evaluate(granularity, qualifying_count)
        if status.is_suppressed:
            logger.warning(
                "K_ANONYMITY_SUPPRESSED",
                extra={
                    "granularity": granularity.value,
                    "group_size": qualifying_count,
                    "k_threshold": status.minimum_required,
                    "context": context,
                    "action": "DATA_SUPPRESSED",
                }
            )
            return Suppressed(status=status)

        logger.info(
            "K_ANONYMITY_PASSED",
            extra={
                "granularity": granularity.value,
                "group_size": qualifying_count,
                "k_threshold": status.minimum_required,
                "context": context,
            }
        )
        return Computed(value=value)

    def gate_export(
        self,
        participant_count: int,
        context: Optional[str] = None,
    ) -> Tuple[ExportGate, SuppressionStatus]:
        """Gate a raw per-response export on the detailed threshold."""
        status = self.evaluate(Granularity.DETAILED, participant_count)
        if participant_count == 0:
            gate = ExportGate.NO_DATA
        elif status.is_suppressed:
            gate = ExportGate.BLOCKED
        else:
            gate = ExportGate.READY

        logger.info(
            "EXPORT_GATE_EVALUATED",
            extra={
                "gate": gate.value,
                "group_size": participant_count,
                "k_threshold": status.minimum_required,
                "context": context,
            }
        )
        return gate, status
