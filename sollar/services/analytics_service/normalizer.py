"""Response normalization onto a single risk polarity.

Every scorable answer is rescaled so that a larger number always means
higher risk, regardless of how the question was phrased:

- risk_inverted = True: keep the raw score ("Sinto-me sobrecarregado")
- risk_inverted = False: flip it, 6 - raw on the 1-5 scale ("Sinto-me satisfeito")

Unparseable, blank or out-of-range answers are not scorable. They are
excluded from the fold and never raise.
"""
import math
from typing import Optional, Union

from sollar.shared.models import Question, Response
from .config import LikertScale

DEFAULT_SCALE = LikertScale()


def parse_raw_value(raw: Union[str, int, float, None]) -> Optional[float]:
    """Parse a stored answer as a finite float, None if it is not one."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        text = str(raw).strip()
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            return None
    if not math.isfinite(value):
        return None
    return value


def normalize_score(
    raw: float,
    risk_inverted: bool,
    scale: LikertScale = DEFAULT_SCALE,
) -> float:
    """Put a raw in-range score on the higher-is-riskier polarity."""
    return raw if risk_inverted else scale.invert(raw)


def score_response(
    response: Response,
    question: Optional[Question],
    scale: LikertScale = DEFAULT_SCALE,
) -> Optional[float]:
    """Normalized score of one response, None when it is not scorable.

    Args:
        response: The stored answer
        question: Question the answer belongs to (None if unknown)
        scale: Accepted answer range

    Returns:
        Normalized score, or None for non-likert questions and
        unparseable or out-of-range values
    """
    if question is None or not question.is_scorable:
        return None

    value = parse_raw_value(response.raw_value)
    if value is None or not scale.contains(value):
        return None

    return normalize_score(value, question.risk_inverted, scale)
