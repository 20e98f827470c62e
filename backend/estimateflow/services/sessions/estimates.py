import math
from typing import Iterable, Optional

from estimateflow.models import Session

DECK = ["1", "2", "3", "5", "8", "13", "20", "40", "100", "?", "☕"]


def _as_number(value: str) -> Optional[float]:
    # "1_0" is not a number to browser clients
    if isinstance(value, str) and "_" in value:
        return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    return n if math.isfinite(n) else None


def _format(n: float) -> str:
    return str(int(n)) if n.is_integer() else str(n)


def median_numeric(values: Iterable[Optional[str]]) -> Optional[str]:
    """Upper median of the numeric votes, as a string.

    Non-numeric cards ("?", "☕") and empty slots are ignored. For an even
    count the higher of the two middle values wins, so {5, 8} -> "8".
    """
    nums = sorted(n for n in (_as_number(v) for v in values if v) if n is not None)
    if not nums:
        return None
    return _format(nums[len(nums) // 2])


def summarize_round(session: Session) -> dict:
    votes = session.round.votes_by_participant_id
    return {
        'voterCount': sum(1 for p in session.participants.values() if not p.is_observer),
        'votedCount': sum(1 for v in votes.values() if v is not None),
        'suggested': median_numeric(votes.values()),
    }
