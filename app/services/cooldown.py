"""Cooldown enforcement between assessments for one health concern.

``evaluate_cooldown`` is the pure decision; ``CooldownGate`` looks up the
latest active assessment and applies it. The lookup is repeated on every
call. Two generation requests for the same (user, health concern) racing
each other may both be allowed; assessments are human-paced so the last
writer's cooldown simply wins.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from app.models.assessment import Assessment
from app.models.base import utcnow
import logging

logger = logging.getLogger(__name__)

_DAY = timedelta(days=1)


@dataclass
class CooldownDecision:
    allowed: bool
    reason: Optional[str] = None
    days_since_last: Optional[int] = None
    days_remaining: Optional[int] = None
    last_assessment_date: Optional[datetime] = None


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def evaluate_cooldown(
    latest: Optional[Assessment], now: Optional[datetime] = None
) -> CooldownDecision:
    """Decide whether a new assessment may be generated.

    Elapsed time is counted in whole 24h days (floor division).
    """
    if latest is None:
        return CooldownDecision(allowed=True, reason="No previous assessment found")

    now = _as_utc(now or utcnow())
    created_at = _as_utc(latest.created_at)
    days_since_last = (now - created_at) // _DAY

    if days_since_last >= latest.min_days_before_next_assessment:
        return CooldownDecision(allowed=True, days_since_last=days_since_last)

    days_remaining = latest.min_days_before_next_assessment - days_since_last
    return CooldownDecision(
        allowed=False,
        reason=f"Must wait {days_remaining} more day(s) before next assessment",
        days_since_last=days_since_last,
        days_remaining=days_remaining,
        last_assessment_date=latest.created_at,
    )


class CooldownGate:
    """Reads the most recent active assessment and applies the cooldown rule."""

    def __init__(self, assessment_service):
        self._assessments = assessment_service

    async def check(
        self, user_id: str, health_concern_id: str, now: Optional[datetime] = None
    ) -> CooldownDecision:
        latest = await self._assessments.get_latest_active(user_id, health_concern_id)
        decision = evaluate_cooldown(latest, now)
        if not decision.allowed:
            logger.info(
                f"Cooldown active for user {user_id}, health concern "
                f"{health_concern_id}: {decision.days_remaining} day(s) remaining"
            )
        return decision
