"""Audit and usage event writers."""

import logging
import math
from typing import Any, Dict, Optional
from uuid import uuid4

from ..models import AuditEvent, UsageEvent

logger = logging.getLogger(__name__)


def _non_negative_int(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return max(0, int(round(number)))


def _non_negative_cost(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return round(max(0.0, number), 6)


class EventWriter:
    """Inserts audit and usage rows, one short transaction each."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def write_audit_event(self, user_id: Optional[str], action: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        async with self.session_factory() as db:
            db.add(AuditEvent(user_id=user_id, action=action, event_metadata=metadata or {}))
            await db.commit()
        logger.info(f"[audit] {action}", extra={"user_id": user_id, "action": action})

    async def write_usage_event(
        self,
        user_id: str,
        use_case: str,
        tokens_in: Any,
        tokens_out: Any,
        cost_estimate: Any,
    ) -> str:
        """Insert a usage row; token counts are rounded and clamped at zero."""
        event_id = str(uuid4())
        async with self.session_factory() as db:
            db.add(UsageEvent(
                id=event_id,
                user_id=user_id,
                use_case=use_case,
                tokens_in=_non_negative_int(tokens_in),
                tokens_out=_non_negative_int(tokens_out),
                cost_estimate=_non_negative_cost(cost_estimate),
            ))
            await db.commit()
        return event_id
