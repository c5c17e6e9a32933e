# contest/services/shortlist.py
from __future__ import annotations

import logging
from typing import Optional

from django.db import transaction
from django.utils import timezone

from common.enums import AuditEvent, RoundStatus
from ..exceptions import InvalidPayload, PreconditionFailed
from ..models import Candidate, Result, Round
from .audit import emit
from .retry import storage_retry

logger = logging.getLogger(__name__)


def is_eligible(candidate: Candidate, round_obj: Round) -> bool:
    """Round 1 is open to everyone; later rounds need a qualifying result in the previous one."""
    if candidate.is_disqualified:
        return False
    if round_obj.number <= 1:
        return True
    return Result.objects.filter(
        candidate=candidate,
        round__event_id=round_obj.event_id,
        round__number=round_obj.number - 1,
        is_qualified=True,
        is_disqualified=False,
    ).exists()


@storage_retry("shortlist_round")
def shortlist_round(round_obj: Round, top_n: Optional[int] = None, actor: str = "") -> dict:
    """
    Mark the top-N ranked, non-disqualified results of a completed round as
    qualified. Re-running replaces the previous selection.
    """
    round_obj.refresh_from_db()
    if round_obj.status != RoundStatus.COMPLETED:
        raise PreconditionFailed(f"Round {round_obj.number} must be completed before shortlisting.")
    nxt = round_obj.next()
    if nxt and nxt.status != RoundStatus.PENDING:
        raise PreconditionFailed(f"Round {nxt.number} has already started; shortlist is frozen.")

    top_n = round_obj.qualify_count if top_n is None else top_n
    try:
        top_n = int(top_n)
    except (TypeError, ValueError):
        raise InvalidPayload("top_n must be a positive integer.")
    if top_n <= 0:
        raise InvalidPayload("top_n must be a positive integer.")

    now = timezone.now()
    with transaction.atomic():
        results = Result.objects.filter(round=round_obj)
        results.update(is_qualified=False, updated_at=now)
        ranked = results.filter(is_disqualified=False, rank__isnull=False)
        qualified = ranked.filter(rank__lte=top_n).update(is_qualified=True, updated_at=now)
        total_eligible = ranked.count()
        Round.objects.filter(pk=round_obj.pk).update(
            shortlisting_completed=True, shortlisted_at=now, qualify_count=top_n, updated_at=now
        )
        emit(
            AuditEvent.SHORTLISTING_COMPLETED,
            f"Round {round_obj.number}: {qualified} of {total_eligible} qualified (top {top_n})",
            round_number=round_obj.number,
            actor=actor,
            metadata={"qualified_count": qualified, "total_eligible": total_eligible, "top_n": top_n},
        )

    round_obj.refresh_from_db()
    logger.info("round %s: shortlisted %s/%s (top %s)", round_obj.number, qualified, total_eligible, top_n)
    return {"qualified_count": qualified, "total_eligible": total_eligible, "top_n": top_n}
