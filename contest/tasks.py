# contest/tasks.py
from __future__ import annotations

import logging

from celery import shared_task

from common.enums import EventRoundStatus
from .models import AuditLog, Event
from .services.lifecycle import RoundController

logger = logging.getLogger(__name__)


@shared_task(ignore_result=True)
def expire_due_rounds():
    """
    Beat sweep: end every running round whose deadline + grace has passed.
    Concurrent sweeps and admin calls are safe; end_round is guarded.
    """
    ended = []
    for event in Event.objects.filter(is_active=True, round_status=EventRoundStatus.RUNNING):
        summary = RoundController(event).expire_if_due()
        if summary and not summary.already_completed:
            ended.append(summary.round_number)
    if ended:
        logger.info("timer ended rounds %s", ended)
    return ended


@shared_task(ignore_result=True)
def record_audit_event(payload: dict):
    AuditLog.objects.create(
        event_type=payload.get("event_type", ""),
        description=payload.get("description", ""),
        round_number=payload.get("round_number"),
        actor=payload.get("actor", ""),
        metadata=payload.get("metadata") or {},
    )


@shared_task
def rescore_round_task(event_id: str, number: int, actor: str = "task"):
    event = Event.objects.get(pk=event_id)
    return RoundController(event).rescore(number, actor=actor)
