# contest/services/candidates.py
from __future__ import annotations

import logging
import uuid
from typing import Optional

from django.db.models import Prefetch
from django.utils import timezone

from common.enums import AuditEvent, RoundStatus
from ..exceptions import InvalidPayload, PreconditionFailed, UnknownCandidate
from ..models import Candidate, Event, ExamSession
from .audit import emit
from .shortlist import is_eligible

logger = logging.getLogger(__name__)


def parse_token(token) -> uuid.UUID:
    try:
        return uuid.UUID(str(token).strip())
    except (TypeError, ValueError, AttributeError):
        raise InvalidPayload("token must be a UUID.")


def register_candidate(token=None, event: Optional[Event] = None):
    """Idempotent entry. Returns (candidate, created)."""
    event = event or Event.active()
    if event is None:
        raise PreconditionFailed("Event is not active.")
    token = parse_token(token) if token else uuid.uuid4()

    candidate, created = Candidate.objects.get_or_create(token=token, defaults={"event": event})
    Candidate.objects.filter(pk=candidate.pk).update(last_seen_at=timezone.now())
    if created:
        logger.info("candidate %s registered", token)
        emit(AuditEvent.CANDIDATE_REGISTERED, f"Candidate {token} registered", actor=str(token))
    return candidate, created


def get_candidate(token) -> Candidate:
    if not token:
        raise UnknownCandidate()
    try:
        return Candidate.objects.get(token=parse_token(token))
    except (Candidate.DoesNotExist, InvalidPayload):
        raise UnknownCandidate()


def candidate_event(candidate: Candidate) -> Optional[Event]:
    """Fresh read of the candidate's event (falls back to the active one)."""
    if candidate.event_id:
        return Event.objects.filter(pk=candidate.event_id).first()
    return Event.active()


def candidate_status(candidate: Candidate) -> dict:
    event = candidate_event(candidate)
    data = {
        "token": str(candidate.token),
        "is_disqualified": candidate.is_disqualified,
        "disqualification_reason": candidate.disqualification_reason,
        "event": None,
        "current_round": 0,
        "round_status": None,
        "deadline": None,
        "eligible": False,
        "can_participate": False,
        "session": None,
    }
    if event is None:
        return data

    data["event"] = {"title": event.title, "slug": event.slug, "is_active": event.is_active}
    data["current_round"] = event.current_round
    data["round_status"] = event.round_status
    rnd = event.rounds.filter(number=event.current_round).first() if event.current_round else None
    if rnd is None:
        return data

    data["deadline"] = rnd.ends_at
    data["eligible"] = is_eligible(candidate, rnd)
    session = ExamSession.objects.filter(candidate=candidate, round=rnd).first()
    if session:
        data["session"] = {
            "status": session.status,
            "started_at": session.started_at,
            "submitted_at": session.submitted_at,
            "violation_count": session.violation_count,
            "current_position": session.current_position,
        }
    data["can_participate"] = bool(
        event.is_active
        and rnd.status == RoundStatus.ACTIVE
        and data["eligible"]
        and not (session and session.is_submitted)
    )
    return data


def list_participants(event: Event) -> list[dict]:
    """Admin roster: every candidate of the event, newest first, with their per-round sessions."""
    candidates = (
        Candidate.objects.filter(event=event)
        .prefetch_related(
            Prefetch("sessions", queryset=ExamSession.objects.select_related("round").order_by("round__number"))
        )
        .order_by("-created_at", "token")
    )
    return [
        {
            "token": str(c.token),
            "is_disqualified": c.is_disqualified,
            "disqualification_reason": c.disqualification_reason,
            "disqualified_round": c.disqualified_round,
            "last_seen_at": c.last_seen_at,
            "created_at": c.created_at,
            "sessions": [
                {
                    "round": s.round.number,
                    "status": s.status,
                    "submission_type": s.submission_type,
                    "violation_count": s.violation_count,
                    "submitted_at": s.submitted_at,
                }
                for s in c.sessions.all()
            ],
        }
        for c in candidates
    ]
