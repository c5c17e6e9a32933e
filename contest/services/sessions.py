# contest/services/sessions.py
"""
Per-candidate exam session state machine.

    NOT_STARTED -> IN_PROGRESS -> SUBMITTED

SUBMITTED is terminal. Every transition into it is a conditional update
("where status != submitted") so exactly one writer wins, and only the
winner's answers are recorded.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from django.db import transaction
from django.db.models import Count, F
from django.utils import timezone

from common.enums import AuditEvent, RoundStatus, SessionStatus, SubmissionType
from ..conf import contest_setting
from ..exceptions import NotEligible, RoundNotRunning, SessionNotFound, SubmissionWindowClosed
from ..models import Candidate, ExamSession, Round
from .audit import emit
from .candidates import candidate_event
from .ledger import normalize_answers, record_answers, recorded_count
from .retry import storage_retry
from .shortlist import is_eligible

logger = logging.getLogger(__name__)


@dataclass
class StartResult:
    session: ExamSession
    created: bool

    def as_dict(self) -> dict:
        s = self.session
        return {
            "session_id": str(s.id),
            "round": s.round.number,
            "created": self.created,
            "status": s.status,
            "is_submitted": s.is_submitted,
            "started_at": s.started_at,
            "deadline": s.round.ends_at,
            "duration_seconds": s.round.duration_seconds,
            "resume_position": s.current_position,
        }


@dataclass
class SubmitResult:
    already_submitted: bool
    elapsed_seconds: Optional[int]
    answer_count: int
    submission_type: str
    submitted_at: Optional[datetime] = None

    def as_dict(self) -> dict:
        return {
            "already_submitted": self.already_submitted,
            "elapsed_seconds": self.elapsed_seconds,
            "answer_count": self.answer_count,
            "submission_type": self.submission_type,
            "submitted_at": self.submitted_at,
        }


@dataclass
class ViolationResult:
    violation_count: int = 0
    limit: int = 0
    warning: bool = False
    auto_submitted: bool = False
    disqualified: bool = False
    ignored: bool = False
    detail: str = ""

    def as_dict(self) -> dict:
        return {
            "violation_count": self.violation_count,
            "limit": self.limit,
            "warning": self.warning,
            "auto_submitted": self.auto_submitted,
            "disqualified": self.disqualified,
            "ignored": self.ignored,
            "detail": self.detail,
        }


# ----------------------------
# Lookups
# ----------------------------

def resolve_round(candidate: Candidate, number: Optional[int] = None) -> Round:
    """Explicit round number, else the event's current round."""
    event = candidate_event(candidate)
    if event is None:
        raise RoundNotRunning("Event is not active.")
    number = number or event.current_round
    rnd = event.rounds.filter(number=number).first() if number else None
    if rnd is None:
        raise RoundNotRunning()
    return rnd


def get_session(candidate: Candidate, round_obj: Round) -> ExamSession:
    session = (
        ExamSession.objects
        .select_related("round", "candidate")
        .filter(candidate=candidate, round=round_obj)
        .first()
    )
    if session is None:
        raise SessionNotFound()
    return session


def list_submissions(round_obj: Round) -> list[dict]:
    """Sessions of one round for the admin view, latest submission first."""
    sessions = (
        ExamSession.objects.filter(round=round_obj)
        .select_related("candidate")
        .annotate(answer_count=Count("answers"))
        .order_by(F("submitted_at").desc(nulls_last=True), "candidate__token")
    )
    return [
        {
            "token": str(s.candidate.token),
            "status": s.status,
            "submission_type": s.submission_type,
            "started_at": s.started_at,
            "submitted_at": s.submitted_at,
            "elapsed_seconds": s.elapsed_seconds,
            "answer_count": s.answer_count,
            "violation_count": s.violation_count,
            "is_disqualified": s.is_disqualified,
        }
        for s in sessions
    ]


def _grace() -> int:
    return int(contest_setting("SUBMIT_GRACE_SECONDS"))


def _lock_running(round_obj: Round) -> bool:
    """Re-read the round row under lock; call inside an atomic block."""
    status = Round.objects.select_for_update().values_list("status", flat=True).get(pk=round_obj.pk)
    return status == RoundStatus.ACTIVE


# ----------------------------
# StartExam
# ----------------------------

@storage_retry("start_exam")
def start_exam(candidate: Candidate) -> StartResult:
    """Create or resume the candidate's session for the running round."""
    event = candidate_event(candidate)
    rnd = event.running_round() if event else None
    if rnd is None:
        raise RoundNotRunning()

    candidate.refresh_from_db(fields=["is_disqualified", "disqualification_reason"])
    if candidate.is_disqualified:
        raise NotEligible(candidate.disqualification_reason or "You have been disqualified.")
    if not is_eligible(candidate, rnd):
        raise NotEligible(f"You did not qualify for round {rnd.number}.")

    existing = ExamSession.objects.select_related("round").filter(candidate=candidate, round=rnd).first()
    if existing:
        logger.debug("candidate %s resumed round %s", candidate.token, rnd.number)
        return StartResult(session=existing, created=False)

    now = timezone.now()
    if rnd.past_deadline(_grace(), now):
        raise SubmissionWindowClosed("Round time is over.")

    with transaction.atomic():
        # end_round may have committed since running_round() was read
        if not _lock_running(rnd):
            raise RoundNotRunning()
        session, created = ExamSession.objects.get_or_create(
            candidate=candidate,
            round=rnd,
            defaults={"status": SessionStatus.IN_PROGRESS, "started_at": now},
        )
    if created:
        logger.info("candidate %s started round %s", candidate.token, rnd.number)
        emit(
            AuditEvent.EXAM_STARTED,
            f"Candidate {candidate.token} started round {rnd.number}",
            round_number=rnd.number,
            actor=str(candidate.token),
        )
    return StartResult(session=session, created=created)


# ----------------------------
# SaveProgress
# ----------------------------

@storage_retry("save_progress")
def save_progress(candidate: Candidate, round_obj: Round, answers_payload=None,
                  position: Optional[int] = None) -> dict:
    session = get_session(candidate, round_obj)
    if session.is_submitted:
        return {"saved": 0, "is_submitted": True}
    if round_obj.status != RoundStatus.ACTIVE:
        raise RoundNotRunning()
    if round_obj.past_deadline(_grace()):
        raise SubmissionWindowClosed()

    answers = normalize_answers(round_obj, answers_payload)
    now = timezone.now()
    fields = {"updated_at": now}
    if position is not None:
        fields["current_position"] = max(0, int(position))

    with transaction.atomic():
        if not _lock_running(round_obj):
            session.refresh_from_db(fields=["status"])
            if session.is_submitted:
                return {"saved": 0, "is_submitted": True}
            raise RoundNotRunning()
        live = ExamSession.objects.filter(pk=session.pk, status=SessionStatus.IN_PROGRESS).update(**fields)
        if not live:
            return {"saved": 0, "is_submitted": True}
        saved = record_answers(session, answers)
    return {"saved": saved, "is_submitted": False}


# ----------------------------
# SubmitExam
# ----------------------------

@storage_retry("submit_exam")
def submit_exam(candidate: Candidate, round_obj: Round, answers_payload=None,
                submission_type=SubmissionType.MANUAL) -> SubmitResult:
    """
    Idempotent final submission. A repeat submit returns the original
    outcome with already_submitted=True. Timer submissions bypass the
    grace window; all other types are refused after deadline + grace.
    """
    sub_type = SubmissionType.clamp(submission_type)
    session = get_session(candidate, round_obj)
    if session.is_submitted:
        return _already_submitted(session)
    if round_obj.status != RoundStatus.ACTIVE:
        raise RoundNotRunning()

    now = timezone.now()
    if sub_type != SubmissionType.AUTO_TIMER and round_obj.past_deadline(_grace(), now):
        raise SubmissionWindowClosed()

    answers = normalize_answers(round_obj, answers_payload)
    elapsed = session.elapsed_until(now)
    with transaction.atomic():
        won = _lock_running(round_obj) and (
            ExamSession.objects
            .filter(pk=session.pk)
            .exclude(status=SessionStatus.SUBMITTED)
            .update(
                status=SessionStatus.SUBMITTED,
                submitted_at=now,
                elapsed_seconds=elapsed,
                submission_type=sub_type,
                updated_at=now,
            )
        )
        if won:
            record_answers(session, answers)

    if not won:
        session.refresh_from_db()
        if not session.is_submitted:
            raise RoundNotRunning()
        logger.debug("candidate %s: duplicate submit for round %s", candidate.token, round_obj.number)
        return _already_submitted(session)

    count = recorded_count(session)
    logger.info(
        "candidate %s submitted round %s (%s, %s answers, %ss)",
        candidate.token, round_obj.number, sub_type, count, elapsed,
    )
    emit(
        AuditEvent.EXAM_SUBMITTED,
        f"Candidate {candidate.token} submitted round {round_obj.number} ({sub_type})",
        round_number=round_obj.number,
        actor=str(candidate.token),
        metadata={"submission_type": str(sub_type), "answer_count": count, "elapsed_seconds": elapsed},
    )
    return SubmitResult(
        already_submitted=False,
        elapsed_seconds=elapsed,
        answer_count=count,
        submission_type=str(sub_type),
        submitted_at=now,
    )


def _already_submitted(session: ExamSession) -> SubmitResult:
    return SubmitResult(
        already_submitted=True,
        elapsed_seconds=session.elapsed_seconds,
        answer_count=recorded_count(session),
        submission_type=session.submission_type,
        submitted_at=session.submitted_at,
    )


# ----------------------------
# RecordViolation
# ----------------------------

@storage_retry("record_violation")
def record_violation(candidate: Candidate, round_obj: Round, answers_payload=None) -> ViolationResult:
    """
    Count one focus-loss report. Below the limit it is a warning; at the
    limit the session is auto-submitted with the answers so far and the
    candidate is disqualified.
    """
    limit = int(contest_setting("VIOLATION_LIMIT"))
    if not round_obj.is_running:
        return ViolationResult(limit=limit, ignored=True, detail="Round is not running.")
    session = (
        ExamSession.objects.select_related("round")
        .filter(candidate=candidate, round=round_obj).first()
    )
    if session is None or session.is_submitted:
        return ViolationResult(
            violation_count=session.violation_count if session else 0,
            limit=limit, ignored=True, detail="No active session.",
        )

    answers = normalize_answers(round_obj, answers_payload)
    now = timezone.now()
    disqualified = False
    with transaction.atomic():
        bumped = (
            ExamSession.objects
            .filter(pk=session.pk, status=SessionStatus.IN_PROGRESS)
            .update(violation_count=F("violation_count") + 1, updated_at=now)
        )
        if not bumped:
            return ViolationResult(limit=limit, ignored=True, detail="Session already submitted.")
        count = ExamSession.objects.values_list("violation_count", flat=True).get(pk=session.pk)

        if count >= limit:
            reason = f"Auto-disqualified: {count} tab switches (limit = {limit})"
            disqualified = bool(
                ExamSession.objects
                .filter(pk=session.pk, status=SessionStatus.IN_PROGRESS)
                .update(
                    status=SessionStatus.SUBMITTED,
                    submitted_at=now,
                    elapsed_seconds=session.elapsed_until(now),
                    submission_type=SubmissionType.AUTO_VIOLATION,
                    is_disqualified=True,
                    updated_at=now,
                )
            )
            if disqualified:
                record_answers(session, answers)
                Candidate.objects.filter(pk=candidate.pk).update(
                    is_disqualified=True,
                    disqualification_reason=reason,
                    disqualified_round=round_obj.number,
                    updated_at=now,
                )
                emit(
                    AuditEvent.TAB_SWITCH_DISQUALIFY,
                    f"Candidate {candidate.token}: {reason}",
                    round_number=round_obj.number,
                    actor=str(candidate.token),
                    metadata={"violation_count": count, "limit": limit},
                )
        else:
            emit(
                AuditEvent.TAB_SWITCH_WARNING,
                f"Candidate {candidate.token}: violation {count} of {limit}",
                round_number=round_obj.number,
                actor=str(candidate.token),
                metadata={"violation_count": count, "limit": limit},
            )

    if disqualified:
        candidate.refresh_from_db()
        logger.info("candidate %s disqualified in round %s after %s violations",
                    candidate.token, round_obj.number, count)
        return ViolationResult(
            violation_count=count, limit=limit, auto_submitted=True, disqualified=True,
            detail=candidate.disqualification_reason,
        )
    return ViolationResult(
        violation_count=count, limit=limit, warning=True,
        detail=f"Warning {count} of {limit}: leaving the exam again will end your attempt.",
    )
