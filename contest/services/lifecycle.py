# contest/services/lifecycle.py
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Optional

from django.db import IntegrityError, transaction
from django.db.models import Count, Q
from django.utils import timezone
from rest_framework.exceptions import NotFound

from common.enums import AuditEvent, EventRoundStatus, RoundStatus, SessionStatus, SubmissionType
from ..conf import contest_setting
from ..exceptions import InvalidPayload, PreconditionFailed
from ..models import Candidate, Event, ExamSession, Result, Round
from .audit import emit
from .questions import question_count
from .retry import storage_retry
from .scoring import score_and_rank
from .shortlist import shortlist_round

logger = logging.getLogger(__name__)


@dataclass
class EndRoundSummary:
    already_completed: bool
    round_number: int
    auto_submitted: int = 0
    scored: int = 0
    qualified: int = 0
    total_eligible: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


class RoundController:
    """
    Owns every round/event transition of one event. Round start and round
    end are guarded by conditional updates so concurrent callers resolve to
    exactly one effective transition.
    """

    def __init__(self, event: Event):
        self.event = event

    @classmethod
    def for_active_event(cls) -> "RoundController":
        event = Event.active()
        if event is None:
            raise PreconditionFailed("No active event.")
        return cls(event)

    def get_round(self, number: int) -> Round:
        rnd = Round.objects.filter(event=self.event, number=number).first()
        if rnd is None:
            raise NotFound(f"Round {number} does not exist.")
        return rnd

    # --- event ---

    def activate_event(self, actor: str = "") -> Event:
        with transaction.atomic():
            Event.objects.exclude(pk=self.event.pk).filter(is_active=True).update(is_active=False)
            Event.objects.filter(pk=self.event.pk).update(is_active=True, updated_at=timezone.now())
            emit(AuditEvent.EVENT_ACTIVATED, f"Event {self.event.slug} activated", actor=actor)
        self.event.refresh_from_db()
        logger.info("event %s activated", self.event.slug)
        return self.event

    # --- start ---

    @storage_retry("start_round")
    def start_round(self, number: int, actor: str = "") -> dict:
        rnd = self.get_round(number)
        self.event.refresh_from_db()
        if not self.event.is_active:
            raise PreconditionFailed("Event is not active.")
        if rnd.status != RoundStatus.PENDING:
            raise PreconditionFailed(f"Round {number} has already been started.")
        if Round.objects.filter(event=self.event, status=RoundStatus.ACTIVE).exists():
            raise PreconditionFailed("Another round is still running.")

        prev = rnd.previous()
        if number > 1:
            if prev is None or prev.status != RoundStatus.COMPLETED:
                raise PreconditionFailed(f"Round {number - 1} must be completed first.")
            if not prev.shortlisting_completed:
                raise PreconditionFailed(f"Shortlisting for round {prev.number} is not completed.")

        have = question_count(rnd)
        if have < rnd.question_count:
            raise PreconditionFailed(
                f"Round {number} needs {rnd.question_count} questions, found {have}."
            )

        now = timezone.now()
        ends_at = now + timedelta(seconds=rnd.duration_seconds)
        try:
            with transaction.atomic():
                won = Round.objects.filter(pk=rnd.pk, status=RoundStatus.PENDING).update(
                    status=RoundStatus.ACTIVE, started_at=now, ends_at=ends_at, updated_at=now
                )
                if not won:
                    raise PreconditionFailed(f"Round {number} has already been started.")
                Event.objects.filter(pk=self.event.pk).update(
                    current_round=number,
                    round_status=EventRoundStatus.RUNNING,
                    round_started_at=now,
                    round_ends_at=ends_at,
                    updated_at=now,
                )
                emit(
                    AuditEvent.ROUND_STARTED,
                    f"Round {number} started ({rnd.duration_seconds}s)",
                    round_number=number,
                    actor=actor,
                    metadata={"deadline": ends_at.isoformat()},
                )
        except IntegrityError:
            raise PreconditionFailed("Another round is still running.")

        self.event.refresh_from_db()
        logger.info("round %s started, deadline %s", number, ends_at.isoformat())
        return {
            "round_number": number,
            "started_at": now,
            "deadline": ends_at,
            "duration_seconds": rnd.duration_seconds,
        }

    # --- end ---

    @storage_retry("end_round")
    def end_round(self, triggered_by: str = "admin") -> EndRoundSummary:
        """
        Finalize the running round exactly once: guard, force-submit open
        sessions, score, rank, shortlist. The whole sequence is one
        transaction; on failure the round stays ACTIVE and the call can be
        repeated.
        """
        rnd = Round.objects.filter(event=self.event, status=RoundStatus.ACTIVE).first()
        if rnd is None:
            latest = (
                Round.objects.filter(event=self.event, status=RoundStatus.COMPLETED)
                .order_by("-number").first()
            )
            if latest is None:
                raise PreconditionFailed("No round is running.")
            return EndRoundSummary(already_completed=True, round_number=latest.number)

        now = timezone.now()
        with transaction.atomic():
            guard = Round.objects.filter(pk=rnd.pk, status=RoundStatus.ACTIVE).update(
                status=RoundStatus.COMPLETED, ended_at=now, updated_at=now
            )
            if not guard:
                logger.debug("round %s already completed by another caller", rnd.number)
                return EndRoundSummary(already_completed=True, round_number=rnd.number)

            Event.objects.filter(pk=self.event.pk).update(
                round_status=EventRoundStatus.COMPLETED, updated_at=now
            )
            rnd.refresh_from_db()
            auto_submitted = self._force_submit(rnd, now)
            scored = score_and_rank(rnd)
            shortlist = shortlist_round(rnd, rnd.qualify_count, actor=triggered_by)
            emit(
                AuditEvent.ROUND_ENDED,
                f"Round {rnd.number} ended by {triggered_by}: {auto_submitted} auto-submitted, "
                f"{scored} scored, {shortlist['qualified_count']} qualified",
                round_number=rnd.number,
                actor=triggered_by,
                metadata={"auto_submitted": auto_submitted, "scored": scored, **shortlist},
            )

        self.event.refresh_from_db()
        logger.info(
            "round %s ended (%s): auto_submitted=%s scored=%s qualified=%s",
            rnd.number, triggered_by, auto_submitted, scored, shortlist["qualified_count"],
        )
        return EndRoundSummary(
            already_completed=False,
            round_number=rnd.number,
            auto_submitted=auto_submitted,
            scored=scored,
            qualified=shortlist["qualified_count"],
            total_eligible=shortlist["total_eligible"],
        )

    def _force_submit(self, rnd: Round, now) -> int:
        """Close every open session of the round as auto_round_end."""
        open_sessions = (
            ExamSession.objects.select_for_update()
            .filter(round=rnd, status=SessionStatus.IN_PROGRESS)
            .order_by("pk")
        )
        started = list(open_sessions.values_list("pk", "started_at"))
        if not started:
            return 0
        closed = ExamSession.objects.filter(round=rnd, status=SessionStatus.IN_PROGRESS).update(
            status=SessionStatus.SUBMITTED,
            submitted_at=now,
            submission_type=SubmissionType.AUTO_ROUND_END,
            updated_at=now,
        )

        rows = [ExamSession(pk=pk, started_at=started_at) for pk, started_at in started]
        for s in rows:
            s.elapsed_seconds = s.elapsed_until(now)
        ExamSession.objects.bulk_update(
            rows, ["elapsed_seconds"], batch_size=int(contest_setting("FORCE_SUBMIT_BATCH_SIZE"))
        )
        emit(
            AuditEvent.AUTO_SUBMIT_ROUND_END,
            f"Round {rnd.number}: {closed} sessions auto-submitted at round end",
            round_number=rnd.number,
            metadata={"count": closed},
        )
        return closed

    def expire_if_due(self, now=None) -> Optional[EndRoundSummary]:
        """Timer entry point: ends the running round once deadline + grace has passed."""
        rnd = Round.objects.filter(event=self.event, status=RoundStatus.ACTIVE).first()
        grace = int(contest_setting("SUBMIT_GRACE_SECONDS"))
        if rnd is None or not rnd.past_deadline(grace, now):
            return None
        return self.end_round(triggered_by="timer")

    # --- repair / admin ---

    def rescore(self, number: int, actor: str = "") -> dict:
        """Re-run scoring, ranking and shortlisting for a completed round."""
        rnd = self.get_round(number)
        if rnd.status != RoundStatus.COMPLETED:
            raise PreconditionFailed(f"Round {number} is not completed.")
        with transaction.atomic():
            scored = score_and_rank(rnd)
            shortlist = shortlist_round(rnd, rnd.qualify_count, actor=actor)
            emit(
                AuditEvent.ROUND_RESCORED,
                f"Round {number} rescored: {scored} scored",
                round_number=number,
                actor=actor,
                metadata={"scored": scored, **shortlist},
            )
        logger.info("round %s rescored by %s", number, actor or "system")
        return {"round_number": number, "scored": scored, **shortlist}

    def update_round(self, number: int, actor: str = "", **changes) -> Round:
        rnd = self.get_round(number)
        if rnd.status != RoundStatus.PENDING:
            raise PreconditionFailed(f"Round {number} can only be changed before it starts.")
        allowed = ("title", "duration_seconds", "question_count", "qualify_count", "shuffle_questions")
        fields = [k for k in allowed if changes.get(k) is not None]
        if not fields:
            raise InvalidPayload("Nothing to update.")
        for k in fields:
            setattr(rnd, k, changes[k])
        rnd.save(update_fields=fields + ["updated_at"])
        emit(
            AuditEvent.ROUND_UPDATED,
            f"Round {number} updated: {', '.join(fields)}",
            round_number=number,
            actor=actor,
            metadata={k: changes[k] for k in fields},
        )
        return rnd

    def reset_round(self, number: int, actor: str = "") -> dict:
        """Drop every session and result of the latest started round and put it back to PENDING."""
        rnd = self.get_round(number)
        if rnd.status == RoundStatus.PENDING:
            raise PreconditionFailed(f"Round {number} has not started.")
        nxt = rnd.next()
        if nxt and nxt.status != RoundStatus.PENDING:
            raise PreconditionFailed(f"Round {nxt.number} has already started; reset it first.")

        now = timezone.now()
        with transaction.atomic():
            restored = Candidate.objects.filter(
                sessions__round=rnd, disqualified_round=number
            ).update(is_disqualified=False, disqualification_reason="", disqualified_round=None, updated_at=now)
            sessions, _ = ExamSession.objects.filter(round=rnd).delete()
            Result.objects.filter(round=rnd).delete()
            Round.objects.filter(pk=rnd.pk).update(
                status=RoundStatus.PENDING, started_at=None, ends_at=None, ended_at=None,
                shortlisting_completed=False, shortlisted_at=None, updated_at=now,
            )
            Event.objects.filter(pk=self.event.pk).update(
                current_round=number - 1,
                round_status=EventRoundStatus.COMPLETED if number > 1 else EventRoundStatus.NOT_STARTED,
                round_started_at=None,
                round_ends_at=None,
                updated_at=now,
            )
            emit(
                AuditEvent.ROUND_RESET,
                f"Round {number} reset",
                round_number=number,
                actor=actor,
                metadata={"deleted_rows": sessions, "restored_candidates": restored},
            )
        self.event.refresh_from_db()
        logger.warning("round %s reset by %s", number, actor or "system")
        return {"round_number": number, "deleted_rows": sessions, "restored_candidates": restored}

    def dashboard(self) -> dict:
        self.event.refresh_from_db()
        rounds = (
            self.event.rounds
            .annotate(
                questions_loaded=Count("questions", distinct=True),
                sessions_started=Count("sessions", distinct=True),
                sessions_submitted=Count(
                    "sessions", filter=Q(sessions__status=SessionStatus.SUBMITTED), distinct=True
                ),
            )
            .order_by("number")
        )
        candidates = Candidate.objects.filter(event=self.event)
        return {
            "event": {
                "title": self.event.title,
                "slug": self.event.slug,
                "is_active": self.event.is_active,
                "current_round": self.event.current_round,
                "round_status": self.event.round_status,
                "round_started_at": self.event.round_started_at,
                "round_ends_at": self.event.round_ends_at,
            },
            "candidates": {
                "total": candidates.count(),
                "disqualified": candidates.filter(is_disqualified=True).count(),
            },
            "rounds": [
                {
                    "number": r.number,
                    "title": r.title,
                    "status": r.status,
                    "duration_seconds": r.duration_seconds,
                    "question_count": r.question_count,
                    "questions_loaded": r.questions_loaded,
                    "qualify_count": r.qualify_count,
                    "sessions_started": r.sessions_started,
                    "sessions_submitted": r.sessions_submitted,
                    "shortlisting_completed": r.shortlisting_completed,
                    "started_at": r.started_at,
                    "ends_at": r.ends_at,
                    "ended_at": r.ended_at,
                }
                for r in rounds
            ],
        }
