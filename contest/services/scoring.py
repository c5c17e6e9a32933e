# contest/services/scoring.py
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from django.db.models import F
from django.utils import timezone

from common.enums import SessionStatus
from ..models import Answer, ExamSession, Result, Round
from .questions import answer_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoredEntry:
    candidate_id: object
    token: str
    score: int
    elapsed_seconds: Optional[int]
    disqualified: bool = False
    rank: Optional[int] = None


def score_round(round_obj: Round) -> list[ScoredEntry]:
    """One entry per SUBMITTED session; score = answers matching the key."""
    key = answer_key(round_obj)
    tallies = defaultdict(int)
    answers = Answer.objects.filter(
        session__round=round_obj, session__status=SessionStatus.SUBMITTED
    ).values_list("session_id", "question_id", "selected_option")
    for session_id, question_id, selected in answers:
        if (selected or "").strip().upper() == key.get(str(question_id)):
            tallies[session_id] += 1

    sessions = (
        ExamSession.objects
        .filter(round=round_obj, status=SessionStatus.SUBMITTED)
        .select_related("candidate")
    )
    return [
        ScoredEntry(
            candidate_id=s.candidate_id,
            token=str(s.candidate.token),
            score=tallies.get(s.id, 0),
            elapsed_seconds=s.elapsed_seconds,
            disqualified=s.is_disqualified or s.candidate.is_disqualified,
        )
        for s in sessions
    ]


def _rank_key(entry: ScoredEntry):
    # score desc, time asc (unknown time last), token asc
    return (
        -entry.score,
        entry.elapsed_seconds is None,
        entry.elapsed_seconds or 0,
        entry.token,
    )


def rank_entries(entries: Iterable[ScoredEntry]) -> list[ScoredEntry]:
    """
    Dense 1..N ranking over non-disqualified entries. Disqualified entries
    come back last with rank None. Pure: same input, same output.
    """
    entries = list(entries)
    eligible = sorted((e for e in entries if not e.disqualified), key=_rank_key)
    excluded = sorted((e for e in entries if e.disqualified), key=lambda e: e.token)
    ranked = [replace(e, rank=pos) for pos, e in enumerate(eligible, start=1)]
    return ranked + [replace(e, rank=None) for e in excluded]


def persist_rankings(round_obj: Round, entries: list[ScoredEntry]) -> int:
    """Upsert one Result per entry and drop results of candidates no longer present."""
    now = timezone.now()
    rows = [
        Result(
            candidate_id=e.candidate_id,
            round=round_obj,
            score=e.score,
            elapsed_seconds=e.elapsed_seconds,
            rank=e.rank,
            is_qualified=False,
            is_disqualified=e.disqualified,
            evaluated_at=now,
        )
        for e in entries
    ]
    if rows:
        Result.objects.bulk_create(
            rows,
            update_conflicts=True,
            unique_fields=["candidate", "round"],
            update_fields=[
                "score", "elapsed_seconds", "rank", "is_qualified",
                "is_disqualified", "evaluated_at", "updated_at",
            ],
        )
    Result.objects.filter(round=round_obj).exclude(
        candidate_id__in=[e.candidate_id for e in entries]
    ).delete()
    return len(rows)


def score_and_rank(round_obj: Round) -> int:
    ranked = rank_entries(score_round(round_obj))
    count = persist_rankings(round_obj, ranked)
    logger.info("round %s: scored and ranked %s sessions", round_obj.number, count)
    return count


def get_results(round_obj: Round) -> list[dict]:
    sessions = {
        s["candidate_id"]: s
        for s in ExamSession.objects.filter(round=round_obj).values(
            "candidate_id", "submission_type", "violation_count"
        )
    }
    results = (
        Result.objects
        .filter(round=round_obj)
        .select_related("candidate")
        .order_by(F("rank").asc(nulls_last=True), F("score").desc(), F("candidate__token").asc())
    )
    out = []
    for r in results:
        s = sessions.get(r.candidate_id, {})
        out.append({
            "token": str(r.candidate.token),
            "score": r.score,
            "elapsed_seconds": r.elapsed_seconds,
            "rank": r.rank,
            "qualified": r.is_qualified,
            "disqualified": r.is_disqualified,
            "submission_type": s.get("submission_type", ""),
            "violation_count": s.get("violation_count", 0),
            "evaluated_at": r.evaluated_at,
        })
    return out
