# contest/services/ledger.py
from __future__ import annotations

import logging
import uuid

from ..models import Answer, ExamSession, Round
from .questions import option_letters

logger = logging.getLogger(__name__)


def _pairs(payload):
    """Yield (question_id, option) from a dict or a list of {question_id, selected_option}."""
    if isinstance(payload, dict):
        yield from payload.items()
        return
    if isinstance(payload, (list, tuple)):
        for item in payload:
            if not isinstance(item, dict):
                continue
            qid = item.get("question_id", item.get("questionId"))
            opt = item.get("selected_option", item.get("selectedOption"))
            yield qid, opt


def normalize_answers(round_obj: Round, payload) -> dict[str, str]:
    """
    Clean a candidate answer payload against the round's questions.

    Unknown question ids, missing values and letters the question does not
    offer are dropped. Letters are trimmed and upper-cased. A repeated
    question id keeps the last value.
    """
    if not payload:
        return {}
    letters = option_letters(round_obj)
    clean: dict[str, str] = {}
    dropped = 0
    for qid, opt in _pairs(payload):
        if qid is None or opt is None:
            dropped += 1
            continue
        try:
            qid = str(uuid.UUID(str(qid).strip()))
        except ValueError:
            dropped += 1
            continue
        opt = str(opt).strip().upper()
        if qid not in letters or opt not in letters[qid]:
            dropped += 1
            continue
        clean[qid] = opt
    if dropped:
        logger.debug("round %s: dropped %s malformed answer entries", round_obj.number, dropped)
    return clean


def record_answers(session: ExamSession, answers: dict[str, str]) -> int:
    """Upsert on (session, question); last write wins."""
    if not answers:
        return 0
    rows = [
        Answer(session=session, question_id=qid, selected_option=opt)
        for qid, opt in answers.items()
    ]
    Answer.objects.bulk_create(
        rows,
        update_conflicts=True,
        unique_fields=["session", "question"],
        update_fields=["selected_option", "updated_at"],
    )
    return len(rows)


def recorded_count(session: ExamSession) -> int:
    return session.answers.count()
