# contest/services/questions.py
from __future__ import annotations

from ..models import ExamSession, Round
from ..utils_rounds import deterministic_shuffle, paper_seed


def _options_for(options) -> list[dict]:
    return [
        {"letter": str(letter).strip().upper(), "text": text}
        for letter, text in sorted((options or {}).items(), key=lambda kv: str(kv[0]).upper())
    ]


def get_questions(round_obj: Round, reveal_answers: bool = False) -> list[dict]:
    out = []
    for q in round_obj.questions.order_by("number", "created_at"):
        row = {
            "id": str(q.id),
            "number": q.number,
            "text": q.text,
            "options": _options_for(q.options),
        }
        if reveal_answers:
            row["correct_option"] = q.correct_option
        out.append(row)
    return out


def answer_key(round_obj: Round) -> dict[str, str]:
    """question_id -> canonical (upper-case) correct letter."""
    return {
        str(qid): (opt or "").strip().upper()
        for qid, opt in round_obj.questions.values_list("id", "correct_option")
    }


def option_letters(round_obj: Round) -> dict[str, set]:
    return {str(q.id): q.option_letters() for q in round_obj.questions.all()}


def question_count(round_obj: Round) -> int:
    return round_obj.questions.count()


def paper_for(session: ExamSession) -> dict:
    """Candidate-facing paper. Never carries correct options."""
    rnd = session.round
    questions = get_questions(rnd)
    if rnd.shuffle_questions:
        by_id = {q["id"]: q for q in questions}
        order = deterministic_shuffle(by_id.keys(), paper_seed(rnd.id, session.candidate.token))
        questions = [by_id[qid] for qid in order]
    saved = {
        str(qid): opt for qid, opt in session.answers.values_list("question_id", "selected_option")
    }
    return {
        "round": rnd.number,
        "deadline": rnd.ends_at,
        "duration_seconds": rnd.duration_seconds,
        "status": session.status,
        "resume_position": session.current_position,
        "questions": questions,
        "saved_answers": saved,
    }
