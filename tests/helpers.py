from datetime import timedelta

from django.utils import timezone

from contest.models import Question, Round

LETTERS = "ABCD"


def correct_letter(number: int) -> str:
    return LETTERS[(number - 1) % 4]


def wrong_letter(number: int) -> str:
    return LETTERS[number % 4]


def add_questions(rnd: Round, count: int):
    return [
        Question.objects.create(
            round=rnd,
            number=n,
            text=f"Round {rnd.number} question {n}",
            options={letter: f"Option {letter}" for letter in LETTERS},
            correct_option=correct_letter(n),
        )
        for n in range(1, count + 1)
    ]


def answers_for(rnd: Round, correct: int) -> dict:
    """First `correct` questions answered right, the rest wrong."""
    out = {}
    for i, q in enumerate(rnd.questions.order_by("number")):
        out[str(q.id)] = q.correct_option if i < correct else wrong_letter(q.number)
    return out


def expire(rnd: Round, seconds_ago: int) -> Round:
    """Move the round deadline into the past."""
    Round.objects.filter(pk=rnd.pk).update(ends_at=timezone.now() - timedelta(seconds=seconds_ago))
    rnd.refresh_from_db()
    return rnd
