from io import StringIO

import pytest
from django.core.management import CommandError, call_command

from common.enums import RoundStatus
from contest.models import AuditLog, Event, Result, Round
from contest.services.sessions import start_exam, submit_exam
from contest.tasks import expire_due_rounds, record_audit_event, rescore_round_task
from tests.helpers import answers_for, expire


def test_expire_due_rounds_ends_overdue_round(round1):
    expire(round1, 30)
    assert expire_due_rounds() == [1]
    assert Round.objects.get(pk=round1.pk).status == RoundStatus.COMPLETED
    assert expire_due_rounds() == []


def test_expire_due_rounds_leaves_running_round(round1):
    assert expire_due_rounds() == []
    assert Round.objects.get(pk=round1.pk).status == RoundStatus.ACTIVE


def test_expire_due_rounds_via_delay(round1):
    expire(round1, 30)
    expire_due_rounds.delay()
    assert Round.objects.get(pk=round1.pk).status == RoundStatus.COMPLETED


def test_record_audit_event_task(db):
    record_audit_event({"event_type": "ROUND_STARTED", "description": "x", "round_number": 2})
    assert AuditLog.objects.get().round_number == 2


def test_rescore_round_task(round1, controller, candidate, event):
    start_exam(candidate)
    submit_exam(candidate, round1, answers_for(round1, 4))
    controller.end_round()
    Result.objects.filter(candidate=candidate).update(score=0)

    out = rescore_round_task(str(event.pk), 1)
    assert out["scored"] == 1
    assert Result.objects.get(candidate=candidate).score == 4


# ----------------------------
# management commands
# ----------------------------

def test_setup_event_command(db):
    out = StringIO()
    call_command("setup_event", "Spring Quiz", "--rounds", "3", "--duration", "600",
                 "--qualify", "10", "--activate", stdout=out)
    event = Event.objects.get(slug="spring-quiz")
    assert event.is_active is True
    assert list(event.rounds.values_list("number", "duration_seconds", "qualify_count")) == [
        (1, 600, 10), (2, 600, 10), (3, 600, 10),
    ]
    assert "Created event" in out.getvalue()

    call_command("setup_event", "Spring Quiz", "--rounds", "3", "--duration", "300", stdout=StringIO())
    assert event.rounds.get(number=1).duration_seconds == 300


def test_rescore_round_command(round1, controller, candidate):
    start_exam(candidate)
    submit_exam(candidate, round1, answers_for(round1, 6))
    controller.end_round()

    out = StringIO()
    call_command("rescore_round", "1", stdout=out)
    assert "scored=1" in out.getvalue()


def test_rescore_round_command_rejects_running_round(round1):
    with pytest.raises(CommandError):
        call_command("rescore_round", "1", stdout=StringIO())
