import threading

import pytest
from django.db import connection

from common.enums import AuditEvent, SessionStatus, SubmissionType
from contest.models import AuditLog, Candidate, Event, ExamSession, Result, Round
from contest.services import lifecycle
from contest.services.lifecycle import RoundController
from contest.services.sessions import record_violation, start_exam, submit_exam

pytestmark = pytest.mark.django_db(transaction=True)


def run_concurrently(fn, n):
    """Release n threads at once; each closes its own DB connection."""
    barrier = threading.Barrier(n)
    results, errors = [], []

    def worker(i):
        try:
            barrier.wait()
            results.append(fn(i))
        except Exception as e:
            errors.append(e)
        finally:
            connection.close()

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results, errors


def test_round_end_race_finalizes_once(round1, event, make_candidate, monkeypatch):
    people = [make_candidate() for _ in range(4)]
    for c in people:
        start_exam(c)
    submit_exam(people[0], round1, {})

    calls = []
    original = lifecycle.score_and_rank

    def counting(rnd):
        calls.append(rnd.pk)
        return original(rnd)

    monkeypatch.setattr(lifecycle, "score_and_rank", counting)

    def end(_):
        return RoundController(Event.objects.get(pk=event.pk)).end_round(triggered_by="race")

    results, errors = run_concurrently(end, 6)
    assert errors == []
    assert len(calls) == 1
    winners = [r for r in results if not r.already_completed]
    assert len(winners) == 1
    assert winners[0].auto_submitted == 3
    assert sum(r.already_completed for r in results) == 5

    assert Round.objects.get(pk=round1.pk).shortlisting_completed is True
    assert Result.objects.filter(round=round1).count() == 4
    assert AuditLog.objects.filter(event_type=AuditEvent.ROUND_ENDED).count() == 1


def test_duplicate_submit_race_keeps_one_payload(round1, candidate):
    start_exam(candidate)
    qids = [str(q) for q in round1.questions.values_list("id", flat=True)]
    payloads = [{qid: "A" for qid in qids}, {qid: "B" for qid in qids}]

    def submit(i):
        return submit_exam(Candidate.objects.get(pk=candidate.pk), round1, payloads[i % 2])

    results, errors = run_concurrently(submit, 2)
    assert errors == []
    assert sorted(r.already_submitted for r in results) == [False, True]

    chosen = set(ExamSession.objects.get(candidate=candidate).answers.values_list("selected_option", flat=True))
    assert chosen in ({"A"}, {"B"})


def test_concurrent_start_creates_one_session(round1, candidate):
    def start(_):
        return start_exam(Candidate.objects.get(pk=candidate.pk))

    results, errors = run_concurrently(start, 5)
    assert errors == []
    assert sum(r.created for r in results) == 1
    assert len({r.session.pk for r in results}) == 1
    assert ExamSession.objects.filter(candidate=candidate).count() == 1


def test_concurrent_violations_disqualify_once(round1, candidate):
    start_exam(candidate)

    def report(_):
        return record_violation(Candidate.objects.get(pk=candidate.pk), round1, {})

    results, errors = run_concurrently(report, 4)
    assert errors == []
    assert sum(r.disqualified for r in results) == 1
    session = ExamSession.objects.get(candidate=candidate)
    assert session.violation_count == 2
    assert session.submission_type == SubmissionType.AUTO_VIOLATION


def test_submit_racing_round_end(round1, event, candidate):
    start_exam(candidate)
    qids = [str(q) for q in round1.questions.values_list("id", flat=True)]

    def act(i):
        if i == 0:
            return submit_exam(Candidate.objects.get(pk=candidate.pk), round1, {qid: "C" for qid in qids})
        return RoundController(Event.objects.get(pk=event.pk)).end_round()

    results, errors = run_concurrently(act, 2)
    assert errors == []

    session = ExamSession.objects.get(candidate=candidate)
    assert session.status == SessionStatus.SUBMITTED
    if session.submission_type == SubmissionType.MANUAL:
        assert session.answers.count() == len(qids)
    else:
        assert session.submission_type == SubmissionType.AUTO_ROUND_END
        assert session.answers.count() == 0
    assert Result.objects.filter(round=round1, candidate=candidate).count() == 1
