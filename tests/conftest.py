import uuid
from datetime import timedelta

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient

from common.enums import SessionStatus
from contest.models import Answer, Candidate, Event, ExamSession, Round
from contest.services.lifecycle import RoundController
from core.celery import app as celery_app
from tests.helpers import add_questions, answers_for


@pytest.fixture(autouse=True)
def celery_eager():
    # The app reads config from Django settings under the CELERY namespace, where
    # prefixed keys win, so override those rather than the bare lowercase names.
    previous = celery_app.conf.task_always_eager
    celery_app.conf.update(CELERY_TASK_ALWAYS_EAGER=True, CELERY_TASK_EAGER_PROPAGATES=False)
    yield
    celery_app.conf.update(CELERY_TASK_ALWAYS_EAGER=previous)


@pytest.fixture(autouse=True)
def fast_retry(settings):
    settings.CONTEST = {
        **settings.CONTEST,
        "STORAGE_RETRY_BACKOFF": 0,
        "STORAGE_RETRY_MAX_BACKOFF": 0,
    }


@pytest.fixture
def event(db):
    return Event.objects.create(title="Quiz Night", slug="quiz-night", is_active=True)


@pytest.fixture
def rounds(event):
    out = []
    for number in (1, 2, 3):
        rnd = Round.objects.create(
            event=event, number=number, title=f"Round {number}",
            duration_seconds=900, question_count=15, qualify_count=25,
        )
        add_questions(rnd, 15)
        out.append(rnd)
    return out


@pytest.fixture
def controller(event):
    return RoundController(event)


@pytest.fixture
def make_candidate(event):
    def _make(**kwargs):
        kwargs.setdefault("token", uuid.uuid4())
        return Candidate.objects.create(event=event, **kwargs)
    return _make


@pytest.fixture
def candidate(make_candidate):
    return make_candidate()


@pytest.fixture
def round1(rounds, controller):
    controller.start_round(1)
    rnd = rounds[0]
    rnd.refresh_from_db()
    return rnd


@pytest.fixture
def submitted_session():
    """Create a SUBMITTED session with answers directly, bypassing the services."""
    def _make(candidate, rnd, correct, elapsed, disqualified=False):
        session = ExamSession.objects.create(
            candidate=candidate,
            round=rnd,
            status=SessionStatus.SUBMITTED,
            started_at=timezone.now() - timedelta(seconds=elapsed),
            submitted_at=timezone.now(),
            elapsed_seconds=elapsed,
            submission_type="manual",
            is_disqualified=disqualified,
        )
        Answer.objects.bulk_create([
            Answer(session=session, question_id=qid, selected_option=opt)
            for qid, opt in answers_for(rnd, correct).items()
        ])
        return session
    return _make


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def admin_client(db):
    user = get_user_model().objects.create_user(username="ops", password="x-pass-123", is_staff=True)
    client = APIClient()
    client.force_authenticate(user=user)
    return client
