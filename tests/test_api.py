import uuid

import pytest

from common.enums import AuditEvent
from contest.models import AuditLog, Candidate, Round
from tests.helpers import answers_for, expire


def _enter(api_client, token=None):
    body = {"token": str(token)} if token else {}
    return api_client.post("/api/candidates/enter/", body, format="json")


def _auth(api_client, token):
    api_client.credentials(HTTP_X_CANDIDATE_TOKEN=str(token))
    return api_client


def test_enter_is_idempotent(event, api_client):
    token = uuid.uuid4()
    first = _enter(api_client, token)
    assert first.status_code == 201
    assert first.data["token"] == str(token)
    assert first.data["created"] is True

    second = _enter(api_client, token)
    assert second.status_code == 200
    assert second.data["created"] is False
    assert Candidate.objects.filter(token=token).count() == 1


def test_enter_generates_token(event, api_client):
    res = _enter(api_client)
    assert res.status_code == 201
    uuid.UUID(res.data["token"])


def test_enter_requires_active_event(db, api_client):
    assert _enter(api_client).status_code == 409


def test_unknown_token_is_404(round1, api_client):
    _auth(api_client, uuid.uuid4())
    assert api_client.post("/api/exam/start/", {}, format="json").status_code == 404


def test_candidate_flow(round1, api_client):
    token = _enter(api_client).data["token"]
    _auth(api_client, token)

    status = api_client.get("/api/candidates/status/")
    assert status.data["can_participate"] is True

    start = api_client.post("/api/exam/start/", {}, format="json")
    assert start.status_code == 201
    assert start.data["created"] is True
    assert api_client.post("/api/exam/start/", {}, format="json").status_code == 200

    paper = api_client.get("/api/exam/paper/")
    assert paper.status_code == 200
    assert len(paper.data["questions"]) == 15
    assert all("correct_option" not in q for q in paper.data["questions"])

    first_q = paper.data["questions"][0]["id"]
    progress = api_client.post("/api/exam/progress/", {"answers": {first_q: "a"}, "position": 2}, format="json")
    assert progress.data == {"saved": 1, "is_submitted": False}

    submit = api_client.post(
        "/api/exam/submit/",
        {"answers": answers_for(round1, 9), "submission_type": "manual"},
        format="json",
    )
    assert submit.status_code == 200
    assert submit.data["success"] is True
    assert submit.data["already_submitted"] is False

    again = api_client.post("/api/exam/submit/", {"answers": {}}, format="json")
    assert again.status_code == 200
    assert again.data["already_submitted"] is True
    assert again.data["elapsed_seconds"] == submit.data["elapsed_seconds"]

    assert api_client.get("/api/candidates/status/").data["can_participate"] is False


def test_submit_after_grace_is_409(round1, api_client):
    token = _enter(api_client).data["token"]
    _auth(api_client, token)
    api_client.post("/api/exam/start/", {}, format="json")
    expire(round1, 60)

    late = api_client.post("/api/exam/submit/", {"answers": {}}, format="json")
    assert late.status_code == 409
    timer = api_client.post("/api/exam/submit/", {"answers": {}, "submission_type": "auto_timer"}, format="json")
    assert timer.status_code == 200


def test_submit_without_session_is_404(round1, api_client):
    _auth(api_client, _enter(api_client).data["token"])
    assert api_client.post("/api/exam/submit/", {"answers": {}}, format="json").status_code == 404


def test_violation_endpoint(round1, api_client):
    _auth(api_client, _enter(api_client).data["token"])
    api_client.post("/api/exam/start/", {}, format="json")

    first = api_client.post("/api/exam/violation/", {"answers": {}}, format="json")
    assert first.data["warning"] is True
    second = api_client.post("/api/exam/violation/", {"answers": {}}, format="json")
    assert second.data["disqualified"] is True
    assert api_client.post("/api/exam/start/", {}, format="json").status_code == 403


def test_bad_answers_payload_is_400(round1, api_client):
    _auth(api_client, _enter(api_client).data["token"])
    api_client.post("/api/exam/start/", {}, format="json")
    res = api_client.post("/api/exam/submit/", {"answers": "B"}, format="json")
    assert res.status_code == 400


# ----------------------------
# Admin
# ----------------------------

@pytest.mark.parametrize("method, url", [
    ("post", "/api/admin/rounds/1/start/"),
    ("post", "/api/admin/rounds/end/"),
    ("get", "/api/admin/dashboard/"),
    ("get", "/api/admin/rounds/1/results/"),
    ("get", "/api/admin/audit-logs/"),
    ("get", "/api/admin/participants/"),
    ("get", "/api/admin/rounds/1/submissions/"),
])
def test_admin_endpoints_require_staff(rounds, api_client, method, url):
    res = getattr(api_client, method)(url)
    assert res.status_code in (401, 403)


def test_admin_round_cycle(rounds, admin_client, api_client):
    start = admin_client.post("/api/admin/rounds/1/start/")
    assert start.status_code == 200
    assert start.data["round_number"] == 1
    assert admin_client.post("/api/admin/rounds/1/start/").status_code == 409

    token = _enter(api_client).data["token"]
    _auth(api_client, token)
    api_client.post("/api/exam/start/", {}, format="json")

    end = admin_client.post("/api/admin/rounds/end/")
    assert end.status_code == 200
    assert end.data["already_completed"] is False
    assert end.data["auto_submitted"] == 1
    assert admin_client.post("/api/admin/rounds/end/").data["already_completed"] is True

    results = admin_client.get("/api/admin/rounds/1/results/")
    assert results.data["count"] == 1
    assert results.data["results"][0]["token"] == token
    assert results.data["results"][0]["submission_type"] == "auto_round_end"

    shortlist = admin_client.post("/api/admin/rounds/1/shortlist/", {"top_n": 1}, format="json")
    assert shortlist.data["qualified_count"] == 1

    assert admin_client.post("/api/admin/rounds/1/rescore/").status_code == 200
    assert admin_client.post("/api/admin/rounds/2/start/").status_code == 200


def test_admin_round_update_and_reset(rounds, admin_client):
    res = admin_client.patch("/api/admin/rounds/2/", {"duration_seconds": 600}, format="json")
    assert res.status_code == 200
    assert res.data["duration_seconds"] == 600
    assert admin_client.patch("/api/admin/rounds/2/", {"duration_seconds": 5}, format="json").status_code == 400

    admin_client.post("/api/admin/rounds/1/start/")
    assert admin_client.post("/api/admin/rounds/1/reset/", {"confirm": "nope"}, format="json").status_code == 400
    reset = admin_client.post("/api/admin/rounds/1/reset/", {"confirm": "RESET_ROUND"}, format="json")
    assert reset.status_code == 200
    assert admin_client.get("/api/admin/rounds/1/").data["status"] == "pending"


def test_admin_start_needs_questions(event, admin_client):
    Round.objects.create(event=event, number=1, question_count=15)
    res = admin_client.post("/api/admin/rounds/1/start/")
    assert res.status_code == 409
    assert "15" in str(res.data["detail"])


def test_dashboard_and_activate(rounds, admin_client, event):
    dash = admin_client.get("/api/admin/dashboard/")
    assert dash.status_code == 200
    assert len(dash.data["rounds"]) == 3

    res = admin_client.post("/api/admin/event/activate/", {"slug": event.slug}, format="json")
    assert res.data == {"slug": event.slug, "is_active": True}


def test_audit_log_listing(admin_client, db):
    AuditLog.objects.create(event_type=AuditEvent.ROUND_STARTED, description="Round 1 started", round_number=1)
    AuditLog.objects.create(event_type=AuditEvent.ROUND_ENDED, description="Round 1 ended", round_number=1)

    everything = admin_client.get("/api/admin/audit-logs/")
    assert len(everything.data) == 2
    only = admin_client.get("/api/admin/audit-logs/", {"event_type": AuditEvent.ROUND_ENDED})
    assert [row["description"] for row in only.data] == ["Round 1 ended"]


def test_end_round_with_nothing_started_is_409(rounds, admin_client):
    assert admin_client.post("/api/admin/rounds/end/").status_code == 409


def test_submit_after_round_end_is_reported_not_stored(round1, admin_client, api_client):
    _auth(api_client, _enter(api_client).data["token"])
    api_client.post("/api/exam/start/", {}, format="json")
    admin_client.post("/api/admin/rounds/end/")

    late = api_client.post("/api/exam/submit/", {"answers": answers_for(round1, 15)}, format="json")
    assert late.status_code == 200
    assert late.data["already_submitted"] is True
    assert late.data["submission_type"] == "auto_round_end"
    assert late.data["answer_count"] == 0


def test_participants_listing(round1, admin_client, api_client):
    honest = _enter(api_client).data["token"]
    _auth(api_client, honest)
    api_client.post("/api/exam/start/", {}, format="json")
    api_client.post("/api/exam/submit/", {"answers": answers_for(round1, 3)}, format="json")

    api_client.credentials()
    cheater = _enter(api_client).data["token"]
    _auth(api_client, cheater)
    api_client.post("/api/exam/start/", {}, format="json")
    api_client.post("/api/exam/violation/", {"answers": {}}, format="json")
    api_client.post("/api/exam/violation/", {"answers": {}}, format="json")

    res = admin_client.get("/api/admin/participants/")
    assert res.status_code == 200
    assert res.data["count"] == 2
    by_token = {row["token"]: row for row in res.data["participants"]}

    assert by_token[honest]["is_disqualified"] is False
    assert by_token[honest]["last_seen_at"] is not None
    assert by_token[honest]["sessions"] == [{
        "round": 1, "status": "submitted", "submission_type": "manual",
        "violation_count": 0, "submitted_at": by_token[honest]["sessions"][0]["submitted_at"],
    }]

    flagged = by_token[cheater]
    assert flagged["is_disqualified"] is True
    assert flagged["disqualified_round"] == 1
    assert "2 tab switches" in flagged["disqualification_reason"]
    assert flagged["sessions"][0]["submission_type"] == "auto_violation"

    only = admin_client.get("/api/admin/participants/", {"disqualified": "true"})
    assert [row["token"] for row in only.data["participants"]] == [cheater]


def test_round_submissions_listing(round1, admin_client, api_client):
    done = _enter(api_client).data["token"]
    _auth(api_client, done)
    api_client.post("/api/exam/start/", {}, format="json")
    api_client.post("/api/exam/submit/", {"answers": answers_for(round1, 5)}, format="json")

    api_client.credentials()
    open_ = _enter(api_client).data["token"]
    _auth(api_client, open_)
    api_client.post("/api/exam/start/", {}, format="json")

    res = admin_client.get("/api/admin/rounds/1/submissions/")
    assert res.status_code == 200
    assert res.data["count"] == 2
    first, second = res.data["submissions"]
    assert (first["token"], first["status"], first["answer_count"]) == (done, "submitted", 15)
    assert (second["token"], second["status"], second["submitted_at"]) == (open_, "in_progress", None)
