# contest/views.py
from django.shortcuts import get_object_or_404
from rest_framework import permissions, status
from rest_framework.exceptions import NotFound
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import AuditLog, Event
from .permissions import IsAdmin
from .serializers import (
    AuditLogSerializer, EnterSerializer, ProgressSerializer, ResetRoundSerializer,
    RoundRefSerializer, RoundSerializer, RoundUpdateSerializer, ShortlistSerializer,
    SubmitSerializer, ViolationSerializer,
)
from .services.candidates import candidate_status, get_candidate, list_participants, register_candidate
from .services.lifecycle import RoundController
from .services.questions import paper_for
from .services.scoring import get_results
from .services.sessions import (
    get_session, list_submissions, record_violation, resolve_round, save_progress, start_exam,
    submit_exam,
)
from .services.shortlist import shortlist_round


def _token_from(request):
    return (
        request.headers.get("X-Candidate-Token")
        or request.data.get("token")
        or request.query_params.get("token")
    )


def _actor(request) -> str:
    user = getattr(request, "user", None)
    if user is not None and user.is_authenticated:
        return user.get_username()
    return "admin"


class CandidateMixin:
    """Candidate identity is the opaque token; no login."""
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def candidate(self, request):
        return get_candidate(_token_from(request))


# ----------------------------
# Candidate endpoints
# ----------------------------

class CandidateEnterView(CandidateMixin, APIView):
    """
    POST /api/candidates/enter/
    Body: { "token": "<uuid>" }   # optional; generated when absent
    """

    def post(self, request):
        s = EnterSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        token = s.validated_data.get("token") or request.headers.get("X-Candidate-Token")
        candidate, created = register_candidate(token)
        return Response(
            {"token": str(candidate.token), "created": created, **candidate_status(candidate)},
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class CandidateStatusView(CandidateMixin, APIView):
    def get(self, request):
        return Response(candidate_status(self.candidate(request)))


class ExamStartView(CandidateMixin, APIView):
    """
    POST /api/exam/start/
    Creates the session for the running round, or resumes the existing one.
    """

    def post(self, request):
        result = start_exam(self.candidate(request))
        return Response(
            result.as_dict(),
            status=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK,
        )


class ExamPaperView(CandidateMixin, APIView):
    def get(self, request):
        s = RoundRefSerializer(data=request.query_params)
        s.is_valid(raise_exception=True)
        candidate = self.candidate(request)
        rnd = resolve_round(candidate, s.validated_data.get("round"))
        return Response(paper_for(get_session(candidate, rnd)))


class ExamProgressView(CandidateMixin, APIView):
    """
    POST /api/exam/progress/
    Body: { "answers": {...}, "position": 4, "round": 1 }
    """

    def post(self, request):
        s = ProgressSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        candidate = self.candidate(request)
        rnd = resolve_round(candidate, s.validated_data.get("round"))
        out = save_progress(
            candidate, rnd, s.validated_data.get("answers"), s.validated_data.get("position")
        )
        return Response(out)


class ExamSubmitView(CandidateMixin, APIView):
    """
    POST /api/exam/submit/
    Body:
    {
      "answers": {"<question_id>": "B", ...}   // or [{"question_id": "...", "selected_option": "B"}]
      "submission_type": "manual" | "auto_timer" | "auto_violation" | "auto_round_end",
      "round": 1                               // optional; defaults to the current round
    }
    """

    def post(self, request):
        s = SubmitSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        candidate = self.candidate(request)
        rnd = resolve_round(candidate, s.validated_data.get("round"))
        result = submit_exam(
            candidate, rnd, s.validated_data.get("answers"), s.validated_data.get("submission_type")
        )
        return Response({"success": True, **result.as_dict()})


class ExamViolationView(CandidateMixin, APIView):
    def post(self, request):
        s = ViolationSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        candidate = self.candidate(request)
        rnd = resolve_round(candidate, s.validated_data.get("round"))
        return Response(record_violation(candidate, rnd, s.validated_data.get("answers")).as_dict())


# ----------------------------
# Admin endpoints
# ----------------------------

class AdminView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def controller(self) -> RoundController:
        return RoundController.for_active_event()


class EventActivateView(AdminView):
    """
    POST /api/admin/event/activate/
    Body: { "slug": "<event-slug>" }   # optional when only one event exists
    """

    def post(self, request):
        slug = request.data.get("slug")
        event = get_object_or_404(Event, slug=slug) if slug else Event.objects.order_by("created_at").first()
        if event is None:
            raise NotFound("No event configured.")
        event = RoundController(event).activate_event(actor=_actor(request))
        return Response({"slug": event.slug, "is_active": event.is_active})


class DashboardView(AdminView):
    def get(self, request):
        return Response(self.controller().dashboard())


class RoundStartView(AdminView):
    def post(self, request, number: int):
        return Response(self.controller().start_round(number, actor=_actor(request)))


class RoundEndView(AdminView):
    """
    POST /api/admin/rounds/end/
    Ends the running round. Repeating the call is a no-op with already_completed=true;
    409 when no round has been started yet.
    """

    def post(self, request):
        summary = self.controller().end_round(triggered_by=_actor(request))
        return Response(summary.as_dict())


class RoundShortlistView(AdminView):
    def post(self, request, number: int):
        s = ShortlistSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        rnd = self.controller().get_round(number)
        return Response(shortlist_round(rnd, s.validated_data.get("top_n"), actor=_actor(request)))


class RoundRescoreView(AdminView):
    def post(self, request, number: int):
        return Response(self.controller().rescore(number, actor=_actor(request)))


class RoundDetailView(AdminView):
    def get(self, request, number: int):
        return Response(RoundSerializer(self.controller().get_round(number)).data)

    def patch(self, request, number: int):
        s = RoundUpdateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        rnd = self.controller().update_round(number, actor=_actor(request), **s.validated_data)
        return Response(RoundSerializer(rnd).data)


class RoundResetView(AdminView):
    def post(self, request, number: int):
        ResetRoundSerializer(data=request.data).is_valid(raise_exception=True)
        return Response(self.controller().reset_round(number, actor=_actor(request)))


class RoundResultsView(AdminView):
    def get(self, request, number: int):
        rnd = self.controller().get_round(number)
        rows = get_results(rnd)
        return Response({"round": number, "status": rnd.status, "count": len(rows), "results": rows})


class AuditLogListView(AdminView):
    def get(self, request):
        qs = AuditLog.objects.all()
        event_type = request.query_params.get("event_type")
        if event_type:
            qs = qs.filter(event_type=event_type)
        return Response(AuditLogSerializer(qs[:500], many=True).data)


class ParticipantListView(AdminView):
    """
    GET /api/admin/participants/?disqualified=true
    Candidates of the active event with their per-round session status.
    """

    def get(self, request):
        rows = list_participants(self.controller().event)
        if request.query_params.get("disqualified") in ("1", "true"):
            rows = [r for r in rows if r["is_disqualified"]]
        return Response({"count": len(rows), "participants": rows})


class RoundSubmissionsView(AdminView):
    def get(self, request, number: int):
        rnd = self.controller().get_round(number)
        rows = list_submissions(rnd)
        return Response({"round": number, "status": rnd.status, "count": len(rows), "submissions": rows})
