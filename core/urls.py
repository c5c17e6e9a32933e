# core/urls.py
from django.contrib import admin
from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from contest.views import (
    AuditLogListView, CandidateEnterView, CandidateStatusView, DashboardView,
    EventActivateView, ExamPaperView, ExamProgressView, ExamStartView, ExamSubmitView,
    ExamViolationView, ParticipantListView, RoundDetailView, RoundEndView, RoundRescoreView,
    RoundResetView, RoundResultsView, RoundShortlistView, RoundStartView, RoundSubmissionsView,
)

urlpatterns = [
    path('admin/', admin.site.urls),

    path("api/auth/token/",         TokenObtainPairView.as_view(), name="auth-token"),
    path("api/auth/token/refresh/", TokenRefreshView.as_view(),    name="auth-token-refresh"),

    path("api/candidates/enter/",  CandidateEnterView.as_view(),  name="candidate-enter"),
    path("api/candidates/status/", CandidateStatusView.as_view(), name="candidate-status"),

    path("api/exam/start/",     ExamStartView.as_view(),     name="exam-start"),
    path("api/exam/paper/",     ExamPaperView.as_view(),     name="exam-paper"),
    path("api/exam/progress/",  ExamProgressView.as_view(),  name="exam-progress"),
    path("api/exam/submit/",    ExamSubmitView.as_view(),    name="exam-submit"),
    path("api/exam/violation/", ExamViolationView.as_view(), name="exam-violation"),

    path("api/admin/event/activate/", EventActivateView.as_view(), name="admin-event-activate"),
    path("api/admin/dashboard/",      DashboardView.as_view(),     name="admin-dashboard"),
    path("api/admin/audit-logs/",     AuditLogListView.as_view(),  name="admin-audit-logs"),
    path("api/admin/participants/",   ParticipantListView.as_view(), name="admin-participants"),

    path("api/admin/rounds/end/",                   RoundEndView.as_view(),       name="admin-round-end"),
    path("api/admin/rounds/<int:number>/",          RoundDetailView.as_view(),    name="admin-round-detail"),
    path("api/admin/rounds/<int:number>/start/",    RoundStartView.as_view(),     name="admin-round-start"),
    path("api/admin/rounds/<int:number>/shortlist/", RoundShortlistView.as_view(), name="admin-round-shortlist"),
    path("api/admin/rounds/<int:number>/rescore/",  RoundRescoreView.as_view(),   name="admin-round-rescore"),
    path("api/admin/rounds/<int:number>/reset/",    RoundResetView.as_view(),     name="admin-round-reset"),
    path("api/admin/rounds/<int:number>/results/",  RoundResultsView.as_view(),   name="admin-round-results"),
    path("api/admin/rounds/<int:number>/submissions/", RoundSubmissionsView.as_view(), name="admin-round-submissions"),
]
