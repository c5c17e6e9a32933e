from django.contrib import admin

from .models import Answer, AuditLog, Candidate, Event, ExamSession, Question, Result, Round


# ----- Inlines -----
class RoundInline(admin.TabularInline):
    model = Round
    extra = 0
    show_change_link = True
    fields = ("number", "title", "status", "duration_seconds", "question_count", "qualify_count", "shortlisting_completed")
    readonly_fields = ("status", "shortlisting_completed")
    ordering = ("number",)


class QuestionInline(admin.StackedInline):
    model = Question
    extra = 0
    fields = ("number", "text", "options", "correct_option")
    ordering = ("number",)


class AnswerInline(admin.TabularInline):
    model = Answer
    extra = 0
    raw_id_fields = ("question",)
    fields = ("question", "selected_option", "updated_at")
    readonly_fields = ("updated_at",)


# ----- Models -----
@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ("title", "slug", "is_active", "current_round", "round_status", "round_ends_at")
    list_filter = ("is_active", "round_status")
    search_fields = ("title", "slug")
    prepopulated_fields = {"slug": ("title",)}
    readonly_fields = ("current_round", "round_status", "round_started_at", "round_ends_at")
    inlines = [RoundInline]


@admin.register(Round)
class RoundAdmin(admin.ModelAdmin):
    list_display = ("event", "number", "status", "duration_seconds", "question_count", "qualify_count",
                    "started_at", "ends_at", "shortlisting_completed")
    list_filter = ("event", "status", "shortlisting_completed")
    readonly_fields = ("status", "started_at", "ends_at", "ended_at", "shortlisting_completed", "shortlisted_at")
    inlines = [QuestionInline]


@admin.register(Question)
class QuestionAdmin(admin.ModelAdmin):
    list_display = ("round", "number", "short_text", "correct_option")
    list_filter = ("round__event", "round__number")
    search_fields = ("text",)

    @admin.display(description="Text")
    def short_text(self, obj):
        return obj.text[:80]


@admin.register(Candidate)
class CandidateAdmin(admin.ModelAdmin):
    list_display = ("token", "event", "is_disqualified", "disqualified_round", "last_seen_at", "created_at")
    list_filter = ("is_disqualified", "event")
    search_fields = ("token",)
    readonly_fields = ("token",)


@admin.register(ExamSession)
class ExamSessionAdmin(admin.ModelAdmin):
    list_display = ("candidate", "round", "status", "submission_type", "elapsed_seconds",
                    "violation_count", "is_disqualified", "submitted_at")
    list_filter = ("round__number", "status", "submission_type", "is_disqualified")
    search_fields = ("candidate__token",)
    raw_id_fields = ("candidate", "round")
    inlines = [AnswerInline]


@admin.register(Result)
class ResultAdmin(admin.ModelAdmin):
    list_display = ("round", "rank", "candidate", "score", "elapsed_seconds", "is_qualified", "is_disqualified")
    list_filter = ("round__number", "is_qualified", "is_disqualified")
    search_fields = ("candidate__token",)
    ordering = ("round", "rank")


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "event_type", "round_number", "actor", "description")
    list_filter = ("event_type", "round_number")
    search_fields = ("description", "actor")
    readonly_fields = ("event_type", "description", "round_number", "actor", "metadata", "created_at")
