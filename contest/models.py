from __future__ import annotations

import uuid
from datetime import timedelta

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

from common.enums import (
    AuditEvent, EventRoundStatus, OptionLetter, RoundStatus, SessionStatus, SubmissionType,
)


# ----------------------------
# Common
# ----------------------------

class TimeStampedModel(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# ----------------------------
# Event / rounds
# ----------------------------

class Event(TimeStampedModel):
    title = models.CharField(max_length=200)
    slug  = models.SlugField(max_length=220, unique=True)
    is_active = models.BooleanField(default=False)

    current_round = models.PositiveIntegerField(default=0)
    round_status  = models.CharField(
        max_length=16, choices=EventRoundStatus.choices, default=EventRoundStatus.NOT_STARTED
    )
    round_started_at = models.DateTimeField(null=True, blank=True)
    round_ends_at    = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["is_active"], condition=Q(is_active=True), name="unique_active_event"
            )
        ]

    @classmethod
    def active(cls):
        return cls.objects.filter(is_active=True).first()

    def running_round(self):
        if self.round_status != EventRoundStatus.RUNNING:
            return None
        return self.rounds.filter(status=RoundStatus.ACTIVE).first()

    def __str__(self):
        return self.title


class Round(TimeStampedModel):
    event  = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="rounds")
    number = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    title  = models.CharField(max_length=200, blank=True)
    status = models.CharField(max_length=16, choices=RoundStatus.choices, default=RoundStatus.PENDING)

    duration_seconds = models.PositiveIntegerField(
        default=900, validators=[MinValueValidator(30), MaxValueValidator(4 * 3600)]
    )
    question_count = models.PositiveIntegerField(default=15, validators=[MinValueValidator(1)])
    qualify_count  = models.PositiveIntegerField(default=25, validators=[MinValueValidator(1)])
    shuffle_questions = models.BooleanField(default=False)

    started_at = models.DateTimeField(null=True, blank=True)
    ends_at    = models.DateTimeField(null=True, blank=True)
    ended_at   = models.DateTimeField(null=True, blank=True)

    shortlisting_completed = models.BooleanField(default=False)
    shortlisted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ("event", "number")
        constraints = [
            models.UniqueConstraint(fields=["event", "number"], name="uniq_round_number_per_event"),
            models.UniqueConstraint(
                fields=["event"], condition=Q(status=RoundStatus.ACTIVE), name="uniq_active_round_per_event"
            ),
        ]

    @property
    def is_running(self) -> bool:
        return self.status == RoundStatus.ACTIVE

    def previous(self):
        if self.number <= 1:
            return None
        return Round.objects.filter(event_id=self.event_id, number=self.number - 1).first()

    def next(self):
        return Round.objects.filter(event_id=self.event_id, number=self.number + 1).first()

    def past_deadline(self, grace_seconds: int = 0, now=None) -> bool:
        if not self.ends_at:
            return False
        now = now or timezone.now()
        return now > self.ends_at + timedelta(seconds=grace_seconds)

    def __str__(self):
        return f"{self.event} · Round {self.number}"


class Question(TimeStampedModel):
    round  = models.ForeignKey(Round, on_delete=models.CASCADE, related_name="questions")
    number = models.PositiveIntegerField(default=1)
    text   = models.TextField()
    options = models.JSONField(default=dict, help_text='{"A": "...", "B": "...", "C": "...", "D": "..."}')
    correct_option = models.CharField(max_length=1, choices=OptionLetter.choices)

    class Meta:
        ordering = ("round", "number", "created_at")
        constraints = [
            models.UniqueConstraint(fields=["round", "number"], name="uniq_question_number_per_round"),
        ]

    def option_letters(self):
        return {str(k).strip().upper() for k in (self.options or {}).keys()}

    def save(self, *args, **kwargs):
        self.correct_option = (self.correct_option or "").strip().upper()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"Q{self.number}: {self.text[:60]}"


# ----------------------------
# Candidates / sessions
# ----------------------------

class Candidate(TimeStampedModel):
    token = models.UUIDField(unique=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="candidates", null=True, blank=True)

    is_disqualified = models.BooleanField(default=False)
    disqualification_reason = models.CharField(max_length=255, blank=True)
    disqualified_round = models.PositiveIntegerField(null=True, blank=True)
    last_seen_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return str(self.token)


class ExamSession(TimeStampedModel):
    candidate = models.ForeignKey(Candidate, on_delete=models.CASCADE, related_name="sessions")
    round     = models.ForeignKey(Round, on_delete=models.CASCADE, related_name="sessions")
    status    = models.CharField(max_length=16, choices=SessionStatus.choices, default=SessionStatus.NOT_STARTED)

    started_at   = models.DateTimeField(null=True, blank=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    elapsed_seconds = models.PositiveIntegerField(null=True, blank=True)
    submission_type = models.CharField(max_length=16, choices=SubmissionType.choices, blank=True)

    violation_count  = models.PositiveIntegerField(default=0)
    is_disqualified  = models.BooleanField(default=False)
    current_position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ("round", "created_at")
        constraints = [
            models.UniqueConstraint(fields=["candidate", "round"], name="uniq_session_per_candidate_round"),
        ]
        indexes = [models.Index(fields=["round", "status"])]

    @property
    def is_submitted(self) -> bool:
        return self.status == SessionStatus.SUBMITTED

    def elapsed_until(self, when) -> int | None:
        if not self.started_at:
            return None
        return max(0, int((when - self.started_at).total_seconds()))

    def __str__(self):
        return f"{self.candidate} · R{self.round.number} · {self.status}"


class Answer(TimeStampedModel):
    session  = models.ForeignKey(ExamSession, on_delete=models.CASCADE, related_name="answers")
    question = models.ForeignKey(Question, on_delete=models.CASCADE, related_name="answers")
    selected_option = models.CharField(max_length=1, choices=OptionLetter.choices)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["session", "question"], name="uniq_answer_per_session_question"),
        ]


# ----------------------------
# Results / audit
# ----------------------------

class Result(TimeStampedModel):
    candidate = models.ForeignKey(Candidate, on_delete=models.CASCADE, related_name="results")
    round     = models.ForeignKey(Round, on_delete=models.CASCADE, related_name="results")
    score     = models.PositiveIntegerField(default=0)
    elapsed_seconds = models.PositiveIntegerField(null=True, blank=True)
    rank      = models.PositiveIntegerField(null=True, blank=True)
    is_qualified    = models.BooleanField(default=False)
    is_disqualified = models.BooleanField(default=False)
    evaluated_at    = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ("round", "rank")
        constraints = [
            models.UniqueConstraint(fields=["candidate", "round"], name="uniq_result_per_candidate_round"),
        ]

    def __str__(self):
        return f"{self.candidate} · R{self.round.number} · #{self.rank}"


class AuditLog(TimeStampedModel):
    event_type   = models.CharField(max_length=40, choices=AuditEvent.choices)
    description  = models.TextField(blank=True)
    round_number = models.PositiveIntegerField(null=True, blank=True)
    actor        = models.CharField(max_length=120, blank=True)
    metadata     = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ("-created_at",)
        indexes = [models.Index(fields=["event_type", "created_at"])]

    def __str__(self):
        return f"{self.event_type} @ {self.created_at:%Y-%m-%d %H:%M:%S}"
