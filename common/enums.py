from django.db import models


class EventRoundStatus(models.TextChoices):
    NOT_STARTED = "not_started", "Not started"
    RUNNING     = "running",     "Running"
    COMPLETED   = "completed",   "Completed"


class RoundStatus(models.TextChoices):
    PENDING   = "pending",   "Pending"
    ACTIVE    = "active",    "Active"
    COMPLETED = "completed", "Completed"


class SessionStatus(models.TextChoices):
    NOT_STARTED = "not_started", "Not started"
    IN_PROGRESS = "in_progress", "In progress"
    SUBMITTED   = "submitted",   "Submitted"


class SubmissionType(models.TextChoices):
    MANUAL         = "manual",         "Manual"
    AUTO_TIMER     = "auto_timer",     "Timer expired"
    AUTO_VIOLATION = "auto_violation", "Violation limit"
    AUTO_ROUND_END = "auto_round_end", "Round ended"

    @classmethod
    def clamp(cls, value) -> "SubmissionType":
        """Unknown or empty values fall back to MANUAL."""
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.MANUAL


class OptionLetter(models.TextChoices):
    A = "A", "A"
    B = "B", "B"
    C = "C", "C"
    D = "D", "D"


class AuditEvent(models.TextChoices):
    EVENT_ACTIVATED        = "EVENT_ACTIVATED",        "Event activated"
    CANDIDATE_REGISTERED   = "CANDIDATE_REGISTERED",   "Candidate registered"
    ROUND_STARTED          = "ROUND_STARTED",          "Round started"
    ROUND_ENDED            = "ROUND_ENDED",            "Round ended"
    ROUND_UPDATED          = "ROUND_UPDATED",          "Round updated"
    ROUND_RESET            = "ROUND_RESET",            "Round reset"
    ROUND_RESCORED         = "ROUND_RESCORED",         "Round rescored"
    EXAM_STARTED           = "EXAM_STARTED",           "Exam started"
    EXAM_SUBMITTED         = "EXAM_SUBMITTED",         "Exam submitted"
    AUTO_SUBMIT_ROUND_END  = "AUTO_SUBMIT_ROUND_END",  "Auto-submitted at round end"
    TAB_SWITCH_WARNING     = "TAB_SWITCH_WARNING",     "Violation warning"
    TAB_SWITCH_DISQUALIFY  = "TAB_SWITCH_DISQUALIFY",  "Violation disqualification"
    SHORTLISTING_COMPLETED = "SHORTLISTING_COMPLETED", "Shortlisting completed"
