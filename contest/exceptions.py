# contest/exceptions.py
from rest_framework import status
from rest_framework.exceptions import APIException


class ContestError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request could not be processed."
    default_code = "contest_error"


class InvalidPayload(ContestError):
    default_detail = "Invalid payload."
    default_code = "invalid_payload"


class UnknownCandidate(ContestError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Unknown candidate token."
    default_code = "unknown_candidate"


class SessionNotFound(ContestError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "No exam session found for this round."
    default_code = "no_session"


class NotEligible(ContestError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You are not eligible for this round."
    default_code = "not_eligible"


class Conflict(ContestError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict"
    default_code = "conflict"


class RoundNotRunning(Conflict):
    default_detail = "No round is currently running."
    default_code = "round_not_running"


class SubmissionWindowClosed(Conflict):
    default_detail = "Submission window has closed."
    default_code = "submission_window_closed"


class PreconditionFailed(Conflict):
    default_detail = "Precondition failed."
    default_code = "precondition_failed"
