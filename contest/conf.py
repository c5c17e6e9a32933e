# contest/conf.py
from django.conf import settings

DEFAULTS = {
    "SUBMIT_GRACE_SECONDS": 5,
    "VIOLATION_LIMIT": 2,
    "ROUND_DURATION_SECONDS": 900,
    "QUESTIONS_PER_ROUND": 15,
    "QUALIFY_COUNT": 25,
    "STORAGE_RETRY_ATTEMPTS": 3,
    "STORAGE_RETRY_BACKOFF": 0.2,
    "STORAGE_RETRY_MAX_BACKOFF": 0.8,
    "TIMER_SWEEP_SECONDS": 5.0,
    "FORCE_SUBMIT_BATCH_SIZE": 500,
}


def contest_setting(name: str):
    """Read one key of settings.CONTEST at call time, falling back to DEFAULTS."""
    overrides = getattr(settings, "CONTEST", None) or {}
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]
