# contest/apps.py
from django.apps import AppConfig


class ContestConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "contest"

    def ready(self):
        # Ensures Celery sees contest.tasks (for @shared_task)
        import contest.tasks  # noqa: F401
