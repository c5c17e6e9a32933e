# contest/management/commands/rescore_round.py
from django.core.management.base import BaseCommand, CommandError
from rest_framework.exceptions import APIException

from contest.models import Event
from contest.services.lifecycle import RoundController
from contest.tasks import rescore_round_task


class Command(BaseCommand):
    help = "Re-run scoring, ranking and shortlisting for a completed round."

    def add_arguments(self, parser):
        parser.add_argument("number", type=int)
        parser.add_argument("--event", type=str, default=None, help="Event slug (default: the active event)")
        parser.add_argument("--queue", action="store_true", help="Dispatch to the Celery worker instead")

    def handle(self, *args, **opts):
        event = (
            Event.objects.filter(slug=opts["event"]).first() if opts["event"] else Event.active()
        )
        if event is None:
            raise CommandError("No such event (or no active event).")

        if opts["queue"]:
            rescore_round_task.delay(str(event.pk), opts["number"], actor="rescore_round")
            self.stdout.write(self.style.SUCCESS(f"Queued rescore of round {opts['number']}"))
            return

        try:
            out = RoundController(event).rescore(opts["number"], actor="rescore_round")
        except APIException as e:
            raise CommandError(str(e.detail)) from e
        self.stdout.write(self.style.SUCCESS(
            f"Round {out['round_number']}: scored={out['scored']} "
            f"qualified={out['qualified_count']}/{out['total_eligible']} (top {out['top_n']})"
        ))
