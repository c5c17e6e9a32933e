# contest/management/commands/setup_event.py
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils.text import slugify

from common.enums import RoundStatus
from contest.conf import contest_setting
from contest.models import Event, Round
from contest.services.lifecycle import RoundController


class Command(BaseCommand):
    help = "Create or update an event and its rounds (round settings only change while a round is pending)."

    def add_arguments(self, parser):
        parser.add_argument("title", type=str)
        parser.add_argument("--slug", type=str, default=None)
        parser.add_argument("--rounds", type=int, default=3)
        parser.add_argument("--duration", type=int, default=None, help="Round duration in seconds")
        parser.add_argument("--questions", type=int, default=None, help="Questions required per round")
        parser.add_argument("--qualify", type=int, default=None, help="Top-N qualifying from each round")
        parser.add_argument("--activate", action="store_true")

    def handle(self, *args, **opts):
        title = opts["title"].strip()
        if not title:
            raise CommandError("title is required")
        if opts["rounds"] < 1:
            raise CommandError("--rounds must be >= 1")

        slug = opts["slug"] or slugify(title)
        duration = opts["duration"] or contest_setting("ROUND_DURATION_SECONDS")
        questions = opts["questions"] or contest_setting("QUESTIONS_PER_ROUND")
        qualify = opts["qualify"] or contest_setting("QUALIFY_COUNT")

        with transaction.atomic():
            event, created = Event.objects.get_or_create(slug=slug, defaults={"title": title})
            if not created and event.title != title:
                event.title = title
                event.save(update_fields=["title", "updated_at"])

            for number in range(1, opts["rounds"] + 1):
                rnd, made = Round.objects.get_or_create(
                    event=event, number=number,
                    defaults={
                        "title": f"Round {number}",
                        "duration_seconds": duration,
                        "question_count": questions,
                        "qualify_count": qualify,
                    },
                )
                if not made and rnd.status == RoundStatus.PENDING:
                    rnd.duration_seconds = duration
                    rnd.question_count = questions
                    rnd.qualify_count = qualify
                    rnd.save(update_fields=["duration_seconds", "question_count", "qualify_count", "updated_at"])
                elif not made:
                    self.stdout.write(self.style.WARNING(f"Round {number} is {rnd.status}; left unchanged."))

        if opts["activate"]:
            RoundController(event).activate_event(actor="setup_event")

        verb = "Created" if created else "Updated"
        self.stdout.write(self.style.SUCCESS(
            f"{verb} event '{event.title}' ({event.slug}) with {opts['rounds']} rounds"
            f"{' [active]' if opts['activate'] else ''}"
        ))
