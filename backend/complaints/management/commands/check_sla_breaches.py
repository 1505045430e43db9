"""
Management command: check_sla_breaches
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Stamps ``sla_breached_at`` on every overdue complaint that has not been
stamped yet and publishes ``SLABreached`` for each one.  Reads already
detect breaches lazily; this sweep is for an external scheduler (cron,
systemd timer) so that breach notifications go out even for complaints
nobody opens.

The command is **idempotent**: a complaint is stamped at most once.

Usage::

    python manage.py check_sla_breaches
    python manage.py check_sla_breaches --now 2024-01-05T00:00:00Z
"""

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from complaints.services import SLAService


class Command(BaseCommand):
    help = (
        "Stamps sla_breached_at on overdue complaints and emits breach "
        "notifications.  Safe to run repeatedly."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--now",
            help="ISO 8601 timestamp to evaluate deadlines against (default: current time).",
        )

    def handle(self, *args, **options):
        now = timezone.now()
        if options.get("now"):
            now = parse_datetime(options["now"])
            if now is None:
                raise CommandError(f"Invalid --now value: {options['now']!r}")
            if timezone.is_naive(now):
                now = timezone.make_aware(now)

        stamped = SLAService.sweep(now)

        if stamped:
            self.stdout.write(self.style.WARNING(
                f"  ⚠  {stamped} complaint(s) newly marked as SLA-breached."
            ))
        else:
            self.stdout.write(self.style.SUCCESS("  ✔  No new SLA breaches."))
