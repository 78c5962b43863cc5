from django.core.management.base import BaseCommand, CommandError

from scheduling.models import Booking
from scheduling.services.booking import TERMINAL_STATUSES, force_cancel
from scheduling.services.timewindows import parse_calendar_date


class Command(BaseCommand):
    help = "System-cancel every open booking of a serial policy or chamber on one date."

    def add_arguments(self, parser):
        parser.add_argument("--date", required=True, help="YYYY-MM-DD")
        parser.add_argument("--policy", type=int)
        parser.add_argument("--chamber", type=int)
        parser.add_argument("--reason", default="Cancelled by the facility.")
        parser.add_argument("--dry-run", action="store_true")

    def handle(self, *args, **opts):
        try:
            day = parse_calendar_date(opts["date"])
        except ValueError as e:
            raise CommandError(str(e))
        if bool(opts["policy"]) == bool(opts["chamber"]):
            raise CommandError("Give exactly one of --policy or --chamber.")

        qs = Booking.objects.filter(date=day).exclude(status__in=TERMINAL_STATUSES)
        if opts["policy"]:
            qs = qs.filter(policy_id=opts["policy"])
        else:
            qs = qs.filter(chamber_id=opts["chamber"])

        ids = list(qs.order_by("start_time").values_list("id", flat=True))
        if opts["dry_run"]:
            self.stdout.write(f"{len(ids)} bookings would be cancelled")
            return
        for pk in ids:
            booking = force_cancel(pk, reason=opts["reason"])
            self.stdout.write(f"cancelled {booking.reference}")
        self.stdout.write(self.style.SUCCESS(f"Cancelled {len(ids)} bookings for {day:%Y-%m-%d}."))
