from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError  # type: ignore

from apps.hostels.models import Hostel
from apps.realtime.sync import RoomAvailabilitySync


class Command(BaseCommand):
    help = "Follows room availability of one hostel and prints every change"

    def add_arguments(self, parser):
        parser.add_argument("hostel_id", type=int)
        parser.add_argument("--student", type=int, default=None, help="Hide notices about this student's bookings")
        parser.add_argument("--timeout", type=float, default=1.0, help="Seconds to wait for events per poll")
        parser.add_argument("--polls", type=int, default=0, help="Stop after this many polls (0 runs forever)")

    def _print_rooms(self, sync: RoomAvailabilitySync) -> None:
        for row in sync.rooms:
            state = "available" if row.get("is_available") else "full"
            self.stdout.write(f"  Room {row['room_number']}: {row['occupied']}/{row['capacity']} {state}")

    def handle(self, *args, **options):  # type: ignore
        hostel_id = options["hostel_id"]
        if not Hostel.objects.filter(pk=hostel_id).exists():
            raise CommandError(f"Hostel {hostel_id} does not exist")

        polls = 0
        with RoomAvailabilitySync(hostel_id, options["student"]) as sync:
            self.stdout.write(f"Hostel {hostel_id}: {len(sync.rooms)} rooms")
            self._print_rooms(sync)
            try:
                while not options["polls"] or polls < options["polls"]:
                    polls += 1
                    if not sync.pump(timeout=options["timeout"]):
                        continue
                    for notice in sync.pop_notices():
                        self.stdout.write(self.style.WARNING(f"{notice.title}: {notice.description}"))
                    self.stdout.write("Availability changed:")
                    self._print_rooms(sync)
            except KeyboardInterrupt:
                self.stdout.write("Stopped")
