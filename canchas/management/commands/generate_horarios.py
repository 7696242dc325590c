from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from canchas import constants
from canchas.models import Cancha
from canchas.services import upsert_horarios


class Command(BaseCommand):
    help = "Generate daily Horario documents (priced slots) for active canchas."

    def add_arguments(self, parser):
        parser.add_argument(
            '--days',
            type=int,
            default=constants.HORARIO_DAYS_TO_CREATE,
            help='Number of days to generate, starting today (default: 14)'
        )
        parser.add_argument(
            '--start-hour',
            type=int,
            default=constants.HORARIO_START_HOUR,
            help='First slot hour (default: 7)'
        )
        parser.add_argument(
            '--end-hour',
            type=int,
            default=constants.HORARIO_END_HOUR,
            help='Closing hour, 24 = midnight (default: 24)'
        )
        parser.add_argument(
            '--duration',
            type=int,
            default=constants.HORARIO_SLOT_DURATION,
            help='Slot duration in hours (default: 1)'
        )
        parser.add_argument(
            '--cancha',
            type=int,
            help='Only generate for this cancha id'
        )

    def handle(self, *args, **options):
        days = options['days']
        start_hour = options['start_hour']
        end_hour = options['end_hour']
        duration = options['duration']

        if days < 1:
            raise CommandError("--days must be at least 1")
        if duration < 1:
            raise CommandError("--duration must be at least 1")
        if not 0 <= start_hour < end_hour <= 24:
            raise CommandError("Hours must satisfy 0 <= start-hour < end-hour <= 24")

        canchas = Cancha.objects.filter(is_active=True)
        if options['cancha']:
            canchas = canchas.filter(pk=options['cancha'])
            if not canchas.exists():
                raise CommandError(f"Active cancha {options['cancha']} not found")

        today = timezone.localdate()
        total = 0
        for cancha in canchas:
            upsert_horarios(cancha, today, days, start_hour, end_hour, duration)
            total += 1
            self.stdout.write(f"  ✓ {cancha.name}: {days} día(s) de horarios")

        self.stdout.write(
            self.style.SUCCESS(f'Generated horarios for {total} cancha(s) from {today}')
        )
