import json
import os
import tempfile
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from io import StringIO
from types import SimpleNamespace
from unittest import mock

from django.contrib import admin
from django.contrib.auth import get_user_model
from django.core import mail
from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import DatabaseError, transaction
from django.db.models import QuerySet
from django.test import Client, SimpleTestCase, TestCase
from django.urls import reverse
from django.utils import timezone

from . import constants, scheduling, services
from .admin import CanchaAdmin
from .forms import CanchaAdminForm, PaymentForm
from .models import (
    Cancha, Descuento, DiscountType, Evento, HomeContent, Horario,
    PaymentStatus, Reserva, Role, SportType
)
from .services import PaymentError, ReservationError

User = get_user_model()

PRICING = {
    'morning': {'start': '07:00', 'end': '17:00', 'price': 50},
    'evening': {'start': '17:00', 'end': '00:00', 'price': 80},
}


def future_day(days=2):
    return timezone.localdate() + timedelta(days=days)


def make_cancha(**kwargs):
    defaults = {
        'name': 'Cancha 1',
        'sport_type': SportType.FUTBOL,
        'base_price': Decimal('40.00'),
        'pricing': PRICING,
    }
    defaults.update(kwargs)
    return Cancha.objects.create(**defaults)


def make_user(username='cliente', role=Role.USER, **kwargs):
    return User.objects.create_user(
        username=username,
        email=f'{username}@example.com',
        password='testpass123',
        role=role,
        **kwargs
    )


# ===== Pricing & availability core =====
class SchedulingTests(SimpleTestCase):
    """Pure pricing and overlap rules"""

    def test_time_to_minutes(self):
        self.assertEqual(scheduling.time_to_minutes('07:30'), 450)
        self.assertEqual(scheduling.time_to_minutes(time(17, 0)), 1020)
        self.assertEqual(scheduling.time_to_minutes('00:00'), 0)
        self.assertEqual(scheduling.time_to_minutes('00:00', end_of_day=True), 1440)

    def test_intervals_overlap_is_half_open(self):
        self.assertFalse(scheduling.intervals_overlap(60, 120, 120, 180))
        self.assertTrue(scheduling.intervals_overlap(60, 180, 120, 240))
        self.assertTrue(scheduling.intervals_overlap(120, 180, 60, 240))

    def test_price_for_time_bands(self):
        self.assertEqual(scheduling.price_for_time(PRICING, 0, '08:00'), Decimal('50.00'))
        self.assertEqual(scheduling.price_for_time(PRICING, 0, '16:00'), Decimal('50.00'))
        self.assertEqual(scheduling.price_for_time(PRICING, 0, '17:00'), Decimal('80.00'))
        self.assertEqual(scheduling.price_for_time(PRICING, 0, '23:00'), Decimal('80.00'))

    def test_price_for_time_without_bands_uses_base_price(self):
        self.assertEqual(scheduling.price_for_time(None, 35, '10:00'), Decimal('35.00'))

    def test_price_for_time_falls_back_to_morning_price(self):
        pricing = {
            'morning': {'start': '07:00', 'end': '17:00', 'price': 60},
            'evening': {'start': '17:00', 'end': '00:00', 'price': 0},
        }
        self.assertEqual(scheduling.price_for_time(pricing, 0, '20:00'), Decimal('60.00'))

    def test_morning_band_until_midnight(self):
        pricing = {'morning': {'start': '07:00', 'end': '00:00', 'price': 70}}
        self.assertEqual(scheduling.price_for_time(pricing, 0, '23:00'), Decimal('70.00'))

    def test_resolve_day_pricing_weekly_override(self):
        saturday = {'morning': {'start': '07:00', 'end': '00:00', 'price': 100}}
        weekly = {'sabado': saturday}
        self.assertEqual(scheduling.resolve_day_pricing(PRICING, weekly, 'sabado'), saturday)
        self.assertEqual(scheduling.resolve_day_pricing(PRICING, weekly, 'lunes'), PRICING)
        self.assertIsNone(scheduling.resolve_day_pricing(None, None, 'lunes'))

    def test_weekday_key(self):
        self.assertEqual(scheduling.weekday_key(date(2024, 1, 1)), 'lunes')
        self.assertEqual(scheduling.weekday_key(date(2024, 1, 7)), 'domingo')

    def test_calculate_end_time_wraps_midnight(self):
        self.assertEqual(scheduling.calculate_end_time(time(10, 0), 2), time(12, 0))
        self.assertEqual(scheduling.calculate_end_time(time(23, 0), 2), time(1, 0))
        self.assertTrue(scheduling.ends_within_day(time(22, 0), 2))
        self.assertFalse(scheduling.ends_within_day(time(23, 0), 2))

    def test_is_slot_available_blockers(self):
        pending = SimpleNamespace(payment_status='pendiente', start_time=time(10), end_time=time(12))
        cancelled = SimpleNamespace(payment_status='cancelado', start_time=time(14), end_time=time(16))
        inactive_event = SimpleNamespace(is_active=False, start_time=time(18), end_time=time(20))
        active_event = SimpleNamespace(is_active=True, start_time=time(20), end_time=time(0))

        reservas = [pending, cancelled]
        eventos = [inactive_event, active_event]
        self.assertFalse(scheduling.is_slot_available('11:00', '12:00', reservas, eventos))
        self.assertTrue(scheduling.is_slot_available('12:00', '13:00', reservas, eventos))
        self.assertTrue(scheduling.is_slot_available('14:00', '15:00', reservas, eventos))
        self.assertTrue(scheduling.is_slot_available('18:00', '19:00', reservas, eventos))
        self.assertFalse(scheduling.is_slot_available('23:00', '00:00', reservas, eventos))

    def test_generate_daily_slots(self):
        slots = scheduling.generate_daily_slots(PRICING, 0, 7, 24, 1)
        self.assertEqual(len(slots), 17)
        self.assertEqual(slots[0]['start'], '07:00')
        self.assertEqual(slots[0]['price'], '50.00')
        self.assertEqual(slots[-1]['start'], '23:00')
        self.assertEqual(slots[-1]['end'], '00:00')
        self.assertEqual(slots[-1]['price'], '80.00')

    def test_generate_daily_slots_total_price(self):
        slots = scheduling.generate_daily_slots(PRICING, 0, 7, 11, 2)
        self.assertEqual([s['start'] for s in slots], ['07:00', '09:00'])
        self.assertEqual(slots[0]['total_price'], '100.00')

    def test_generate_daily_slots_last_slot_stops_at_closing(self):
        slots = scheduling.generate_daily_slots(PRICING, 0, 7, 24, 2)
        last = slots[-1]
        self.assertEqual(last['start'], '23:00')
        self.assertEqual(last['end'], '00:00')
        self.assertEqual(last['duration'], 1)
        self.assertEqual(last['total_price'], '80.00')

        event = SimpleNamespace(is_active=True, start_time=time(23), end_time=time(0))
        grid = scheduling.build_day_slots(PRICING, 0, eventos=[event], horario_slots=slots)
        self.assertFalse(grid[-1]['available'])

    def test_build_day_slots_default_grid(self):
        pending = SimpleNamespace(payment_status='pagado', start_time=time(10), end_time=time(12))
        slots = scheduling.build_day_slots(PRICING, 0, reservas=[pending])
        by_start = {slot['start']: slot for slot in slots}
        self.assertEqual(len(slots), 17)
        self.assertFalse(by_start['10:00']['available'])
        self.assertFalse(by_start['11:00']['available'])
        self.assertTrue(by_start['12:00']['available'])
        self.assertEqual(by_start['18:00']['price'], Decimal('80.00'))

    def test_build_day_slots_respects_horario(self):
        horario_slots = [
            {'start': '09:00', 'end': '10:00', 'price': '45.00', 'available': True},
            {'start': '10:00', 'end': '11:00', 'price': '45.00', 'available': False},
        ]
        slots = scheduling.build_day_slots(PRICING, 0, horario_slots=horario_slots)
        self.assertEqual(len(slots), 2)
        self.assertTrue(slots[0]['available'])
        self.assertFalse(slots[1]['available'])
        self.assertEqual(slots[0]['price'], Decimal('45.00'))

    def test_format_hour_label(self):
        self.assertEqual(scheduling.format_hour_label('07:00'), '7am')
        self.assertEqual(scheduling.format_hour_label('12:00'), '12pm')
        self.assertEqual(scheduling.format_hour_label('17:00'), '5pm')
        self.assertEqual(scheduling.format_hour_label('00:00'), '12am')
        self.assertEqual(scheduling.format_hour_label(time(9, 0)), '9am')

    def test_pricing_blocks_day_and_night(self):
        blocks = scheduling.pricing_blocks(PRICING)
        self.assertEqual([b['label'] for b in blocks], ['Horario día', 'Horario noche'])
        self.assertEqual(blocks[0]['time_range'], '7am - 5pm')
        self.assertEqual(blocks[1]['time_range'], '5pm - 12am')
        self.assertEqual(blocks[1]['end'], '23:59')

    def test_pricing_blocks_single_daily_rate(self):
        pricing = {
            'morning': {'start': '07:00', 'end': '17:00', 'price': 60},
            'evening': {'start': '17:00', 'end': '00:00', 'price': 60},
        }
        blocks = scheduling.pricing_blocks(pricing)
        self.assertEqual(len(blocks), 1)
        self.assertEqual(blocks[0]['label'], 'Tarifa diaria')
        self.assertEqual(blocks[0]['time_range'], '7am - 12am')

    def test_next_available_blocks_future_day(self):
        now = datetime(2030, 1, 1, 10, 0)
        busy = SimpleNamespace(payment_status='pendiente', start_time=time(7), end_time=time(8))
        blocks = scheduling.next_available_blocks(PRICING, date(2030, 1, 2), now, reservas=[busy])
        self.assertEqual([b['label'] for b in blocks], ['Hora 8am', 'Hora 9am', 'Hora 10am'])
        self.assertEqual(blocks[0]['price'], Decimal('50.00'))

    def test_next_available_blocks_today_starts_next_hour(self):
        now = datetime(2030, 1, 1, 21, 30)
        blocks = scheduling.next_available_blocks(PRICING, date(2030, 1, 1), now)
        self.assertEqual([b['start'] for b in blocks], ['22:00', '23:00'])
        self.assertEqual(blocks[-1]['end'], '23:59')

    def test_next_available_blocks_late_night_is_empty(self):
        now = datetime(2030, 1, 1, 23, 10)
        self.assertEqual(scheduling.next_available_blocks(PRICING, date(2030, 1, 1), now), [])

    def test_upcoming_days(self):
        days = scheduling.upcoming_days(date(2024, 1, 1))
        self.assertEqual([d['name'] for d in days], ['Lunes', 'Martes', 'Miércoles'])
        self.assertEqual(days[2]['date'], date(2024, 1, 3))


# ===== Cancha Tests =====
class CanchaTests(TestCase):
    """Test Cancha model"""

    def test_clean_requires_name(self):
        cancha = Cancha(name='  ', pricing=PRICING)
        with self.assertRaises(ValidationError):
            cancha.clean()

    def test_clean_requires_a_positive_price(self):
        pricing = {
            'morning': {'start': '07:00', 'end': '17:00', 'price': 0},
            'evening': {'start': '17:00', 'end': '00:00', 'price': 0},
        }
        cancha = Cancha(name='Sin precio', pricing=pricing)
        with self.assertRaises(ValidationError):
            cancha.clean()

    def test_clean_rejects_invalid_band_time(self):
        pricing = {'morning': {'start': '25:00', 'end': '17:00', 'price': 50}}
        cancha = Cancha(name='Mala hora', pricing=pricing)
        with self.assertRaises(ValidationError):
            cancha.clean()

    def test_clean_valid_cancha(self):
        Cancha(name='Buena', pricing=PRICING).clean()

    def test_get_price_by_time_with_weekly_override(self):
        cancha = make_cancha(weekly_pricing={
            'sabado': {'morning': {'start': '07:00', 'end': '00:00', 'price': 100}},
        })
        self.assertEqual(cancha.get_price_by_time('08:00'), Decimal('50.00'))
        self.assertEqual(cancha.get_price_by_time('08:00', 'sabado'), Decimal('100.00'))
        self.assertEqual(cancha.get_price_by_time('20:00', 'sabado'), Decimal('100.00'))

    def test_main_image_default(self):
        self.assertEqual(make_cancha().main_image, constants.DEFAULT_CANCHA_IMAGE)


# ===== Evento Tests =====
class EventoTests(TestCase):
    """Test Evento model"""

    def setUp(self):
        self.cancha = make_cancha()

    def test_clean_past_date(self):
        evento = Evento(cancha=self.cancha, name='Torneo', date=timezone.localdate() - timedelta(days=1),
                        start_time=time(10), end_time=time(12))
        with self.assertRaises(ValidationError):
            evento.clean()

    def test_clean_requires_whole_hours(self):
        evento = Evento(cancha=self.cancha, name='Torneo', date=future_day(),
                        start_time=time(10, 30), end_time=time(12))
        with self.assertRaises(ValidationError):
            evento.clean()

    def test_clean_end_after_start(self):
        evento = Evento(cancha=self.cancha, name='Torneo', date=future_day(),
                        start_time=time(12), end_time=time(10))
        with self.assertRaises(ValidationError):
            evento.clean()

    def test_clean_allows_ending_at_midnight(self):
        Evento(cancha=self.cancha, name='Nocturno', date=future_day(),
               start_time=time(22), end_time=time(0)).clean()


# ===== Descuento Tests =====
class DescuentoTests(TestCase):
    """Test Descuento model"""

    def setUp(self):
        self.cancha = make_cancha()
        self.descuento = Descuento.objects.create(
            code='test10',
            name='Test 10%',
            discount_type=DiscountType.PERCENTAGE,
            value=10,
        )

    def test_code_is_stored_uppercase(self):
        self.assertEqual(self.descuento.code, 'TEST10')
        self.assertEqual(str(self.descuento), 'TEST10')

    def test_is_valid_active(self):
        self.assertTrue(self.descuento.is_valid())

    def test_is_valid_inactive(self):
        self.descuento.is_active = False
        self.assertFalse(self.descuento.is_valid())

    def test_is_valid_date_window(self):
        today = timezone.localdate()
        self.descuento.start_date = today + timedelta(days=1)
        self.assertFalse(self.descuento.is_valid(today))
        self.descuento.start_date = None
        self.descuento.end_date = today - timedelta(days=1)
        self.assertFalse(self.descuento.is_valid(today))

    def test_is_valid_hour_window_open_ended(self):
        self.descuento.start_hour = time(18)
        self.descuento.end_hour = time(0)
        self.assertFalse(self.descuento.is_valid(future_day(), '17:00'))
        self.assertTrue(self.descuento.is_valid(future_day(), '20:00'))

    def test_is_valid_hour_window(self):
        self.descuento.start_hour = time(9)
        self.descuento.end_hour = time(12)
        self.assertTrue(self.descuento.is_valid(future_day(), '11:00'))
        self.assertFalse(self.descuento.is_valid(future_day(), '12:00'))

    def test_is_valid_weekdays(self):
        monday = date(2030, 1, 7)
        self.descuento.weekdays = [5, 6]
        self.assertFalse(self.descuento.is_valid(monday))
        self.assertTrue(self.descuento.is_valid(monday + timedelta(days=5)))

    def test_is_valid_usage_limit_exceeded(self):
        self.descuento.max_uses = 5
        self.descuento.used_count = 5
        self.assertFalse(self.descuento.is_valid())

    def test_applies_to_cancha(self):
        other = make_cancha(name='Vóley', sport_type=SportType.VOLEY)
        self.assertTrue(self.descuento.applies_to_cancha(other))

        self.descuento.canchas.add(self.cancha)
        self.assertTrue(self.descuento.applies_to_cancha(self.cancha))
        self.assertFalse(self.descuento.applies_to_cancha(other))

    def test_applies_to_cancha_types(self):
        self.descuento.cancha_types = [SportType.VOLEY]
        self.assertFalse(self.descuento.applies_to_cancha(self.cancha))

    def test_calculate_percentage_with_cap(self):
        result = self.descuento.calculate(Decimal('150'))
        self.assertEqual(result['discount'], Decimal('15.00'))
        self.assertEqual(result['final_amount'], Decimal('135.00'))

        self.descuento.max_amount = Decimal('10')
        result = self.descuento.calculate(Decimal('150'))
        self.assertEqual(result['discount'], Decimal('10.00'))

    def test_calculate_fixed_amount_never_negative(self):
        self.descuento.discount_type = DiscountType.FIXED_AMOUNT
        self.descuento.value = Decimal('50')
        result = self.descuento.calculate(Decimal('30'))
        self.assertEqual(result['discount'], Decimal('30.00'))
        self.assertEqual(result['final_amount'], Decimal('0.00'))

    def test_calculate_below_min_amount(self):
        self.descuento.min_amount = Decimal('100')
        result = self.descuento.calculate(Decimal('80'))
        self.assertFalse(result['applied'])
        self.assertEqual(result['final_amount'], Decimal('80.00'))

    def test_clean_invalid_date_range(self):
        descuento = Descuento(
            code='INVALID',
            start_date=timezone.localdate() + timedelta(days=5),
            end_date=timezone.localdate(),
        )
        with self.assertRaises(ValidationError):
            descuento.clean()

    def test_clean_percentage_over_100(self):
        descuento = Descuento(code='MUCHO', value=Decimal('120'))
        with self.assertRaises(ValidationError):
            descuento.clean()

    def test_code_format_validated(self):
        """Un código con espacios no pasa la validación del admin"""
        descuento = Descuento(code='VERANO 2024', name='Verano', value=10)
        with self.assertRaises(ValidationError) as ctx:
            descuento.full_clean()
        self.assertIn('code', ctx.exception.message_dict)
        self.assertIn(constants.ERR_DISCOUNT_CODE_FORMAT, ctx.exception.message_dict['code'])


# ===== Reserva Tests =====
class ReservaTests(TestCase):
    """Test Reserva model"""

    def setUp(self):
        self.user = make_user()
        self.cancha = make_cancha()
        self.day = future_day()

    def _reserva(self, start, end, **kwargs):
        return Reserva.objects.create(
            user=self.user, cancha=self.cancha, date=self.day,
            start_time=start, end_time=end, **kwargs
        )

    def test_save_computes_duration(self):
        reserva = self._reserva(time(10), time(12))
        self.assertEqual(reserva.duration_hours, Decimal('2.00'))
        self.assertEqual(reserva.payment_status, PaymentStatus.PENDING)

    def test_save_until_midnight(self):
        reserva = self._reserva(time(22), time(0))
        self.assertEqual(reserva.duration_hours, Decimal('2.00'))

    def test_overlapping_reserva_rejected(self):
        self._reserva(time(10), time(12))
        with self.assertRaises(ValidationError):
            self._reserva(time(11), time(13))

    def test_adjacent_reserva_allowed(self):
        self._reserva(time(10), time(12))
        self._reserva(time(12), time(13))
        self.assertEqual(Reserva.objects.count(), 2)

    def test_cancelled_reserva_does_not_block(self):
        self._reserva(time(10), time(12), payment_status=PaymentStatus.CANCELLED)
        self._reserva(time(10), time(12))
        self.assertEqual(Reserva.objects.blocking().count(), 1)

    def test_active_evento_blocks(self):
        Evento.objects.create(cancha=self.cancha, name='Torneo', date=self.day,
                              start_time=time(9), end_time=time(11))
        with self.assertRaises(ValidationError):
            self._reserva(time(10), time(12))

    def test_end_before_start_rejected(self):
        with self.assertRaises(ValidationError):
            self._reserva(time(12), time(10))

    def test_reserva_str(self):
        reserva = self._reserva(time(10), time(12))
        self.assertEqual(str(reserva), f"{self.cancha.name} - {self.user.username} ({self.day} 10:00)")


# ===== HomeContent Tests =====
class HomeContentTests(TestCase):

    def test_missing_section_reads_empty(self):
        self.assertEqual(HomeContent.get_items(constants.HOME_STEPS), [])

    def test_discounts_section_defaults(self):
        info = HomeContent.discounts_section_info()
        self.assertEqual(info['title'], constants.DISCOUNTS_SECTION_TITLE)
        self.assertEqual(info['subtitle'], constants.DISCOUNTS_SECTION_SUBTITLE)

    def test_save_items_replaces(self):
        HomeContent.save_items(constants.HOME_VIDEOS, [{'url': 'a'}])
        HomeContent.save_items(constants.HOME_VIDEOS, [{'url': 'b'}], title='Videos')
        self.assertEqual(HomeContent.get_items(constants.HOME_VIDEOS), [{'url': 'b'}])
        self.assertEqual(HomeContent.objects.count(), 1)


# ===== Discount service Tests =====
class DiscountServiceTests(TestCase):

    def setUp(self):
        self.user = make_user()
        self.cancha = make_cancha()
        self.day = future_day()
        self.descuento = Descuento.objects.create(code='BIEN10', name='Bienvenida', value=10)

    def test_blank_code(self):
        result = services.validate_discount('  ', 100, self.cancha, self.day)
        self.assertFalse(result['valid'])
        self.assertEqual(result['message'], constants.ERR_DISCOUNT_REQUIRED)

    def test_unknown_code(self):
        result = services.validate_discount('NOPE', 100, self.cancha, self.day)
        self.assertEqual(result['message'], constants.ERR_DISCOUNT_NOT_FOUND)

    def test_invalid_format(self):
        is_valid, _ = services.validate_discount_code_format('BAD CODE!')
        self.assertFalse(is_valid)

    def test_valid_code_is_case_insensitive(self):
        result = services.validate_discount('bien10', 100, self.cancha, self.day, '10:00')
        self.assertTrue(result['valid'])
        self.assertEqual(result['calculation']['discount'], Decimal('10.00'))
        self.assertEqual(result['calculation']['final_amount'], Decimal('90.00'))

    def test_not_in_force(self):
        self.descuento.end_date = timezone.localdate() - timedelta(days=1)
        self.descuento.save()
        result = services.validate_discount('BIEN10', 100, self.cancha, self.day)
        self.assertEqual(result['message'], constants.ERR_DISCOUNT_NOT_IN_FORCE)

    def test_wrong_cancha(self):
        self.descuento.canchas.add(make_cancha(name='Otra'))
        result = services.validate_discount('BIEN10', 100, self.cancha, self.day)
        self.assertEqual(result['message'], constants.ERR_DISCOUNT_WRONG_CANCHA)

    def test_below_min_amount(self):
        self.descuento.min_amount = 200
        self.descuento.save()
        result = services.validate_discount('BIEN10', 100, self.cancha, self.day)
        self.assertEqual(
            result['message'], constants.ERR_DISCOUNT_MIN_AMOUNT.format(amount=Decimal('200.00')))

    def test_per_user_cap(self):
        Reserva.objects.create(
            user=self.user, cancha=self.cancha, date=self.day,
            start_time=time(10), end_time=time(11), descuento=self.descuento,
        )
        result = services.validate_discount('BIEN10', 100, self.cancha, self.day, user=self.user)
        self.assertEqual(result['message'], constants.ERR_DISCOUNT_USER_LIMIT)

    def test_per_user_cap_ignores_cancelled(self):
        Reserva.objects.create(
            user=self.user, cancha=self.cancha, date=self.day,
            start_time=time(10), end_time=time(11), descuento=self.descuento,
            payment_status=PaymentStatus.CANCELLED,
        )
        result = services.validate_discount('BIEN10', 100, self.cancha, self.day, user=self.user)
        self.assertTrue(result['valid'])

    def test_applicable_public_discounts(self):
        Descuento.objects.create(code='PRIVADO', name='Privado', value=5, is_public=False)
        Descuento.objects.create(code='VOLEY', name='Vóley', value=5, cancha_types=[SportType.VOLEY])
        codes = [d.code for d in services.applicable_public_discounts(self.cancha, self.day)]
        self.assertEqual(codes, ['BIEN10'])

    def test_register_discount_use(self):
        self.assertTrue(services.register_discount_use(self.descuento))
        self.descuento.refresh_from_db()
        self.assertEqual(self.descuento.used_count, 1)

    def test_register_discount_use_failure_keeps_transaction_usable(self):
        with transaction.atomic():
            with mock.patch.object(QuerySet, 'update', side_effect=DatabaseError('boom')):
                self.assertFalse(services.register_discount_use(self.descuento))
            # La transacción exterior sigue aceptando consultas
            self.assertEqual(Descuento.objects.filter(pk=self.descuento.pk).count(), 1)
        self.descuento.refresh_from_db()
        self.assertEqual(self.descuento.used_count, 0)


# ===== Reservation service Tests =====
class ReservationServiceTests(TestCase):

    def setUp(self):
        self.user = make_user()
        self.admin_user = make_user('jefe', role=Role.ADMIN)
        self.cancha = make_cancha()
        self.day = future_day()

    def _create(self, start='08:00', duration=2, **kwargs):
        return services.create_reservation(self.user, self.cancha, self.day, start, duration, **kwargs)

    def test_available_slots_uses_horario(self):
        Horario.objects.create(cancha=self.cancha, date=self.day, slots=[
            {'start': '09:00', 'end': '10:00', 'price': '45.00', 'available': True},
        ])
        slots = services.available_slots(self.cancha, self.day)
        self.assertEqual(len(slots), 1)
        self.assertEqual(slots[0]['price'], Decimal('45.00'))

    def test_available_slots_marks_reserved_hours(self):
        self._create('10:00', 2)
        slots = {s['start']: s for s in services.available_slots(self.cancha, self.day)}
        self.assertFalse(slots['10:00']['available'])
        self.assertFalse(slots['11:00']['available'])
        self.assertTrue(slots['12:00']['available'])

    def test_create_reservation(self):
        reserva = self._create('08:00', 2, notes='Cumpleaños')
        self.assertEqual(reserva.end_time, time(10))
        self.assertEqual(reserva.subtotal, Decimal('100.00'))
        self.assertEqual(reserva.total_price, Decimal('100.00'))
        self.assertEqual(reserva.payment_status, PaymentStatus.PENDING)
        self.assertEqual(reserva.notes, 'Cumpleaños')

    def test_create_reservation_across_price_bands(self):
        reserva = self._create('16:00', 2)
        self.assertEqual(reserva.subtotal, Decimal('130.00'))

    def test_create_reservation_slot_taken(self):
        self._create('10:00', 2)
        with self.assertRaisesMessage(ReservationError, constants.ERR_SLOT_TAKEN):
            self._create('11:00', 1)

    def test_create_reservation_blocked_by_evento(self):
        Evento.objects.create(cancha=self.cancha, name='Torneo', date=self.day,
                              start_time=time(9), end_time=time(10))
        with self.assertRaises(ReservationError):
            self._create('08:00', 2)

    def test_create_reservation_invalid_duration(self):
        with self.assertRaises(ReservationError):
            self._create('08:00', 5)

    def test_create_reservation_past_date(self):
        with self.assertRaisesMessage(ReservationError, constants.ERR_PAST_DATE):
            services.create_reservation(
                self.user, self.cancha, timezone.localdate() - timedelta(days=1), '08:00', 1)

    def test_create_reservation_too_far(self):
        far = timezone.localdate() + timedelta(days=constants.MAX_BOOKING_ADVANCE_DAYS + 1)
        with self.assertRaises(ReservationError):
            services.create_reservation(self.user, self.cancha, far, '08:00', 1)

    def test_create_reservation_cannot_cross_midnight(self):
        with self.assertRaises(ReservationError):
            self._create('23:00', 2)

    def test_create_reservation_inactive_cancha(self):
        self.cancha.is_active = False
        self.cancha.save()
        with self.assertRaises(ReservationError):
            self._create('08:00', 1)

    def test_create_reservation_with_discount(self):
        descuento = Descuento.objects.create(code='BIEN10', name='Bienvenida', value=10)
        reserva = self._create('08:00', 2, discount_code='bien10')
        self.assertEqual(reserva.descuento, descuento)
        self.assertEqual(reserva.discount_code, 'BIEN10')
        self.assertEqual(reserva.discount_amount, Decimal('10.00'))
        self.assertEqual(reserva.total_price, Decimal('90.00'))
        descuento.refresh_from_db()
        self.assertEqual(descuento.used_count, 1)

    def test_create_reservation_survives_failed_discount_count(self):
        descuento = Descuento.objects.create(code='BIEN10', name='Bienvenida', value=10)
        with mock.patch.object(QuerySet, 'update', side_effect=DatabaseError('boom')):
            reserva = self._create('08:00', 2, discount_code='BIEN10')
        self.assertTrue(Reserva.objects.filter(pk=reserva.pk).exists())
        self.assertEqual(reserva.total_price, Decimal('90.00'))
        descuento.refresh_from_db()
        self.assertEqual(descuento.used_count, 0)

    def test_available_slots_today_marks_started_hours(self):
        now = datetime.combine(self.day, time(12, 30))
        with mock.patch('canchas.services.local_today', return_value=self.day), \
                mock.patch('canchas.services.local_now', return_value=now):
            slots = {s['start']: s for s in services.available_slots(self.cancha, self.day)}
        self.assertFalse(slots['07:00']['available'])
        self.assertFalse(slots['12:00']['available'])
        self.assertTrue(slots['13:00']['available'])

    def test_create_reservation_today_rejects_started_hour(self):
        now = datetime.combine(self.day, time(12, 30))
        with mock.patch('canchas.services.local_today', return_value=self.day), \
                mock.patch('canchas.services.local_now', return_value=now):
            with self.assertRaisesMessage(ReservationError, "El horario seleccionado ya pasó."):
                self._create('12:00', 1)
            reserva = self._create('13:00', 1)
        self.assertEqual(reserva.start_time, time(13))

    def test_two_hour_horario_respects_midnight(self):
        services.upsert_horarios(self.cancha, self.day, 1, 7, 24, 2)
        Evento.objects.create(cancha=self.cancha, name='Cierre', date=self.day,
                              start_time=time(23), end_time=time(0))
        slots = services.available_slots(self.cancha, self.day)
        self.assertEqual((slots[-1]['start'], slots[-1]['end']), ('23:00', '00:00'))
        self.assertFalse(slots[-1]['available'])
        with self.assertRaises(ReservationError):
            self._create('23:00', 1)
        reserva = self._create('21:00', 2)
        self.assertEqual(reserva.subtotal, Decimal('160.00'))

    def test_create_reservation_with_invalid_discount(self):
        with self.assertRaisesMessage(ReservationError, constants.ERR_DISCOUNT_NOT_FOUND):
            self._create('08:00', 2, discount_code='NOPE')
        self.assertFalse(Reserva.objects.exists())

    def test_process_payment(self):
        reserva = self._create()
        services.process_payment(reserva, {'email': 'pago@example.com'})
        reserva.refresh_from_db()
        self.assertEqual(reserva.payment_status, PaymentStatus.PAID)
        self.assertEqual(reserva.payment_method, constants.PAYMENT_METHOD_CARD)
        self.assertTrue(reserva.transaction_id.startswith(constants.TRANSACTION_PREFIX))
        self.assertIsNotNone(reserva.paid_at)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['pago@example.com'])

    def test_confirmation_email_escapes_html(self):
        user = make_user('html', full_name='<b>Ana</b>')
        cancha = make_cancha(name='Cancha <1>')
        reserva = services.create_reservation(user, cancha, self.day, '08:00', 1)
        services.process_payment(reserva, {})
        html_body = mail.outbox[0].alternatives[0][0]
        self.assertIn('&lt;b&gt;Ana&lt;/b&gt;', html_body)
        self.assertIn('Cancha &lt;1&gt;', html_body)
        self.assertNotIn('<b>Ana</b>', html_body)

    def test_process_payment_only_pending(self):
        reserva = self._create()
        services.cancel_reservation(reserva, self.user)
        with self.assertRaises(PaymentError):
            services.process_payment(reserva, {})

    def test_process_payment_revalidates_availability(self):
        reserva = self._create('10:00', 2)
        other = services.create_reservation(self.user, self.cancha, self.day, '14:00', 2)
        # Simula una reserva concurrente que quedó sobre el mismo horario
        Reserva.objects.filter(pk=other.pk).update(start_time=time(11), end_time=time(13))
        with self.assertRaisesMessage(PaymentError, constants.ERR_SLOT_TAKEN):
            services.process_payment(reserva, {})

    def test_cancel_pending_reservation(self):
        reserva = self._create()
        services.cancel_reservation(reserva, self.user)
        reserva.refresh_from_db()
        self.assertEqual(reserva.payment_status, PaymentStatus.CANCELLED)
        self.assertEqual(len(mail.outbox), 1)
        # El horario vuelve a quedar libre
        self._create()

    def test_customer_cannot_cancel_paid_reservation(self):
        reserva = self._create()
        services.process_payment(reserva, {})
        with self.assertRaisesMessage(ReservationError, constants.ERR_ONLY_CANCEL_PENDING):
            services.cancel_reservation(reserva, self.user)

    def test_admin_can_cancel_paid_reservation(self):
        reserva = self._create()
        services.process_payment(reserva, {})
        services.cancel_reservation(reserva, self.admin_user)
        self.assertEqual(reserva.payment_status, PaymentStatus.CANCELLED)

    def test_confirm_reservation(self):
        reserva = self._create()
        services.confirm_reservation(reserva)
        reserva.refresh_from_db()
        self.assertEqual(reserva.payment_status, PaymentStatus.PAID)
        self.assertIsNotNone(reserva.paid_at)
        with self.assertRaises(ReservationError):
            services.confirm_reservation(reserva)

    def test_upsert_horarios(self):
        start = timezone.localdate()
        services.upsert_horarios(self.cancha, start, 3)
        services.upsert_horarios(self.cancha, start, 3)
        self.assertEqual(Horario.objects.filter(cancha=self.cancha).count(), 3)
        horario = Horario.objects.get(cancha=self.cancha, date=start)
        self.assertEqual(len(horario.slots), 17)


# ===== Form Tests =====
class PaymentFormTests(SimpleTestCase):

    def _data(self, **overrides):
        data = {
            'card_number': '4111 1111 1111 1111',
            'expiry_date': '12/99',
            'cvv': '123',
            'card_name': 'Ana Pérez',
            'email': 'ana@example.com',
            'phone': '999888777',
        }
        data.update(overrides)
        return data

    def test_valid_card(self):
        form = PaymentForm(data=self._data())
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data['card_number'], '4111111111111111')

    def test_invalid_card_number(self):
        form = PaymentForm(data=self._data(card_number='4111 1111'))
        self.assertFalse(form.is_valid())
        self.assertIn('card_number', form.errors)

    def test_invalid_expiry(self):
        self.assertIn('expiry_date', PaymentForm(data=self._data(expiry_date='13/30')).errors)
        self.assertIn('expiry_date', PaymentForm(data=self._data(expiry_date='01/20')).errors)

    def test_invalid_cvv(self):
        self.assertIn('cvv', PaymentForm(data=self._data(cvv='12a')).errors)


class CanchaAdminFormTests(TestCase):

    def test_pricing_fields_build_json(self):
        form = CanchaAdminForm(data={
            'name': 'Nueva',
            'sport_type': SportType.FUTBOL,
            'size': 'grande',
            'base_price': '0',
            'images': '{}',
            'is_active': 'on',
            'morning_start': '07:00',
            'morning_end': '17:00',
            'morning_price': '50',
            'evening_start': '17:00',
            'evening_end': '00:00',
            'evening_price': '80',
        })
        self.assertTrue(form.is_valid(), form.errors)
        cancha = form.save()
        self.assertEqual(cancha.pricing['morning'], {'start': '07:00', 'end': '17:00', 'price': 50.0})
        self.assertEqual(cancha.pricing['evening']['end'], '00:00')

    def test_zero_prices_rejected(self):
        form = CanchaAdminForm(data={
            'name': 'Gratis',
            'sport_type': SportType.FUTBOL,
            'size': 'grande',
            'base_price': '0',
            'images': '{}',
            'morning_start': '07:00',
            'morning_end': '17:00',
            'morning_price': '0',
        })
        self.assertFalse(form.is_valid())


# ===== View Tests =====
class PublicViewTests(TestCase):

    def setUp(self):
        self.client = Client()
        self.cancha = make_cancha()
        self.inactive = make_cancha(name='Cerrada', is_active=False)
        self.voley = make_cancha(name='Arena', sport_type=SportType.VOLEY)

    def test_home_renders_preview(self):
        tomorrow = timezone.localdate() + timedelta(days=1)
        response = self.client.get(reverse('home'), {'cancha': self.cancha.id, 'day': tomorrow.isoformat()})
        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, 'main/home.html')
        self.assertEqual(response.context['selected_cancha'], self.cancha)
        self.assertEqual(response.context['selected_day']['date'], tomorrow)
        labels = [b['label'] for b in response.context['preview_blocks']]
        self.assertEqual(labels, ['Hora 7am', 'Hora 8am', 'Hora 9am'])
        self.assertEqual(len(response.context['pricing_blocks']), 2)
        self.assertNotIn(self.inactive, response.context['canchas'])

    def test_home_featured_eventos(self):
        Evento.objects.create(cancha=self.cancha, name='Torneo', date=future_day(),
                              start_time=time(9), end_time=time(11))
        Evento.objects.create(cancha=self.cancha, name='Inactivo', date=future_day(),
                              start_time=time(12), end_time=time(13), is_active=False)
        response = self.client.get(reverse('home'))
        names = [e.name for e in response.context['featured_eventos']]
        self.assertEqual(names, ['Torneo'])

    def test_cancha_list_filters(self):
        response = self.client.get(reverse('cancha_list'))
        self.assertEqual([c.name for c in response.context['canchas']], ['Arena', 'Cancha 1'])

        response = self.client.get(reverse('cancha_list'), {'sport_type': SportType.VOLEY})
        self.assertEqual([c.name for c in response.context['canchas']], ['Arena'])

    def test_ajax_time_slots(self):
        response = self.client.get(
            reverse('ajax_time_slots', args=[self.cancha.id]), {'date': future_day().isoformat()})
        self.assertEqual(response.status_code, 200)
        slots = response.json()['slots']
        self.assertEqual(len(slots), 17)
        self.assertEqual(slots[0]['start'], '07:00')
        self.assertEqual(slots[0]['price'], 50.0)

    def test_ajax_time_slots_requires_date(self):
        url = reverse('ajax_time_slots', args=[self.cancha.id])
        self.assertEqual(self.client.get(url).status_code, 400)
        self.assertEqual(self.client.get(url, {'date': '31-12-2030'}).status_code, 400)

    def test_reserva_requires_login(self):
        response = self.client.get(reverse('reserva_create', args=[self.cancha.id]))
        self.assertEqual(response.status_code, 302)
        self.assertIn('/login/', response.url)


class DiscountAjaxTests(TestCase):

    def setUp(self):
        cache.clear()
        self.client = Client()
        self.cancha = make_cancha()
        self.day = future_day()
        Descuento.objects.create(code='BIEN10', name='Bienvenida', value=10)

    def _params(self, **overrides):
        params = {
            'code': 'BIEN10',
            'cancha': self.cancha.id,
            'date': self.day.isoformat(),
            'start_time': '08:00',
            'duration': '2',
        }
        params.update(overrides)
        return params

    def test_valid_code(self):
        response = self.client.get(reverse('ajax_check_discount'), self._params())
        data = response.json()
        self.assertTrue(data['valid'])
        self.assertEqual(data['subtotal'], 100.0)
        self.assertEqual(data['discount'], 10.0)
        self.assertEqual(data['final_amount'], 90.0)

    def test_unknown_code(self):
        response = self.client.get(reverse('ajax_check_discount'), self._params(code='NOPE'))
        self.assertEqual(response.json(), {'valid': False, 'message': constants.ERR_DISCOUNT_NOT_FOUND})

    def test_missing_parameters(self):
        response = self.client.get(reverse('ajax_check_discount'), {'code': 'BIEN10'})
        self.assertEqual(response.status_code, 400)

    def test_non_finite_amount(self):
        for amount in ('NaN', 'sNaN', 'Infinity', 'abc'):
            response = self.client.get(reverse('ajax_check_discount'), self._params(amount=amount))
            self.assertEqual(response.status_code, 400, amount)
            self.assertEqual(response.json()['message'], 'Monto inválido')

    def test_rate_limited(self):
        url = reverse('ajax_check_discount')
        limit = int(constants.DISCOUNT_CHECK_RATE.split('/')[0])
        for _ in range(limit):
            self.assertEqual(self.client.get(url, self._params(code='NOPE')).status_code, 200)
        self.assertEqual(self.client.get(url, self._params(code='NOPE')).status_code, 403)


class ReservaFlowViewTests(TestCase):

    def setUp(self):
        self.client = Client()
        self.user = make_user()
        self.other = make_user('otro')
        self.cancha = make_cancha()
        self.day = future_day()
        self.client.force_login(self.user)

    def test_reserva_page(self):
        response = self.client.get(reverse('reserva_create', args=[self.cancha.id]),
                                   {'date': self.day.isoformat()})
        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, 'user/reserva_create.html')
        self.assertEqual(response.context['selected_date'], self.day)
        self.assertEqual(len(response.context['slots']), 17)

    def test_create_and_pay(self):
        response = self.client.post(reverse('reserva_create', args=[self.cancha.id]), {
            'date': self.day.isoformat(),
            'start_time': '08:00',
            'duration_hours': '2',
            'discount_code': '',
            'notes': '',
        })
        reserva = Reserva.objects.get(user=self.user)
        self.assertRedirects(response, reverse('payment', args=[reserva.id]))
        self.assertEqual(reserva.total_price, Decimal('100.00'))

        response = self.client.post(reverse('payment', args=[reserva.id]), {
            'card_number': '4111111111111111',
            'expiry_date': '12/99',
            'cvv': '123',
            'card_name': 'Cliente',
            'email': 'cliente@example.com',
            'phone': '999888777',
        })
        self.assertRedirects(response, reverse('confirmation', args=[reserva.id]))
        reserva.refresh_from_db()
        self.assertEqual(reserva.payment_status, PaymentStatus.PAID)

        response = self.client.get(reverse('confirmation', args=[reserva.id]))
        self.assertTrue(response.context['is_paid'])

    def test_create_taken_slot_shows_error(self):
        services.create_reservation(self.other, self.cancha, self.day, '08:00', 2)
        response = self.client.post(reverse('reserva_create', args=[self.cancha.id]), {
            'date': self.day.isoformat(),
            'start_time': '08:00',
            'duration_hours': '1',
        })
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Reserva.objects.filter(user=self.user).count(), 0)

    def test_payment_invalid_card(self):
        reserva = services.create_reservation(self.user, self.cancha, self.day, '08:00', 1)
        response = self.client.post(reverse('payment', args=[reserva.id]), {'card_number': '123'})
        self.assertEqual(response.status_code, 200)
        self.assertIn('card_number', response.context['form'].errors)
        reserva.refresh_from_db()
        self.assertEqual(reserva.payment_status, PaymentStatus.PENDING)

    def test_payment_other_users_reserva_not_found(self):
        reserva = services.create_reservation(self.other, self.cancha, self.day, '08:00', 1)
        response = self.client.get(reverse('payment', args=[reserva.id]))
        self.assertEqual(response.status_code, 404)

    def test_profile_lists_own_reservas(self):
        services.create_reservation(self.user, self.cancha, self.day, '08:00', 1)
        services.create_reservation(self.other, self.cancha, self.day, '10:00', 1)
        response = self.client.get(reverse('profile'))
        self.assertEqual(len(response.context['reservas']), 1)

    def test_cancel_reserva(self):
        reserva = services.create_reservation(self.user, self.cancha, self.day, '08:00', 1)
        response = self.client.post(reverse('reserva_cancel', args=[reserva.id]))
        self.assertRedirects(response, reverse('profile'))
        reserva.refresh_from_db()
        self.assertEqual(reserva.payment_status, PaymentStatus.CANCELLED)


class AdminDashboardTests(TestCase):

    def setUp(self):
        self.client = Client()
        self.user = make_user()
        self.admin_user = make_user('jefe', role=Role.ADMIN, is_staff=True, is_superuser=True)
        self.cancha = make_cancha()
        self.reserva = services.create_reservation(self.user, self.cancha, future_day(), '08:00', 1)

    def test_customer_forbidden(self):
        self.client.force_login(self.user)
        response = self.client.get(reverse('admin_reserva_list'))
        self.assertEqual(response.status_code, 403)

    def test_admin_list_filters_by_status(self):
        self.client.force_login(self.admin_user)
        response = self.client.get(reverse('admin_reserva_list'), {'status': PaymentStatus.PAID})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.context['reservas']), 0)

        response = self.client.get(reverse('admin_reserva_list'), {'status': PaymentStatus.PENDING})
        self.assertEqual(len(response.context['reservas']), 1)

    def test_admin_confirm(self):
        self.client.force_login(self.admin_user)
        url = reverse('admin_update_reserva_status', args=[self.reserva.id])
        self.assertEqual(self.client.get(url).status_code, 405)

        response = self.client.post(url, {'action': 'confirm'})
        self.assertRedirects(response, reverse('admin_reserva_list'))
        self.reserva.refresh_from_db()
        self.assertEqual(self.reserva.payment_status, PaymentStatus.PAID)

    def test_admin_cancel(self):
        self.client.force_login(self.admin_user)
        self.client.post(reverse('admin_update_reserva_status', args=[self.reserva.id]), {'action': 'cancel'})
        self.reserva.refresh_from_db()
        self.assertEqual(self.reserva.payment_status, PaymentStatus.CANCELLED)

    def test_back_office_pages(self):
        self.client.force_login(self.admin_user)
        self.assertEqual(self.client.get(reverse('admin:canchas_cancha_changelist')).status_code, 200)
        self.assertEqual(self.client.get(reverse('admin:canchas_cancha_add')).status_code, 200)
        self.assertEqual(self.client.get(reverse('admin:canchas_reserva_changelist')).status_code, 200)

    def test_cancha_delete_is_soft(self):
        CanchaAdmin(Cancha, admin.site).delete_queryset(None, Cancha.objects.filter(pk=self.cancha.pk))
        self.cancha.refresh_from_db()
        self.assertFalse(self.cancha.is_active)


# ===== Management command Tests =====
class CommandTests(TestCase):

    def test_generate_horarios(self):
        cancha = make_cancha()
        make_cancha(name='Inactiva', is_active=False)
        call_command('generate_horarios', days=3, stdout=StringIO())
        self.assertEqual(Horario.objects.count(), 3)
        horario = Horario.objects.get(cancha=cancha, date=timezone.localdate())
        self.assertEqual(horario.slots[0]['start'], '07:00')

    def test_generate_horarios_custom_hours(self):
        cancha = make_cancha()
        call_command('generate_horarios', days=1, start_hour=8, end_hour=12, duration=2,
                     cancha=cancha.id, stdout=StringIO())
        slots = Horario.objects.get(cancha=cancha).slots
        self.assertEqual([s['start'] for s in slots], ['08:00', '10:00'])
        self.assertEqual(slots[0]['total_price'], '100.00')

    def test_generate_horarios_invalid_hours(self):
        with self.assertRaises(CommandError):
            call_command('generate_horarios', start_hour=20, end_hour=10, stdout=StringIO())

    def test_seed_demo(self):
        call_command('seed_demo', stdout=StringIO())
        self.assertEqual(Cancha.objects.count(), 2)
        self.assertTrue(User.objects.filter(username='admin_demo', role=Role.ADMIN).exists())
        self.assertEqual(Descuento.objects.count(), 3)
        self.assertEqual(Horario.objects.count(), 2 * constants.HORARIO_DAYS_TO_CREATE)
        self.assertTrue(HomeContent.get_items(constants.HOME_STEPS))

        # Idempotente
        call_command('seed_demo', stdout=StringIO())
        self.assertEqual(Cancha.objects.count(), 2)

    def test_seed_demo_from_file(self):
        seed = {
            'canchas': [{
                'nombre': 'Desde archivo',
                'tipo': 'basquet',
                'precios': {
                    'manana': {'inicio': '08:00', 'fin': '18:00', 'precio': 40},
                    'noche': {'inicio': '18:00', 'fin': '00:00', 'precio': 60},
                },
            }],
            'config': {'horarios': {'diasParaCrear': 2, 'horaInicio': 8, 'horaFin': 22, 'duracion': 1}},
        }
        with tempfile.NamedTemporaryFile('w', suffix='.json', delete=False, encoding='utf-8') as fh:
            json.dump(seed, fh)
        self.addCleanup(os.remove, fh.name)
        call_command('seed_demo', file=fh.name, stdout=StringIO())

        cancha = Cancha.objects.get(name='Desde archivo')
        self.assertEqual(cancha.sport_type, 'basquet')
        self.assertEqual(cancha.get_price_by_time('19:00'), Decimal('60.00'))
        self.assertEqual(Horario.objects.filter(cancha=cancha).count(), 2)
        self.assertEqual(len(Horario.objects.filter(cancha=cancha).first().slots), 14)
