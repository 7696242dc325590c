"""
Flujo de reservas: descuentos, creación, pago y cancelación.

Toda escritura que depende de la disponibilidad se hace dentro de una
transacción que bloquea la fila de la cancha (``select_for_update``), así
dos clientes no pueden reservar el mismo horario a la vez.
"""
import logging
import re
from datetime import timedelta

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from . import constants, scheduling
from .models import Cancha, Descuento, Evento, Horario, PaymentStatus, Reserva
from .utils import send_reservation_cancellation_email, send_reservation_confirmation_email

logger = logging.getLogger(__name__)


class ReservationError(Exception):
    """La reserva no se puede crear, pagar o cancelar; el mensaje es para el usuario."""


class PaymentError(ReservationError):
    pass


def local_now():
    return timezone.localtime()


def local_today():
    return timezone.localdate()


# ============= DESCUENTOS =============

def validate_discount_code_format(code):
    """
    Validate discount code format
    Returns: (is_valid, error_message)
    """
    if not code or not code.strip():
        return False, constants.ERR_DISCOUNT_REQUIRED

    code = code.strip()
    if len(code) > constants.DISCOUNT_CODE_MAX_LENGTH:
        return False, f"El código no puede superar {constants.DISCOUNT_CODE_MAX_LENGTH} caracteres"
    if not re.match(constants.DISCOUNT_CODE_PATTERN, code):
        return False, constants.ERR_DISCOUNT_CODE_FORMAT
    return True, ""


def _discount_result(valid, message, descuento=None, calculation=None):
    return {'valid': valid, 'message': message, 'descuento': descuento, 'calculation': calculation}


def user_discount_uses(descuento, user):
    return (
        Reserva.objects
        .filter(user=user, descuento=descuento)
        .exclude(payment_status=PaymentStatus.CANCELLED)
        .count()
    )


def validate_discount(code, base_amount, cancha, on_date, at_time=None, user=None):
    """Valida un código para un monto, cancha, fecha y hora; calcula el descuento."""
    is_valid_format, error_message = validate_discount_code_format(code)
    if not is_valid_format:
        return _discount_result(False, error_message)

    descuento = Descuento.objects.filter(code=code.strip().upper(), is_active=True).first()
    if descuento is None:
        return _discount_result(False, constants.ERR_DISCOUNT_NOT_FOUND)

    if not descuento.is_valid(on_date, at_time):
        return _discount_result(False, constants.ERR_DISCOUNT_NOT_IN_FORCE)

    if not descuento.applies_to_cancha(cancha):
        return _discount_result(False, constants.ERR_DISCOUNT_WRONG_CANCHA)

    base_amount = scheduling.to_money(base_amount)
    if base_amount < descuento.min_amount:
        return _discount_result(
            False, constants.ERR_DISCOUNT_MIN_AMOUNT.format(amount=descuento.min_amount))

    if user is not None and user.is_authenticated:
        if user_discount_uses(descuento, user) >= descuento.uses_per_user:
            return _discount_result(False, constants.ERR_DISCOUNT_USER_LIMIT)

    calculation = descuento.calculate(base_amount)
    return _discount_result(True, f"Descuento aplicado: {descuento.name}", descuento, calculation)


def applicable_public_discounts(cancha, on_date, at_time=None):
    descuentos = Descuento.objects.filter(is_public=True, is_active=True).order_by('-created_at')
    return [
        descuento for descuento in descuentos
        if descuento.is_valid(on_date, at_time) and descuento.applies_to_cancha(cancha)
    ]


def register_discount_use(descuento):
    """Incrementa el contador de usos; un fallo se registra pero no anula la reserva."""
    try:
        # Savepoint propio: un fallo aquí no invalida la transacción de la reserva
        with transaction.atomic():
            Descuento.objects.filter(pk=descuento.pk).update(
                used_count=F('used_count') + 1, updated_at=timezone.now())
    except DatabaseError:
        logger.error("Error incrementing uses of discount %s", descuento.code, exc_info=True)
        return False
    return True


# ============= DISPONIBILIDAD =============

def day_blockers(cancha, on_date):
    reservas = list(Reserva.objects.blocking().for_day(cancha, on_date))
    eventos = list(Evento.objects.filter(cancha=cancha, date=on_date, is_active=True))
    return reservas, eventos


def available_slots(cancha, on_date):
    """Grilla de slots del día con precio y disponibilidad."""
    reservas, eventos = day_blockers(cancha, on_date)
    horario = Horario.objects.filter(cancha=cancha, date=on_date).first()
    day_pricing = cancha.get_pricing_for_day(scheduling.weekday_key(on_date))
    slots = scheduling.build_day_slots(
        day_pricing,
        cancha.base_price,
        reservas,
        eventos,
        horario_slots=horario.slots if horario else None,
    )

    # Hoy no se puede reservar una hora que ya empezó
    if on_date == local_today():
        now_minutes = scheduling.time_to_minutes(local_now().time())
        for slot in slots:
            if scheduling.time_to_minutes(slot['start']) <= now_minutes:
                slot['available'] = False
    return slots


def upsert_horarios(cancha, start_date, days,
                    start_hour=constants.HORARIO_START_HOUR,
                    end_hour=constants.HORARIO_END_HOUR,
                    duration=constants.HORARIO_SLOT_DURATION):
    """Crea o reemplaza los documentos Horario de ``days`` días desde ``start_date``."""
    for offset in range(days):
        on_date = start_date + timedelta(days=offset)
        day_pricing = cancha.get_pricing_for_day(scheduling.weekday_key(on_date))
        slots = scheduling.generate_daily_slots(day_pricing, cancha.base_price, start_hour, end_hour, duration)
        Horario.objects.update_or_create(cancha=cancha, date=on_date, defaults={'slots': slots})
    return days


def build_home_preview(cancha, on_date, now=None):
    now = now or local_now()
    reservas, eventos = day_blockers(cancha, on_date)
    day_pricing = cancha.get_pricing_for_day(scheduling.weekday_key(on_date))
    return {
        'blocks': scheduling.next_available_blocks(day_pricing, on_date, now, reservas, eventos),
        'pricing_blocks': scheduling.pricing_blocks(day_pricing, reservas, eventos),
    }


def _covering_slot(slots, minute):
    for slot in slots:
        start = scheduling.time_to_minutes(slot['start'])
        end = scheduling.time_to_minutes(slot['end'], end_of_day=True)
        if start <= minute < end:
            return slot
    return None


def quote_reservation(cancha, on_date, start_time, duration_hours, slots=None):
    """
    Subtotal de la reserva: suma del precio por hora de cada hora reservada.

    Lanza ReservationError si alguna hora no está en la grilla o está ocupada.
    """
    slots = available_slots(cancha, on_date) if slots is None else slots
    start_minute = scheduling.time_to_minutes(start_time)
    subtotal = scheduling.to_money(0)
    for offset in range(int(duration_hours)):
        slot = _covering_slot(slots, start_minute + offset * scheduling.MINUTES_PER_HOUR)
        if slot is None or not slot['available']:
            raise ReservationError(constants.ERR_SLOT_TAKEN)
        subtotal += slot['price']
    return subtotal


# ============= RESERVAS =============

def _validate_request(on_date, start_time, duration):
    if not constants.MIN_DURATION_HOURS <= duration <= constants.MAX_DURATION_HOURS:
        raise ReservationError(constants.ERR_INVALID_DURATION.format(
            min=constants.MIN_DURATION_HOURS, max=constants.MAX_DURATION_HOURS))

    today = local_today()
    if on_date < today:
        raise ReservationError(constants.ERR_PAST_DATE)
    if on_date > today + timedelta(days=constants.MAX_BOOKING_ADVANCE_DAYS):
        raise ReservationError(constants.ERR_DATE_TOO_FAR.format(days=constants.MAX_BOOKING_ADVANCE_DAYS))
    if on_date == today and start_time <= local_now().time():
        raise ReservationError("El horario seleccionado ya pasó.")
    if not scheduling.ends_within_day(start_time, duration):
        raise ReservationError("La reserva debe terminar antes de la medianoche.")


def create_reservation(user, cancha, on_date, start_time, duration_hours, notes='', discount_code=''):
    """
    Crea una reserva pendiente de pago.

    La disponibilidad se vuelve a comprobar con la cancha bloqueada; el
    descuento, si hay código, se valida de nuevo y su uso se contabiliza.
    """
    duration = int(duration_hours)
    start_time = scheduling.parse_time(start_time)
    _validate_request(on_date, start_time, duration)

    with transaction.atomic():
        try:
            cancha = Cancha.objects.select_for_update().get(pk=cancha.pk, is_active=True)
        except Cancha.DoesNotExist:
            raise ReservationError("La cancha no está disponible.")

        subtotal = quote_reservation(cancha, on_date, start_time, duration)
        end_time = scheduling.calculate_end_time(start_time, duration)

        descuento = None
        discount_amount = scheduling.to_money(0)
        total = subtotal
        if discount_code and discount_code.strip():
            result = validate_discount(discount_code, subtotal, cancha, on_date, start_time, user=user)
            if not result['valid']:
                raise ReservationError(result['message'])
            if result['calculation']['applied']:
                descuento = result['descuento']
                discount_amount = result['calculation']['discount']
                total = result['calculation']['final_amount']

        reserva = Reserva(
            user=user,
            cancha=cancha,
            date=on_date,
            start_time=start_time,
            end_time=end_time,
            subtotal=subtotal,
            descuento=descuento,
            discount_code=descuento.code if descuento else '',
            discount_amount=discount_amount,
            total_price=total,
            notes=notes or '',
        )
        try:
            reserva.save()
        except ValidationError as e:
            raise ReservationError(' '.join(e.messages))

        if descuento is not None:
            register_discount_use(descuento)

    logger.info(
        "Reserva created: #%s by user %s (%s %s-%s, total %s)",
        reserva.id, user.username, cancha.name, start_time, end_time, total,
    )
    return reserva


def process_payment(reserva, payment):
    """
    Procesa el pago simulado con tarjeta y confirma la reserva.

    La disponibilidad se re-valida en el momento del pago, excluyendo la
    propia reserva.
    """
    if reserva.payment_status != PaymentStatus.PENDING:
        raise PaymentError(constants.ERR_ONLY_PAY_PENDING)

    with transaction.atomic():
        Cancha.objects.select_for_update().filter(pk=reserva.cancha_id).first()
        reserva.refresh_from_db()
        if reserva.payment_status != PaymentStatus.PENDING:
            raise PaymentError(constants.ERR_ONLY_PAY_PENDING)
        if not reserva.is_free_of_conflicts():
            raise PaymentError(constants.ERR_SLOT_TAKEN)

        now = timezone.now()
        reserva.payment_status = PaymentStatus.PAID
        reserva.payment_method = constants.PAYMENT_METHOD_CARD
        reserva.transaction_id = f"{constants.TRANSACTION_PREFIX}{int(now.timestamp() * 1000)}"
        reserva.paid_at = now
        reserva.save()

    logger.info("Reserva #%s paid (%s, %s %s)", reserva.id, reserva.transaction_id,
                constants.CURRENCY_CODE, reserva.total_price)
    send_reservation_confirmation_email(reserva, email=payment.get('email'))
    return reserva


def confirm_reservation(reserva):
    """Admin: marca como pagada una reserva pendiente (pago fuera de línea)."""
    if reserva.payment_status != PaymentStatus.PENDING:
        raise ReservationError(constants.ERR_ONLY_PAY_PENDING)

    reserva.payment_status = PaymentStatus.PAID
    reserva.paid_at = timezone.now()
    reserva.payment_method = reserva.payment_method or 'manual'
    try:
        reserva.save()
    except ValidationError as e:
        raise ReservationError(' '.join(e.messages))
    logger.info("Reserva #%s confirmed by admin", reserva.id)
    return reserva


def cancel_reservation(reserva, by_user):
    if reserva.payment_status == PaymentStatus.CANCELLED:
        raise ReservationError("La reserva ya está cancelada.")
    if not by_user.is_admin and reserva.payment_status != PaymentStatus.PENDING:
        raise ReservationError(constants.ERR_ONLY_CANCEL_PENDING)

    reserva.payment_status = PaymentStatus.CANCELLED
    reserva.save(update_fields=['payment_status', 'updated_at'])
    logger.info("Reserva #%s cancelled by %s", reserva.id, by_user.username)
    send_reservation_cancellation_email(reserva)
    return reserva
