"""
Reglas de precio y disponibilidad de las canchas.

Funciones puras sobre datos planos: las bandas de precio son dicts
``{"morning": {"start", "end", "price"}, "evening": {...}}`` y las reservas
/ eventos son objetos con ``start_time`` y ``end_time``. La portada, la
página de reserva y la re-validación en el pago usan estas mismas reglas.
"""
from datetime import datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP

from . import constants

MINUTES_PER_HOUR = 60
MINUTES_PER_DAY = 24 * MINUTES_PER_HOUR
HALF_DAY_HOURS = 12
LAST_MINUTE = '23:59'
MIDNIGHT = '00:00'

CENTS = Decimal('0.01')


def to_money(value):
    """Convierte un número (int, float, str o Decimal) a Decimal con 2 decimales."""
    if value is None or value == '':
        value = 0
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def time_to_minutes(value, end_of_day=False):
    """
    Minutos desde medianoche para "HH:MM" o ``datetime.time``.

    Con ``end_of_day`` la medianoche (00:00) se interpreta como fin del día
    (24:00), que es como se guardan los cierres de banda y de reserva.
    """
    if value is None or value == '':
        return 0
    if isinstance(value, time):
        minutes = value.hour * MINUTES_PER_HOUR + value.minute
    else:
        hours, _, mins = str(value).strip().partition(':')
        minutes = int(hours) * MINUTES_PER_HOUR + int(mins or 0)
    if end_of_day and minutes == 0:
        return MINUTES_PER_DAY
    return minutes


def minutes_to_time_str(minutes):
    minutes %= MINUTES_PER_DAY
    return f'{minutes // MINUTES_PER_HOUR:02d}:{minutes % MINUTES_PER_HOUR:02d}'


def parse_time(value):
    if isinstance(value, time):
        return value
    return datetime.strptime(str(value).strip(), '%H:%M').time()


def time_str(value):
    if isinstance(value, time):
        return value.strftime('%H:%M')
    return str(value)


def intervals_overlap(a_start, a_end, b_start, b_end):
    """Solapamiento de intervalos semiabiertos [start, end) en minutos."""
    return a_start < b_end and b_start < a_end


def _interval(start, end):
    return time_to_minutes(start), time_to_minutes(end, end_of_day=True)


def weekday_key(on_date):
    return constants.WEEKDAY_KEYS[on_date.weekday()]


def weekday_name(on_date):
    return constants.WEEKDAY_NAMES[on_date.weekday()]


def resolve_day_pricing(pricing, weekly_pricing=None, day_key=None):
    """Precios del día: el override semanal si existe, si no las bandas por defecto."""
    if day_key and weekly_pricing:
        day_pricing = weekly_pricing.get(day_key.lower())
        if day_pricing:
            return day_pricing
    return pricing or None


def price_for_time(pricing, base_price, at_time):
    """
    Precio por hora de una cancha para la hora dada.

    Sin bandas se usa el precio base. Dentro de la banda de mañana
    [inicio, fin) se cobra la tarifa de mañana; fuera de ella la de noche,
    o la de mañana si la de noche no tiene precio.
    """
    if not pricing:
        return to_money(base_price)

    morning = pricing.get('morning') or {}
    evening = pricing.get('evening') or {}
    minutes = time_to_minutes(at_time)

    morning_start = time_to_minutes(morning.get('start') or constants.DEFAULT_MORNING_BAND['start'])
    morning_end = time_to_minutes(
        morning.get('end') or constants.DEFAULT_MORNING_BAND['end'], end_of_day=True)

    if morning_start <= minutes < morning_end:
        return to_money(morning.get('price'))
    return to_money(evening.get('price') or morning.get('price'))


def is_blocking_reserva(reserva):
    return bool(
        reserva.payment_status in constants.BLOCKING_PAYMENT_STATUSES
        and reserva.start_time
        and reserva.end_time
    )


def is_blocking_evento(evento):
    return bool(evento.is_active and evento.start_time and evento.end_time)


def is_slot_available(start, end, reservas=(), eventos=()):
    """False si el intervalo choca con una reserva pendiente/pagada o un evento activo."""
    slot_start, slot_end = _interval(start, end)
    blockers = [r for r in reservas if is_blocking_reserva(r)]
    blockers += [e for e in eventos if is_blocking_evento(e)]

    for blocker in blockers:
        blocker_start, blocker_end = _interval(blocker.start_time, blocker.end_time)
        if intervals_overlap(slot_start, slot_end, blocker_start, blocker_end):
            return False
    return True


def calculate_end_time(start, duration_hours):
    end_minutes = time_to_minutes(start) + int(duration_hours) * MINUTES_PER_HOUR
    return parse_time(minutes_to_time_str(end_minutes))


def ends_within_day(start, duration_hours):
    return time_to_minutes(start) + int(duration_hours) * MINUTES_PER_HOUR <= MINUTES_PER_DAY


def generate_daily_slots(pricing, base_price, start_hour, end_hour, duration):
    """
    Slots de un documento Horario: uno cada ``duration`` horas en [start_hour, end_hour).

    El último slot se recorta al cierre, así nunca pasa de la medianoche.
    """
    slots = []
    for hour in range(start_hour, end_hour, duration):
        start = f'{hour:02d}:00'
        price = price_for_time(pricing, base_price, start)
        hours = min(hour + duration, end_hour) - hour
        slots.append({
            'start': start,
            'end': minutes_to_time_str((hour + hours) * MINUTES_PER_HOUR),
            'duration': hours,
            'price': str(price),
            'total_price': str(price * hours),
            'available': True,
        })
    return slots


def build_day_slots(day_pricing, base_price, reservas=(), eventos=(), horario_slots=None,
                    opening_hour=constants.DEFAULT_OPENING_HOUR,
                    closing_hour=constants.DEFAULT_CLOSING_HOUR):
    """
    Grilla de horarios de la página de reserva.

    Usa los slots del documento Horario cuando existe; si no, genera slots
    de una hora entre ``opening_hour`` y ``closing_hour``.
    """
    if horario_slots is None:
        horario_slots = generate_daily_slots(day_pricing, base_price, opening_hour, closing_hour, 1)

    slots = []
    for horario in horario_slots:
        start, end = horario['start'], horario['end']
        slots.append({
            'start': start,
            'end': end,
            'price': to_money(horario.get('price')),
            'available': bool(horario.get('available', True))
                         and is_slot_available(start, end, reservas, eventos),
        })
    return slots


def format_hour_label(value):
    """'07:00' -> '7am', '17:00' -> '5pm', '00:00' -> '12am'."""
    if not value:
        return ''
    value = time_str(value)
    if value == MIDNIGHT:
        return f'{HALF_DAY_HOURS}am'
    hour = int(value.split(':')[0])
    suffix = 'pm' if hour >= HALF_DAY_HOURS else 'am'
    if hour == 0:
        hour = HALF_DAY_HOURS
    elif hour > HALF_DAY_HOURS:
        hour -= HALF_DAY_HOURS
    return f'{hour}{suffix}'


def _normalize_end(end):
    return LAST_MINUTE if end == MIDNIGHT else end


def pricing_blocks(day_pricing, reservas=(), eventos=()):
    """Bandas de tarifa (día / noche) que muestra la vista previa de la portada."""
    if not day_pricing or not day_pricing.get('morning'):
        return []

    morning = day_pricing['morning']
    evening = day_pricing.get('evening')
    all_day = (
        morning.get('end') == MIDNIGHT
        or not evening
        or to_money(evening.get('price')) == to_money(morning.get('price'))
    )

    morning_end = _normalize_end(morning.get('end'))
    if all_day:
        morning_range = f"{format_hour_label(morning.get('start'))} - {HALF_DAY_HOURS}am"
    else:
        morning_range = f"{format_hour_label(morning.get('start'))} - {format_hour_label(morning.get('end'))}"

    blocks = [{
        'time_range': morning_range,
        'price': to_money(morning.get('price')),
        'label': 'Tarifa diaria' if all_day else 'Horario día',
        'available': is_slot_available(morning.get('start'), morning_end, reservas, eventos),
        'start': morning.get('start'),
        'end': morning_end,
    }]

    if not all_day:
        evening_end = _normalize_end(evening.get('end'))
        blocks.append({
            'time_range': f"{format_hour_label(evening.get('start'))} - {format_hour_label(evening.get('end'))}",
            'price': to_money(evening.get('price')),
            'label': 'Horario noche',
            'available': is_slot_available(evening.get('start'), evening_end, reservas, eventos),
            'start': evening.get('start'),
            'end': evening_end,
        })
    return blocks


def next_available_blocks(day_pricing, on_date, now, reservas=(), eventos=(),
                          count=constants.PREVIEW_BLOCKS):
    """
    Próximas ``count`` horas libres de un día, saltando las ocupadas.

    Hoy empieza en la siguiente hora completa; un día futuro empieza en la
    apertura de la banda de mañana, nunca antes de las 5am.
    """
    if not day_pricing or not day_pricing.get('morning'):
        return []

    if on_date == now.date():
        start_hour = now.hour + 1
        if start_hour >= 24:
            return []
    else:
        morning_start = time_to_minutes(day_pricing['morning'].get('start')) // MINUTES_PER_HOUR
        start_hour = max(constants.PREVIEW_EARLIEST_HOUR, morning_start)

    blocks = []
    for hour in range(start_hour, 24):
        if len(blocks) >= count:
            break
        start = f'{hour:02d}:00'
        end = LAST_MINUTE if hour == 23 else f'{hour + 1:02d}:00'
        if not is_slot_available(start, end, reservas, eventos):
            continue
        blocks.append({
            'time_range': f'{format_hour_label(start)} - {format_hour_label(end)}',
            'price': price_for_time(day_pricing, 0, start),
            'label': f'Hora {format_hour_label(start)}',
            'available': True,
            'start': start,
            'end': end,
        })
    return blocks


def upcoming_days(today, count=constants.PREVIEW_DAYS):
    days = []
    for offset in range(count):
        day = today + timedelta(days=offset)
        days.append({'name': weekday_name(day), 'key': weekday_key(day), 'date': day})
    return days
