# Built-in imports
import logging
from datetime import datetime, timedelta

# Django imports
from django.contrib import messages
from django.core.paginator import EmptyPage, PageNotAnInteger, Paginator
from django.http import HttpResponseNotAllowed, JsonResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.views.decorators.http import require_GET

# Third-party imports
from django_ratelimit.decorators import ratelimit

# Local imports
from . import constants, scheduling, services
from .decorators import admin_required, user_or_admin_required
from .forms import DateSelectionForm, PaymentForm, ReservaForm
from .models import Cancha, Evento, HomeContent, PaymentStatus, Reserva, SportType
from .services import PaymentError, ReservationError

logger = logging.getLogger(__name__)


def _parse_date(value):
    return datetime.strptime(value, '%Y-%m-%d').date()


def _paginate(request, queryset, per_page):
    paginator = Paginator(queryset, per_page)
    page_number = request.GET.get('page')
    try:
        return paginator.page(page_number)
    except PageNotAnInteger:
        return paginator.page(1)
    except EmptyPage:
        return paginator.page(paginator.num_pages)


def _get_reserva_for(request, reserva_id):
    if request.user.is_admin:
        return get_object_or_404(Reserva.objects.select_related('cancha', 'user'), id=reserva_id)
    return get_object_or_404(
        Reserva.objects.select_related('cancha', 'user'), id=reserva_id, user=request.user)


def home(request):
    canchas = list(Cancha.objects.filter(is_active=True))
    today = services.local_today()
    days = scheduling.upcoming_days(today)

    selected_cancha = canchas[0] if canchas else None
    cancha_param = request.GET.get('cancha', '')
    if cancha_param.isdigit():
        selected_cancha = next((c for c in canchas if c.id == int(cancha_param)), selected_cancha)

    selected_day = days[0]
    day_param = request.GET.get('day', '')
    for day in days:
        if day['date'].isoformat() == day_param:
            selected_day = day

    preview = {'blocks': [], 'pricing_blocks': []}
    if selected_cancha:
        preview = services.build_home_preview(selected_cancha, selected_day['date'])

    featured_eventos = (
        Evento.objects
        .filter(is_active=True, date__gte=today, cancha__is_active=True)
        .select_related('cancha')
        .order_by('date', 'start_time')[:constants.FEATURED_EVENTOS_LIMIT]
    )

    context = {
        'canchas': canchas,
        'selected_cancha': selected_cancha,
        'days': days,
        'selected_day': selected_day,
        'preview_blocks': preview['blocks'],
        'pricing_blocks': preview['pricing_blocks'],
        'featured_eventos': featured_eventos,
        'steps': HomeContent.get_items(constants.HOME_STEPS),
        'trusted_by': HomeContent.get_items(constants.HOME_TRUSTED_BY),
        'videos': HomeContent.get_items(constants.HOME_VIDEOS),
        'featured_discounts': HomeContent.get_items(constants.HOME_FEATURED_DISCOUNTS),
        'discounts_section': HomeContent.discounts_section_info(),
        'default_cancha_image': constants.DEFAULT_CANCHA_IMAGE,
    }
    return render(request, 'main/home.html', context)


def cancha_list(request):
    canchas = Cancha.objects.filter(is_active=True).order_by('name')

    sport_type_filter = request.GET.get('sport_type', '')
    if sport_type_filter:
        canchas = canchas.filter(sport_type=sport_type_filter)

    context = {
        'canchas': _paginate(request, canchas, constants.ITEMS_PER_PAGE),
        'sport_types': SportType.choices,
        'sport_type_filter': sport_type_filter,
        'request_get': dict(request.GET.items()),
        'default_cancha_image': constants.DEFAULT_CANCHA_IMAGE,
    }
    return render(request, 'user/cancha_list.html', context)


# ============= RESERVAS (CLIENTE) =============

@user_or_admin_required
def reserva_create(request, cancha_id):
    """
    Página de reserva

    Flow:
    1. Cliente elige fecha -> grilla de horarios con precio y disponibilidad
    2. Elige hora, duración y código (opcional) -> reserva pendiente
    3. Redirige al pago
    """
    cancha = get_object_or_404(Cancha, id=cancha_id, is_active=True)
    today = services.local_today()

    date_str = request.POST.get('date') if request.method == 'POST' else request.GET.get('date')
    selected_date = today
    if date_str:
        try:
            selected_date = _parse_date(date_str)
        except ValueError:
            messages.warning(request, "Fecha inválida, se muestra el día de hoy.")

    slots = services.available_slots(cancha, selected_date)
    slot_choices = [
        (slot['start'], f"{slot['start']} - {slot['end']}")
        for slot in slots if slot['available']
    ]

    if request.method == 'POST':
        form = ReservaForm(request.POST, slot_choices=slot_choices)
        if form.is_valid():
            try:
                reserva = services.create_reservation(
                    user=request.user,
                    cancha=cancha,
                    on_date=form.cleaned_data['date'],
                    start_time=form.cleaned_data['start_time'],
                    duration_hours=form.cleaned_data['duration_hours'],
                    notes=form.cleaned_data['notes'],
                    discount_code=form.cleaned_data['discount_code'],
                )
            except ReservationError as e:
                messages.error(request, str(e))
            else:
                messages.success(request, constants.MSG_RESERVA_CREATED)
                return redirect('payment', reserva_id=reserva.id)
    else:
        form = ReservaForm(
            initial={'date': selected_date, 'discount_code': request.GET.get('code', '')},
            slot_choices=slot_choices,
        )

    context = {
        'form': form,
        'date_form': DateSelectionForm(initial={'date': selected_date}),
        'cancha': cancha,
        'selected_date': selected_date,
        'slots': slots,
        'public_discounts': services.applicable_public_discounts(cancha, selected_date),
        'today': today.isoformat(),
        'max_date': (today + timedelta(days=constants.MAX_BOOKING_ADVANCE_DAYS)).isoformat(),
        'default_cancha_image': constants.DEFAULT_CANCHA_IMAGE,
    }
    return render(request, 'user/reserva_create.html', context)


@user_or_admin_required
def payment(request, reserva_id):
    reserva = get_object_or_404(
        Reserva.objects.select_related('cancha'), id=reserva_id, user=request.user)

    if reserva.payment_status == PaymentStatus.PAID:
        return redirect('confirmation', reserva_id=reserva.id)
    if reserva.payment_status != PaymentStatus.PENDING:
        messages.error(request, constants.ERR_ONLY_PAY_PENDING)
        return redirect('profile')

    if request.method == 'POST':
        form = PaymentForm(request.POST)
        if form.is_valid():
            try:
                services.process_payment(reserva, form.cleaned_data)
            except PaymentError as e:
                logger.warning("Payment rejected for reserva #%s: %s", reserva.id, e)
                messages.error(request, str(e))
            else:
                messages.success(request, constants.MSG_RESERVA_PAID)
                return redirect('confirmation', reserva_id=reserva.id)
    else:
        form = PaymentForm(initial={
            'email': request.user.email,
            'card_name': request.user.full_name,
            'phone': request.user.phone_number,
        })

    context = {
        'form': form,
        'reserva': reserva,
        'currency_symbol': constants.CURRENCY_SYMBOL,
    }
    return render(request, 'user/payment.html', context)


@user_or_admin_required
def confirmation(request, reserva_id):
    reserva = _get_reserva_for(request, reserva_id)
    context = {
        'reserva': reserva,
        'is_paid': reserva.payment_status == PaymentStatus.PAID,
    }
    return render(request, 'user/confirmation.html', context)


@user_or_admin_required
def profile(request):
    """Perfil del cliente con sus reservas"""
    reservas = (
        Reserva.objects
        .filter(user=request.user)
        .select_related('cancha')
        .order_by('-date', '-start_time')
    )

    status_filter = request.GET.get('status', '')
    if status_filter:
        reservas = reservas.filter(payment_status=status_filter)

    context = {
        'reservas': _paginate(request, reservas, constants.ITEMS_PER_PAGE),
        'status_filter': status_filter,
        'status_choices': PaymentStatus.choices,
        'payment_status': PaymentStatus,
    }
    return render(request, 'user/profile.html', context)


@user_or_admin_required
def reserva_cancel(request, reserva_id):
    """Cancelar reserva (cliente: solo pendientes)"""
    reserva = _get_reserva_for(request, reserva_id)

    if request.method == 'POST':
        try:
            services.cancel_reservation(reserva, request.user)
        except ReservationError as e:
            messages.error(request, str(e))
        else:
            messages.success(request, constants.MSG_RESERVA_CANCELLED)
        if request.user.is_admin:
            return redirect('admin_reserva_list')
        return redirect('profile')

    return render(request, 'user/reserva_cancel.html', {'reserva': reserva})


# ============= AJAX =============

@require_GET
def ajax_time_slots(request, cancha_id):
    """AJAX: grilla de horarios de una cancha para una fecha"""
    cancha = get_object_or_404(Cancha, id=cancha_id, is_active=True)
    date_str = request.GET.get('date')

    if not date_str:
        return JsonResponse({'error': 'Falta el parámetro date'}, status=400)

    try:
        on_date = _parse_date(date_str)
    except ValueError:
        return JsonResponse({'error': 'Formato de fecha inválido'}, status=400)

    slots_data = [
        {
            'start': slot['start'],
            'end': slot['end'],
            'price': float(slot['price']),
            'available': slot['available'],
        }
        for slot in services.available_slots(cancha, on_date)
    ]
    return JsonResponse({'date': date_str, 'slots': slots_data})


@require_GET
@ratelimit(key='ip', rate=constants.DISCOUNT_CHECK_RATE, block=True)
def ajax_check_discount(request):
    """AJAX: valida un código promocional para una reserva en curso"""
    code = request.GET.get('code', '')
    cancha_id = request.GET.get('cancha', '')
    date_str = request.GET.get('date', '')

    if not cancha_id.isdigit() or not date_str:
        return JsonResponse({'valid': False, 'message': 'Faltan parámetros'}, status=400)

    cancha = get_object_or_404(Cancha, id=cancha_id, is_active=True)
    try:
        on_date = _parse_date(date_str)
        start_time = scheduling.parse_time(request.GET['start_time']) if request.GET.get('start_time') else None
        duration = int(request.GET.get('duration') or constants.MIN_DURATION_HOURS)
    except ValueError:
        return JsonResponse({'valid': False, 'message': 'Parámetros inválidos'}, status=400)

    try:
        if request.GET.get('amount'):
            base_amount = scheduling.to_money(request.GET['amount'])
            if not base_amount.is_finite():
                return JsonResponse({'valid': False, 'message': 'Monto inválido'}, status=400)
        elif start_time is not None:
            base_amount = services.quote_reservation(cancha, on_date, start_time, duration)
        else:
            return JsonResponse({'valid': False, 'message': 'Selecciona un horario'}, status=400)
    except ArithmeticError:
        return JsonResponse({'valid': False, 'message': 'Monto inválido'}, status=400)
    except ReservationError as e:
        return JsonResponse({'valid': False, 'message': str(e)})

    result = services.validate_discount(
        code, base_amount, cancha, on_date, start_time, user=request.user)
    if not result['valid']:
        return JsonResponse({'valid': False, 'message': result['message']})

    descuento = result['descuento']
    calculation = result['calculation']
    return JsonResponse({
        'valid': True,
        'message': result['message'],
        'code': descuento.code,
        'name': descuento.name,
        'discount_type': descuento.discount_type,
        'value': float(descuento.value),
        'subtotal': float(base_amount),
        'discount': float(calculation['discount']),
        'final_amount': float(calculation['final_amount']),
        'applied': calculation['applied'],
    })


# ============= ADMIN DASHBOARD =============

@admin_required
def admin_reserva_list(request):
    """Panel admin: reservas filtradas por estado y rango de fechas."""
    status_filter = request.GET.get("status", "")
    date_from = request.GET.get("date_from", "")
    date_to = request.GET.get("date_to", "")

    reservas = (
        Reserva.objects
        .select_related("user", "cancha", "descuento")
        .order_by("-date", "-start_time")
    )

    if status_filter:
        reservas = reservas.filter(payment_status=status_filter)

    if date_from:
        try:
            reservas = reservas.filter(date__gte=_parse_date(date_from))
        except ValueError:
            messages.warning(request, "Formato de fecha 'desde' inválido.")
            date_from = ""

    if date_to:
        try:
            reservas = reservas.filter(date__lte=_parse_date(date_to))
        except ValueError:
            messages.warning(request, "Formato de fecha 'hasta' inválido.")
            date_to = ""

    context = {
        "reservas": _paginate(request, reservas, constants.ADMIN_LIST_PER_PAGE),
        "status_filter": status_filter,
        "date_from": date_from,
        "date_to": date_to,
        "status_choices": PaymentStatus.choices,
        "payment_status": PaymentStatus,
    }
    return render(request, "host/reserva_manage.html", context)


@admin_required
def admin_update_reserva_status(request, reserva_id):
    """Admin confirma (pago manual) o cancela una reserva."""
    if request.method != "POST":
        return HttpResponseNotAllowed(["POST"])

    reserva = get_object_or_404(Reserva.objects.select_related('cancha', 'user'), pk=reserva_id)
    action = request.POST.get("action")

    try:
        if action == "confirm":
            services.confirm_reservation(reserva)
            messages.success(request, constants.MSG_RESERVA_CONFIRMED.format(reserva_id=reserva.id))
        elif action == "cancel":
            services.cancel_reservation(reserva, request.user)
            messages.success(request, constants.MSG_RESERVA_CANCELLED)
        else:
            messages.error(request, "Acción inválida.")
    except ReservationError as e:
        messages.error(request, str(e))

    return redirect("admin_reserva_list")
