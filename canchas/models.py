import re
from decimal import Decimal

from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import RegexValidator
from django.db import models
from django.utils import timezone

from . import constants, scheduling

TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')


# ===== User & Roles =====
class Role(models.TextChoices):
    USER = "User", "Usuario"
    ADMIN = "Admin", "Administrador"


class User(AbstractUser):
    full_name = models.CharField(max_length=255, blank=True)
    phone_number = models.CharField(max_length=20, blank=True)
    photo_url = models.URLField(blank=True)
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.USER)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.username

    @property
    def is_admin(self):
        return self.role == Role.ADMIN

    def display_name(self):
        return self.full_name or 'Usuario'


# ===== Cancha =====
class SportType(models.TextChoices):
    FUTBOL = "futbol", "Fútbol"
    VOLEY = "voley", "Voleibol"
    BASQUET = "basquet", "Básquet"


class CanchaSize(models.TextChoices):
    GRANDE = "grande", "Grande"
    MEDIANA = "mediana", "Mediana"
    PEQUENA = "pequena", "Pequeña"


def default_pricing():
    return {
        'morning': dict(constants.DEFAULT_MORNING_BAND),
        'evening': dict(constants.DEFAULT_EVENING_BAND),
    }


def validate_pricing_bands(pricing, label='precios'):
    """Errores de formato de un dict de bandas mañana/noche."""
    errors = []
    for band_name in ('morning', 'evening'):
        band = pricing.get(band_name)
        if band is None:
            continue
        for field in ('start', 'end'):
            value = band.get(field)
            if value and not TIME_PATTERN.match(str(value)):
                errors.append(f"{label}.{band_name}.{field}: formato de hora inválido ({value}).")
        try:
            price = Decimal(str(band.get('price') or 0))
        except ArithmeticError:
            errors.append(f"{label}.{band_name}.price: precio inválido.")
            continue
        if price < 0:
            errors.append(f"{label}.{band_name}.price: el precio no puede ser negativo.")
    return errors


def _band_price(band):
    try:
        return Decimal(str(band.get('price') or 0))
    except ArithmeticError:
        return Decimal('0')


class Cancha(models.Model):
    name = models.CharField(max_length=255)
    sport_type = models.CharField(max_length=20, choices=SportType.choices, default=SportType.FUTBOL)
    size = models.CharField(max_length=20, choices=CanchaSize.choices, default=CanchaSize.GRANDE)
    description = models.TextField(blank=True)
    base_price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    pricing = models.JSONField(default=default_pricing, blank=True, null=True, encoder=DjangoJSONEncoder)
    weekly_pricing = models.JSONField(blank=True, null=True, encoder=DjangoJSONEncoder)
    images = models.JSONField(default=dict, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name

    def clean(self):
        errors = []
        if not (self.name or '').strip():
            errors.append("El nombre de la cancha es requerido.")

        if self.pricing:
            errors += validate_pricing_bands(self.pricing)
            morning = self.pricing.get('morning') or {}
            evening = self.pricing.get('evening') or {}
            if all(_band_price(band) <= 0 for band in (morning, evening)):
                errors.append("Debe establecer al menos un precio mayor a 0.")
        elif not self.base_price or self.base_price <= 0:
            errors.append("Debe establecer al menos un precio mayor a 0.")

        if self.weekly_pricing:
            for day_key, day_pricing in self.weekly_pricing.items():
                if day_key not in constants.WEEKDAY_KEYS:
                    errors.append(f"Día desconocido en precios semanales: {day_key}.")
                    continue
                errors += validate_pricing_bands(day_pricing or {}, label=day_key)

        if errors:
            raise ValidationError(errors)

    @property
    def main_image(self):
        return (self.images or {}).get('main') or constants.DEFAULT_CANCHA_IMAGE

    def get_pricing_for_day(self, day_key=None):
        return scheduling.resolve_day_pricing(self.pricing, self.weekly_pricing, day_key)

    def get_price_by_time(self, at_time, day_key=None):
        """Precio por hora para la hora dada, respetando el override del día si hay."""
        return scheduling.price_for_time(self.get_pricing_for_day(day_key), self.base_price, at_time)

    def price_on(self, on_date, at_time):
        return self.get_price_by_time(at_time, scheduling.weekday_key(on_date))


class Horario(models.Model):
    """Horario diario precalculado (slots con precio y disponibilidad) de una cancha."""
    cancha = models.ForeignKey(Cancha, on_delete=models.CASCADE, related_name='horarios')
    date = models.DateField()
    slots = models.JSONField(default=list, blank=True, encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['cancha', 'date']
        unique_together = ('cancha', 'date')

    def __str__(self):
        return f"{self.cancha.name} - {self.date}"


# ===== Evento =====
class Evento(models.Model):
    cancha = models.ForeignKey(Cancha, on_delete=models.CASCADE, related_name='eventos')
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    image = models.URLField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['date', 'start_time']
        indexes = [models.Index(fields=['cancha', 'date', 'is_active'], name='evento_cancha_date_idx')]

    def __str__(self):
        return f"{self.name} ({self.date})"

    def clean(self):
        errors = {}
        if not (self.name or '').strip():
            errors['name'] = "El nombre del evento es requerido."
        if self._state.adding and self.date and self.date < timezone.localdate():
            errors['date'] = "No se puede seleccionar una fecha pasada."
        if self.start_time and self.start_time.minute != 0:
            errors['start_time'] = "La hora de inicio debe ser en punto (HH:00)."
        if self.end_time and self.end_time.minute != 0:
            errors['end_time'] = "La hora de fin debe ser en punto (HH:00)."
        if self.start_time and self.end_time and 'end_time' not in errors:
            start = scheduling.time_to_minutes(self.start_time)
            end = scheduling.time_to_minutes(self.end_time, end_of_day=True)
            if end <= start:
                errors['end_time'] = "La hora de fin debe ser posterior a la hora de inicio."
        if errors:
            raise ValidationError(errors)

    @property
    def display_image(self):
        return self.image or self.cancha.main_image


# ===== Descuento =====
class DiscountType(models.TextChoices):
    PERCENTAGE = "percentage", "Porcentaje"
    FIXED_AMOUNT = "fixed_amount", "Monto fijo"


class Descuento(models.Model):
    code = models.CharField(
        max_length=constants.DISCOUNT_CODE_MAX_LENGTH,
        unique=True,
        validators=[RegexValidator(constants.DISCOUNT_CODE_PATTERN, constants.ERR_DISCOUNT_CODE_FORMAT)],
    )
    name = models.CharField(max_length=255)
    discount_type = models.CharField(max_length=20, choices=DiscountType.choices, default=DiscountType.PERCENTAGE)
    value = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    min_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    max_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    start_hour = models.TimeField(null=True, blank=True)
    end_hour = models.TimeField(null=True, blank=True)
    # weekday() de Python: 0 = lunes ... 6 = domingo. Vacío = todos los días.
    weekdays = models.JSONField(default=list, blank=True)
    canchas = models.ManyToManyField(Cancha, blank=True, related_name='descuentos')
    cancha_types = models.JSONField(default=list, blank=True)
    max_uses = models.PositiveIntegerField(null=True, blank=True)
    uses_per_user = models.PositiveIntegerField(default=1)
    used_count = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    is_public = models.BooleanField(default=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return self.code

    def clean(self):
        errors = {}
        if self.start_date and self.end_date and self.start_date > self.end_date:
            errors['end_date'] = "La fecha de inicio debe ser anterior a la fecha de fin."
        if self.discount_type == DiscountType.PERCENTAGE and self.value is not None and self.value > 100:
            errors['value'] = "El porcentaje no puede ser mayor a 100."
        if self.value is not None and self.value < 0:
            errors['value'] = "El valor no puede ser negativo."
        if self.weekdays and any(day not in range(7) for day in self.weekdays):
            errors['weekdays'] = "Los días de la semana deben estar entre 0 (lunes) y 6 (domingo)."
        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        self.code = (self.code or '').strip().upper()
        super().save(*args, **kwargs)

    def is_valid(self, on_date=None, at_time=None):
        """Vigencia del código para una fecha y (opcionalmente) una hora."""
        on_date = on_date or timezone.localdate()
        if not self.is_active:
            return False
        if self.start_date and on_date < self.start_date:
            return False
        if self.end_date and on_date > self.end_date:
            return False

        if at_time and self.start_hour and self.end_hour:
            hour = scheduling.parse_time(at_time).hour
            if self.end_hour.hour == 0:
                if hour < self.start_hour.hour:
                    return False
            elif hour < self.start_hour.hour or hour >= self.end_hour.hour:
                return False

        if self.weekdays and on_date.weekday() not in self.weekdays:
            return False
        if self.max_uses is not None and self.used_count >= self.max_uses:
            return False
        return True

    def applies_to_cancha(self, cancha):
        if self.pk:
            cancha_ids = set(self.canchas.values_list('id', flat=True))
            if cancha_ids and cancha.pk not in cancha_ids:
                return False
        if self.cancha_types and cancha.sport_type not in self.cancha_types:
            return False
        return True

    def calculate(self, amount):
        """Descuento y monto final para ``amount``; no aplica bajo el monto mínimo."""
        amount = scheduling.to_money(amount)
        if amount < self.min_amount:
            return {'discount': Decimal('0.00'), 'final_amount': amount, 'applied': False}

        discount = Decimal('0')
        if self.discount_type == DiscountType.PERCENTAGE:
            discount = amount * self.value / Decimal(100)
            if self.max_amount is not None and discount > self.max_amount:
                discount = self.max_amount
        elif self.discount_type == DiscountType.FIXED_AMOUNT:
            discount = min(self.value, amount)

        final_amount = max(Decimal('0'), amount - discount)
        return {
            'discount': scheduling.to_money(discount),
            'final_amount': scheduling.to_money(final_amount),
            'applied': True,
        }


# ===== Reserva =====
class PaymentStatus(models.TextChoices):
    PENDING = constants.PAYMENT_PENDING, "Pendiente"
    PAID = constants.PAYMENT_PAID, "Pagado"
    CANCELLED = constants.PAYMENT_CANCELLED, "Cancelado"


class ReservaQuerySet(models.QuerySet):
    def blocking(self):
        return self.filter(payment_status__in=constants.BLOCKING_PAYMENT_STATUSES)

    def for_day(self, cancha, on_date):
        return self.filter(cancha=cancha, date=on_date).order_by('start_time')


class Reserva(models.Model):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="reservas")
    cancha = models.ForeignKey(Cancha, on_delete=models.CASCADE, related_name="reservas")
    date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    duration_hours = models.DecimalField(max_digits=4, decimal_places=2, blank=True, default=0)
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    descuento = models.ForeignKey(Descuento, on_delete=models.SET_NULL, null=True, blank=True, related_name='reservas')
    discount_code = models.CharField(max_length=constants.DISCOUNT_CODE_MAX_LENGTH, blank=True)
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    total_price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    payment_status = models.CharField(max_length=10, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    payment_method = models.CharField(max_length=20, blank=True)
    transaction_id = models.CharField(max_length=64, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ReservaQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['cancha', 'date', 'payment_status'], name='reserva_cancha_date_idx'),
            models.Index(fields=['user', 'created_at'], name='reserva_user_created_idx'),
        ]

    def __str__(self):
        return f"{self.cancha.name} - {self.user.username} ({self.date} {self.start_time:%H:%M})"

    @property
    def is_blocking(self):
        return self.payment_status in constants.BLOCKING_PAYMENT_STATUSES

    def clean(self):
        errors = {}
        if self.start_time and self.end_time:
            start = scheduling.time_to_minutes(self.start_time)
            end = scheduling.time_to_minutes(self.end_time, end_of_day=True)
            if end <= start:
                errors['end_time'] = "La hora de fin debe ser posterior a la hora de inicio."

        # Solo una reserva que bloquea el horario puede chocar con otra
        if not errors and self.cancha_id and self.date and self.is_blocking:
            if not self.is_free_of_conflicts():
                errors['start_time'] = constants.ERR_SLOT_TAKEN

        if errors:
            raise ValidationError(errors)

    def is_free_of_conflicts(self):
        others = Reserva.objects.blocking().for_day(self.cancha_id, self.date)
        if self.pk:
            others = others.exclude(pk=self.pk)
        eventos = Evento.objects.filter(cancha_id=self.cancha_id, date=self.date, is_active=True)
        return scheduling.is_slot_available(self.start_time, self.end_time, others, eventos)

    def save(self, *args, **kwargs):
        if self.start_time and self.end_time:
            minutes = (scheduling.time_to_minutes(self.end_time, end_of_day=True)
                       - scheduling.time_to_minutes(self.start_time))
            self.duration_hours = (Decimal(minutes) / Decimal(60)).quantize(Decimal('0.01'))
        self.full_clean()
        super().save(*args, **kwargs)


# ===== Contenido de la portada =====
class HomeSection(models.TextChoices):
    STEPS = constants.HOME_STEPS, "Pasos"
    TRUSTED_BY = constants.HOME_TRUSTED_BY, "Confían en nosotros"
    VIDEOS = constants.HOME_VIDEOS, "Videos"
    FEATURED_DISCOUNTS = constants.HOME_FEATURED_DISCOUNTS, "Descuentos destacados"


class HomeContent(models.Model):
    key = models.CharField(max_length=30, choices=HomeSection.choices, unique=True)
    items = models.JSONField(default=list, blank=True)
    title = models.CharField(max_length=255, blank=True)
    subtitle = models.CharField(max_length=255, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "contenido de portada"
        verbose_name_plural = "contenido de portada"

    def __str__(self):
        return self.get_key_display()

    @classmethod
    def get_items(cls, key):
        content = cls.objects.filter(key=key).first()
        return list(content.items) if content else []

    @classmethod
    def save_items(cls, key, items, **extra):
        content, _ = cls.objects.update_or_create(key=key, defaults={'items': list(items), **extra})
        return content

    @classmethod
    def discounts_section_info(cls):
        content = cls.objects.filter(key=HomeSection.FEATURED_DISCOUNTS).first()
        return {
            'title': (content and content.title) or constants.DISCOUNTS_SECTION_TITLE,
            'subtitle': (content and content.subtitle) or constants.DISCOUNTS_SECTION_SUBTITLE,
        }
