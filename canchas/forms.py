import re

from django import forms
from django.core.exceptions import ValidationError
from django.utils import timezone

from . import constants
from .models import Cancha, default_pricing

DURATION_CHOICES = [
    (hours, f"{hours} hora" if hours == 1 else f"{hours} horas")
    for hours in range(constants.MIN_DURATION_HOURS, constants.MAX_DURATION_HOURS + 1)
]
PRICING_BANDS = (('morning', 'mañana'), ('evening', 'noche'))


class DateSelectionForm(forms.Form):
    date = forms.DateField(
        required=True,
        label="Fecha",
        widget=forms.DateInput(attrs={
            'type': 'date',
            'class': 'form-control',
        })
    )

    def clean_date(self):
        selected = self.cleaned_data.get('date')
        if selected and selected < timezone.localdate():
            raise forms.ValidationError(constants.ERR_PAST_DATE)
        return selected


class ReservaForm(forms.Form):
    date = forms.DateField(
        required=True,
        label="Fecha",
        widget=forms.DateInput(attrs={'type': 'date', 'class': 'form-control'})
    )

    start_time = forms.ChoiceField(
        required=True,
        label="Horario",
        widget=forms.RadioSelect(attrs={'class': 'btn-check'})
    )

    duration_hours = forms.TypedChoiceField(
        required=True,
        label="Duración",
        choices=DURATION_CHOICES,
        coerce=int,
        initial=constants.DEFAULT_DURATION_HOURS,
        widget=forms.Select(attrs={'class': 'form-select'})
    )

    discount_code = forms.CharField(
        required=False,
        label="Código promocional",
        max_length=constants.DISCOUNT_CODE_MAX_LENGTH,
        widget=forms.TextInput(attrs={
            'class': 'form-control',
            'placeholder': 'Ingresa tu código',
        })
    )

    notes = forms.CharField(
        required=False,
        label="Notas",
        widget=forms.Textarea(attrs={
            'class': 'form-control',
            'rows': 3,
            'placeholder': 'Información adicional para tu reserva...',
        })
    )

    def __init__(self, *args, **kwargs):
        slot_choices = kwargs.pop('slot_choices', [])
        super().__init__(*args, **kwargs)

        if not slot_choices:
            self.fields['start_time'].choices = [('', 'No hay horarios disponibles')]
            self.fields['start_time'].widget.attrs['disabled'] = True
        else:
            self.fields['start_time'].choices = slot_choices

    def clean_date(self):
        selected = self.cleaned_data.get('date')
        if selected and selected < timezone.localdate():
            raise forms.ValidationError(constants.ERR_PAST_DATE)
        return selected

    def clean_discount_code(self):
        return (self.cleaned_data.get('discount_code') or '').strip().upper()


class PaymentForm(forms.Form):
    card_number = forms.CharField(
        label="Número de tarjeta",
        max_length=19,
        widget=forms.TextInput(attrs={
            'class': 'form-control',
            'placeholder': '1234 5678 9012 3456',
            'autocomplete': 'cc-number',
        })
    )
    expiry_date = forms.CharField(
        label="Vencimiento",
        max_length=5,
        widget=forms.TextInput(attrs={'class': 'form-control', 'placeholder': 'MM/AA'})
    )
    cvv = forms.CharField(
        label="CVV",
        max_length=constants.CARD_CVV_LENGTH,
        widget=forms.PasswordInput(attrs={'class': 'form-control', 'placeholder': '123'})
    )
    card_name = forms.CharField(
        label="Nombre en la tarjeta",
        max_length=255,
        widget=forms.TextInput(attrs={'class': 'form-control'})
    )
    email = forms.EmailField(
        label="Correo electrónico",
        widget=forms.EmailInput(attrs={'class': 'form-control'})
    )
    phone = forms.CharField(
        label="Teléfono",
        max_length=20,
        widget=forms.TextInput(attrs={'class': 'form-control'})
    )

    def clean_card_number(self):
        number = re.sub(r'\s+', '', self.cleaned_data.get('card_number', ''))
        if not number.isdigit() or len(number) != constants.CARD_NUMBER_LENGTH:
            raise ValidationError(
                f"El número de tarjeta debe tener {constants.CARD_NUMBER_LENGTH} dígitos.")
        return number

    def clean_expiry_date(self):
        value = self.cleaned_data.get('expiry_date', '').strip()
        match = re.match(r'^(0[1-9]|1[0-2])/(\d{2})$', value)
        if not match:
            raise ValidationError("La fecha de vencimiento debe tener el formato MM/AA.")

        month, year = int(match.group(1)), 2000 + int(match.group(2))
        today = timezone.localdate()
        if (year, month) < (today.year, today.month):
            raise ValidationError("La tarjeta está vencida.")
        return value

    def clean_cvv(self):
        cvv = self.cleaned_data.get('cvv', '').strip()
        if not cvv.isdigit() or len(cvv) != constants.CARD_CVV_LENGTH:
            raise ValidationError(f"El CVV debe tener {constants.CARD_CVV_LENGTH} dígitos.")
        return cvv

    def clean_card_name(self):
        name = self.cleaned_data.get('card_name', '').strip()
        if not name:
            raise ValidationError("Ingresa el nombre que figura en la tarjeta.")
        return name

    def clean_phone(self):
        phone = self.cleaned_data.get('phone', '').strip()
        if not phone:
            raise ValidationError("Ingresa un teléfono de contacto.")
        return phone


class CanchaAdminForm(forms.ModelForm):
    """
    Formulario de cancha para el admin.

    Las bandas de precio (mañana / noche) se editan como campos separados y
    se guardan en el JSON ``pricing`` de la cancha.
    """
    morning_start = forms.TimeField(label="Mañana: inicio", input_formats=['%H:%M'])
    morning_end = forms.TimeField(label="Mañana: fin", input_formats=['%H:%M'])
    morning_price = forms.DecimalField(label="Mañana: precio por hora", min_value=0, decimal_places=2)
    evening_start = forms.TimeField(label="Noche: inicio", input_formats=['%H:%M'], required=False)
    evening_end = forms.TimeField(
        label="Noche: fin", input_formats=['%H:%M'], required=False,
        help_text="00:00 significa medianoche.")
    evening_price = forms.DecimalField(
        label="Noche: precio por hora", min_value=0, decimal_places=2, required=False)

    class Meta:
        model = Cancha
        fields = [
            'name', 'sport_type', 'size', 'description', 'base_price',
            'weekly_pricing', 'images', 'is_active',
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        pricing = self.instance.pricing if self.instance.pk and self.instance.pricing else default_pricing()
        for band, _ in PRICING_BANDS:
            values = pricing.get(band) or {}
            self.fields[f'{band}_start'].initial = values.get('start')
            self.fields[f'{band}_end'].initial = values.get('end')
            self.fields[f'{band}_price'].initial = values.get('price')

    def clean(self):
        cleaned_data = super().clean()
        pricing = {}
        for band, label in PRICING_BANDS:
            start = cleaned_data.get(f'{band}_start')
            end = cleaned_data.get(f'{band}_end')
            price = cleaned_data.get(f'{band}_price')
            if start is None and end is None and price is None:
                continue
            if start is None or end is None:
                raise ValidationError(f"Completa el inicio y el fin de la banda de {label}.")
            pricing[band] = {
                'start': start.strftime('%H:%M'),
                'end': end.strftime('%H:%M'),
                'price': float(price or 0),
            }
        self.instance.pricing = pricing or None
        return cleaned_data
