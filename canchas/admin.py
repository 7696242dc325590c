from django.contrib import admin, messages
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.db.models import Count

from .forms import CanchaAdminForm
from .models import (
    User, Role, Cancha, Horario, Evento, Descuento, Reserva, HomeContent
)
from .services import ReservationError, cancel_reservation, confirm_reservation
from . import constants


class CustomUserAdmin(BaseUserAdmin):
    list_display = ('username', 'email', 'full_name', 'phone_number', 'role', 'is_staff', 'is_active')
    search_fields = ('username', 'email', 'full_name', 'phone_number')
    list_filter = ('role', 'is_active', 'is_staff')
    readonly_fields = constants.READONLY_TIMESTAMP_FIELDS
    list_per_page = constants.ADMIN_LIST_PER_PAGE
    actions = ['promote_to_admin', 'demote_to_user']

    fieldsets = (
        (None, {'fields': ('username', 'password')}),
        ('Datos personales', {'fields': ('full_name', 'email', 'phone_number', 'photo_url')}),
        ('Permisos y rol', {'fields': ('role', 'is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
        ('Fechas', {'fields': ('last_login',) + constants.READONLY_TIMESTAMP_FIELDS}),
    )
    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('username', 'email', 'password1', 'password2', 'role'),
        }),
    )

    @admin.action(description="Promover a administrador")
    def promote_to_admin(self, request, queryset):
        updated = queryset.update(role=Role.ADMIN, is_staff=True)
        self.message_user(request, f"{updated} usuario(s) promovido(s) a administrador.")

    @admin.action(description="Quitar rol de administrador")
    def demote_to_user(self, request, queryset):
        queryset = queryset.exclude(pk=request.user.pk)
        updated = queryset.filter(is_superuser=False).update(role=Role.USER, is_staff=False)
        updated += queryset.filter(is_superuser=True).update(role=Role.USER)
        self.message_user(request, f"{updated} usuario(s) ahora son clientes.")


class HorarioInline(admin.TabularInline):
    model = Horario
    extra = constants.ADMIN_INLINE_EXTRA
    fields = ('date', 'slots')
    ordering = ('-date',)
    show_change_link = True


class CanchaAdmin(admin.ModelAdmin):
    form = CanchaAdminForm
    list_display = ('name', 'sport_type', 'size', 'morning_price', 'evening_price', 'horarios_count', 'is_active')
    search_fields = ('name', 'description')
    list_filter = ('sport_type', 'size', 'is_active')
    readonly_fields = constants.READONLY_TIMESTAMP_FIELDS
    ordering = ('name',)
    inlines = [HorarioInline]
    list_per_page = constants.ADMIN_LIST_PER_PAGE
    actions = ['deactivate', 'activate']

    fieldsets = (
        (None, {'fields': ('name', 'sport_type', 'size', 'description', 'images', 'is_active')}),
        ('Precios', {'fields': (
            ('morning_start', 'morning_end', 'morning_price'),
            ('evening_start', 'evening_end', 'evening_price'),
            'base_price',
            'weekly_pricing',
        )}),
        ('Fechas', {'fields': constants.READONLY_TIMESTAMP_FIELDS}),
    )

    def get_queryset(self, request):
        return super().get_queryset(request).annotate(horario_total=Count('horarios'))

    def _band_price(self, obj, band):
        values = (obj.pricing or {}).get(band) or {}
        return f"{constants.CURRENCY_SYMBOL} {values.get('price', 0)}"

    def morning_price(self, obj):
        return self._band_price(obj, 'morning')
    morning_price.short_description = "Precio mañana"

    def evening_price(self, obj):
        return self._band_price(obj, 'evening')
    evening_price.short_description = "Precio noche"

    def horarios_count(self, obj):
        return obj.horario_total
    horarios_count.short_description = "Horarios"
    horarios_count.admin_order_field = 'horario_total'

    # Eliminar una cancha solo la desactiva
    def delete_model(self, request, obj):
        obj.is_active = False
        obj.save(update_fields=['is_active', 'updated_at'])

    def delete_queryset(self, request, queryset):
        queryset.update(is_active=False)

    @admin.action(description="Desactivar canchas seleccionadas")
    def deactivate(self, request, queryset):
        updated = queryset.update(is_active=False)
        self.message_user(request, f"{updated} cancha(s) desactivada(s).")

    @admin.action(description="Activar canchas seleccionadas")
    def activate(self, request, queryset):
        updated = queryset.update(is_active=True)
        self.message_user(request, f"{updated} cancha(s) activada(s).")


class HorarioAdmin(admin.ModelAdmin):
    list_display = ('cancha', 'date', 'slot_count', 'updated_at')
    search_fields = ('cancha__name',)
    list_filter = ('cancha', 'date')
    readonly_fields = constants.READONLY_TIMESTAMP_FIELDS
    raw_id_fields = ('cancha',)
    ordering = ('-date', 'cancha__name')
    list_per_page = constants.ADMIN_LIST_PER_PAGE

    def slot_count(self, obj):
        return len(obj.slots or [])
    slot_count.short_description = "Slots"

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('cancha')


class EventoAdmin(admin.ModelAdmin):
    list_display = ('name', 'cancha', 'date', 'start_time', 'end_time', 'is_active')
    search_fields = ('name', 'description', 'cancha__name')
    list_filter = ('is_active', 'cancha', 'date')
    readonly_fields = constants.READONLY_TIMESTAMP_FIELDS
    list_editable = ('is_active',)
    date_hierarchy = 'date'
    list_per_page = constants.ADMIN_LIST_PER_PAGE

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('cancha')


class DescuentoAdmin(admin.ModelAdmin):
    list_display = ('code', 'name', 'discount_type', 'value', 'min_amount', 'used_count', 'max_uses',
                    'is_active', 'is_public', 'start_date', 'end_date')
    search_fields = ('code', 'name', 'description')
    list_filter = ('is_active', 'is_public', 'discount_type', 'start_date', 'end_date')
    readonly_fields = constants.DESCUENTO_READONLY_FIELDS
    filter_horizontal = ('canchas',)
    list_editable = ('is_active',)
    list_per_page = constants.ADMIN_LIST_PER_PAGE
    actions = ['deactivate']

    fieldsets = (
        (None, {'fields': ('code', 'name', 'description', 'is_active', 'is_public')}),
        ('Descuento', {'fields': ('discount_type', 'value', 'min_amount', 'max_amount')}),
        ('Vigencia', {'fields': ('start_date', 'end_date', 'start_hour', 'end_hour', 'weekdays')}),
        ('Alcance', {'fields': ('canchas', 'cancha_types')}),
        ('Usos', {'fields': ('max_uses', 'uses_per_user') + constants.DESCUENTO_READONLY_FIELDS}),
    )

    def get_readonly_fields(self, request, obj=None):
        if obj:
            return self.readonly_fields + ('code',)
        return self.readonly_fields

    @admin.action(description="Desactivar descuentos seleccionados")
    def deactivate(self, request, queryset):
        updated = queryset.update(is_active=False)
        self.message_user(request, f"{updated} descuento(s) desactivado(s).")


class ReservaAdmin(admin.ModelAdmin):
    list_display = ('id', 'cancha', 'user', 'date', 'start_time', 'end_time', 'total_price_display',
                    'discount_code', 'payment_status')
    search_fields = ('cancha__name', 'user__username', 'user__full_name', 'transaction_id', 'discount_code')
    list_filter = ('payment_status', 'cancha', 'date')
    date_hierarchy = constants.DATE_HIERARCHY_RESERVA
    readonly_fields = constants.RESERVA_READONLY_FIELDS
    raw_id_fields = ('user', 'cancha', 'descuento')
    list_per_page = constants.ADMIN_LIST_PER_PAGE
    actions = ['mark_paid', 'mark_cancelled']

    def total_price_display(self, obj):
        return f"{constants.CURRENCY_SYMBOL} {obj.total_price}"
    total_price_display.short_description = "Total"

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('user', 'cancha', 'descuento')

    def _run(self, request, queryset, operation, *args):
        done = 0
        for reserva in queryset:
            try:
                operation(reserva, *args)
            except ReservationError as e:
                self.message_user(request, f"Reserva #{reserva.id}: {e}", level=messages.ERROR)
            else:
                done += 1
        return done

    @admin.action(description="Marcar como pagadas")
    def mark_paid(self, request, queryset):
        done = self._run(request, queryset, confirm_reservation)
        self.message_user(request, f"{done} reserva(s) marcada(s) como pagada(s).")

    @admin.action(description="Cancelar reservas seleccionadas")
    def mark_cancelled(self, request, queryset):
        done = self._run(request, queryset, cancel_reservation, request.user)
        self.message_user(request, f"{done} reserva(s) cancelada(s).")


class HomeContentAdmin(admin.ModelAdmin):
    list_display = ('key', 'title', 'item_count', 'updated_at')
    readonly_fields = ('updated_at',)
    list_per_page = constants.ADMIN_LIST_PER_PAGE

    def item_count(self, obj):
        return len(obj.items or [])
    item_count.short_description = "Elementos"


admin.site.register(User, CustomUserAdmin)
admin.site.register(Cancha, CanchaAdmin)
admin.site.register(Horario, HorarioAdmin)
admin.site.register(Evento, EventoAdmin)
admin.site.register(Descuento, DescuentoAdmin)
admin.site.register(Reserva, ReservaAdmin)
admin.site.register(HomeContent, HomeContentAdmin)
