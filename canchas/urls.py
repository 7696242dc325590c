from django.urls import path
from . import views

urlpatterns = [
    path('', views.home, name='home'),
    path('canchas/', views.cancha_list, name='cancha_list'),

    # Reservas
    path(
        'reserva/<int:cancha_id>/',
        views.reserva_create,
        name='reserva_create'),
    path(
        'reserva/<int:reserva_id>/pago/',
        views.payment,
        name='payment'),
    path(
        'reserva/<int:reserva_id>/confirmacion/',
        views.confirmation,
        name='confirmation'),
    path(
        'reserva/<int:reserva_id>/cancelar/',
        views.reserva_cancel,
        name='reserva_cancel'),
    path('perfil/', views.profile, name='profile'),

    # Panel admin de reservas
    path(
        'dashboard/reservas/',
        views.admin_reserva_list,
        name='admin_reserva_list'),
    path('dashboard/reservas/<int:reserva_id>/update-status/', views.admin_update_reserva_status,
         name='admin_update_reserva_status'),

    # AJAX
    path(
        'ajax/horarios/<int:cancha_id>/',
        views.ajax_time_slots,
        name='ajax_time_slots'),
    path(
        'ajax/descuento/',
        views.ajax_check_discount,
        name='ajax_check_discount'),
]
