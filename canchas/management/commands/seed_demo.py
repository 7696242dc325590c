import json
from datetime import time, timedelta

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from canchas import constants
from canchas.models import (
    Cancha,
    CanchaSize,
    Descuento,
    DiscountType,
    Evento,
    HomeContent,
    Role,
    SportType,
    User,
)
from canchas.services import upsert_horarios

DEFAULT_CANCHAS = [
    {
        "nombre": "Cancha Marakanazo",
        "tipo": SportType.FUTBOL,
        "tamano": CanchaSize.GRANDE,
        "descripcion": "Grass sintético, iluminación LED y vestidores.",
        "precio": 80,
        "precios": {
            "manana": {"inicio": "07:00", "fin": "17:00", "precio": 80},
            "noche": {"inicio": "17:00", "fin": "00:00", "precio": 120},
        },
        "preciosSemanales": {
            "sabado": {
                "manana": {"inicio": "07:00", "fin": "00:00", "precio": 130},
                "noche": {"inicio": "17:00", "fin": "00:00", "precio": 130},
            },
        },
    },
    {
        "nombre": "Cancha Vóley Playa",
        "tipo": SportType.VOLEY,
        "tamano": CanchaSize.MEDIANA,
        "descripcion": "Arena fina, red reglamentaria.",
        "precio": 50,
        "precios": {
            "manana": {"inicio": "07:00", "fin": "18:00", "precio": 50},
            "noche": {"inicio": "18:00", "fin": "00:00", "precio": 70},
        },
    },
]

DEFAULT_CONFIG = {
    "horarios": {
        "diasParaCrear": constants.HORARIO_DAYS_TO_CREATE,
        "horaInicio": constants.HORARIO_START_HOUR,
        "horaFin": constants.HORARIO_END_HOUR,
        "duracion": constants.HORARIO_SLOT_DURATION,
    },
}

DESCUENTOS = [
    ("BIENVENIDO10", "Bienvenida 10%", DiscountType.PERCENTAGE, 10, 0, None),
    ("NOCHE20", "Noches 20%", DiscountType.PERCENTAGE, 20, 100, 50),
    ("FIJO15", "S/ 15 de descuento", DiscountType.FIXED_AMOUNT, 15, 60, None),
]


def _band(data):
    if not data:
        return None
    return {"start": data.get("inicio"), "end": data.get("fin"), "price": data.get("precio", 0)}


def _pricing(data):
    if not data:
        return None
    pricing = {"morning": _band(data.get("manana")), "evening": _band(data.get("noche"))}
    return {key: band for key, band in pricing.items() if band} or None


def cancha_defaults(data):
    """Campos de Cancha a partir de un registro de seed (claves en español)."""
    weekly = data.get("preciosSemanales") or {}
    return {
        "sport_type": data.get("tipo", SportType.FUTBOL),
        "size": data.get("tamano") or CanchaSize.GRANDE,
        "description": data.get("descripcion", ""),
        "base_price": data.get("precio") or 0,
        "pricing": _pricing(data.get("precios")),
        "weekly_pricing": {day: _pricing(prices) for day, prices in weekly.items()} or None,
        "images": data.get("imagenes") or {},
        "is_active": data.get("activa", True),
    }


class Command(BaseCommand):
    help = "Seed demo data: canchas, horarios, users, discounts, an event and home content."

    def add_arguments(self, parser):
        parser.add_argument(
            '--file',
            help='JSON file shaped {"canchas": [...], "config": {"horarios": {...}}}'
        )

    def _load(self, path):
        if not path:
            return DEFAULT_CANCHAS, DEFAULT_CONFIG
        try:
            with open(path, encoding='utf-8') as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            raise CommandError(f"Error loading {path}: {e}")
        return data.get("canchas") or [], data.get("config") or DEFAULT_CONFIG

    def handle(self, *args, **options):
        self.stdout.write(self.style.MIGRATE_HEADING("Seeding demo data..."))
        canchas_data, config = self._load(options.get('file'))
        horarios_config = {**DEFAULT_CONFIG["horarios"], **(config.get("horarios") or {})}
        today = timezone.localdate()

        # Canchas + horarios
        canchas = []
        for data in canchas_data:
            cancha, _ = Cancha.objects.update_or_create(
                name=data["nombre"],
                defaults=cancha_defaults(data),
            )
            canchas.append(cancha)
            upsert_horarios(
                cancha,
                today,
                horarios_config["diasParaCrear"],
                horarios_config["horaInicio"],
                horarios_config["horaFin"],
                horarios_config["duracion"],
            )
            self.stdout.write(f"  ✓ {cancha.name}: {horarios_config['diasParaCrear']} día(s) de horarios")

        # Users
        admin_user, created_admin = User.objects.get_or_create(
            username="admin_demo",
            defaults={
                "full_name": "Admin Demo",
                "email": "admin_demo@example.com",
                "role": Role.ADMIN,
                "is_staff": True,
                "is_superuser": True,
                "is_active": True,
            },
        )
        if created_admin:
            admin_user.set_password("Admin@123")
            admin_user.save()

        normal_user, created_user = User.objects.get_or_create(
            username="user_demo",
            defaults={
                "full_name": "Cliente Demo",
                "email": "user_demo@example.com",
                "phone_number": "999888777",
                "role": Role.USER,
                "is_active": True,
            },
        )
        if created_user:
            normal_user.set_password("User@123")
            normal_user.save()

        # Descuentos
        for code, name, discount_type, value, min_amount, max_uses in DESCUENTOS:
            Descuento.objects.get_or_create(
                code=code,
                defaults={
                    "name": name,
                    "discount_type": discount_type,
                    "value": value,
                    "min_amount": min_amount,
                    "max_uses": max_uses,
                    "uses_per_user": 1,
                    "start_date": today,
                    "end_date": today + timedelta(days=90),
                    "is_public": True,
                },
            )

        # Evento
        if canchas:
            Evento.objects.get_or_create(
                cancha=canchas[0],
                name="Torneo relámpago",
                defaults={
                    "description": "Torneo de fulbito de fin de semana.",
                    "date": today + timedelta(days=7),
                    "start_time": time(9, 0),
                    "end_time": time(13, 0),
                },
            )

        # Portada
        HomeContent.save_items(constants.HOME_STEPS, [
            {"title": "Elige tu cancha", "description": "Revisa horarios y precios en tiempo real."},
            {"title": "Reserva", "description": "Escoge fecha, hora y duración."},
            {"title": "Paga en línea", "description": "Confirma tu reserva al instante."},
        ])
        HomeContent.save_items(constants.HOME_FEATURED_DISCOUNTS, [
            {"code": code, "title": name} for code, name, *_ in DESCUENTOS
        ], title=constants.DISCOUNTS_SECTION_TITLE, subtitle=constants.DISCOUNTS_SECTION_SUBTITLE)

        self.stdout.write(self.style.SUCCESS("Seed demo data completed."))
        self.stdout.write(self.style.NOTICE("Cuentas demo:"))
        self.stdout.write(" - Admin  : admin_demo / Admin@123")
        self.stdout.write(" - Cliente: user_demo / User@123")
        self.stdout.write(self.style.NOTICE("Descuentos demo:"))
        for code, name, *_ in DESCUENTOS:
            self.stdout.write(f" - {code}: {name}")
