import logging
import textwrap
from smtplib import SMTPException

from django.conf import settings
from django.core.mail import BadHeaderError, send_mail
from django.utils.html import escape

from . import constants

logger = logging.getLogger(__name__)


def _reservation_summary(reserva):
    return (
        f"Cancha: {reserva.cancha.name}\n"
        f"Fecha: {reserva.date:%d/%m/%Y}\n"
        f"Horario: {reserva.start_time:%H:%M} - {reserva.end_time:%H:%M}\n"
        f"Total: {constants.CURRENCY_SYMBOL} {reserva.total_price}"
    )


def _send(subject, message, html_message, recipient):
    if not recipient:
        logger.warning("No recipient for email '%s'", subject)
        return False
    try:
        send_mail(
            subject,
            message,
            settings.DEFAULT_FROM_EMAIL,
            [recipient],
            html_message=html_message,
            fail_silently=False,
        )
    except (BadHeaderError, SMTPException, OSError):
        logger.error("Error sending email '%s' to %s", subject, recipient, exc_info=True)
        return False
    return True


def send_reservation_confirmation_email(reserva, email=None):
    recipient = email or reserva.user.email
    summary = _reservation_summary(reserva)

    subject = f'Reserva #{reserva.id} confirmada'
    message = textwrap.dedent(f"""
        Hola {reserva.user.display_name()},

        Tu reserva fue confirmada y el pago se procesó correctamente.

        {{summary}}
        Transacción: {reserva.transaction_id}

        ¡Te esperamos en la cancha!
    """).strip().replace('{summary}', summary)

    html_message = textwrap.dedent(f"""
        <html>
            <body>
                <p>Hola <strong>{escape(reserva.user.display_name())}</strong>,</p>
                <p>Tu reserva fue confirmada y el pago se procesó correctamente.</p>
                <p>{escape(summary).replace(chr(10), '<br>')}</p>
                <p>Transacción: <strong>{escape(reserva.transaction_id)}</strong></p>
                <p>¡Te esperamos en la cancha!</p>
            </body>
        </html>
    """).strip()

    return _send(subject, message, html_message, recipient)


def send_reservation_cancellation_email(reserva):
    summary = _reservation_summary(reserva)

    subject = f'Reserva #{reserva.id} cancelada'
    message = textwrap.dedent(f"""
        Hola {reserva.user.display_name()},

        Tu reserva fue cancelada.

        {{summary}}

        Si no solicitaste esta cancelación, comunícate con nosotros.
    """).strip().replace('{summary}', summary)

    html_message = textwrap.dedent(f"""
        <html>
            <body>
                <p>Hola <strong>{escape(reserva.user.display_name())}</strong>,</p>
                <p>Tu reserva fue cancelada.</p>
                <p>{escape(summary).replace(chr(10), '<br>')}</p>
                <p>Si no solicitaste esta cancelación, comunícate con nosotros.</p>
            </body>
        </html>
    """).strip()

    return _send(subject, message, html_message, reserva.user.email)
