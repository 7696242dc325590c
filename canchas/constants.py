DEFAULT_CANCHA_IMAGE = '/static/images/futbol1.jpg'
DEFAULT_EVENTO_IMAGE = '/static/images/futbol1.jpg'

CURRENCY_SYMBOL = 'S/'
CURRENCY_CODE = 'PEN'
LOCAL_TIMEZONE = 'America/Lima'

ITEMS_PER_PAGE = 6
ADMIN_LIST_PER_PAGE = 20
ADMIN_INLINE_EXTRA = 0

ROLE_ADMIN = "Admin"
ROLE_USER = "User"

# Horario por defecto cuando no existe documento de horarios para el día
DEFAULT_OPENING_HOUR = 7
DEFAULT_CLOSING_HOUR = 24
DEFAULT_MORNING_BAND = {'start': '07:00', 'end': '17:00', 'price': 0}
DEFAULT_EVENING_BAND = {'start': '17:00', 'end': '00:00', 'price': 0}

# Vista previa de la portada
PREVIEW_DAYS = 3
PREVIEW_BLOCKS = 3
PREVIEW_EARLIEST_HOUR = 5
FEATURED_EVENTOS_LIMIT = 6

PAYMENT_PENDING = 'pendiente'
PAYMENT_PAID = 'pagado'
PAYMENT_CANCELLED = 'cancelado'
BLOCKING_PAYMENT_STATUSES = (PAYMENT_PENDING, PAYMENT_PAID)

MIN_DURATION_HOURS = 1
MAX_DURATION_HOURS = 4
DEFAULT_DURATION_HOURS = 2
MAX_BOOKING_ADVANCE_DAYS = 30

# generate_horarios
HORARIO_DAYS_TO_CREATE = 14
HORARIO_START_HOUR = 7
HORARIO_END_HOUR = 24
HORARIO_SLOT_DURATION = 1

WEEKDAY_KEYS = ('lunes', 'martes', 'miercoles', 'jueves', 'viernes', 'sabado', 'domingo')
WEEKDAY_NAMES = ('Lunes', 'Martes', 'Miércoles', 'Jueves', 'Viernes', 'Sábado', 'Domingo')

DISCOUNT_CODE_MAX_LENGTH = 50
DISCOUNT_CODE_PATTERN = r'^[A-Za-z0-9\-_]+$'
DISCOUNT_CHECK_RATE = '10/m'

CARD_NUMBER_LENGTH = 16
CARD_CVV_LENGTH = 3
TRANSACTION_PREFIX = 'TXN_'
PAYMENT_METHOD_CARD = 'card'

HOME_STEPS = 'steps'
HOME_TRUSTED_BY = 'trusted_by'
HOME_VIDEOS = 'videos'
HOME_FEATURED_DISCOUNTS = 'featured_discounts'
DISCOUNTS_SECTION_TITLE = 'Descuentos Increíbles Disponibles Esta Semana!'
DISCOUNTS_SECTION_SUBTITLE = 'No te pierdas nuestras ofertas especiales en reservas de canchas.'

READONLY_TIMESTAMP_FIELDS = ('created_at', 'updated_at')
RESERVA_READONLY_FIELDS = (
    'created_at', 'updated_at', 'duration_hours', 'subtotal',
    'discount_amount', 'total_price', 'transaction_id', 'paid_at',
)
DESCUENTO_READONLY_FIELDS = ('created_at', 'updated_at', 'used_count')
DATE_HIERARCHY_RESERVA = 'date'

MSG_RESERVA_CREATED = 'Reserva registrada. Completa el pago para confirmarla.'
MSG_RESERVA_PAID = '¡Reserva confirmada! Tu pago fue procesado exitosamente.'
MSG_RESERVA_CANCELLED = 'La reserva fue cancelada.'
MSG_RESERVA_CONFIRMED = 'Reserva #{reserva_id} marcada como pagada.'
ERR_NO_PERMISSION = 'No tienes permiso para realizar esta acción.'
ERR_SLOT_TAKEN = 'El horario seleccionado ya no está disponible.'
ERR_ONLY_CANCEL_PENDING = 'Solo se pueden cancelar reservas pendientes.'
ERR_ONLY_PAY_PENDING = 'Solo se pueden pagar reservas pendientes.'
ERR_PAST_DATE = 'No se puede reservar en una fecha pasada.'
ERR_DATE_TOO_FAR = 'Solo se puede reservar con hasta {days} días de anticipación.'
ERR_INVALID_DURATION = 'La duración debe ser entre {min} y {max} horas.'
ERR_DISCOUNT_REQUIRED = 'Código requerido'
ERR_DISCOUNT_NOT_FOUND = 'Código promocional no válido'
ERR_DISCOUNT_NOT_IN_FORCE = 'El código promocional no está vigente en este momento'
ERR_DISCOUNT_WRONG_CANCHA = 'Este código no aplica para esta cancha'
ERR_DISCOUNT_MIN_AMOUNT = 'El monto mínimo para aplicar este descuento es S/ {amount}'
ERR_DISCOUNT_USER_LIMIT = 'Ya usaste este código el máximo de veces permitido'
ERR_DISCOUNT_ERROR = 'Error al validar el código promocional'
ERR_DISCOUNT_CODE_FORMAT = 'El código solo puede contener letras, números, guiones y guiones bajos'
