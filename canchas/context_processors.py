from . import constants


def user_role_context(request):
    """
    Rol del usuario y datos de moneda disponibles en todas las plantillas
    """
    context = {
        'currency_symbol': constants.CURRENCY_SYMBOL,
        'user_role': None,
        'is_admin': False,
        'is_user': False,
    }
    if request.user.is_authenticated:
        context.update({
            'user_role': request.user.role,
            'is_admin': request.user.role == constants.ROLE_ADMIN,
            'is_user': request.user.role == constants.ROLE_USER,
        })
    return context
