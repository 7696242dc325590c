from functools import wraps

from django.contrib.auth.decorators import login_required
from django.http import HttpResponseForbidden

from . import constants


def user_or_admin_required(view_func):
    """Cliente o administrador autenticado."""
    @login_required(login_url='login')
    @wraps(view_func)
    def _wrapped_view(request, *args, **kwargs):
        if request.user.role not in (constants.ROLE_USER, constants.ROLE_ADMIN):
            return HttpResponseForbidden(constants.ERR_NO_PERMISSION)
        return view_func(request, *args, **kwargs)
    return _wrapped_view


def admin_required(view_func):
    @login_required(login_url='login')
    @wraps(view_func)
    def _wrapped_view(request, *args, **kwargs):
        if request.user.role != constants.ROLE_ADMIN:
            return HttpResponseForbidden(constants.ERR_NO_PERMISSION)
        return view_func(request, *args, **kwargs)
    return _wrapped_view
