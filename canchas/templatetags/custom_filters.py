from django import template
from urllib.parse import urlencode

from .. import constants, scheduling

register = template.Library()


@register.filter
def param_remove(value, key_to_remove):
    """
    Remove a GET parameter from query string
    Usage: {{ request_get|param_remove:"page" }}
    """
    if not isinstance(value, dict):
        return value

    params = value.copy()
    params.pop(key_to_remove, None)
    return urlencode(params, doseq=True)


@register.filter
def soles(value):
    """12.5 -> 'S/ 12.50'"""
    try:
        return f"{constants.CURRENCY_SYMBOL} {scheduling.to_money(value)}"
    except ArithmeticError:
        return value


@register.filter
def hour_label(value):
    return scheduling.format_hour_label(value)
