"""
Project-wide DRF exception handler.

Every error body carries an ``error`` message so API clients can surface it
directly; field-level validation details go under ``details``.
"""
import logging

from rest_framework import exceptions
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


def _first_message(detail):
    if isinstance(detail, dict):
        for key, value in detail.items():
            message = _first_message(value)
            if message:
                return message if key == 'non_field_errors' else f"{key}: {message}"
        return None
    if isinstance(detail, (list, tuple)):
        for value in detail:
            message = _first_message(value)
            if message:
                return message
        return None
    return str(detail)


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(response.data, dict) and 'error' in response.data:
        return response

    if isinstance(exc, exceptions.ValidationError):
        response.data = {
            'error': _first_message(exc.detail) or 'Invalid request data',
            'details': exc.detail,
        }
    else:
        detail = getattr(exc, 'detail', None)
        response.data = {'error': _first_message(detail) or str(exc)}

    view = context.get('view')
    logger.warning(f"{exc.__class__.__name__} in {getattr(view, '__name__', view)}: {response.data['error']}")
    return response
