"""
Error Handler Utility for callers of the services (e.g. an HTTP layer)

Converts any exception raised by a service into a status code and a JSON-ready
payload:

    {"success": False, "error": <kind>, "message": ..., "details": {...}}

Usage:
    from utils.error_handler import handle_service_error

    try:
        order = await order_service.create_from_cart(user_id, address, phone)
    except Exception as e:
        status, payload = handle_service_error(e)
"""

import logging

from exceptions import ShopException

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"


def handle_service_error(exception: Exception) -> tuple[int, dict]:
    """
    Map an exception to (http_status, payload).

    Domain exceptions carry their own kind and status. Anything else is
    reported as a 500 without leaking its message.
    """
    if isinstance(exception, ShopException):
        if exception.http_status >= 500:
            logger.error(f"Service error: {type(exception).__name__} - {exception}")
        else:
            logger.warning(f"Service error handled: {type(exception).__name__} - {exception}")

        payload = {
            "success": False,
            "error": exception.kind,
            "message": exception.message,
            "details": exception.details,
        }
        if getattr(exception, "retryable", False):
            payload["retryable"] = True
        return exception.http_status, payload

    logger.exception(f"Unexpected error: {type(exception).__name__}", exc_info=exception)
    return 500, {
        "success": False,
        "error": ShopException.kind,
        "message": UNEXPECTED_ERROR_MESSAGE,
        "details": {},
    }
