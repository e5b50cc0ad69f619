# agrimart/errors.py
import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from .utils.api import api_error

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base for every error that maps onto an API response."""

    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None, data: dict | None = None):
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)


class ValidationError(StoreError):
    status_code = 400
    default_message = "Invalid request"


class NotFound(StoreError):
    status_code = 404
    default_message = "Not found"


class InsufficientBalance(StoreError):
    status_code = 400
    default_message = "Insufficient coins"


class AlreadyUsed(StoreError):
    status_code = 400
    default_message = "Coupon already used"


class BelowMinimum(StoreError):
    status_code = 400
    default_message = "Cart total is below the coupon minimum"


class AlreadyCancelled(StoreError):
    status_code = 409
    default_message = "Order is already cancelled"


class InvalidStatus(StoreError):
    status_code = 400
    default_message = "Invalid status"


class InvalidOrderAmount(StoreError):
    status_code = 400
    default_message = "Order amount must be greater than zero"


class ExternalServiceError(StoreError):
    status_code = 502
    default_message = "Upstream service failed"


class GatewayTimeout(ExternalServiceError):
    """The gateway did not answer in time; the side effect may or may not have happened."""

    default_message = "Payment gateway timed out"


class InternalError(StoreError):
    status_code = 500


def register_error_handlers(app):
    @app.errorhandler(StoreError)
    def handle_store_error(e: StoreError):
        r = jsonify(api_error(e.message, e.data))
        r.status_code = e.status_code
        return r

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        r = jsonify(api_error(e.description or e.name))
        r.status_code = e.code or 500
        return r

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        app.logger.exception("unhandled error: %s", e)
        r = jsonify(api_error("Internal server error"))
        r.status_code = 500
        return r
