# shop/exceptions.py — error taxonomy + DRF handler: every failure -> {"detail", "code", ...}
import logging

from django.db import DatabaseError
from rest_framework import exceptions, status
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class ShopError(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request failed."
    default_code = "error"

    def __init__(self, detail=None, **extra):
        super().__init__(detail=detail or self.default_detail, code=self.default_code)
        self.extra = extra


class OrderValidationError(ShopError):
    default_detail = "Invalid request."
    default_code = "validation_error"


class AuthError(ShopError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Authentication required."
    default_code = "auth_error"


class PermissionDeniedError(AuthError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Admin privileges required."
    default_code = "forbidden"


class NotFoundError(ShopError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = "not_found"


class ConflictError(ShopError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict."
    default_code = "conflict"


class InvalidTransitionError(ConflictError):
    default_detail = "Status transition not allowed."
    default_code = "invalid_transition"


class PriceMismatchError(ConflictError):
    default_detail = "Product price changed, refresh the cart."
    default_code = "price_mismatch"


class InsufficientStockError(ShopError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Insufficient stock."
    default_code = "insufficient_stock"


class UploadRejectedError(OrderValidationError):
    default_detail = "File type not allowed."
    default_code = "upload_rejected"


class UploadTooLargeError(ShopError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    default_detail = "File too large."
    default_code = "upload_too_large"


class StorageError(ShopError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Storage unavailable, try again later."
    default_code = "storage_error"


def exception_handler(exc, context):
    """
    Wraps DRF's handler:
    - ShopError      -> {"detail", "code", **extra}
    - ValidationError (serializers) -> {"detail", "code": "validation_error", "errors"}
    - DatabaseError  -> 503 storage_error (logged, never leaks SQL)
    """
    if isinstance(exc, DatabaseError):
        logger.exception("Unhandled storage failure in %s", context.get("view"))
        exc = StorageError()

    response = drf_exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, ShopError):
        response.data = {"detail": str(exc.detail), "code": exc.default_code, **exc.extra}
    elif isinstance(exc, exceptions.ValidationError):
        response.data = {
            "detail": "Invalid request.",
            "code": "validation_error",
            "errors": exc.detail,
        }
    elif isinstance(response.data, dict) and "detail" in response.data:
        codes = exc.get_codes() if isinstance(exc, exceptions.APIException) else None
        response.data["code"] = codes if isinstance(codes, str) else "error"
    return response
