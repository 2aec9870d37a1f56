from typing import Any, Dict, Optional

from fastapi import status
from stoneguard.libs.result import Error


class ClientError(Exception):
    """
    Caller-facing failure. `extra` carries machine-readable flags
    (requiresCaptcha, retryAfter, ...) placed at the top level of the body.
    """

    def __init__(
        self,
        base_error: Error,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        extra: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.base_error = base_error
        self.status_code = status_code
        self.extra = extra or {}
        self.headers = headers
        super().__init__(base_error.message)


class ServerError(Exception):
    def __init__(self, base_error: Error):
        self.base_error = base_error
        super().__init__(base_error.message)


# Use case / stage error code -> HTTP status
ERROR_STATUS_CODES = {
    "INVALID_ID": status.HTTP_400_BAD_REQUEST,
    "INVALID_AMOUNT": status.HTTP_400_BAD_REQUEST,
    "INVALID_STATUS": status.HTTP_400_BAD_REQUEST,
    "INVALID_QUOTATION_STATUS": status.HTTP_400_BAD_REQUEST,
    "INVALID_ORDER_TRANSITION": status.HTTP_400_BAD_REQUEST,
    "INVALID_PAYMENT_TRANSITION": status.HTTP_400_BAD_REQUEST,
    "QUOTATION_EXPIRED": status.HTTP_400_BAD_REQUEST,
    "QUOTATION_NO_VALIDITY": status.HTTP_400_BAD_REQUEST,
    "ORDER_CANCELLED": status.HTTP_400_BAD_REQUEST,
    "PAYMENT_NOT_COMPLETE": status.HTTP_400_BAD_REQUEST,
    "COURIER_DETAILS_REQUIRED": status.HTTP_400_BAD_REQUEST,
    "AMOUNT_EXCEEDS_BALANCE": status.HTTP_400_BAD_REQUEST,
    "UNAUTHORIZED": status.HTTP_403_FORBIDDEN,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "QUOTATION_ALREADY_PROCESSED": status.HTTP_409_CONFLICT,
    "QUOTATION_STATE_CHANGED": status.HTTP_409_CONFLICT,
    "ORDER_ALREADY_PAID": status.HTTP_409_CONFLICT,
    "ORDER_ALREADY_IN_STATE": status.HTTP_409_CONFLICT,
    "ORDER_STATE_CHANGED": status.HTTP_409_CONFLICT,
    "PROOF_ALREADY_REVIEWED": status.HTTP_409_CONFLICT,
    "INSUFFICIENT_STOCK": status.HTTP_409_CONFLICT,
}
