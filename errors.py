"""
Error taxonomy shared by every endpoint.

Errors are raised as ApiError and rendered by the handlers in main.py as
``{"error": CODE, "message": ..., **context}`` so callers get everything they
need to self-correct in a single response.
"""

from typing import Optional

NOT_FOUND = "NOT_FOUND"
AUCTION_NOT_ENABLED = "AUCTION_NOT_ENABLED"
AUCTION_ENDED = "AUCTION_ENDED"
AUCTION_ACTIVE = "AUCTION_ACTIVE"
BID_TOO_LOW = "BID_TOO_LOW"
LINK_EXPIRED = "LINK_EXPIRED"
VALIDATION = "VALIDATION"
PAYMENT_ERROR = "PAYMENT_ERROR"
INTERNAL = "INTERNAL"

STATUS_CODES = {
    NOT_FOUND: 404,
    AUCTION_NOT_ENABLED: 400,
    AUCTION_ENDED: 409,
    AUCTION_ACTIVE: 409,
    BID_TOO_LOW: 400,
    LINK_EXPIRED: 410,
    VALIDATION: 400,
    PAYMENT_ERROR: 502,
    INTERNAL: 500,
}


class ApiError(Exception):
    def __init__(self, code: str, message: str = "", status_code: Optional[int] = None, **context):
        super().__init__(message or code)
        self.code = code
        self.message = message or code.replace("_", " ").lower()
        self.status_code = status_code or STATUS_CODES.get(code, 400)
        self.context = context

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, **self.context}


def not_found(what: str) -> ApiError:
    return ApiError(NOT_FOUND, f"{what} not found")
