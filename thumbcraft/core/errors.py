# FILE: thumbcraft/core/errors.py
"""Error taxonomy shared by services and the HTTP layer.

Every error carries a stable ``code``, an HTTP ``status_code`` and an
``action`` hint so the UI can pick between "retry", "upgrade",
"contact_support" and "fix_input" affordances.
"""

import logging
from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse
from starlette.requests import Request

logger = logging.getLogger("thumbcraft.errors")


class AppError(Exception):
    code = "app_error"
    status_code = 500
    action = "retry"

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None,
                 action: Optional[str] = None, raw: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        if action:
            self.action = action
        # raw upstream error for logs, never for users
        self.raw = raw

    def to_http_detail(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "action": self.action,
        }


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400
    action = "fix_input"


class NotFoundError(AppError):
    code = "not_found"
    status_code = 404
    action = "fix_input"


class InsufficientCreditsError(AppError):
    code = "insufficient_credits"
    status_code = 402
    action = "upgrade"


class ImageGenerationError(AppError):
    """Upstream image provider failure. ``retryable`` drives the retry policy."""
    code = "GENERIC"
    status_code = 500

    def __init__(self, message: str, *, retryable: bool = True, **kwargs):
        super().__init__(message, **kwargs)
        self.retryable = retryable


class BackgroundDecodeError(AppError):
    code = "background_decode_failed"
    status_code = 422
    action = "fix_input"


class InvalidPlanError(ValidationError):
    code = "invalid_plan"


class PaymentProviderError(AppError):
    code = "payment_provider_error"
    status_code = 502


class PaymentNotFoundError(NotFoundError):
    code = "payment_not_found"


class InvalidSignatureError(AppError):
    code = "invalid_signature"
    status_code = 400
    action = "contact_support"


class PaymentStateError(AppError):
    code = "payment_state_conflict"
    status_code = 409
    action = "contact_support"


class PlanGrantError(AppError):
    """Payment verified but the entitlement write failed; needs reconciliation."""
    code = "plan_grant_failed"
    status_code = 500
    action = "contact_support"


class ClientDisconnectedError(AppError):
    """Caller went away mid-generation; the upstream call was cancelled."""
    code = "client_disconnected"
    status_code = 499
    action = "retry"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.raw or exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_http_detail())
