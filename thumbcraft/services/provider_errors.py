# FILE: thumbcraft/services/provider_errors.py
from __future__ import annotations

from typing import Any, Optional

import httpx

from thumbcraft.core.errors import ImageGenerationError

# Normalizes whatever the image providers throw into the three outcomes the
# API distinguishes (+ AUTH). Retry decisions read ImageGenerationError.retryable.


def _safe_str(x: Any) -> str:
    try:
        return str(x)
    except Exception:
        return "<unprintable>"


def _looks_like_rate_limit(msg: str) -> bool:
    m = msg.lower()
    return "rate limit" in m or "too many requests" in m or "429" in m


def _looks_like_quota(msg: str) -> bool:
    m = msg.lower()
    return "quota" in m or "billing" in m or "payment required" in m or "402" in m or "usage limit" in m


def _looks_like_auth(msg: str) -> bool:
    m = msg.lower()
    return (
        "invalid api key" in m
        or ("api key" in m and "invalid" in m)
        or "unauthorized" in m
        or "401" in m
        or "403" in m
    )


def rate_limited(raw: Optional[str] = None) -> ImageGenerationError:
    return ImageGenerationError(
        "Rate limit exceeded. Please try again in a moment.",
        code="RATE_LIMIT",
        status_code=429,
        action="retry",
        retryable=True,
        raw=raw,
    )


def quota_exhausted(raw: Optional[str] = None) -> ImageGenerationError:
    return ImageGenerationError(
        "Usage limit reached on the image provider. Please upgrade or try later.",
        code="QUOTA_EXHAUSTED",
        status_code=402,
        action="upgrade",
        retryable=False,
        raw=raw,
    )


def auth_failed(raw: Optional[str] = None) -> ImageGenerationError:
    return ImageGenerationError(
        "Image provider rejected our credentials.",
        code="AUTH",
        status_code=403,
        action="contact_support",
        retryable=False,
        raw=raw,
    )


def generic_failure(message: str = "Failed to generate thumbnail. Please try again.",
                    raw: Optional[str] = None) -> ImageGenerationError:
    return ImageGenerationError(
        message,
        code="GENERIC",
        status_code=500,
        action="retry",
        retryable=True,
        raw=raw,
    )


def error_for_status(status_code: int, body: str = "") -> ImageGenerationError:
    raw = f"HTTP {status_code}: {body[:2000]}"
    if status_code == 429:
        return rate_limited(raw)
    if status_code == 402:
        return quota_exhausted(raw)
    if status_code in (401, 403):
        return auth_failed(raw)
    return generic_failure(f"Image generation failed: {status_code}", raw)


def normalize_provider_exception(err: Exception) -> ImageGenerationError:
    """
    Map SDK/HTTP exceptions to ImageGenerationError.
    Status codes win over message sniffing.
    """
    if isinstance(err, ImageGenerationError):
        return err

    status = getattr(err, "status_code", None)
    if status is None:
        response = getattr(err, "response", None)
        status = getattr(response, "status_code", None)
    if isinstance(status, int) and status >= 400:
        return error_for_status(status, _safe_str(err))

    if isinstance(err, httpx.TimeoutException):
        return generic_failure("Image generation timed out. Try again.", _safe_str(err)[:4000])
    if isinstance(err, httpx.HTTPError):
        return generic_failure(raw=_safe_str(err)[:4000])

    msg = _safe_str(err)
    raw = msg[:4000]
    if _looks_like_rate_limit(msg):
        return rate_limited(raw)
    if _looks_like_quota(msg):
        return quota_exhausted(raw)
    if _looks_like_auth(msg):
        return auth_failed(raw)
    return generic_failure(raw=raw)
