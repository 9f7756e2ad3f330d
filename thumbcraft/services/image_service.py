# FILE: thumbcraft/services/image_service.py
"""Remote image generation + enhancement clients."""

import asyncio
import base64
import binascii
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional, Tuple
from urllib.parse import quote

import httpx
from openai import OpenAI

from thumbcraft.core.config import (
    ENHANCE_MODEL,
    IMAGE_API_BASE,
    IMAGE_BACKOFF_SECONDS,
    IMAGE_MAX_ATTEMPTS,
    IMAGE_REQUEST_TIMEOUT,
    get_openai_client,
)
from thumbcraft.core.errors import BackgroundDecodeError, ImageGenerationError, ValidationError
from thumbcraft.services.prompt_service import build_enhance_prompt
from thumbcraft.services.provider_errors import (
    error_for_status,
    generic_failure,
    normalize_provider_exception,
)
from thumbcraft.services.retry_policy import ExponentialBackoff, RetryPolicy, run_with_retry

logger = logging.getLogger("thumbcraft.images")

THUMB_W = 1280
THUMB_H = 720
MAX_UPLOAD_BYTES = 10 * 1024 * 1024

DATA_URI_RE = re.compile(r"^data:(?P<mime>image/[\w.+-]+);base64,(?P<data>.+)$", re.S)


@dataclass
class GeneratedImage:
    image_url: str      # data URI, directly displayable
    content_type: str
    attempts: int


def encode_data_uri(content: bytes, content_type: str) -> str:
    return f"data:{content_type};base64,{base64.b64encode(content).decode('ascii')}"


def decode_data_uri(data_uri: str, max_bytes: int = MAX_UPLOAD_BYTES) -> Tuple[str, bytes]:
    m = DATA_URI_RE.match((data_uri or "").strip())
    if not m:
        raise ValidationError("Image data must be a base64 image data URI")
    # base64 inflates by 4/3
    if len(m.group("data")) > (max_bytes * 4) // 3 + 4:
        raise ValidationError("Image size must be less than 10MB")
    try:
        raw = base64.b64decode(m.group("data"), validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("Image data is not valid base64") from e
    if not raw:
        raise ValidationError("Image data is required")
    return m.group("mime"), raw


async def load_image_bytes(ref: str, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> bytes:
    """Resolve a stored image reference (data URI or http(s) URL) to bytes."""
    ref = (ref or "").strip()
    if ref.startswith("data:"):
        try:
            return decode_data_uri(ref)[1]
        except ValidationError as e:
            raise BackgroundDecodeError("Could not decode the background image", raw=e.message) from e
    if ref.startswith(("http://", "https://")):
        try:
            async with httpx.AsyncClient(transport=transport, follow_redirects=True) as client:
                resp = await client.get(ref, timeout=30)
                resp.raise_for_status()
                return resp.content
        except httpx.HTTPError as e:
            raise BackgroundDecodeError("Could not load the background image", raw=str(e)) from e
    raise BackgroundDecodeError("Unsupported background image reference")


class ImageGenerationClient:
    """Text-to-image over the Pollinations HTTP API."""

    def __init__(
            self,
            base_url: str = IMAGE_API_BASE,
            *,
            timeout: float = IMAGE_REQUEST_TIMEOUT,
            policy: Optional[RetryPolicy] = None,
            transport: Optional[httpx.AsyncBaseTransport] = None,
            sleep: Callable = asyncio.sleep,
            width: int = THUMB_W,
            height: int = THUMB_H,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.policy = policy or RetryPolicy(
            max_attempts=IMAGE_MAX_ATTEMPTS,
            backoff=ExponentialBackoff(base=IMAGE_BACKOFF_SECONDS),
        )
        self.transport = transport
        self.sleep = sleep
        self.width = width
        self.height = height

    def build_url(self, prompt: str) -> str:
        encoded = quote(prompt, safe="")
        return f"{self.base_url}/prompt/{encoded}?width={self.width}&height={self.height}&nologo=true"

    async def _fetch_once(self, client: httpx.AsyncClient, url: str) -> Tuple[bytes, str]:
        try:
            resp = await client.get(url, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise normalize_provider_exception(e) from e

        if resp.status_code >= 400:
            raise error_for_status(resp.status_code, resp.text if resp.content else "")

        content_type = (resp.headers.get("content-type") or "").split(";")[0].strip().lower()
        if not resp.content or not content_type.startswith("image/"):
            raise generic_failure(
                "Image provider returned no image",
                raw=f"content-type={content_type!r} bytes={len(resp.content)}",
            )
        return resp.content, content_type

    async def generate(self, prompt: str) -> GeneratedImage:
        url = self.build_url(prompt)

        async with httpx.AsyncClient(transport=self.transport, follow_redirects=True) as client:
            outcome = await run_with_retry(
                lambda: self._fetch_once(client, url),
                self.policy,
                is_retryable=lambda e: getattr(e, "retryable", False),
                sleep=self.sleep,
            )

        for i, err in enumerate(outcome.errors, start=1):
            logger.warning("Image attempt %s/%s failed: %s", i, self.policy.max_attempts,
                           getattr(err, "raw", None) or err)

        if not outcome.ok:
            err = outcome.error
            if not isinstance(err, ImageGenerationError):
                err = normalize_provider_exception(err)
            logger.error("Image generation gave up after %s attempt(s): %s", outcome.attempts, err.code)
            raise err

        content, content_type = outcome.value
        logger.info("Image generated (%s bytes, %s attempt(s))", len(content), outcome.attempts)
        return GeneratedImage(
            image_url=encode_data_uri(content, content_type),
            content_type=content_type,
            attempts=outcome.attempts,
        )


# =========================
# ENHANCEMENT
# =========================
_openai_client = None


def get_client() -> OpenAI:
    global _openai_client
    if _openai_client is None:
        _openai_client = get_openai_client()
    return _openai_client


def _extract_enhanced_url(data: dict) -> Optional[str]:
    choices = data.get("choices") or []
    if not choices:
        return None
    message = (choices[0] or {}).get("message") or {}
    images = message.get("images") or []
    if not images:
        return None
    return ((images[0] or {}).get("image_url") or {}).get("url")


async def enhance_image(image_data: str, prompt: Optional[str] = None, client: Optional[OpenAI] = None) -> str:
    """Send an uploaded image to the multimodal gateway and return the enhanced image URL."""
    decode_data_uri(image_data)
    enhancement_prompt = build_enhance_prompt(prompt)
    client = client or get_client()

    def _call():
        return client.chat.completions.create(
            model=ENHANCE_MODEL,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": enhancement_prompt},
                        {"type": "image_url", "image_url": {"url": image_data}},
                    ],
                },
            ],
            extra_body={"modalities": ["image", "text"]},
        )

    try:
        response = await asyncio.to_thread(_call)
    except Exception as e:
        err = normalize_provider_exception(e)
        logger.error("Enhancement failed: %s", err.raw or err.message)
        raise err from e

    data = response.model_dump() if hasattr(response, "model_dump") else dict(response)
    url = _extract_enhanced_url(data)
    if not url:
        logger.error("No enhanced image in response: %s", str(data)[:500])
        raise generic_failure("No enhanced image was generated")
    return url
