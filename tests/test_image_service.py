import base64
from types import SimpleNamespace
from urllib.parse import unquote

import httpx
import pytest

from thumbcraft.core.errors import BackgroundDecodeError, ImageGenerationError, ValidationError
from thumbcraft.services import image_service
from thumbcraft.services.image_service import (
    ImageGenerationClient,
    decode_data_uri,
    encode_data_uri,
    enhance_image,
    load_image_bytes,
)
from thumbcraft.services.provider_errors import normalize_provider_exception

from conftest import make_png

JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg"


async def no_sleep(_):
    return None


def client_for(handler, **kwargs):
    return ImageGenerationClient(
        "https://images.test",
        transport=httpx.MockTransport(handler),
        sleep=no_sleep,
        **kwargs,
    )


class Responses:
    """Hands out the queued responses in order, repeating the last one."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


def test_build_url_encodes_prompt_and_size():
    client = ImageGenerationClient("https://images.test/")
    url = client.build_url("cats & dogs, 16:9")
    assert url.startswith("https://images.test/prompt/")
    assert url.endswith("?width=1280&height=720&nologo=true")
    assert unquote(url.split("/prompt/")[1].split("?")[0]) == "cats & dogs, 16:9"
    assert " " not in url


@pytest.mark.asyncio
async def test_generate_returns_data_uri():
    handler = Responses(httpx.Response(200, content=JPEG_BYTES, headers={"content-type": "image/jpeg"}))
    result = await client_for(handler).generate("a red car")

    assert result.content_type == "image/jpeg"
    assert result.attempts == 1
    assert result.image_url == "data:image/jpeg;base64," + base64.b64encode(JPEG_BYTES).decode()
    assert len(handler.requests) == 1


@pytest.mark.asyncio
async def test_rate_limit_is_retried_then_surfaced():
    handler = Responses(httpx.Response(429, text="slow down"))
    with pytest.raises(ImageGenerationError) as exc:
        await client_for(handler).generate("prompt")
    assert exc.value.code == "RATE_LIMIT"
    assert exc.value.status_code == 429
    assert len(handler.requests) == 2


@pytest.mark.asyncio
async def test_quota_exhausted_is_not_retried():
    handler = Responses(httpx.Response(402, text="payment required"))
    with pytest.raises(ImageGenerationError) as exc:
        await client_for(handler).generate("prompt")
    assert exc.value.code == "QUOTA_EXHAUSTED"
    assert exc.value.action == "upgrade"
    assert len(handler.requests) == 1


@pytest.mark.asyncio
async def test_auth_failure_is_not_retried():
    handler = Responses(httpx.Response(401, text="bad key"))
    with pytest.raises(ImageGenerationError) as exc:
        await client_for(handler).generate("prompt")
    assert exc.value.code == "AUTH"
    assert len(handler.requests) == 1


@pytest.mark.asyncio
async def test_server_error_then_success():
    handler = Responses(
        httpx.Response(503, text="busy"),
        httpx.Response(200, content=JPEG_BYTES, headers={"content-type": "image/jpeg"}),
    )
    result = await client_for(handler).generate("prompt")
    assert result.attempts == 2


@pytest.mark.asyncio
async def test_non_image_payload_is_generic_failure():
    handler = Responses(httpx.Response(200, text="<html>oops</html>", headers={"content-type": "text/html"}))
    with pytest.raises(ImageGenerationError) as exc:
        await client_for(handler).generate("prompt")
    assert exc.value.code == "GENERIC"
    assert len(handler.requests) == 2


@pytest.mark.asyncio
async def test_network_error_is_generic_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ImageGenerationError) as exc:
        await client_for(handler).generate("prompt")
    assert exc.value.code == "GENERIC"
    assert exc.value.retryable


def test_decode_data_uri_roundtrip_and_validation():
    uri = encode_data_uri(b"abc", "image/png")
    assert decode_data_uri(uri) == ("image/png", b"abc")

    with pytest.raises(ValidationError):
        decode_data_uri("https://example.com/a.png")
    with pytest.raises(ValidationError):
        decode_data_uri("data:text/plain;base64,YWJj")
    with pytest.raises(ValidationError):
        decode_data_uri(encode_data_uri(b"x" * 2048, "image/png"), max_bytes=1024)


@pytest.mark.asyncio
async def test_load_image_bytes_from_url_and_data_uri():
    png = make_png()
    handler = Responses(httpx.Response(200, content=png, headers={"content-type": "image/png"}))
    assert await load_image_bytes("https://cdn.test/a.png", transport=httpx.MockTransport(handler)) == png
    assert await load_image_bytes(encode_data_uri(png, "image/png")) == png

    with pytest.raises(BackgroundDecodeError):
        await load_image_bytes("ftp://nope")


def test_normalize_prefers_status_code():
    err = RuntimeError("something about quota")
    err.status_code = 429
    assert normalize_provider_exception(err).code == "RATE_LIMIT"
    assert normalize_provider_exception(RuntimeError("Payment required: 402")).code == "QUOTA_EXHAUSTED"
    assert normalize_provider_exception(RuntimeError("kaboom")).code == "GENERIC"


def test_auth_sniffing_needs_both_api_key_and_invalid():
    assert normalize_provider_exception(RuntimeError("The API key is invalid")).code == "AUTH"
    assert normalize_provider_exception(RuntimeError("Unauthorized")).code == "AUTH"
    assert normalize_provider_exception(RuntimeError("api key header missing")).code == "GENERIC"
    assert normalize_provider_exception(RuntimeError("invalid prompt")).code == "GENERIC"


class FakeCompletions:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        return self.response


def fake_openai(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


class DictResponse(dict):
    def model_dump(self):
        return dict(self)


@pytest.mark.asyncio
async def test_enhance_image_returns_first_image_url():
    completions = FakeCompletions(DictResponse(choices=[
        {"message": {"content": "done", "images": [{"image_url": {"url": "data:image/png;base64,AAAA"}}]}},
    ]))
    upload = encode_data_uri(make_png(), "image/png")

    url = await enhance_image(upload, None, client=fake_openai(completions))

    assert url == "data:image/png;base64,AAAA"
    assert completions.kwargs["model"] == image_service.ENHANCE_MODEL
    assert completions.kwargs["extra_body"] == {"modalities": ["image", "text"]}
    content = completions.kwargs["messages"][0]["content"]
    assert content[1]["image_url"]["url"] == upload


@pytest.mark.asyncio
async def test_enhance_without_image_in_response_is_generic():
    completions = FakeCompletions(DictResponse(choices=[{"message": {"content": "sorry"}}]))
    with pytest.raises(ImageGenerationError) as exc:
        await enhance_image(encode_data_uri(make_png(), "image/png"), client=fake_openai(completions))
    assert exc.value.code == "GENERIC"


@pytest.mark.asyncio
async def test_enhance_rate_limit_maps_to_rate_limit():
    err = RuntimeError("Too Many Requests")
    err.status_code = 429
    with pytest.raises(ImageGenerationError) as exc:
        await enhance_image(encode_data_uri(make_png(), "image/png"),
                            client=fake_openai(FakeCompletions(error=err)))
    assert exc.value.code == "RATE_LIMIT"


@pytest.mark.asyncio
async def test_enhance_rejects_non_image_input_before_calling_gateway():
    completions = FakeCompletions(DictResponse(choices=[]))
    with pytest.raises(ValidationError):
        await enhance_image("not a data uri", client=fake_openai(completions))
    assert completions.kwargs is None
