import io

import pytest
from PIL import Image, ImageDraw

from thumbcraft.core.errors import BackgroundDecodeError, ValidationError
from thumbcraft.services.compositor import (
    OverlayStyle,
    compose_thumbnail,
    hex_to_rgba,
    load_font,
    text_width,
    wrap_text,
)

from conftest import make_png

LONG_TEXT = "The ultimate guide to building a profitable side business while keeping your day job"


def open_png(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    assert img.format == "PNG"
    return img


def region_max(img: Image.Image, box) -> int:
    return img.convert("L").crop(box).getextrema()[1]


def test_output_is_1280x720_png_for_any_aspect():
    for size in ((1920, 1080), (500, 1000), (300, 300)):
        result = compose_thumbnail(make_png(*size))
        assert result.size == (1280, 720)
        assert open_png(result.png).size == (1280, 720)
        assert result.lines == []


def test_gradient_darkens_only_the_bottom_half():
    img = open_png(compose_thumbnail(make_png(color=(128, 128, 128))).png).convert("L")
    assert abs(img.getpixel((640, 100)) - 128) <= 2
    assert abs(img.getpixel((640, 359)) - 128) <= 2
    # 60% black at the bottom edge
    assert img.getpixel((640, 719)) < 60
    assert img.getpixel((640, 540)) < img.getpixel((640, 400))


def test_line_count_matches_greedy_wrap():
    style = OverlayStyle(font_size=48)
    result = compose_thumbnail(make_png(), LONG_TEXT, "center", style)

    font = load_font(96)
    expected = wrap_text(LONG_TEXT, font, 1180)
    assert result.lines == expected
    assert len(result.lines) > 1
    assert " ".join(result.lines) == LONG_TEXT
    assert result.line_height == 96 * 1.25


def test_wrap_is_greedy():
    font = load_font(96)
    lines = wrap_text(LONG_TEXT, font, 1180)
    probe = Image.new("RGB", (1, 1))
    draw = ImageDraw.Draw(probe)
    for line, nxt in zip(lines, lines[1:]):
        assert text_width(draw, line, font) <= 1180
        # the next word would not have fit
        assert text_width(draw, f"{line} {nxt.split()[0]}", font) > 1180


def test_overlong_single_word_gets_its_own_line():
    font = load_font(96)
    word = "W" * 60
    assert wrap_text(f"hi {word} there", font, 1180) == ["hi", word, "there"]


def test_watch_now_lands_near_the_bottom():
    result = compose_thumbnail(
        make_png(color=(0, 0, 0)),
        "WATCH NOW",
        "bottom",
        OverlayStyle(font_size=48, color="#ffffff", shadow_color="#000000", shadow_blur=10),
    )
    img = open_png(result.png)
    assert result.lines == ["WATCH NOW"]
    assert result.anchor_y == 620
    assert region_max(img, (0, 520, 1280, 720)) > 200
    assert region_max(img, (0, 0, 1280, 400)) < 30


def test_top_position_places_text_at_the_top():
    img = open_png(compose_thumbnail(make_png(color=(0, 0, 0)), "HELLO", "top").png)
    assert region_max(img, (0, 0, 1280, 220)) > 200
    assert region_max(img, (0, 400, 1280, 720)) < 30


def test_blank_overlay_text_draws_nothing():
    plain = compose_thumbnail(make_png(color=(0, 0, 0)))
    blank = compose_thumbnail(make_png(color=(0, 0, 0)), "   ", "center")
    assert blank.lines == []
    assert open_png(blank.png).tobytes() == open_png(plain.png).tobytes()


def test_undecodable_background_raises():
    with pytest.raises(BackgroundDecodeError):
        compose_thumbnail(b"definitely not an image", "TEXT")
    with pytest.raises(BackgroundDecodeError):
        compose_thumbnail(b"", "TEXT")


def test_invalid_position_raises():
    with pytest.raises(ValidationError):
        compose_thumbnail(make_png(), "TEXT", "left")


def test_hex_to_rgba():
    assert hex_to_rgba("#ffffff") == (255, 255, 255, 255)
    assert hex_to_rgba("#000") == (0, 0, 0, 255)
    assert hex_to_rgba("#ff000080") == (255, 0, 0, 128)
    with pytest.raises(ValidationError):
        hex_to_rgba("red")
