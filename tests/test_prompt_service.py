from thumbcraft.services.prompt_service import (
    DEFAULT_ENHANCE_PROMPT,
    QUALITY_SUFFIX,
    build_enhance_prompt,
    compose_prompt,
)
from thumbcraft.services.template_catalog import TEMPLATE_STYLES, TEMPLATES, get_style_fragment


def test_every_template_has_a_fragment():
    for template in TEMPLATES:
        assert TEMPLATE_STYLES[template]


def test_compose_prompt_orders_topic_fragment_suffix():
    prompt = compose_prompt("How I built a startup in 30 days", "cinematic")
    assert prompt == (
        f"How I built a startup in 30 days, {TEMPLATE_STYLES['cinematic']}, {QUALITY_SUFFIX}"
    )
    assert "no text, no words, no letters" in prompt
    assert "16:9 aspect ratio" in prompt


def test_unknown_template_falls_back_to_custom():
    assert get_style_fragment("vaporwave") == TEMPLATE_STYLES["custom"]
    assert compose_prompt("topic", "vaporwave") == compose_prompt("topic", "custom")


def test_template_lookup_ignores_case_and_whitespace():
    assert get_style_fragment("  GAMING ") == TEMPLATE_STYLES["gaming"]


def test_enhance_prompt_defaults_when_blank():
    assert build_enhance_prompt(None) == DEFAULT_ENHANCE_PROMPT
    assert build_enhance_prompt("   ") == DEFAULT_ENHANCE_PROMPT
    assert build_enhance_prompt("make it pop") == "make it pop"
