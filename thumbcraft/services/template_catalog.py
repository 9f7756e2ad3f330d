# FILE: thumbcraft/services/template_catalog.py
from typing import Dict

TEMPLATES = ("minimal", "gaming", "tech", "cinematic", "custom")
DEFAULT_TEMPLATE = "custom"

TEMPLATE_STYLES: Dict[str, str] = {
    "minimal": (
        "clean minimalist composition, subtle gradients, modern aesthetic, soft lighting, "
        "professional, white space, geometric shapes, muted colors"
    ),
    "gaming": (
        "bold neon colors, RGB lighting effects, dynamic action poses, electric energy, "
        "glowing elements, cyberpunk vibes, high contrast, dramatic explosions, futuristic gaming setup"
    ),
    "tech": (
        "futuristic technology, holographic displays, circuit board patterns, blue and cyan glow, "
        "data visualization, sleek devices, digital matrix, clean lines, innovation"
    ),
    "cinematic": (
        "dramatic cinematic lighting, movie poster quality, golden hour atmosphere, epic scale, "
        "depth of field, lens flare, anamorphic look, theatrical composition"
    ),
    "custom": (
        "ultra high quality, photorealistic, stunning visual composition, professional photography, "
        "perfect lighting, magazine cover quality"
    ),
}


def get_style_fragment(template: str) -> str:
    """Style fragment for a template id; unknown ids get the custom fragment."""
    key = (template or "").lower().strip()
    return TEMPLATE_STYLES.get(key, TEMPLATE_STYLES[DEFAULT_TEMPLATE])
