"""Regex helpers for pulling colors and fonts out of CSS text.

Everything here is a pure function over strings so it can be tested without a
document or a filesystem.
"""

import re
from typing import Dict, Iterable, List, Optional
from urllib.parse import parse_qs, urlparse

COLOR_RE = re.compile(
    r"#[0-9a-fA-F]{3,6}|rgb\([^)]+\)|rgba\([^)]+\)|hsl\([^)]+\)|hsla\([^)]+\)"
)
FONT_FACE_RE = re.compile(r"@font-face\s*\{([^}]*)\}", re.IGNORECASE)
FONT_FAMILY_RE = re.compile(r"font-family\s*:\s*(['\"]?)([^;'\"]+)\1", re.IGNORECASE)
FONT_SRC_URL_RE = re.compile(r"src\s*:[^;]*?url\(\s*['\"]?([^'\")]+)['\"]?\s*\)", re.IGNORECASE)
FONT_WEIGHT_RE = re.compile(r"font-weight\s*:\s*([^;]+)", re.IGNORECASE)
FONT_STYLE_RE = re.compile(r"font-style\s*:\s*([^;]+)", re.IGNORECASE)

PALETTE_LIMIT = 5

# Substring heuristics, checked in this order
BACKGROUND_HINTS = ("fff", "white", "f5f5f5", "fafafa")
TEXT_HINTS = ("000", "333", "666", "999")
PRIMARY_HINTS = ("007", "006", "005", "004")
SECONDARY_HINTS = ("28a745", "ffc107", "dc3545", "6c757d")


def extract_colors(css: str) -> List[str]:
    """All color literals in css, in order of appearance (duplicates kept)."""
    return COLOR_RE.findall(css)


def unique(values: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def classify_color(color: str) -> str:
    lowered = color.lower()
    if any(hint in lowered for hint in BACKGROUND_HINTS):
        return "background"
    if any(hint in lowered for hint in TEXT_HINTS):
        return "text"
    if any(hint in lowered for hint in PRIMARY_HINTS):
        return "primary"
    if any(hint in lowered for hint in SECONDARY_HINTS):
        return "secondary"
    return "accent"


def categorize_colors(colors: Iterable[str]) -> Dict[str, List[str]]:
    """Bucket unique colors by role; each bucket is capped, "all" is not."""
    all_colors = unique(colors)
    buckets: Dict[str, List[str]] = {
        "primary": [], "secondary": [], "background": [], "text": [], "accent": [],
    }
    for color in all_colors:
        buckets[classify_color(color)].append(color)

    palette = {name: values[:PALETTE_LIMIT] for name, values in buckets.items()}
    palette["all"] = all_colors
    return palette


def extract_font_faces(css: str) -> List[Dict[str, Optional[str]]]:
    """@font-face declarations with a family and a url() source."""
    faces = []
    for block in FONT_FACE_RE.findall(css):
        family = FONT_FAMILY_RE.search(block)
        src = FONT_SRC_URL_RE.search(block)
        if not family or not src:
            continue
        weight = FONT_WEIGHT_RE.search(block)
        style = FONT_STYLE_RE.search(block)
        faces.append({
            "family": family.group(2).strip(),
            "url": src.group(1).strip(),
            "weight": weight.group(1).strip() if weight else None,
            "style": style.group(1).strip() if style else None,
        })
    return faces


def google_font_family(url: str) -> Optional[str]:
    """Family name from a fonts.googleapis.com URL (first family only)."""
    families = parse_qs(urlparse(url).query).get("family")
    if not families:
        return None
    # parse_qs already decoded "+" and %-escapes
    family = families[0].split(":")[0].split("|")[0].strip()
    return family or None


def parse_font_family_list(value: str) -> List[str]:
    """Split a CSS font-family value into bare family names."""
    families = []
    for part in value.split(","):
        name = part.strip().strip("'\"").strip()
        if name:
            families.append(name)
    return families
