from urllib.parse import urlparse
from typing import Optional


# Fixed palette for tag colors
TAG_COLORS = (
    'slate', 'red', 'orange', 'amber', 'emerald', 'teal',
    'cyan', 'blue', 'indigo', 'violet', 'pink', 'rose',
)

MAX_TAG_NAME_LENGTH = 30

# Webhook rate limit, requests per minute
RATE_LIMIT_DEFAULT = 5
RATE_LIMIT_MAX = 10

PREVIEW_STYLES = ('favicon', 'screenshot')


def is_valid_url(url: str) -> tuple[bool, str]:
    """
    Validate a destination URL.

    Args:
        url: The URL to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not url:
        return False, "URL cannot be empty"

    if len(url) > 2048:
        return False, "URL is too long (max 2048 characters)"

    try:
        result = urlparse(url)
    except ValueError as e:
        return False, f"Invalid URL: {e}"

    # Must have scheme and netloc
    if not all([result.scheme, result.netloc]):
        return False, "Invalid URL format"

    if result.scheme not in ('http', 'https'):
        return False, "Only HTTP and HTTPS URLs are allowed"

    return True, ""


def clean_tag_name(name: str) -> Optional[str]:
    """Return the trimmed tag name, or None if blank or too long."""
    trimmed = (name or "").strip()
    if not trimmed or len(trimmed) > MAX_TAG_NAME_LENGTH:
        return None
    return trimmed


def is_valid_tag_color(color: str) -> bool:
    return color in TAG_COLORS


def tag_color_from_name(name: str) -> str:
    """Deterministic palette color for a tag name (djb2-style hash)."""
    h = 0
    for ch in name:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    # back to signed 32-bit, then a non-negative index
    if h >= 0x80000000:
        h -= 0x100000000
    return TAG_COLORS[h % len(TAG_COLORS)]


def is_valid_rate_limit(value) -> bool:
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 1 <= value <= RATE_LIMIT_MAX
    )


def clamp_rate_limit(value: float) -> int:
    return max(1, min(RATE_LIMIT_MAX, round(value)))


def is_valid_preview_style(style: str) -> bool:
    return style in PREVIEW_STYLES
