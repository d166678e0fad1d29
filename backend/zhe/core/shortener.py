import random
import re
from typing import Awaitable, Callable, Optional


# URL-safe alphabet without look-alike characters (0, O, l, I)
CHARSET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghjkmnpqrstuvwxyz"

DEFAULT_SLUG_LENGTH = 6
MAX_SLUG_LENGTH = 50

SLUG_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")

# Paths used by the application itself
RESERVED_PATHS = (
    'login', 'logout', 'auth', 'callback', 'dashboard', 'api', 'admin',
    '_next', 'static', 'favicon.ico', 'robots.txt', 'sitemap.xml',
)


def is_reserved_path(path: str) -> bool:
    normalized = path.lower().lstrip('/')
    return any(
        normalized == reserved or normalized.startswith(f"{reserved}/")
        for reserved in RESERVED_PATHS
    )


def is_valid_slug(slug: str) -> bool:
    """
    Check whether a slug can be used for a short link.

    - 1 to 50 characters
    - letters, digits, hyphens and underscores only
    - not a reserved path
    """
    if not slug or len(slug) > MAX_SLUG_LENGTH:
        return False

    if not SLUG_PATTERN.match(slug):
        return False

    return not is_reserved_path(slug)


def validate_custom_slug(slug: str) -> tuple[bool, str]:
    """
    Validate a user-provided slug.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not slug or not slug.strip():
        return False, "Slug cannot be empty"

    candidate = slug.strip().lower()

    if len(candidate) > MAX_SLUG_LENGTH:
        return False, f"Slug must be at most {MAX_SLUG_LENGTH} characters"

    if not SLUG_PATTERN.match(candidate):
        return False, "Slug can only contain letters, digits, hyphens and underscores"

    if is_reserved_path(candidate):
        return False, f"'{slug}' is a reserved word and cannot be used"

    return True, ""


def sanitize_slug(slug: str) -> Optional[str]:
    """Trim and lowercase a custom slug; None if it is not usable."""
    sanitized = slug.strip().lower()
    if not is_valid_slug(sanitized):
        return None
    return sanitized


def generate_slug(length: int = DEFAULT_SLUG_LENGTH) -> str:
    """Generate a random slug (case-sensitive, 55^6 combinations at length 6)."""
    return ''.join(random.choices(CHARSET, k=length))


async def generate_unique_slug(
    exists: Callable[[str], Awaitable[bool]],
    max_retries: int = 3,
    length: int = DEFAULT_SLUG_LENGTH,
) -> str:
    """
    Generate a slug that is not taken yet.

    Args:
        exists: Coroutine telling whether a slug is already used
        max_retries: Attempts before giving up
        length: Slug length

    Raises:
        ValueError: if every attempt collided
    """
    for _ in range(max_retries):
        slug = generate_slug(length)

        if not is_valid_slug(slug):
            continue

        if not await exists(slug):
            return slug

    raise ValueError(f"Failed to generate unique slug after {max_retries} attempts")
