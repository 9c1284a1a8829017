"""URL slug helpers for submissions."""

import re
import unicodedata

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")

_INVALID_CHARS = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_DASHES = re.compile(r"-+")

FALLBACK_SLUG = "app"


def generate_slug(name: str) -> str:
    """Derive a lowercase ASCII slug from a display name.

    Accents are folded to ASCII first, anything outside ``[a-z0-9]`` is
    dropped, and whitespace runs become single hyphens.

    Examples:
        >>> generate_slug("My Cool App!")
        'my-cool-app'
        >>> generate_slug("  Café   Finder -- Pro ")
        'cafe-finder-pro'
    """
    ascii_name = (
        unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    )
    slug = _INVALID_CHARS.sub("", ascii_name.lower())
    slug = _WHITESPACE.sub("-", slug.strip())
    slug = _DASHES.sub("-", slug).strip("-")
    return slug or FALLBACK_SLUG


def with_suffix(base: str, counter: int) -> str:
    """Collision candidate ``base-N``."""
    return f"{base}-{counter}"
