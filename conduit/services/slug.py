"""
Slug generation for articles.

A slug is the normalised title plus a short random suffix, so two
articles with the same title still get distinct slugs without a lookup.
The suffix is not cryptographically random; the ``articles.slug`` unique
constraint remains the final guard.
"""
import random
import re
import string

from conduit.config import settings

_SLUG_ALPHABET = string.ascii_lowercase + string.digits

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9-]")
_SLUG_DASH_RE = re.compile(r"-+")


def slugify(text: str) -> str:
    """Return the deterministic, URL-safe part of a slug for *text*."""
    text = text.lower().replace(" ", "-")
    text = _SLUG_STRIP_RE.sub("", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-")


def random_suffix(length: int | None = None) -> str:
    length = settings.SLUG_SUFFIX_LENGTH if length is None else length
    return "".join(random.choices(_SLUG_ALPHABET, k=length))


def generate_slug(title: str) -> str:
    """
    Return ``<slugified title>-<suffix>``.

    A title with no usable characters yields the suffix alone.
    """
    base = slugify(title)
    suffix = random_suffix()
    return f"{base}-{suffix}" if base else suffix


def regenerate_slug(title: str, previous: str) -> str:
    """Return a fresh slug for *title* that differs from *previous*."""
    slug = generate_slug(title)
    while slug == previous:
        slug = generate_slug(title)
    return slug
