"""Slug helpers shared by stores and catalog entities."""

import re
from typing import Awaitable, Callable

SLUG_MAX_LENGTH = 100


def slugify(text: str, max_length: int = SLUG_MAX_LENGTH) -> str:
    """
    Build a URL slug from free text.
    - Lowercase
    - Alphanumeric and hyphens only
    - Consecutive hyphens collapsed, leading/trailing hyphens trimmed
    """
    if not text:
        return ""

    slug = text.lower()
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    slug = slug.strip("-")

    if len(slug) > max_length:
        slug = slug[:max_length].strip("-")

    return slug


async def unique_slug(
    base_slug: str, exists: Callable[[str], Awaitable[bool]]
) -> str:
    """Return ``base_slug`` or the first ``base_slug-N`` for which ``exists`` is False."""
    slug = base_slug
    counter = 1
    while await exists(slug):
        slug = f"{base_slug}-{counter}"
        counter += 1
    return slug
