"""
Slug helpers for content entities.

canonicalize() turns free text into a URL-safe slug. resolve_unique() finds
the first free variant of a base slug using an injected async lookup, and
persist_with_unique_slug() closes the check-then-act gap by retrying when
the storage-level unique constraint rejects the write.
"""

import logging
import re
import time
from typing import Awaitable, Callable, Optional, TypeVar

from coursehub.core.exceptions import DuplicateKeyError, SlugConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SLUG_MAX_LENGTH = 50
SLUG_MIN_LENGTH = 3
MAX_SLUG_ATTEMPTS = 100
SHORT_SLUG_SUFFIX = "course"

# Compiled once at import; ASCII so \w means [A-Za-z0-9_]
_WHITESPACE_RUN = re.compile(r"\s+")
_NON_SLUG_CHARS = re.compile(r"[^\w\-]+", re.ASCII)
_HYPHEN_RUN = re.compile(r"-{2,}")

ExistsCheck = Callable[[str], Awaitable[bool]]


def canonicalize(text: str) -> str:
    """Convert text to a lowercase, hyphenated slug of at most 50 characters."""
    slug = str(text).lower().strip()
    slug = _WHITESPACE_RUN.sub("-", slug)
    slug = _NON_SLUG_CHARS.sub("", slug)
    slug = _HYPHEN_RUN.sub("-", slug)
    slug = slug.strip("-")
    # Truncation can expose a hyphen at the cut
    return slug[:SLUG_MAX_LENGTH].rstrip("-")


def build_base_slug(title: str, requested_slug: Optional[str] = None) -> str:
    """Pick the base slug for a course: the requested one, or one derived from the title.

    Bases shorter than SLUG_MIN_LENGTH get a "-course" suffix so that titles
    like "AI" or "!!" still produce a usable slug.
    """
    base = requested_slug or canonicalize(title)
    if len(base) < SLUG_MIN_LENGTH:
        base = canonicalize(f"{base}-{SHORT_SLUG_SUFFIX}")
    return base


def _timestamp_millis() -> int:
    return int(time.time() * 1000)


async def resolve_unique(base_slug: str, exists_check: ExistsCheck) -> str:
    """
    Return the first variant of base_slug that exists_check reports as free.

    Tries base_slug, then base_slug-1, base_slug-2, ... After
    MAX_SLUG_ATTEMPTS lookups it stops and returns base_slug-<epoch millis>
    without checking it again.

    Args:
        base_slug: Canonical slug to start from
        exists_check: Async lookup returning True when a slug is taken

    Returns:
        A slug candidate; nothing is persisted here
    """
    slug = base_slug
    counter = 1

    while await exists_check(slug):
        slug = f"{base_slug}-{counter}"
        counter += 1

        if counter > MAX_SLUG_ATTEMPTS:
            slug = f"{base_slug}-{_timestamp_millis()}"
            logger.warning(
                f"Slug '{base_slug}' exhausted {MAX_SLUG_ATTEMPTS} attempts, "
                f"falling back to timestamp slug '{slug}'"
            )
            break

    return slug


async def persist_with_unique_slug(
    base_slug: str,
    exists_check: ExistsCheck,
    persist: Callable[[str], Awaitable[T]],
    max_conflicts: int = 5,
) -> T:
    """
    Resolve a free slug and persist it, re-resolving when the write collides.

    Two concurrent writers can both see a slug as free. The store's unique
    constraint rejects the loser with DuplicateKeyError; resolving again then
    sees the winner's slug as taken and moves on to the next counter value.

    Raises:
        SlugConflictError: after max_conflicts rejected writes
    """
    for attempt in range(1, max_conflicts + 1):
        slug = await resolve_unique(base_slug, exists_check)
        try:
            return await persist(slug)
        except DuplicateKeyError as e:
            if e.field != "slug":
                raise
            logger.info(
                f"Slug '{slug}' taken by a concurrent write, retrying "
                f"(attempt {attempt}/{max_conflicts})"
            )

    raise SlugConflictError(base_slug, max_conflicts)
