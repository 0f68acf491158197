"""Conversion between taxonomy display names and URL-safe slugs.

Slugs are lowercase identifiers built from ``[a-z0-9_-]``:

    to_slug("Internal Medicine")        -> "internal_medicine"
    to_slug("Obstetrics & Gynecology")  -> "obstetrics_gynecology"
    to_name("internal_medicine")        -> "Internal Medicine"

``to_slug`` and ``to_name`` are approximate inverses only. Hyphens survive
``to_slug`` but ``to_name`` turns them into spaces, so ``"Foo-Bar"`` slugs to
``"foo-bar"`` while its display name slugs back to ``"foo_bar"``. Hyphens at
the edges or in runs also survive, so ``to_slug("-a") == "-a"`` and
``to_slug("a--b") == "a--b"`` are not valid slugs. Callers
depend on this exact transform; keep it.

Every function here is total: degenerate input yields ``""`` or ``False``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_SEPARATORS = re.compile(r"[\s/&,]+")
_DISALLOWED = re.compile(r"[^a-z0-9_-]")
_UNDERSCORE_RUN = re.compile(r"_+")
_SLUG_SEPARATOR = re.compile(r"[_-]")
_SLUG_SEPARATOR_RUN = re.compile(r"[_-]+")
_WHITESPACE_RUN = re.compile(r"\s+")
_VALID_SLUG = re.compile(r"[a-z0-9_-]+")
_EDGE_SEPARATOR = re.compile(r"^[_-]|[_-]$")
_REPEATED_SEPARATOR = re.compile(r"[_-]{2,}")


def to_slug(name: Any) -> str:
    """Convert a display name to a URL-safe slug."""
    if not isinstance(name, str) or not name:
        return ""

    slug = name.strip().lower()
    slug = _SEPARATORS.sub("_", slug)
    slug = _DISALLOWED.sub("", slug)
    slug = _UNDERSCORE_RUN.sub("_", slug)
    return slug.strip("_")


def to_name(slug: Any) -> str:
    """Convert a slug back to a title-cased display name."""
    if not isinstance(slug, str) or not slug:
        return ""

    spaced = _SLUG_SEPARATOR.sub(" ", slug.strip())
    spaced = _WHITESPACE_RUN.sub(" ", spaced)
    words = [word[:1].upper() + word[1:].lower() for word in spaced.split(" ")]
    return " ".join(words).strip()


def is_valid_slug(slug: Any) -> bool:
    """Return True if ``slug`` is well-formed."""
    return validate_slug(slug).is_valid


def normalize_slug(slug: Any) -> str:
    """Lowercase a slug and fold every separator run into a single ``_``."""
    if not isinstance(slug, str) or not slug:
        return ""

    normalized = _SLUG_SEPARATOR_RUN.sub("_", slug.strip().lower())
    return normalized.strip("_")


@dataclass(frozen=True)
class SlugValidation:
    """Outcome of :func:`validate_slug`."""

    is_valid: bool
    error: str | None = None


def validate_slug(slug: Any) -> SlugValidation:
    """Validate a slug and explain why it was rejected."""
    if not isinstance(slug, str) or not slug:
        return SlugValidation(False, "No specialty parameter provided")

    trimmed = slug.strip()
    if not trimmed:
        return SlugValidation(False, "Empty specialty parameter")

    if not _VALID_SLUG.fullmatch(trimmed):
        return SlugValidation(
            False, "Invalid specialty URL format - contains invalid characters"
        )

    if _EDGE_SEPARATOR.search(trimmed):
        return SlugValidation(
            False, "Invalid specialty URL format - starts or ends with separator"
        )

    if _REPEATED_SEPARATOR.search(trimmed):
        return SlugValidation(False, "Invalid specialty URL format - consecutive separators")

    return SlugValidation(True)
