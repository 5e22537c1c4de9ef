"""Text sanitizing and URL checks applied to school submissions."""

from __future__ import annotations

from typing import Optional

import nh3
import validators
from pydantic import AnyUrl, TypeAdapter, ValidationError

_ABSOLUTE_URL = TypeAdapter(AnyUrl)


def sanitize_text(value: Optional[str]) -> str:
    """Return ``value`` trimmed with all markup removed.

    Script and style elements are dropped together with their content; the
    text of any other element is kept.
    """

    if not value:
        return ""

    return nh3.clean(value.strip(), tags=set(), attributes={}).strip()


def is_absolute_url(value: str) -> bool:
    """Return ``True`` when ``value`` parses as an absolute URL."""

    try:
        _ABSOLUTE_URL.validate_python(value)
    except ValidationError:
        return False
    return True


def is_public_url(value: str) -> bool:
    """Stricter check: a well-formed URL with a known scheme and a real domain."""

    if not value:
        return False
    return bool(validators.url(value))


def clean_url(value: Optional[str]) -> str:
    """Return the trimmed URL, or ``""`` when it fails :func:`is_public_url`."""

    trimmed = (value or "").strip()
    return trimmed if is_public_url(trimmed) else ""


__all__ = ["clean_url", "is_absolute_url", "is_public_url", "sanitize_text"]
