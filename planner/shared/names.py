"""Name utilities."""

from __future__ import annotations

from typing import Iterable, Optional


def combine_first_last(first: Optional[str], last: Optional[str]) -> str:
    """Join first/last names with a space, omitting blanks."""

    segments: Iterable[str] = (
        segment.strip()
        for segment in (first or "", last or "")
        if segment and segment.strip()
    )
    return " ".join(segments).strip()


def display_name(person, fallback: str = "") -> str:
    """Return ``"First Last"`` for a user or student, else the email or fallback."""

    if person is None:
        return fallback
    name = combine_first_last(
        getattr(person, "first_name", None), getattr(person, "last_name", None)
    )
    if name:
        return name
    email = getattr(person, "email", None)
    return (email or "").strip() or fallback
