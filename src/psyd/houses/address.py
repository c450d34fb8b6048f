"""Address display helpers."""

from __future__ import annotations

import re

_STREET_NUMBER_RE = re.compile(r"^\d+\w*\s+")


def strip_street_number(street: str | None) -> str:
    """Remove a leading street number: '37 Gould Ave' -> 'Gould Ave', '14A Main St' -> 'Main St'."""
    if not street:
        return ""
    return _STREET_NUMBER_RE.sub("", street, count=1)

