"""Section header recognition for ``.taskp`` documents."""

from __future__ import annotations

import re
from typing import Optional, Tuple

from .models import Section

_SECTION_HEADER_PATTERN = re.compile(r"^\s*\[(?P<name>\w+)\]\s*$")


def classify_header(line: str) -> Optional[Section]:
    """Return the section a header line opens, or None.

    Bracketed words that are not a known section (``[NOTES]``) are not
    headers; they stay ordinary content of whatever section is active.
    """
    match = _SECTION_HEADER_PATTERN.match(line)
    if not match:
        return None
    return Section.from_header(match.group("name"))


def transition(state: Section, line: str) -> Tuple[Section, bool]:
    """Advance the section state machine by one line.

    Returns the new state and whether ``line`` was a header.
    """
    section = classify_header(line)
    if section is None:
        return state, False
    return section, True


class SectionTracker:
    """Holds the currently active section while walking a document."""

    def __init__(self) -> None:
        self.current = Section.NONE

    def feed(self, line: str) -> bool:
        """Consume a line; returns True when it switched the section."""
        self.current, is_header = transition(self.current, line)
        return is_header
