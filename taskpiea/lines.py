"""Per-section line grammars.

Each matcher is a pure function from a raw line to either a ``*Match``
carrying the extracted fields or an ``Unmatched`` wrapping the raw line.
Nothing here mutates parser state; id bookkeeping lives in the parser.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Union

# ^\s*-           optional indent, literal bullet
# (?P<name>.+?)   task name, non-greedy so a trailing tag is not swallowed
# (?P<tag> \[#..\])  optional id tag, exactly 5 of [A-Z0-9]
_TASK_LINE_PATTERN = re.compile(
    r"^\s*- (?P<name>.+?)(?P<tag> \[#(?P<id>[A-Z0-9]{5})\])?\s*$"
)
_USER_LINE_PATTERN = re.compile(r"^\s*- (?P<name>.*)$")


@dataclass(frozen=True, slots=True)
class Unmatched:
    """A line that does not follow its section's grammar."""

    raw: str


@dataclass(frozen=True, slots=True)
class TaskMatch:
    raw: str
    name: str
    task_id: Optional[str]
    tag_start: int = -1
    tag_end: int = -1

    def with_id(self, task_id: str) -> str:
        """Return the raw line carrying ``task_id`` as its tag."""
        tag = f" [#{task_id}]"
        if self.task_id is None:
            # A blank name must keep its whitespace or the tag would become the name.
            base = self.raw.rstrip() if self.name.strip() else self.raw
            return f"{base}{tag}"
        return self.raw[: self.tag_start] + tag + self.raw[self.tag_end :]


@dataclass(frozen=True, slots=True)
class UserMatch:
    raw: str
    name: str


@dataclass(frozen=True, slots=True)
class SettingMatch:
    raw: str
    key: str
    value: str


TaskLine = Union[TaskMatch, Unmatched]
UserLine = Union[UserMatch, Unmatched]
SettingLine = Union[SettingMatch, Unmatched]


def match_task(line: str) -> TaskLine:
    match = _TASK_LINE_PATTERN.match(line)
    if not match:
        return Unmatched(line)
    if match.group("tag") is None:
        return TaskMatch(raw=line, name=match.group("name"), task_id=None)
    return TaskMatch(
        raw=line,
        name=match.group("name"),
        task_id=match.group("id"),
        tag_start=match.start("tag"),
        tag_end=match.end("tag"),
    )


def match_user(line: str) -> UserLine:
    match = _USER_LINE_PATTERN.match(line)
    if not match:
        return Unmatched(line)
    return UserMatch(raw=line, name=match.group("name").strip())


def match_setting(line: str) -> SettingLine:
    """Split on the first colon only, so values may contain colons."""
    if ":" not in line:
        return Unmatched(line)
    key, value = line.split(":", 1)
    return SettingMatch(raw=line, key=key.strip(), value=value.strip())
