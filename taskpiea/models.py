"""Data models for Taskpiea document processing.

This module contains the core data structures shared by the parser,
scanner and reconciler: tasks, settings, scanned issues, per-parse
results and the section states a ``.taskp`` document walks through.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set


MIN_ID = 0
MAX_ID = 0xFFFFF  # 5 hex digits
ID_WIDTH = 5

FILE_EXTENSION = ".taskp"

SCANNER_KEYWORD = "Scanner.Keyword"
SCANNER_EXCLUDE = "Scanner.Exclude"

NEW_FILE_TEXT = """[TASKS]
- Example task @alice [#A1B2C]
-- example comment

[ISSUES]

[USERS]
- alice

[SETTINGS]
Scanner.Keyword: TODO
Scanner.Keyword: FIXME
Scanner.Keyword: BUG
Scanner.Exclude: *.md
Scanner.Exclude: *.taskp
"""


class Section(str, Enum):
    """Logical sections used within ``.taskp`` documents."""

    NONE = "NONE"
    TASKS = "TASKS"
    ISSUES = "ISSUES"
    USERS = "USERS"
    SETTINGS = "SETTINGS"

    @classmethod
    def from_header(cls, name: str) -> Optional["Section"]:
        """Return the section named by a header word, if it is a real one."""
        if name == cls.NONE.value:
            return None
        try:
            return cls(name)
        except ValueError:
            return None


@dataclass(slots=True)
class Task:
    """A single ``- name [#XXXXX]`` entry of the TASKS section."""

    name: str
    id: str

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary representation."""
        return {"name": self.name, "id": self.id}


@dataclass(slots=True)
class Setting:
    """A ``key: value`` pair from the SETTINGS section."""

    key: str
    value: str

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary representation."""
        return {"key": self.key, "value": self.value}


@dataclass(slots=True)
class Issue:
    """A source line that matched one of the scanner keywords."""

    keyword: str
    file: str
    line_number: int  # 0-based
    content: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "keyword": self.keyword,
            "file": self.file,
            "line_number": self.line_number,
            "content": self.content,
        }

    def render(self) -> str:
        """Render the issue as a line of the ISSUES section."""
        return f"- {self.content} [{self.file}::{self.line_number}]"


@dataclass(slots=True)
class IssueLink:
    """An ``[file::line]`` reference found on a document line."""

    line_index: int
    file: str
    line_number: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "line_index": self.line_index,
            "file": self.file,
            "line_number": self.line_number,
            "title": f"Jump to {self.file}:{self.line_number}",
        }


@dataclass(slots=True)
class ParseResult:
    """Everything a single parse pass produces.

    ``issues_line_number`` is the index into ``text_data`` of the
    ``[ISSUES]`` header, or -1 when the document has no such section.
    """

    text_data: List[str] = field(default_factory=list)
    issues_line_number: int = -1
    tasks: List[Task] = field(default_factory=list)
    users: List[str] = field(default_factory=list)
    settings: List[Setting] = field(default_factory=list)
    used_ids: Set[str] = field(default_factory=set)

    @property
    def has_issues_section(self) -> bool:
        return self.issues_line_number != -1

    def text(self) -> str:
        """Join the output lines into document text."""
        return "\n".join(self.text_data)

    def settings_for(self, key: str) -> List[str]:
        """Return every value recorded for ``key``, in document order."""
        return [setting.value for setting in self.settings if setting.key == key]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "tasks": [task.to_dict() for task in self.tasks],
            "users": list(self.users),
            "settings": [setting.to_dict() for setting in self.settings],
            "issues_line_number": self.issues_line_number,
        }


@dataclass(slots=True)
class ProcessOutcome:
    """Result of one parse/scan/reconcile/replace cycle for a document."""

    identity: str
    text: str
    result: ParseResult
    issues: Optional[List[Issue]] = None
    applied: bool = False

    @property
    def scanned(self) -> bool:
        return self.issues is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        data = self.result.to_dict()
        data.update(
            {
                "identity": self.identity,
                "applied": self.applied,
                "scanned": self.scanned,
                "issue_count": len(self.issues) if self.issues is not None else 0,
            }
        )
        return data
