"""Parser for ``.taskp`` documents.

Walks a document once, top to bottom, and produces the rewritten output
lines plus the tasks, users and settings found along the way. Task ids
are assigned or repaired in place; the ISSUES section is either kept or
reduced to a placeholder that the reconciler later fills with scan
results.
"""

from __future__ import annotations

import logging
import random
import re
from typing import Iterable, List, Optional, Union

from .ids import IdGenerator
from .lines import TaskMatch, UserMatch, SettingMatch, match_setting, match_task, match_user
from .models import MAX_ID, ParseResult, Section, Setting, Task
from .sections import SectionTracker

logger = logging.getLogger("taskpiea.parser")

_LINE_SPLIT_PATTERN = re.compile(r"\r?\n")


def split_lines(text: str) -> List[str]:
    """Split document text on ``\\n`` or ``\\r\\n``."""
    return _LINE_SPLIT_PATTERN.split(text)


class DocumentParser:
    """Single-use parser for one document.

    ``keep_preamble`` controls lines that appear before the first section
    header. They are kept by default; passing False discards them.
    """

    def __init__(
        self,
        *,
        keep_preamble: bool = True,
        max_id: int = MAX_ID,
        rng: Optional[random.Random] = None,
    ):
        self.keep_preamble = keep_preamble
        self.result = ParseResult()
        self._ids = IdGenerator(self.result.used_ids, max_id=max_id, rng=rng)

    # Convenience views onto the result, mirroring what callers read after a parse.
    @property
    def text_data(self) -> List[str]:
        return self.result.text_data

    @property
    def issues_line_number(self) -> int:
        return self.result.issues_line_number

    @property
    def tasks(self) -> List[Task]:
        return self.result.tasks

    @property
    def users(self) -> List[str]:
        return self.result.users

    @property
    def settings(self) -> List[Setting]:
        return self.result.settings

    def parse(self, document: Union[str, Iterable[str]], use_scanner: bool) -> ParseResult:
        """Parse ``document`` (text or a sequence of lines).

        When ``use_scanner`` is True the existing ISSUES entries are dropped
        and a single blank placeholder is left after the header.
        """
        lines = split_lines(document) if isinstance(document, str) else list(document)
        tracker = SectionTracker()
        out = self.result.text_data

        for line in lines:
            if tracker.feed(line):
                out.append(line)
                if tracker.current is Section.ISSUES:
                    self.result.issues_line_number = len(out) - 1
                    if use_scanner:
                        out.append("")
                continue

            section = tracker.current
            if section is Section.NONE:
                if self.keep_preamble:
                    out.append(line)
            elif section is Section.TASKS:
                out.append(self._parse_task(line))
            elif section is Section.ISSUES:
                if not use_scanner:
                    out.append(line)
            elif section is Section.USERS:
                self._parse_user(line)
                out.append(line)
            elif section is Section.SETTINGS:
                self._parse_setting(line)
                out.append(line)

        logger.debug(
            "Parsed %d lines: %d tasks, %d users, %d settings, issues header at %d",
            len(lines),
            len(self.result.tasks),
            len(self.result.users),
            len(self.result.settings),
            self.result.issues_line_number,
        )
        return self.result

    def _parse_task(self, line: str) -> str:
        match = match_task(line)
        if not isinstance(match, TaskMatch):
            return line

        task_id = match.task_id
        if task_id is None:
            task_id = self._ids.generate()
            rewritten = match.with_id(task_id)
        elif not self._ids.claim(task_id):
            logger.debug("Duplicate task id %s on %r, reassigning", task_id, match.name)
            task_id = self._ids.generate()
            rewritten = match.with_id(task_id)
        else:
            rewritten = line

        self.result.tasks.append(Task(name=match.name, id=task_id))
        return rewritten

    def _parse_user(self, line: str) -> None:
        match = match_user(line)
        if isinstance(match, UserMatch):
            self.result.users.append(match.name)

    def _parse_setting(self, line: str) -> None:
        match = match_setting(line)
        if isinstance(match, SettingMatch):
            self.result.settings.append(Setting(key=match.key, value=match.value))


def parse_document(
    document: Union[str, Iterable[str]],
    use_scanner: bool = False,
    *,
    keep_preamble: bool = True,
) -> ParseResult:
    """Parse a document with a fresh parser and return its result."""
    return DocumentParser(keep_preamble=keep_preamble).parse(document, use_scanner)
