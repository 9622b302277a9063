"""Codebase scanner.

Finds source lines tagged with the keywords configured in a document's
SETTINGS section (``Scanner.Keyword``), honoring ``Scanner.Exclude``
patterns, and returns them as issues ready to be rendered into the
document's ISSUES section.

File enumeration and reading go through a ``FileProvider`` so the scanner
works the same against the local filesystem or an editor's workspace.
"""

from __future__ import annotations

import asyncio
import fnmatch
import logging
import os
import re
import time
from pathlib import Path
from typing import Iterable, List, Optional, Pattern, Protocol, Sequence, Tuple

from .models import FILE_EXTENSION, SCANNER_EXCLUDE, SCANNER_KEYWORD, Issue, Setting
from .parser import split_lines
from .taskpiea_logging import log_scan_completed

logger = logging.getLogger("taskpiea.scanner")

INCLUDE_ALL = ("**/*",)
SELF_EXCLUDE = f"**/*{FILE_EXTENSION}/**"
DEFAULT_EXCLUDES = ("**/.git/**",)


# ---------------------------------------------------------------------------
# Glob handling
# ---------------------------------------------------------------------------


def normalize_exclude(value: str) -> str:
    """Wrap an exclude value as ``**/<value>/**``.

    Values already written in that form are returned unchanged. The
    wrapped form matches the named file itself as well as anything below
    a directory of that name.
    """
    value = value.strip()
    if value.startswith("**/") and value.endswith("/**"):
        return value
    return f"**/{value.strip('/')}/**"


def _ancestors(path: str) -> List[str]:
    """``a/b/c.py`` -> ``["a/b/c.py", "a/b", "a"]``."""
    parts = path.split("/")
    return ["/".join(parts[:end]) for end in range(len(parts), 0, -1)]


def glob_matches(path: str, pattern: str) -> bool:
    """Match a ``/``-separated relative path against a workspace glob.

    A leading ``**/`` lets the rest of the pattern match at any depth and a
    trailing ``/**`` also matches everything below a matching directory.
    The remainder is an ``fnmatch`` pattern, where ``*`` may cross ``/``.
    """
    anywhere = pattern.startswith("**/")
    subtree = pattern.endswith("/**")
    core = pattern[3 if anywhere else 0 : -3 if subtree else None]
    if core in ("", "**"):
        return True

    candidates = _ancestors(path) if subtree else [path]
    for candidate in candidates:
        if fnmatch.fnmatch(candidate, core):
            return True
        if anywhere and fnmatch.fnmatch(candidate, f"*/{core}"):
            return True
    return False


def matches_any(path: str, patterns: Sequence[str]) -> bool:
    return any(glob_matches(path, pattern) for pattern in patterns)


# ---------------------------------------------------------------------------
# File providers
# ---------------------------------------------------------------------------


class FileProvider(Protocol):
    """What the scanner needs from its environment."""

    def find_files(self, includes: Sequence[str], excludes: Sequence[str]) -> List[Path]:
        ...

    def read_text(self, path: Path) -> Optional[str]:
        """Return the file's text, or None when it is not readable as text."""
        ...

    def relative_path(self, path: Path) -> str:
        ...


class LocalFileProvider:
    """``FileProvider`` over a directory tree on disk."""

    def __init__(self, root: Path | str, default_excludes: Iterable[str] = DEFAULT_EXCLUDES):
        self.root = Path(root).resolve()
        self.default_excludes = tuple(default_excludes)

    def find_files(self, includes: Sequence[str], excludes: Sequence[str]) -> List[Path]:
        include_patterns = list(includes)
        exclude_patterns = [*self.default_excludes, *excludes]
        found: List[Path] = []

        for dirpath, dirnames, filenames in os.walk(self.root):
            current = Path(dirpath)
            rel_dir = current.relative_to(self.root).as_posix()
            prefix = "" if rel_dir == "." else rel_dir + "/"
            # prune
            dirnames[:] = sorted(
                d for d in dirnames if not matches_any(prefix + d, exclude_patterns)
            )
            for name in sorted(filenames):
                rel = prefix + name
                if matches_any(rel, exclude_patterns):
                    continue
                if matches_any(rel, include_patterns):
                    found.append(current / name)
        return found

    def read_text(self, path: Path) -> Optional[str]:
        try:
            data = Path(path).read_bytes()
        except OSError as e:
            logger.debug(f"Skipping unreadable file {path}: {e}")
            return None
        if b"\x00" in data:
            return None
        try:
            return data.decode("utf-8-sig")
        except UnicodeDecodeError:
            return None

    def relative_path(self, path: Path) -> str:
        try:
            return Path(path).resolve().relative_to(self.root).as_posix()
        except ValueError:
            return Path(path).as_posix()


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------


def collect_scan_settings(settings: Iterable[Setting]) -> Tuple[List[str], List[str]]:
    """Split settings into (keywords, normalized exclude globs).

    The ``.taskp`` exclude is always present so a scan never picks up the
    document's own ISSUES section.
    """
    keywords: List[str] = []
    excludes: List[str] = []
    for setting in settings:
        if setting.key == SCANNER_KEYWORD:
            keyword = setting.value.strip()
            if keyword:
                keywords.append(keyword)
        elif setting.key == SCANNER_EXCLUDE:
            value = setting.value.strip()
            if value:
                excludes.append(normalize_exclude(value))
    if SELF_EXCLUDE not in excludes:
        excludes.append(SELF_EXCLUDE)
    return keywords, excludes


def keyword_pattern(keyword: str) -> Pattern[str]:
    """Whole-word, case-insensitive matcher for ``keyword``."""
    return re.compile(rf"(?<!\w){re.escape(keyword)}(?!\w)", re.IGNORECASE)


def scan_lines(
    text: str, matchers: Sequence[Tuple[str, Pattern[str]]], file: str
) -> List[Issue]:
    """Return at most one issue per line, for the first keyword that hits."""
    issues: List[Issue] = []
    for index, line in enumerate(split_lines(text)):
        for keyword, pattern in matchers:
            if pattern.search(line):
                issues.append(Issue(keyword=keyword, file=file, line_number=index, content=line.strip()))
                break
    return issues


class Scanner:
    """Scan a project for keyword-tagged lines."""

    def __init__(self, provider: FileProvider):
        self.provider = provider

    async def scan(self, settings: Iterable[Setting], issues_line_number: int) -> List[Issue]:
        """Scan every file the provider enumerates.

        Returns an empty list when the document has no ISSUES section
        (``issues_line_number == -1``) or configures no keywords. Files
        are read concurrently; within a file issues keep line order.
        """
        if issues_line_number == -1:
            return []

        keywords, excludes = collect_scan_settings(settings)
        if not keywords:
            logger.debug("No scanner keywords configured, skipping scan")
            return []

        started = time.time()
        matchers = [(keyword, keyword_pattern(keyword)) for keyword in keywords]
        files = await asyncio.to_thread(self.provider.find_files, list(INCLUDE_ALL), excludes)
        per_file = await asyncio.gather(*(self._scan_file(path, matchers) for path in files))

        issues = [issue for file_issues in per_file for issue in file_issues]
        log_scan_completed(
            file_count=len(files),
            issue_count=len(issues),
            keywords=keywords,
            duration=time.time() - started,
        )
        return issues

    async def _scan_file(
        self, path: Path, matchers: Sequence[Tuple[str, Pattern[str]]]
    ) -> List[Issue]:
        text = await asyncio.to_thread(self.provider.read_text, path)
        if text is None:
            logger.debug(f"Skipping non-text file {path}")
            return []
        return scan_lines(text, matchers, self.provider.relative_path(path))
