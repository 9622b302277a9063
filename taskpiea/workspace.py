"""Document processing for Taskpiea.

This module ties the parser, scanner and reconciler together into one
processing cycle per ``.taskp`` document, and keeps the process-wide
state that cycle needs: which documents are mid-cycle, and the user list
from each document's last parse (used for ``@`` completion).
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

from .models import FILE_EXTENSION, NEW_FILE_TEXT, IssueLink, ParseResult, ProcessOutcome
from .parser import DocumentParser, split_lines
from .reconciler import apply_scan
from .scanner import FileProvider, LocalFileProvider, Scanner
from .taskpiea_logging import (
    log_document_created,
    log_document_processed,
    log_error_with_context,
    log_operation,
    log_performance,
)

logger = logging.getLogger("taskpiea.workspace")

_ISSUE_LINK_PATTERN = re.compile(r"\[(?P<file>.+?)::(?P<line>\d+)\]")


# ---------------------------------------------------------------------------
# Process-wide document state
# ---------------------------------------------------------------------------

_PROCESSING: set[str] = set()
_USER_CACHE: Dict[str, List[str]] = {}


def begin_processing(identity: str) -> bool:
    """Mark ``identity`` as mid-cycle. False if it already was."""
    if identity in _PROCESSING:
        return False
    _PROCESSING.add(identity)
    return True


def end_processing(identity: str) -> None:
    _PROCESSING.discard(identity)


def is_processing(identity: str) -> bool:
    return identity in _PROCESSING


def cache_users(identity: str, users: Iterable[str]) -> None:
    """Replace the cached user list for a document."""
    _USER_CACHE[identity] = list(users)


def cached_users(identity: str) -> List[str]:
    return list(_USER_CACHE.get(identity, []))


def is_taskp(identity: str) -> bool:
    return str(identity).endswith(FILE_EXTENSION)


# ---------------------------------------------------------------------------
# Document stores
# ---------------------------------------------------------------------------


class DocumentStore(Protocol):
    """Where document text is read from and written back to."""

    def get_text(self, identity: str) -> str:
        ...

    def replace_content(self, identity: str, new_text: str, expected: Optional[str] = None) -> bool:
        """Replace the whole document. Must return False, not raise, on failure.

        When ``expected`` is given the replace only happens if the document
        still holds exactly that text.
        """
        ...

    def write_new(self, identity: str, text: str) -> None:
        ...


class FileDocumentStore:
    """``DocumentStore`` backed by files under a project root.

    A replace is refused when the file has disappeared or no longer holds
    the text the caller based its edit on.
    """

    def __init__(self, root: Path | str):
        self.root = Path(root).resolve()

    def path_for(self, identity: str) -> Path:
        path = Path(identity).expanduser()
        if not path.is_absolute():
            path = self.root / path
        return path.resolve()

    def get_text(self, identity: str) -> str:
        return self.path_for(identity).read_text(encoding="utf-8")

    def replace_content(self, identity: str, new_text: str, expected: Optional[str] = None) -> bool:
        path = self.path_for(identity)
        if not path.exists():
            logger.warning(f"Document is closed: {path}")
            return False

        current = path.read_text(encoding="utf-8")
        if expected is not None and current != expected:
            logger.warning(f"Invalid edit range in {path}: document changed since it was read")
            return False

        if current != new_text:
            path.write_text(new_text, encoding="utf-8")
        return True

    def write_new(self, identity: str, text: str) -> None:
        path = self.path_for(identity)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")

    def list_documents(self) -> List[str]:
        """Relative paths of every ``.taskp`` file under the root."""
        return sorted(
            path.relative_to(self.root).as_posix()
            for path in self.root.rglob(f"*{FILE_EXTENSION}")
            if ".git" not in path.parts
        )


# ---------------------------------------------------------------------------
# Processing cycle
# ---------------------------------------------------------------------------


class DocumentProcessor:
    """Run parse, scan, reconcile and replace for ``.taskp`` documents."""

    def __init__(
        self,
        root: Path | str,
        *,
        store: Optional[DocumentStore] = None,
        provider: Optional[FileProvider] = None,
        keep_preamble: bool = True,
    ):
        self.root = Path(root).resolve()
        self.store = store if store is not None else FileDocumentStore(self.root)
        self.provider = provider if provider is not None else LocalFileProvider(self.root)
        self.keep_preamble = keep_preamble

    @log_performance("parse_document")
    def parse(self, text: str, use_scanner: bool) -> ParseResult:
        return DocumentParser(keep_preamble=self.keep_preamble).parse(text, use_scanner)

    async def process_document(self, identity: str, use_scanner: bool) -> Optional[ProcessOutcome]:
        """Run one full cycle for ``identity``.

        Returns None when the identity is not a ``.taskp`` document or a
        cycle for it is already in flight (the request is dropped).
        """
        if not is_taskp(identity):
            return None
        if not begin_processing(identity):
            logger.debug(f"Already processing {identity}, dropping request")
            return None

        try:
            text = await asyncio.to_thread(self.store.get_text, identity)
            result = self.parse(text, use_scanner)

            issues = None
            if use_scanner and result.has_issues_section:
                with log_operation("scan_document", identity=identity):
                    issues = await Scanner(self.provider).scan(result.settings, result.issues_line_number)
                apply_scan(result, issues)

            cache_users(identity, result.users)

            new_text = result.text()
            applied = await asyncio.to_thread(self.store.replace_content, identity, new_text, text)
            if not applied:
                logger.warning(f"Failed to apply edit for: {identity}")

            log_document_processed(
                identity,
                task_count=len(result.tasks),
                scanned=issues is not None,
                applied=applied,
            )
            return ProcessOutcome(
                identity=identity,
                text=new_text,
                result=result,
                issues=issues,
                applied=applied,
            )
        except Exception as e:
            log_error_with_context(e, {
                "operation": "process_document",
                "identity": identity,
                "use_scanner": use_scanner,
            })
            raise
        finally:
            end_processing(identity)

    async def process_changes(self, identity: str, changes: Iterable[str]) -> Optional[ProcessOutcome]:
        """Reprocess (without scanning) once any change inserts a newline."""
        for change in changes:
            if "\n" in change:
                return await self.process_document(identity, False)
        return None

    async def process_all(self, identities: Iterable[str], use_scanner: bool = True) -> List[ProcessOutcome]:
        """Process several documents one after another, skipping non-``.taskp`` ones."""
        outcomes: List[ProcessOutcome] = []
        for identity in identities:
            outcome = await self.process_document(identity, use_scanner)
            if outcome is not None:
                outcomes.append(outcome)
        return outcomes

    async def create_document(self, name: str = "tasks.taskp") -> Optional[ProcessOutcome]:
        """Write the starter document and process it with a scan."""
        if not name.endswith(FILE_EXTENSION):
            name = f"{name}{FILE_EXTENSION}"
        self.store.write_new(name, NEW_FILE_TEXT)
        log_document_created(name)
        return await self.process_document(name, True)

    # ------------------------------------------------------------------
    # Editor-facing helpers
    # ------------------------------------------------------------------

    def users_for(self, identity: str) -> List[str]:
        return cached_users(identity)

    def complete_users(self, identity: str, line_prefix: str) -> List[str]:
        """Users to offer while typing; only after an ``@`` on the line."""
        if "@" not in line_prefix:
            return []
        return cached_users(identity)

    @staticmethod
    def issue_links(text_or_lines: str | Iterable[str]) -> List[IssueLink]:
        """Find every ``[file::line]`` reference, one per document line."""
        lines = split_lines(text_or_lines) if isinstance(text_or_lines, str) else text_or_lines
        links: List[IssueLink] = []
        for index, line in enumerate(lines):
            match = _ISSUE_LINK_PATTERN.search(line)
            if match:
                links.append(
                    IssueLink(line_index=index, file=match.group("file"), line_number=int(match.group("line")))
                )
        return links

    def resolve_issue_target(self, file: str, line: int) -> Dict[str, Any]:
        """Where navigating to an issue should land: path and selected line range."""
        path = (self.root / file).resolve()
        try:
            path.relative_to(self.root)
        except ValueError:
            raise ValueError(f"Issue file '{file}' is outside the project root '{self.root}'.")
        return {
            "path": str(path),
            "exists": path.exists(),
            "selection": {"start_line": line, "end_line": line + 1},
        }
