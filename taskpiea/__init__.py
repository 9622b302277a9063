"""Taskpiea library exports."""

from .ids import IdGenerator, IdSpaceExhausted
from .models import Issue, IssueLink, ParseResult, ProcessOutcome, Section, Setting, Task
from .parser import DocumentParser, parse_document
from .reconciler import reconcile
from .scanner import LocalFileProvider, Scanner
from .workspace import DocumentProcessor, FileDocumentStore

__all__ = [
    "DocumentParser",
    "DocumentProcessor",
    "FileDocumentStore",
    "IdGenerator",
    "IdSpaceExhausted",
    "Issue",
    "IssueLink",
    "LocalFileProvider",
    "ParseResult",
    "ProcessOutcome",
    "Scanner",
    "Section",
    "Setting",
    "Task",
    "parse_document",
    "reconcile",
]
