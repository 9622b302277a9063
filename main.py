"""MCP server exposing Taskpiea document tools."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from taskpiea.models import FILE_EXTENSION
from taskpiea.taskpiea_logging import setup_logging
from taskpiea.workspace import DocumentProcessor

mcp = FastMCP("taskpiea")


_PROCESSORS: Dict[Path, DocumentProcessor] = {}


def _candidate_bases() -> List[Path]:
    cwd = Path.cwd().resolve()
    bases: List[Path] = [cwd]
    bases.extend(cwd.parents)
    seen: set[Path] = set()
    ordered: List[Path] = []
    for base in bases:
        if base not in seen:
            seen.add(base)
            ordered.append(base)
    return ordered


def _locate_workspace_root() -> Optional[Path]:
    for base in _candidate_bases():
        if any(base.glob(f"*{FILE_EXTENSION}")):
            return base
    return None


def _resolve_root(root: Optional[str]) -> Path:
    if root:
        resolved = Path(root).expanduser().resolve()
        if not resolved.exists():
            raise ValueError(f"Provided root '{root}' does not exist.")
        return resolved

    env_root = os.getenv("TASKPIEA_PROJECT_ROOT")
    if env_root:
        env_path = Path(env_root).expanduser().resolve()
        if not env_path.exists():
            raise ValueError(
                f"Environment variable TASKPIEA_PROJECT_ROOT points to '{env_root}', which does not exist."
            )
        return env_path

    detected_root = _locate_workspace_root()
    if detected_root:
        return detected_root

    raise ValueError(
        "Unable to determine project root automatically. Provide the 'root' argument when calling the tool "
        "or set the TASKPIEA_PROJECT_ROOT environment variable."
    )


def _processor(root: Optional[str]) -> DocumentProcessor:
    resolved = _resolve_root(root)
    processor = _PROCESSORS.get(resolved)
    if processor is None:
        processor = DocumentProcessor(resolved)
        _PROCESSORS[resolved] = processor
    return processor


def _document_identity(processor: DocumentProcessor, path: str) -> str:
    """Normalize a tool's ``path`` argument to a root-relative identity."""
    candidate = Path(path).expanduser()
    if not candidate.is_absolute():
        candidate = processor.root / candidate
    candidate = candidate.resolve()
    try:
        relative = candidate.relative_to(processor.root)
    except ValueError:
        raise ValueError(f"Document '{path}' is outside the project root '{processor.root}'.")
    if not str(relative).endswith(FILE_EXTENSION):
        raise ValueError(f"Document '{path}' is not a {FILE_EXTENSION} file.")
    return relative.as_posix()


async def _parsed(processor: DocumentProcessor, path: str) -> Dict[str, Any]:
    identity = _document_identity(processor, path)
    outcome = await processor.process_document(identity, False)
    if outcome is None:
        return {"identity": identity, "busy": True}
    return outcome.to_dict()


@mcp.tool()
async def process_document(path: str, use_scanner: bool = True, root: Optional[str] = None) -> Dict[str, Any]:
    """Parse a .taskp document, assign task ids and (optionally) rescan the codebase into [ISSUES].
    The rewritten document is saved back in place."""

    processor = _processor(root)
    identity = _document_identity(processor, path)
    outcome = await processor.process_document(identity, use_scanner)
    if outcome is None:
        return {
            "identity": identity,
            "busy": True,
            "message": f"{identity} is already being processed; request dropped.",
        }

    data = outcome.to_dict()
    data["message"] = (
        f"Processed {identity}: {len(outcome.result.tasks)} tasks"
        + (f", {len(outcome.issues)} issues" if outcome.issues is not None else "")
        + ("." if outcome.applied else " (document changed on disk; edit not applied).")
    )
    return data


@mcp.tool()
async def process_all_documents(use_scanner: bool = True, root: Optional[str] = None) -> Dict[str, Any]:
    """Process every .taskp document under the project root."""

    processor = _processor(root)
    outcomes = await processor.process_all(processor.store.list_documents(), use_scanner)
    return {
        "root": str(processor.root),
        "documents": [outcome.to_dict() for outcome in outcomes],
    }


@mcp.tool()
async def create_taskp_file(name: str = "tasks.taskp", root: Optional[str] = None) -> Dict[str, Any]:
    """Create a new .taskp document from the starter template and run a first scan."""

    processor = _processor(root)
    identity = _document_identity(processor, name if name.endswith(FILE_EXTENSION) else f"{name}{FILE_EXTENSION}")
    if processor.store.path_for(identity).exists():
        raise ValueError(f"Document '{identity}' already exists.")
    outcome = await processor.create_document(identity)
    return {
        "identity": identity,
        "path": str(processor.store.path_for(identity)),
        "content": outcome.text if outcome else None,
    }


@mcp.tool()
async def list_tasks(path: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Return the tasks of a .taskp document (ids are assigned if missing)."""

    data = await _parsed(_processor(root), path)
    return {"identity": data["identity"], "tasks": data.get("tasks", []), "busy": data.get("busy", False)}


@mcp.tool()
async def list_users(path: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Return the users listed in the [USERS] section of a .taskp document."""

    data = await _parsed(_processor(root), path)
    return {"identity": data["identity"], "users": data.get("users", []), "busy": data.get("busy", False)}


@mcp.tool()
async def get_settings(path: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Return the key/value settings of a .taskp document, duplicates included."""

    data = await _parsed(_processor(root), path)
    return {"identity": data["identity"], "settings": data.get("settings", []), "busy": data.get("busy", False)}


@mcp.tool()
def complete_users(path: str, line_prefix: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Suggest user mentions for the text typed so far on a line; only offered after '@'.
    Uses the user list from the document's last processing."""

    processor = _processor(root)
    identity = _document_identity(processor, path)
    return {"identity": identity, "users": processor.complete_users(identity, line_prefix)}


@mcp.tool()
def issue_links(path: str, root: Optional[str] = None) -> Dict[str, Any]:
    """List the [file::line] issue references in a .taskp document."""

    processor = _processor(root)
    identity = _document_identity(processor, path)
    text = processor.store.get_text(identity)
    return {"identity": identity, "links": [link.to_dict() for link in processor.issue_links(text)]}


@mcp.tool()
def jump_to_issue(file: str, line: int, root: Optional[str] = None) -> Dict[str, Any]:
    """Resolve an issue reference to a file path and line selection."""

    processor = _processor(root)
    target = processor.resolve_issue_target(file, line)
    if not target["exists"]:
        raise ValueError(f"File '{file}' does not exist under '{processor.root}'.")
    return target


@mcp.resource("taskpiea://documents")
def resource_documents() -> str:
    """Resource view listing the .taskp documents under the project root."""

    try:
        processor = _processor(None)
    except ValueError:
        return "No project root detected. Launch tools with a 'root' argument or set TASKPIEA_PROJECT_ROOT."

    documents = processor.store.list_documents()
    if not documents:
        return "No .taskp documents found."

    lines = ["Taskpiea Documents", ""]
    lines.extend(f"- {document}" for document in documents)
    return "\n".join(lines)


if __name__ == "__main__":
    log_file = os.getenv("TASKPIEA_LOG_FILE")
    setup_logging(os.getenv("TASKPIEA_LOG_LEVEL", "INFO").upper(), Path(log_file) if log_file else None)
    mcp.run(transport="stdio")
