"""Splice scan results into a parsed document."""

from __future__ import annotations

from typing import List, Optional, Sequence

from .models import Issue, ParseResult


def render_issues(issues: Sequence[Issue]) -> List[str]:
    return [issue.render() for issue in issues]


def reconcile(
    text_data: List[str], issues_line_number: int, issues: Optional[Sequence[Issue]]
) -> List[str]:
    """Insert rendered issues directly after the ISSUES header.

    The blank placeholder the parser left after the header ends up below
    the issues, where it separates them from the next section. Nothing
    happens when the document has no ISSUES section or no scan was run
    (``issues is None``). ``text_data`` is modified in place and returned.
    """
    if issues_line_number == -1 or issues is None:
        return text_data

    insert_at = issues_line_number + 1
    text_data[insert_at:insert_at] = render_issues(issues)
    return text_data


def apply_scan(result: ParseResult, issues: Optional[Sequence[Issue]]) -> ParseResult:
    """Reconcile ``issues`` into ``result.text_data``."""
    reconcile(result.text_data, result.issues_line_number, issues)
    return result
