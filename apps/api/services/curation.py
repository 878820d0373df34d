"""Pure filtering, grouping and annotation helpers over in-memory issues.

Nothing here touches the database; every function returns new objects and
leaves its inputs untouched.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field

from models.audit_issue import Feedback

DEFAULT_SEVERITIES = ("critical", "high", "medium", "low", "info")
UNKNOWN_FILE = "Unknown File"


class IssueRecord(BaseModel):
    """Immutable snapshot of an audit issue."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    report_id: int
    severity: str
    issue_type: str
    file_path: Optional[str] = None
    line_number: Optional[int] = None
    message: str = ""
    code_snippet: Optional[str] = None
    feedback: Optional[str] = None
    false_positive: bool = False


class IssueFilterOptions(BaseModel):
    severities: Set[str] = Field(default_factory=lambda: set(DEFAULT_SEVERITIES))
    categories: Set[str] = Field(default_factory=set)
    show_feedback: bool = False
    show_false_positives: bool = False


class FileGroup(BaseModel):
    file_path: str
    issues: List[IssueRecord]
    count: int
    severity_counts: Dict[str, int]


def to_records(rows: Iterable[Any]) -> List[IssueRecord]:
    return [row if isinstance(row, IssueRecord) else IssueRecord.model_validate(row) for row in rows]


def filter_issues(issues: Sequence[IssueRecord], options: IssueFilterOptions) -> List[IssueRecord]:
    """Keep issues that pass all four predicates."""
    severities = {str(severity).lower() for severity in options.severities}
    categories = set(options.categories)

    def passes(issue: IssueRecord) -> bool:
        fp_ok = not issue.false_positive or options.show_false_positives
        severity_ok = (issue.severity or "").lower() in severities
        category_ok = not categories or issue.issue_type in categories
        feedback_ok = options.show_feedback or not issue.feedback
        return fp_ok and severity_ok and category_ok and feedback_ok

    return [issue for issue in issues if passes(issue)]


def group_by_file(issues: Sequence[IssueRecord]) -> List[FileGroup]:
    grouped: Dict[str, List[IssueRecord]] = {}
    for issue in issues:
        grouped.setdefault(issue.file_path or UNKNOWN_FILE, []).append(issue)

    groups = []
    for file_path, members in grouped.items():
        counts: Dict[str, int] = {}
        for issue in members:
            severity = (issue.severity or "").lower()
            counts[severity] = counts.get(severity, 0) + 1
        groups.append(FileGroup(file_path=file_path, issues=members, count=len(members), severity_counts=counts))
    return sorted(groups, key=lambda group: group.file_path)


def extract_categories(issues: Sequence[IssueRecord]) -> List[str]:
    return sorted({issue.issue_type for issue in issues})


def toggle_false_positive(issue: IssueRecord) -> IssueRecord:
    return issue.model_copy(update={"false_positive": not issue.false_positive})


def normalize_feedback_value(value: Optional[str]) -> Optional[str]:
    """Map '' and None to None (clear); otherwise require a known feedback tag."""
    if value is None:
        return None
    token = str(value).strip().lower()
    if not token:
        return None
    return Feedback(token).value


def apply_bulk_feedback(selected: Sequence[IssueRecord], feedback_value: Optional[str]) -> List[IssueRecord]:
    value = normalize_feedback_value(feedback_value)
    return [issue.model_copy(update={"feedback": value}) for issue in selected]


def merge_issues(issues: Sequence[IssueRecord], replacements: Iterable[IssueRecord]) -> List[IssueRecord]:
    """Replace issues by id, keeping order; ids not present are ignored."""
    by_id = {issue.id: issue for issue in replacements}
    return [by_id.get(issue.id, issue) for issue in issues]


def apply_optimistic_patch(
    issues: Sequence[IssueRecord],
    issue_id: int,
    patch: Mapping[str, Any],
) -> Tuple[List[IssueRecord], Optional[IssueRecord]]:
    """Patch one issue locally before the server confirms.

    Returns the patched list and the original row so the caller can revert.
    """
    original = next((issue for issue in issues if issue.id == issue_id), None)
    if original is None:
        return list(issues), None
    patched = original.model_copy(update=dict(patch))
    return merge_issues(issues, [patched]), original


def reconcile_issue(
    issues: Sequence[IssueRecord],
    issue_id: int,
    *,
    confirmed: Optional[IssueRecord] = None,
    original: Optional[IssueRecord] = None,
) -> List[IssueRecord]:
    """Settle an optimistic patch: server row on success, original on failure."""
    if confirmed is not None:
        return merge_issues(issues, [confirmed])
    if original is not None and original.id == issue_id:
        return merge_issues(issues, [original])
    return list(issues)


def toggle_issue_selection(selected_ids: Sequence[int], issue_id: int) -> List[int]:
    if issue_id in selected_ids:
        return [selected for selected in selected_ids if selected != issue_id]
    return [*selected_ids, issue_id]


def toggle_select_all(selected_ids: Sequence[int], visible: Sequence[IssueRecord]) -> List[int]:
    """Select every visible issue, or clear when all are already selected."""
    visible_ids = [issue.id for issue in visible]
    if set(selected_ids) == set(visible_ids) and len(selected_ids) == len(visible_ids):
        return []
    return visible_ids


def toggle_file_selection(selected_ids: Sequence[int], group: FileGroup) -> List[int]:
    group_ids = [issue.id for issue in group.issues]
    if all(issue_id in selected_ids for issue_id in group_ids):
        return [selected for selected in selected_ids if selected not in group_ids]
    return [*selected_ids, *[issue_id for issue_id in group_ids if issue_id not in selected_ids]]
