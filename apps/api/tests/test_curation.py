import pytest
from pydantic import ValidationError

from services.curation import (
    IssueFilterOptions,
    IssueRecord,
    UNKNOWN_FILE,
    apply_bulk_feedback,
    apply_optimistic_patch,
    extract_categories,
    filter_issues,
    group_by_file,
    merge_issues,
    reconcile_issue,
    toggle_false_positive,
    toggle_file_selection,
    toggle_issue_selection,
    toggle_select_all,
)


def _issue(issue_id, severity="high", issue_type="reentrancy", **overrides):
    values = {
        "id": issue_id,
        "report_id": 1,
        "severity": severity,
        "issue_type": issue_type,
        "file_path": "contracts/Vault.sol",
        "line_number": issue_id * 10,
        "message": f"finding {issue_id}",
    }
    values.update(overrides)
    return IssueRecord(**values)


def test_filter_requires_every_predicate():
    issues = [
        _issue(1, severity="critical", issue_type="reentrancy"),
        _issue(2, severity="low", issue_type="style", false_positive=True),
    ]
    options = IssueFilterOptions(
        severities={"critical", "low"},
        categories=set(),
        show_feedback=True,
        show_false_positives=False,
    )

    assert filter_issues(issues, options) == [issues[0]]


def test_filter_hides_annotated_issues_unless_requested():
    issues = [_issue(1), _issue(2, feedback="safety"), _issue(3, severity="info")]

    default_view = filter_issues(issues, IssueFilterOptions(severities={"high"}))
    with_feedback = filter_issues(issues, IssueFilterOptions(severities={"high"}, show_feedback=True))
    by_category = filter_issues(issues, IssueFilterOptions(categories={"overflow"}, show_feedback=True))

    assert [issue.id for issue in default_view] == [1]
    assert [issue.id for issue in with_feedback] == [1, 2]
    assert by_category == []


def test_filter_severity_match_is_case_insensitive():
    issues = [_issue(1, severity="HIGH")]

    assert filter_issues(issues, IssueFilterOptions(severities={"high"})) == issues


def test_group_by_file_sorts_paths_and_tallies_severity():
    issues = [
        _issue(1, severity="High", file_path="b.sol"),
        _issue(2, severity="high", file_path="a.sol"),
        _issue(3, severity="low", file_path="b.sol"),
        _issue(4, severity="critical", file_path=None),
    ]

    groups = group_by_file(issues)

    assert [group.file_path for group in groups] == ["Unknown File", "a.sol", "b.sol"]
    assert groups[0].file_path == UNKNOWN_FILE
    assert groups[2].count == 2
    assert groups[2].severity_counts == {"high": 1, "low": 1}
    assert [issue.id for issue in groups[2].issues] == [1, 3]


def test_extract_categories_is_sorted_and_distinct():
    issues = [_issue(1, issue_type="style"), _issue(2, issue_type="access"), _issue(3, issue_type="style")]

    assert extract_categories(issues) == ["access", "style"]


def test_toggle_false_positive_is_an_involution():
    original = _issue(1)

    flipped = toggle_false_positive(original)

    assert flipped.false_positive is True
    assert original.false_positive is False
    assert toggle_false_positive(flipped) == original


def test_bulk_feedback_only_touches_selection():
    issues = [_issue(1), _issue(2), _issue(3, feedback="deprecated")]

    patched = apply_bulk_feedback(issues[:2], "Performance")
    cleared = apply_bulk_feedback(issues[2:], "")
    merged = merge_issues(issues, patched)

    assert [issue.feedback for issue in patched] == ["performance", "performance"]
    assert cleared[0].feedback is None
    assert merged[2] is issues[2]
    assert issues[0].feedback is None


def test_bulk_feedback_rejects_unknown_values():
    with pytest.raises(ValueError):
        apply_bulk_feedback([_issue(1)], "spam")


def test_issue_records_are_immutable():
    issue = _issue(1)

    with pytest.raises(ValidationError):
        issue.message = "edited"


def test_optimistic_patch_is_reconciled_with_server_row():
    issues = [_issue(1), _issue(2)]

    patched, original = apply_optimistic_patch(issues, 2, {"message": "local edit"})
    assert patched[1].message == "local edit"

    confirmed = _issue(2, message="server edit")
    assert reconcile_issue(patched, 2, confirmed=confirmed)[1].message == "server edit"
    assert reconcile_issue(patched, 2, original=original)[1] == issues[1]


def test_optimistic_patch_on_unknown_issue_is_a_no_op():
    issues = [_issue(1)]

    patched, original = apply_optimistic_patch(issues, 99, {"message": "x"})

    assert patched == issues
    assert original is None


def test_selection_helpers():
    issues = [_issue(1, file_path="a.sol"), _issue(2, file_path="a.sol"), _issue(3, file_path="b.sol")]
    group_a = group_by_file(issues)[0]

    assert toggle_issue_selection([1], 2) == [1, 2]
    assert toggle_issue_selection([1, 2], 1) == [2]
    assert toggle_select_all([], issues) == [1, 2, 3]
    assert toggle_select_all([3, 1, 2], issues) == []
    assert toggle_file_selection([3], group_a) == [3, 1, 2]
    assert toggle_file_selection([1, 2, 3], group_a) == [3]
