import pytest

from services.errors import InvalidDateCode, NotFound, ReportArchived
from services.report_repository import (
    bulk_update_feedback,
    format_date_code,
    get_date_statistics,
    list_dates,
    list_issues,
    list_reports,
    normalize_issue_patch,
    update_issue,
)


def _issue(severity, file_path, line_number, issue_type="logic", **extra):
    return {
        "severity": severity,
        "issue_type": issue_type,
        "file_path": file_path,
        "line_number": line_number,
        "message": f"{severity} in {file_path}",
        **extra,
    }


def test_format_date_code():
    assert format_date_code("20250115") == "2025-01-15"
    assert format_date_code("2025") == "Invalid Date"
    assert format_date_code(None) == "Invalid Date"


@pytest.mark.asyncio
async def test_dates_newest_first_and_statistics(db, seed_report):
    await seed_report(date_code="20250101")
    await seed_report(date_code="20250301")

    dates = await list_dates(db)
    assert [row.date_code for row in dates] == ["20250301", "20250101"]
    assert (await get_date_statistics("20250301", db)).formatted_date == "2025-03-01"

    with pytest.raises(NotFound):
        await get_date_statistics("19990101", db)
    with pytest.raises(InvalidDateCode):
        await get_date_statistics("2025-03-01", db)


@pytest.mark.asyncio
async def test_reports_ordered_by_risk_and_searchable(db, seed_report):
    await seed_report(user_name="zed", repo_name="safe-lib", risk_score=90)
    await seed_report(user_name="amy", repo_name="Risky-Vault", risk_score=20)
    await seed_report(user_name="bob", repo_name="token", risk_score=20)

    reports = await list_reports("20250115", db)
    assert [row.repo_name for row in reports] == ["Risky-Vault", "token", "safe-lib"]

    found = await list_reports("20250115", db, search="vault")
    assert [row.user_name for row in found] == ["amy"]

    with pytest.raises(InvalidDateCode):
        await list_reports("abc", db)


@pytest.mark.asyncio
async def test_issues_sorted_by_severity_rank_then_location(db, seed_report):
    report_id = await seed_report(
        issues=[
            _issue("low", "a.sol", 1),
            _issue("critical", "b.sol", None),
            _issue("critical", "b.sol", 3),
            _issue("High", "a.sol", 9),
            _issue("critical", "a.sol", 40),
        ]
    )

    issues = await list_issues(report_id, db)

    assert [(issue.severity, issue.file_path, issue.line_number) for issue in issues] == [
        ("critical", "a.sol", 40),
        ("critical", "b.sol", 3),
        ("critical", "b.sol", None),
        ("High", "a.sol", 9),
        ("low", "a.sol", 1),
    ]


def test_issue_patch_only_accepts_editable_fields():
    assert normalize_issue_patch({"feedback": "", "false_positive": 1}) == {"feedback": None, "false_positive": True}

    with pytest.raises(ValueError):
        normalize_issue_patch({"severity": "low"})
    with pytest.raises(ValueError):
        normalize_issue_patch({"feedback": "nonsense"})


@pytest.mark.asyncio
async def test_update_issue_persists_and_returns_row(db, seed_report):
    report_id = await seed_report(issues=[_issue("high", "a.sol", 5)])
    issue_id = (await list_issues(report_id, db))[0].id

    updated = await update_issue(issue_id, {"false_positive": True, "feedback": "safety"}, db)

    assert updated.false_positive is True
    assert updated.feedback == "safety"
    assert (await list_issues(report_id, db))[0].feedback == "safety"


@pytest.mark.asyncio
async def test_archived_report_issues_are_read_only(db, seed_report):
    report_id = await seed_report(status="archived", issues=[_issue("high", "a.sol", 5)])
    issue_id = (await list_issues(report_id, db))[0].id

    with pytest.raises(ReportArchived):
        await update_issue(issue_id, {"message": "edited"}, db)
    with pytest.raises(ReportArchived):
        await bulk_update_feedback([issue_id], "safety", db)


@pytest.mark.asyncio
async def test_bulk_feedback_updates_every_selected_issue(db, seed_report):
    report_id = await seed_report(
        issues=[_issue("high", "a.sol", 1), _issue("low", "a.sol", 2), _issue("info", "b.sol", 3)]
    )
    issue_ids = [issue.id for issue in await list_issues(report_id, db)]

    updated = await bulk_update_feedback(issue_ids[:2], "deprecated", db)
    assert [issue.feedback for issue in updated] == ["deprecated", "deprecated"]

    cleared = await bulk_update_feedback(issue_ids[:1], None, db)
    assert cleared[0].feedback is None

    untouched = await list_issues(report_id, db)
    assert untouched[2].feedback is None

    with pytest.raises(NotFound):
        await bulk_update_feedback([issue_ids[0], 999999], "safety", db)
