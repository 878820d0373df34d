import asyncio
import uuid
from unittest.mock import AsyncMock, patch

import pytest

from config import settings
from main import app
from services.report_generation import get_report_generator


def _issue(severity, issue_type, file_path, line_number, **extra):
    return {
        "severity": severity,
        "issue_type": issue_type,
        "file_path": file_path,
        "line_number": line_number,
        "message": f"{issue_type} at {file_path}:{line_number}",
        **extra,
    }


REPORT_ISSUES = [
    _issue("critical", "reentrancy", "contracts/Vault.sol", 42),
    _issue("low", "style", "contracts/Vault.sol", 7, false_positive=True),
    _issue("high", "access", "contracts/Token.sol", 12),
    _issue("medium", "style", None, None, feedback="deprecated"),
]


@pytest.fixture
def generator_override():
    generator = AsyncMock()
    generator.trigger.return_value = {"queued": True, "job_id": "report-generation:test"}
    app.dependency_overrides[get_report_generator] = lambda: generator
    yield generator
    app.dependency_overrides.pop(get_report_generator, None)


@pytest.mark.asyncio
async def test_requests_without_session_are_rejected(integration_client):
    response = await integration_client.get("/credits/balance")
    assert response.status_code == 401

    response = await integration_client.get(
        "/credits/balance",
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_health_live(integration_client):
    response = await integration_client.get("/health/live")
    assert response.json() == {"alive": True}


@pytest.mark.asyncio
async def test_browse_dates_and_reports(integration_client, seed_report):
    await seed_report(date_code="20250201", repo_name="alpha", risk_score=10)
    await seed_report(date_code="20250201", repo_name="beta", risk_score=80)

    dates = await integration_client.get("/reports/dates")
    assert [row["date_code"] for row in dates.json()["dates"]] == ["20250201"]

    stats = await integration_client.get("/reports/dates/20250201")
    assert stats.json()["formatted_date"] == "2025-02-01"

    reports = await integration_client.get("/reports/dates/20250201/reports", params={"search": "bet"})
    assert [row["repo_name"] for row in reports.json()["reports"]] == ["beta"]

    invalid = await integration_client.get("/reports/dates/2025-02/reports")
    assert invalid.status_code == 422
    assert invalid.json()["detail"]["code"] == "invalid_date_code"

    missing = await integration_client.get("/reports/dates/19990101")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_paid_view_charges_once_per_session(integration_client, seed_report, fund, auth_header):
    viewer = str(uuid.uuid4())
    await fund(viewer, 15)
    report_id = await seed_report(issues=REPORT_ISSUES)
    headers = auth_header(viewer, session_id="tab-1")

    first = await integration_client.post(f"/reports/{report_id}/view", headers=headers)
    assert first.status_code == 200
    body = first.json()
    assert body["access"]["reason"] == "purchased"
    assert body["access"]["current_balance"] == 15 - settings.VIEW_REPORT_COST
    assert [issue["severity"] for issue in body["issues"]] == ["critical", "high", "medium", "low"]

    second = await integration_client.post(f"/reports/{report_id}/view", headers=headers)
    assert second.json()["access"]["reason"] == "session_grant"

    other_tab = await integration_client.post(
        f"/reports/{report_id}/view",
        headers=auth_header(viewer, session_id="tab-2"),
    )
    assert other_tab.status_code == 402
    assert other_tab.json()["required_credits"] == 10
    assert other_tab.json()["current_balance"] == 5

    history = await integration_client.get("/credits/transactions", headers=headers)
    assert [entry["transaction_type"] for entry in history.json()["transactions"]] == ["view_report", "grant"]


@pytest.mark.asyncio
async def test_pending_report_view_is_conflict(integration_client, seed_report, fund, auth_header):
    viewer = str(uuid.uuid4())
    await fund(viewer, 50)
    report_id = await seed_report(status="pending")

    response = await integration_client.post(f"/reports/{report_id}/view", headers=auth_header(viewer))

    assert response.status_code == 409
    assert response.json()["reason"] == "report_not_available"


@pytest.mark.asyncio
async def test_issue_query_filters_and_groups(integration_client, seed_report, whitelist, auth_header):
    curator = str(uuid.uuid4())
    await whitelist(curator)
    report_id = await seed_report(issues=REPORT_ISSUES)

    response = await integration_client.post(
        f"/reports/{report_id}/issues/query",
        json={"severities": ["critical", "high", "medium", "low"], "categories": []},
        headers=auth_header(curator),
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["total"] == 4
    assert payload["visible"] == 2
    assert payload["categories"] == ["access", "reentrancy", "style"]
    assert [group["file_path"] for group in payload["groups"]] == ["contracts/Token.sol", "contracts/Vault.sol"]


@pytest.mark.asyncio
async def test_curator_edits_and_lifecycle(integration_client, seed_report, whitelist, auth_header, generator_override):
    curator = str(uuid.uuid4())
    await whitelist(curator)
    report_id = await seed_report(status="pending", issues=REPORT_ISSUES)
    headers = auth_header(curator)

    view = await integration_client.post(f"/reports/{report_id}/view", headers=headers)
    issue_ids = [issue["id"] for issue in view.json()["issues"]]

    patched = await integration_client.patch(
        f"/reports/issues/{issue_ids[0]}",
        json={"false_positive": True},
        headers=headers,
    )
    assert patched.status_code == 200
    assert patched.json()["issue"]["false_positive"] is True

    forbidden_field = await integration_client.patch(
        f"/reports/issues/{issue_ids[0]}",
        json={"severity": "info"},
        headers=headers,
    )
    assert forbidden_field.status_code == 422

    bulk = await integration_client.post(
        "/reports/issues/feedback",
        json={"issue_ids": issue_ids[:2], "feedback": "safety"},
        headers=headers,
    )
    assert bulk.json()["updated"] == 2

    approved = await integration_client.post(f"/reports/{report_id}/approve", headers=headers)
    assert approved.status_code == 200
    assert approved.json()["status"] == "completed"
    generator_override.trigger.assert_awaited_once()

    archived = await integration_client.post(f"/reports/{report_id}/archive", headers=headers)
    assert archived.json()["status"] == "archived"

    reopen = await integration_client.post(f"/reports/{report_id}/approve", headers=headers)
    assert reopen.status_code == 409
    assert reopen.json()["code"] == "invalid_transition"

    frozen = await integration_client.patch(
        f"/reports/issues/{issue_ids[0]}",
        json={"message": "too late"},
        headers=headers,
    )
    assert frozen.status_code == 403
    assert frozen.json()["detail"]["code"] == "report_archived"

    status = await integration_client.get(f"/reports/{report_id}/status")
    assert status.json()["status"] == "archived"


@pytest.mark.asyncio
async def test_slow_generation_does_not_fail_a_saved_approval(integration_client, seed_report, whitelist, auth_header):
    curator = str(uuid.uuid4())
    await whitelist(curator)
    report_id = await seed_report(status="pending", issues=REPORT_ISSUES)

    async def slow_trigger(report_id, repo_url):
        await asyncio.sleep(2)
        return {"queued": True, "job_id": "report-generation:slow"}

    generator = AsyncMock()
    generator.trigger.side_effect = slow_trigger
    app.dependency_overrides[get_report_generator] = lambda: generator
    try:
        approved = await integration_client.post(
            f"/reports/{report_id}/approve",
            headers={**auth_header(curator), "X-Request-Timeout": "0.5"},
        )
    finally:
        app.dependency_overrides.pop(get_report_generator, None)

    assert approved.status_code == 200
    body = approved.json()
    assert body["success"] is True
    assert body["status"] == "completed"
    assert body["generation"] == {"queued": False, "error": "timeout"}

    status = await integration_client.get(f"/reports/{report_id}/status")
    assert status.json()["status"] == "completed"


@pytest.mark.asyncio
async def test_non_curator_cannot_change_reports(integration_client, seed_report, auth_header, generator_override):
    report_id = await seed_report(status="pending", issues=REPORT_ISSUES)
    headers = auth_header(str(uuid.uuid4()))

    approve = await integration_client.post(f"/reports/{report_id}/approve", headers=headers)
    bulk = await integration_client.post(
        "/reports/issues/feedback",
        json={"issue_ids": [1], "feedback": "safety"},
        headers=headers,
    )

    assert approve.status_code == 403
    assert approve.json()["detail"]["code"] == "permission_denied"
    assert bulk.status_code == 403
    generator_override.trigger.assert_not_awaited()


@pytest.mark.asyncio
async def test_credit_transfer_endpoints(integration_client, fund, auth_header):
    sender = str(uuid.uuid4())
    receiver = str(uuid.uuid4())
    await fund(sender, 40)
    headers = auth_header(sender)

    await integration_client.get("/credits/balance", headers=auth_header(receiver))

    unknown = await integration_client.post(
        "/credits/transfer",
        json={"target_user_id": str(uuid.uuid4()), "amount": 15},
        headers=headers,
    )
    assert unknown.json() == {"success": False, "message": "Target user not found", "remaining_points": 40}

    moved = await integration_client.post(
        "/credits/transfer",
        json={"target_user_id": receiver, "amount": 15},
        headers=headers,
    )
    assert moved.json() == {"success": True, "message": "Points transferred successfully", "remaining_points": 25}

    refused = await integration_client.post(
        "/credits/transfer",
        json={"target_user_id": receiver, "amount": 500},
        headers=headers,
    )
    assert refused.json()["success"] is False
    assert refused.json()["remaining_points"] == 25

    deducted = await integration_client.post("/credits/deduct", json={"amount": 5}, headers=headers)
    assert deducted.json()["remaining_points"] == 20

    receiver_balance = await integration_client.get("/credits/balance", headers=auth_header(receiver))
    assert receiver_balance.json()["points"] == 15

    unlinked = await integration_client.post(
        "/credits/transfer/wallet",
        json={"target_wallet": "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin", "amount": 1},
        headers=headers,
    )
    assert unlinked.status_code == 403


@pytest.mark.asyncio
async def test_burn_endpoints(integration_client, fund, auth_header):
    user = str(uuid.uuid4())
    await fund(user, 1000)
    headers = auth_header(user)

    eligibility = await integration_client.get("/burns/eligibility", headers=headers)
    assert eligibility.json()["can_submit"] is True

    created = await integration_client.post(
        "/burns",
        json={"burn_amount": 500, "wallet_address": "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"},
        headers=headers,
    )
    assert created.status_code == 200
    assert created.json()["data"]["token_amount"] == 50

    duplicate = await integration_client.post(
        "/burns",
        json={"burn_amount": 100, "wallet_address": "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"},
        headers=headers,
    )
    assert duplicate.status_code == 422

    history = await integration_client.get("/burns", headers=headers)
    assert history.json()["total_count"] == 1


@pytest.mark.asyncio
async def test_dev_sessions_are_disabled_by_default(integration_client, monkeypatch):
    disabled = await integration_client.post("/auth/session", json={})
    assert disabled.status_code == 404

    monkeypatch.setattr(settings, "ALLOW_DEV_SESSIONS", True)
    issued = await integration_client.post("/auth/session", json={"user_id": "dev-user"})
    assert issued.status_code == 200
    token = issued.json()["session_token"]

    me = await integration_client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["user_id"] == "dev-user"
    assert me.json()["session_id"] == issued.json()["session_id"]
    assert me.json()["points"] == 0


@pytest.mark.asyncio
async def test_mutating_endpoints_are_rate_limited(integration_client, auth_header):
    app.state.disable_rate_limits = False
    headers = auth_header(str(uuid.uuid4()))

    with patch("routers.rate_limit.redis.from_url", side_effect=ConnectionError("redis down")):
        statuses = [
            (await integration_client.post("/burns", json={"burn_amount": 1}, headers=headers)).status_code
            for _ in range(11)
        ]

    assert statuses[:10] == [422] * 10
    assert statuses[10] == 429
