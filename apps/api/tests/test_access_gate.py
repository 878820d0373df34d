import uuid

import pytest

from models.credit_account import OwnerKind
from services.access_gate import AccessReason, check_report_access
from services.credits import get_balance, list_transactions
from services.errors import NotAuthenticated, NotFound
from services.session_token import RequestSession


def _session(user_id, session_id=None):
    return RequestSession(user_id=user_id, session_id=session_id or str(uuid.uuid4()))


@pytest.mark.asyncio
async def test_curator_views_for_free_with_zero_balance(db, seed_report, whitelist, new_user_id):
    curator = new_user_id()
    await whitelist(curator)
    report_id = await seed_report(status="pending")

    decision = await check_report_access(_session(curator), report_id, db)

    assert decision.granted is True
    assert decision.reason == AccessReason.CURATOR.value
    assert decision.charged == 0
    assert await list_transactions(OwnerKind.USER, curator, db) == []


@pytest.mark.asyncio
async def test_submitter_views_own_report_without_charge(db, seed_report, new_user_id):
    submitter = new_user_id()
    report_id = await seed_report(status="pending", submitter_user_id=submitter)

    decision = await check_report_access(_session(submitter), report_id, db)

    assert decision.granted is True
    assert decision.reason == AccessReason.SUBMITTER.value
    assert await get_balance(OwnerKind.USER, submitter, db) == 0


@pytest.mark.asyncio
async def test_viewer_pays_once_per_session(db, seed_report, fund, new_user_id):
    viewer = new_user_id()
    await fund(viewer, 25)
    report_id = await seed_report(repo_name="payments-api")
    session = _session(viewer)

    first = await check_report_access(session, report_id, db)
    second = await check_report_access(session, report_id, db)

    assert first.granted is True
    assert first.reason == AccessReason.PURCHASED.value
    assert first.charged == 10
    assert first.current_balance == 15
    assert second.granted is True
    assert second.reason == AccessReason.SESSION_GRANT.value
    assert second.charged == 0
    assert await get_balance(OwnerKind.USER, viewer, db) == 15

    history = await list_transactions(OwnerKind.USER, viewer, db)
    assert history[0]["transaction_type"] == "view_report"
    assert history[0]["description"] == "view report payments-api"
    assert history[0]["reference_id"] == str(report_id)


@pytest.mark.asyncio
async def test_new_session_is_charged_again(db, seed_report, fund, new_user_id):
    viewer = new_user_id()
    await fund(viewer, 25)
    report_id = await seed_report()

    await check_report_access(_session(viewer), report_id, db)
    again = await check_report_access(_session(viewer), report_id, db)

    assert again.reason == AccessReason.PURCHASED.value
    assert await get_balance(OwnerKind.USER, viewer, db) == 5


@pytest.mark.asyncio
async def test_pending_report_is_not_available_and_not_charged(db, seed_report, fund, new_user_id):
    viewer = new_user_id()
    await fund(viewer, 25)
    report_id = await seed_report(status="pending")

    decision = await check_report_access(_session(viewer), report_id, db)

    assert decision.granted is False
    assert decision.reason == AccessReason.REPORT_NOT_AVAILABLE.value
    assert await get_balance(OwnerKind.USER, viewer, db) == 25


@pytest.mark.asyncio
async def test_insufficient_credits_reports_exact_shortfall(db, seed_report, fund, new_user_id):
    viewer = new_user_id()
    await fund(viewer, 4)
    report_id = await seed_report()

    decision = await check_report_access(_session(viewer), report_id, db)

    assert decision.granted is False
    assert decision.reason == AccessReason.INSUFFICIENT_CREDITS.value
    assert decision.required_credits == 10
    assert decision.current_balance == 4
    assert "Required: 10, available: 4" in decision.message
    assert await get_balance(OwnerKind.USER, viewer, db) == 4


@pytest.mark.asyncio
async def test_missing_report_and_missing_session(db, seed_report):
    with pytest.raises(NotFound):
        await check_report_access(_session("someone"), 9999, db)

    report_id = await seed_report()
    with pytest.raises(NotAuthenticated):
        await check_report_access(None, report_id, db)
