import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database import Base, get_db
from main import app
from models.audit_date import AuditDate
from models.audit_issue import AuditIssue
from models.audit_report import AuditReport
from models.credit_account import OwnerKind
from models.whitelist_user import WhitelistUser
from routers import rate_limit
from services.credits import grant
from services.report_repository import format_date_code
from services.session_token import create_session_token


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit._local_counters.clear()
    yield
    rate_limit._local_counters.clear()
    app.state.disable_rate_limits = previous


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    db_path = tmp_path / "audit_credits.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield maker
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def integration_client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def auth_header():
    def _header(user_id, session_id=None):
        token = create_session_token(user_id, session_id=session_id)["token"]
        return {"Authorization": f"Bearer {token}"}

    return _header


@pytest.fixture
def new_user_id():
    return lambda: str(uuid.uuid4())


@pytest.fixture
def seed_report(session_maker):
    """Insert an audit date (if needed), one report and its issues; returns the report id."""

    async def _seed(
        *,
        status="completed",
        submitter_user_id=None,
        issues=(),
        date_code="20250115",
        user_name="octo",
        repo_name="demo-repo",
        risk_score=70,
    ):
        async with session_maker() as session:
            if await session.get(AuditDate, date_code) is None:
                session.add(
                    AuditDate(
                        date_code=date_code,
                        formatted_date=format_date_code(date_code),
                        total_repos=1,
                        critical_issues=0,
                        high_issues=0,
                        total_issues=len(issues),
                    )
                )
            report = AuditReport(
                date_code=date_code,
                user_name=user_name,
                repo_name=repo_name,
                risk_score=risk_score,
                total_issues=len(issues),
                status=status,
                submitter_user_id=submitter_user_id,
            )
            session.add(report)
            await session.flush()
            report_id = report.id
            for issue in issues:
                session.add(AuditIssue(report_id=report_id, **issue))
            await session.commit()
            return report_id

    return _seed


@pytest.fixture
def whitelist(session_maker):
    async def _whitelist(user_id):
        async with session_maker() as session:
            session.add(WhitelistUser(user_id=user_id, note="curator"))
            await session.commit()

    return _whitelist


@pytest.fixture
def fund(session_maker):
    """Credit a user (or wallet) account through the ledger."""

    async def _fund(owner_id, amount, owner_kind=OwnerKind.USER):
        async with session_maker() as session:
            result = await grant(
                owner_kind,
                owner_id,
                session,
                amount=amount,
                description="test funding",
                reference_id=f"test-funding:{uuid.uuid4()}",
            )
            return result.balance

    return _fund
