"""
Test configuration and fixtures for LendLedger backend tests.
"""
import pytest
from typing import AsyncGenerator
from decimal import Decimal

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from httpx import AsyncClient, ASGITransport

from app.core.database import Base, get_db
from main import app


# ============================================================
# Database Fixtures
# ============================================================

# Use SQLite for testing (in-memory)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory bound to the test engine, for tests that need several sessions"""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for each test"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================================
# User Fixtures
# ============================================================

async def _make_user(db_session, full_name, email, phone_number, role):
    from app.modules.users.models import User, KYCStatus, AccountStatus

    user = User(
        full_name=full_name,
        email=email,
        phone_number=phone_number,
        role=role,
        city="Pune",
        country="India",
        kyc_status=KYCStatus.VERIFIED,
        account_status=AccountStatus.ACTIVE
    )

    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)

    return user


@pytest.fixture
async def borrower(db_session):
    """Create an active borrower"""
    from app.modules.users.models import UserRole
    return await _make_user(db_session, "Asha Borrower", "asha@lendledger.in", "9000000001", UserRole.BORROWER)


@pytest.fixture
async def investor(db_session):
    """Create an active investor"""
    from app.modules.users.models import UserRole
    return await _make_user(db_session, "Ravi Investor", "ravi@lendledger.in", "9000000002", UserRole.INVESTOR)


@pytest.fixture
async def second_investor(db_session):
    from app.modules.users.models import UserRole
    return await _make_user(db_session, "Meera Investor", "meera@lendledger.in", "9000000003", UserRole.INVESTOR)


@pytest.fixture
async def admin(db_session):
    """Create a platform admin"""
    from app.modules.users.models import UserRole
    return await _make_user(db_session, "Platform Admin", "admin@lendledger.in", "9000000004", UserRole.ADMIN)


# ============================================================
# Loan Fixtures
# ============================================================

@pytest.fixture
async def open_loan(db_session, borrower):
    """Open loan of 250000 at 12.5% for 24 months"""
    from app.modules.loans.schemas import LoanCreateRequest
    from app.modules.loans.services import LoanService

    data = LoanCreateRequest(
        amount_requested=Decimal("250000.00"),
        interest_rate=Decimal("12.50"),
        duration_months=24,
        purpose="Working capital for a bakery"
    )
    return await LoanService(db_session).create_loan(data, borrower.id)


@pytest.fixture
async def small_loan(db_session, borrower):
    """Open loan of 1200 at 0% for 12 months (EMI 100.00)"""
    from app.modules.loans.schemas import LoanCreateRequest
    from app.modules.loans.services import LoanService

    data = LoanCreateRequest(
        amount_requested=Decimal("1200.00"),
        interest_rate=Decimal("0.00"),
        duration_months=12,
        purpose="Laptop"
    )
    return await LoanService(db_session).create_loan(data, borrower.id)


@pytest.fixture
async def funded_small_loan(db_session, small_loan, investor):
    """small_loan fully funded by a single investor"""
    from app.modules.investments.services import FundingService

    await FundingService(db_session).apply_investment(investor.id, small_loan.id, Decimal("1200.00"), investor.id)
    return small_loan
