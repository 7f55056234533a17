"""
TicketOps - Test Configuration and Fixtures
"""
import os
from typing import AsyncGenerator, Callable, Optional
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from faker import Faker

# Set testing environment
os.environ['TESTING'] = 'true'
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test.db'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['SMTP_USER'] = ''
os.environ['SMTP_PASSWORD'] = ''

from ticketops.main import app
from ticketops.core.database import Base, get_db, create_engine_for_url
from ticketops.core.security import get_password_hash, create_access_token
from ticketops.models.user import User, UserRole
from ticketops.models.user_right import UserRight
from ticketops.models.site import Site
from ticketops.models.asset import Asset, AssetStatus
from ticketops.models.ticket import SLAPolicy, TicketPriority

fake = Faker()

TEST_DATABASE_URL = 'sqlite+aiosqlite:///./test.db'
TEST_PASSWORD = 'testpassword123'


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database for each test"""
    engine = create_engine_for_url(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


# ==================== Factories ====================

@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable:
    """Create users on demand: ``await make_user(UserRole.L1_ENGINEER)``"""
    async def _make(
        role: UserRole = UserRole.L1_ENGINEER,
        site_id: Optional[str] = None,
        assigned_sites: Optional[list] = None,
        is_active: bool = True,
        password: str = TEST_PASSWORD,
    ) -> User:
        username = f"{fake.user_name()}.{fake.unique.random_int(1000, 9999)}"
        user = User(
            email=f"{username}@ticketops.in",
            username=username,
            full_name=fake.name(),
            hashed_password=get_password_hash(password),
            role=role,
            is_active=is_active,
            site_id=site_id,
            assigned_sites=assigned_sites or [],
            preferences={},
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user
    return _make


@pytest.fixture
def grant_rights(db_session: AsyncSession) -> Callable:
    async def _grant(user: User, global_rights=(), site_rights=()) -> UserRight:
        rights = UserRight(
            user_id=user.id,
            global_rights=[getattr(r, "value", r) for r in global_rights],
            site_rights=list(site_rights),
        )
        db_session.add(rights)
        await db_session.commit()
        return rights
    return _grant


@pytest.fixture
async def site(db_session: AsyncSession) -> Site:
    site = Site(site_name="MG Road Junction", site_code="MGR-01", city="Bengaluru", zone="East")
    db_session.add(site)
    await db_session.commit()
    await db_session.refresh(site)
    return site


@pytest.fixture
async def head_office(db_session: AsyncSession) -> Site:
    site = Site(site_name="Head Office Store", site_code="HO", city="Bengaluru", is_head_office=True)
    db_session.add(site)
    await db_session.commit()
    await db_session.refresh(site)
    return site


@pytest.fixture
async def asset(db_session: AsyncSession, site: Site) -> Asset:
    asset = Asset(
        asset_code="CAM-MGR-001",
        asset_type="Camera",
        device_type="PTZ",
        serial_number="SN-0001",
        ip_address="10.0.0.11",
        site_id=site.id,
        location_name="North pole",
        criticality=3,
        status=AssetStatus.OPERATIONAL,
        user_name="admin",
        password="cam-secret",
    )
    db_session.add(asset)
    await db_session.commit()
    await db_session.refresh(asset)
    return asset


@pytest.fixture
async def sla_policies(db_session: AsyncSession) -> dict:
    targets = {
        TicketPriority.P1: (15, 240),
        TicketPriority.P2: (30, 480),
        TicketPriority.P3: (60, 1440),
        TicketPriority.P4: (240, 2880),
    }
    policies = {}
    for priority, (response, restore) in targets.items():
        policy = SLAPolicy(
            policy_name=f"{priority.value} standard",
            priority=priority,
            response_time_minutes=response,
            restore_time_minutes=restore,
        )
        db_session.add(policy)
        policies[priority] = policy
    await db_session.commit()
    return policies


@pytest.fixture
async def admin_user(make_user) -> User:
    return await make_user(UserRole.ADMIN)


@pytest.fixture
async def dispatcher_user(make_user) -> User:
    return await make_user(UserRole.DISPATCHER)


@pytest.fixture
async def engineer_user(make_user, site: Site) -> User:
    return await make_user(UserRole.L1_ENGINEER, site_id=site.id, assigned_sites=[site.id])


@pytest.fixture
async def client_user(make_user, site: Site) -> User:
    return await make_user(UserRole.SITE_CLIENT, site_id=site.id, assigned_sites=[site.id])


def headers_for(user: User) -> dict:
    """Generate authentication headers for a user"""
    token_data = {
        'sub': str(user.id),
        'email': user.email,
        'role': user.role.value
    }
    token = create_access_token(token_data)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return headers_for(admin_user)


@pytest.fixture
def dispatcher_headers(dispatcher_user: User) -> dict:
    return headers_for(dispatcher_user)


@pytest.fixture
def engineer_headers(engineer_user: User) -> dict:
    return headers_for(engineer_user)


@pytest.fixture
def client_headers(client_user: User) -> dict:
    return headers_for(client_user)


@pytest.fixture
def auth_for() -> Callable:
    """Headers for any user created inside a test"""
    return headers_for
