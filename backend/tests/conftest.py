"""
Credentials Portal - Test Configuration and Fixtures
"""
import os
from typing import AsyncGenerator

import httpx
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from faker import Faker

# Set testing environment
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test.db'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['SYNC_JOB_ENABLED'] = 'false'
os.environ['EXPIRY_ALERTS_ENABLED'] = 'false'
os.environ['DB_AUTO_CREATE'] = 'false'
os.environ['LOG_FILE'] = ''

from app.main import app
from app.core.database import Base, get_db
from app.core.security import get_password_hash, create_access_token
from app.models.user import User
from app.services.directory import get_directory
from app.services.dual_verification import StudentRegistryClient, get_student_registry
from app.services.email_service import get_email_service
from app.services.mac_lookup import MacVendorLookup, get_mac_lookup

from mocks.fake_directory import FakeDirectory
from mocks.fake_email import FakeEmailService

fake = Faker()

TEST_PASSWORD = 'Str0ng!Passw0rd'
TEST_EMPLOYEE_ID = '85010112345'
STUDENT_ID = '01020312345'

# Test database setup
TEST_DATABASE_URL = 'sqlite+aiosqlite:///./test.db'
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False)
TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False
)


def vendor_handler(request: httpx.Request) -> httpx.Response:
    """macvendors knows Dell's 00:14:22 prefix, maclookup knows nothing"""
    if request.url.host == 'api.macvendors.com':
        if request.url.path.upper().startswith('/00:14:22'):
            return httpx.Response(200, text='Dell Inc.')
        return httpx.Response(404, json={'errors': {'detail': 'Not Found'}})
    return httpx.Response(200, json={'success': True, 'found': False, 'company': ''})


def registry_handler(request: httpx.Request) -> httpx.Response:
    """Student registry with one active student"""
    if request.url.path.endswith(f'/{STUDENT_ID}') or request.url.path.endswith(f'/{TEST_EMPLOYEE_ID}'):
        return httpx.Response(200, json=[{
            'docentData': {'studentStatus': 'Activo', 'career': 'Ingeniería Informática'},
        }])
    return httpx.Response(200, json=[])


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def fake_directory() -> FakeDirectory:
    """In-memory directory"""
    return FakeDirectory()


@pytest.fixture
def fake_email() -> FakeEmailService:
    """Email service that records instead of sending"""
    return FakeEmailService()


@pytest.fixture
async def mac_lookup() -> AsyncGenerator[MacVendorLookup, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(vendor_handler)) as http:
        yield MacVendorLookup(client=http)


@pytest.fixture
async def student_registry() -> AsyncGenerator[StudentRegistryClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(registry_handler)) as http:
        yield StudentRegistryClient(client=http)


@pytest.fixture
async def client(
    db_session: AsyncSession,
    fake_directory: FakeDirectory,
    fake_email: FakeEmailService,
    mac_lookup: MacVendorLookup,
    student_registry: StudentRegistryClient,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database and upstream overrides"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_directory] = lambda: fake_directory
    app.dependency_overrides[get_email_service] = lambda: fake_email
    app.dependency_overrides[get_mac_lookup] = lambda: mac_lookup
    app.dependency_overrides[get_student_registry] = lambda: student_registry

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def test_user(db_session: AsyncSession, fake_directory: FakeDirectory) -> User:
    """An activated user that also exists in the directory"""
    display_name = fake.name()
    fake_directory.add_user(
        'jperez',
        TEST_PASSWORD,
        employee_id=TEST_EMPLOYEE_ID,
        title='Profesor Auxiliar',
        display_name=display_name,
        groups=['internet_prof', 'wifi'],
    )
    user = User(
        username='jperez',
        institutional_email='jperez@uniss.edu.cu',
        backup_email='jperez.personal@gmail.com',
        hashed_password=get_password_hash(TEST_PASSWORD),
        display_name=display_name,
        employee_id=TEST_EMPLOYEE_ID,
        title='Profesor Auxiliar',
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def admin_user(db_session: AsyncSession, fake_directory: FakeDirectory) -> User:
    """Portal administrator"""
    fake_directory.add_user('admin.red', TEST_PASSWORD, title='Especialista en Redes')
    user = User(
        username='admin.red',
        institutional_email='admin.red@uniss.edu.cu',
        hashed_password=get_password_hash(TEST_PASSWORD),
        title='Especialista en Redes',
        is_active=True,
        is_admin=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Generate authentication headers for test user"""
    token = create_access_token({'sub': test_user.username, 'employee_id': test_user.employee_id})
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_auth_headers(admin_user: User) -> dict:
    """Generate authentication headers for admin user"""
    token = create_access_token({'sub': admin_user.username})
    return {'Authorization': f'Bearer {token}'}
