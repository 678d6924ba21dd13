import os
from typing import AsyncGenerator, Dict, Optional

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.auth.models import Role, User
from app.auth.security import create_access_token
from app.core.models import SchoolClass, Student, Tenant
from app.db.session import Base, get_db
from app.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
# SQLite has no schemas; render core.* / school.* / auth.* tables unqualified.
SCHEMA_MAP = {"core": None, "school": None, "auth": None}


@pytest.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """One in-memory database per test; StaticPool keeps every session on the same connection."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        execution_options={"schema_translate_map": SCHEMA_MAP},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.clear()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def make_tenant(db: AsyncSession, name: str = "Acme School") -> Tenant:
    tenant = Tenant(organization_name=name)
    db.add(tenant)
    await db.commit()
    return tenant


async def make_user(
    db: AsyncSession,
    tenant: Tenant,
    role: str = "ADMIN",
    email: str = "admin@example.com",
    permissions: Optional[Dict[str, Dict[str, bool]]] = None,
) -> User:
    user = User(tenant_id=tenant.id, full_name=f"{role.title()} User", email=email, role=role, status="ACTIVE")
    db.add(user)
    if permissions is not None:
        db.add(Role(tenant_id=tenant.id, name=role, permissions=permissions))
    await db.commit()
    return user


def headers_for(user: User) -> Dict[str, str]:
    token = create_access_token(subject={"user_id": user.id, "tenant_id": user.tenant_id})
    return {"Authorization": f"Bearer {token}"}


async def make_class(db: AsyncSession, tenant: Tenant, name: str = "10th", section: str = "A") -> SchoolClass:
    school_class = SchoolClass(tenant_id=tenant.id, name=name, section=section, is_active=True)
    db.add(school_class)
    await db.commit()
    return school_class


async def make_student(
    db: AsyncSession,
    tenant: Tenant,
    school_class: Optional[SchoolClass],
    first_name: str = "Asha",
    roll_number: Optional[str] = None,
    is_active: bool = True,
) -> Student:
    student = Student(
        tenant_id=tenant.id,
        class_id=school_class.id if school_class is not None else None,
        first_name=first_name,
        last_name="Rao",
        roll_number=roll_number,
        is_active=is_active,
    )
    db.add(student)
    await db.commit()
    return student


@pytest.fixture()
async def tenant(db_session: AsyncSession) -> Tenant:
    return await make_tenant(db_session)


@pytest.fixture()
async def admin_user(db_session: AsyncSession, tenant: Tenant) -> User:
    return await make_user(db_session, tenant)


@pytest.fixture()
def auth_headers(admin_user: User) -> Dict[str, str]:
    return headers_for(admin_user)


@pytest.fixture()
async def school_class(db_session: AsyncSession, tenant: Tenant) -> SchoolClass:
    return await make_class(db_session, tenant)


@pytest.fixture()
async def catalogs(client: AsyncClient, auth_headers: Dict[str, str]) -> Dict[str, Dict[str, str]]:
    """Default categories and frequencies for the tenant, as {code: id}."""
    categories = await client.post("/api/v1/fee-categories/init", headers=auth_headers)
    assert categories.status_code == 201
    frequencies = await client.post("/api/v1/fee-frequencies/init", headers=auth_headers)
    assert frequencies.status_code == 201
    return {
        "categories": {c["code"]: c["id"] for c in categories.json()["data"]},
        "frequencies": {f["code"]: f["id"] for f in frequencies.json()["data"]},
    }


async def create_structure(
    client: AsyncClient,
    headers: Dict[str, str],
    catalogs: Dict[str, Dict[str, str]],
    class_ids=(),
    name: str = "Tuition",
    amount: str = "5000",
    category: str = "TUITION",
    frequency: str = "monthly",
    academic_year: str = "2024-2025",
) -> dict:
    response = await client.post(
        "/api/v1/fees/structures",
        json={
            "name": name,
            "category_id": catalogs["categories"][category],
            "frequency_id": catalogs["frequencies"][frequency],
            "class_ids": [str(c) for c in class_ids],
            "amount": amount,
            "academic_year": academic_year,
            "due_day": 10,
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()
