"""
Test fixtures - in-memory SQLite database, store/importer handles and HTTP client
"""
import copy

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from cafeteria.database import Base, get_db, configure_sqlite
from cafeteria.main import app
from cafeteria.services.menu_importer import MenuImporter
from cafeteria.services.store import MenuStore


LUNCH_DOCUMENT = {
    "locationId": "loc-1",
    "date": "2025-11-21",
    "period": {
        "id": "p1",
        "name": "Lunch",
        "categories": [
            {
                "id": "c1",
                "name": "Grill",
                "sortOrder": 1,
                "items": [
                    {
                        "name": "Cheeseburger",
                        "mrnFull": "X-100",
                        "mrn": 100,
                        "desc": "Quarter pound beef patty",
                        "portion": "1 each",
                        "ingredients": "beef, cheddar cheese, wheat bun",
                        "sortOrder": 1,
                        "nutrients": [
                            {"name": "Calories", "uom": "kcal", "valueNumeric": "650"},
                        ],
                    },
                ],
            },
        ],
    },
}


@pytest_asyncio.fixture()
async def db_session():
    """Create a fresh in-memory SQLite database for each test"""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    configure_sqlite(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture()
def store(db_session):
    return MenuStore(db_session)


@pytest.fixture()
def importer(db_session):
    return MenuImporter(db_session)


@pytest.fixture()
def lunch_document():
    """The reference Lunch document; each test gets its own copy to mutate"""
    return copy.deepcopy(LUNCH_DOCUMENT)


@pytest_asyncio.fixture()
async def client(db_session):
    """httpx AsyncClient bound to the FastAPI app"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac

    app.dependency_overrides.clear()
