import os
from datetime import datetime

import pytest

# In-memory SQLite so the app imports without a Postgres server
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from apps.api.deps import get_result_cache  # noqa: E402
from apps.api.main import app  # noqa: E402
from apps.core.cache import InMemoryCacheBackend, ResultCache  # noqa: E402
from apps.core.db import Base, get_db  # noqa: E402
from apps.destinations.models import (  # noqa: E402
    Category,
    Characteristic,
    Destination,
    Image,
    Region,
    Tag,
)


def _seed(session):
    valle = Region(id=1, name="Valle del Mezquital", slug="valle-del-mezquital")
    comarca = Region(id=2, name="Comarca Minera", slug="comarca-minera")

    balneario = Category(id=1, name="Balneario", slug="balneario")
    pueblo = Category(id=2, name="Pueblo Mágico", slug="pueblo-magico")
    aventura = Category(id=3, name="Aventura", slug="aventura")

    naturaleza = Characteristic(id=1, name="Naturaleza", slug="naturaleza")
    gastronomia = Characteristic(id=2, name="Gastronomía", slug="gastronomia")
    obsoleta = Characteristic(id=3, name="Obsoleta", slug="obsoleta", is_active=False)

    familiar = Tag(id=1, name="Familiar", slug="familiar", color="#10B981")
    termales = Tag(id=2, name="Aguas termales", slug="aguas-termales", color="#3B82F6")

    destinations = [
        Destination(
            id=1, name="Balneario El Tephé", slug="balneario-el-tephe", status="published",
            short_description="Aguas termales en Ixmiquilpan", region=valle,
            categories=[balneario, pueblo], tags=[termales], is_top=True, is_featured=True,
            average_rating=4.8, reviews_count=120, price=100, latitude=20.4836, longitude=-99.2186,
            created_at=datetime(2024, 1, 10),
            images=[Image(url="tephe.jpg", is_main=True, order=1)],
        ),
        Destination(
            id=2, name="Grutas Tolantongo", slug="grutas-tolantongo", status="published", region=valle,
            categories=[balneario], characteristics=[naturaleza, obsoleta], tags=[familiar, termales],
            is_top=True, average_rating=4.0, reviews_count=300, price=250,
            latitude=20.6506, longitude=-98.9986, created_at=datetime(2024, 2, 1),
        ),
        Destination(
            id=3, name="Real del Monte", slug="real-del-monte", status="published", region=comarca,
            description="Pueblo minero con pastes", categories=[pueblo], characteristics=[gastronomia],
            tags=[familiar], is_featured=True, average_rating=4.5, reviews_count=80, price=0,
            latitude=20.1397, longitude=-98.6731, created_at=datetime(2024, 3, 5),
        ),
        Destination(
            id=4, name="Prismas Basálticos", slug="prismas-basalticos", status="published", region=comarca,
            categories=[aventura], characteristics=[naturaleza], average_rating=3.9, reviews_count=40,
            price=500, created_at=datetime(2024, 4, 1),
        ),
        Destination(
            id=5, name="Borrador", slug="borrador", status="draft", region=valle, categories=[balneario],
            average_rating=5.0, price=150, latitude=20.48, longitude=-99.21, created_at=datetime(2024, 5, 1),
            is_featured=True,
        ),
    ]
    session.add_all(destinations)
    session.commit()


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine)()
    try:
        _seed(session)
    finally:
        session.close()
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def result_cache():
    return ResultCache(InMemoryCacheBackend(max_entries=64))


@pytest.fixture
def client(session_factory, result_cache):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_result_cache] = lambda: result_cache
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
