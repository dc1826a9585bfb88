# tests/conftest.py
import os

import pytest

# ============================================================
# Configure before importing the app: no on-disk default
# database, anonymous PDA access allowed
# ============================================================
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REQUIRE_AUTH", "false")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from mes_core.app.db import build_engine, create_db_and_tables  # noqa: E402
from mes_core.app.gateway import QueryGateway, get_gateway  # noqa: E402
from mes_core.app.main import app  # noqa: E402
from mes_core.app.security import RequestContext, get_role_permissions  # noqa: E402


# =========================================
# One SQLite file per test
# =========================================
@pytest.fixture
def engine(tmp_path):
    eng = build_engine(f"sqlite:///{(tmp_path / 'mes_test.db').as_posix()}")
    create_db_and_tables(bind=eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture
def gateway(engine):
    return QueryGateway(engine)


@pytest.fixture
def db(engine):
    """ORM session for seeding; factories commit so the gateway sees the rows"""
    session = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(gateway):
    app.dependency_overrides[get_gateway] = lambda: gateway
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def ctx():
    return RequestContext(
        user_id="TESTER",
        business_unit="10",
        permissions=frozenset(get_role_permissions("Admin")),
        authenticated=True,
    )
