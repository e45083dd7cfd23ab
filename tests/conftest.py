"""
Pytest fixtures for the test suite.

Data-layer and API tests use a fresh in-memory SQLite database per test. The
engine keeps a single shared connection (StaticPool) so that sessions opened by
the app inside TestClient worker threads see the same database as the test.
"""
from __future__ import annotations

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tenantauth.authz.cache import ContextCache, MemoryCacheStore
from tenantauth.authz.context import DataScope, UserContext


TEST_DB_URL = "sqlite://"


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from tenantauth.db import filters  # noqa: F401  (register the scoping listener)
    from tenantauth.db.base import Base
    from tenantauth.models import booking, security  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def session_factory(tables):
    return sessionmaker(bind=tables, autocommit=False, autoflush=False, class_=Session)


@pytest.fixture
def db_session(session_factory):
    """
    Provide a Session bound to the test DB.

    The database itself is discarded with the engine, so committing inside a
    test is fine.
    """
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def seeded(db_session):
    """Demo organizations, users, roles, menus and bookings (see tenantauth/db/init_db.py)."""
    from tenantauth.db.init_db import seed

    seed(db_session)
    return db_session


@pytest.fixture
def user_id(seeded):
    """Look up a seeded user's id by username."""
    from tenantauth.models.security import User

    def _lookup(username: str) -> int:
        return seeded.execute(select(User.id).where(User.username == username)).scalar_one()

    return _lookup


@pytest.fixture
def role_id(seeded):
    """Look up a seeded role's id by name."""
    from tenantauth.models.security import Role

    def _lookup(name: str) -> int:
        return seeded.execute(select(Role.id).where(Role.name == name)).scalar_one()

    return _lookup


@pytest.fixture
def cache_store():
    return MemoryCacheStore()


@pytest.fixture
def context_cache(cache_store):
    return ContextCache(cache_store, ttl_seconds=300)


@pytest.fixture
def make_context():
    """Factory for hand-built contexts; keyword arguments override the defaults."""

    def _make(**overrides) -> UserContext:
        values = {
            "user_id": 1,
            "primary_role_name": "partner_admin",
            "role_names": ("partner_admin",),
            "organization_id": 10,
            "tutor_id": None,
            "permissions": frozenset(),
            "menu_codes": frozenset(),
            "data_scope": DataScope.ORGANIZATION,
        }
        values.update(overrides)
        values["permissions"] = frozenset(values["permissions"])
        values["menu_codes"] = frozenset(values["menu_codes"])
        values["role_names"] = tuple(values["role_names"])
        return UserContext(**values)

    return _make

