"""
Test Suite Configuration
"""
from contextlib import contextmanager
from typing import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from vendor_analytics.analytics.guard import QueryGuard
from vendor_analytics.analytics.scope import ScopeResolver
from vendor_analytics.database.models import Base

from tests.stubs import ADMIN_ID, STORE_ID, VENDOR_ID, FixedClock, StubOwnership, StubPermissions


@pytest.fixture
def ownership() -> StubOwnership:
    return StubOwnership({VENDOR_ID: {STORE_ID}})


@pytest.fixture
def vendor_resolver(ownership) -> ScopeResolver:
    """Resolver for a logged-in vendor owning store 42"""
    return ScopeResolver(StubPermissions(VENDOR_ID), ownership, superuser_actor_id=None)


@pytest.fixture
def admin_resolver(ownership) -> ScopeResolver:
    """Resolver for an actor holding the commerce admin permission"""
    return ScopeResolver(
        StubPermissions(ADMIN_ID, {"administer commerce_store"}),
        ownership,
        admin_permissions=["administer commerce_store"],
        superuser_actor_id=None,
    )


@pytest.fixture
def guard() -> QueryGuard:
    return QueryGuard()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def session_scope():
    """Session context manager bound to a fresh in-memory SQLite schema"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, class_=Session, expire_on_commit=False)

    @contextmanager
    def scope() -> Iterator[Session]:
        session = factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    yield scope

    engine.dispose()
