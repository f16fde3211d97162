"""Shared fixtures: an in-memory database and reconciliation components."""

import os

os.environ.setdefault("POSTGRES_DSN", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("TRACING_ENABLED", "false")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from payrecon.common.db import Base
from payrecon.services.reconciliation.config import ReconciliationConfig
from payrecon.services.reconciliation.correlation import CorrelationStore
from payrecon.services.reconciliation.models import Order


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def config():
    return ReconciliationConfig(system_name="Payments.Gateway", store_url="https://shop.example/")


@pytest.fixture
def store(session_factory, config):
    return CorrelationStore(session_factory, config)


@pytest.fixture
def make_order(session_factory, config):
    """Create and commit an order paid through the gateway."""

    def _make(**fields) -> Order:
        fields.setdefault("payment_method_system_name", config.system_name)
        with session_factory() as db:
            order = Order(**fields)
            db.add(order)
            db.commit()
            db.refresh(order)
            return order

    return _make
