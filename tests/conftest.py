from __future__ import annotations

from typing import Iterator
import uuid

import pytest
from sqlalchemy.pool import StaticPool

from fichajes import create_app
from fichajes.config import Config
from fichajes.extensions import db
from fichajes.models import Employee


EMPLOYEE_ID = uuid.UUID("6f1c2a9e-3b7d-4e1a-9c55-0d2f4b8a7e10")


class TestConfig(Config):
    TESTING = True
    WTF_CSRF_ENABLED = False
    SQLALCHEMY_DATABASE_URI = "sqlite+pysqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {
        "connect_args": {"check_same_thread": False},
        "poolclass": StaticPool,
    }
    APP_TIMEZONE = "UTC"
    FICHAJES_MAX_BATCH_DAYS = 50
    FICHAJES_DEFAULT_EXPECTED_MINUTES = 450


@pytest.fixture()
def app() -> Iterator:
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        db.session.add(Employee(id=EMPLOYEE_ID, name="Ana Torres", email="ana@example.com", active=True))
        db.session.commit()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def employee_id() -> uuid.UUID:
    return EMPLOYEE_ID
