import os

# Isolate tests from any local .env before the settings object is built
os.environ.update({
    "DATABASE_URL": "sqlite://",
    "AI_GATEWAY_API_KEY": "",
    "SUPABASE_URL": "",
    "STOREFRONT_SERVICE_KEY": "",
    "CRON_SECRET": "",
    "RECIPE_REQUEST_DELAY": "0",
    "RECIPE_RETRY_FAILED": "false",
    "LOG_JSON": "false",
})

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront import dependencies
from storefront.data.database import Base, UserRole
from storefront.main import create_app
from storefront.services.auth import ADMIN_ROLE
from tests.fakes import FakeTokenResolver

ADMIN_TOKEN = "admin-token"
USER_TOKEN = "user-token"


@pytest.fixture
def session_factory():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def token_resolver(session_factory):
    db = session_factory()
    db.add(UserRole(user_id="user-admin", role=ADMIN_ROLE))
    db.commit()
    db.close()
    return FakeTokenResolver({ADMIN_TOKEN: "user-admin", USER_TOKEN: "user-1"})


@pytest.fixture
def app(session_factory, token_resolver):
    app = create_app()
    app.dependency_overrides[dependencies.get_session_factory] = lambda: session_factory
    app.dependency_overrides[dependencies.get_token_resolver] = lambda: token_resolver
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def user_headers():
    return {"Authorization": f"Bearer {USER_TOKEN}"}
