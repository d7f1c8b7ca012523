import os

# Désactive l'init Redis du rate limiter avant l'import de l'app
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import pytest
from typing import Generator, Dict, Any
from fastapi.testclient import TestClient

from marketplace.app import app as fastapi_app
from marketplace.infra.supabase_client import get_service_supabase, get_supabase
from marketplace.payments.stripe_client import get_gateway
from marketplace.utils.security import require_user
from tests.fakes import FakeGateway, FakeSupabase

TEST_USER: Dict[str, Any] = {"id": "buyer-1", "email": "buyer@example.com"}


# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def app():
    return fastapi_app


@pytest.fixture()
def fake_db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture()
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def client(app, fake_db, fake_gateway) -> Generator[TestClient, None, None]:
    """Client API: Supabase et Stripe remplacés par les doublures, acheteur authentifié."""
    app.dependency_overrides[get_service_supabase] = lambda: fake_db
    app.dependency_overrides[get_supabase] = lambda: fake_db
    app.dependency_overrides[get_gateway] = lambda: fake_gateway
    app.dependency_overrides[require_user] = lambda: dict(TEST_USER)
    try:
        with TestClient(app, raise_server_exceptions=False) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def anonymous_client(app, fake_db, fake_gateway) -> Generator[TestClient, None, None]:
    """Client API sans override d'authentification (jetons résolus par fake_db.auth)."""
    app.dependency_overrides[get_service_supabase] = lambda: fake_db
    app.dependency_overrides[get_supabase] = lambda: fake_db
    app.dependency_overrides[get_gateway] = lambda: fake_gateway
    try:
        with TestClient(app, raise_server_exceptions=False) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def payable_vendor(fake_db) -> Dict[str, Any]:
    """Ferme 'farm-a' avec un compte connecté actif."""
    fake_db.seed("farmers", {"id": "farm-a", "user_id": "seller-1", "farm_name": "Green Acres"})
    fake_db.seed("vendor_stripe_accounts", {
        "farmer_id": "farm-a",
        "stripe_account_id": "acct_farm_a",
        "account_status": "enabled",
        "charges_enabled": True,
        "payouts_enabled": True,
        "details_submitted": True,
    })
    return {"id": "farm-a", "stripe_account_id": "acct_farm_a"}
