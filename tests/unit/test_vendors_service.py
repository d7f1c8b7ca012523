import pytest

from marketplace import config
from marketplace.errors import NotFound, ValidationError
from marketplace.vendors import service as vendors_service
from marketplace.vendors.models import derive_account_status, map_subscription_status

SELLER = {"id": "seller-1", "email": "seller@example.com"}
ORIGIN = "https://app.test"


@pytest.fixture()
def farmer(fake_db):
    fake_db.seed("farmers", {"id": "farm-a", "user_id": "seller-1", "farm_name": "Green Acres"})
    return "farm-a"


def test_onboarding_creates_account_once(fake_db, fake_gateway, farmer):
    first = vendors_service.start_connect_onboarding(fake_db, fake_gateway, user=SELLER, origin=ORIGIN)
    second = vendors_service.start_connect_onboarding(fake_db, fake_gateway, user=SELLER, origin=ORIGIN)

    assert first["account_id"] == second["account_id"] == "acct_test_1"
    assert len(fake_gateway.called("create_connected_account")) == 1
    created = fake_gateway.called("create_connected_account")[0]
    assert created["business_name"] == "Green Acres"
    assert created["metadata"] == {"farmer_id": "farm-a", "user_id": "seller-1"}

    (row,) = fake_db.rows("vendor_stripe_accounts")
    assert row["account_status"] == "pending"
    link = fake_gateway.called("create_account_link")[0]
    assert link["return_url"] == "https://app.test/seller/dashboard"
    assert link["refresh_url"] == "https://app.test/seller/enroll"


def test_onboarding_custom_return_urls(fake_db, fake_gateway, farmer):
    vendors_service.start_connect_onboarding(
        fake_db, fake_gateway, user=SELLER, origin=ORIGIN,
        return_url="myapp://done", refresh_url="myapp://retry",
    )
    link = fake_gateway.called("create_account_link")[0]
    assert (link["return_url"], link["refresh_url"]) == ("myapp://done", "myapp://retry")


def test_onboarding_requires_farmer_profile(fake_db, fake_gateway):
    with pytest.raises(NotFound):
        vendors_service.start_connect_onboarding(fake_db, fake_gateway, user=SELLER, origin=ORIGIN)
    assert fake_gateway.calls == []


def test_billing_setup_reuses_platform_customer(fake_db, fake_gateway, farmer):
    first = vendors_service.setup_vendor_billing(fake_db, fake_gateway, user=SELLER, origin=ORIGIN)
    second = vendors_service.setup_vendor_billing(fake_db, fake_gateway, user=SELLER, origin=ORIGIN)
    assert first["customer_id"] == second["customer_id"]
    assert len(fake_gateway.called("create_customer")) == 1
    assert fake_gateway.called("create_customer")[0]["metadata"]["type"] == "vendor_billing"
    setup = fake_gateway.called("create_setup_session")[0]
    assert setup["success_url"] == "https://app.test/seller/dashboard?setup=success"


def test_premium_requires_platform_customer(fake_db, fake_gateway, farmer):
    with pytest.raises(ValidationError):
        vendors_service.subscribe_premium(fake_db, fake_gateway, user=SELLER)
    assert fake_gateway.calls == []


def test_premium_subscription_stored_incomplete(fake_db, fake_gateway, farmer):
    fake_db.seed("vendor_platform_customers", {"farmer_id": "farm-a", "stripe_customer_id": "cus_farm"})
    result = vendors_service.subscribe_premium(fake_db, fake_gateway, user=SELLER)

    assert result == {"subscription_id": "sub_test_1", "client_secret": "pi_sub_1_secret"}
    assert fake_gateway.called("create_subscription")[0] == {"customer": "cus_farm", "price": config.PREMIUM_PRICE_ID}
    (row,) = fake_db.rows("vendor_subscriptions")
    assert row["status"] == "incomplete"
    assert row["current_period_start"] == "2025-01-01T00:00:00+00:00"


@pytest.mark.parametrize(
    "kwargs, expected",
    [
        ({"charges_enabled": True, "details_submitted": True}, "enabled"),
        ({"charges_enabled": True, "details_submitted": True, "disabled_reason": "rejected.terms_of_service"}, "rejected"),
        ({"charges_enabled": False, "details_submitted": True, "disabled_reason": "requirements.past_due"}, "restricted"),
        ({"charges_enabled": False, "details_submitted": False}, "pending"),
    ],
)
def test_derive_account_status(kwargs, expected):
    assert derive_account_status(**kwargs) == expected


@pytest.mark.parametrize(
    "stripe_status, expected",
    [
        ("active", "active"),
        ("trialing", "active"),
        ("past_due", "past_due"),
        ("unpaid", "past_due"),
        ("canceled", "canceled"),
        ("incomplete", "incomplete"),
        ("incomplete_expired", "canceled"),
        ("paused", "inactive"),
        (None, "inactive"),
    ],
)
def test_map_subscription_status(stripe_status, expected):
    assert map_subscription_status(stripe_status) == expected
