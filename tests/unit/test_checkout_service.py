import pytest
from postgrest.exceptions import APIError

from marketplace.checkout import metadata as meta
from marketplace.checkout import repository as checkout_repository
from marketplace.checkout import service as checkout_service
from marketplace.checkout.models import CheckoutRequest, PaymentIntentRequest, PriceCheckoutRequest
from marketplace.errors import GatewayError, MultiVendorCheckoutUnsupported, PaymentSetupFailed, VendorNotPayable

BUYER = {"id": "buyer-1", "email": "buyer@example.com"}


def _request(items, **extra):
    return CheckoutRequest.model_validate({"items": items, **extra})


def _line(pid, vendor="farm-a", price=499, qty=1):
    return {"id": pid, "farmer_id": vendor, "name": f"Product {pid}", "unit_price": price, "quantity": qty}


def _checkout(db, gateway, request):
    return checkout_service.create_checkout_session(
        db, gateway, buyer=BUYER, request=request,
        success_url="https://app.test/stripe-success?session_id={CHECKOUT_SESSION_ID}",
        cancel_url="https://app.test/stripe-cancel",
    )


def test_cart_example_amounts_reach_stripe(fake_db, fake_gateway, payable_vendor):
    req = _request([_line("p1", price=499, qty=2), _line("p2", price=249, qty=1)])
    result = _checkout(fake_db, fake_gateway, req)

    assert result.subtotal == 1247
    assert result.platform_fee == 150
    assert result.vendor_amount == 1097
    assert result.application_fee_amount + result.transfer_amount == result.total_amount

    (call,) = fake_gateway.called("create_checkout_session")
    assert call["application_fee_amount"] == 150
    assert call["destination"] == "acct_farm_a"
    assert call["customer_email"] == "buyer@example.com"
    assert call["metadata"]["platform_fee_cents"] == "150"
    assert call["metadata"]["vendor_amount_cents"] == "1097"
    assert call["metadata"]["user_id"] == "buyer-1"
    assert [s.quantity for s in meta.unpack_items(call["metadata"])] == [2, 1]


def test_checkout_does_not_persist_anything(fake_db, fake_gateway, payable_vendor):
    _checkout(fake_db, fake_gateway, _request([_line("p1")]))
    assert fake_db.rows("marketplace_orders") == []
    assert not [c for c in fake_db.calls if c[1] in ("insert", "upsert", "update")]


def test_service_fee_kept_by_platform_delivery_fee_paid_to_vendor(fake_db, fake_gateway, payable_vendor):
    req = _request([_line("p1", price=1000)], delivery_fee=500, service_fee=99)
    result = _checkout(fake_db, fake_gateway, req)

    assert result.total_amount == 1599
    assert result.application_fee_amount == 120 + 99
    assert result.transfer_amount == 1000 - 120 + 500
    (call,) = fake_gateway.called("create_checkout_session")
    assert call["application_fee_amount"] == 219
    assert len(call["line_items"]) == 3


def test_vendor_not_payable_makes_no_gateway_call(fake_db, fake_gateway):
    fake_db.seed("vendor_stripe_accounts", {
        "farmer_id": "farm-a", "stripe_account_id": "acct_a", "account_status": "restricted",
        "charges_enabled": False, "payouts_enabled": False, "details_submitted": True,
    })
    with pytest.raises(VendorNotPayable):
        _checkout(fake_db, fake_gateway, _request([_line("p1")]))
    assert fake_gateway.calls == []


def test_vendor_without_account_is_not_payable(fake_db, fake_gateway):
    with pytest.raises(VendorNotPayable):
        _checkout(fake_db, fake_gateway, _request([_line("p1", vendor="farm-unknown")]))
    assert fake_gateway.calls == []


def test_multi_vendor_cart_rejected_before_gateway(fake_db, fake_gateway, payable_vendor):
    req = _request([_line("p1", vendor="farm-a"), _line("p2", vendor="farm-b")])
    with pytest.raises(MultiVendorCheckoutUnsupported):
        _checkout(fake_db, fake_gateway, req)
    assert fake_gateway.calls == []


def test_gateway_error_propagates(fake_db, fake_gateway, payable_vendor):
    fake_gateway.failures["create_checkout_session"] = GatewayError("Your account cannot currently make live charges.")
    with pytest.raises(GatewayError) as exc:
        _checkout(fake_db, fake_gateway, _request([_line("p1")]))
    assert "live charges" in exc.value.message


# --- payment sheet ---

def _sheet_request(amount=1247, vendor="farm-a", items=None):
    return PaymentIntentRequest.model_validate({
        "amount": amount,
        "farmer_id": vendor,
        "items": items or [_line("p1", price=499, qty=2), _line("p2", price=249)],
    })


def test_payment_sheet_creates_customer_once(fake_db, fake_gateway, payable_vendor):
    first = checkout_service.create_payment_sheet(fake_db, fake_gateway, buyer=BUYER, request=_sheet_request())
    second = checkout_service.create_payment_sheet(fake_db, fake_gateway, buyer=BUYER, request=_sheet_request())

    assert first.customer_id == second.customer_id
    assert len(fake_gateway.called("create_customer")) == 1
    assert len(fake_db.rows("stripe_customers")) == 1
    assert first.client_secret.startswith("pi_test_")
    assert first.ephemeral_key.startswith("ek_test_")
    assert first.platform_fee == 150 and first.vendor_amount == 1097

    intent = fake_gateway.called("create_payment_intent")[0]
    assert intent["amount"] == 1247
    assert intent["application_fee_amount"] == 150
    assert intent["destination"] == "acct_farm_a"
    assert intent["metadata"]["farmer_id"] == "farm-a"


def test_payment_sheet_reuses_existing_customer(fake_db, fake_gateway, payable_vendor):
    fake_db.seed("stripe_customers", {"user_id": "buyer-1", "customer_id": "cus_existing"})
    result = checkout_service.create_payment_sheet(fake_db, fake_gateway, buyer=BUYER, request=_sheet_request())
    assert result.customer_id == "cus_existing"
    assert fake_gateway.called("create_customer") == []


def test_payment_sheet_customer_race_reuses_winner(fake_db, fake_gateway, payable_vendor, monkeypatch):
    fake_db.seed("stripe_customers", {"user_id": "buyer-1", "customer_id": "cus_winner"})
    lookups = iter([None, "cus_winner"])
    monkeypatch.setattr(checkout_repository, "get_buyer_customer_id", lambda db, user_id: next(lookups))

    result = checkout_service.create_payment_sheet(fake_db, fake_gateway, buyer=BUYER, request=_sheet_request())
    assert result.customer_id == "cus_winner"
    assert fake_gateway.called("create_ephemeral_key")[0]["customer"] == "cus_winner"


def test_payment_sheet_non_unique_db_error_propagates(fake_db, fake_gateway, payable_vendor):
    fake_db.fail_next("stripe_customers", "insert", APIError({"message": "boom", "code": "XX000"}))
    with pytest.raises(APIError):
        checkout_service.create_payment_sheet(fake_db, fake_gateway, buyer=BUYER, request=_sheet_request())


def test_payment_sheet_wraps_gateway_errors(fake_db, fake_gateway, payable_vendor):
    fake_gateway.failures["create_payment_intent"] = GatewayError("Invalid amount")
    with pytest.raises(PaymentSetupFailed) as exc:
        checkout_service.create_payment_sheet(fake_db, fake_gateway, buyer=BUYER, request=_sheet_request())
    assert exc.value.message == "Invalid amount"
    assert exc.value.status_code == 502


def test_payment_sheet_items_from_another_vendor(fake_db, fake_gateway, payable_vendor):
    req = _sheet_request(items=[_line("p1", vendor="farm-a"), _line("p2", vendor="farm-b")])
    with pytest.raises(MultiVendorCheckoutUnsupported):
        checkout_service.create_payment_sheet(fake_db, fake_gateway, buyer=BUYER, request=req)
    assert fake_gateway.calls == []


def test_payment_sheet_vendor_not_payable(fake_db, fake_gateway):
    with pytest.raises(VendorNotPayable):
        checkout_service.create_payment_sheet(fake_db, fake_gateway, buyer=BUYER, request=_sheet_request())
    assert fake_gateway.calls == []


# --- checkout sur un prix Stripe ---

def _price_session(db, gateway, **body):
    request = PriceCheckoutRequest.model_validate({"price_id": "price_box", "mode": "payment", **body})
    return checkout_service.create_price_checkout_session(
        db, gateway, buyer=BUYER, request=request,
        success_url="https://app.test/stripe-success?session_id={CHECKOUT_SESSION_ID}",
        cancel_url="https://app.test/stripe-cancel",
    )


def test_price_session_creates_customer_and_session(fake_db, fake_gateway):
    result = _price_session(fake_db, fake_gateway)
    assert result.customer_id == "cus_test_1"
    assert result.session_id == "cs_price_2"
    assert fake_db.rows("stripe_customers")[0]["customer_id"] == "cus_test_1"

    (call,) = fake_gateway.called("create_price_checkout_session")
    assert call["customer"] == "cus_test_1"
    assert (call["price"], call["mode"]) == ("price_box", "payment")
    assert call["success_url"] == "https://app.test/stripe-success?session_id={CHECKOUT_SESSION_ID}"
    assert call["metadata"] == {"user_id": "buyer-1"}


def test_price_session_reuses_buyer_customer(fake_db, fake_gateway):
    fake_db.seed("stripe_customers", {"user_id": "buyer-1", "customer_id": "cus_existing"})
    result = _price_session(fake_db, fake_gateway, mode="subscription")
    assert result.customer_id == "cus_existing"
    assert not fake_gateway.called("create_customer")
    assert fake_gateway.called("create_price_checkout_session")[0]["mode"] == "subscription"


def test_price_session_caller_urls_take_precedence(fake_db, fake_gateway):
    _price_session(fake_db, fake_gateway, success_url="myapp://paid", cancel_url="myapp://cancel")
    call = fake_gateway.called("create_price_checkout_session")[0]
    assert (call["success_url"], call["cancel_url"]) == ("myapp://paid", "myapp://cancel")


@pytest.mark.parametrize("body", [{"price_id": ""}, {"mode": "setup"}, {"mode": None}])
def test_price_checkout_request_validation(body):
    from pydantic import ValidationError as PydanticValidationError
    with pytest.raises(PydanticValidationError):
        PriceCheckoutRequest.model_validate({"price_id": "price_box", "mode": "payment", **body})
