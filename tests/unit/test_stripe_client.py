import json
import time
from types import SimpleNamespace

import pytest
import stripe

from marketplace.errors import GatewayError, SignatureVerificationFailed
from marketplace.payments import stripe_client
from marketplace.payments.stripe_client import StripeGateway, verify_event
from tests.fakes import stripe_signature

SECRET = "whsec_test_secret"


class _Recorder:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def __call__(self, *args, **kwargs):
        self.calls.append((args, kwargs))
        return self.result


@pytest.fixture()
def gateway():
    return StripeGateway("sk_test_123", api_version="2024-06-20", currency="usd")


def test_checkout_session_uses_destination_charge(gateway, monkeypatch):
    rec = _Recorder({"id": "cs_1", "url": "https://checkout.stripe.com/c/cs_1"})
    monkeypatch.setattr(stripe.checkout.Session, "create", rec)

    result = gateway.create_checkout_session(
        line_items=[{"price_data": {}, "quantity": 1}],
        customer_email="buyer@example.com",
        application_fee_amount=150,
        destination="acct_a",
        metadata={"farmer_id": "farm-a"},
        success_url="https://app.test/ok",
        cancel_url="https://app.test/cancel",
    )

    assert result == {"id": "cs_1", "url": "https://checkout.stripe.com/c/cs_1"}
    _, kwargs = rec.calls[0]
    assert kwargs["api_key"] == "sk_test_123"
    assert kwargs["stripe_version"] == "2024-06-20"
    assert kwargs["mode"] == "payment"
    pid = kwargs["payment_intent_data"]
    assert pid["application_fee_amount"] == 150
    assert pid["transfer_data"] == {"destination": "acct_a"}
    assert pid["on_behalf_of"] == "acct_a"
    assert pid["metadata"] == kwargs["metadata"] == {"farmer_id": "farm-a"}


def test_price_checkout_session_has_single_price_line(gateway, monkeypatch):
    rec = _Recorder({"id": "cs_2", "url": "https://checkout.stripe.com/c/cs_2"})
    monkeypatch.setattr(stripe.checkout.Session, "create", rec)

    result = gateway.create_price_checkout_session(
        customer="cus_1", price="price_box", mode="subscription",
        success_url="https://app.test/ok", cancel_url="https://app.test/cancel",
        metadata={"user_id": "buyer-1"},
    )

    assert result == {"id": "cs_2", "url": "https://checkout.stripe.com/c/cs_2"}
    _, kwargs = rec.calls[0]
    assert kwargs["mode"] == "subscription"
    assert kwargs["customer"] == "cus_1"
    assert kwargs["line_items"] == [{"price": "price_box", "quantity": 1}]
    assert "payment_intent_data" not in kwargs


def test_payment_intent_and_ephemeral_key(gateway, monkeypatch):
    intent = _Recorder({"id": "pi_1", "client_secret": "pi_1_secret"})
    key = _Recorder({"id": "ephkey_1", "secret": "ek_secret"})
    monkeypatch.setattr(stripe.PaymentIntent, "create", intent)
    monkeypatch.setattr(stripe.EphemeralKey, "create", key)

    assert gateway.create_payment_intent(
        amount=1247, customer="cus_1", application_fee_amount=150, destination="acct_a", metadata={},
    ) == {"id": "pi_1", "client_secret": "pi_1_secret"}
    assert gateway.create_ephemeral_key("cus_1") == "ek_secret"

    _, kwargs = intent.calls[0]
    assert kwargs["currency"] == "usd"
    assert kwargs["transfer_data"] == {"destination": "acct_a"}
    assert key.calls[0][1]["stripe_version"] == "2024-06-20"


def test_subscription_exposes_first_invoice_client_secret(gateway, monkeypatch):
    sub = {
        "id": "sub_1", "status": "incomplete", "current_period_start": 1, "current_period_end": 2,
        "latest_invoice": {"id": "in_1", "payment_intent": {"id": "pi_1", "client_secret": "pi_1_secret"}},
    }
    monkeypatch.setattr(stripe.Subscription, "create", _Recorder(sub))
    result = gateway.create_subscription(customer="cus_1", price="price_1")
    assert result["client_secret"] == "pi_1_secret"
    assert result["id"] == "sub_1"


def test_subscription_without_expanded_invoice(gateway, monkeypatch):
    monkeypatch.setattr(stripe.Subscription, "create", _Recorder({"id": "sub_1", "latest_invoice": "in_1"}))
    assert gateway.create_subscription(customer="cus_1", price="price_1")["client_secret"] is None


def test_invoice_calls(gateway, monkeypatch):
    create = _Recorder({"id": "in_1"})
    item = _Recorder({"id": "ii_1"})
    finalize = _Recorder({"id": "in_1", "status": "open"})
    monkeypatch.setattr(stripe.Invoice, "create", create)
    monkeypatch.setattr(stripe.InvoiceItem, "create", item)
    monkeypatch.setattr(stripe.Invoice, "finalize_invoice", finalize)

    assert gateway.create_invoice(customer="cus_1", description="spring 2025 hosting fee") == "in_1"
    gateway.add_invoice_item(customer="cus_1", invoice="in_1", amount=-2300, description="discount")
    assert gateway.finalize_invoice("in_1") == {"id": "in_1", "status": "open"}

    assert create.calls[0][1]["collection_method"] == "charge_automatically"
    assert item.calls[0][1]["amount"] == -2300
    assert item.calls[0][1]["invoice"] == "in_1"
    assert finalize.calls[0][0] == ("in_1",)


def test_stripe_errors_become_gateway_errors(gateway, monkeypatch):
    def boom(**kwargs):
        raise stripe.InvalidRequestError("No such customer: 'cus_x'", param="customer")

    monkeypatch.setattr(stripe.Customer, "create", boom)
    with pytest.raises(GatewayError) as exc:
        gateway.create_customer(email=None, metadata={})
    assert "No such customer" in exc.value.message


def test_missing_api_key_is_gateway_error(monkeypatch):
    rec = _Recorder({"id": "cus_1"})
    monkeypatch.setattr(stripe.Customer, "create", rec)
    with pytest.raises(GatewayError):
        StripeGateway("").create_customer(email=None, metadata={})
    assert rec.calls == []


def test_get_gateway_reads_config(monkeypatch):
    monkeypatch.setattr(stripe_client.config, "STRIPE_SECRET_KEY", "sk_test_cfg")
    assert stripe_client.get_gateway().api_key == "sk_test_cfg"


# --- vérification des webhooks ---

def _payload():
    return json.dumps({"id": "evt_1", "type": "account.updated", "data": {"object": {"id": "acct_1"}}})


def test_verify_event_accepts_valid_signature():
    payload = _payload()
    event = verify_event(payload.encode(), stripe_signature(payload, SECRET), SECRET)
    assert event["id"] == "evt_1"


@pytest.mark.parametrize(
    "header",
    [None, "", "t=1,v1=deadbeef", "garbage"],
)
def test_verify_event_rejects_bad_headers(header):
    with pytest.raises(SignatureVerificationFailed):
        verify_event(_payload().encode(), header, SECRET)


def test_verify_event_rejects_wrong_secret():
    payload = _payload()
    with pytest.raises(SignatureVerificationFailed):
        verify_event(payload.encode(), stripe_signature(payload, "whsec_other"), SECRET)


def test_verify_event_rejects_tampered_body():
    payload = _payload()
    header = stripe_signature(payload, SECRET)
    with pytest.raises(SignatureVerificationFailed):
        verify_event(payload.replace("acct_1", "acct_2").encode(), header, SECRET)


def test_verify_event_rejects_replayed_old_timestamp():
    payload = _payload()
    header = stripe_signature(payload, SECRET, timestamp=1_600_000_000)
    with pytest.raises(SignatureVerificationFailed):
        verify_event(payload.encode(), header, SECRET)


def test_verify_event_rejects_timestamp_beyond_tolerance():
    payload = _payload()
    old = int(time.time()) - stripe.Webhook.DEFAULT_TOLERANCE - 60
    with pytest.raises(SignatureVerificationFailed):
        verify_event(payload.encode(), stripe_signature(payload, SECRET, timestamp=old), SECRET)


def test_verify_event_rejects_signed_non_json():
    payload = "not json"
    with pytest.raises(SignatureVerificationFailed):
        verify_event(payload.encode(), stripe_signature(payload, SECRET), SECRET)


def test_field_reads_dicts_and_missing_values():
    assert stripe_client._field({"a": 1}, "a") == 1
    assert stripe_client._field({"a": None}, "a", "x") == "x"
    assert stripe_client._field("in_1", "payment_intent") is None
    assert stripe_client._field(SimpleNamespace(), "a") is None
