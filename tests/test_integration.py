import pytest
from fastapi.testclient import TestClient
from jose import jwt

from gym_payments.main import create_app
from conftest import signed_header

GYM_CREDENTIALS = {
    "gym_slug": "iron-gym",
    "webhook_secret": "whsec_integration",
    "access_token": "APP_USR-integration",
    "is_payment_enabled": True,
}


@pytest.fixture
def core_api(mocker):
    # Stand-in for the backend-of-record behind the real CoreClient
    core = mocker.Mock()

    def get(url, headers, timeout):
        resp = mocker.Mock()
        if "/gyms/iron-gym/" in url:
            resp.status_code = 200
            resp.json.return_value = GYM_CREDENTIALS
        else:
            resp.status_code = 404
        return resp

    core.get.side_effect = get
    core.post.return_value = mocker.Mock(status_code=200)
    mocker.patch("gym_payments.core_client.requests.get", core.get)
    mocker.patch("gym_payments.core_client.requests.post", core.post)
    return core


@pytest.fixture
def sdk_class(mocker):
    return mocker.patch("gym_payments.mercadopago_service.mercadopago.SDK")


@pytest.fixture
def client(settings, core_api, sdk_class):
    with TestClient(create_app(settings)) as c:
        yield c


@pytest.fixture
def auth_headers(settings):
    token = jwt.encode({"sub": "fitstack-core"}, settings.service_jwt_secret, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


def test_full_payment_lifecycle_integration(client, core_api, sdk_class, auth_headers):
    """
    1. Checkout (API -> Core credentials -> Mercado Pago mocked)
    2. Webhook (Mercado Pago -> API -> Mercado Pago lookup -> Core callback)
    """

    # --- 1. CHECKOUT ---
    sdk_class.return_value.preference.return_value.create.return_value = {
        "status": 201,
        "response": {"id": "pref-int-1", "init_point": "https://mp.test/redirect?pref_id=pref-int-1"},
    }

    response = client.post(
        "/payments/checkout",
        json={
            "gym_slug": "iron-gym",
            "amount": "2500.00",
            "title": "Plan Anual",
            "payer_email": "member@example.com",
            "external_reference": "order-42",
        },
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["init_point"] == "https://mp.test/redirect?pref_id=pref-int-1"
    assert sdk_class.call_args.args[0] == "APP_USR-integration"
    assert core_api.get.call_args.kwargs["headers"] == {"X-Internal-API-Key": "internal-key"}

    # --- 2. WEBHOOK ---
    sdk_class.return_value.payment.return_value.get.return_value = {
        "status": 200,
        "response": {
            "id": 987654321,
            "status": "approved",
            "status_detail": "accredited",
            "external_reference": "order-42",
            "transaction_amount": 2500.0,
            "currency_id": "ARS",
            "payment_type_id": "credit_card",
            "payer": {"email": "member@example.com"},
            "date_approved": "2024-01-10T12:00:00.000-04:00",
        },
    }

    webhook_response = client.post(
        "/webhooks/iron-gym",
        json={"id": 1, "type": "payment", "action": "payment.created", "data": {"id": "987654321"}},
        headers={
            "x-signature": signed_header("whsec_integration", "987654321", "mp-req-1"),
            "x-request-id": "mp-req-1",
        },
    )

    assert webhook_response.status_code == 200
    assert webhook_response.json() == {"status": "processed"}

    core_api.post.assert_called_once()
    args, kwargs = core_api.post.call_args
    assert args[0] == "http://core.test/api/v1/payments/webhook-callback/"
    assert kwargs["headers"] == {"X-Webhook-Secret": "internal-key"}
    delivered = kwargs["json"]
    assert delivered["event"] == "payment.approved"
    assert delivered["external_reference"] == "order-42"
    assert delivered["payment_id"] == "987654321"
    assert delivered["gym_slug"] == "iron-gym"
    assert delivered["amount"] == 2500.0
    assert delivered["transaction_date"] == "2024-01-10T12:00:00-04:00"


def test_webhook_with_forged_signature_never_reaches_core_callback(client, core_api, sdk_class):
    response = client.post(
        "/webhooks/iron-gym",
        json={"type": "payment", "data": {"id": "987654321"}},
        headers={
            "x-signature": signed_header("not-the-secret", "987654321", "mp-req-2"),
            "x-request-id": "mp-req-2",
        },
    )

    assert response.status_code == 200
    assert response.json()["status"] == "processed_with_error"
    sdk_class.return_value.payment.return_value.get.assert_not_called()
    core_api.post.assert_not_called()


def test_core_callback_failure_is_acknowledged(client, core_api, sdk_class, mocker):
    sdk_class.return_value.payment.return_value.get.return_value = {
        "status": 200,
        "response": {"id": 1, "status": "rejected", "external_reference": "order-7", "transaction_amount": 10},
    }
    core_api.post.return_value = mocker.Mock(status_code=503)

    response = client.post(
        "/webhooks/iron-gym",
        json={"type": "payment", "data": {"id": "1"}},
        headers={"x-signature": signed_header("whsec_integration", "1", "mp-req-3"), "x-request-id": "mp-req-3"},
    )

    assert response.status_code == 200
    assert response.json() == {"status": "processed_with_error", "error_code": "DELIVERY_FAILED"}
    assert core_api.post.call_count == 1
    assert core_api.post.call_args.kwargs["json"]["event"] == "payment.rejected"


def test_checkout_for_unknown_gym(client, auth_headers, sdk_class):
    response = client.post(
        "/payments/checkout",
        json={"gym_slug": "ghost-gym", "amount": 10, "title": "Clase", "payer_email": "a@example.com"},
        headers=auth_headers,
    )

    assert response.status_code == 404
    assert response.json()["error_code"] == "GYM_NOT_FOUND"
    sdk_class.assert_not_called()


def test_checkout_with_malformed_core_credentials(client, core_api, auth_headers, sdk_class, mocker):
    core_api.get.side_effect = None
    core_api.get.return_value = mocker.Mock(status_code=200)
    core_api.get.return_value.json.return_value = {"access_token": 123, "is_payment_enabled": "false"}

    response = client.post(
        "/payments/checkout",
        json={"gym_slug": "iron-gym", "amount": 10, "title": "Clase", "payer_email": "a@example.com"},
        headers=auth_headers,
    )

    assert response.status_code == 502
    assert response.json()["error_code"] == "CORE_API_ERROR"
    sdk_class.assert_not_called()
