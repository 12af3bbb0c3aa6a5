import logging
import re
from datetime import datetime, timezone

import mercadopago
from mercadopago.config import RequestOptions

from gym_payments.config import Settings
from gym_payments.errors import GatewayError, InvalidPaymentId
from gym_payments.models import CheckoutOrder, CheckoutSession, PaymentDetails

logger = logging.getLogger(__name__)

PAYMENT_ID_RE = re.compile(r"^\d+$")


class MercadoPagoGateway:
    """Checkout Pro preferences and payment lookups, one SDK instance per call.

    The SDK is never shared: each gym bills through its own Mercado Pago
    account and concurrent requests must not see each other's tokens.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def _sdk(self, access_token: str):
        options = RequestOptions(connection_timeout=self.settings.http_timeout, max_retries=0)
        return mercadopago.SDK(access_token, request_options=options)

    def back_urls(self, order: CheckoutOrder):
        base = f"{self.settings.frontend_url}/gym/{order.gym_slug}/payment"
        return {
            "success": order.success_url or f"{base}/success",
            "failure": order.failure_url or f"{base}/failure",
            "pending": order.pending_url or f"{base}/pending",
        }

    def notification_url(self, gym_slug: str) -> str:
        return f"{self.settings.public_api_url}/webhooks/{gym_slug}"

    def build_preference(self, order: CheckoutOrder):
        return {
            "items": [
                {
                    "title": order.title,
                    "description": order.description,
                    "quantity": 1,
                    "unit_price": float(order.amount),
                    "currency_id": self.settings.currency_id,
                }
            ],
            "payer": {"email": order.payer_email},
            "external_reference": order.external_reference,
            "auto_return": "approved",
            "back_urls": self.back_urls(order),
            "notification_url": self.notification_url(order.gym_slug),
        }

    def create_session(self, access_token: str, order: CheckoutOrder) -> CheckoutSession:
        try:
            result = self._sdk(access_token).preference().create(self.build_preference(order))
        except Exception as exc:
            logger.error("MP preference create raised for gym %s: %s", order.gym_slug, type(exc).__name__)
            raise GatewayError("Failed to create payment preference") from exc

        status = result.get("status")
        response = result.get("response") or {}
        if status not in (200, 201):
            logger.error(
                "MP preference create failed for gym %s: status=%s message=%s",
                order.gym_slug, status, response.get("message"),
            )
            raise GatewayError("Failed to create payment preference")

        if not response.get("id") or not response.get("init_point"):
            raise GatewayError("Payment gateway returned an incomplete preference")

        return CheckoutSession(
            preference_id=str(response["id"]),
            init_point=response["init_point"],
            sandbox_init_point=response.get("sandbox_init_point"),
        )

    def fetch_payment(self, access_token: str, payment_id: str) -> PaymentDetails:
        payment_id = (payment_id or "").strip()
        if not PAYMENT_ID_RE.match(payment_id):
            raise InvalidPaymentId()

        try:
            result = self._sdk(access_token).payment().get(int(payment_id))
        except Exception as exc:
            logger.error("MP payment get raised for payment %s: %s", payment_id, type(exc).__name__)
            raise GatewayError("Failed to get payment info") from exc

        status = result.get("status")
        payment = result.get("response") or {}
        if status != 200:
            logger.error("MP payment get failed for payment %s: status=%s", payment_id, status)
            raise GatewayError("Failed to get payment info")

        payer = payment.get("payer") or {}
        return PaymentDetails(
            payment_id=payment_id,
            status=payment.get("status") or "",
            status_detail=payment.get("status_detail") or "",
            external_reference=payment.get("external_reference") or "",
            amount=payment.get("transaction_amount") or 0.0,
            currency=payment.get("currency_id") or "",
            payment_method=payment.get("payment_method_id") or "",
            payment_type=payment.get("payment_type_id") or "",
            payer_email=payer.get("email") or "",
            date_approved=_parse_date(payment.get("date_approved")),
        )


def _parse_date(value):
    if value:
        try:
            return datetime.fromisoformat(value)
        except (TypeError, ValueError):
            pass
    return datetime.now(timezone.utc)
