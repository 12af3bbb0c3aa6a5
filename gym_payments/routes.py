import json
import logging

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError as PydanticValidationError
from starlette.concurrency import run_in_threadpool

from gym_payments import __version__
from gym_payments.auth import verify_token
from gym_payments.dependencies import get_payment_service
from gym_payments.errors import PaymentError
from gym_payments.models import CheckoutRequest, CheckoutResponse, WebhookPayload, WebhookResponse
from gym_payments.service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok", "service": "gym-payments", "version": __version__}


@router.post("/payments/checkout", response_model=CheckoutResponse)
@router.post("/api/v1/payments/checkout", response_model=CheckoutResponse, include_in_schema=False)
def create_checkout(
    request: CheckoutRequest,
    auth=Depends(verify_token),
    service: PaymentService = Depends(get_payment_service),
):
    session = service.create_checkout(request.to_order(), access_token=request.mp_access_token)
    return CheckoutResponse(
        preference_id=session.preference_id,
        init_point=session.init_point,
        sandbox_init_point=session.sandbox_init_point,
    )


def _parse_notification(body: bytes, query):
    try:
        data = json.loads(body) if body else {}
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    # Legacy IPN deliveries put the topic and resource id in the query string.
    if not data.get("type") and (query.get("type") or query.get("topic")):
        data["type"] = query.get("type") or query.get("topic")
    inner = data.get("data")
    if not isinstance(inner, dict) or not inner.get("id"):
        resource_id = query.get("data.id") or query.get("id")
        if resource_id:
            data["data"] = {"id": resource_id}

    try:
        return WebhookPayload.model_validate(data).to_notification()
    except PydanticValidationError:
        return None


@router.post("/webhooks/{gym_slug}", response_model=WebhookResponse, response_model_exclude_none=True)
@router.post("/webhook/{gym_slug}", response_model=WebhookResponse, response_model_exclude_none=True, include_in_schema=False)
async def handle_webhook(
    gym_slug: str,
    request: Request,
    service: PaymentService = Depends(get_payment_service),
):
    # Mercado Pago retries anything that is not 2xx, so every outcome is a 200.
    notification = _parse_notification(await request.body(), request.query_params)
    if notification is None:
        logger.info("Unparseable webhook body for gym %s, acknowledging", gym_slug)
        return WebhookResponse(status="received")

    try:
        await run_in_threadpool(
            service.process_webhook,
            gym_slug,
            notification,
            request.headers.get("x-signature", ""),
            request.headers.get("x-request-id", ""),
        )
    except PaymentError as exc:
        logger.warning(
            "Webhook processing error for gym %s, resource %s: %s (%s)",
            gym_slug, notification.data_id, exc.message, exc.code,
        )
        return WebhookResponse(status="processed_with_error", error_code=exc.code)
    except Exception:
        logger.exception("Unexpected webhook failure for gym %s, resource %s", gym_slug, notification.data_id)
        return WebhookResponse(status="processed_with_error", error_code="INTERNAL_ERROR")

    return WebhookResponse(status="processed")
