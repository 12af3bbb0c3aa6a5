from fastapi import Request

from gym_payments.config import Settings
from gym_payments.service import PaymentService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_payment_service(request: Request) -> PaymentService:
    return request.app.state.payment_service
