import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gym_payments.config import Settings
from gym_payments.core_client import CoreClient
from gym_payments.errors import PaymentError, ValidationError
from gym_payments.mercadopago_service import MercadoPagoGateway
from gym_payments.request_context import install_request_id_filter, request_id_var
from gym_payments.routes import router
from gym_payments.service import PaymentService

logger = logging.getLogger(__name__)


def build_payment_service(settings: Settings) -> PaymentService:
    core = CoreClient(settings.core_api_url, settings.core_api_key, timeout=settings.http_timeout)
    return PaymentService(
        gateway=MercadoPagoGateway(settings),
        credentials=core,
        notifier=core,
    )


def create_app(settings: Settings = None, payment_service: PaymentService = None) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s",
    )
    install_request_id_filter()

    app = FastAPI(title="Gym Payments Bridge")
    app.state.settings = settings
    app.state.payment_service = payment_service or build_payment_service(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Origin", "Content-Type", "Authorization", "X-Request-ID"],
        max_age=86400,
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(PaymentError)
    async def payment_error_handler(request: Request, exc: PaymentError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = ", ".join(".".join(str(p) for p in err["loc"] if p != "body") for err in exc.errors())
        error = ValidationError(f"Invalid request body: {fields}" if fields else None)
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=PaymentError().to_dict())

    app.include_router(router)

    logger.info("Gym payments bridge configured, core=%s", settings.core_api_url)
    return app


app = create_app()
