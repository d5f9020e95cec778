# designstudio/app.py
import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from .config import Config
from .database.database import Database
from .errors import StudioError, ValidationError, status_code_for
from .handlers import AdminHandler, CheckoutHandler, DiscountHandler, OrderHandler
from .services.checkout_service import CheckoutService
from .services.design_order_service import DesignOrderService
from .services.discount_service import DiscountService
from .services.identity_service import IdentityService
from .services.notification_service import ChallanGenerator, CustomerNotifier, EmailSender
from .services.order_service import OrderService
from .services.payment_service import PaymentService, RazorpayGateway
from .services.pricing_service import PricingEngine

logger = logging.getLogger(__name__)

def error_body(exc: StudioError) -> dict:
    body = {
        "success": False,
        "message": exc.message,
        "error": type(exc).__name__
    }
    if isinstance(exc, ValidationError) and exc.errors:
        body["errors"] = exc.errors
    return body

async def studio_error_handler(request: Request, exc: StudioError) -> JSONResponse:
    """Map StudioError subclasses to HTTP responses"""
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status_code, content=jsonable_encoder(error_body(exc)))

async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render body validation failures in the same envelope as ValidationError"""
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())[1:]) or "body",
            "message": err.get("msg", "invalid value")
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=error_body(ValidationError("Invalid request", errors))
    )

class DesignStudioApp:
    def __init__(self, db: Optional[Database] = None,
                 gateway: Optional[RazorpayGateway] = None,
                 email_sender: Optional[EmailSender] = None,
                 challan_generator: Optional[ChallanGenerator] = None):
        """Wire services and handlers into a FastAPI application"""
        self.db = db or Database()

        self.pricing = PricingEngine()
        self.discount_service = DiscountService(self.pricing)
        self.identity_service = IdentityService()
        self.design_order_service = DesignOrderService()
        self.order_service = OrderService(self.pricing, self.discount_service, self.design_order_service)
        self.payment_service = PaymentService(gateway)
        self.notifier = CustomerNotifier(self.db, email_sender)
        self.checkout_service = CheckoutService(
            self.db,
            identity_service=self.identity_service,
            order_service=self.order_service,
            payment_service=self.payment_service,
            email_sender=email_sender,
            challan_generator=challan_generator
        )

        self.app = FastAPI(title="Design Studio Checkout API", lifespan=self.lifespan)
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=[Config.FRONTEND_URL],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        self.app.add_exception_handler(StudioError, studio_error_handler)
        self.app.add_exception_handler(RequestValidationError, request_validation_handler)
        self.setup_handlers()

    @asynccontextmanager
    async def lifespan(self, app: FastAPI):
        await self.db.connect()
        try:
            yield
        finally:
            await self.db.close()

    def setup_handlers(self):
        """Register HTTP handlers"""
        handlers = [
            CheckoutHandler(self.db, self.checkout_service),
            OrderHandler(self.db, self.order_service, self.identity_service, self.notifier),
            AdminHandler(self.db, self.order_service, self.design_order_service, self.notifier),
            DiscountHandler(self.db, self.discount_service),
        ]
        for handler in handlers:
            self.app.include_router(handler.router)

        @self.app.get("/health")
        async def health():
            return {"status": "ok"}
