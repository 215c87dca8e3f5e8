# storefront/main.py
from datetime import timedelta
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException

from storefront.core.config import Settings, get_settings
from storefront.core.errors import AuthServiceError, TokenExpiredError
from storefront.core.logging import configure_logging
from storefront.db.session import build_engine, init_db
from storefront.routers import auth_router
from storefront.services.auth import (
    AdminCredentials,
    EmailOTPService,
    OTPLedger,
    PasswordHasher,
    PhoneOTPService,
    TokenService,
)
from storefront.services.notifications import (
    MailTransport,
    SMSTransport,
    SMTPMailTransport,
    TwilioSMSTransport,
)

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthServiceError)
    async def auth_service_error_handler(request: Request, exc: AuthServiceError):
        if isinstance(exc, TokenExpiredError):
            logger.info(f"{request.method} {request.url.path}: token expired")
        elif exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path}: {exc.message}")
        else:
            logger.warning(f"{request.method} {request.url.path}: {exc.status_code} {exc.message}")
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Malformed request body on {request.url.path}: {exc.errors()}")
        return error_response(400, "Invalid request body")

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
        return error_response(500, "Internal server error")


def create_app(settings: Optional[Settings] = None, *, sms_transport: Optional[SMSTransport] = None,
               mail_transport: Optional[MailTransport] = None, engine: Optional[Engine] = None,
               clock=None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title=f"{settings.APP_NAME} Auth API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if sms_transport is None:
        sms_transport = TwilioSMSTransport(
            settings.TWILIO_ACCOUNT_SID,
            settings.TWILIO_AUTH_TOKEN,
            settings.TWILIO_FROM_NUMBER,
        )
    if mail_transport is None:
        mail_transport = SMTPMailTransport(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            use_tls=settings.SMTP_USE_TLS,
            from_email=settings.MAIL_FROM,
            from_name=settings.APP_NAME,
        )

    clock_kwargs = {"clock": clock} if clock is not None else {}
    otp_kwargs = {
        "ttl_seconds": settings.OTP_EXPIRY_MINUTES * 60,
        "debug_log": settings.OTP_DEBUG_LOG and not settings.is_production,
    }

    # One ledger per channel, owned by this application instance
    state = app.state
    state.settings = settings
    state.engine = engine or build_engine(settings.DATABASE_URL)
    state.phone_otp = PhoneOTPService(OTPLedger(**clock_kwargs), sms_transport, **otp_kwargs)
    state.email_otp = EmailOTPService(OTPLedger(**clock_kwargs), mail_transport,
                                      app_name=settings.APP_NAME, **otp_kwargs)
    state.token_service = TokenService(
        access_secret=settings.JWT_ACCESS_SECRET,
        refresh_secret=settings.JWT_REFRESH_SECRET,
        algorithm=settings.JWT_ALGORITHM,
        access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        refresh_ttl=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        **clock_kwargs,
    )
    state.password_hasher = PasswordHasher(rounds=settings.BCRYPT_ROUNDS)
    state.admin = AdminCredentials(
        email=settings.ADMIN_EMAIL,
        password=settings.ADMIN_PASSWORD,
        username=settings.ADMIN_USERNAME,
    )

    init_db(state.engine)
    if settings.JWT_ACCESS_SECRET.startswith("change-me") and settings.is_production:
        logger.warning("JWT secrets are still the defaults. Set JWT_ACCESS_SECRET and JWT_REFRESH_SECRET.")

    register_exception_handlers(app)
    app.include_router(auth_router.router, prefix=settings.API_PREFIX)

    @app.get("/")
    async def root():
        return {"message": "API Working"}

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "environment": settings.ENVIRONMENT}

    return app


app = create_app()
