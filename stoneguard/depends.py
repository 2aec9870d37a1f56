from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from config import ApplicationConfig
from stoneguard.adapter.services.unit_of_work import (
    SessionFactory,
    SqlAlchemyUnitOfWork,
    unit_of_work_factory,
)
from stoneguard.app.services.anomaly_detector import AnomalyDetector, PaymentAnomalyDetector
from stoneguard.app.services.audit_logger import AuditLogger
from stoneguard.app.services.captcha import CaptchaVerifier, RecaptchaVerifier
from stoneguard.app.services.ownership import OwnershipValidator
from stoneguard.app.services.rate_limiter import RateLimiter
from stoneguard.app.services.reauth import ReauthVerifier
from stoneguard.app.services.security_context import SecurityContext
from stoneguard.app.services.status_validator import StatusValidator
from stoneguard.app.services.unit_of_work import UnitOfWorkFactory

engine = create_async_engine(ApplicationConfig.DB_URI, echo=False, future=True)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


def get_session_factory() -> SessionFactory:
    return AsyncSessionLocal


async def get_unit_of_work(session_factory: SessionFactory = Depends(get_session_factory)):
    async with session_factory() as session:
        yield SqlAlchemyUnitOfWork(session)


def get_unit_of_work_factory(
    session_factory: SessionFactory = Depends(get_session_factory),
) -> UnitOfWorkFactory:
    return unit_of_work_factory(session_factory)


def get_audit_logger(
    request: Request,
    uow_factory: UnitOfWorkFactory = Depends(get_unit_of_work_factory),
) -> AuditLogger:
    # Kept on the request for stages that run outside dependency injection
    audit_logger = AuditLogger(uow_factory)
    request.state.audit_logger = audit_logger
    return audit_logger


def get_captcha_verifier() -> CaptchaVerifier:
    return RecaptchaVerifier(
        ApplicationConfig.RECAPTCHA_SECRET_KEY,
        verify_url=ApplicationConfig.RECAPTCHA_VERIFY_URL,
        timeout_seconds=ApplicationConfig.RECAPTCHA_TIMEOUT_SECONDS,
    )


def get_rate_limiter(
    uow_factory: UnitOfWorkFactory = Depends(get_unit_of_work_factory),
) -> RateLimiter:
    return RateLimiter(uow_factory, idle_ttl_seconds=ApplicationConfig.RATE_LIMIT_IDLE_TTL_SECONDS)


def get_anomaly_detector(
    uow_factory: UnitOfWorkFactory = Depends(get_unit_of_work_factory),
) -> AnomalyDetector:
    return AnomalyDetector(
        uow_factory,
        rapid_activity_seconds={
            "approve": ApplicationConfig.ANOMALY_RAPID_APPROVAL_SECONDS,
            "analytics": ApplicationConfig.ANOMALY_RAPID_ANALYTICS_SECONDS,
        },
        known_ip_retention_days=ApplicationConfig.KNOWN_IP_RETENTION_DAYS,
        known_ip_cap=ApplicationConfig.KNOWN_IP_MAX_ENTRIES,
    )


def get_payment_anomaly_detector(
    uow_factory: UnitOfWorkFactory = Depends(get_unit_of_work_factory),
) -> PaymentAnomalyDetector:
    return PaymentAnomalyDetector(
        uow_factory,
        rapid_window_seconds=ApplicationConfig.PAYMENT_RAPID_WINDOW_SECONDS,
        rapid_count=ApplicationConfig.PAYMENT_RAPID_MAX_SUBMISSIONS,
        amount_variance=ApplicationConfig.PAYMENT_AMOUNT_VARIANCE,
    )


def get_ownership_validator(
    uow_factory: UnitOfWorkFactory = Depends(get_unit_of_work_factory),
) -> OwnershipValidator:
    return OwnershipValidator(uow_factory)


def get_status_validator(
    uow_factory: UnitOfWorkFactory = Depends(get_unit_of_work_factory),
) -> StatusValidator:
    return StatusValidator(uow_factory)


def get_reauth_verifier(
    uow_factory: UnitOfWorkFactory = Depends(get_unit_of_work_factory),
) -> ReauthVerifier:
    return ReauthVerifier(uow_factory)


def get_security_context(request: Request) -> SecurityContext:
    return request.app.state.security
