import math

from fastapi import Depends, Request

from stoneguard.api.guards.identity import Subject, get_current_subject
from stoneguard.api.guards.policy import Stage, stage_failed
from stoneguard.api.utils.request_context import (
    audit_context,
    get_client_ip,
    get_resource_id,
    get_user_agent,
    read_body_field,
)
from stoneguard.app.services.anomaly_detector import (
    AnomalyDetector,
    AnomalyReport,
    PaymentAnomalyDetector,
)
from stoneguard.app.services.audit_logger import AuditLogger
from stoneguard.depends import (
    get_anomaly_detector,
    get_audit_logger,
    get_payment_anomaly_detector,
)
from stoneguard.domain.entities import AuditStatus


async def _record(request: Request, audit_logger: AuditLogger, action: str, report: AnomalyReport):
    flagged = getattr(request.state, "anomalies", [])
    request.state.anomalies = flagged + report.reasons
    if report.anomalous:
        await audit_logger.record(
            action,
            AuditStatus.WARNING,
            context=audit_context(request),
            resource_id=get_resource_id(request),
            details="; ".join(report.reasons),
        )


def anomaly_guard(action: str):
    """Advisory: flags session anomalies on request.state, never blocks."""

    async def guard(
        request: Request,
        subject: Subject = Depends(get_current_subject),
        detector: AnomalyDetector = Depends(get_anomaly_detector),
        audit_logger: AuditLogger = Depends(get_audit_logger),
    ) -> None:
        try:
            report = await detector.inspect(
                subject.id,
                get_client_ip(request),
                get_user_agent(request),
                action=action,
                device_fingerprint=request.headers.get("x-device-fingerprint"),
            )
        except Exception as exc:
            await stage_failed(Stage.anomaly, exc, request, audit_logger)
            return
        await _record(request, audit_logger, "ANOMALY_DETECTED", report)

    return guard


async def detect_payment_anomalies(
    request: Request,
    subject: Subject = Depends(get_current_subject),
    detector: PaymentAnomalyDetector = Depends(get_payment_anomaly_detector),
    audit_logger: AuditLogger = Depends(get_audit_logger),
) -> None:
    """Advisory: rapid submissions and unusual amounts."""
    try:
        raw_amount = await read_body_field(request, "amountPaid")
        try:
            amount = float(raw_amount)
        except (TypeError, ValueError):
            return
        if not math.isfinite(amount):
            return
        report = await detector.inspect(subject.id, amount)
    except Exception as exc:
        await stage_failed(Stage.anomaly, exc, request, audit_logger)
        return
    await _record(request, audit_logger, "PAYMENT_ANOMALY_DETECTED", report)
