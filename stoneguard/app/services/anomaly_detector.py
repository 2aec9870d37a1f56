"""
Anomaly Detector

Advisory checks that never block a request. Callers receive an
AnomalyReport and decide what to audit; any exception raised here is
handled by the calling stage under its fail-open policy.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple
from uuid import UUID

from stoneguard.app.services.unit_of_work import UnitOfWorkFactory
from stoneguard.domain.base import utcnow
from stoneguard.domain.entities import SessionActivity

SESSION_USER_AGENT_MAX_LENGTH = 200
UNKNOWN_IP = "Unknown"
ACTIVITY_WRITE_ATTEMPTS = 3


class SessionActivityConflictError(Exception):
    """Concurrent requests kept rewriting the same SessionActivity row"""


@dataclass
class AnomalyReport:
    reasons: List[str] = field(default_factory=list)

    @property
    def anomalous(self) -> bool:
        return bool(self.reasons)


def merge_known_ip(
    known_ips: List[dict],
    ip: str,
    now: datetime,
    retention: timedelta,
    cap: int,
) -> Tuple[List[dict], bool]:
    """
    Record a sighting of ip in a known-IP list.

    Entries not seen within the retention period are dropped and the list
    keeps only the `cap` most recently seen entries. Returns the new list
    and whether ip was unknown before this sighting.
    """
    cutoff = now - retention
    kept = []
    for entry in known_ips or []:
        try:
            last_seen = datetime.fromisoformat(entry["last_seen"])
        except (KeyError, TypeError, ValueError):
            continue
        if last_seen >= cutoff:
            kept.append(dict(entry))

    is_new = True
    for entry in kept:
        if entry.get("ip") == ip:
            entry["last_seen"] = now.isoformat()
            entry["count"] = int(entry.get("count", 0)) + 1
            is_new = False
            break
    if is_new:
        kept.append(
            {"ip": ip, "first_seen": now.isoformat(), "last_seen": now.isoformat(), "count": 1}
        )

    kept.sort(key=lambda entry: entry["last_seen"], reverse=True)
    return kept[:cap], is_new


class AnomalyDetector:
    """
    Compares the current request's network and device facts with the
    subject's SessionActivity row, then records the new facts.

    Reasons:
    - IP not among the subject's known IPs (the IP is then remembered)
    - User-agent differs from the last one seen
    - Device fingerprint differs from the last one seen
    - A sensitive action repeated faster than its rapid-activity threshold
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        rapid_activity_seconds: Optional[Dict[str, float]] = None,
        known_ip_retention_days: int = 90,
        known_ip_cap: int = 20,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.uow_factory = uow_factory
        self.rapid_activity_seconds = rapid_activity_seconds or {}
        self.known_ip_retention = timedelta(days=known_ip_retention_days)
        self.known_ip_cap = known_ip_cap
        self.clock = clock

    async def inspect(
        self,
        subject_id: UUID,
        client_ip: Optional[str],
        user_agent: Optional[str],
        action: Optional[str] = None,
        device_fingerprint: Optional[str] = None,
    ) -> AnomalyReport:
        now = self.clock()
        current_ip = client_ip or UNKNOWN_IP
        current_agent = (user_agent or "")[:SESSION_USER_AGENT_MAX_LENGTH]

        # Compare-and-set on last_activity; a concurrent writer forces a re-read
        for _ in range(ACTIVITY_WRITE_ATTEMPTS):
            uow = self.uow_factory()
            async with uow:
                await uow.session_activity.ensure(subject_id)
                activity = await uow.session_activity.get_by_subject(subject_id)
                report, known_ips = self._compare(
                    activity, now, current_ip, current_agent, action, device_fingerprint
                )

                values = {
                    "last_ip_address": current_ip,
                    "last_user_agent": current_agent,
                    "last_activity": now,
                    "known_ips": known_ips,
                }
                if device_fingerprint:
                    values["device_fingerprint"] = device_fingerprint
                written = await uow.session_activity.record_sighting(
                    activity.id, activity.last_activity, values
                )
                if written:
                    await uow.commit()
                    return report

        raise SessionActivityConflictError(
            f"Session activity for {subject_id} changed on every one of "
            f"{ACTIVITY_WRITE_ATTEMPTS} attempts"
        )

    def _compare(
        self,
        activity: SessionActivity,
        now: datetime,
        current_ip: str,
        current_agent: str,
        action: Optional[str],
        device_fingerprint: Optional[str],
    ) -> Tuple[AnomalyReport, List[dict]]:
        report = AnomalyReport()

        first_sighting = not activity.last_ip_address
        known_ips, is_new_ip = merge_known_ip(
            activity.known_ips, current_ip, now, self.known_ip_retention, self.known_ip_cap
        )
        if is_new_ip and not first_sighting:
            report.reasons.append(
                f"New IP address detected: {current_ip} (previous: {activity.last_ip_address})"
            )

        if activity.last_user_agent and activity.last_user_agent != current_agent:
            report.reasons.append(
                f"User-Agent change detected. Previous: {activity.last_user_agent[:50]}..."
            )

        if (
            device_fingerprint
            and activity.device_fingerprint
            and activity.device_fingerprint != device_fingerprint
        ):
            report.reasons.append("Device fingerprint change detected")

        threshold = self.rapid_activity_seconds.get(action) if action else None
        if threshold is not None and activity.last_activity is not None:
            elapsed = (now - activity.last_activity).total_seconds()
            if elapsed < threshold:
                report.reasons.append(
                    f"Rapid {action} activity detected: {elapsed:.1f}s since last activity"
                )

        return report, known_ips


class PaymentAnomalyDetector:
    """
    Flags unusual payment-proof submissions.

    Reasons:
    - rapid_count or more proofs already submitted inside the rapid window
    - Amount above the buyer's average approved amount by more than amount_variance
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        rapid_window_seconds: int = 300,
        rapid_count: int = 3,
        amount_variance: float = 0.5,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.uow_factory = uow_factory
        self.rapid_window = timedelta(seconds=rapid_window_seconds)
        self.rapid_count = rapid_count
        self.amount_variance = amount_variance
        self.clock = clock

    async def inspect(self, buyer_id: UUID, amount: float) -> AnomalyReport:
        report = AnomalyReport()
        uow = self.uow_factory()
        async with uow:
            recent = await uow.payment_proofs.count_submitted_since(
                buyer_id, self.clock() - self.rapid_window
            )
            history = await uow.payment_proofs.get_approved_amounts(buyer_id)

        if recent >= self.rapid_count:
            minutes = self.rapid_window.total_seconds() / 60
            report.reasons.append(
                f"Rapid payment submissions detected: {recent + 1} submissions in {minutes:g} minutes"
            )

        if history:
            average = sum(history) / len(history)
            if average > 0 and amount > average and (amount - average) / average > self.amount_variance:
                report.reasons.append(
                    f"Unusual payment amount: {amount:.2f} (average: {average:.2f}, max: {max(history):.2f})"
                )

        return report
