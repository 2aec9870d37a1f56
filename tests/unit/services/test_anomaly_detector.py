from datetime import datetime, timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from stoneguard.app.services.anomaly_detector import (
    ACTIVITY_WRITE_ATTEMPTS,
    AnomalyDetector,
    PaymentAnomalyDetector,
    SessionActivityConflictError,
    merge_known_ip,
)
from stoneguard.domain.entities import SessionActivity

NOW = datetime(2026, 1, 15, 12, 0, 0)


def _entry(ip, last_seen, count=1):
    return {"ip": ip, "first_seen": last_seen.isoformat(), "last_seen": last_seen.isoformat(), "count": count}


def test_merge_known_ip_adds_new_ip():
    known, is_new = merge_known_ip([], "203.0.113.7", NOW, timedelta(days=90), 20)

    assert is_new
    assert known == [_entry("203.0.113.7", NOW)]


def test_merge_known_ip_updates_existing():
    earlier = NOW - timedelta(days=3)
    known, is_new = merge_known_ip(
        [_entry("203.0.113.7", earlier, count=4)], "203.0.113.7", NOW, timedelta(days=90), 20
    )

    assert not is_new
    assert known[0]["count"] == 5
    assert known[0]["last_seen"] == NOW.isoformat()
    assert known[0]["first_seen"] == earlier.isoformat()


def test_merge_known_ip_ages_out_stale_entries():
    stale = _entry("198.51.100.1", NOW - timedelta(days=91))

    known, is_new = merge_known_ip([stale], "198.51.100.1", NOW, timedelta(days=90), 20)

    assert is_new
    assert len(known) == 1


def test_merge_known_ip_is_capped_to_most_recent():
    history = [_entry(f"10.0.0.{i}", NOW - timedelta(hours=i)) for i in range(1, 6)]

    known, _ = merge_known_ip(history, "10.0.0.99", NOW, timedelta(days=90), 3)

    assert [entry["ip"] for entry in known] == ["10.0.0.99", "10.0.0.1", "10.0.0.2"]


@pytest.fixture
def activity(mock_uow):
    activity = SessionActivity(subject_id=uuid4())

    async def record_sighting(activity_id, read_last_activity, values):
        for name, value in values.items():
            setattr(activity, name, value)
        return True

    mock_uow.session_activity.record_sighting = AsyncMock(side_effect=record_sighting)
    return activity


@pytest.mark.asyncio
async def test_first_activity_is_not_anomalous(mock_uow, uow_factory, clock, activity):
    mock_uow.session_activity.get_by_subject.return_value = activity
    detector = AnomalyDetector(uow_factory, {"approve": 60}, clock=clock)

    report = await detector.inspect(activity.subject_id, "203.0.113.7", "Mozilla/5.0", action="approve")

    assert not report.anomalous
    assert activity.last_ip_address == "203.0.113.7"
    assert activity.last_activity == clock.now
    mock_uow.session_activity.record_sighting.assert_called_once()
    mock_uow.commit.assert_called_once()


@pytest.mark.asyncio
async def test_new_ip_agent_and_rapid_activity(mock_uow, uow_factory, clock, activity):
    mock_uow.session_activity.get_by_subject.return_value = activity
    detector = AnomalyDetector(uow_factory, {"approve": 60}, clock=clock)
    await detector.inspect(activity.subject_id, "203.0.113.7", "Mozilla/5.0", action="approve")

    clock.advance(seconds=5)
    report = await detector.inspect(
        activity.subject_id, "198.51.100.9", "Safari/17.0", action="approve"
    )

    assert report.anomalous
    assert any(reason.startswith("New IP address detected: 198.51.100.9") for reason in report.reasons)
    assert any(reason.startswith("User-Agent change detected") for reason in report.reasons)
    assert any(reason.startswith("Rapid approve activity detected") for reason in report.reasons)
    assert {entry["ip"] for entry in activity.known_ips} == {"203.0.113.7", "198.51.100.9"}


@pytest.mark.asyncio
async def test_known_ip_and_slow_activity_is_clean(mock_uow, uow_factory, clock, activity):
    mock_uow.session_activity.get_by_subject.return_value = activity
    detector = AnomalyDetector(uow_factory, {"approve": 60}, clock=clock)
    await detector.inspect(activity.subject_id, "203.0.113.7", "Mozilla/5.0", action="approve")

    clock.advance(minutes=10)
    report = await detector.inspect(activity.subject_id, "203.0.113.7", "Mozilla/5.0", action="approve")

    assert not report.anomalous


@pytest.mark.asyncio
async def test_device_fingerprint_change(mock_uow, uow_factory, clock, activity):
    activity.last_ip_address = "203.0.113.7"
    activity.last_user_agent = "Mozilla/5.0"
    activity.device_fingerprint = "fp-old"
    activity.known_ips = [_entry("203.0.113.7", clock.now)]
    mock_uow.session_activity.get_by_subject.return_value = activity
    detector = AnomalyDetector(uow_factory, clock=clock)

    report = await detector.inspect(
        activity.subject_id, "203.0.113.7", "Mozilla/5.0", device_fingerprint="fp-new"
    )

    assert report.reasons == ["Device fingerprint change detected"]
    assert activity.device_fingerprint == "fp-new"


@pytest.mark.asyncio
async def test_missing_ip_is_recorded_as_unknown(mock_uow, uow_factory, clock, activity):
    mock_uow.session_activity.get_by_subject.return_value = activity
    detector = AnomalyDetector(uow_factory, clock=clock)

    await detector.inspect(activity.subject_id, None, None)

    assert activity.last_ip_address == "Unknown"
    assert activity.last_user_agent == ""


@pytest.mark.asyncio
async def test_concurrent_write_rereads_before_recording(mock_uow, uow_factory, clock, activity):
    mock_uow.session_activity.get_by_subject.return_value = activity
    mock_uow.session_activity.record_sighting = AsyncMock(side_effect=[False, True])
    detector = AnomalyDetector(uow_factory, clock=clock)

    await detector.inspect(activity.subject_id, "203.0.113.7", "Mozilla/5.0")

    assert mock_uow.session_activity.get_by_subject.await_count == 2
    activity_id, read_last_activity, values = (
        mock_uow.session_activity.record_sighting.await_args.args
    )
    assert activity_id == activity.id
    assert read_last_activity is None
    assert values["last_ip_address"] == "203.0.113.7"
    assert values["known_ips"][0]["ip"] == "203.0.113.7"
    mock_uow.commit.assert_called_once()


@pytest.mark.asyncio
async def test_gives_up_when_every_write_loses(mock_uow, uow_factory, clock, activity):
    mock_uow.session_activity.get_by_subject.return_value = activity
    mock_uow.session_activity.record_sighting = AsyncMock(return_value=False)
    detector = AnomalyDetector(uow_factory, clock=clock)

    with pytest.raises(SessionActivityConflictError):
        await detector.inspect(activity.subject_id, "203.0.113.7", "Mozilla/5.0")

    assert mock_uow.session_activity.record_sighting.await_count == ACTIVITY_WRITE_ATTEMPTS
    mock_uow.commit.assert_not_called()


@pytest.mark.asyncio
async def test_payment_rapid_submissions(mock_uow, uow_factory, clock):
    mock_uow.payment_proofs.count_submitted_since = AsyncMock(return_value=3)
    detector = PaymentAnomalyDetector(uow_factory, clock=clock)

    report = await detector.inspect(uuid4(), 100)

    assert report.reasons == ["Rapid payment submissions detected: 4 submissions in 5 minutes"]


@pytest.mark.asyncio
async def test_payment_unusual_amount(mock_uow, uow_factory, clock):
    mock_uow.payment_proofs.get_approved_amounts = AsyncMock(return_value=[1000.0, 1000.0])
    detector = PaymentAnomalyDetector(uow_factory, clock=clock)

    unusual = await detector.inspect(uuid4(), 1600)
    usual = await detector.inspect(uuid4(), 1400)

    assert unusual.anomalous
    assert unusual.reasons[0].startswith("Unusual payment amount: 1600.00")
    assert not usual.anomalous
