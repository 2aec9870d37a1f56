from uuid import uuid4

import pytest
from sqlmodel import select

from stoneguard.adapter.services.unit_of_work import unit_of_work_factory
from stoneguard.app.services.anomaly_detector import AnomalyDetector
from stoneguard.domain.entities import SessionActivity
from tests.fixtures.clock import FakeClock


async def _stored(session_factory, subject_id) -> SessionActivity:
    async with session_factory() as session:
        result = await session.exec(
            select(SessionActivity).where(SessionActivity.subject_id == subject_id)
        )
        return result.one()


@pytest.mark.asyncio
async def test_write_based_on_stale_read_is_refused(session_factory):
    clock = FakeClock()
    uow_factory = unit_of_work_factory(session_factory)
    subject_id = uuid4()

    uow = uow_factory()
    async with uow:
        await uow.session_activity.ensure(subject_id)
        await uow.commit()

    uow = uow_factory()
    async with uow:
        stale = await uow.session_activity.get_by_subject(subject_id)

    uow = uow_factory()
    async with uow:
        first = await uow.session_activity.record_sighting(
            stale.id,
            stale.last_activity,
            {"last_ip_address": "203.0.113.7", "last_activity": clock.now},
        )
        await uow.commit()

    clock.advance(seconds=1)
    uow = uow_factory()
    async with uow:
        second = await uow.session_activity.record_sighting(
            stale.id,
            stale.last_activity,
            {"last_ip_address": "198.51.100.9", "last_activity": clock.now},
        )
        await uow.commit()

    assert first is True
    assert second is False
    stored = await _stored(session_factory, subject_id)
    assert stored.last_ip_address == "203.0.113.7"


@pytest.mark.asyncio
async def test_detector_keeps_every_sighting(session_factory):
    clock = FakeClock()
    detector = AnomalyDetector(unit_of_work_factory(session_factory), {"approve": 60}, clock=clock)
    subject_id = uuid4()

    first = await detector.inspect(subject_id, "203.0.113.7", "Mozilla/5.0", action="approve")
    clock.advance(minutes=5)
    second = await detector.inspect(subject_id, "198.51.100.9", "Mozilla/5.0", action="approve")

    assert not first.anomalous
    assert second.reasons == [
        "New IP address detected: 198.51.100.9 (previous: 203.0.113.7)"
    ]
    stored = await _stored(session_factory, subject_id)
    assert {entry["ip"] for entry in stored.known_ips} == {"203.0.113.7", "198.51.100.9"}
    assert stored.last_activity == clock.now
