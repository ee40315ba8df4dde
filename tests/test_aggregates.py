"""
Tests for session and daily stat upserts
"""
import asyncio
from datetime import datetime, timezone

import pytest

from pixel_tracker.models.analytics_session import AnalyticsSession
from pixel_tracker.models.daily_stat import DailyStat
from pixel_tracker.services.aggregate_service import AggregateService, SessionSnapshot


@pytest.mark.asyncio
async def test_first_event_creates_session(database, db_session, make_pixel):
    pixel = make_pixel()
    aggregates = AggregateService(database)

    ok = await aggregates.record_event(
        pixel.id,
        "pageview",
        session_id="s-new",
        snapshot=SessionSnapshot(fingerprint="fp-1", browser="Chrome", country="Germany"),
    )

    assert ok is True
    session = db_session.query(AnalyticsSession).filter_by(session_id="s-new").one()
    assert session.pageviews == 1
    assert session.fingerprint == "fp-1"
    assert session.country == "Germany"
    stat = db_session.query(DailyStat).one()
    assert (stat.pageviews, stat.sessions, stat.unique_users) == (1, 1, 1)


@pytest.mark.asyncio
async def test_non_pageview_touches_session_without_counting(database, db_session, make_pixel):
    pixel = make_pixel()
    aggregates = AggregateService(database)

    await aggregates.record_event(pixel.id, "pageview", session_id="s1")
    await aggregates.record_event(pixel.id, "add_to_cart", session_id="s1")

    session = db_session.query(AnalyticsSession).filter_by(session_id="s1").one()
    assert session.pageviews == 1
    stat = db_session.query(DailyStat).one()
    assert stat.pageviews == 1
    assert stat.sessions == 1


@pytest.mark.asyncio
async def test_record_session_disabled_skips_session(database, db_session, make_pixel):
    pixel = make_pixel()
    aggregates = AggregateService(database)

    await aggregates.record_event(pixel.id, "pageview", session_id="s1", record_session=False)

    assert db_session.query(AnalyticsSession).count() == 0
    assert db_session.query(DailyStat).one().pageviews == 1


@pytest.mark.asyncio
async def test_days_are_bucketed_in_utc(database, db_session, make_pixel):
    pixel = make_pixel()
    aggregates = AggregateService(database)

    await aggregates.record_event(pixel.id, "pageview", occurred_at=datetime(2026, 3, 1, 23, 30, tzinfo=timezone.utc))
    await aggregates.record_event(pixel.id, "pageview", occurred_at=datetime(2026, 3, 2, 0, 30, tzinfo=timezone.utc))

    days = sorted(stat.date.isoformat() for stat in db_session.query(DailyStat).all())
    assert days == ["2026-03-01", "2026-03-02"]


@pytest.mark.asyncio
async def test_concurrent_writers_converge(database, db_session, make_pixel):
    """N concurrent pageviews on one day end at exactly N, in one row"""
    pixel = make_pixel()
    aggregates = AggregateService(database)
    writers = 20

    results = await asyncio.gather(*(
        aggregates.record_event(pixel.id, "pageview", session_id="shared-session")
        for _ in range(writers)
    ))

    assert all(results)
    stats = db_session.query(DailyStat).filter_by(pixel_app_id=pixel.id).all()
    assert len(stats) == 1
    assert stats[0].pageviews == writers
    assert stats[0].sessions == 1
    session = db_session.query(AnalyticsSession).filter_by(session_id="shared-session").one()
    assert session.pageviews == writers


@pytest.mark.asyncio
async def test_failures_are_swallowed(db_session, make_pixel):
    pixel = make_pixel()

    class BrokenDatabase:
        async def run(self, operation, name="operation"):
            raise RuntimeError("database gone")

    ok = await AggregateService(BrokenDatabase()).record_event(pixel.id, "pageview", session_id="s1")

    assert ok is False
