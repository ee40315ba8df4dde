"""
Aggregate Service - rolling session and daily counters.

Every write is a single atomic statement (INSERT ... ON CONFLICT, or
UPDATE ... SET col = col + n) so concurrent events converge regardless of
interleaving. Failures are logged and swallowed: losing an aggregate bump is
acceptable, losing the Event is not, and the Event is written before this runs.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from pixel_tracker.core.config import settings
from pixel_tracker.core.resilience import ResilientDatabase
from pixel_tracker.models.analytics_session import AnalyticsSession
from pixel_tracker.models.daily_stat import DailyStat

logger = logging.getLogger(__name__)

PURCHASE_EVENT_NAMES = frozenset({"purchase", "Purchase"})


def _insert_for(session: Session, model):
    """Dialect-specific INSERT supporting ON CONFLICT."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Atomic upserts are not implemented for dialect '{dialect}'")


@dataclass
class SessionSnapshot:
    """Visitor facts copied onto a newly created AnalyticsSession."""

    fingerprint: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    browser: Optional[str] = None
    os: Optional[str] = None
    device_type: Optional[str] = None
    country: Optional[str] = None


class AggregateService:
    """Session and DailyStat upserts for one pixel."""

    def __init__(self, db: ResilientDatabase, pageview_event: str = settings.PAGEVIEW_EVENT_NAME):
        self.db = db
        self.pageview_event = pageview_event

    async def record_event(
        self,
        pixel_app_id: UUID,
        event_name: str,
        session_id: Optional[str] = None,
        snapshot: Optional[SessionSnapshot] = None,
        value: Optional[float] = None,
        record_session: bool = True,
        occurred_at: Optional[datetime] = None,
    ) -> bool:
        """
        Apply one event to the aggregates.

        Returns:
            True if all upserts succeeded; False if any failed (already logged)
        """
        occurred_at = occurred_at or datetime.now(timezone.utc)
        is_pageview = event_name == self.pageview_event
        created = False
        ok = True

        if session_id and record_session:
            try:
                created = await self.db.run(
                    lambda s: self.upsert_session(
                        s, pixel_app_id, session_id, is_pageview, snapshot or SessionSnapshot(), occurred_at
                    ),
                    name="upsert_session",
                )
            except Exception as e:
                ok = False
                logger.warning(f"Session upsert failed for session {session_id}: {e}", exc_info=True)

        is_purchase = event_name in PURCHASE_EVENT_NAMES
        try:
            await self.db.run(
                lambda s: self.upsert_daily_stat(
                    s,
                    pixel_app_id,
                    occurred_at.astimezone(timezone.utc).date(),
                    pageviews=1 if is_pageview else 0,
                    sessions=1 if created else 0,
                    unique_users=1 if created else 0,
                    purchases=1 if is_purchase else 0,
                    revenue=(value or 0.0) if is_purchase else 0.0,
                    now=occurred_at,
                ),
                name="upsert_daily_stat",
            )
        except Exception as e:
            ok = False
            logger.warning(f"Daily stat upsert failed for pixel {pixel_app_id}: {e}", exc_info=True)

        return ok

    @staticmethod
    def upsert_session(
        session: Session,
        pixel_app_id: UUID,
        session_id: str,
        is_pageview: bool,
        snapshot: SessionSnapshot,
        now: datetime,
    ) -> bool:
        """
        Create the session row or touch the existing one.

        Returns:
            True if this call created the row
        """
        insert_stmt = _insert_for(session, AnalyticsSession).values(
            pixel_app_id=pixel_app_id,
            session_id=session_id,
            fingerprint=snapshot.fingerprint or "unknown",
            ip_address=snapshot.ip_address,
            user_agent=snapshot.user_agent,
            browser=snapshot.browser,
            os=snapshot.os,
            device_type=snapshot.device_type,
            country=snapshot.country,
            pageviews=1 if is_pageview else 0,
            started_at=now,
            last_seen=now,
        ).on_conflict_do_nothing(index_elements=["session_id"])

        if session.execute(insert_stmt).rowcount == 1:
            return True

        values = {"last_seen": now}
        if is_pageview:
            values["pageviews"] = AnalyticsSession.pageviews + 1
        session.execute(
            update(AnalyticsSession)
            .where(AnalyticsSession.session_id == session_id)
            .values(**values)
        )
        return False

    @staticmethod
    def upsert_daily_stat(
        session: Session,
        pixel_app_id: UUID,
        day: date,
        pageviews: int = 0,
        sessions: int = 0,
        unique_users: int = 0,
        purchases: int = 0,
        revenue: float = 0.0,
        now: Optional[datetime] = None,
    ) -> None:
        """Atomic increment of the (pixel, day) row, creating it on first use."""
        now = now or datetime.now(timezone.utc)
        stmt = _insert_for(session, DailyStat).values(
            pixel_app_id=pixel_app_id,
            date=day,
            pageviews=pageviews,
            sessions=sessions,
            unique_users=unique_users,
            purchases=purchases,
            revenue=revenue,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["pixel_app_id", "date"],
            set_={
                "pageviews": DailyStat.pageviews + stmt.excluded.pageviews,
                "sessions": DailyStat.sessions + stmt.excluded.sessions,
                "unique_users": DailyStat.unique_users + stmt.excluded.unique_users,
                "purchases": DailyStat.purchases + stmt.excluded.purchases,
                "revenue": DailyStat.revenue + stmt.excluded.revenue,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        session.execute(stmt)
