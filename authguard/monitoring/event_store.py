"""
Security Event Store

Append-only persistence of authentication security events with the
filtered queries, retention cleanup and reporting used by the detectors,
the alert engine and the admin API.

``record`` sits on the inline auth path: it carries a short timeout and
never raises. A failed write is logged locally and the event is dropped.
Read-side calls are off the inline path and raise BackendUnavailableError.
"""
import asyncio
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, desc, func, select
from sqlalchemy.exc import SQLAlchemyError

from ..database.async_database import Database
from ..database.models import SecurityEvent
from ..exceptions import BackendUnavailableError
from ..utils.logger import setup_logger
from ..utils.timeutils import to_naive_utc, utcnow
from .events import SecurityEventData, SecurityEventFilter, SecurityEventType

logger = setup_logger(__name__)

DEFAULT_RETENTION_DAYS = 90
TOP_IP_LIMIT = 10


def _clip(value: Optional[str], column: str) -> Optional[str]:
    """Cut a client-supplied string to its column length so the row still fits."""
    limit = SecurityEvent.__table__.c[column].type.length
    if value is None or limit is None or len(value) <= limit:
        return value
    return value[:limit]


def _to_data(row: SecurityEvent) -> SecurityEventData:
    return SecurityEventData(
        id=row.id,
        event_type=SecurityEventType(row.event_type),
        success=bool(row.success),
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        email=row.email,
        user_id=row.user_id,
        details=row.details or {},
        timestamp=row.timestamp,
    )


class SecurityEventStore:
    """Async store for SecurityEvent rows"""

    def __init__(self, database: Database, timeout_seconds: float = 0.5):
        self.database = database
        self.timeout_seconds = timeout_seconds

    async def record(self, event: SecurityEventData) -> Optional[SecurityEventData]:
        """
        Persist one event.

        Returns:
            The stored event with its id, or None when the write failed
        """
        try:
            return await asyncio.wait_for(self._insert(event), timeout=self.timeout_seconds)
        except Exception as e:
            logger.error(
                f"[SecurityEventStore] Dropping {event.event_type.value} event: {e}",
                event_type=event.event_type.value,
                email=event.email,
                ip_address=event.ip_address,
                success=event.success,
            )
            return None

    async def _insert(self, event: SecurityEventData) -> SecurityEventData:
        row = SecurityEvent(
            user_id=_clip(event.user_id, "user_id"),
            email=_clip(event.email, "email"),
            event_type=event.event_type.value,
            success=event.success,
            ip_address=_clip(event.ip_address, "ip_address"),
            user_agent=_clip(event.user_agent, "user_agent"),
            details=event.details or {},
            timestamp=to_naive_utc(event.timestamp),
        )
        async with self.database.session() as session:
            session.add(row)
            await session.commit()
            event.id = row.id

        event.user_id, event.email = row.user_id, row.email
        event.ip_address, event.user_agent = row.ip_address, row.user_agent
        event.timestamp = row.timestamp

        logger.debug(
            f"[AUDIT] {event.event_type.value} recorded",
            email=event.email,
            ip_address=event.ip_address,
            success=event.success,
        )
        return event

    def _apply_filter(self, stmt, event_filter: SecurityEventFilter):
        if event_filter.user_id is not None:
            stmt = stmt.where(SecurityEvent.user_id == event_filter.user_id)
        if event_filter.email is not None:
            stmt = stmt.where(SecurityEvent.email == event_filter.email)
        if event_filter.event_type is not None:
            stmt = stmt.where(SecurityEvent.event_type == SecurityEventType(event_filter.event_type).value)
        if event_filter.success is not None:
            stmt = stmt.where(SecurityEvent.success == event_filter.success)
        if event_filter.ip_address is not None:
            stmt = stmt.where(SecurityEvent.ip_address == event_filter.ip_address)
        if event_filter.start_date is not None:
            stmt = stmt.where(SecurityEvent.timestamp >= to_naive_utc(event_filter.start_date))
        if event_filter.end_date is not None:
            stmt = stmt.where(SecurityEvent.timestamp <= to_naive_utc(event_filter.end_date))
        return stmt

    async def query(self, event_filter: Optional[SecurityEventFilter] = None) -> List[SecurityEventData]:
        """
        Events matching the filter, newest first.

        Raises:
            BackendUnavailableError: the database could not be queried
        """
        event_filter = event_filter or SecurityEventFilter()
        stmt = self._apply_filter(select(SecurityEvent), event_filter)
        stmt = stmt.order_by(desc(SecurityEvent.timestamp), desc(SecurityEvent.id))
        if event_filter.offset:
            stmt = stmt.offset(event_filter.offset)
        if event_filter.limit is not None:
            stmt = stmt.limit(event_filter.limit)

        try:
            async with self.database.session() as session:
                result = await session.execute(stmt)
                rows = result.scalars().all()
        except (SQLAlchemyError, OSError) as e:
            raise BackendUnavailableError("database", "query", e) from e

        return [_to_data(row) for row in rows]

    async def events_since(
        self,
        start_date: datetime,
        event_type: Optional[SecurityEventType] = None
    ) -> List[SecurityEventData]:
        """Every event at or after start_date (no limit)"""
        return await self.query(SecurityEventFilter(
            start_date=start_date,
            event_type=event_type,
            limit=None,
        ))

    async def count(self, event_filter: Optional[SecurityEventFilter] = None) -> int:
        """Number of events matching the filter (limit/offset ignored)"""
        event_filter = event_filter or SecurityEventFilter()
        stmt = self._apply_filter(select(func.count(SecurityEvent.id)), event_filter)
        try:
            async with self.database.session() as session:
                result = await session.execute(stmt)
                return int(result.scalar() or 0)
        except (SQLAlchemyError, OSError) as e:
            raise BackendUnavailableError("database", "count", e) from e

    async def cleanup_older_than(self, days: int = DEFAULT_RETENTION_DAYS) -> int:
        """
        Delete events older than the retention period.

        Returns:
            Number of deleted events
        """
        cutoff = utcnow() - timedelta(days=days)
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    delete(SecurityEvent).where(SecurityEvent.timestamp < cutoff)
                )
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            raise BackendUnavailableError("database", "cleanup", e) from e

        deleted = result.rowcount or 0
        logger.info(f"[SecurityEventStore] Cleaned up {deleted} events older than {days} days")
        return deleted

    async def generate_report(self, start_date: datetime, end_date: datetime) -> Dict[str, Any]:
        """
        Summary of the events between two instants.

        Returns:
            totals, success/failure split, counts by type and by hour,
            and the most active IP addresses
        """
        start_date, end_date = to_naive_utc(start_date), to_naive_utc(end_date)
        events = await self.query(SecurityEventFilter(
            start_date=start_date,
            end_date=end_date,
            limit=None,
        ))

        by_type = Counter(event.event_type.value for event in events)
        by_hour = Counter(event.timestamp.strftime("%Y-%m-%dT%H:00") for event in events)
        by_ip = Counter(event.ip_address for event in events if event.ip_address)
        successful = sum(1 for event in events if event.success)

        return {
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "total_events": len(events),
            "successful_events": successful,
            "failed_events": len(events) - successful,
            "events_by_type": dict(by_type),
            "events_by_hour": dict(sorted(by_hour.items())),
            "top_ip_addresses": [
                {"ip_address": ip, "count": count}
                for ip, count in by_ip.most_common(TOP_IP_LIMIT)
            ],
        }
