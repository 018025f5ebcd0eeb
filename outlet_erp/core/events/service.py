import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from outlet_erp.core.config import settings
from outlet_erp.core.events.models import DomainEvent, EventStatus, EventType

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], Awaitable[None]]


async def record_event(
    session: AsyncSession,
    event_type: EventType | str,
    outlet_code: str,
    aggregate_type: str,
    aggregate_id: int,
    payload: dict[str, Any] | None = None,
) -> DomainEvent:
    """Add an outbox row to the current transaction; it is only visible once committed."""
    event = DomainEvent(
        event_type=str(event_type),
        outlet_code=outlet_code,
        aggregate_type=aggregate_type,
        aggregate_id=aggregate_id,
        payload=payload or {},
        status=EventStatus.PENDING.value,
        attempts=0,
    )
    session.add(event)
    await session.flush()
    return event


class EventDispatcher:
    """
    Delivers committed outbox events to subscribers.

    Handlers are registered per event type and run after the business
    transaction has committed. A handler failure marks the event FAILED and it is
    retried on the next pass until `max_attempts` is reached.
    """

    def __init__(self, max_attempts: int | None = None):
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self.max_attempts = max_attempts or settings.event_max_attempts

    def subscribe(self, event_type: EventType | str) -> Callable[[EventHandler], EventHandler]:
        def decorator(handler: EventHandler) -> EventHandler:
            self._handlers[str(event_type)].append(handler)
            return handler

        return decorator

    def add_handler(self, event_type: EventType | str, handler: EventHandler) -> None:
        self._handlers[str(event_type)].append(handler)

    async def dispatch_pending(self, session: AsyncSession, limit: int | None = None) -> int:
        """Deliver pending (and retryable failed) events. Returns the number processed."""
        stmt = (
            select(DomainEvent)
            .where(
                or_(
                    DomainEvent.status == EventStatus.PENDING.value,
                    DomainEvent.status == EventStatus.FAILED.value,
                ),
                DomainEvent.attempts < self.max_attempts,
            )
            .order_by(DomainEvent.id)
            .limit(limit or settings.event_batch_size)
            .with_for_update(skip_locked=True)
        )
        events = list((await session.execute(stmt)).scalars().all())

        processed = 0
        for event in events:
            event.attempts += 1
            try:
                for handler in self._handlers.get(event.event_type, []):
                    await handler(event)
            except Exception as exc:
                logger.exception("Handler failed for event %s (%s)", event.id, event.event_type)
                event.status = EventStatus.FAILED.value
                event.error_message = str(exc)
                continue
            event.status = EventStatus.PROCESSED.value
            event.error_message = None
            event.processed_at = datetime.now(timezone.utc)
            processed += 1

        await session.commit()
        if events:
            logger.info("Dispatched %s of %s outbox events", processed, len(events))
        return processed


dispatcher = EventDispatcher()
