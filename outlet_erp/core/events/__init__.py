from outlet_erp.core.events.models import DomainEvent, EventStatus, EventType
from outlet_erp.core.events.service import EventDispatcher, dispatcher, record_event

__all__ = ["DomainEvent", "EventStatus", "EventType", "EventDispatcher", "dispatcher", "record_event"]
