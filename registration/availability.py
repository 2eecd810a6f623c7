"""Slot availability and event listing.

A slot's stored status can lag behind reality: an "Open" slot whose start
time already passed is not bookable. Availability is therefore derived:

    available = status == Open AND start (event date + slot time) >= now
"""
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import List, Optional
from urllib.parse import urlencode

from registration import config
from registration.models import Event, Slot


@dataclass(frozen=True)
class SlotPill:
    """One entry of the slot grid."""
    start_time: str
    label: str
    selectable: bool


@dataclass(frozen=True)
class EventCard:
    """One entry of the event picker."""
    event_id: str
    title: str
    date_label: str
    time_label: str
    is_past: bool
    link: Optional[str]


def parse_slot_time(value: str) -> Optional[time]:
    """Parse 'HH:MM' (24h); also tolerates 'H:MM AM/PM'."""
    text = (value or "").strip()
    for fmt in ("%H:%M", "%H:%M:%S", "%I:%M %p", "%I:%M%p"):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    return None


def slot_start_datetime(event: Event, slot: Slot) -> Optional[datetime]:
    """Combine the parent event's date with the slot start time."""
    event_date = event.event_date
    start = parse_slot_time(slot.start_time)
    if event_date is None or start is None:
        return None
    return datetime.combine(event_date, start)


def is_effectively_available(event: Event, slot: Slot, now: datetime) -> bool:
    """Open and not yet started; unparseable dates count as unavailable."""
    if not slot.is_open:
        return False
    start = slot_start_datetime(event, slot)
    if start is None:
        return False
    return start >= now


def available_slots(event: Event, slots: List[Slot], now: datetime) -> List[Slot]:
    return [slot for slot in slots if is_effectively_available(event, slot, now)]


def build_slot_pills(event: Event, slots: List[Slot], now: datetime) -> List[SlotPill]:
    """All slots of the event, in sheet order; only available ones selectable."""
    return [
        SlotPill(
            start_time=slot.start_time,
            label=slot.label,
            selectable=is_effectively_available(event, slot, now),
        )
        for slot in slots
    ]


def event_link(event_id: str, base_url: str = config.BASE_URL) -> str:
    return f"{base_url}?{urlencode({'eventId': event_id})}"


def _long_date(value: date) -> str:
    return f"{value.strftime('%A, %B')} {value.day}, {value.year}"


def build_event_cards(
    events: List[Event],
    campaign_id: Optional[str],
    facility_id: Optional[str],
    today: date,
    base_url: str = config.BASE_URL
) -> List[EventCard]:
    """
    Events for the picker, soonest first.

    Campaign takes precedence over facility. Events dated before today are
    listed but carry no link.
    """
    if campaign_id:
        matching = [e for e in events if e.campaign_id == campaign_id]
    elif facility_id:
        matching = [e for e in events if e.facility_id == facility_id]
    else:
        matching = []

    matching.sort(key=lambda e: e.event_date or date.max)

    cards = []
    for event in matching:
        event_date = event.event_date
        is_past = event_date is not None and event_date < today
        cards.append(EventCard(
            event_id=event.event_id,
            title=event.name,
            date_label=_long_date(event_date) if event_date else event.date_text,
            time_label=f"{event.start_time} - {event.end_time}",
            is_past=is_past,
            link=None if is_past else event_link(event.event_id, base_url),
        ))
    return cards


def format_event_details(event: Optional[Event]) -> str:
    """Header text: '<name> - MM/DD/YYYY'."""
    if event is None:
        return ""
    event_date = event.event_date
    date_label = event_date.strftime("%m/%d/%Y") if event_date else event.date_text
    return f"{event.name} - {date_label}"
