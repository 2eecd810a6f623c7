"""Per-visitor session context and entry-mode resolution."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Union
from urllib.parse import parse_qs, urlparse

from registration.countdown import Countdown, TimerHandle
from registration.datasets import DatasetSnapshot
from registration.logging_config import generate_session_id
from registration.models import Event
from registration.state import ReservationState


class EntryMode(str, Enum):
    """How the visitor arrived."""
    EVENT = "event"  # ?eventId=...
    EVENT_PICKER = "event_picker"  # ?campaignId=... or ?facilityId=...
    GENERAL_WAITLIST = "general_waitlist"  # no parameters


@dataclass(frozen=True)
class EntryParams:
    mode: EntryMode
    event_id: Optional[str] = None
    campaign_id: Optional[str] = None
    facility_id: Optional[str] = None


def _first(params: Mapping, key: str) -> Optional[str]:
    value = params.get(key)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None or not str(value).strip():
        return None
    return str(value).strip()


def resolve_entry_mode(params: Union[str, Mapping, None]) -> EntryParams:
    """
    Decide the entry mode from query parameters.

    Accepts a mapping, a raw query string or a full URL. eventId wins over
    campaignId/facilityId; nothing at all means general waitlist.
    """
    if params is None:
        params = {}
    if isinstance(params, str):
        query = urlparse(params).query if "?" in params or "://" in params else params
        params = parse_qs(query.lstrip("?"))

    event_id = _first(params, "eventId")
    campaign_id = _first(params, "campaignId")
    facility_id = _first(params, "facilityId")

    if event_id:
        return EntryParams(EntryMode.EVENT, event_id=event_id)
    if campaign_id or facility_id:
        return EntryParams(EntryMode.EVENT_PICKER, campaign_id=campaign_id, facility_id=facility_id)
    return EntryParams(EntryMode.GENERAL_WAITLIST)


@dataclass
class Reservation:
    """The single hold (or waitlist entry) a session owns."""
    event_id: str
    slot_time: Optional[str] = None
    is_waitlist: bool = False
    countdown: Optional[Countdown] = None


@dataclass
class SessionContext:
    """Everything one visitor's session holds; owned by the app and controller."""
    entry: EntryParams
    session_id: str = field(default_factory=generate_session_id)
    event_id: Optional[str] = None
    event: Optional[Event] = None
    datasets: Optional[DatasetSnapshot] = None
    state: ReservationState = ReservationState.NO_SELECTION
    reservation: Optional[Reservation] = None
    timer: Optional[TimerHandle] = None
    form: Optional[object] = None

    @property
    def is_waitlist(self) -> bool:
        return self.reservation is not None and self.reservation.is_waitlist

    @property
    def selected_slot_time(self) -> Optional[str]:
        return self.reservation.slot_time if self.reservation else None
