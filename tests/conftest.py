"""Shared test fixtures."""
from datetime import date, datetime
from unittest.mock import Mock

import pytest

from registration.countdown import TimerHandle
from registration.datasets import DatasetRepository, DatasetSnapshot
from registration.gateway import RemoteGateway
from registration.models import Event, Slot, parse_question
from registration.reservation import ReservationController
from registration.session import EntryMode, EntryParams, SessionContext
from registration.signature import SignatureInput
from registration.submission import RegistrationFormData
from registration.views import RegistrationView

FIXED_NOW = datetime(2026, 3, 1, 8, 0)
FIXED_TODAY = FIXED_NOW.date()

EVENT_ROW = {
    "EventID": "EVT-1",
    "Event Name": "Spring Clinic",
    "Date": "3/10/2026",
    "Start Time": "09:00",
    "End Time": "12:00",
    "CampaignID": "CMP-1",
    "FacilityID": "FAC-1",
    "Forms": "vax, tb",
    "Service Names": "Vaccines, TB Test",
    "Consent HTML": "",
}

SLOT_ROWS = [
    {"EventID": "EVT-1", "Start Time": "09:00", "End Time": "09:15", "Status": "Open"},
    {"EventID": "EVT-1", "Start Time": "09:15", "End Time": "09:30", "Status": "Booked"},
    {"EventID": "EVT-1", "Start Time": "09:30", "End Time": "09:45", "Status": "Open"},
]

QUESTION_ROWS = [
    {"FormID": "vax", "QuestionID": "vax_sick", "QuestionText": "Sick today?",
     "QuestionType": "radio_yes_no", "Options": "", "IsRequired": "TRUE",
     "DisplayOrder": "1", "TriggerID": "", "TriggerValue": ""},
    {"FormID": "vax", "QuestionID": "vax_detail", "QuestionText": "Describe symptoms",
     "QuestionType": "text_area", "Options": "", "IsRequired": "TRUE",
     "DisplayOrder": "2", "TriggerID": "vax_sick", "TriggerValue": "Yes"},
    {"FormID": "vax", "QuestionID": "vax_allergy", "QuestionText": "Allergies",
     "QuestionType": "multi_select", "Options": "Eggs, Latex, None", "IsRequired": "FALSE",
     "DisplayOrder": "3", "TriggerID": "", "TriggerValue": ""},
    {"FormID": "tb", "QuestionID": "tb_prior", "QuestionText": "Prior positive test?",
     "QuestionType": "radio_yes_no", "Options": "", "IsRequired": "TRUE",
     "DisplayOrder": "1", "TriggerID": "", "TriggerValue": ""},
    {"FormID": "tb", "QuestionID": "tb_date", "QuestionText": "Date of positive test",
     "QuestionType": "date", "Options": "", "IsRequired": "TRUE",
     "DisplayOrder": "2", "TriggerID": "tb_prior", "TriggerValue": ""},
]


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualScheduler:
    """Records repeating timers; fire() runs every still-active callback once."""

    def __init__(self):
        self.timers = []

    def schedule_repeating(self, interval, callback):
        handle = TimerHandle()
        self.timers.append((handle, callback))
        return handle

    @property
    def active(self):
        return [handle for handle, _ in self.timers if handle.active]

    def fire(self) -> None:
        for handle, callback in list(self.timers):
            if handle.active:
                callback()


class RecordingView(RegistrationView):
    """View that records every call as (method, args)."""

    def __init__(self):
        self.calls = []

    def _record(self, name, *args):
        self.calls.append((name, args))

    def show_loading(self, message="Please wait…"):
        self._record("show_loading", message)

    def update_loading(self, message):
        self._record("update_loading", message)

    def hide_loading(self):
        self._record("hide_loading")

    def alert(self, message):
        self._record("alert", message)

    def notify_error(self, message):
        self._record("notify_error", message)

    def show_event_details(self, text):
        self._record("show_event_details", text)

    def show_slots(self, pills):
        self._record("show_slots", pills)

    def show_waitlist_option(self):
        self._record("show_waitlist_option")

    def show_event_cards(self, cards):
        self._record("show_event_cards", cards)

    def show_no_events(self, message):
        self._record("show_no_events", message)

    def show_form(self, form, timer_visible):
        self._record("show_form", form, timer_visible)

    def hide_form(self):
        self._record("hide_form")

    def focus_field(self, field_name):
        self._record("focus_field", field_name)

    def clear_signature(self):
        self._record("clear_signature")

    def show_timer(self, text):
        self._record("show_timer", text)

    def hide_timer(self):
        self._record("hide_timer")

    def show_confirmation(self, confirmation):
        self._record("show_confirmation", confirmation)

    def names(self):
        return [name for name, _ in self.calls]

    def args_of(self, name):
        return [args for called, args in self.calls if called == name]

    @property
    def alerts(self):
        return [args[0] for args in self.args_of("alert")]


def run_now(fn, *args):
    fn(*args)


def build_snapshot() -> DatasetSnapshot:
    return DatasetSnapshot(
        events=[Event.model_validate(EVENT_ROW)],
        slots=[Slot.model_validate(row) for row in SLOT_ROWS],
        questions=[parse_question(row) for row in QUESTION_ROWS],
    )


def valid_form_data(**values) -> RegistrationFormData:
    """Form data that passes every fixed-field check."""
    data = RegistrationFormData(
        values={"firstName": "Jane", "lastName": "Doe", "dob": "1990-05-01", **values},
        consent_calls=True,
        signature=SignatureInput(drawn_image="data:image/png;base64,iVBORw0KGgo="),
    )
    return data


@pytest.fixture
def snapshot() -> DatasetSnapshot:
    return build_snapshot()


@pytest.fixture
def event(snapshot) -> Event:
    return snapshot.find_event("EVT-1")


@pytest.fixture
def view() -> RecordingView:
    return RecordingView()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def gateway() -> Mock:
    gateway = Mock(spec=RemoteGateway)
    gateway.book_slot.return_value = {"status": "success"}
    gateway.release_slot.return_value = {"status": "success"}
    gateway.send_release_beacon.return_value = True
    return gateway


@pytest.fixture
def repository(snapshot) -> Mock:
    repository = Mock(spec=DatasetRepository)
    repository.load_all.return_value = snapshot
    return repository


@pytest.fixture
def context(snapshot, event) -> SessionContext:
    return SessionContext(
        entry=EntryParams(EntryMode.EVENT, event_id="EVT-1"),
        event_id="EVT-1",
        event=event,
        datasets=snapshot,
    )


@pytest.fixture
def controller(context, gateway, repository, view, clock, scheduler) -> ReservationController:
    return ReservationController(
        context,
        gateway,
        repository,
        view,
        clock=clock,
        now=lambda: FIXED_NOW,
        scheduler=scheduler,
        background=run_now,
        hold_seconds=20 * 60,
    )
