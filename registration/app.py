"""Registration app: startup, entry-mode dispatch and user actions.

Architecture:
    view -> RegistrationApp -> ReservationController / DynamicForm / SubmissionFlow
                                  -> RemoteGateway, DatasetRepository

One app instance serves one visitor session.
"""
import time
from datetime import date, datetime
from typing import Any, Callable, Mapping, Optional, Union

import requests

from registration import availability, config
from registration.datasets import DatasetRepository, DatasetUnavailableError, EventNotFoundError
from registration.forms import DynamicForm, FormInputError, build_dynamic_form
from registration.gateway import RemoteGateway
from registration.http_client import create_http_session
from registration.logging_config import bind_session, get_logger
from registration.reservation import ReservationController
from registration.session import EntryMode, EntryParams, SessionContext, resolve_entry_mode
from registration.submission import ConfirmationView, RegistrationFormData, SubmissionFlow
from registration.views import RegistrationView

logger = get_logger(__name__)

MSG_INIT_FAILED = "Failed to initialize the application."
MSG_EVENT_NOT_FOUND = "Event not found."
MSG_NO_EVENTS = "No upcoming events found for this selection."
GENERAL_REGISTRATION_HEADER = "General Registration"


class RegistrationApp:
    """One visitor's registration session."""

    def __init__(
        self,
        entry: Union[EntryParams, str, Mapping, None],
        view: RegistrationView,
        gateway: Optional[RemoteGateway] = None,
        repository: Optional[DatasetRepository] = None,
        http_session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = datetime.now,
        today: Callable[[], date] = date.today,
        scheduler=None,
        background: Optional[Callable] = None
    ):
        if not isinstance(entry, EntryParams):
            entry = resolve_entry_mode(entry)
        http_session = http_session or create_http_session()

        self.view = view
        self.today = today
        self.context = SessionContext(entry=entry, event_id=entry.event_id)
        self.gateway = gateway or RemoteGateway(http_session)
        self.repository = repository or DatasetRepository(http_session)
        self.controller = ReservationController(
            self.context,
            self.gateway,
            self.repository,
            view,
            clock=clock,
            now=now,
            scheduler=scheduler,
            background=background,
        )
        self.submission = SubmissionFlow(self.gateway, view, today=today)
        self.data = RegistrationFormData()
        bind_session(self.context.session_id)

    @property
    def mode(self) -> EntryMode:
        return self.context.entry.mode

    @property
    def form(self) -> Optional[DynamicForm]:
        return self.context.form

    # --- Startup ---

    def start(self) -> bool:
        """
        Load datasets and render the entry screen for the current mode.

        Returns:
            False if startup hit a blocking error (already alerted)
        """
        self.view.show_loading("Loading…")
        try:
            try:
                self.context.datasets = self.repository.load_all()
            except DatasetUnavailableError as e:
                logger.error("startup_failed", error=str(e))
                self.view.alert(MSG_INIT_FAILED)
                return False

            if self.mode == EntryMode.EVENT:
                return self._start_event_mode()
            if self.mode == EntryMode.EVENT_PICKER:
                return self._start_picker_mode()
            return self._start_general_waitlist()
        finally:
            self.view.hide_loading()

    def _start_event_mode(self) -> bool:
        try:
            event = self.context.datasets.find_event(self.context.event_id)
        except EventNotFoundError as e:
            logger.warning("event_not_found", event_id=e.event_id)
            self.view.alert(MSG_EVENT_NOT_FOUND)
            return False
        self.context.event = event
        self.view.show_event_details(availability.format_event_details(event))
        self.controller.render_slots()
        return True

    def _start_picker_mode(self) -> bool:
        entry = self.context.entry
        cards = availability.build_event_cards(
            self.context.datasets.events,
            entry.campaign_id,
            entry.facility_id,
            today=self.today(),
        )
        if cards:
            self.view.show_event_cards(cards)
        else:
            self.view.show_no_events(MSG_NO_EVENTS)
        return True

    def _start_general_waitlist(self) -> bool:
        self.context.event_id = config.WAITLIST_EVENT_ID
        self.controller.join_waitlist()
        self.context.form = build_dynamic_form(None, [])
        self.data.signature.clear()
        self.view.show_event_details(GENERAL_REGISTRATION_HEADER)
        self.view.show_form(self.context.form, timer_visible=False)
        return True

    # --- Slot actions ---

    def _open_form(self, timer_visible: bool) -> None:
        datasets = self.context.datasets
        questions = datasets.questions if datasets else []
        self.context.form = build_dynamic_form(self.context.event, questions)
        self.data.signature.clear()
        self.view.show_form(self.context.form, timer_visible=timer_visible)

    def select_slot(self, start_time: str) -> bool:
        if not self.controller.select_slot(start_time):
            return False
        self._open_form(timer_visible=True)
        return True

    def join_waitlist(self) -> bool:
        if not self.controller.join_waitlist():
            return False
        self._open_form(timer_visible=False)
        return True

    def go_back(self) -> bool:
        if self.mode == EntryMode.GENERAL_WAITLIST:
            return False
        return self.controller.go_back()

    def unload(self) -> bool:
        """Teardown hook: best-effort release of an outstanding hold."""
        return self.controller.on_unload()

    # --- Form actions ---

    def select_service(self, form_id: str, checked: bool = True) -> None:
        if self.context.form is None:
            raise FormInputError("No form is open")
        self.context.form.select_service(form_id, checked)

    def answer(self, question_id: str, value: Any) -> None:
        if self.context.form is None:
            raise FormInputError("No form is open")
        self.context.form.set_answer(question_id, value)

    def submit(self) -> Optional[ConfirmationView]:
        return self.submission.submit(self.controller, self.data)
