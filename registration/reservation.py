"""Slot reservation controller.

Owns the one hold a session may have: book on select, count down, release
on go-back / expiry / unload, and re-render the slot list after a
conflict. The backend is the source of truth for slot status; the client
only keeps its own reservation consistent.

Threading: view callbacks and the countdown tick may arrive on different
threads. Every state change happens under one lock, and network calls run
outside it with the state already moved to an intermediate value
(BOOKING / RELEASED / SUBMITTING) so a racing tick or click sees a state
it ignores instead of queueing behind the call.
"""
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Optional

from registration import availability, config
from registration.countdown import Countdown, ThreadScheduler, cancel_timer
from registration.datasets import DatasetRepository, DatasetUnavailableError
from registration.gateway import BackendError, BookingConflictError, RemoteGateway
from registration.logging_config import get_logger
from registration.session import Reservation, SessionContext
from registration.state import ReservationState, validate_transition
from registration.views import RegistrationView

logger = get_logger(__name__)

MSG_SLOT_TAKEN = "This slot was just taken. Please select another."
MSG_BOOKING_FAILED = "We couldn't reserve this slot. Please try again."
MSG_SESSION_EXPIRED = "Your session has expired. The slot has been released."


class InvalidTransition(Exception):
    """Raised on a reservation state change the lifecycle does not allow."""
    pass


# Shared by every controller; its workers are joined at interpreter exit
_release_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="release")


def run_in_background(fn: Callable, *args) -> None:
    _release_executor.submit(fn, *args)


class ReservationController:
    """State machine for the session's single reservation."""

    def __init__(
        self,
        context: SessionContext,
        gateway: RemoteGateway,
        repository: DatasetRepository,
        view: RegistrationView,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = datetime.now,
        scheduler=None,
        background: Optional[Callable] = None,
        hold_seconds: float = config.HOLD_TIMEOUT_SECONDS,
        tick_interval: float = config.TICK_INTERVAL_SECONDS
    ):
        """
        Args:
            context: Session the reservation belongs to
            gateway: Backend RPC client
            repository: Dataset source, used to re-fetch slots after a conflict
            view: Presentation surface
            clock: Monotonic clock for the countdown
            now: Wall clock for slot availability
            scheduler: Provides schedule_repeating(interval, callback)
            background: Runs fn(*args) without waiting (expiry release)
            hold_seconds: Hold duration
            tick_interval: Countdown refresh period
        """
        self.context = context
        self.gateway = gateway
        self.repository = repository
        self.view = view
        self.clock = clock
        self.now = now
        self.scheduler = scheduler or ThreadScheduler()
        self.background = background or run_in_background
        self.hold_seconds = hold_seconds
        self.tick_interval = tick_interval
        self._lock = threading.RLock()
        self._state_before_submit: Optional[ReservationState] = None

    @property
    def state(self) -> ReservationState:
        return self.context.state

    @property
    def reservation(self) -> Optional[Reservation]:
        return self.context.reservation

    def _transition(self, intended: ReservationState) -> None:
        current = self.context.state
        if not validate_transition(current, intended):
            raise InvalidTransition(f"{current.value} -> {intended.value}")
        logger.debug("reservation_transition", from_state=current.value, to_state=intended.value)
        self.context.state = intended

    def _cancel_timer(self) -> None:
        cancel_timer(self.context.timer)
        self.context.timer = None

    def _event_header(self) -> str:
        return availability.format_event_details(self.context.event)

    # --- Slot list ---

    def render_slots(self) -> bool:
        """
        Show the slot grid, or the waitlist option when nothing is bookable.

        Returns:
            True if at least one slot is available
        """
        event = self.context.event
        datasets = self.context.datasets
        if event is None or datasets is None:
            return False

        slots = datasets.slots_for_event(event.event_id)
        now = self.now()
        if not availability.available_slots(event, slots, now):
            self.view.show_waitlist_option()
            return False

        self.view.show_slots(availability.build_slot_pills(event, slots, now))
        return True

    def _refresh_slots_after_conflict(self) -> None:
        try:
            self.repository.refresh_slots(self.context.datasets)
        except DatasetUnavailableError as e:
            logger.warning("slot_refresh_failed", error=str(e))
        self.render_slots()

    # --- Operations ---

    def select_slot(self, start_time: str) -> bool:
        """
        Place a hold on a slot.

        No-op (returns False) unless nothing is selected yet, so a rapid
        second click never issues a second booking call.

        Returns:
            True if the hold was granted
        """
        with self._lock:
            if self.context.state != ReservationState.NO_SELECTION:
                logger.info("select_slot_ignored", state=self.context.state.value, start_time=start_time)
                return False
            event = self.context.event
            if event is None:
                logger.warning("select_slot_without_event", start_time=start_time)
                return False
            self._transition(ReservationState.BOOKING)

        self.view.show_loading("Checking Availability...")
        try:
            try:
                self.gateway.book_slot(event.event_id, start_time)
            except BackendError as e:
                with self._lock:
                    self._transition(ReservationState.NO_SELECTION)
                conflict = isinstance(e, BookingConflictError)
                logger.warning(
                    "booking_failed",
                    event_id=event.event_id,
                    start_time=start_time,
                    conflict=conflict,
                    error=str(e),
                )
                self.view.alert(MSG_SLOT_TAKEN if conflict else MSG_BOOKING_FAILED)
                self._refresh_slots_after_conflict()
                return False

            with self._lock:
                countdown = Countdown(self.hold_seconds, clock=self.clock)
                self.context.reservation = Reservation(
                    event_id=event.event_id,
                    slot_time=start_time,
                    countdown=countdown,
                )
                self._transition(ReservationState.HELD)
                self.context.timer = self.scheduler.schedule_repeating(self.tick_interval, self.tick)

            logger.info("slot_held", event_id=event.event_id, start_time=start_time)
            self.view.update_loading("Slot Selected!")
            self.view.show_timer(countdown.display())
            self.view.show_event_details(f"{self._event_header()}\nSelected Time Slot: {start_time}")
            self.view.clear_signature()
            return True
        finally:
            self.view.hide_loading()

    def tick(self) -> None:
        """Countdown refresh; releases the hold once the deadline passes."""
        with self._lock:
            reservation = self.context.reservation
            if self.context.state != ReservationState.HELD or reservation is None:
                return
            countdown = reservation.countdown
            if countdown is None:
                return
            if not countdown.expired():
                self.view.show_timer(countdown.display())
                return

            self._cancel_timer()
            self._transition(ReservationState.EXPIRED)
            self.context.reservation = None
            self.context.form = None
            self._transition(ReservationState.NO_SELECTION)

        logger.info("hold_expired", event_id=reservation.event_id, start_time=reservation.slot_time)
        self.background(self._release_quietly, reservation.event_id, reservation.slot_time)

        self.view.hide_form()
        self.view.hide_timer()
        self.view.show_event_details(self._event_header())
        self.render_slots()
        self.view.alert(MSG_SESSION_EXPIRED)

    def _release_quietly(self, event_id: str, start_time: str) -> None:
        try:
            self.gateway.release_slot(event_id, start_time)
        except BackendError as e:
            logger.error("release_failed", event_id=event_id, start_time=start_time, error=str(e))

    def go_back(self) -> bool:
        """
        Abandon the current hold or waitlist entry.

        The release call is attempted; its outcome never blocks the reset.

        Returns:
            True if there was something to abandon
        """
        with self._lock:
            if self.context.state not in (ReservationState.HELD, ReservationState.WAITLISTED):
                logger.info("go_back_ignored", state=self.context.state.value)
                return False
            self._cancel_timer()
            held = self.context.reservation
            self._transition(ReservationState.RELEASED)

        self.view.show_loading("Releasing Time Slot...")
        try:
            if held is not None and held.slot_time:
                self.gateway.release_slot(held.event_id, held.slot_time)
        except BackendError as e:
            logger.error("release_failed_proceeding_with_reset", error=str(e))
        finally:
            with self._lock:
                self.context.reservation = None
                self.context.form = None
                self._transition(ReservationState.NO_SELECTION)
            self.view.hide_form()
            self.view.hide_timer()
            self.view.show_event_details(self._event_header())
            self.render_slots()
            self.view.hide_loading()
        return True

    def on_unload(self) -> bool:
        """
        Page teardown with a hold outstanding: fire a release beacon.

        Returns:
            True if a beacon was sent
        """
        with self._lock:
            reservation = self.context.reservation
            if self.context.state != ReservationState.HELD or reservation is None or not reservation.slot_time:
                return False
            self._cancel_timer()
            self._transition(ReservationState.RELEASED)
            self.context.reservation = None
            self._transition(ReservationState.NO_SELECTION)

        return self.gateway.send_release_beacon(reservation.event_id, reservation.slot_time)

    def join_waitlist(self) -> bool:
        """Enter the slot-less, countdown-free waitlist equivalent of a hold."""
        with self._lock:
            if self.context.state != ReservationState.NO_SELECTION:
                logger.info("join_waitlist_ignored", state=self.context.state.value)
                return False
            event_id = self.context.event_id or config.WAITLIST_EVENT_ID
            self.context.reservation = Reservation(event_id=event_id, is_waitlist=True)
            self._transition(ReservationState.WAITLISTED)

        logger.info("waitlist_joined", event_id=event_id)
        self.view.hide_timer()
        if self.context.event is not None:
            self.view.show_event_details(f"{self._event_header()}\nJoining the Waitlist")
        self.view.clear_signature()
        return True

    # --- Submission hooks ---

    def begin_submit(self) -> Optional[Reservation]:
        """
        Mark the reservation as being submitted.

        Returns:
            The reservation, or None if there is nothing to submit (or a
            submit is already in flight)
        """
        with self._lock:
            if self.context.state not in (ReservationState.HELD, ReservationState.WAITLISTED):
                logger.info("submit_ignored", state=self.context.state.value)
                return None
            self._state_before_submit = self.context.state
            self._transition(ReservationState.SUBMITTING)
            return self.context.reservation

    def finish_submit(self, succeeded: bool) -> None:
        with self._lock:
            if self.context.state != ReservationState.SUBMITTING:
                return
            if succeeded:
                self._cancel_timer()
                self._transition(ReservationState.SUBMITTED)
                self.context.reservation = None
            else:
                self._transition(self._state_before_submit or ReservationState.HELD)
            self._state_before_submit = None
