"""View adapter the registration app renders through.

Every method is a no-op here; concrete views (terminal, tests) override
what they display.
"""
from typing import List, Optional


class RegistrationView:
    """Presentation surface for one session."""

    # Loading overlay
    def show_loading(self, message: str = "Please wait…") -> None:
        pass

    def update_loading(self, message: str) -> None:
        pass

    def hide_loading(self) -> None:
        pass

    # Messages
    def alert(self, message: str) -> None:
        """Blocking alert (data unavailable, booking failure, validation)."""
        pass

    def notify_error(self, message: str) -> None:
        """Non-blocking, dismissable error notification."""
        pass

    # Event / slots
    def show_event_details(self, text: str) -> None:
        pass

    def show_slots(self, pills: List) -> None:
        pass

    def show_waitlist_option(self) -> None:
        """No slot is bookable: hide the grid, offer the waitlist."""
        pass

    def show_event_cards(self, cards: List) -> None:
        pass

    def show_no_events(self, message: str) -> None:
        pass

    # Form
    def show_form(self, form: Optional[object], timer_visible: bool) -> None:
        pass

    def hide_form(self) -> None:
        pass

    def focus_field(self, field_name: str) -> None:
        """Scroll the first invalid control into view."""
        pass

    def clear_signature(self) -> None:
        pass

    # Countdown
    def show_timer(self, text: str) -> None:
        pass

    def hide_timer(self) -> None:
        pass

    # Result
    def show_confirmation(self, confirmation: object) -> None:
        pass
