#!/usr/bin/env python3
"""Terminal client for event registration.

Usage:
    registration --event-id EVT-100
    registration --campaign-id CMP-1
    registration                      (general registration / waitlist)
    registration --url "https://register.prism.org/?eventId=EVT-100"

Features:
- Slot grid with live hold countdown (/status)
- Waitlist when nothing is bookable
- Dynamic questionnaire per selected service
- Hold released automatically on exit
"""
import argparse
import atexit
import shlex
from typing import List, Optional

from registration import config
from registration.app import RegistrationApp
from registration.attachments import SelectedFile
from registration.forms import DynamicForm
from registration.logging_config import setup_structured_logging
from registration.signature import SignatureMode
from registration.views import RegistrationView


# ANSI color codes
class Colors:
    BLUE = '\033[94m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    RESET = '\033[0m'
    BOLD = '\033[1m'


def print_colored(text: str, color: str = Colors.RESET):
    """Print colored text."""
    print(f"{color}{text}{Colors.RESET}")


CONSENT_FLAGS = {
    "calls": "consent_calls",
    "texts": "consent_texts",
    "emails": "consent_emails",
    "electronic": "electronic_consent",
    "certify": "certify_consent",
}


class ConsoleView(RegistrationView):
    """Prints what a page would show."""

    def __init__(self):
        self.timer_text: Optional[str] = None
        self.form: Optional[DynamicForm] = None

    def show_loading(self, message: str = "Please wait…") -> None:
        print_colored(f"⏳ {message}", Colors.YELLOW)

    def update_loading(self, message: str) -> None:
        print_colored(f"⏳ {message}", Colors.YELLOW)

    def alert(self, message: str) -> None:
        print_colored(f"⚠️  {message}", Colors.RED)

    def notify_error(self, message: str) -> None:
        print_colored(f"❌ {message}", Colors.RED)

    def show_event_details(self, text: str) -> None:
        print()
        print_colored(text, Colors.BOLD)

    def show_slots(self, pills: List) -> None:
        print_colored("Available time slots:", Colors.BLUE)
        for pill in pills:
            if pill.selectable:
                print_colored(f"  [{pill.start_time}] {pill.label}", Colors.GREEN)
            else:
                print(f"   {pill.label} (unavailable)")
        print_colored("Use /book HH:MM to reserve a slot.", Colors.YELLOW)

    def show_waitlist_option(self) -> None:
        print_colored("No time slots are currently available.", Colors.YELLOW)
        print_colored("Use /waitlist to join the waitlist.", Colors.YELLOW)

    def show_event_cards(self, cards: List) -> None:
        print_colored("Upcoming events:", Colors.BLUE)
        for card in cards:
            print_colored(f"  {card.title}", Colors.BOLD)
            print(f"    {card.date_label}  {card.time_label}")
            if card.link:
                print_colored(f"    Register: {card.link}", Colors.GREEN)
            else:
                print("    Registration closed")

    def show_no_events(self, message: str) -> None:
        print_colored(message, Colors.YELLOW)

    def show_form(self, form: Optional[object], timer_visible: bool) -> None:
        self.form = form
        if not timer_visible:
            self.timer_text = None
        print_colored("Registration form opened. Use /help for form commands.", Colors.GREEN)
        print_form(form)

    def hide_form(self) -> None:
        self.form = None

    def focus_field(self, field_name: str) -> None:
        print_colored(f"   → check field: {field_name}", Colors.RED)

    def clear_signature(self) -> None:
        pass

    def show_timer(self, text: str) -> None:
        self.timer_text = text

    def hide_timer(self) -> None:
        self.timer_text = None

    def show_confirmation(self, confirmation: object) -> None:
        print()
        print_colored("=" * 60, Colors.GREEN)
        print_colored(f"✅ {confirmation.title}", Colors.BOLD)
        print_colored("=" * 60, Colors.GREEN)
        print(f"Name:  {confirmation.patient_name}")
        print(f"DOB:   {confirmation.patient_dob}")
        print(f"Event: {confirmation.event_name}")
        if confirmation.event_date:
            print(f"Date:  {confirmation.event_date}")
        if confirmation.appointment_id:
            print(f"Appointment ID: {confirmation.appointment_id}")
        if confirmation.show_qr:
            print("(QR code available in the confirmation email)")
        if confirmation.message:
            print(confirmation.message)


def print_form(form: Optional[DynamicForm]):
    """Print services and the currently visible questions."""
    if form is None:
        return
    if form.supports_service_selection:
        print_colored("Services (/service <id> on|off):", Colors.BLUE)
        for section in form.sections:
            mark = "x" if section.selected else " "
            print(f"  [{mark}] {section.form_id}: {section.service.name}")
    for section in form.render():
        if not section["controls"]:
            continue
        print_colored(section["title"], Colors.BOLD)
        for spec in section["controls"]:
            flag = "*" if spec.required else " "
            value = form.control(spec.name).answer_text()
            options = f" ({' / '.join(spec.options)})" if spec.options else ""
            print(f" {flag} {spec.name}: {spec.label}{options} = {value!r}")


def print_help():
    print_colored("Commands:", Colors.YELLOW)
    print_colored("  /book HH:MM              - Reserve a slot", Colors.YELLOW)
    print_colored("  /waitlist                - Join the waitlist", Colors.YELLOW)
    print_colored("  /back                    - Release the slot and go back", Colors.YELLOW)
    print_colored("  /status                  - Show reservation and time left", Colors.YELLOW)
    print_colored("  /form                    - Show the questionnaire", Colors.YELLOW)
    print_colored("  /service <id> on|off     - Toggle a service", Colors.YELLOW)
    print_colored("  /answer <id> <value>     - Answer a question", Colors.YELLOW)
    print_colored("  /field <name> <value>    - Set a patient field (firstName, dob, ...)", Colors.YELLOW)
    print_colored("  /consent <kind>          - calls|texts|emails|electronic|certify", Colors.YELLOW)
    print_colored("  /insurance yes|no        - Toggle the insurance section", Colors.YELLOW)
    print_colored("  /records <file> ...      - Attach medical records", Colors.YELLOW)
    print_colored("  /sign <full name>        - Type your signature", Colors.YELLOW)
    print_colored("  /submit                  - Submit the registration", Colors.YELLOW)
    print_colored("  /quit                    - Exit (releases any held slot)", Colors.YELLOW)


def handle_command(app: RegistrationApp, view: ConsoleView, line: str) -> bool:
    """
    Run one command.

    Returns:
        False when the user asked to quit
    """
    parts = shlex.split(line)
    cmd, args = parts[0].lower(), parts[1:]
    data = app.data

    if cmd in ("/quit", "/exit"):
        return False
    if cmd == "/help":
        print_help()
    elif cmd == "/book" and args:
        app.select_slot(args[0])
    elif cmd == "/waitlist":
        app.join_waitlist()
    elif cmd == "/back":
        if not app.go_back():
            print_colored("Nothing to go back from.", Colors.YELLOW)
    elif cmd == "/status":
        print_colored(f"State: {app.controller.state.value}", Colors.BLUE)
        if app.context.selected_slot_time:
            print_colored(f"Slot: {app.context.selected_slot_time}", Colors.BLUE)
        if view.timer_text:
            print_colored(f"Time remaining: {view.timer_text}", Colors.BLUE)
    elif cmd == "/form":
        print_form(app.form)
    elif cmd == "/service" and args:
        app.select_service(args[0], checked=(args[1:] or ["on"])[0].lower() != "off")
        print_form(app.form)
    elif cmd == "/answer" and len(args) >= 2:
        app.answer(args[0], " ".join(args[1:]))
        print_form(app.form)
    elif cmd == "/field" and len(args) >= 2:
        data.values[args[0]] = " ".join(args[1:])
    elif cmd == "/consent" and args and args[0].lower() in CONSENT_FLAGS:
        setattr(data, CONSENT_FLAGS[args[0].lower()], True)
    elif cmd == "/insurance" and args:
        data.has_insurance = args[0].lower() == "yes"
    elif cmd == "/records" and args:
        data.has_records = True
        summary = data.files.select(SelectedFile.from_path(path) for path in args)
        print_colored(summary, Colors.GREEN)
    elif cmd == "/sign" and args:
        data.signature.mode = SignatureMode.TYPE
        data.signature.typed_name = " ".join(args)
    elif cmd == "/submit":
        app.submit()
    else:
        print_colored(f"❌ Unknown command: {line}", Colors.RED)
    return True


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Event registration terminal client")
    parser.add_argument("--event-id", help="Register for one event")
    parser.add_argument("--campaign-id", help="List events of a campaign")
    parser.add_argument("--facility-id", help="List events at a facility")
    parser.add_argument("--url", help="Registration link (query parameters are used)")
    return parser.parse_args(argv)


def entry_from_args(args: argparse.Namespace):
    if args.url:
        return args.url
    return {
        "eventId": args.event_id,
        "campaignId": args.campaign_id,
        "facilityId": args.facility_id,
    }


def main(argv=None):
    """Main interactive loop."""
    args = parse_args(argv)
    setup_structured_logging(config.LOG_LEVEL)

    view = ConsoleView()
    app = RegistrationApp(entry_from_args(args), view)
    atexit.register(app.unload)

    print_colored("=" * 60, Colors.BLUE)
    print_colored("🏥 Event Registration - Terminal Client", Colors.BOLD)
    print_colored("=" * 60, Colors.BLUE)
    print_colored(f"Session: {app.context.session_id}", Colors.YELLOW)

    if not app.start():
        return 1
    print_help()

    while True:
        try:
            line = input("> ").strip()
            if not line:
                continue
            if not line.startswith("/"):
                print_colored("Commands start with '/'. Try /help.", Colors.YELLOW)
                continue
            if not handle_command(app, view, line):
                break
        except (ValueError, OSError) as e:
            # FormInputError, AttachmentTooLargeError, unreadable file
            print_colored(f"❌ {e}", Colors.RED)
        except (KeyboardInterrupt, EOFError):
            print()
            break

    app.unload()
    print_colored("👋 Goodbye!", Colors.YELLOW)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
