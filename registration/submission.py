"""Submission validation, payload assembly and the submit/confirm step.

Validation runs in a fixed order and stops at the first failure; nothing
is sent unless every check passes. The package is built fresh for each
attempt and sent in one call.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, Optional

from registration import config
from registration.attachments import FileSelection
from registration.datasets import DatasetUnavailableError
from registration.forms import DynamicForm
from registration.gateway import BackendError, RemoteGateway
from registration.logging_config import get_logger
from registration.models import Event, SubmissionPackage, SubmissionResult
from registration.signature import SignatureInput
from registration.views import RegistrationView

logger = get_logger(__name__)

MSG_CONSENT = "Please consent to at least one method of contact to continue."
MSG_SERVICES = "Please select at least one service to continue."
MSG_REQUIRED = "Please answer all required questions before submitting."
MSG_GUARDIAN = "Please provide the parent/guardian name and relationship."
MSG_FORM_LOADING = "Form data is still loading. Please wait a moment and try again."
MSG_SUBMIT_FAILED = "There was an error submitting your registration."
CONFIRMATION_TITLE = "Registration Confirmed"


class ValidationFailure(Exception):
    """A submission check failed; field names the control to focus."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


@dataclass
class RegistrationFormData:
    """Fixed (non-dynamic) part of the registration form."""
    values: Dict[str, str] = field(default_factory=dict)
    consent_calls: bool = False
    consent_texts: bool = False
    consent_emails: bool = False
    electronic_consent: bool = False
    certify_consent: bool = False
    has_insurance: bool = False
    has_records: bool = False
    signature: SignatureInput = field(default_factory=SignatureInput)
    files: FileSelection = field(default_factory=FileSelection)

    def get(self, name: str) -> str:
        return self.values.get(name) or ""

    def has_contact_consent(self) -> bool:
        return self.consent_calls or self.consent_texts or self.consent_emails


def age_in_years(dob: date, today: date) -> float:
    return (today - dob).days / 365.25


def is_minor(dob_text: str, today: date) -> bool:
    """True if the date of birth (YYYY-MM-DD) is under the adult age."""
    if not dob_text:
        return False
    try:
        dob = date.fromisoformat(dob_text.strip())
    except ValueError:
        return False
    return age_in_years(dob, today) < config.ADULT_AGE_YEARS


def guardian_required(data: RegistrationFormData, today: date) -> bool:
    return is_minor(data.get("dob"), today)


def validate_submission(
    data: RegistrationFormData,
    form: Optional[DynamicForm],
    is_waitlist: bool,
    today: date
) -> None:
    """
    Run the submission checks in order.

    Raises:
        ValidationFailure: First failing check
    """
    if not data.has_contact_consent():
        raise ValidationFailure(MSG_CONSENT, "consentCalls")

    if not data.signature.is_provided():
        raise ValidationFailure(data.signature.missing_message(), "signature")

    if form is not None and form.supports_service_selection and not is_waitlist:
        if not form.selected_services():
            raise ValidationFailure(MSG_SERVICES, "services")

    if form is not None:
        missing = form.missing_required()
        if missing:
            raise ValidationFailure(MSG_REQUIRED, missing[0].question_id)

    if guardian_required(data, today):
        for name in config.GUARDIAN_REQUIRED_FIELDS:
            if not data.get(name).strip():
                raise ValidationFailure(MSG_GUARDIAN, name)


def assemble_package(
    event_id: str,
    slot_time: Optional[str],
    is_waitlist: bool,
    form: Optional[DynamicForm],
    data: RegistrationFormData
) -> SubmissionPackage:
    """Build the one payload sent to submitForm."""
    return SubmissionPackage(
        event_id=event_id,
        slot_time=slot_time,
        is_waitlist=is_waitlist,
        selected_services=form.selected_services() if form else [],
        demographics={name: data.get(name) for name in config.DEMOGRAPHIC_FIELDS},
        insurance={name: data.get(name) for name in config.INSURANCE_FIELDS},
        medical_records=data.files.encode() if data.has_records else [],
        form_responses=form.responses() if form else [],
        signature=data.signature.to_data_url(),
        consent_calls=data.consent_calls,
        consent_texts=data.consent_texts,
        consent_emails=data.consent_emails,
        electronic_consent=data.electronic_consent,
        vax_consent=data.certify_consent,
    )


@dataclass(frozen=True)
class ConfirmationView:
    """What the confirmation screen shows."""
    title: str
    patient_name: str
    patient_dob: str
    event_name: str
    event_date: Optional[str]
    appointment_id: Optional[str] = None
    qr_image_src: Optional[str] = None
    message: Optional[str] = None

    @property
    def show_qr(self) -> bool:
        return self.qr_image_src is not None


def _short_date(value: Optional[date], fallback: str) -> str:
    if value is None:
        return fallback
    return f"{value.month}/{value.day}/{value.year}"


def build_confirmation(
    result: SubmissionResult,
    data: RegistrationFormData,
    event: Optional[Event],
    general_registration: bool
) -> ConfirmationView:
    if general_registration:
        event_name = config.WAITLIST_EVENT_NAME
        event_date = None
    else:
        event_name = event.name if event else "Your Event"
        event_date = _short_date(event.event_date, event.date_text) if event else ""

    common = dict(
        title=CONFIRMATION_TITLE,
        patient_name=f"{data.get('firstName')} {data.get('lastName')}",
        patient_dob=data.get("dob"),
        event_name=event_name,
        event_date=event_date,
    )
    if result.is_waitlist:
        return ConfirmationView(message=config.WAITLIST_THANK_YOU, **common)
    return ConfirmationView(
        appointment_id=result.appointment_id,
        qr_image_src=f"data:image/png;base64,{result.qr_base64 or ''}",
        **common,
    )


class SubmissionFlow:
    """Validate, package, send and confirm."""

    def __init__(
        self,
        gateway: RemoteGateway,
        view: RegistrationView,
        today: Callable[[], date] = date.today
    ):
        self.gateway = gateway
        self.view = view
        self.today = today

    def submit(self, controller, data: RegistrationFormData) -> Optional[ConfirmationView]:
        """
        Returns:
            The confirmation shown, or None if the attempt stopped (validation,
            nothing held, backend failure). Entered data is never discarded.
        """
        context = controller.context
        form = context.form

        try:
            if context.datasets is None:
                raise DatasetUnavailableError(MSG_FORM_LOADING)
            validate_submission(data, form, context.is_waitlist, self.today())
        except ValidationFailure as e:
            logger.info("submission_invalid", reason=e.message, field=e.field)
            self.view.alert(e.message)
            if e.field:
                self.view.focus_field(e.field)
            return None
        except DatasetUnavailableError as e:
            self.view.alert(str(e))
            return None

        reservation = controller.begin_submit()
        if reservation is None:
            return None

        self.view.show_loading("Preparing your files...")
        succeeded = False
        try:
            package = assemble_package(
                event_id=reservation.event_id,
                slot_time=reservation.slot_time,
                is_waitlist=reservation.is_waitlist,
                form=form,
                data=data,
            )
            self.view.update_loading("Submitting registration...")
            result = self.gateway.submit_form(package)
            succeeded = True
        except BackendError as e:
            logger.error("submission_failed", event_id=reservation.event_id, error=str(e))
            self.view.notify_error(MSG_SUBMIT_FAILED)
            return None
        finally:
            controller.finish_submit(succeeded)
            self.view.hide_loading()

        logger.info(
            "submission_confirmed",
            event_id=reservation.event_id,
            appointment_id=result.appointment_id,
            is_waitlist=result.is_waitlist,
        )
        confirmation = build_confirmation(
            result,
            data,
            context.event,
            general_registration=reservation.event_id == config.WAITLIST_EVENT_ID,
        )
        self.view.hide_timer()
        self.view.hide_form()
        self.view.show_confirmation(confirmation)
        return confirmation
