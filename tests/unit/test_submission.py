"""Tests for submission validation, package assembly and confirmation."""
from datetime import date

import pytest

from conftest import FIXED_TODAY, valid_form_data
from registration import config
from registration.attachments import SelectedFile
from registration.forms import build_dynamic_form
from registration.gateway import BackendError
from registration.models import Event, SubmissionResult
from registration.signature import SignatureMode
from registration.state import ReservationState
from registration.submission import (
    CONFIRMATION_TITLE,
    MSG_CONSENT,
    MSG_FORM_LOADING,
    MSG_GUARDIAN,
    MSG_REQUIRED,
    MSG_SERVICES,
    MSG_SUBMIT_FAILED,
    SubmissionFlow,
    ValidationFailure,
    assemble_package,
    build_confirmation,
    is_minor,
    validate_submission,
)


@pytest.fixture
def form(event, snapshot):
    return build_dynamic_form(event, snapshot.questions)


@pytest.fixture
def flow(gateway, view):
    return SubmissionFlow(gateway, view, today=lambda: FIXED_TODAY)


def reasons(data, form, is_waitlist=False):
    with pytest.raises(ValidationFailure) as exc_info:
        validate_submission(data, form, is_waitlist, FIXED_TODAY)
    return exc_info.value


class TestValidationOrder:
    """Checks run in order and stop at the first failure."""

    def test_consent_checked_first(self, form):
        data = valid_form_data()
        data.consent_calls = False
        data.signature.clear()
        failure = reasons(data, form)
        assert failure.message == MSG_CONSENT
        assert failure.field == "consentCalls"

    def test_any_contact_method_counts(self, form):
        data = valid_form_data()
        data.consent_calls = False
        data.consent_emails = True
        form.select_service("vax")
        form.set_answer("vax_sick", "No")
        validate_submission(data, form, False, FIXED_TODAY)

    def test_signature_missing_in_draw_mode(self, form):
        data = valid_form_data()
        data.signature.clear()
        failure = reasons(data, form)
        assert failure.message == "Please provide a signature by drawing it."
        assert failure.field == "signature"

    def test_signature_missing_in_type_mode(self, form):
        data = valid_form_data()
        data.signature.mode = SignatureMode.TYPE
        data.signature.typed_name = "   "
        assert reasons(data, form).message == "Please provide a signature by typing your name."

    def test_service_required_when_event_offers_services(self, form):
        failure = reasons(valid_form_data(), form)
        assert failure.message == MSG_SERVICES

    def test_waitlist_skips_service_check(self, form):
        validate_submission(valid_form_data(), form, True, FIXED_TODAY)

    def test_event_without_forms_skips_service_check(self):
        form = build_dynamic_form(Event(event_id="E"), [])
        validate_submission(valid_form_data(), form, False, FIXED_TODAY)

    def test_required_visible_questions(self, form):
        form.select_service("vax")
        failure = reasons(valid_form_data(), form)
        assert failure.message == MSG_REQUIRED
        assert failure.field == "vax_sick"

    def test_hidden_required_questions_do_not_block(self, form):
        form.select_service("vax")
        form.set_answer("vax_sick", "No")
        validate_submission(valid_form_data(), form, False, FIXED_TODAY)

    def test_guardian_required_for_minor(self, form):
        form.select_service("vax")
        form.set_answer("vax_sick", "No")
        data = valid_form_data(dob="2015-06-01")
        failure = reasons(data, form)
        assert failure.message == MSG_GUARDIAN
        assert failure.field == "parentName"

        data.values.update(parentName="Pat Doe", parentRel="Mother")
        validate_submission(data, form, False, FIXED_TODAY)

    def test_is_minor(self):
        assert is_minor("2010-01-01", date(2026, 3, 1))
        assert not is_minor("2000-01-01", date(2026, 3, 1))
        assert not is_minor("", date(2026, 3, 1))
        assert not is_minor("garbage", date(2026, 3, 1))


class TestAssemblePackage:

    def test_package_contents(self, form):
        form.select_service("vax")
        form.set_answer("vax_sick", "Yes")
        form.set_answer("vax_detail", "Cough")
        data = valid_form_data(email="jane@example.com")
        data.certify_consent = True

        payload = assemble_package("EVT-1", "09:00", False, form, data).to_payload()

        assert payload["eventId"] == "EVT-1"
        assert payload["slotTime"] == "09:00"
        assert payload["selectedServices"] == [{"id": "vax", "name": "Vaccines"}]
        assert payload["formResponses"] == [
            {"questionId": "vax_sick", "answer": "Yes"},
            {"questionId": "vax_detail", "answer": "Cough"},
            {"questionId": "vax_allergy", "answer": ""},
        ]
        assert set(payload["demographics"]) == set(config.DEMOGRAPHIC_FIELDS)
        assert payload["demographics"]["email"] == "jane@example.com"
        assert payload["demographics"]["middleName"] == ""
        assert set(payload["insurance"]) == set(config.INSURANCE_FIELDS)
        assert payload["signature"].startswith("data:image/png;base64,")
        assert payload["vaxConsent"] is True
        assert payload["medicalRecords"] == []

    def test_records_only_sent_when_toggled(self, form):
        data = valid_form_data()
        data.files.select([SelectedFile("shot.pdf", b"%PDF", "application/pdf")])
        assert assemble_package("EVT-1", "09:00", False, form, data).medical_records == []

        data.has_records = True
        records = assemble_package("EVT-1", "09:00", False, form, data).medical_records
        assert [r.name for r in records] == ["shot.pdf"]


class TestConfirmation:

    def test_booked_confirmation_shows_qr(self, event):
        result = SubmissionResult(appointment_id="A1", qr_base64="QRDATA", is_waitlist=False)
        confirmation = build_confirmation(result, valid_form_data(), event, general_registration=False)
        assert confirmation.title == CONFIRMATION_TITLE
        assert confirmation.patient_name == "Jane Doe"
        assert confirmation.event_name == "Spring Clinic"
        assert confirmation.event_date == "3/10/2026"
        assert confirmation.appointment_id == "A1"
        assert confirmation.qr_image_src == "data:image/png;base64,QRDATA"
        assert confirmation.message is None

    def test_waitlist_confirmation_has_message_not_qr(self, event):
        result = SubmissionResult(appointment_id="A2", is_waitlist=True)
        confirmation = build_confirmation(result, valid_form_data(), event, general_registration=False)
        assert not confirmation.show_qr
        assert confirmation.message == config.WAITLIST_THANK_YOU

    def test_general_registration_uses_waitlist_name(self):
        result = SubmissionResult(is_waitlist=True)
        confirmation = build_confirmation(result, valid_form_data(), None, general_registration=True)
        assert confirmation.event_name == config.WAITLIST_EVENT_NAME
        assert confirmation.event_date is None


class TestSubmissionFlow:

    def test_validation_failure_sends_nothing(self, flow, controller, gateway, view, form):
        controller.context.form = form
        controller.select_slot("09:00")
        data = valid_form_data()
        data.consent_calls = False

        assert flow.submit(controller, data) is None

        gateway.submit_form.assert_not_called()
        assert MSG_CONSENT in view.alerts
        assert ("focus_field", ("consentCalls",)) in view.calls
        assert controller.state == ReservationState.HELD

    def test_datasets_not_loaded(self, flow, controller, gateway, view):
        controller.context.datasets = None
        assert flow.submit(controller, valid_form_data()) is None
        assert view.alerts == [MSG_FORM_LOADING]
        gateway.submit_form.assert_not_called()

    def test_successful_submit(self, flow, controller, gateway, view, form, scheduler):
        controller.context.form = form
        controller.select_slot("09:00")
        form.select_service("tb")
        form.set_answer("tb_prior", "No")
        gateway.submit_form.return_value = SubmissionResult(appointment_id="A9", qr_base64="QR")

        confirmation = flow.submit(controller, valid_form_data())

        assert confirmation.appointment_id == "A9"
        package = gateway.submit_form.call_args[0][0]
        assert package.slot_time == "09:00"
        assert [s.id for s in package.selected_services] == ["tb"]
        assert controller.state == ReservationState.SUBMITTED
        assert scheduler.active == []
        assert view.names()[-3:] == ["hide_timer", "hide_form", "show_confirmation"]

    def test_backend_failure_keeps_hold_and_data(self, flow, controller, gateway, view, form, scheduler):
        controller.context.form = form
        controller.select_slot("09:00")
        form.select_service("tb")
        form.set_answer("tb_prior", "No")
        gateway.submit_form.side_effect = BackendError("boom")

        assert flow.submit(controller, valid_form_data()) is None

        assert view.args_of("notify_error") == [(MSG_SUBMIT_FAILED,)]
        assert controller.state == ReservationState.HELD
        assert len(scheduler.active) == 1
        assert form.control("tb_prior").value == "No"
        assert view.names()[-1] == "hide_loading"

    def test_submit_without_reservation_is_noop(self, flow, controller, gateway):
        controller.context.form = build_dynamic_form(None, [])
        assert flow.submit(controller, valid_form_data()) is None
        gateway.submit_form.assert_not_called()
