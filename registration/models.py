"""Data models for events, slots, questions and the submission package.

Rows arrive from published spreadsheets as string-keyed mappings; the
aliases below are the sheet column names. Python-side code constructs
models by field name (populate_by_name).
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union, get_args

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from registration import config

SHEET_DATE_FORMATS = ("%m/%d/%Y", "%Y-%m-%d", "%m/%d/%y")


def clean_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Trim whitespace from column headers (sheets carry stray spaces)."""
    return {str(key).strip(): value for key, value in row.items() if key is not None}


def split_list(value: Any) -> List[str]:
    """Split a comma-separated sheet cell into trimmed, non-empty items."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = str(value).split(",")
    return [str(item).strip() for item in items if str(item).strip()]


def parse_sheet_date(value: str) -> Optional[date]:
    """Parse the date formats the events sheet uses (M/D/YYYY primarily)."""
    text = (value or "").strip()
    for fmt in SHEET_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


class _SheetRow(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _strip_strings(cls, data):
        if isinstance(data, Mapping):
            return {key: value.strip() if isinstance(value, str) else value for key, value in data.items()}
        return data


class Event(_SheetRow):
    """A registration event, looked up by id for the whole session."""
    event_id: str = Field(..., alias="EventID", min_length=1)
    name: str = Field(default="", alias="Event Name")
    date_text: str = Field(default="", alias="Date")
    start_time: str = Field(default="", alias="Start Time")
    end_time: str = Field(default="", alias="End Time")
    campaign_id: Optional[str] = Field(default=None, alias="CampaignID")
    facility_id: Optional[str] = Field(default=None, alias="FacilityID")
    forms: List[str] = Field(default_factory=list, alias="Forms")
    service_names: List[str] = Field(default_factory=list, alias="Service Names")
    consent_html: Optional[str] = Field(default=None, alias="Consent HTML")

    @field_validator("forms", "service_names", mode="before")
    @classmethod
    def _split(cls, v):
        return split_list(v)

    @field_validator("campaign_id", "facility_id", "consent_html", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if v is None or not str(v).strip():
            return None
        return str(v).strip()

    @property
    def event_date(self) -> Optional[date]:
        return parse_sheet_date(self.date_text)

    @property
    def supports_service_selection(self) -> bool:
        return bool(self.forms)

    def services(self) -> List["Service"]:
        """Selectable services, names aligned positionally with form ids."""
        services = []
        for index, form_id in enumerate(self.forms):
            if index < len(self.service_names) and self.service_names[index]:
                name = self.service_names[index]
            else:
                name = form_id.upper()
            services.append(Service(id=form_id, name=name))
        return services


class Slot(_SheetRow):
    """A bookable time window within one event."""
    event_id: str = Field(..., alias="EventID", min_length=1)
    start_time: str = Field(..., alias="Start Time", min_length=1)
    end_time: str = Field(default="", alias="End Time")
    status: str = Field(default="", alias="Status")

    @property
    def is_open(self) -> bool:
        return self.status == config.SLOT_STATUS_OPEN

    @property
    def label(self) -> str:
        return f"{self.start_time} – {self.end_time}"


# --- Question definitions (closed tagged union on question_type) ---

class _QuestionBase(_SheetRow):
    question_id: str = Field(..., alias="QuestionID", min_length=1)
    form_id: str = Field(..., alias="FormID")
    text: str = Field(default="", alias="QuestionText")
    required: bool = Field(default=False, alias="IsRequired")
    display_order: float = Field(default=float("inf"), alias="DisplayOrder")
    trigger_id: Optional[str] = Field(default=None, alias="TriggerID")
    trigger_value: Optional[str] = Field(default=None, alias="TriggerValue")

    @field_validator("required", mode="before")
    @classmethod
    def _parse_required(cls, v):
        if isinstance(v, bool):
            return v
        return str(v or "false").strip().lower() == "true"

    @field_validator("display_order", mode="before")
    @classmethod
    def _parse_order(cls, v):
        try:
            return float(str(v).strip())
        except (TypeError, ValueError):
            return float("inf")

    @field_validator("trigger_id", "trigger_value", mode="before")
    @classmethod
    def _blank_trigger(cls, v):
        if v is None or not str(v).strip():
            return None
        return str(v).strip()

    @property
    def is_conditional(self) -> bool:
        return self.trigger_id is not None

    @property
    def expected_trigger_value(self) -> str:
        return self.trigger_value or config.DEFAULT_TRIGGER_VALUE

    @property
    def collects_answer(self) -> bool:
        return True


class _ChoiceQuestion(_QuestionBase):
    options: List[str] = Field(default_factory=list, alias="Options")

    @field_validator("options", mode="before")
    @classmethod
    def _split_options(cls, v):
        return split_list(v)


class SingleSelectQuestion(_ChoiceQuestion):
    question_type: Literal["single_select"] = Field("single_select", alias="QuestionType")


class MultiSelectQuestion(_ChoiceQuestion):
    question_type: Literal["multi_select"] = Field("multi_select", alias="QuestionType")


class YesNoQuestion(_QuestionBase):
    question_type: Literal["radio_yes_no"] = Field("radio_yes_no", alias="QuestionType")

    @property
    def options(self) -> List[str]:
        return ["Yes", "No"]


class CustomRadioQuestion(_ChoiceQuestion):
    question_type: Literal["radio_custom"] = Field("radio_custom", alias="QuestionType")


class TextQuestion(_QuestionBase):
    question_type: Literal["text"] = Field("text", alias="QuestionType")


class TextAreaQuestion(_QuestionBase):
    question_type: Literal["text_area"] = Field("text_area", alias="QuestionType")


class DateQuestion(_QuestionBase):
    question_type: Literal["date"] = Field("date", alias="QuestionType")


class SignatureQuestion(_QuestionBase):
    """Marks where the signature pad sits; carries no answer of its own."""
    question_type: Literal["signature"] = Field("signature", alias="QuestionType")

    @property
    def collects_answer(self) -> bool:
        return False


QuestionDefinition = Annotated[
    Union[
        SingleSelectQuestion,
        MultiSelectQuestion,
        YesNoQuestion,
        CustomRadioQuestion,
        TextQuestion,
        TextAreaQuestion,
        DateQuestion,
        SignatureQuestion,
    ],
    Field(discriminator="question_type"),
]

QUESTION_VARIANTS = (
    SingleSelectQuestion,
    MultiSelectQuestion,
    YesNoQuestion,
    CustomRadioQuestion,
    TextQuestion,
    TextAreaQuestion,
    DateQuestion,
    SignatureQuestion,
)

QUESTION_TYPE_TAGS = {
    get_args(variant.model_fields["question_type"].annotation)[0]: variant
    for variant in QUESTION_VARIANTS
}

# Tags seen in older sheets
QUESTION_TYPE_ALIASES = {
    "radio": "radio_custom",
    "textarea": "text_area",
    "free_text": "text",
}

_question_adapter = TypeAdapter(QuestionDefinition)


def parse_question(row: Mapping[str, Any]) -> QuestionDefinition:
    """Build a question from a sheet row; unknown type tags render as text."""
    data = clean_row(row)
    tag = str(data.get("QuestionType") or "").strip().lower()
    tag = QUESTION_TYPE_ALIASES.get(tag, tag)
    if tag not in QUESTION_TYPE_TAGS:
        tag = "text"
    data["QuestionType"] = tag
    return _question_adapter.validate_python(data)


# --- Submission ---

class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class FormResponse(_Payload):
    question_id: str = Field(..., alias="questionId")
    answer: str = ""


class Attachment(_Payload):
    """Encoded upload: data is a data: URL."""
    name: str
    type: str = ""
    data: str


class Service(_Payload):
    """A selectable service; id is the form identifier it maps to."""
    id: str
    name: str


class SubmissionPackage(_Payload):
    """Everything sent in one submitForm call."""
    event_id: str = Field(..., alias="eventId")
    slot_time: Optional[str] = Field(default=None, alias="slotTime")
    is_waitlist: bool = Field(default=False, alias="isWaitlist")
    selected_services: List[Service] = Field(default_factory=list, alias="selectedServices")
    demographics: Dict[str, str] = Field(default_factory=dict)
    insurance: Dict[str, str] = Field(default_factory=dict)
    medical_records: List[Attachment] = Field(default_factory=list, alias="medicalRecords")
    form_responses: List[FormResponse] = Field(default_factory=list, alias="formResponses")
    signature: str = ""
    consent_calls: bool = Field(default=False, alias="consentCalls")
    consent_texts: bool = Field(default=False, alias="consentTexts")
    consent_emails: bool = Field(default=False, alias="consentEmails")
    electronic_consent: bool = Field(default=False, alias="electronicConsent")
    vax_consent: bool = Field(default=False, alias="vaxConsent")


class SubmissionResult(BaseModel):
    """Backend answer to submitForm."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    status: str = "success"
    appointment_id: Optional[str] = Field(default=None, alias="appointmentID")
    qr_base64: Optional[str] = Field(default=None, alias="qrBase64")
    is_waitlist: bool = Field(default=False, alias="isWaitlist")

    @field_validator("appointment_id", mode="before")
    @classmethod
    def _id_to_str(cls, v):
        return None if v is None else str(v)
