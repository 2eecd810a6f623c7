"""Dynamic intake form built from the question-definition dataset.

An event lists the forms (services) it offers. Each form becomes a section
that stays hidden until its service is selected; inside a section,
conditional questions stay hidden until the question they depend on holds
the trigger value.

Visibility is recomputed from scratch after every change, and
required-ness is derived (declared AND visible), so a hidden field never
blocks submission and never leaks a stale answer: hiding a field clears it.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from registration.models import (
    QUESTION_VARIANTS,
    CustomRadioQuestion,
    DateQuestion,
    Event,
    FormResponse,
    MultiSelectQuestion,
    QuestionDefinition,
    Service,
    SignatureQuestion,
    SingleSelectQuestion,
    TextAreaQuestion,
    TextQuestion,
    YesNoQuestion,
    split_list,
)

# Widget per question variant
WIDGETS = {
    SingleSelectQuestion: "select",
    MultiSelectQuestion: "checkbox_group",
    YesNoQuestion: "radio_group",
    CustomRadioQuestion: "radio_group",
    TextQuestion: "text",
    TextAreaQuestion: "textarea",
    DateQuestion: "date",
    SignatureQuestion: "signature",
}

# How answers are normalized and checked per variant
ANSWER_KINDS = {
    SingleSelectQuestion: "choice",
    MultiSelectQuestion: "multi",
    YesNoQuestion: "choice",
    CustomRadioQuestion: "choice",
    TextQuestion: "free",
    TextAreaQuestion: "free",
    DateQuestion: "date",
    SignatureQuestion: "none",
}

for _table in (WIDGETS, ANSWER_KINDS):
    _missing = set(QUESTION_VARIANTS) - set(_table)
    if _missing:
        raise TypeError(f"Unhandled question types: {sorted(v.__name__ for v in _missing)}")


class FormInputError(ValueError):
    """Raised when an answer cannot be applied to a question."""
    pass


@dataclass(frozen=True)
class ControlSpec:
    """Render description of one question's input control."""
    name: str
    label: str
    widget: str
    options: List[str]
    required: bool
    section_id: str


def render_control(question: QuestionDefinition, required: bool, section_id: str) -> ControlSpec:
    return ControlSpec(
        name=question.question_id,
        label=question.text,
        widget=WIDGETS[type(question)],
        options=list(getattr(question, "options", [])),
        required=required,
        section_id=section_id,
    )


@dataclass
class QuestionControl:
    """Runtime state of one rendered question."""
    question: QuestionDefinition
    visible: bool = False
    value: Any = ""

    def __post_init__(self):
        self.value = self.empty_value()

    @property
    def question_id(self) -> str:
        return self.question.question_id

    @property
    def kind(self) -> str:
        return ANSWER_KINDS[type(self.question)]

    @property
    def declared_required(self) -> bool:
        return self.question.required and self.question.collects_answer

    @property
    def effective_required(self) -> bool:
        return self.declared_required and self.visible

    def empty_value(self) -> Any:
        return [] if self.kind == "multi" else ""

    def has_value(self) -> bool:
        return bool(self.value)

    def clear(self) -> None:
        self.value = self.empty_value()

    def is_answered(self) -> bool:
        if self.kind == "multi":
            return len(self.value) > 0
        return bool(str(self.value).strip())

    def answer_text(self) -> str:
        if self.kind == "multi":
            return ", ".join(self.value)
        return str(self.value)

    def matches(self, expected: str) -> bool:
        if self.kind == "multi":
            return expected in self.value
        return self.value == expected

    def normalize(self, raw: Any) -> Any:
        kind = self.kind
        options = list(getattr(self.question, "options", []))
        if kind == "none":
            raise FormInputError(f"Question {self.question_id} does not take an answer")
        if kind == "multi":
            picked = split_list(raw)
            unknown = [p for p in picked if p not in options]
            if unknown:
                raise FormInputError(f"Invalid option(s) for {self.question_id}: {', '.join(unknown)}")
            # Keep the declared option order
            return [opt for opt in options if opt in picked]
        text = "" if raw is None else str(raw)
        if kind == "choice":
            if text and text not in options:
                raise FormInputError(f"Invalid option for {self.question_id}: {text}")
            return text
        if kind == "date":
            text = text.strip()
            if text:
                try:
                    date.fromisoformat(text)
                except ValueError:
                    raise FormInputError(f"Invalid date for {self.question_id}: {text}")
            return text
        return text

    def spec(self, section_id: str) -> ControlSpec:
        return render_control(self.question, self.effective_required, section_id)


@dataclass
class FormSection:
    """Questions of one form, shown while its service is selected."""
    service: Service
    controls: List[QuestionControl] = field(default_factory=list)
    selected: bool = False

    @property
    def form_id(self) -> str:
        return self.service.id

    @property
    def title(self) -> str:
        return f"{self.service.name} Questionnaire"


class DynamicForm:
    """Service sections plus the conditional-visibility rules between questions."""

    def __init__(self, sections: List[FormSection]):
        self.sections = sections
        self._controls: Dict[str, QuestionControl] = {}
        self._section_of: Dict[str, FormSection] = {}
        for section in sections:
            for control in section.controls:
                self._controls[control.question_id] = control
                self._section_of[control.question_id] = section
        self._refresh()

    @property
    def supports_service_selection(self) -> bool:
        return bool(self.sections)

    @property
    def services(self) -> List[Service]:
        return [section.service for section in self.sections]

    def controls(self) -> List[QuestionControl]:
        return [c for section in self.sections for c in section.controls]

    def control(self, question_id: str) -> QuestionControl:
        try:
            return self._controls[question_id]
        except KeyError:
            raise FormInputError(f"Unknown question: {question_id}")

    def section(self, form_id: str) -> FormSection:
        for section in self.sections:
            if section.form_id == form_id:
                return section
        raise FormInputError(f"Unknown service: {form_id}")

    # --- Interaction ---

    def select_service(self, form_id: str, checked: bool = True) -> None:
        """Toggle a service; unchecking hides its section and clears its answers."""
        self.section(form_id).selected = checked
        self._refresh()

    def set_answer(self, question_id: str, value: Any) -> None:
        """
        Apply an answer and re-evaluate every dependent question.

        Raises:
            FormInputError: Unknown/hidden question or invalid value
        """
        control = self.control(question_id)
        if not control.visible:
            raise FormInputError(f"Question {question_id} is not currently shown")
        control.value = control.normalize(value)
        self._refresh()

    def _trigger_satisfied(self, control: QuestionControl) -> bool:
        question = control.question
        if not question.is_conditional:
            return True
        trigger = self._controls.get(question.trigger_id)
        if trigger is None or not trigger.visible:
            return False
        return trigger.matches(question.expected_trigger_value)

    def _refresh(self) -> None:
        # Repeat until stable so chains of conditionals settle
        changed = True
        while changed:
            changed = False
            for section in self.sections:
                for control in section.controls:
                    visible = section.selected and self._trigger_satisfied(control)
                    if control.visible != visible:
                        control.visible = visible
                        changed = True
                    if not visible and control.has_value():
                        control.clear()
                        changed = True

    # --- Read side ---

    def selected_services(self) -> List[Service]:
        return [section.service for section in self.sections if section.selected]

    def visible_controls(self) -> List[QuestionControl]:
        return [c for c in self.controls() if c.visible]

    def missing_required(self) -> List[QuestionControl]:
        """Visible, required, unanswered controls in display order."""
        return [c for c in self.visible_controls() if c.effective_required and not c.is_answered()]

    def responses(self) -> List[FormResponse]:
        """One response per visible answer-bearing question."""
        return [
            FormResponse(question_id=c.question_id, answer=c.answer_text())
            for c in self.visible_controls()
            if c.question.collects_answer
        ]

    def render(self) -> List[Dict[str, Any]]:
        """Sections with their currently visible controls."""
        return [
            {
                "form_id": section.form_id,
                "title": section.title,
                "selected": section.selected,
                "controls": [c.spec(section.form_id) for c in section.controls if c.visible],
            }
            for section in self.sections
        ]


def order_questions(
    questions: Iterable[QuestionDefinition],
    form_ids: List[str]
) -> List[QuestionDefinition]:
    """Sort by owning form's position in the event, then by display order."""
    position = {form_id: index for index, form_id in enumerate(form_ids)}
    relevant = [q for q in questions if q.form_id in position]
    return sorted(relevant, key=lambda q: (position[q.form_id], q.display_order))


def build_dynamic_form(
    event: Optional[Event],
    questions: Iterable[QuestionDefinition]
) -> DynamicForm:
    """Build the form for an event; no configured forms means no sections."""
    if event is None or not event.forms:
        return DynamicForm([])

    ordered = order_questions(questions, event.forms)
    sections = []
    for service in event.services():
        controls = [QuestionControl(q) for q in ordered if q.form_id == service.id]
        sections.append(FormSection(service=service, controls=controls))
    return DynamicForm(sections)
