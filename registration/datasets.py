"""Published spreadsheet datasets (events, slots, question definitions).

The three CSVs are downloaded once at startup, in parallel, and kept as a
read-only snapshot for the session. The only sanctioned write is a full
replacement of the slot list after a booking conflict.
"""
import csv
import io
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, TypeVar

import requests
from pydantic import ValidationError

from registration import config
from registration.models import (
    Event,
    QuestionDefinition,
    Slot,
    clean_row,
    parse_question,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DatasetUnavailableError(Exception):
    """Raised when a dataset cannot be fetched or is not loaded yet."""
    pass


class EventNotFoundError(DatasetUnavailableError):
    """Raised when an event id has no row in the events dataset."""

    def __init__(self, event_id: str):
        super().__init__(f"Event not found: {event_id}")
        self.event_id = event_id


def parse_csv(text: str) -> List[Dict[str, str]]:
    """
    Parse CSV text with a header row into string-keyed rows.

    Header whitespace is trimmed and rows whose cells are all blank are
    skipped.
    """
    reader = csv.DictReader(io.StringIO(text))
    rows = []
    for row in reader:
        cleaned = clean_row(row)
        if not any((value or "").strip() for value in cleaned.values() if isinstance(value, str)):
            continue
        rows.append({key: (value if value is not None else "") for key, value in cleaned.items()})
    return rows


def _build(rows: Iterable[Dict[str, str]], build: Callable[[Dict[str, str]], T], kind: str) -> List[T]:
    items = []
    for index, row in enumerate(rows):
        try:
            items.append(build(row))
        except ValidationError as e:
            logger.warning(f"Skipping malformed {kind} row {index + 1}: {e.error_count()} error(s)")
    return items


@dataclass
class DatasetSnapshot:
    """In-memory view of the three datasets for one session."""
    events: List[Event] = field(default_factory=list)
    slots: List[Slot] = field(default_factory=list)
    questions: List[QuestionDefinition] = field(default_factory=list)

    def find_event(self, event_id: str) -> Event:
        """
        Raises:
            EventNotFoundError: If no event has this id
        """
        for event in self.events:
            if str(event.event_id) == str(event_id):
                return event
        raise EventNotFoundError(event_id)

    def slots_for_event(self, event_id: str) -> List[Slot]:
        return [slot for slot in self.slots if str(slot.event_id) == str(event_id)]

    def replace_slots(self, slots: List[Slot]) -> None:
        self.slots = list(slots)


class DatasetRepository:
    """Downloads and parses the published datasets."""

    def __init__(
        self,
        session: requests.Session,
        events_url: str = config.EVENTS_CSV_URL,
        slots_url: str = config.SLOTS_CSV_URL,
        questions_url: str = config.QUESTIONS_CSV_URL
    ):
        self.session = session
        self.events_url = events_url
        self.slots_url = slots_url
        self.questions_url = questions_url

    def fetch_csv(self, url: str) -> List[Dict[str, str]]:
        """
        Download a CSV and return its rows.

        Raises:
            DatasetUnavailableError: On any network or HTTP failure
        """
        try:
            response = self.session.get(url)
        except requests.exceptions.RequestException as e:
            raise DatasetUnavailableError(f"Could not download dataset: {url}") from e

        text = response.content.decode("utf-8-sig")
        return parse_csv(text)

    def fetch_events(self) -> List[Event]:
        return _build(self.fetch_csv(self.events_url), Event.model_validate, "event")

    def fetch_slots(self) -> List[Slot]:
        return _build(self.fetch_csv(self.slots_url), Slot.model_validate, "slot")

    def fetch_questions(self) -> List[QuestionDefinition]:
        return _build(self.fetch_csv(self.questions_url), parse_question, "question")

    def load_all(self) -> DatasetSnapshot:
        """Fetch all three datasets concurrently."""
        with ThreadPoolExecutor(max_workers=3) as executor:
            events = executor.submit(self.fetch_events)
            slots = executor.submit(self.fetch_slots)
            questions = executor.submit(self.fetch_questions)
            snapshot = DatasetSnapshot(
                events=events.result(),
                slots=slots.result(),
                questions=questions.result(),
            )

        logger.info(
            f"Loaded {len(snapshot.events)} events, {len(snapshot.slots)} slots, "
            f"{len(snapshot.questions)} questions"
        )
        return snapshot

    def refresh_slots(self, snapshot: DatasetSnapshot) -> None:
        """Replace the slot snapshot with a fresh download."""
        snapshot.replace_slots(self.fetch_slots())
