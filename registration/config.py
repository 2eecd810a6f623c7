"""Configuration for the event registration client.

All endpoint and business settings live here - override through the
environment (or a .env file) without touching code.
"""
import os

from dotenv import load_dotenv

load_dotenv()

# Backend RPC endpoint (single POST endpoint accepting {action, payload})
GAS_API_URL = os.getenv(
    "REGISTRATION_API_URL",
    "https://script.google.com/macros/s/AKfycbwnvm7Q26ebVGOnC14BrFajyuh7RyeBijBQg6xSSfz0hA8ofj4HxT8P1EoqKkpg8lDU/exec",
)

# Published datasets
EVENTS_CSV_URL = os.getenv(
    "EVENTS_CSV_URL",
    "https://docs.google.com/spreadsheets/d/e/2PACX-1vSjsfBdiXj2A0M4v-cjYryFN9WwB_qMd4B5FVjxV2DsPWngRm8tz670W02S3uAfqqobEtAcMsjwGAsC/pub?gid=1643561266&single=true&output=csv",
)
SLOTS_CSV_URL = os.getenv(
    "SLOTS_CSV_URL",
    "https://docs.google.com/spreadsheets/d/e/2PACX-1vSjsfBdiXj2A0M4v-cjYryFN9WwB_qMd4B5FVjxV2DsPWngRm8tz670W02S3uAfqqobEtAcMsjwGAsC/pub?gid=582524870&single=true&output=csv",
)
QUESTIONS_CSV_URL = os.getenv(
    "QUESTIONS_CSV_URL",
    "https://docs.google.com/spreadsheets/d/e/2PACX-1vR7QvymXpSerI-ySgEw0jMcCVnj95XQvRbQoqRtqB9DVnHdB022Dg-QZti3Cmd6YeAZJMfhnadrFdVA/pub?gid=979172156&single=true&output=csv",
)

# Base URL for event links in picker mode
BASE_URL = os.getenv("REGISTRATION_BASE_URL", "https://register.prism.org/")

# Slot hold
HOLD_TIMEOUT_MINUTES = int(os.getenv("HOLD_TIMEOUT_MINUTES", "20"))
HOLD_TIMEOUT_SECONDS = HOLD_TIMEOUT_MINUTES * 60
TICK_INTERVAL_SECONDS = 1.0

# HTTP
HTTP_TIMEOUT_SECONDS = int(os.getenv("HTTP_TIMEOUT_SECONDS", "15"))
BEACON_TIMEOUT_SECONDS = 5

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Event id used for the no-parameter general registration mode
WAITLIST_EVENT_ID = "WAITLIST"
WAITLIST_EVENT_NAME = "General Registration / School Records Check"

SLOT_STATUS_OPEN = "Open"
DEFAULT_TRIGGER_VALUE = "Yes"

# Uploads
MAX_TOTAL_UPLOAD_MB = 25
MAX_TOTAL_UPLOAD_BYTES = MAX_TOTAL_UPLOAD_MB * 1024 * 1024

# Guardian fields become required under this age
ADULT_AGE_YEARS = 18

DEMOGRAPHIC_FIELDS = [
    "firstName", "middleName", "lastName", "dob", "gender", "race",
    "ethnicity", "street", "city", "state", "zip", "cell", "home", "email",
    "ssn", "parentName", "parentRel", "parentContact", "school", "grade",
]

INSURANCE_FIELDS = [
    "primaryIns", "primaryPayer", "primaryPlan", "primaryId", "primaryGroup",
    "primaryPayerId", "secondaryIns", "secondaryPlan", "secondaryId",
    "secondaryGroup", "secondaryPayerId",
]

GUARDIAN_REQUIRED_FIELDS = ["parentName", "parentRel"]

# Typed signature canvas
SIGNATURE_CANVAS_SIZE = (600, 150)
SIGNATURE_FONT_SIZE = 60
SIGNATURE_TEXT_X = 20

WAITLIST_THANK_YOU = (
    "Thanks for your registration! We'll update your chart in the "
    "background and reach out soon with next steps."
)

# Mock backend (local development)
MOCK_API_PORT = int(os.getenv("MOCK_API_PORT", "5000"))
MOCK_API_BASE_URL = f"http://localhost:{MOCK_API_PORT}"
