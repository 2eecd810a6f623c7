"""Mock registration backend for local development.

Flask server that stands in for both the published spreadsheets and the
RPC endpoint:
- GET /events.csv, /slots.csv, /questions.csv
- POST /exec with {"action": ..., "payload": ...}

Run with: registration-mock-api  (then set REGISTRATION_API_URL to
http://localhost:5000/exec and point the
*_CSV_URL variables at the matching /<name>.csv routes)
"""
import base64
import csv
import io
import json
import threading
from datetime import date, timedelta
from typing import Dict, List, Optional

from flask import Flask, Response, jsonify, request
from flask_cors import CORS
from PIL import Image, ImageDraw

from registration import config
from registration.logging_config import get_logger, setup_structured_logging

logger = get_logger(__name__)

EVENT_COLUMNS = [
    "EventID", "Event Name", "Date", "Start Time", "End Time", "CampaignID",
    "FacilityID", "Forms", "Service Names", "Consent HTML",
]
SLOT_COLUMNS = ["EventID", "Start Time", "End Time", "Status"]
QUESTION_COLUMNS = [
    "FormID", "QuestionID", "QuestionText", "QuestionType", "Options",
    "IsRequired", "DisplayOrder", "TriggerID", "TriggerValue",
]

STATUS_BOOKED = "Booked"


def sample_data(today: Optional[date] = None) -> Dict[str, List[Dict[str, str]]]:
    """Demo datasets: one upcoming clinic with vaccine + TB services."""
    today = today or date.today()
    upcoming = today + timedelta(days=7)
    past = today - timedelta(days=30)

    def sheet_date(d: date) -> str:
        return f"{d.month}/{d.day}/{d.year}"

    events = [
        {
            "EventID": "EVT-100", "Event Name": "Back to School Vaccine Clinic",
            "Date": sheet_date(upcoming), "Start Time": "09:00", "End Time": "12:00",
            "CampaignID": "CMP-1", "FacilityID": "FAC-1", "Forms": "vax, tb",
            "Service Names": "Vaccinations, TB Test", "Consent HTML": "",
        },
        {
            "EventID": "EVT-090", "Event Name": "Summer Health Fair",
            "Date": sheet_date(past), "Start Time": "10:00", "End Time": "14:00",
            "CampaignID": "CMP-1", "FacilityID": "FAC-2", "Forms": "",
            "Service Names": "", "Consent HTML": "",
        },
    ]
    slots = [
        {"EventID": "EVT-100", "Start Time": f"{hour:02d}:{minute:02d}",
         "End Time": f"{hour:02d}:{minute + 15:02d}", "Status": "Open"}
        for hour in (9, 10, 11) for minute in (0, 30)
    ]
    questions = [
        {"FormID": "vax", "QuestionID": "vax_sick", "QuestionText": "Are you sick today?",
         "QuestionType": "radio_yes_no", "Options": "", "IsRequired": "TRUE",
         "DisplayOrder": "1", "TriggerID": "", "TriggerValue": ""},
        {"FormID": "vax", "QuestionID": "vax_sick_detail", "QuestionText": "Please describe your symptoms",
         "QuestionType": "text_area", "Options": "", "IsRequired": "TRUE",
         "DisplayOrder": "2", "TriggerID": "vax_sick", "TriggerValue": "Yes"},
        {"FormID": "vax", "QuestionID": "vax_allergies", "QuestionText": "Known allergies",
         "QuestionType": "multi_select", "Options": "Eggs, Latex, Gelatin, None",
         "IsRequired": "FALSE", "DisplayOrder": "3", "TriggerID": "", "TriggerValue": ""},
        {"FormID": "tb", "QuestionID": "tb_prior", "QuestionText": "Prior positive TB test?",
         "QuestionType": "radio_yes_no", "Options": "", "IsRequired": "TRUE",
         "DisplayOrder": "1", "TriggerID": "", "TriggerValue": ""},
    ]
    return {"events": events, "slots": slots, "questions": questions}


def to_csv(rows: List[Dict[str, str]], columns: List[str]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=columns, extrasaction="ignore")
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue()


def confirmation_code_png(appointment_id: str) -> str:
    """Small PNG carrying the appointment id, base64 encoded (no data: prefix)."""
    image = Image.new("RGB", (220, 60), "white")
    ImageDraw.Draw(image).text((10, 20), f"APPT {appointment_id}", fill="black")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")


def create_app(data: Optional[Dict[str, List[Dict[str, str]]]] = None) -> Flask:
    """Build a mock backend around an in-memory copy of the datasets."""
    app = Flask(__name__)
    CORS(app)

    store = data if data is not None else sample_data()
    store.setdefault("submissions", [])
    lock = threading.Lock()
    counter = {"next": 1000}
    app.config["STORE"] = store

    def find_slot(event_id: str, start_time: str) -> Optional[Dict[str, str]]:
        for slot in store["slots"]:
            if slot["EventID"] == event_id and slot["Start Time"] == start_time:
                return slot
        return None

    def error(message: str):
        return jsonify({"status": "error", "message": message})

    def csv_response(rows, columns):
        return Response(to_csv(rows, columns), mimetype="text/csv")

    @app.route('/events.csv', methods=['GET'])
    def events_csv():
        return csv_response(store["events"], EVENT_COLUMNS)

    @app.route('/slots.csv', methods=['GET'])
    def slots_csv():
        return csv_response(store["slots"], SLOT_COLUMNS)

    @app.route('/questions.csv', methods=['GET'])
    def questions_csv():
        return csv_response(store["questions"], QUESTION_COLUMNS)

    @app.route('/exec', methods=['POST'])
    def rpc():
        """POST /exec - {"action": "bookSlot"|"releaseSlot"|"submitForm", "payload": {...}}"""
        try:
            body = json.loads(request.get_data(as_text=True) or "{}")
        except ValueError:
            return error("Request body must be JSON")
        if not isinstance(body, dict):
            return error("Request body must be a JSON object")

        action = body.get("action")
        payload = body.get("payload") or {}

        with lock:
            if action == "bookSlot":
                slot = find_slot(payload.get("eventId"), payload.get("startTime"))
                if slot is None or slot["Status"] != config.SLOT_STATUS_OPEN:
                    logger.info("mock_book_rejected", payload=payload)
                    return error("This slot is no longer available.")
                slot["Status"] = STATUS_BOOKED
                return jsonify({"status": "success"})

            if action == "releaseSlot":
                slot = find_slot(payload.get("eventId"), payload.get("startTime"))
                if slot is not None and slot["Status"] == STATUS_BOOKED:
                    slot["Status"] = config.SLOT_STATUS_OPEN
                return jsonify({"status": "success"})

            if action == "submitForm":
                is_waitlist = bool(payload.get("isWaitlist"))
                if not is_waitlist:
                    slot = find_slot(payload.get("eventId"), payload.get("slotTime"))
                    if slot is None or slot["Status"] != STATUS_BOOKED:
                        return error("Your slot hold has expired. Please select a slot again.")
                counter["next"] += 1
                appointment_id = f"A{counter['next']}"
                store["submissions"].append({"appointmentID": appointment_id, **payload})
                return jsonify({
                    "status": "success",
                    "appointmentID": appointment_id,
                    "qrBase64": None if is_waitlist else confirmation_code_png(appointment_id),
                    "isWaitlist": is_waitlist,
                })

        return error(f"Unknown action: {action}")

    return app


def main():
    setup_structured_logging(config.LOG_LEVEL)
    app = create_app()
    logger.info("mock_api_starting", port=config.MOCK_API_PORT)
    app.run(host="0.0.0.0", port=config.MOCK_API_PORT)


if __name__ == "__main__":
    main()
