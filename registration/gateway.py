"""Backend RPC gateway.

One POST endpoint accepts ``{"action": ..., "payload": ...}`` and answers
with JSON carrying a ``status`` field. Two delivery paths exist:

- ``call``: request/response, raises on failure.
- ``BeaconSender.send``: best-effort, non-blocking, no response. Used on
  teardown when nothing will be around to read an answer.
"""
import json
import threading
from typing import Any, Dict, Optional

import requests

from registration import config
from registration.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from registration.logging_config import get_logger
from registration.models import SubmissionPackage, SubmissionResult

logger = get_logger(__name__)

ACTION_BOOK_SLOT = "bookSlot"
ACTION_RELEASE_SLOT = "releaseSlot"
ACTION_SUBMIT_FORM = "submitForm"

# Apps Script endpoints reject preflighted content types
REQUEST_HEADERS = {"Content-Type": "text/plain;charset=utf-8"}

INVALID_RESPONSE_MESSAGE = "An unexpected error occurred. The server sent an invalid response."


class BackendError(Exception):
    """Raised when the backend call fails or answers with status "error"."""
    pass


class InvalidResponseError(BackendError):
    """Raised when the backend answers with something other than JSON."""
    pass


class BackendRejectedError(BackendError):
    """Raised when the backend answered with status "error"."""
    pass


class BookingConflictError(BackendRejectedError):
    """Raised when the backend refuses a hold (slot taken meanwhile)."""
    pass


def encode_request(action: str, payload: Dict[str, Any]) -> str:
    return json.dumps({"action": action, "payload": payload})


class BeaconSender:
    """
    Fire-and-forget delivery.

    send() returns as soon as the request is handed to a worker thread.
    The thread is not a daemon, so interpreter shutdown waits for the
    delivery (bounded by the request timeout) instead of dropping it.
    Failures are logged and never reported back to the caller.
    """

    def __init__(self, url: str = config.GAS_API_URL, timeout: float = config.BEACON_TIMEOUT_SECONDS):
        self.url = url
        self.timeout = timeout

    def send(self, action: str, payload: Dict[str, Any]) -> bool:
        body = encode_request(action, payload)
        thread = threading.Thread(
            target=self._deliver,
            args=(body, action),
            name=f"beacon-{action}",
            daemon=False,
        )
        thread.start()
        return True

    def _deliver(self, body: str, action: str) -> None:
        try:
            requests.post(self.url, data=body, headers=REQUEST_HEADERS, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.warning("beacon_failed", action=action, error=str(e))


class RemoteGateway:
    """Client for the registration backend."""

    def __init__(
        self,
        session: requests.Session,
        url: str = config.GAS_API_URL,
        breaker: Optional[CircuitBreaker] = None,
        beacon: Optional[BeaconSender] = None
    ):
        self.session = session
        self.url = url
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=5,
            timeout=60,
            counted_exceptions=(requests.exceptions.RequestException,),
        )
        self.beacon = beacon or BeaconSender(url=url)

    def call(self, action: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Invoke a backend action.

        Returns:
            Decoded JSON response (status != "error")

        Raises:
            BackendError: Network failure, open circuit or status "error"
            InvalidResponseError: Non-JSON response
        """
        try:
            response = self.breaker.call(
                self.session.post,
                self.url,
                data=encode_request(action, payload),
                headers=REQUEST_HEADERS,
            )
        except CircuitBreakerOpen as e:
            raise BackendError(str(e)) from e
        except requests.exceptions.RequestException as e:
            logger.error("backend_request_failed", action=action, error=str(e))
            raise BackendError(f"Could not reach the registration service ({action}).") from e

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            logger.error("non_json_response", action=action, body=response.text)
            raise InvalidResponseError(INVALID_RESPONSE_MESSAGE)

        try:
            result = response.json()
        except ValueError as e:
            logger.error("malformed_json_response", action=action, body=response.text)
            raise InvalidResponseError(INVALID_RESPONSE_MESSAGE) from e

        if not isinstance(result, dict):
            logger.error("unexpected_json_shape", action=action, body=response.text)
            raise InvalidResponseError(INVALID_RESPONSE_MESSAGE)

        if result.get("status") == "error":
            raise BackendRejectedError(result.get("message") or f"{action} failed")

        return result

    def book_slot(self, event_id: str, start_time: str) -> Dict[str, Any]:
        """
        Place a server-side hold on a slot.

        Raises:
            BookingConflictError: Backend refused the hold
            BackendError: Any other failure
        """
        try:
            return self.call(ACTION_BOOK_SLOT, {"eventId": event_id, "startTime": start_time})
        except BackendRejectedError as e:
            raise BookingConflictError(str(e)) from e

    def release_slot(self, event_id: str, start_time: str) -> Dict[str, Any]:
        return self.call(ACTION_RELEASE_SLOT, {"eventId": event_id, "startTime": start_time})

    def submit_form(self, package: SubmissionPackage) -> SubmissionResult:
        result = self.call(ACTION_SUBMIT_FORM, package.to_payload())
        return SubmissionResult.model_validate(result)

    def send_release_beacon(self, event_id: str, start_time: str) -> bool:
        """Best-effort release that does not wait for (or expect) an answer."""
        logger.info("release_beacon", event_id=event_id, start_time=start_time)
        return self.beacon.send(ACTION_RELEASE_SLOT, {"eventId": event_id, "startTime": start_time})
