"""Tests for HTTP client resilience features."""
from unittest.mock import Mock, patch

import pytest
import requests

from registration.http_client import create_http_session


def ok_response():
    response = Mock()
    response.status_code = 200
    response.raise_for_status.return_value = None
    return response


class TestDatasetRetries:
    """GETs are idempotent: retried on connection errors, timeouts and HTTP errors."""

    def test_retries_on_connection_error(self):
        with patch('requests.Session.request') as mock_request:
            mock_request.side_effect = requests.exceptions.ConnectionError("Connection failed")

            session = create_http_session(wait_min=0, wait_max=0)

            with pytest.raises(requests.exceptions.ConnectionError):
                session.get("http://test.com/events.csv")

            # 1 initial + 3 retries
            assert mock_request.call_count == 4

    def test_retries_on_timeout(self):
        with patch('requests.Session.request') as mock_request:
            mock_request.side_effect = requests.exceptions.Timeout("Request timeout")

            session = create_http_session(wait_min=0, wait_max=0)

            with pytest.raises(requests.exceptions.Timeout):
                session.get("http://test.com/events.csv")

            assert mock_request.call_count == 4

    def test_retries_on_503_service_unavailable(self):
        with patch('requests.Session.request') as mock_request:
            mock_response = Mock()
            mock_response.status_code = 503
            mock_response.raise_for_status.side_effect = requests.exceptions.HTTPError("503 Service Unavailable")
            mock_request.return_value = mock_response

            session = create_http_session(wait_min=0, wait_max=0)

            with pytest.raises(requests.exceptions.HTTPError):
                session.get("http://test.com/events.csv")

            assert mock_request.call_count == 4

    def test_success_on_second_attempt(self):
        with patch('requests.Session.request') as mock_request:
            mock_request.side_effect = [
                requests.exceptions.ConnectionError("Failed"),
                ok_response(),
            ]

            session = create_http_session(wait_min=0, wait_max=0)
            response = session.get("http://test.com/events.csv")

            assert response.status_code == 200
            assert mock_request.call_count == 2

    def test_default_timeout_applied(self):
        with patch('requests.Session.request') as mock_request:
            mock_request.return_value = ok_response()

            session = create_http_session(timeout=7)
            session.get("http://test.com/events.csv")

            assert mock_request.call_args.kwargs["timeout"] == 7


class TestRpcRetries:
    """POSTs change slot state: retried only when no connection was made."""

    def test_post_retries_on_connection_error(self):
        with patch('requests.Session.request') as mock_request:
            mock_request.side_effect = [
                requests.exceptions.ConnectionError("Failed"),
                ok_response(),
            ]

            session = create_http_session(wait_min=0, wait_max=0)
            session.post("http://test.com/exec", data="{}")

            assert mock_request.call_count == 2

    def test_post_not_retried_on_timeout(self):
        with patch('requests.Session.request') as mock_request:
            mock_request.side_effect = requests.exceptions.Timeout("slow")

            session = create_http_session(wait_min=0, wait_max=0)

            with pytest.raises(requests.exceptions.Timeout):
                session.post("http://test.com/exec", data="{}")

            assert mock_request.call_count == 1

    def test_post_not_retried_on_http_error(self):
        with patch('requests.Session.request') as mock_request:
            mock_response = Mock()
            mock_response.raise_for_status.side_effect = requests.exceptions.HTTPError("500")
            mock_request.return_value = mock_response

            session = create_http_session(wait_min=0, wait_max=0)

            with pytest.raises(requests.exceptions.HTTPError):
                session.post("http://test.com/exec", data="{}")

            assert mock_request.call_count == 1
