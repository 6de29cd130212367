import unittest
import json
import logging
import sys
import os
from unittest import mock

import requests
from urllib3.exceptions import ReadTimeoutError

# Add the parent directory to the Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tests.backend import Backend, unused_port
from udpgateway.forwarder import HTTPForwarder
from udpgateway.models import DecodedRequest

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def fake_response(status_code: int, content: bytes) -> mock.MagicMock:
    """A response usable as a context manager, like a streamed requests.Response."""
    response = mock.MagicMock(status_code=status_code, content=content)
    response.__enter__.return_value = response
    return response


class TestHTTPForwarder(unittest.TestCase):
    """Test cases for forwarding against a live local backend."""

    @classmethod
    def setUpClass(cls):
        cls.backend = Backend().start()
        cls.forwarder = HTTPForwarder()

    @classmethod
    def tearDownClass(cls):
        cls.backend.stop()

    def test_get_request(self):
        """Test a GET forwarded with its headers."""
        # Arrange
        request = DecodedRequest("GET", f"{self.backend.url}/api/test", {"X-Trace": "abc123"})

        # Act
        result = self.forwarder.forward(request)
        data = json.loads(result.body_text)

        # Assert
        self.assertTrue(result.ok)
        self.assertEqual(result.status_code, 200)
        self.assertEqual(data["message"], "Hello from backend!")
        self.assertEqual(data["headers"]["X-Trace"], "abc123")

    def test_post_body_sent(self):
        """Test that a POST carries the decoded body."""
        # Arrange
        payload = {"key": "value", "test": 123}
        request = DecodedRequest(
            "post", f"{self.backend.url}/api/echo",
            {"Content-Type": "application/json"},
            json.dumps(payload).encode('utf-8')
        )

        # Act
        result = self.forwarder.forward(request)

        # Assert
        self.assertEqual(result.status_code, 200)
        self.assertEqual(json.loads(result.body_text)["data"], payload)

    def test_body_dropped_for_other_methods(self):
        """Test that GET and DELETE never carry a body."""
        for method in ("GET", "DELETE"):
            with self.subTest(method=method):
                # Act
                result = self.forwarder.forward(
                    DecodedRequest(method, f"{self.backend.url}/api/test", {}, b"ignored")
                )

                # Assert
                data = json.loads(result.body_text)
                self.assertEqual(data["method"], method)
                self.assertEqual(data["body_length"], 0)

    def test_put_and_patch_carry_body(self):
        for method in ("PUT", "PATCH"):
            with self.subTest(method=method):
                result = self.forwarder.forward(
                    DecodedRequest(method, f"{self.backend.url}/api/test", {}, b"12345")
                )
                self.assertEqual(json.loads(result.body_text)["body_length"], 5)

    def test_not_found(self):
        """Test that an error status reads the error body."""
        # Act
        result = self.forwarder.forward(DecodedRequest("GET", f"{self.backend.url}/api/missing"))

        # Assert
        self.assertEqual(result.status_code, 404)
        self.assertEqual(result.to_text(), "HTTP 404\nnot found")

    def test_server_error(self):
        result = self.forwarder.forward(DecodedRequest("GET", f"{self.backend.url}/api/error"))
        self.assertEqual(result.to_text(), "HTTP 500\nboom")

    def test_connection_refused(self):
        """Test that a refused connection becomes a failure result."""
        # Arrange
        request = DecodedRequest("GET", f"http://127.0.0.1:{unused_port()}/")

        # Act
        result = self.forwarder.forward(request)

        # Assert
        self.assertFalse(result.ok)
        self.assertFalse(result.timed_out)
        self.assertTrue(result.to_text().startswith("HTTP request failed:"))

    def test_malformed_url(self):
        result = self.forwarder.forward(DecodedRequest("GET", "not a url"))
        self.assertFalse(result.ok)
        self.assertTrue(result.to_text().startswith("HTTP request failed:"))

    def test_read_timeout(self):
        """Test that a slow origin is cut off at the read timeout."""
        # Arrange
        forwarder = HTTPForwarder(read_timeout=0.2)

        # Act
        result = forwarder.forward(DecodedRequest("GET", f"{self.backend.url}/api/slow?delay=1"))

        # Assert
        self.assertTrue(result.timed_out)
        self.assertTrue(result.to_text().startswith("HTTP request failed:"))

    def test_read_timeout_mid_body(self):
        """Test that an origin stalling after its headers still counts as a timeout."""
        # Arrange
        forwarder = HTTPForwarder(read_timeout=0.3)

        # Act
        result = forwarder.forward(DecodedRequest("GET", f"{self.backend.url}/api/stall?delay=1.5"))

        # Assert
        self.assertFalse(result.ok)
        self.assertTrue(result.timed_out)
        self.assertTrue(result.to_text().startswith("HTTP request failed:"))


class TestHTTPForwarderCalls(unittest.TestCase):
    """Test cases for the calls made to requests."""

    def setUp(self):
        self.forwarder = HTTPForwarder()

    @mock.patch('udpgateway.forwarder.requests.request')
    def test_call_arguments(self, request_mock):
        """Test timeouts, headers and body handed to requests."""
        # Arrange
        request_mock.return_value = fake_response(201, b"created\r\n")

        # Act
        result = self.forwarder.forward(
            DecodedRequest("PUT", "http://origin/x", {"A": "1"}, b"body")
        )

        # Assert
        request_mock.assert_called_once_with(
            "PUT", "http://origin/x", headers={"A": "1"}, data=b"body",
            timeout=(5.0, 10.0), stream=True
        )
        self.assertEqual(result.to_text(), "HTTP 201\ncreated")

    @mock.patch('udpgateway.forwarder.requests.request')
    def test_empty_body_not_sent(self, request_mock):
        request_mock.return_value = fake_response(200, b"")
        self.forwarder.forward(DecodedRequest("POST", "http://origin/x"))
        self.assertIsNone(request_mock.call_args[1]["data"])

    @mock.patch('udpgateway.forwarder.requests.request')
    def test_line_endings_normalised(self, request_mock):
        request_mock.return_value = fake_response(200, b"a\r\nb\rc\n")
        result = self.forwarder.forward(DecodedRequest("GET", "http://origin/"))
        self.assertEqual(result.body_text, "a\nb\nc")

    @mock.patch('udpgateway.forwarder.requests.request')
    def test_exceptions_captured(self, request_mock):
        """Test that errors from requests never propagate."""
        cases = [
            (requests.exceptions.ConnectTimeout("connect timed out"), True),
            (requests.exceptions.ReadTimeout("read timed out"), True),
            (requests.exceptions.ConnectionError(ReadTimeoutError(None, "/", "Read timed out.")), True),
            (requests.exceptions.ConnectionError("Connection refused"), False),
            (requests.exceptions.InvalidURL("bad url"), False),
            (ValueError("Invalid method"), False),
        ]
        for error, timed_out in cases:
            with self.subTest(error=error):
                # Arrange
                request_mock.side_effect = error

                # Act
                result = self.forwarder.forward(DecodedRequest("GET", "http://origin/"))

                # Assert
                self.assertEqual(result.timed_out, timed_out)
                self.assertEqual(result.to_text(), f"HTTP request failed: {error}")


if __name__ == '__main__':
    unittest.main()
