"""Unit tests for the RepRapFirmware file manager client."""

from datetime import datetime
from unittest.mock import patch

import httpx
import pytest

from duetbackup.api import RRFClient
from duetbackup.exceptions import (
    DuetAPIError,
    DuetAuthenticationError,
    DuetConnectionLimitError,
    DuetDownloadError,
    DuetInvalidResponseError,
    DuetNetworkError,
    DuetNotFoundError,
)
from duetbackup.models import EntryKind


def make_client(handler, **kwargs) -> RRFClient:
    """Create a client whose requests are answered by handler."""
    kwargs.setdefault("retry_delay", 0.0)
    return RRFClient("duet.local", transport=httpx.MockTransport(handler), **kwargs)


class TestRRFClient:
    """Tests for client initialization."""

    def test_base_url(self):
        client = RRFClient("duet.local", port=8080)
        assert client.base_url == "http://duet.local:8080"

    def test_default_port(self):
        client = RRFClient("192.168.1.10")
        assert client.base_url == "http://192.168.1.10:80"

    def test_close_is_idempotent(self):
        client = make_client(lambda request: httpx.Response(200, json={}))
        client._get_client()
        client.close()
        client.close()
        assert client._client is None

    def test_context_manager_closes(self):
        with make_client(lambda request: httpx.Response(200, json={})) as client:
            http_client = client._get_client()
        assert http_client.is_closed


class TestConnect:
    """Tests for rr_connect handling."""

    def test_connect_sends_password_and_time(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"err": 0, "sessionTimeout": 8000})

        client = make_client(handler)
        result = client.connect("secret")

        assert result["err"] == 0
        assert seen["path"] == "/rr_connect"
        assert seen["params"]["password"] == "secret"
        datetime.strptime(seen["params"]["time"], "%Y-%m-%dT%H:%M:%S")

    def test_connect_wrong_password(self):
        client = make_client(lambda request: httpx.Response(200, json={"err": 1}))
        with pytest.raises(DuetAuthenticationError, match="Invalid password"):
            client.connect("wrong")

    def test_connect_no_free_session(self):
        client = make_client(lambda request: httpx.Response(200, json={"err": 2}))
        with pytest.raises(DuetConnectionLimitError):
            client.connect("reprap")

    def test_connect_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler, max_retries=1)
        with pytest.raises(DuetNetworkError, match="Network error"):
            client.connect("reprap")

    def test_disconnect(self):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(200, json={"err": 0})

        make_client(handler).disconnect()
        assert paths == ["/rr_disconnect"]


class TestRequestRetries:
    """Tests for retry behaviour of _request."""

    def test_retries_on_server_error(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503)
            return httpx.Response(200, json={"err": 0})

        client = make_client(handler, max_retries=3)
        client.connect("reprap")
        assert len(calls) == 3

    def test_gives_up_after_max_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        client = make_client(handler, max_retries=2)
        with pytest.raises(DuetAPIError, match="status 500"):
            client.connect("reprap")
        assert len(calls) == 3

    def test_network_error_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ReadTimeout("timed out", request=request)
            return httpx.Response(200, json={"err": 0})

        client = make_client(handler)
        client.connect("reprap")
        assert len(calls) == 2

    def test_client_errors_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401)

        client = make_client(handler)
        with pytest.raises(DuetAuthenticationError):
            client.connect("reprap")
        assert len(calls) == 1

    def test_retry_delay_uses_exponential_backoff(self):
        client = RRFClient("duet.local", retry_delay=1.0)
        with patch("duetbackup.api.random.random", return_value=0.5):
            assert client._calculate_retry_delay(0) == 1.0
            assert client._calculate_retry_delay(2) == 4.0

    def test_invalid_json(self):
        client = make_client(
            lambda request: httpx.Response(200, content=b"<html>busy</html>")
        )
        with pytest.raises(DuetInvalidResponseError, match="Invalid JSON"):
            client.connect("reprap")


class TestGetFilelist:
    """Tests for get_filelist."""

    def test_single_page(self):
        def handler(request):
            assert request.url.params["dir"] == "0:/sys"
            assert request.url.params["first"] == "0"
            return httpx.Response(
                200,
                json={
                    "dir": "0:/sys",
                    "first": 0,
                    "files": [
                        {
                            "type": "f",
                            "name": "config.g",
                            "size": 1234,
                            "date": "2024-03-01T12:30:05",
                        },
                        {
                            "type": "d",
                            "name": "macros",
                            "size": 0,
                            "date": "2024-02-01T08:00:00",
                        },
                    ],
                    "next": 0,
                },
            )

        filelist = make_client(handler).get_filelist("0:/sys")

        assert filelist.directory == "0:/sys"
        assert [e.name for e in filelist] == ["macros", "config.g"]
        config_g = filelist.files[0]
        assert config_g.kind == EntryKind.FILE
        assert config_g.size == 1234
        assert config_g.modified_at == datetime(2024, 3, 1, 12, 30, 5)

    def test_pages_are_merged_and_sorted(self):
        pages = {
            "0": {
                "dir": "0:/sys",
                "first": 0,
                "files": [
                    {"type": "f", "name": "b", "size": 1, "date": "2024-01-01T00:00:00"},
                    {"type": "d", "name": "z", "size": 0, "date": "2024-01-01T00:00:00"},
                ],
                "next": 2,
            },
            "2": {
                "dir": "0:/sys",
                "first": 2,
                "files": [
                    {"type": "f", "name": "a", "size": 1, "date": "2024-01-01T00:00:00"},
                    {"type": "d", "name": "a", "size": 0, "date": "2024-01-01T00:00:00"},
                ],
                "next": 0,
            },
        }
        requested = []

        def handler(request):
            first = request.url.params["first"]
            requested.append(first)
            return httpx.Response(200, json=pages[first])

        filelist = make_client(handler).get_filelist("0:/sys")

        assert requested == ["0", "2"]
        assert [(e.kind.value, e.name) for e in filelist] == [
            ("d", "a"),
            ("d", "z"),
            ("f", "a"),
            ("f", "b"),
        ]

    def test_non_advancing_pagination_rejected(self):
        def handler(request):
            # Always claims there is more starting at index 3
            return httpx.Response(
                200, json={"dir": "0:/sys", "first": 3, "files": [], "next": 3}
            )

        with pytest.raises(DuetInvalidResponseError, match="does not advance"):
            make_client(handler).get_filelist("0:/sys")

    def test_missing_directory(self):
        client = make_client(lambda request: httpx.Response(200, json={"err": 2}))
        with pytest.raises(DuetNotFoundError, match="0:/nope"):
            client.get_filelist("0:/nope")

    def test_missing_files_key(self):
        client = make_client(
            lambda request: httpx.Response(200, json={"dir": "0:/sys", "next": 0})
        )
        with pytest.raises(DuetInvalidResponseError):
            client.get_filelist("0:/sys")

    def test_malformed_entry(self):
        client = make_client(
            lambda request: httpx.Response(
                200, json={"dir": "0:/sys", "files": [{"type": "x", "name": "a"}]}
            )
        )
        with pytest.raises(DuetInvalidResponseError, match="Malformed"):
            client.get_filelist("0:/sys")


class TestGetFile:
    """Tests for get_file."""

    def test_returns_content_and_duration(self):
        def handler(request):
            assert request.url.path == "/rr_download"
            assert request.url.params["name"] == "0:/sys/config.g"
            return httpx.Response(200, content=b"M550 P\"Duet\"\n")

        content, elapsed = make_client(handler).get_file("0:/sys/config.g")

        assert content == b"M550 P\"Duet\"\n"
        assert elapsed >= 0

    def test_not_found(self):
        client = make_client(lambda request: httpx.Response(404))
        with pytest.raises(DuetNotFoundError):
            client.get_file("0:/sys/missing.g")

    def test_server_error_becomes_download_error(self):
        client = make_client(lambda request: httpx.Response(500), max_retries=0)
        with pytest.raises(DuetDownloadError, match="0:/sys/config.g"):
            client.get_file("0:/sys/config.g")
