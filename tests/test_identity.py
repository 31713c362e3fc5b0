"""Tests for request identity resolution."""

from starlette.requests import Request

from usage_analytics.modules.capture.identity import client_address, resolve_user_id


def build_request(headers=None, query_string=b"", client=("10.0.0.7", 5123)) -> Request:
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/capture",
        "headers": raw_headers,
        "query_string": query_string,
        "client": client,
    }
    return Request(scope)


class TestResolveUserId:
    """Tests for the user id fallback chain."""

    def test_explicit_wins(self):
        request = build_request(headers={"X-User-ID": "header-user"})
        assert resolve_user_id(request, explicit="body-user") == "body-user"

    def test_header(self):
        request = build_request(headers={"X-User-ID": "header-user"}, query_string=b"user_id=query-user")
        assert resolve_user_id(request) == "header-user"

    def test_query_parameter(self):
        request = build_request(query_string=b"user_id=query-user")
        assert resolve_user_id(request) == "query-user"

    def test_cookie(self):
        request = build_request(headers={"Cookie": "user_session=cookie-user"})
        assert resolve_user_id(request) == "cookie-user"

    def test_client_address_fallback(self):
        request = build_request()
        assert resolve_user_id(request) == "user_10.0.0.7"

    def test_ipv6_address_is_sanitized(self):
        request = build_request(client=("::1", 5123))
        assert resolve_user_id(request) == "user___1"


class TestClientAddress:
    """Tests for client address extraction."""

    def test_forwarded_for_first_hop(self):
        request = build_request(headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})
        assert client_address(request) == "203.0.113.9"

    def test_no_client(self):
        request = build_request(client=None)
        assert client_address(request) == "unknown"
