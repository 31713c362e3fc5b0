"""Identity resolution for inbound requests."""
from typing import Optional

from fastapi import Request

USER_HEADER = "X-User-ID"
USER_QUERY_PARAM = "user_id"
USER_COOKIE = "user_session"
FORWARDED_HEADER = "X-Forwarded-For"


def client_address(request: Request) -> str:
    """Best-effort client address: first forwarded hop, else the socket peer."""
    forwarded = request.headers.get(FORWARDED_HEADER)
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


def resolve_user_id(request: Request, explicit: Optional[str] = None) -> str:
    """
    Resolve the acting user for a request.

    Falls back through: explicit value, ``X-User-ID`` header, ``user_id`` query
    parameter, ``user_session`` cookie, then a pseudo id derived from the
    client address.
    """
    for candidate in (
        explicit,
        request.headers.get(USER_HEADER),
        request.query_params.get(USER_QUERY_PARAM),
        request.cookies.get(USER_COOKIE),
    ):
        if candidate:
            return candidate

    return "user_" + client_address(request).replace(":", "_")
