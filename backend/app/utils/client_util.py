"""
utils/client_util.py — Request provenance (client IP and user agent).

Header precedence for the IP: CF-Connecting-IP, first X-Forwarded-For hop,
X-Real-IP, then the socket peer address.
"""

from __future__ import annotations

from typing import NamedTuple


class ClientInfo(NamedTuple):
    ip: str | None
    user_agent: str | None


def get_client_info(request) -> ClientInfo:
    headers = request.headers

    ip = headers.get("CF-Connecting-IP")
    if not ip:
        forwarded = headers.get("X-Forwarded-For", "")
        ip = forwarded.split(",")[0].strip() or None
    if not ip:
        ip = headers.get("X-Real-IP") or request.remote_addr

    return ClientInfo(ip=ip or None, user_agent=headers.get("User-Agent") or None)
