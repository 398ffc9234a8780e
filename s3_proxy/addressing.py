"""Client IP resolution for requests arriving through reverse proxies."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

    from litestar import Request
else:  # pragma: no cover
    Mapping = Any

REAL_IP_HEADER = "X-Real-Ip"
FORWARDED_FOR_HEADER = "X-Forwarded-For"


def ip_from_remote_address(remote_address: str) -> str:
    """Strip the port from a ``host:port`` peer address.

    Only the last colon is considered, so ``"[::1]:1234"`` becomes ``"[::1]"``
    and a bare IPv6 address loses its final group.
    """
    host, sep, _ = remote_address.rpartition(":")
    if not sep:
        return remote_address
    return host


def _header(headers: Mapping[str, str], name: str) -> str:
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    return value or ""


def resolve_client_ip(headers: Mapping[str, str], remote_address: str) -> str:
    """Return the IP of the client that originated the request.

    ``X-Forwarded-For`` wins over ``X-Real-Ip``; the first hop of a forwarded
    chain is the original client. Without either header the peer address is
    used.
    """
    real_ip = _header(headers, REAL_IP_HEADER)
    forwarded_for = _header(headers, FORWARDED_FOR_HEADER)
    if not real_ip and not forwarded_for:
        return ip_from_remote_address(remote_address)
    if forwarded_for:
        parts = [part.strip() for part in forwarded_for.split(",")]
        return parts[0]
    return real_ip


def remote_address_of(request: Request) -> str:
    client = request.client
    if client is None:
        return ""
    return f"{client.host}:{client.port}"
