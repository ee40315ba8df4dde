"""
Rate limiting (slowapi) keyed by the real client IP.
"""
from typing import Optional

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address


def get_client_ip(request: Request) -> Optional[str]:
    """
    Client IP behind proxies: first X-Forwarded-For hop, then X-Real-IP,
    then the socket peer.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return request.client.host if request.client else None


def client_ip_key(request: Request) -> str:
    return get_client_ip(request) or get_remote_address(request)


limiter = Limiter(key_func=client_ip_key)
