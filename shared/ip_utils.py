"""
Client IP resolution for FastAPI requests.

The resolved address is sent to the captcha provider as ``remoteip``.
"""

from __future__ import annotations

from fastapi import Request

# Proxy headers in priority order
PROXY_IP_HEADERS: tuple[str, ...] = (
    "CF-Connecting-IP",  # Cloudflare
    "True-Client-IP",
    "X-Forwarded-For",  # first entry is the client
    "X-Real-IP",
)


def get_client_ip(request: Request) -> str:
    """Return the caller's IP, or ``""`` when none can be determined.

    Proxy headers are checked before the direct connection address.
    """
    for header in PROXY_IP_HEADERS:
        value = request.headers.get(header)
        if value:
            client_ip = value.split(",")[0].strip()
            if client_ip:
                return client_ip

    return request.client.host if request.client else ""
