import ipaddress

from fastapi import Request

# Proxy headers in order of preference
IP_HEADERS = ("x-forwarded-for", "x-real-ip")


def get_client_ip(request: Request) -> str:
    """Extract client IP address, trusting the first valid proxy header"""
    for header in IP_HEADERS:
        value = request.headers.get(header)
        if not value:
            continue
        candidate = value.split(",")[0].strip()
        try:
            ipaddress.ip_address(candidate)
            return candidate
        except ValueError:
            continue
    if request.client:
        return request.client.host
    return "unknown"


def get_user_agent(request: Request) -> str:
    return request.headers.get("user-agent", "unknown")
