from fastapi import Request


def client_address(request: Request) -> str:
    """Best-effort client address: socket peer, then first X-Forwarded-For hop."""
    if request.client and request.client.host:
        return request.client.host

    # X-Forwarded-For can contain multiple IPs, take the first one
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    return "unknown"
