import ipaddress
import logging
import socket
import time

logger = logging.getLogger("sahayak.client")


def local_ip() -> str:
    """Best guess at this machine's LAN IPv4 address."""
    try:
        # No packet is sent for a UDP connect; it only selects a route.
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(("10.255.255.255", 1))
            ip = s.getsockname()[0]
    except OSError as e:
        logger.debug(f"local_ip lookup failed: {e}")
        return "localhost"
    return ip if not ipaddress.ip_address(ip).is_loopback else "localhost"


def relative_time(timestamp_ms: int, now_ms: int | None = None) -> str:
    """'5 seconds ago' / '2 minutes ago' / '1 hour ago', else a clock time."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    seconds = max(0, (now_ms - timestamp_ms) // 1000)
    minutes = seconds // 60
    hours = minutes // 60

    if seconds < 60:
        return f"{seconds} second{'s' if seconds != 1 else ''} ago"
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    if hours < 24:
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    return time.strftime("%H:%M:%S", time.localtime(timestamp_ms / 1000))


def educator_url(host: str, port: int | str) -> str:
    h = host.strip()
    if h.startswith("ws://") or h.startswith("wss://"):
        return h if h.rstrip("/").endswith("/ws") else f"{h.rstrip('/')}/ws"
    try:
        if isinstance(ipaddress.ip_address(h), ipaddress.IPv6Address):
            h = f"[{h}]"
    except ValueError:
        pass
    return f"ws://{h}:{int(port)}/ws"
