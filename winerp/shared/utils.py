from __future__ import annotations
import uuid
from typing import Any

# ========================================
#           IDS AND ADDRESSES
# ========================================

def new_correlation_id() -> str:
    """Generate a fresh correlation id (canonical UUIDv4 string)."""
    return str(uuid.uuid4())


def build_ws_url(host: str, port: int) -> str:
    """
    Relay endpoint for host and port: 'ws://{host}:{port}'.

    IPv6 literals are bracketed.
    """
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    return f"ws://{host}:{port}"


# ========================================
#           PAYLOAD SHAPE CHECKS
# ========================================
"""
The envelope codec and the route dispatcher use these to decide whether a
value is an acceptable 'data' payload or 'route' value.
"""

def is_payload(value: Any) -> bool:
    """
    data is either a plain string or a JSON object with string keys
    """
    if isinstance(value, str):
        return True
    return isinstance(value, dict) and all(isinstance(k, str) for k in value)


def is_route_value(value: Any) -> bool:
    """
    route is a single route name, or the list of inform destinations
    """
    if isinstance(value, str):
        return True
    return isinstance(value, list) and all(isinstance(v, str) for v in value)
