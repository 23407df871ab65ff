"""
RequestContext management.
Use ContextVar to share the Request ID across async execution.
"""

import uuid
from contextvars import ContextVar
from typing import Optional


# Context variable for Request ID (UUID).
_request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    """Get the current Request ID."""
    return _request_id_var.get()


def generate_request_id() -> str:
    """
    Generate and set a new Request ID (UUID) for the current context.
    """
    new_id = str(uuid.uuid4())
    _request_id_var.set(new_id)
    return new_id


def set_request_id(request_id: str) -> str:
    """
    Set the Request ID, e.g. when propagated from an upstream proxy.

    Args:
        request_id: X-Request-Id header value

    Returns:
        The Request ID that was set
    """
    request_id = request_id.strip()
    if not request_id:
        raise ValueError("Request ID must not be empty")
    _request_id_var.set(request_id)
    return request_id


def clear_request_id() -> None:
    """Clear the Request ID context."""
    _request_id_var.set(None)
