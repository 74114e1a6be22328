"""API middleware."""

from .security import REQUEST_ID_HEADER, RequestIDMiddleware, SecurityHeadersMiddleware

__all__ = [
    "REQUEST_ID_HEADER",
    "RequestIDMiddleware",
    "SecurityHeadersMiddleware",
]
