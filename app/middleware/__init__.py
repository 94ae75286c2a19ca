"""
Middleware components for request processing.

- Request context (request ID, client IP, structlog binding)
- CORS for the dashboard origin
"""

from app.middleware.cors import CORSMiddleware
from app.middleware.request_context import RequestContextMiddleware

__all__ = [
    "RequestContextMiddleware",
    "CORSMiddleware",
]
