"""API layer for the CRM Agent Host.

Contains:
- controllers/: FastAPI route handlers
- dependencies.py: FastAPI dependencies (bearer token authentication)
"""

from api.dependencies import get_auth_context, get_current_caller

__all__ = [
    "get_auth_context",
    "get_current_caller",
]
