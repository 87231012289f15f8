"""Adapters for the learning lifecycle.

Exports:
    `ports` defines the backend protocol and error taxonomy; `http_api`
    implements it against the platform's REST API with httpx.
"""

__all__ = ["ports", "http_api"]
