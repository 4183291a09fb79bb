"""
Error taxonomy for the chat pipeline.

Each error maps to a plain-text HTTP response; no structured error body is
ever returned to the caller.
"""

from __future__ import annotations


class CompanionError(Exception):
    status_code: int = 500
    detail: str = "Internal Error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.detail)


class AuthenticationFailure(CompanionError):
    status_code = 401
    detail = "Unauthorized"


class RateLimitExceeded(CompanionError):
    status_code = 429
    detail = "Rate limit exceeded"


class NotFound(CompanionError):
    status_code = 404
    detail = "Companion not found"


class UpstreamFailure(CompanionError):
    """Remote model or store call failed or timed out."""


class Unexpected(CompanionError):
    pass
