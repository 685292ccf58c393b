"""Error types surfaced to the HTTP layer."""

from __future__ import annotations


SESSION_TERMINATED_MSG = (
    "This account has been logged in from another device. This session has been terminated."
)


class ShiptrackError(Exception):
    def __init__(self, http_status: int, code: str, message: str):
        super().__init__(message)
        self.http_status = http_status
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class InvalidTopic(ShiptrackError):
    def __init__(self, message: str = "Invalid topic"):
        super().__init__(http_status=400, code="INVALID_TOPIC", message=message)


class InvalidCredentials(ShiptrackError):
    """Login attempt with an unknown email or a wrong password."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(http_status=400, code="INVALID_CREDENTIALS", message=message)


class InvalidCredential(ShiptrackError):
    """Bearer token missing, malformed, expired, or bound to a deleted account."""

    def __init__(self, message: str = "Not authorized, token failed"):
        super().__init__(http_status=401, code="INVALID_CREDENTIAL", message=message)


class SessionMismatch(ShiptrackError):
    def __init__(self, message: str = SESSION_TERMINATED_MSG):
        super().__init__(http_status=401, code="SESSION_MISMATCH", message=message)


class PermissionDenied(ShiptrackError):
    def __init__(self, message: str = "Not allowed"):
        super().__init__(http_status=403, code="PERMISSION_DENIED", message=message)


class NotFound(ShiptrackError):
    def __init__(self, message: str = "Not found"):
        super().__init__(http_status=404, code="NOT_FOUND", message=message)


class Conflict(ShiptrackError):
    def __init__(self, message: str = "Already exists"):
        super().__init__(http_status=409, code="CONFLICT", message=message)


class InvalidRequest(ShiptrackError):
    """Well-formed request the store refuses, e.g. clearing a required field."""

    def __init__(self, message: str = "Invalid request"):
        super().__init__(http_status=400, code="INVALID_REQUEST", message=message)
