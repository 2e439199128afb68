"""
Engagement error taxonomy. Services raise these; main.py maps them to HTTP status codes.
ConflictError is recovered inside the services (re-read and return current state).
"""
from fastapi import status


class EngagementError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(EngagementError):
    status_code = status.HTTP_404_NOT_FOUND


class UnauthorizedError(EngagementError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(EngagementError):
    status_code = status.HTTP_403_FORBIDDEN


class InvalidOperationError(EngagementError):
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(EngagementError):
    status_code = status.HTTP_409_CONFLICT
