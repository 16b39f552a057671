# app/errors.py
"""
Error taxonomy shared by the ledger, the ingestor and the HTTP layer.
Each error carries a machine-readable `kind` and the HTTP status the API
answers with, so every failure reaches the client as a structured body.
"""

from fastapi import status


class OccupancyError(Exception):
    kind = "occupancy_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.kind)
        self.detail = detail or self.kind

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.detail}


class NotInitialized(OccupancyError):
    """Ledger accessed before the status row was bootstrapped."""
    kind = "not_initialized"
    status_code = status.HTTP_409_CONFLICT


class InvalidCapacity(OccupancyError):
    kind = "invalid_capacity"
    status_code = status.HTTP_400_BAD_REQUEST


class Unauthorized(OccupancyError):
    kind = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED


class InvalidInput(OccupancyError):
    kind = "invalid_input"
    status_code = status.HTTP_400_BAD_REQUEST


class StorageUnavailable(OccupancyError):
    """Durable store unreachable, or the ledger is shutting down."""
    kind = "storage_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class FeedUnreachable(OccupancyError):
    """MQTT broker connection is down."""
    kind = "feed_unreachable"
    status_code = status.HTTP_502_BAD_GATEWAY


class StorageError(OccupancyError):
    """Durable store rejected a statement (constraint, bad data)."""
    kind = "storage_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
