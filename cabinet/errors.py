"""
Error taxonomy for the scheduling engine.

Only ``Unauthorized`` is raised to callers. Validation, conflict, not-found
and storage failures travel back as ``SchedulingError`` values inside a
result so the UI can show them inline.
"""

import enum
from typing import Optional

from pydantic import BaseModel


class Unauthorized(Exception):
    """Raised when an operation runs without an authenticated practitioner"""

    def __init__(self, message: str = "Unauthorized: User must be authenticated"):
        super().__init__(message)
        self.message = message


class StorageError(Exception):
    """Wraps an unexpected repository failure"""

    def __init__(self, operation: str, original: Exception):
        super().__init__(f"{operation} failed: {original}")
        self.operation = operation
        self.original = original


class SlotTakenError(StorageError):
    """The store's no-overlap constraint rejected a write that passed the application check"""


class ErrorCode(str, enum.Enum):
    VALIDATION = "VALIDATION"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    STORAGE = "STORAGE"


class SchedulingError(BaseModel):
    """A recoverable failure, safe to show to the user"""

    code: ErrorCode
    message: str
    conflicting_appointment_id: Optional[str] = None

    @classmethod
    def validation(cls, message: str) -> "SchedulingError":
        return cls(code=ErrorCode.VALIDATION, message=message)

    @classmethod
    def conflict(cls, patient_name: str, appointment_id: str) -> "SchedulingError":
        return cls(
            code=ErrorCode.CONFLICT,
            message=f"This time slot is already taken ({patient_name}). Please choose another time.",
            conflicting_appointment_id=appointment_id,
        )

    @classmethod
    def slot_taken(cls) -> "SchedulingError":
        return cls(
            code=ErrorCode.CONFLICT,
            message="This time slot was just taken. Please choose another time.",
        )

    @classmethod
    def not_found(cls, message: str = "Appointment not found.") -> "SchedulingError":
        return cls(code=ErrorCode.NOT_FOUND, message=message)

    @classmethod
    def storage(cls, action: str) -> "SchedulingError":
        # Never carries the underlying exception text
        return cls(code=ErrorCode.STORAGE, message=f"Unable to {action}. Please try again later.")
