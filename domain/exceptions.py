"""Domain Exceptions"""
from typing import Any, Dict, List, Optional

from pydantic import ValidationError


class DomainError(Exception):
    """Base class for business rule failures"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(DomainError):
    """Hotel, category, room, booking or order id does not resolve"""


class ConflictError(DomainError):
    """Business collision: duplicate name, overlapping stay, duplicate key"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConcurrentModificationError(DomainError):
    """Aggregate version changed between read and write"""


class ValidationFailure(ValueError):
    """Malformed input or failed invariant, one entry per offending field"""

    def __init__(self, errors: List[Dict[str, str]]):
        self.errors = errors
        fields = ", ".join(e["field"] for e in errors)
        super().__init__(f"Validation failed: {fields}")

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationFailure":
        return cls([{"field": field, "message": message}])

    @classmethod
    def from_pydantic(cls, error: ValidationError) -> "ValidationFailure":
        errors = []
        for item in error.errors():
            field = ".".join(str(part) for part in item["loc"]) or "__root__"
            message = item["msg"]
            # pydantic prefixes messages raised from validators
            if message.startswith("Value error, "):
                message = message[len("Value error, "):]
            errors.append({"field": field, "message": message})
        return cls(errors)
