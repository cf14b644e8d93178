"""
Validation DTOs shared by input schemas and config validation.

Pure value objects; they describe problems, they never raise.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class FieldError:
    """
    A single field-level validation problem.

    Contract:
        Carries a machine-readable code, human-readable message and the
        dotted path of the offending field (``items[0].quantity``).
    """

    code: str
    message: str
    field: str | None = None
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class ValidationResult:
    """
    Result of validation.

    Guarantees:
        - ``errors`` is always a tuple (never None)
        - ``bool(result) == result.is_valid``
    """

    is_valid: bool
    errors: tuple[FieldError, ...] = field(default_factory=tuple)

    @classmethod
    def success(cls) -> ValidationResult:
        """Create a successful validation result."""
        return cls(is_valid=True, errors=())

    @classmethod
    def failure(cls, *errors: FieldError) -> ValidationResult:
        """Create a failed validation result."""
        return cls(is_valid=False, errors=tuple(errors))

    def __bool__(self) -> bool:
        return self.is_valid
