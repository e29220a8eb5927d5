"""Structured error taxonomy for the tracker."""
#
# PURPOSE:
# Every failure the tracker reports carries an ErrorCode, a human-readable
# message and a details dict, so callers can branch on the kind of failure
# instead of parsing strings.
#
# ERROR CODE FORMAT:
# - VALIDATION_XXX: Input records rejected before touching the store
# - DATA_XXX: Addressed rows missing, or the store refused a write
# - MIGRATION_XXX: Schema-change units that failed or cannot be reverted
# - SCHEMA_XXX: Live schema does not match the hierarchy's cascade model
# - CONFIG_XXX: Bad configuration or migration registry
# - DB_XXX: Handle lifecycle problems
#
# USAGE:
#   from tracker.errors import NotFound
#
#   try:
#       await tracker.get_arc("main", "prologue")
#   except NotFound as e:
#       print(e.code.value, e.details)
#
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


class ErrorCode(Enum):
    # Validation Errors
    VALIDATION_FAILED = "VALIDATION_001"

    # Data Errors
    NOT_FOUND = "DATA_001"
    CONSTRAINT_VIOLATION = "DATA_002"

    # Migration Errors
    MIGRATION_FAILED = "MIGRATION_001"
    MIGRATION_IRREVERSIBLE = "MIGRATION_002"

    # Schema Errors
    SCHEMA_INVALID = "SCHEMA_001"

    # Config Errors
    CONFIG_INVALID = "CONFIG_001"

    # Database Errors
    DB_CLOSED = "DB_001"


class TrackerError(Exception):
    """
    Base exception for the tracker with structured error information.

    Attributes:
        code: ErrorCode enum value (e.g., "DATA_001")
        message: Human-readable error message
        details: Dictionary with additional context
    """

    default_code = ErrorCode.CONFIG_INVALID

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code or self.default_code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{self.code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class ValidationFailure(TrackerError):
    """An input record failed validation; nothing was written."""

    default_code = ErrorCode.VALIDATION_FAILED

    def __init__(self, entity: str, errors: Sequence[Dict[str, str]]):
        self.entity = entity
        self.errors: List[Dict[str, str]] = list(errors)
        fields = ", ".join(e["field"] for e in self.errors) or "<record>"
        super().__init__(
            f"Invalid {entity}: {fields}",
            details={"entity": entity, "errors": self.errors},
        )


class NotFound(TrackerError):
    """The addressed entity, or a parent it references, does not exist."""

    default_code = ErrorCode.NOT_FOUND

    def __init__(self, entity: str, identity: Dict[str, Any]):
        self.entity = entity
        self.identity = dict(identity)
        path = "/".join(str(v) for v in self.identity.values())
        super().__init__(
            f"{entity} not found: {path}",
            details={"entity": entity, "identity": self.identity},
        )


class ConstraintViolation(TrackerError):
    """The store rejected a write (uniqueness or foreign key)."""

    default_code = ErrorCode.CONSTRAINT_VIOLATION

    def __init__(self, entity: str, message: str):
        self.entity = entity
        super().__init__(
            f"{entity} rejected by store: {message}",
            details={"entity": entity, "store_message": message},
        )


class MigrationError(TrackerError):
    """A migration unit failed (and was rolled back) or cannot be reverted."""

    default_code = ErrorCode.MIGRATION_FAILED

    def __init__(self, unit: str, message: str, code: Optional[ErrorCode] = None):
        self.unit = unit
        super().__init__(
            f"Migration {unit}: {message}",
            code=code,
            details={"unit": unit},
        )


class SchemaError(TrackerError):
    """The live schema breaks the hierarchy's cascade or index invariants."""

    default_code = ErrorCode.SCHEMA_INVALID

    def __init__(self, problems: Sequence[str]):
        self.problems = list(problems)
        super().__init__(
            f"Schema verification failed ({len(self.problems)} problem(s))",
            details={"problems": self.problems},
        )


class ConfigurationError(TrackerError):
    """Configuration or migration registry is invalid."""

    default_code = ErrorCode.CONFIG_INVALID


class StoreClosedError(TrackerError):
    """The database handle is not open."""

    default_code = ErrorCode.DB_CLOSED


__all__ = [
    "ErrorCode",
    "TrackerError",
    "ValidationFailure",
    "NotFound",
    "ConstraintViolation",
    "MigrationError",
    "SchemaError",
    "ConfigurationError",
    "StoreClosedError",
]
