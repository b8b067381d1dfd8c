"""Module errors: structured error taxonomy for autrace."""
#
from enum import Enum
from typing import Dict, Any, Optional
# PURPOSE:
# Provides a structured error taxonomy for autrace with error codes and a
# single typed exception used at the seams where callers hand us bad input.
#
# WHAT IS *NOT* AN ERROR:
# - Malformed transaction payloads (missing lists, wrong shapes) are normalized
#   to empty results by the adapter and engines, never raised.
# - Failed account updates are business data: they flow into `failed` flags on
#   relationships and edges.
#
# ERROR CODE FORMAT:
# - RECORD_XXX: Operation record construction errors
# - VALUE_XXX: Value canonicalization errors
# - PHASE_XXX: Snapshot lifecycle phase errors
# - CONFIG_XXX: Configuration errors
# - SYSTEM_XXX: Anything else
#
# USAGE:
#   from autrace.errors import AutraceError, ErrorCode
#
#   raise AutraceError(
#       ErrorCode.PHASE_INVALID,
#       "Unknown lifecycle phase",
#       details={"phase": "mint"}
#   )
#
class ErrorCode(Enum):
    # Record Errors
    RECORD_INVALID = "RECORD_001"
    RECORD_MISSING_ID = "RECORD_002"

    # Value Errors
    VALUE_UNSUPPORTED = "VALUE_001"

    # Phase Errors
    PHASE_INVALID = "PHASE_001"

    # Config Errors
    CONFIG_INVALID = "CONFIG_001"
    CONFIG_PARSE_ERROR = "CONFIG_002"

    # System Errors
    SYSTEM_INTERNAL_ERROR = "SYSTEM_001"


class AutraceError(Exception):
    """
    Base exception class for autrace with structured error information.

    Attributes:
        code: ErrorCode enum value (e.g., "PHASE_001")
        message: Human-readable error message
        details: Optional dictionary with additional context
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}

        # Build exception message with code for easy debugging
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to dictionary for JSON serialization.

        Returns:
            Dictionary with code, message and details
        """
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }

    def to_json(self) -> str:
        import json
        return json.dumps(self.to_dict(), default=str)


# ============================================================================
# Convenience Functions
# ============================================================================

def handle_error(error: Exception, context: Optional[str] = None) -> AutraceError:
    """
    Convert a generic exception to an AutraceError.

    Args:
        error: The original exception
        context: Optional description of what was being attempted

    Returns:
        The error itself if it already is an AutraceError, otherwise a
        SYSTEM_INTERNAL_ERROR wrapping it
    """
    if isinstance(error, AutraceError):
        return error

    details: Dict[str, Any] = {
        "exception_type": type(error).__name__,
        "exception_message": str(error),
    }
    if context:
        details["context"] = context

    return AutraceError(
        ErrorCode.SYSTEM_INTERNAL_ERROR,
        f"Unexpected error: {error}",
        details=details,
    )


__all__ = ["ErrorCode", "AutraceError", "handle_error"]
