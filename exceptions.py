"""
Custom Exception Hierarchy - Domain-specific error types

Provides clear, typed exceptions for the failure modes of the landscape
pipeline. All custom exceptions inherit from LandscapeError for easy catching.

Design Philosophy:
- Exceptions are data: Include context for debugging
- Fail explicitly: Better to raise specific exception than generic
- Catch specifically: Handler can distinguish error types
- Log contextually: Exception attributes enable rich logging
"""

from typing import Optional, Dict, Any, Tuple


class LandscapeError(Exception):
    """Base exception for all landscape errors

    All custom exceptions inherit from this, enabling:
    - Catch all landscape errors with single except clause
    - Distinguish our errors from library errors
    - Add common attributes (context)
    - Check if error is retryable via is_retryable property
    """

    # Default: errors are not retryable (permanent failure)
    _retryable: bool = False

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Check if this error represents a transient failure that should be retried."""
        return self._retryable

    def __str__(self):
        base_msg = super().__str__()
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{base_msg} (context: {context_str})"
        return base_msg


# ========== Pipeline Errors ==========


class InsufficientDataError(LandscapeError):
    """Poll is below a hard eligibility floor

    Expected condition, not a bug. Carries a user-displayable reason such as
    "Insufficient users: 19/20" so the UI can say how many more are needed.
    """

    def __init__(
        self,
        floor: str,
        required: int,
        actual: int,
        poll_id: Optional[str] = None,
    ):
        self.floor = floor
        self.required = required
        self.actual = actual
        self.shortfall = max(0, required - actual)
        self.poll_id = poll_id
        self.reason = f"Insufficient {floor}: {actual}/{required}"

        context: Dict[str, Any] = {"floor": floor, "required": required, "actual": actual}
        if poll_id:
            context["poll_id"] = poll_id
        super().__init__(self.reason, context)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reason": self.reason,
            "floor": self.floor,
            "required": self.required,
            "actual": self.actual,
            "shortfall": self.shortfall,
        }


class NumericalFailureError(LandscapeError):
    """PCA or k-means produced degenerate output (NaN, inf, empty basis)

    Fatal to the current computation attempt. The worker retries since new
    votes may change the matrix.
    """

    _retryable = True

    def __init__(
        self,
        message: str,
        stage: str,
        poll_id: Optional[str] = None,
        matrix_shape: Optional[Tuple[int, int]] = None,
    ):
        self.stage = stage
        self.poll_id = poll_id
        self.matrix_shape = matrix_shape

        context: Dict[str, Any] = {"stage": stage}
        if poll_id:
            context["poll_id"] = poll_id
        if matrix_shape:
            context["matrix_shape"] = f"{matrix_shape[0]}x{matrix_shape[1]}"
        super().__init__(message, context)


class ComputationTimeoutError(NumericalFailureError):
    """Numeric stages exceeded the configured time budget"""


# ========== Database Errors ==========


class DatabaseError(LandscapeError):
    """Database operation failures

    Examples:
    - Connection failures
    - Query errors
    - Transaction rollbacks
    """
    pass


class DatabaseConnectionError(DatabaseError):
    """Failed to establish or maintain database connection"""
    _retryable = True


class PersistenceFailureError(DatabaseError):
    """Landscape transaction could not commit

    No partial state is visible; safe to retry the whole computation.
    """

    _retryable = True

    def __init__(
        self,
        message: str,
        poll_id: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.poll_id = poll_id
        self.original_error = original_error

        context: Dict[str, Any] = {}
        if poll_id:
            context["poll_id"] = poll_id
        if original_error:
            context["original_error"] = str(original_error)
        super().__init__(message, context)


# ========== Queue Errors ==========


class QueueError(LandscapeError):
    """Clustering queue failures

    Examples:
    - Failed to enqueue job
    - Failed to claim or settle a job
    """

    _retryable = True

    def __init__(
        self,
        message: str,
        queue_id: Optional[int] = None,
        poll_id: Optional[str] = None,
    ):
        self.queue_id = queue_id
        self.poll_id = poll_id

        context: Dict[str, Any] = {}
        if queue_id:
            context["queue_id"] = queue_id
        if poll_id:
            context["poll_id"] = poll_id
        super().__init__(message, context)


# ========== Configuration Errors ==========


class ConfigurationError(LandscapeError):
    """Configuration or environment errors"""

    def __init__(self, message: str, config_key: Optional[str] = None):
        self.config_key = config_key
        context = {}
        if config_key:
            context["config_key"] = config_key
        super().__init__(message, context)


# ========== Validation Errors ==========


class ValidationError(LandscapeError):
    """Data validation failures

    Examples:
    - Vote value outside {-1, 0, 1}
    - Unknown order mode
    - Mismatched matrix dimensions
    """

    def __init__(self, message: str, field: Optional[str] = None, value: Optional[Any] = None):
        self.field = field
        self.value = value

        context = {}
        if field:
            context["field"] = field
        if value is not None:
            context["value"] = str(value)

        super().__init__(message, context)
