"""Exceptions for shard-autoscaler."""

from typing import Any

# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------


class ShardAutoscalerError(Exception):
    """
    Base exception for all shard-autoscaler errors.

    All exceptions raised by this library inherit from this class,
    allowing callers to catch all library-specific errors with a single
    except clause. AWS errors are not wrapped: botocore exceptions
    propagate unchanged.
    """

    pass


# ---------------------------------------------------------------------------
# Category Exceptions
# ---------------------------------------------------------------------------


class InfrastructureError(ShardAutoscalerError):
    """
    Base exception for infrastructure-related errors.

    This includes errors related to Kinesis streams and CloudWatch alarms
    that are detected by this library rather than by the AWS APIs.
    """

    pass


# ---------------------------------------------------------------------------
# Validation Exceptions
# ---------------------------------------------------------------------------


class ValidationError(ShardAutoscalerError, ValueError):
    """
    Raised when user input or configuration fails validation.

    Attributes:
        field: Name of the field that failed validation
        value: The invalid value
        reason: Human readable explanation
    """

    def __init__(self, field: str, value: Any, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


# ---------------------------------------------------------------------------
# Infrastructure Exceptions
# ---------------------------------------------------------------------------


class ReadinessTimeoutError(InfrastructureError):
    """
    Raised when a stream does not become ACTIVE within the readiness timeout.

    Distinguishes "still not ready" from a failed scaling operation. The
    scaling that was already applied is not rolled back; the next alarm
    notification re-checks the stream.

    Attributes:
        stream_name: Stream that was being waited on
        waited_seconds: How long the wait lasted
        last_status: Last status reported by the stream
    """

    def __init__(self, stream_name: str, waited_seconds: float, last_status: str) -> None:
        self.stream_name = stream_name
        self.waited_seconds = waited_seconds
        self.last_status = last_status
        super().__init__(
            f"Stream {stream_name} not ready after {waited_seconds:.0f}s "
            f"(last status: {last_status})"
        )

    def as_dict(self) -> dict[str, Any]:
        """Serialize for structured log output."""
        return {
            "error": "readiness_timeout",
            "stream_name": self.stream_name,
            "waited_seconds": round(self.waited_seconds, 2),
            "last_status": self.last_status,
        }
