"""
Custom exceptions for converge-wait.

This module defines the error taxonomy used by the poll engine and the
waiters. Transient errors keep a wait polling; everything else crosses the
wait boundary.
"""

from typing import Any


class ConvergeWaitError(Exception):
    """Base exception for converge-wait errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code or "CONVERGE_WAIT_ERROR"
        self.context = context or {}


class TransientError(ConvergeWaitError):
    """Base exception for conditions that are expected to resolve on their own."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, code or "TRANSIENT_ERROR", context)


class NotFoundError(TransientError):
    """Exception for remote objects that do not exist (yet)."""

    def __init__(
        self,
        message: str,
        kind: str | None = None,
        name: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "NOT_FOUND", context)
        self.kind = kind
        self.name = name


class MetricNotFoundError(TransientError):
    """Exception for metric series that are not exposed by the endpoint."""

    def __init__(
        self,
        message: str,
        family: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "METRIC_NOT_FOUND", context)
        self.family = family


class TransportError(TransientError):
    """Exception for network, auth or serialization failures."""

    def __init__(
        self,
        message: str,
        service: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "TRANSPORT_ERROR", context)
        self.service = service


class ProbeTimeoutError(TransientError):
    """Exception for HTTP probes that did not answer within the client timeout."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "PROBE_TIMEOUT", context)


class ConflictError(TransientError):
    """Exception for updates rejected because the object changed concurrently."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "CONFLICT", context)


class HardInputError(ConvergeWaitError, ValueError):
    """Exception for malformed call arguments. Never retried."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "HARD_INPUT_ERROR", context)


class DeadlineExceededError(ConvergeWaitError, TimeoutError):
    """Exception raised when no attempt succeeded before the timeout elapsed."""

    def __init__(
        self,
        message: str,
        timeout: float | None = None,
        last_error: BaseException | None = None,
        last_value: Any = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "DEADLINE_EXCEEDED", context)
        self.timeout = timeout
        self.last_error = last_error
        self.last_value = last_value


class WaitCancelledError(ConvergeWaitError):
    """Exception raised when a wait was aborted through its cancel event."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "WAIT_CANCELLED", context)
