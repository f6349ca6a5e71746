"""Domain exceptions following RFC 9457 Problem Details for HTTP APIs."""

import uuid
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    https://tools.ietf.org/rfc/rfc9457.txt
    """

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        code: Optional[str] = None,
        retryable: bool = False,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize Problem Details exception.

        Args:
            status_code: HTTP status code
            title: Short, human-readable summary of the problem type
            detail: Human-readable explanation specific to this occurrence
            type_uri: URI reference that identifies the problem type
            code: Application-specific error code
            retryable: Whether the caller may retry the whole operation
            instance: URI reference that identifies the specific occurrence
            extensions: Additional problem-specific information
            headers: HTTP headers to include in response
        """
        self.status_code = status_code
        self.title = title
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.code = code
        self.retryable = retryable
        self.instance = instance
        self.extensions = extensions or {}

        # Create the problem details object
        self.problem_details: Dict[str, Any] = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
            "retryable": self.retryable,
        }

        if detail:
            self.problem_details["detail"] = detail

        if code:
            self.problem_details["code"] = code

        if self.instance:
            self.problem_details["instance"] = self.instance

        # Add extensions
        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=status_code,
            detail=detail,
            headers=headers
        )

    def __str__(self) -> str:
        return f"{self.title}: {self.detail}" if self.detail else self.title


class NotFoundError(ProblemDetailsException):
    """Exception for resource not found errors."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" with ID '{resource_id}'"
            detail += " could not be found"

        extensions = {"resource_type": resource_type}
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Resource Not Found",
            detail=detail,
            type_uri="https://example.com/problems/resource-not-found",
            code="NOT_FOUND",
            extensions=extensions,
        )


class ConflictError(ProblemDetailsException):
    """Exception for requests that conflict with the current state of a resource."""

    def __init__(
        self,
        title: str = "Resource Conflict",
        detail: str = "The request conflicts with the current state of the resource",
        code: str = "CONFLICT",
        retryable: bool = False,
        type_uri: str = "https://example.com/problems/resource-conflict",
        extensions: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            status_code=409,
            title=title,
            detail=detail,
            type_uri=type_uri,
            code=code,
            retryable=retryable,
            extensions=extensions,
        )


# Inventory exceptions

class InvalidRangeError(ProblemDetailsException):
    """Exception for malformed or oversized date ranges."""

    def __init__(self, arrival: date, departure: date, reason: str):
        super().__init__(
            status_code=422,
            title="Invalid Date Range",
            detail=f"Range {arrival.isoformat()}..{departure.isoformat()} is invalid: {reason}",
            type_uri="https://example.com/problems/invalid-range",
            code="INVALID_RANGE",
            extensions={
                "arrival": arrival.isoformat(),
                "departure": departure.isoformat(),
                "reason": reason,
            },
        )
        self.reason = reason


class CapacityExceededError(ConflictError):
    """Exception when a date in the requested range has no room left."""

    def __init__(self, room_type: str, night: date, available: int, requested: int = 1, reason: str = "sold_out"):
        super().__init__(
            title="Capacity Exceeded",
            detail=(
                f"Room type {room_type} has insufficient capacity on {night.isoformat()}. "
                f"Requested: {requested}, Available: {available}"
            ),
            code="CAPACITY_EXCEEDED",
            type_uri="https://example.com/problems/capacity-exceeded",
            extensions={
                "room_type": room_type,
                "date": night.isoformat(),
                "available": available,
                "requested": requested,
                "reason": reason,
            },
        )
        self.room_type = room_type
        self.night = night
        self.available = available
        self.reason = reason


class CapacityConflictError(ConflictError):
    """Exception when a capacity change would drop below what is already held."""

    def __init__(self, room_type: str, night: date, requested_total: int, held: int, detail: Optional[str] = None):
        super().__init__(
            title="Capacity Conflict",
            detail=detail or (
                f"Cannot set capacity of {room_type} on {night.isoformat()} to {requested_total}: "
                f"{held} rooms are reserved or blocked"
            ),
            code="CAPACITY_CONFLICT",
            type_uri="https://example.com/problems/capacity-conflict",
            extensions={
                "room_type": room_type,
                "date": night.isoformat(),
                "requested_total": requested_total,
                "held": held,
            },
        )
        self.night = night


class LockTimeoutError(ProblemDetailsException):
    """Exception when a unit of work could not acquire its locks in time."""

    def __init__(self, timeout_seconds: float):
        super().__init__(
            status_code=503,
            title="Lock Timeout",
            detail=f"Could not acquire the inventory lock within {timeout_seconds}s; retry the whole operation",
            type_uri="https://example.com/problems/lock-timeout",
            code="LOCK_TIMEOUT",
            retryable=True,
            extensions={"timeout_seconds": timeout_seconds},
        )


class LedgerInvariantError(RuntimeError):
    """
    Raised when an inventory counter would leave its valid range.

    This signals a defect in a caller, not a user error; it aborts the
    current unit of work and is never translated into a Problem Details body.
    """


# Booking exceptions

class InvalidTransitionError(ConflictError):
    """Exception when a booking cannot move from its current state to the requested one."""

    def __init__(self, booking_id: str, current_state: str, target_state: str, reason: Optional[str] = None):
        detail = f"Booking {booking_id} cannot transition from {current_state} to {target_state}"
        if reason:
            detail += f": {reason}"

        super().__init__(
            title="Invalid Transition",
            detail=detail,
            code="INVALID_TRANSITION",
            type_uri="https://example.com/problems/invalid-transition",
            extensions={
                "booking_id": booking_id,
                "current_state": current_state,
                "target_state": target_state,
            },
        )
        self.current_state = current_state
        self.target_state = target_state


class ConcurrentModificationError(ConflictError):
    """Exception when a booking was modified by someone else since it was read."""

    def __init__(self, booking_id: str, expected_version: Optional[int] = None, actual_version: Optional[int] = None):
        extensions: Dict[str, Any] = {"booking_id": booking_id}
        if expected_version is not None:
            extensions["expected_version"] = expected_version
        if actual_version is not None:
            extensions["actual_version"] = actual_version

        super().__init__(
            title="Concurrent Modification",
            detail=f"Booking {booking_id} was modified concurrently; re-read it and retry",
            code="CONCURRENT_MODIFICATION",
            retryable=True,
            type_uri="https://example.com/problems/concurrent-modification",
            extensions=extensions,
        )


# Audit exceptions

class AuditAlreadyRunningError(ConflictError):
    """Exception when a night audit for the same business date is in progress."""

    def __init__(self, target_date: date, run_id: Optional[str] = None):
        extensions = {"target_date": target_date.isoformat()}
        if run_id:
            extensions["run_id"] = run_id

        super().__init__(
            title="Audit Already Running",
            detail=f"A night audit for {target_date.isoformat()} is already running",
            code="AUDIT_ALREADY_RUNNING",
            retryable=True,
            type_uri="https://example.com/problems/audit-already-running",
            extensions=extensions,
        )


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for Problem Details exceptions.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    content = dict(exc.problem_details)
    content.setdefault("instance", str(request.url.path))
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=exc.headers,
        media_type="application/problem+json",
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Convert request validation errors to Problem Details with violations."""
    violations = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", "invalid value"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={
            "type": "https://example.com/problems/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": "The request data failed validation",
            "instance": str(request.url.path),
            "violations": violations,
        },
        media_type="application/problem+json",
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler that converts unhandled exceptions to Problem Details format.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    problem_details = {
        "type": "https://example.com/problems/internal-server-error",
        "title": "Internal Server Error",
        "status": 500,
        "detail": "An unexpected error occurred while processing the request",
        "instance": str(request.url),
        "error_id": str(uuid.uuid4()),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    return JSONResponse(
        status_code=500,
        content=problem_details,
        media_type="application/problem+json",
    )
