"""
Custom exceptions for the Atlas service broker.

Every error surfaced to the platform derives from BrokerException, which
carries the HTTP status and the Open Service Broker error code used when the
exception is rendered as a response.
"""
from typing import Optional, Dict, Any
from fastapi import status


class BrokerException(Exception):
    """
    Base exception for all broker errors.

    All custom exceptions should inherit from this base class.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class AsyncRequiredError(BrokerException):
    """
    Raised when the platform does not accept asynchronous operations.

    Every lifecycle operation of this broker is asynchronous, so this is
    fatal to the request and never retried.
    """

    def __init__(self, operation: str):
        super().__init__(
            message="This service plan requires client support for asynchronous service operations.",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="AsyncRequired",
            details={"operation": operation},
        )


class ParamParseError(BrokerException):
    """Raised when request parameters or context cannot be parsed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Invalid parameters: {message}",
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="ValidationError",
            details=details,
        )


class PlanNotFoundError(BrokerException):
    """Raised when a service or plan ID is not part of the catalog."""

    def __init__(self, kind: str, resource_id: str):
        super().__init__(
            message=f"{kind} with ID '{resource_id}' not found in catalog",
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="ValidationError",
            details={kind.lower(): resource_id},
        )


class InstanceNotFoundError(BrokerException):
    """
    Raised when no cluster matches a service instance ID.

    This is an expected condition (the instance may already be gone) and
    callers match on this type to handle it separately from other failures.
    """

    def __init__(self, instance_id: str):
        super().__init__(
            message=f"Service instance '{instance_id}' does not exist",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="InstanceNotFound",
            details={"instance_id": instance_id},
        )
        self.instance_id = instance_id


class InstanceAlreadyExistsError(BrokerException):
    """Raised when Atlas already has a cluster with the requested name."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code="InstanceAlreadyExists",
            details=details,
        )


class InstanceNotRetrievableError(BrokerException):
    """Raised for instance fetches, which the catalog declares unsupported."""

    def __init__(self, instance_id: str):
        super().__init__(
            message=f"Unknown instance ID {instance_id}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NotImplemented",
            details={"instance_id": instance_id, "operation": "get-instance"},
        )


class RemoteAPIError(BrokerException):
    """
    Raised when the Atlas API rejects or fails a request.

    Client errors keep the status Atlas returned; anything else is reported
    as an internal error.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=f"Atlas error: {message}",
            status_code=status_code,
            error_code="RemoteAPIError",
            details=details,
        )


class AtlasError(Exception):
    """
    Raw failure reported by the Atlas HTTP API.

    Raised by the Atlas client and translated into a BrokerException by the
    broker service before it reaches the platform. ``status_code`` is None
    when Atlas answered with a body the client cannot parse.
    """

    def __init__(
        self,
        status_code: Optional[int],
        error_code: Optional[str] = None,
        detail: str = "",
        retry_after: Optional[float] = None,
    ):
        self.status_code = status_code
        self.error_code = error_code
        self.detail = detail
        self.retry_after = retry_after
        shown_status = status_code if status_code is not None else "no status"
        super().__init__(f"{shown_status} {error_code or 'UNKNOWN'}: {detail}")


# Export all exceptions
__all__ = [
    "BrokerException",
    "AsyncRequiredError",
    "ParamParseError",
    "PlanNotFoundError",
    "InstanceNotFoundError",
    "InstanceAlreadyExistsError",
    "InstanceNotRetrievableError",
    "RemoteAPIError",
    "AtlasError",
]
