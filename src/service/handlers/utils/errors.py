"""
Error handling utilities for the ingest and consumer Lambda handlers.

This module defines the service exception hierarchy together with helpers that
log, measure and format errors consistently across the handler, logic and
queue layers.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from aws_lambda_powertools.metrics import MetricUnit
from pydantic import BaseModel, Field

from service.handlers.utils.observability import logger, metrics, tracer


class ErrorSeverity(str, Enum):
    """Error severity levels for classification."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ErrorCategory(str, Enum):
    """Error categories for classification."""
    BUSINESS_LOGIC = "BUSINESS_LOGIC"
    EXTERNAL_SERVICE = "EXTERNAL_SERVICE"
    INFRASTRUCTURE = "INFRASTRUCTURE"
    RATE_LIMIT = "RATE_LIMIT"


class ErrorContext(BaseModel):
    """Context information for errors."""

    request_id: str = Field(description="Unique request identifier")
    operation: str = Field(description="Operation being performed")
    resource_id: Optional[str] = Field(default=None, description="Resource identifier")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    additional_data: Dict[str, Any] = Field(default_factory=dict)


class BaseServiceError(Exception):
    """Base exception class for service errors."""

    def __init__(
        self,
        message: str,
        error_code: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.BUSINESS_LOGIC,
        context: Optional[ErrorContext] = None,
        retry_after: Optional[int] = None,
        user_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.category = category
        self.context = context
        self.retry_after = retry_after
        self.user_message = user_message or "An error occurred while processing your request."
        self.error_id = str(uuid.uuid4())

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging and response."""
        return {
            "error_id": self.error_id,
            "error_code": self.error_code,
            "message": self.message,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "category": self.category.value,
            "retry_after": self.retry_after,
            "context": self.context.model_dump(mode="json") if self.context else None,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


class ResourceNotFoundError(BaseServiceError):
    """Raised when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        context: Optional[ErrorContext] = None,
    ):
        message = f"{resource_type} with ID '{resource_id}' not found"
        super().__init__(
            message=message,
            error_code="RESOURCE_NOT_FOUND",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.BUSINESS_LOGIC,
            context=context,
            user_message=f"The requested {resource_type.lower()} was not found.",
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class RateLimitError(BaseServiceError):
    """Raised when rate limits are exceeded."""

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        retry_after: int,
        context: Optional[ErrorContext] = None,
    ):
        message = f"Rate limit exceeded: {limit} requests per {window_seconds} seconds"
        super().__init__(
            message=message,
            error_code="RATE_LIMIT_EXCEEDED",
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.RATE_LIMIT,
            context=context,
            retry_after=retry_after,
            user_message=f"Too many requests. Please try again in {retry_after} seconds.",
        )
        self.limit = limit
        self.window_seconds = window_seconds


class EnqueueRejectedError(BaseServiceError):
    """Raised when the queuing layer refuses to store a message."""

    def __init__(
        self,
        message: str,
        queue_name: str,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(
            message=message,
            error_code="ENQUEUE_REJECTED",
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.EXTERNAL_SERVICE,
            context=context,
            user_message="The request could not be accepted. Please retry.",
        )
        self.queue_name = queue_name


class MessageProcessingError(BaseServiceError):
    """Raised when a single queued message cannot be processed."""

    def __init__(
        self,
        message: str,
        message_id: str,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(
            message=message,
            error_code="MESSAGE_PROCESSING_ERROR",
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.BUSINESS_LOGIC,
            context=context,
        )
        self.message_id = message_id


class QueueError(BaseServiceError):
    """Raised when a queue operation is called with invalid arguments."""

    def __init__(self, message: str, error_code: str = "QUEUE_ERROR"):
        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.INFRASTRUCTURE,
        )


class InvalidReceiptHandleError(QueueError):
    """Raised when a receipt handle does not belong to a current delivery."""

    def __init__(self, receipt_handle: str):
        super().__init__(
            message=f"Receipt handle '{receipt_handle}' is not valid for any in-flight message",
            error_code="INVALID_RECEIPT_HANDLE",
        )
        self.receipt_handle = receipt_handle


def create_error_context(
    request_id: str,
    operation: str,
    resource_id: Optional[str] = None,
    **additional_data: Any,
) -> ErrorContext:
    """Create an error context for consistent error handling."""
    return ErrorContext(
        request_id=request_id,
        operation=operation,
        resource_id=resource_id,
        additional_data=additional_data,
    )


@tracer.capture_method
def log_error_metrics(error: BaseServiceError) -> None:
    """Log error metrics for monitoring and alerting."""

    metrics.add_metric(name="ErrorCount", unit=MetricUnit.Count, value=1)
    metrics.add_metric(name=f"Error{error.category.value}Count", unit=MetricUnit.Count, value=1)

    tracer.put_annotation("error_code", error.error_code)
    tracer.put_annotation("error_category", error.category.value)
    tracer.put_metadata("error_details", error.to_dict())

    logger.error(
        "Service error occurred",
        extra={
            "error_id": error.error_id,
            "error_code": error.error_code,
            "error_severity": error.severity.value,
            "error_category": error.category.value,
            "error_message": error.message,
            "context": error.context.model_dump(mode="json") if error.context else None,
        }
    )


def format_error_response(error: BaseServiceError) -> Dict[str, Any]:
    """Format error for API response."""

    response = {
        "error": {
            "code": error.error_code,
            "message": error.user_message,
            "error_id": error.error_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    }

    if error.retry_after:
        response["retry_after"] = error.retry_after

    return response


def get_http_status_code(error: BaseServiceError) -> int:
    """Get appropriate HTTP status code for error."""

    status_mapping = {
        "RESOURCE_NOT_FOUND": 404,
        "RATE_LIMIT_EXCEEDED": 429,
        "ENQUEUE_REJECTED": 500,
    }

    return status_mapping.get(error.error_code, 500)
