"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries. None of them is fatal to the
host process: the evaluator degrades to "no notification this tick" and the
read endpoints degrade to empty results.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class StoreUnavailableException(RepositoryException):
    """Backing store unreachable or timed out."""

    def __init__(self, operation: str, details: Optional[dict] = None):
        self.operation = operation
        super().__init__(f"Store unavailable during {operation}", details)


class MalformedUnitException(DomainException):
    """Subtask cannot be evaluated (missing SLA budget or start time)."""

    def __init__(
        self,
        subtask_id: str,
        reason: str,
        details: Optional[dict] = None
    ):
        self.subtask_id = subtask_id
        self.reason = reason
        super().__init__(
            f"Subtask {subtask_id} is malformed: {reason}",
            details or {"subtask_id": subtask_id, "reason": reason}
        )


class ClassificationAmbiguousException(DomainException):
    """No classification rule matched an event."""

    def __init__(self, action: Optional[str], details: Optional[dict] = None):
        self.action = action
        super().__init__(
            f"No classification rule matched action '{action}'",
            details or {"action": action}
        )
