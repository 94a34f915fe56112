"""
Core Exceptions
================

Errors raised by services and domain logic. The API layer maps them to
HTTP responses in `helpdesk.shared.api.middleware`:

    ValidationException        -> 422 (field errors in `details`)
    AuthenticationException    -> 401
    AuthorizationException     -> 403 {"detail": "forbidden"}
    ResourceNotFoundException  -> 404
    ConfigurationException     -> 500
    anything else              -> 500

Webhook failures never reach a caller; the emitter logs them.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all helpdesk errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class RepositoryException(ApplicationException):
    """A row the caller already holds disappeared underneath it."""


class ValidationException(ApplicationException):
    """
    Input rejected before anything was written.

    `details` maps field names (`title`, `request_data.patrimonio`, ...)
    to messages so the portal can show every error at once.
    """


class InvalidTransitionException(ValidationException):
    """Status change between two terminal statuses."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move ticket from {current} to {target}",
            {"status": f"transition {current} -> {target} is not allowed"}
        )


class AuthorizationException(ApplicationException):
    """The evaluator denied `action`; only logged, never echoed back."""

    def __init__(self, action: str, details: Optional[dict] = None):
        self.action = action
        super().__init__("forbidden", details)


class AuthenticationException(ApplicationException):
    """Missing auth header, or the user is unknown or inactive."""


class ResourceNotFoundException(ApplicationException):
    """Missing row. Tickets the caller may not read are reported this way too."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type} '{resource_id}' not found" if resource_id else f"{resource_type} not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Broken deployment data: no active SLA policy, invalid business calendar."""


class ExternalServiceException(ApplicationException):
    """Failure talking to something outside the database."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class WebhookDeliveryException(ExternalServiceException):
    """Non-2xx answer from the configured webhook URL."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Webhook", message, details)
