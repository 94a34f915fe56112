"""
Core Module
============

Exception hierarchy shared by every helpdesk module.
"""

from helpdesk.core.exceptions import (
    ApplicationException,
    RepositoryException,
    ValidationException,
    InvalidTransitionException,
    AuthorizationException,
    AuthenticationException,
    ResourceNotFoundException,
    ConfigurationException,
    ExternalServiceException,
    WebhookDeliveryException,
)

__all__ = [
    "ApplicationException",
    "RepositoryException",
    "ValidationException",
    "InvalidTransitionException",
    "AuthorizationException",
    "AuthenticationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "ExternalServiceException",
    "WebhookDeliveryException",
]
