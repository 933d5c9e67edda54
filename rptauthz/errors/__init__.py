"""
Structured error handling for the rptauthz decision engine.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

from enum import Enum
from datetime import datetime
from typing import Dict, Any, Optional


class ErrorCode(Enum):
    """Wire-level error codes returned to callers of the authorization API."""

    # Request errors
    INVALID_RESOURCE = "invalid_resource"
    INVALID_SCOPE = "invalid_scope"
    INVALID_REQUEST = "invalid_request"
    INVALID_TICKET = "invalid_ticket"
    INVALID_RPT = "invalid_rpt"
    CLAIMS_NOT_ALLOWED = "claims_not_allowed"

    # Decision errors
    ACCESS_DENIED = "access_denied"
    POLICY_EVALUATION_FAILURE = "policy_evaluation_failure"

    # Store errors
    RESOURCE_SERVER_NOT_FOUND = "resource_server_not_found"
    STORAGE_ERROR = "storage_error"


_STATUS_CODES = {
    ErrorCode.ACCESS_DENIED: 403,
    ErrorCode.CLAIMS_NOT_ALLOWED: 403,
    ErrorCode.RESOURCE_SERVER_NOT_FOUND: 404,
    ErrorCode.POLICY_EVALUATION_FAILURE: 500,
    ErrorCode.STORAGE_ERROR: 500,
}


class AuthzError(Exception):
    """
    Base exception class for all rptauthz errors.

    Carries the wire error code, a human readable message and optional
    details for the transport layer.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now()

        super().__init__(self.message)

    @property
    def error_code(self) -> str:
        return self.code.value

    @property
    def status_code(self) -> int:
        """HTTP-style status a transport layer should answer with."""
        return _STATUS_CODES.get(self.code, 400)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        result = {
            "error": self.code.value,
            "error_description": self.message,
        }

        if self.details:
            result["details"] = self.details

        if self.cause:
            result["caused_by"] = str(self.cause)

        return result

    def is_client_error(self) -> bool:
        """Check if this is a client-side error."""
        return self.status_code < 500


class InvalidResourceError(AuthzError):
    """Request referenced a resource that does not exist."""

    def __init__(self, resource: str, **kwargs):
        super().__init__(
            ErrorCode.INVALID_RESOURCE,
            f"Resource with id [{resource}] does not exist.",
            details={"resource": resource},
            **kwargs
        )


class InvalidScopeError(AuthzError):
    """Request referenced a scope that does not exist on the target."""

    def __init__(self, scope: str, resource: Optional[str] = None, **kwargs):
        if resource:
            message = f"Invalid scope [{scope}] for resource [{resource}]."
        else:
            message = f"Invalid scope [{scope}]."
        super().__init__(
            ErrorCode.INVALID_SCOPE,
            message,
            details={"scope": scope, "resource": resource},
            **kwargs
        )


class ClaimsNotAllowedError(AuthzError):
    """A public client tried to push claims."""

    def __init__(self, client_id: Optional[str] = None, **kwargs):
        super().__init__(
            ErrorCode.CLAIMS_NOT_ALLOWED,
            "Public clients are not allowed to send claims",
            details={"client_id": client_id},
            **kwargs
        )


class AccessDeniedError(AuthzError):
    """Every requested permission evaluated to DENY."""

    def __init__(self, message: str = "not_authorized", **kwargs):
        super().__init__(ErrorCode.ACCESS_DENIED, message, **kwargs)


class PolicyEvaluationError(AuthzError):
    """A policy raised while being evaluated."""

    def __init__(self, policy: str, message: str, **kwargs):
        super().__init__(
            ErrorCode.POLICY_EVALUATION_FAILURE,
            f"Policy [{policy}] failed: {message}",
            details={"policy": policy},
            **kwargs
        )
        self.policy = policy


class InvalidTicketError(AuthzError):
    """Permission ticket is unknown or belongs to someone else."""

    def __init__(self, ticket_id: str, message: str = "Invalid permission ticket", **kwargs):
        super().__init__(
            ErrorCode.INVALID_TICKET,
            message,
            details={"ticket": ticket_id},
            **kwargs
        )


class InvalidTokenError(AuthzError):
    """A presented RPT could not be verified."""

    def __init__(self, message: str = "Invalid requesting party token", **kwargs):
        super().__init__(ErrorCode.INVALID_RPT, message, **kwargs)


class InvalidRequestError(AuthzError):
    """Malformed authorization request."""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        super().__init__(
            ErrorCode.INVALID_REQUEST,
            message,
            details={"field": field} if field else None,
            **kwargs
        )


class ResourceServerNotFoundError(AuthzError):
    """Audience does not name a registered resource server."""

    def __init__(self, client_id: str, **kwargs):
        super().__init__(
            ErrorCode.RESOURCE_SERVER_NOT_FOUND,
            f"Resource server [{client_id}] not found",
            details={"resource_server": client_id},
            **kwargs
        )


__all__ = [
    "ErrorCode",
    "AuthzError",
    "InvalidResourceError",
    "InvalidScopeError",
    "ClaimsNotAllowedError",
    "AccessDeniedError",
    "PolicyEvaluationError",
    "InvalidTicketError",
    "InvalidTokenError",
    "InvalidRequestError",
    "ResourceServerNotFoundError",
]
