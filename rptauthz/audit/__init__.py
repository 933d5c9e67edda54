"""
Audit logging for authorization decisions.
"""

from .logger import (
    AuditLogger,
    MemoryAuditLogger,
    FileAuditLogger,
    create_audit_logger,
    AUTHORIZATION_GRANTED,
    AUTHORIZATION_DENIED,
    AUTHORIZATION_REJECTED,
    TICKET_CREATED,
    TICKET_GRANTED,
)

__all__ = [
    "AuditLogger",
    "MemoryAuditLogger",
    "FileAuditLogger",
    "create_audit_logger",
    "AUTHORIZATION_GRANTED",
    "AUTHORIZATION_DENIED",
    "AUTHORIZATION_REJECTED",
    "TICKET_CREATED",
    "TICKET_GRANTED",
]
