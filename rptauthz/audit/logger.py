"""
Audit trail of authorization decisions and ticket changes.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any
from datetime import datetime
import asyncio
import json
import logging
from collections import deque

from ..core.types import AuditEvent

logger = logging.getLogger(__name__)

# Event types recorded by the authorization service
AUTHORIZATION_GRANTED = "authorization_granted"
AUTHORIZATION_DENIED = "authorization_denied"
AUTHORIZATION_REJECTED = "authorization_rejected"
TICKET_CREATED = "ticket_created"
TICKET_GRANTED = "ticket_granted"


class AuditLogger(ABC):
    """Abstract base class for audit logging"""

    @abstractmethod
    async def log(self, event: AuditEvent) -> None:
        """Record an audit event"""
        pass

    @abstractmethod
    async def get_events(
        self,
        client_id: Optional[str] = None,
        event_type: Optional[str] = None,
        principal: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[AuditEvent]:
        """Retrieve audit events with optional filtering"""
        pass

    async def close(self) -> None:
        """Close the audit logger and release resources"""
        pass


def _matches(event: AuditEvent, client_id, event_type, principal, start_time, end_time) -> bool:
    if client_id and event.client_id != client_id:
        return False
    if event_type and event.event_type != event_type:
        return False
    if principal and event.principal != principal:
        return False
    if start_time and event.timestamp < start_time:
        return False
    if end_time and event.timestamp > end_time:
        return False
    return True


class MemoryAuditLogger(AuditLogger):
    """In-memory audit logger keeping the most recent events"""

    def __init__(self, max_entries: int = 1000):
        self.max_entries = max_entries
        self.events: deque = deque(maxlen=max_entries)
        self._lock = asyncio.Lock()

    async def log(self, event: AuditEvent) -> None:
        async with self._lock:
            self.events.append(event)

    async def get_events(
        self,
        client_id: Optional[str] = None,
        event_type: Optional[str] = None,
        principal: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[AuditEvent]:
        async with self._lock:
            return [
                event for event in self.events
                if _matches(event, client_id, event_type, principal, start_time, end_time)
            ]


class FileAuditLogger(AuditLogger):
    """Append-only JSON lines audit log"""

    def __init__(self, file_path: str):
        self.file_path = file_path
        self._lock = asyncio.Lock()

    @staticmethod
    def _to_record(event: AuditEvent) -> Dict[str, Any]:
        return {
            "event_id": event.event_id,
            "event_type": event.event_type,
            "client_id": event.client_id,
            "timestamp": event.timestamp.isoformat(),
            "details": event.details,
            "principal": event.principal,
            "resource": event.resource,
        }

    async def log(self, event: AuditEvent) -> None:
        async with self._lock:
            try:
                with open(self.file_path, "a") as f:
                    f.write(json.dumps(self._to_record(event), default=str) + "\n")
            except OSError as e:
                logger.error(f"Failed to write audit event {event.event_id}: {e}")

    async def get_events(
        self,
        client_id: Optional[str] = None,
        event_type: Optional[str] = None,
        principal: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[AuditEvent]:
        events = []

        try:
            with open(self.file_path, "r") as f:
                for line in f:
                    try:
                        record = json.loads(line.strip())
                        event = AuditEvent(
                            event_id=record["event_id"],
                            event_type=record["event_type"],
                            client_id=record["client_id"],
                            timestamp=datetime.fromisoformat(record["timestamp"]),
                            details=record["details"],
                            principal=record.get("principal"),
                            resource=record.get("resource"),
                        )
                    except (json.JSONDecodeError, KeyError, ValueError):
                        logger.warning(f"Skipping malformed audit record in {self.file_path}")
                        continue

                    if _matches(event, client_id, event_type, principal, start_time, end_time):
                        events.append(event)
        except FileNotFoundError:
            pass

        return events


def create_audit_logger(logger_type: str = "memory", **kwargs) -> AuditLogger:
    """
    Factory function to create audit loggers

    Args:
        logger_type: Type of logger ("memory" or "file")
        **kwargs: Additional arguments for the logger

    Returns:
        AuditLogger instance
    """
    if logger_type == "memory":
        return MemoryAuditLogger(kwargs.get("max_entries", 1000))
    elif logger_type == "file":
        return FileAuditLogger(kwargs.get("file_path", "audit.log"))
    else:
        raise ValueError(f"Unknown logger type: {logger_type}")
