"""
Permission tickets recorded for UMA-style deferred grants.
"""

from .store import (
    PermissionTicket,
    TicketFilter,
    TicketStore,
    MemoryTicketStore,
    RedisTicketStore,
    create_ticket_store,
)

__all__ = [
    "PermissionTicket",
    "TicketFilter",
    "TicketStore",
    "MemoryTicketStore",
    "RedisTicketStore",
    "create_ticket_store",
]
