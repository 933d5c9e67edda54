"""
Permission ticket storage for rptauthz.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Dict, Any, List
import asyncio
import logging
import uuid

import redis.asyncio as redis

logger = logging.getLogger(__name__)


@dataclass
class PermissionTicket:
    """
    Recorded request by a requester for a (resource, scope) pairing.
    Resource owners grant or leave pending.
    """
    resource_id: str
    owner: str
    scope: Optional[str] = None
    requester: Optional[str] = None
    granted: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=datetime.now)
    granted_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "resource_id": self.resource_id,
            "owner": self.owner,
            "scope": self.scope,
            "requester": self.requester,
            "granted": self.granted,
            "created_at": self.created_at.isoformat(),
            "granted_at": self.granted_at.isoformat() if self.granted_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PermissionTicket":
        return cls(
            id=data["id"],
            resource_id=data["resource_id"],
            owner=data["owner"],
            scope=data.get("scope"),
            requester=data.get("requester"),
            granted=bool(data.get("granted", False)),
            created_at=datetime.fromisoformat(data["created_at"]),
            granted_at=datetime.fromisoformat(data["granted_at"]) if data.get("granted_at") else None,
        )


@dataclass
class TicketFilter:
    """Criteria for finding tickets; None matches anything"""
    resource_id: Optional[str] = None
    scope: Optional[str] = None
    owner: Optional[str] = None
    requester: Optional[str] = None
    granted: Optional[bool] = None

    def matches(self, ticket: PermissionTicket) -> bool:
        if self.resource_id is not None and ticket.resource_id != self.resource_id:
            return False
        if self.scope is not None and ticket.scope != self.scope:
            return False
        if self.owner is not None and ticket.owner != self.owner:
            return False
        if self.requester is not None and ticket.requester != self.requester:
            return False
        if self.granted is not None and ticket.granted != self.granted:
            return False
        return True


class TicketStore(ABC):
    """Abstract base class for permission ticket storage"""

    @abstractmethod
    async def create_ticket(self, ticket: PermissionTicket) -> PermissionTicket:
        """Store a new ticket"""
        pass

    @abstractmethod
    async def get_ticket(self, ticket_id: str) -> Optional[PermissionTicket]:
        """Retrieve a ticket"""
        pass

    @abstractmethod
    async def find_tickets(self, criteria: TicketFilter) -> List[PermissionTicket]:
        """Tickets matching the filter, oldest first"""
        pass

    @abstractmethod
    async def update_ticket(self, ticket: PermissionTicket) -> None:
        """Replace a stored ticket"""
        pass

    @abstractmethod
    async def delete_ticket(self, ticket_id: str) -> bool:
        """Delete a ticket"""
        pass

    async def set_granted(self, ticket_id: str, granted: bool = True) -> Optional[PermissionTicket]:
        """Grant (or revoke) a ticket"""
        ticket = await self.get_ticket(ticket_id)
        if ticket is None:
            return None

        ticket = replace(ticket, granted=granted, granted_at=datetime.now() if granted else None)
        await self.update_ticket(ticket)
        logger.info(f"Ticket {ticket_id} {'granted' if granted else 'revoked'}")
        return ticket

    async def bind_requester(self, ticket_id: str, requester: str) -> Optional[PermissionTicket]:
        """Bind an unbound ticket to the requester presenting it"""
        ticket = await self.get_ticket(ticket_id)
        if ticket is None or ticket.requester is not None:
            return ticket

        ticket = replace(ticket, requester=requester)
        await self.update_ticket(ticket)
        return ticket

    async def close(self) -> None:
        """Close the ticket store and release resources"""
        pass


class MemoryTicketStore(TicketStore):
    """In-memory ticket store for development and testing"""

    def __init__(self):
        self.tickets: Dict[str, PermissionTicket] = {}
        self._lock = asyncio.Lock()

    async def create_ticket(self, ticket: PermissionTicket) -> PermissionTicket:
        async with self._lock:
            if ticket.id in self.tickets:
                raise ValueError(f"ticket {ticket.id} already exists")
            self.tickets[ticket.id] = replace(ticket)
            return replace(ticket)

    async def get_ticket(self, ticket_id: str) -> Optional[PermissionTicket]:
        async with self._lock:
            ticket = self.tickets.get(ticket_id)
            return replace(ticket) if ticket else None

    async def find_tickets(self, criteria: TicketFilter) -> List[PermissionTicket]:
        async with self._lock:
            return [replace(t) for t in self.tickets.values() if criteria.matches(t)]

    async def update_ticket(self, ticket: PermissionTicket) -> None:
        async with self._lock:
            if ticket.id not in self.tickets:
                raise KeyError(ticket.id)
            self.tickets[ticket.id] = replace(ticket)

    async def delete_ticket(self, ticket_id: str) -> bool:
        async with self._lock:
            if ticket_id in self.tickets:
                del self.tickets[ticket_id]
                return True
            return False


class RedisTicketStore(TicketStore):
    """Redis-based ticket store for production use"""

    def __init__(self, redis_client, prefix: str = "rptauthz:ticket:"):
        """
        Initialize Redis ticket store

        Args:
            redis_client: Async Redis client (redis.asyncio) with decode_responses=True
            prefix: Key prefix for ticket hashes
        """
        self.redis = redis_client
        self.prefix = prefix
        self.index_key = f"{prefix}index"

    def _key(self, ticket_id: str) -> str:
        return f"{self.prefix}{ticket_id}"

    @staticmethod
    def _serialize(ticket: PermissionTicket) -> Dict[str, str]:
        # Redis hashes hold strings only
        return {k: ("" if v is None else str(v).lower() if isinstance(v, bool) else str(v))
                for k, v in ticket.to_dict().items()}

    @staticmethod
    def _deserialize(data: Dict[str, str]) -> PermissionTicket:
        return PermissionTicket.from_dict({
            "id": data["id"],
            "resource_id": data["resource_id"],
            "owner": data["owner"],
            "scope": data.get("scope") or None,
            "requester": data.get("requester") or None,
            "granted": data.get("granted") == "true",
            "created_at": data["created_at"],
            "granted_at": data.get("granted_at") or None,
        })

    async def create_ticket(self, ticket: PermissionTicket) -> PermissionTicket:
        key = self._key(ticket.id)
        if await self.redis.exists(key):
            raise ValueError(f"ticket {ticket.id} already exists")

        await self.redis.hset(key, mapping=self._serialize(ticket))
        await self.redis.zadd(self.index_key, {ticket.id: ticket.created_at.timestamp()})
        return replace(ticket)

    async def get_ticket(self, ticket_id: str) -> Optional[PermissionTicket]:
        data = await self.redis.hgetall(self._key(ticket_id))
        if not data:
            return None
        return self._deserialize(data)

    async def find_tickets(self, criteria: TicketFilter) -> List[PermissionTicket]:
        tickets = []
        for ticket_id in await self.redis.zrange(self.index_key, 0, -1):
            ticket = await self.get_ticket(ticket_id)
            if ticket is None:
                # Index entry outlived its hash
                await self.redis.zrem(self.index_key, ticket_id)
                continue
            if criteria.matches(ticket):
                tickets.append(ticket)
        return tickets

    async def update_ticket(self, ticket: PermissionTicket) -> None:
        key = self._key(ticket.id)
        if not await self.redis.exists(key):
            raise KeyError(ticket.id)
        await self.redis.hset(key, mapping=self._serialize(ticket))

    async def delete_ticket(self, ticket_id: str) -> bool:
        await self.redis.zrem(self.index_key, ticket_id)
        result = await self.redis.delete(self._key(ticket_id))
        return result > 0

    async def close(self) -> None:
        await self.redis.aclose()


def create_ticket_store(store_type: str = "memory", **kwargs) -> TicketStore:
    """
    Factory function to create ticket stores

    Args:
        store_type: Type of store ("memory" or "redis")
        **kwargs: Additional arguments for the store

    Returns:
        TicketStore instance
    """
    if store_type == "memory":
        return MemoryTicketStore()
    elif store_type == "redis":
        redis_client = kwargs.get("redis_client")
        if not redis_client:
            redis_url = kwargs.get("redis_url")
            if not redis_url:
                raise ValueError("redis_client or redis_url is required for Redis ticket store")
            redis_client = redis.from_url(redis_url, decode_responses=True)
        return RedisTicketStore(redis_client, prefix=kwargs.get("prefix", "rptauthz:ticket:"))
    else:
        raise ValueError(f"Unknown store type: {store_type}")
