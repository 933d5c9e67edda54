"""
Authorization request processing for the rptauthz decision engine.
Turns an inbound request into evaluated resource units.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, TYPE_CHECKING
import json
import logging

from ..core.types import AuthorizationRequest, GrantedPermission, Resource
from ..errors import (
    AccessDeniedError,
    ClaimsNotAllowedError,
    InvalidRequestError,
    InvalidResourceError,
    InvalidScopeError,
    InvalidTicketError,
)
from ..ticket.store import PermissionTicket, TicketFilter, TicketStore
from ..util.encoding import decode_claim_token
from .context import DecisionContext
from .evaluator import PolicyEvaluator

if TYPE_CHECKING:
    from ..store.types import ResourceServerSnapshot


logger = logging.getLogger(__name__)


@dataclass
class ResourceUnit:
    """One resource to evaluate; ``scopes`` None means every declared scope."""
    resource: Resource
    scopes: Optional[List[str]] = None

    def widen(self, scopes: Optional[List[str]]) -> None:
        if self.scopes is None:
            return
        if scopes is None:
            self.scopes = None
            return
        self.scopes.extend(s for s in scopes if s not in self.scopes)


@dataclass
class ProcessingResult:
    """Outcome of processing one request."""
    permissions: List[GrantedPermission] = field(default_factory=list)
    evaluated: int = 0
    pending_tickets: List[str] = field(default_factory=list)


def normalize_claims(raw: Dict[str, Any]) -> Dict[str, List[str]]:
    """Every claim becomes a list of strings."""
    claims = {}
    for name, value in raw.items():
        values = value if isinstance(value, list) else [value]
        claims[name] = [v if isinstance(v, str) else json.dumps(v) for v in values if v is not None]
    return claims


class AuthorizationRequestProcessor:
    """
    Validates a request, builds the resource units it asks for and
    evaluates them against a resource server snapshot.
    """

    def __init__(self, evaluator: PolicyEvaluator, ticket_store: TicketStore):
        self.evaluator = evaluator
        self.ticket_store = ticket_store

    def validate_metadata(self, request: AuthorizationRequest) -> None:
        metadata = request.metadata
        if metadata is None or metadata.limit is None:
            return
        limit = metadata.limit
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise InvalidRequestError(f"limit must be a positive integer, got {limit!r}", field="metadata.limit")

    def decode_claims(self, request: AuthorizationRequest) -> Dict[str, List[str]]:
        """
        Decode pushed claims.

        Raises:
            ClaimsNotAllowedError: If a public client pushed claims
            InvalidRequestError: If the claim token cannot be decoded
        """
        if not request.claim_token:
            return {}

        if request.client.public_client:
            raise ClaimsNotAllowedError(request.client.client_id)

        try:
            raw = decode_claim_token(request.claim_token)
        except ValueError as e:
            raise InvalidRequestError(f"Invalid claim_token: {e}", field="claim_token", cause=e)

        return normalize_claims(raw)

    async def _ticket_unit(self, snapshot: 'ResourceServerSnapshot',
                           request: AuthorizationRequest) -> PermissionTicket:
        ticket = await self.ticket_store.get_ticket(request.ticket)
        if ticket is None:
            raise InvalidTicketError(request.ticket)

        requester = request.identity.id
        if ticket.requester is None:
            ticket = await self.ticket_store.bind_requester(ticket.id, requester)
        elif ticket.requester != requester:
            raise InvalidTicketError(ticket.id, "Ticket was issued to a different requester")

        resource = snapshot.find_resource(ticket.resource_id)
        if resource is None:
            raise InvalidTicketError(ticket.id, "Ticket references an unknown resource")
        if ticket.scope and not resource.has_scope(ticket.scope):
            raise InvalidTicketError(ticket.id, f"Resource no longer declares scope [{ticket.scope}]")

        return ticket

    def build_units(self, snapshot: 'ResourceServerSnapshot', request: AuthorizationRequest,
                    ticket: Optional[PermissionTicket] = None) -> List[ResourceUnit]:
        """
        Resolve requested permissions into resource units.

        Entries for the same resource are coalesced at the position of the
        first one. Any unknown resource or scope aborts the whole request.
        """
        units: "OrderedDict[str, ResourceUnit]" = OrderedDict()

        def add(resource: Resource, scopes: Optional[List[str]]) -> None:
            unit = units.get(resource.id)
            if unit is None:
                units[resource.id] = ResourceUnit(resource, list(scopes) if scopes is not None else None)
            else:
                unit.widen(scopes)

        if ticket is not None:
            add(snapshot.find_resource(ticket.resource_id), [ticket.scope] if ticket.scope else None)

        for entry in request.permissions:
            scopes = list(OrderedDict.fromkeys(entry.scopes))

            if entry.resource_id is None:
                if not scopes:
                    raise InvalidRequestError("permission needs a resource or at least one scope",
                                              field="permission")
                for scope in scopes:
                    if not snapshot.has_scope(scope):
                        raise InvalidScopeError(scope)
                for resource in snapshot.resources_with_scopes(scopes):
                    add(resource, [s for s in scopes if resource.has_scope(s)])
                continue

            resource = snapshot.find_resource(entry.resource_id)
            if resource is None:
                raise InvalidResourceError(entry.resource_id)
            for scope in scopes:
                if not resource.has_scope(scope):
                    raise InvalidScopeError(scope, resource.name)
            add(resource, scopes or None)

        if not units and ticket is None and not request.permissions and not request.rpt:
            # Nothing asked for: every resource of the server
            for resource in snapshot.resources:
                add(resource, None)

        return list(units.values())

    async def granted_ticket_scopes(self, requester: str) -> Dict[str, Set[Optional[str]]]:
        """Scopes covered by the requester's granted tickets, per resource id."""
        tickets = await self.ticket_store.find_tickets(TicketFilter(requester=requester, granted=True))
        grants: Dict[str, Set[Optional[str]]] = {}
        for ticket in tickets:
            grants.setdefault(ticket.resource_id, set()).add(ticket.scope)
        return grants

    async def process(self, snapshot: 'ResourceServerSnapshot',
                      request: AuthorizationRequest) -> ProcessingResult:
        """
        Evaluate a request against a snapshot.

        Returns:
            ProcessingResult: Fresh permissions in unit order

        Raises:
            AuthzError: For structural problems with the request
            AccessDeniedError: If nothing was granted and the request was not
                a plain carry-over of a prior RPT
        """
        self.validate_metadata(request)
        claims = self.decode_claims(request)

        ticket = None
        if request.ticket:
            ticket = await self._ticket_unit(snapshot, request)

        units = self.build_units(snapshot, request, ticket)
        result = ProcessingResult()

        if not units:
            if request.rpt and not request.permissions:
                logger.debug("No resource units to evaluate, carrying over prior permissions")
                return result
            logger.info(f"No resources matched the request of {request.identity.id}")
            raise AccessDeniedError()

        ticket_grants = await self.granted_ticket_scopes(request.identity.id)

        for unit in units:
            context = DecisionContext(
                identity=request.identity,
                resource_server=snapshot.server,
                resource=unit.resource,
                client=request.client,
                claims=claims,
            )
            granted = await self.evaluator.decide(
                snapshot,
                unit.resource,
                context,
                scopes=unit.scopes,
                ticket_scopes=ticket_grants.get(unit.resource.id, ()),
            )
            result.evaluated += 1
            if granted is not None:
                result.permissions.append(granted)

        if ticket is not None and not ticket.granted and not self._covers(result.permissions, ticket):
            resource = snapshot.find_resource(ticket.resource_id)
            if resource.owner_managed_access:
                logger.info(f"Ticket {ticket.id} pending approval by {ticket.owner}")
                result.pending_tickets.append(ticket.id)

        logger.info(
            f"Evaluated {result.evaluated} resources for {request.identity.id}, "
            f"granted {len(result.permissions)}"
        )

        if not result.permissions:
            raise AccessDeniedError(details={"pending_tickets": result.pending_tickets}
                                    if result.pending_tickets else None)

        return result

    @staticmethod
    def _covers(permissions: List[GrantedPermission], ticket: PermissionTicket) -> bool:
        for permission in permissions:
            if permission.resource_id == ticket.resource_id:
                return ticket.scope is None or ticket.scope in permission.scopes
        return False
