"""
Authorization service: the entry point for issuing and introspecting RPTs.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import uuid
from typing import List, Optional
import logging

from .config import EngineConfig
from .types import (
    AuditEvent,
    AuthorizationRequest,
    AuthorizationResponse,
    GrantedPermission,
    IntrospectionResponse,
    Metadata,
)
from ..audit.logger import (
    AuditLogger,
    MemoryAuditLogger,
    AUTHORIZATION_DENIED,
    AUTHORIZATION_GRANTED,
    AUTHORIZATION_REJECTED,
    TICKET_CREATED,
    TICKET_GRANTED,
)
from ..authz.context import EvaluationTrace, EvaluationTraceManager
from ..authz.evaluator import PolicyEvaluator
from ..authz.permissions import PermissionListManager
from ..authz.processor import AuthorizationRequestProcessor
from ..errors import (
    AccessDeniedError,
    AuthzError,
    InvalidResourceError,
    InvalidScopeError,
    InvalidTicketError,
    InvalidTokenError,
)
from ..store.memory import MemoryResourceServerStore
from ..store.types import ResourceServerStore
from ..ticket.store import MemoryTicketStore, PermissionTicket, TicketFilter, TicketStore
from ..token.codec import RPTCodec


class AuthorizationService:
    """
    Issues requesting party tokens for authorization requests.
    Use AuthorizationService.new() to construct an instance with a validated
    configuration.
    """

    def __init__(
        self,
        config: EngineConfig,
        store: Optional[ResourceServerStore] = None,
        ticket_store: Optional[TicketStore] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        """
        Initialize the authorization service.

        Args:
            config: Engine configuration
            store: Resource server store (defaults to in-memory)
            ticket_store: Permission ticket store (defaults to in-memory)
            audit_logger: Audit logging implementation (defaults to in-memory)
        """
        self.config = config
        self.store = store or MemoryResourceServerStore()
        self.ticket_store = ticket_store or MemoryTicketStore()
        self.audit_logger = audit_logger or MemoryAuditLogger(max_entries=config.audit_max_entries)

        self.evaluator = PolicyEvaluator(failure_vote=config.policy_failure_vote)
        self.processor = AuthorizationRequestProcessor(self.evaluator, self.ticket_store)
        self.permission_lists = PermissionListManager()
        self.codec = RPTCodec(
            secret_key=config.token_config.secret_key,
            algorithm=config.token_config.algorithm,
            issuer=config.issuer,
            expiry=config.token_config.expiry,
        )
        self.logger = logging.getLogger(__name__)

    @classmethod
    def new(
        cls,
        config: EngineConfig,
        store: Optional[ResourceServerStore] = None,
        ticket_store: Optional[TicketStore] = None,
        audit_logger: Optional[AuditLogger] = None,
    ) -> "AuthorizationService":
        """
        Create a service after validating the configuration.

        Raises:
            ValueError: If configuration is invalid

        Example:
            service = AuthorizationService.new(EngineConfig(
                token_config=TokenConfig(secret_key="change-me")
            ))
        """
        config.validate()
        return cls(config, store, ticket_store, audit_logger)

    async def authorize(self, request: AuthorizationRequest) -> AuthorizationResponse:
        """
        Evaluate a request and issue an RPT.

        Args:
            request: Requested permissions, ticket, pushed claims or prior RPT

        Returns:
            AuthorizationResponse with the signed RPT and its permission list

        Raises:
            AccessDeniedError: If nothing requested was granted
            AuthzError: If the request is structurally invalid

        Example:
            response = await service.authorize(
                AuthorizationRequest(identity=alice, client=app).add_permission("Resource A", "read")
            )
        """
        server_id = request.resource_server_id
        trace = EvaluationTrace(request_id=str(uuid.uuid4()))

        async with EvaluationTraceManager(trace):
            try:
                snapshot = await self.store.snapshot(server_id)
                prior = self._prior_permissions(request, server_id)
                result = await self.processor.process(snapshot, request)

            except AccessDeniedError as e:
                await self._audit(AUTHORIZATION_DENIED, request, {
                    "request_id": trace.request_id,
                    "error": e.error_code,
                    "policy_failures": list(trace.policy_failures),
                    **e.details,
                })
                raise

            except AuthzError as e:
                self.logger.warning(f"Rejected authorization request from {request.identity.id}: {e}")
                await self._audit(AUTHORIZATION_REJECTED, request, {
                    "request_id": trace.request_id,
                    "error": e.error_code,
                    "error_description": e.message,
                })
                raise

        metadata = request.metadata or Metadata()
        limit = metadata.limit if metadata.limit is not None else self.config.default_limit
        permissions = self.permission_lists.merge(result.permissions, prior, limit)

        token = self.codec.encode(
            subject=request.identity.id,
            audience=server_id,
            permissions=permissions,
            client_id=request.client.client_id,
            include_resource_name=metadata.include_resource_name,
        )

        await self._audit(AUTHORIZATION_GRANTED, request, {
            "request_id": trace.request_id,
            "permissions": [p.to_dict() for p in permissions],
            "carried_over": len(prior),
            "policy_failures": list(trace.policy_failures),
        })

        return AuthorizationResponse(
            token=token,
            permissions=permissions,
            expires_in=int(self.config.token_config.expiry.total_seconds()),
            upgraded=request.rpt is not None,
        )

    def _prior_permissions(self, request: AuthorizationRequest, server_id: str) -> List[GrantedPermission]:
        if not request.rpt:
            return []

        claims = self.codec.decode(request.rpt, audience=server_id)
        if claims.subject != request.identity.id:
            raise InvalidTokenError("RPT was issued to a different subject")
        return claims.permissions

    async def introspect(self, token: str, audience: Optional[str] = None) -> IntrospectionResponse:
        """
        Report the permissions embedded in an RPT without re-evaluating them.

        Invalid or expired tokens are reported inactive.
        """
        try:
            claims = self.codec.decode(token, audience=audience)
        except InvalidTokenError as e:
            self.logger.info(f"Introspected inactive RPT: {e}")
            return IntrospectionResponse(active=False)

        return IntrospectionResponse(
            active=True,
            permissions=claims.permissions,
            subject=claims.subject,
            audience=claims.audience,
            client_id=claims.client_id,
            expires_at=claims.expires_at,
        )

    async def create_ticket(self, server_id: str, resource_id: str, scope: Optional[str] = None,
                            requester: Optional[str] = None) -> PermissionTicket:
        """
        Record a permission ticket for a resource owner to grant.

        Raises:
            InvalidResourceError: If the resource does not exist
            InvalidScopeError: If the resource does not declare the scope
        """
        resource = await self.store.get_resource(server_id, resource_id)
        if resource is None:
            raise InvalidResourceError(resource_id)
        if scope is not None and not resource.has_scope(scope):
            raise InvalidScopeError(scope, resource.name)

        ticket = await self.ticket_store.create_ticket(PermissionTicket(
            resource_id=resource.id,
            owner=resource.owner or server_id,
            scope=scope,
            requester=requester,
        ))

        await self.audit_logger.log(AuditEvent(
            event_type=TICKET_CREATED,
            client_id=server_id,
            principal=requester,
            resource=resource.id,
            details={"ticket": ticket.id, "scope": scope},
        ))
        return ticket

    async def set_ticket_granted(self, ticket_id: str, granted: bool = True) -> PermissionTicket:
        """
        Grant (or revoke) a permission ticket.

        Raises:
            InvalidTicketError: If the ticket does not exist
        """
        ticket = await self.ticket_store.set_granted(ticket_id, granted)
        if ticket is None:
            raise InvalidTicketError(ticket_id)

        if granted:
            await self.audit_logger.log(AuditEvent(
                event_type=TICKET_GRANTED,
                client_id=ticket.owner,
                principal=ticket.requester,
                resource=ticket.resource_id,
                details={"ticket": ticket.id, "scope": ticket.scope},
            ))
        return ticket

    async def find_tickets(self, criteria: Optional[TicketFilter] = None) -> List[PermissionTicket]:
        return await self.ticket_store.find_tickets(criteria or TicketFilter())

    async def _audit(self, event_type: str, request: AuthorizationRequest, details: dict) -> None:
        await self.audit_logger.log(AuditEvent(
            event_type=event_type,
            client_id=request.client.client_id,
            principal=request.identity.id,
            details={"audience": request.resource_server_id, **details},
        ))

    async def close(self) -> None:
        """Release store, ticket store and audit logger resources"""
        await self.store.close()
        await self.ticket_store.close()
        await self.audit_logger.close()
