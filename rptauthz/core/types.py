"""
Core types and data structures for the rptauthz decision engine.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

from datetime import datetime
from typing import List, Optional, Dict, Any
from dataclasses import dataclass, field
from enum import Enum
import uuid


class DecisionStrategy(Enum):
    """How several votes are combined into one decision"""
    UNANIMOUS = "UNANIMOUS"
    AFFIRMATIVE = "AFFIRMATIVE"
    CONSENSUS = "CONSENSUS"


class EnforcementMode(Enum):
    """What a resource server does when no permission applies"""
    ENFORCING = "ENFORCING"
    PERMISSIVE = "PERMISSIVE"
    DISABLED = "DISABLED"


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Identity:
    """Authenticated requesting party"""
    id: str
    username: Optional[str] = None
    roles: List[str] = field(default_factory=list)
    client_roles: Dict[str, List[str]] = field(default_factory=dict)
    attributes: Dict[str, List[str]] = field(default_factory=dict)

    def has_role(self, role: str) -> bool:
        """Check a realm role, or a client role written as ``client/role``"""
        if "/" in role:
            client_id, client_role = role.split("/", 1)
            return client_role in self.client_roles.get(client_id, [])
        return role in self.roles


@dataclass
class Client:
    """OAuth client the request was made through"""
    client_id: str
    public_client: bool = False


@dataclass
class ResourceServer:
    """Application registering protected resources and permissions"""
    client_id: str
    decision_strategy: DecisionStrategy = DecisionStrategy.UNANIMOUS
    enforcement_mode: EnforcementMode = EnforcementMode.ENFORCING


@dataclass
class Resource:
    """Protected resource registered by a resource server"""
    name: str
    id: str = field(default_factory=_new_id)
    type: Optional[str] = None
    owner: Optional[str] = None
    scopes: List[str] = field(default_factory=list)
    attributes: Dict[str, List[str]] = field(default_factory=dict)
    owner_managed_access: bool = False
    uris: List[str] = field(default_factory=list)

    def has_scope(self, scope: str) -> bool:
        return scope in self.scopes

    def get_attribute(self, name: str) -> Optional[str]:
        """First value of an attribute, if any"""
        values = self.attributes.get(name)
        return values[0] if values else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "owner": self.owner,
            "scopes": list(self.scopes),
            "attributes": {k: list(v) for k, v in self.attributes.items()},
            "ownerManagedAccess": self.owner_managed_access,
            "uris": list(self.uris),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Resource":
        """Create from dictionary representation."""
        return cls(
            id=data.get("id") or _new_id(),
            name=data["name"],
            type=data.get("type"),
            owner=data.get("owner"),
            scopes=list(data.get("scopes", [])),
            attributes={k: list(v) for k, v in data.get("attributes", {}).items()},
            owner_managed_access=data.get("ownerManagedAccess", False),
            uris=list(data.get("uris", [])),
        )


@dataclass
class GrantedPermission:
    """One entry of the permission list embedded in an RPT"""
    resource_id: str
    resource_name: Optional[str] = None
    scopes: List[str] = field(default_factory=list)

    def to_dict(self, include_resource_name: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {"rsid": self.resource_id}
        if include_resource_name and self.resource_name is not None:
            data["rsname"] = self.resource_name
        if self.scopes:
            data["scopes"] = list(self.scopes)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GrantedPermission":
        return cls(
            resource_id=data["rsid"],
            resource_name=data.get("rsname"),
            scopes=list(data.get("scopes", [])),
        )


@dataclass
class Metadata:
    """Options controlling the issued permission list"""
    limit: Optional[int] = None
    include_resource_name: bool = True


@dataclass
class PermissionRequest:
    """Requested resource (id or name) and scopes; no resource means every resource with the scopes"""
    resource_id: Optional[str] = None
    scopes: List[str] = field(default_factory=list)


@dataclass
class AuthorizationRequest:
    """Inbound request for an RPT"""
    identity: Identity
    client: Client
    audience: Optional[str] = None  # Resource server client id
    permissions: List[PermissionRequest] = field(default_factory=list)
    ticket: Optional[str] = None
    claim_token: Optional[str] = None  # base64url encoded JSON object
    metadata: Optional[Metadata] = None
    rpt: Optional[str] = None  # Previously issued RPT to extend

    def add_permission(self, resource_id: Optional[str], *scopes: str) -> "AuthorizationRequest":
        self.permissions.append(PermissionRequest(resource_id=resource_id, scopes=list(scopes)))
        return self

    @property
    def resource_server_id(self) -> str:
        return self.audience or self.client.client_id


@dataclass
class AuthorizationResponse:
    """Issued RPT and the permission list it carries"""
    token: str
    permissions: List[GrantedPermission]
    expires_in: int
    token_type: str = "Bearer"
    upgraded: bool = False  # True when a prior RPT was extended


@dataclass
class IntrospectionResponse:
    """Result of introspecting an RPT"""
    active: bool
    permissions: List[GrantedPermission] = field(default_factory=list)
    subject: Optional[str] = None
    audience: Optional[str] = None
    client_id: Optional[str] = None
    expires_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        if not self.active:
            return {"active": False}
        return {
            "active": True,
            "token_type": "RPT",
            "sub": self.subject,
            "aud": self.audience,
            "azp": self.client_id,
            "exp": int(self.expires_at.timestamp()) if self.expires_at else None,
            "permissions": [p.to_dict() for p in self.permissions],
        }


@dataclass
class AuditEvent:
    """Audit event for logging and compliance"""
    event_type: str  # e.g., "authorization_granted", "ticket_granted"
    client_id: str
    event_id: str = field(default_factory=_new_id)
    timestamp: datetime = field(default_factory=datetime.now)
    details: Dict[str, Any] = field(default_factory=dict)
    principal: Optional[str] = None  # The principal involved
    resource: Optional[str] = None  # The resource involved
