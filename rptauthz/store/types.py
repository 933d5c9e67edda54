"""
Storage interfaces for resource servers, resources, policies and permissions.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ..authz.types import PermissionDefinition, Policy
from ..core.types import Resource, ResourceServer


@dataclass
class ResourceServerSnapshot:
    """
    Immutable view of one resource server taken at the start of an
    authorization call. Every object in it is a private copy.
    """
    server: ResourceServer
    resources: List[Resource] = field(default_factory=list)
    scopes: List[str] = field(default_factory=list)
    policies: Dict[str, Policy] = field(default_factory=dict)
    permissions: List[PermissionDefinition] = field(default_factory=list)

    def find_resource(self, identifier: str) -> Optional[Resource]:
        """Look a resource up by id first, then by name."""
        for resource in self.resources:
            if resource.id == identifier:
                return resource
        for resource in self.resources:
            if resource.name == identifier:
                return resource
        return None

    def has_scope(self, scope: str) -> bool:
        return scope in self.scopes

    def get_policy(self, name: str) -> Optional[Policy]:
        return self.policies.get(name)

    def resources_with_scopes(self, scopes: Iterable[str]) -> List[Resource]:
        """Resources declaring at least one of the scopes, in store order."""
        wanted = set(scopes)
        return [r for r in self.resources if wanted.intersection(r.scopes)]


class ResourceServerStore(ABC):
    """
    Abstract base class for the authorization object graph.

    Writes are serialized by the implementation; reads used by the decision
    path go through :meth:`snapshot`.
    """

    @abstractmethod
    async def save_resource_server(self, server: ResourceServer) -> ResourceServer:
        """Register or update a resource server."""
        pass

    @abstractmethod
    async def get_resource_server(self, client_id: str) -> Optional[ResourceServer]:
        pass

    @abstractmethod
    async def delete_resource_server(self, client_id: str) -> bool:
        """Drop a resource server and everything registered under it."""
        pass

    @abstractmethod
    async def add_scope(self, server_id: str, *scopes: str) -> None:
        """Register scope names on the resource server."""
        pass

    @abstractmethod
    async def list_scopes(self, server_id: str) -> List[str]:
        pass

    @abstractmethod
    async def save_resource(self, server_id: str, resource: Resource) -> Resource:
        """Create or replace a resource; registers its scopes."""
        pass

    @abstractmethod
    async def get_resource(self, server_id: str, identifier: str) -> Optional[Resource]:
        """Get a copy of a resource by id or name."""
        pass

    @abstractmethod
    async def list_resources(self, server_id: str) -> List[Resource]:
        pass

    @abstractmethod
    async def delete_resource(self, server_id: str, identifier: str) -> bool:
        pass

    @abstractmethod
    async def save_policy(self, server_id: str, policy: Policy) -> Policy:
        pass

    @abstractmethod
    async def get_policy(self, server_id: str, name: str) -> Optional[Policy]:
        pass

    @abstractmethod
    async def delete_policy(self, server_id: str, name: str) -> bool:
        """Delete a policy and drop references to it."""
        pass

    @abstractmethod
    async def save_permission(self, server_id: str, permission: PermissionDefinition) -> PermissionDefinition:
        """Create or replace a permission definition."""
        pass

    @abstractmethod
    async def get_permission(self, server_id: str, identifier: str) -> Optional[PermissionDefinition]:
        """Get a copy of a permission definition by id or name."""
        pass

    @abstractmethod
    async def list_permissions(self, server_id: str) -> List[PermissionDefinition]:
        pass

    @abstractmethod
    async def delete_permission(self, server_id: str, identifier: str) -> bool:
        pass

    @abstractmethod
    async def snapshot(self, server_id: str) -> ResourceServerSnapshot:
        """Copy-on-read view for one authorization call."""
        pass

    async def close(self) -> None:
        """Close the store and release resources"""
        pass
