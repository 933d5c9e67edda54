"""
In-memory resource server store.
Provides a simple memory-based storage backend for development and testing.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional
import asyncio
import copy
import logging

from ..authz.types import PermissionDefinition, Policy, PolicyType
from ..core.types import Resource, ResourceServer
from ..errors import ResourceServerNotFoundError
from .types import ResourceServerSnapshot, ResourceServerStore

logger = logging.getLogger(__name__)


@dataclass
class _ServerState:
    server: ResourceServer
    resources: "OrderedDict[str, Resource]" = field(default_factory=OrderedDict)
    scopes: List[str] = field(default_factory=list)
    policies: "OrderedDict[str, Policy]" = field(default_factory=OrderedDict)
    permissions: "OrderedDict[str, PermissionDefinition]" = field(default_factory=OrderedDict)

    def find_resource(self, identifier: str) -> Optional[Resource]:
        if identifier in self.resources:
            return self.resources[identifier]
        for resource in self.resources.values():
            if resource.name == identifier:
                return resource
        return None

    def find_permission(self, identifier: str) -> Optional[PermissionDefinition]:
        if identifier in self.permissions:
            return self.permissions[identifier]
        for permission in self.permissions.values():
            if permission.name == identifier:
                return permission
        return None

    def register_scopes(self, scopes: List[str]) -> None:
        for scope in scopes:
            if scope not in self.scopes:
                self.scopes.append(scope)


class MemoryResourceServerStore(ResourceServerStore):
    """
    In-memory store implementation.

    Every read hands out deep copies, so callers mutate their own objects
    and publish changes with the ``save_*`` methods.

    Note: All data is lost when the process terminates.
    """

    def __init__(self):
        self._servers: Dict[str, _ServerState] = {}
        self._lock = asyncio.Lock()

    def _state(self, server_id: str) -> _ServerState:
        state = self._servers.get(server_id)
        if state is None:
            raise ResourceServerNotFoundError(server_id)
        return state

    async def save_resource_server(self, server: ResourceServer) -> ResourceServer:
        async with self._lock:
            state = self._servers.get(server.client_id)
            if state is None:
                self._servers[server.client_id] = _ServerState(server=copy.deepcopy(server))
                logger.info(f"Registered resource server {server.client_id}")
            else:
                state.server = copy.deepcopy(server)
            return copy.deepcopy(server)

    async def get_resource_server(self, client_id: str) -> Optional[ResourceServer]:
        async with self._lock:
            state = self._servers.get(client_id)
            return copy.deepcopy(state.server) if state else None

    async def delete_resource_server(self, client_id: str) -> bool:
        async with self._lock:
            return self._servers.pop(client_id, None) is not None

    async def add_scope(self, server_id: str, *scopes: str) -> None:
        async with self._lock:
            self._state(server_id).register_scopes(list(scopes))

    async def list_scopes(self, server_id: str) -> List[str]:
        async with self._lock:
            return list(self._state(server_id).scopes)

    async def save_resource(self, server_id: str, resource: Resource) -> Resource:
        async with self._lock:
            state = self._state(server_id)

            if not resource.name:
                raise ValueError("resource name is required")

            for other in state.resources.values():
                if other.name == resource.name and other.id != resource.id:
                    raise ValueError(f"resource with name {resource.name} already exists")

            stored = copy.deepcopy(resource)
            if not stored.owner:
                stored.owner = state.server.client_id

            state.register_scopes(stored.scopes)
            state.resources[stored.id] = stored
            return copy.deepcopy(stored)

    async def get_resource(self, server_id: str, identifier: str) -> Optional[Resource]:
        async with self._lock:
            resource = self._state(server_id).find_resource(identifier)
            return copy.deepcopy(resource) if resource else None

    async def list_resources(self, server_id: str) -> List[Resource]:
        async with self._lock:
            return [copy.deepcopy(r) for r in self._state(server_id).resources.values()]

    async def delete_resource(self, server_id: str, identifier: str) -> bool:
        async with self._lock:
            state = self._state(server_id)
            resource = state.find_resource(identifier)
            if resource is None:
                return False

            del state.resources[resource.id]

            # Instance-level permissions lose the resource; drop those left with none
            for permission in list(state.permissions.values()):
                if resource.id in permission.resources:
                    permission.resources.remove(resource.id)
                    if not permission.resources:
                        del state.permissions[permission.id]
                        logger.info(f"Removed permission {permission.name} with deleted resource {resource.name}")
            return True

    async def save_policy(self, server_id: str, policy: Policy) -> Policy:
        async with self._lock:
            state = self._state(server_id)

            if policy.policy_type is PolicyType.AGGREGATE:
                for member in policy.policies:
                    if member != policy.name and member not in state.policies:
                        raise ValueError(f"aggregate policy {policy.name} references unknown policy {member}")

            for name, other in list(state.policies.items()):
                if other.id == policy.id and name != policy.name:
                    del state.policies[name]

            state.policies[policy.name] = copy.deepcopy(policy)
            return copy.deepcopy(policy)

    async def get_policy(self, server_id: str, name: str) -> Optional[Policy]:
        async with self._lock:
            policy = self._state(server_id).policies.get(name)
            return copy.deepcopy(policy) if policy else None

    async def delete_policy(self, server_id: str, name: str) -> bool:
        async with self._lock:
            state = self._state(server_id)
            if state.policies.pop(name, None) is None:
                return False

            for permission in state.permissions.values():
                if name in permission.policies:
                    permission.policies.remove(name)
            for policy in state.policies.values():
                if policy.policy_type is PolicyType.AGGREGATE and name in policy.policies:
                    policy.policies.remove(name)
            return True

    async def save_permission(self, server_id: str, permission: PermissionDefinition) -> PermissionDefinition:
        async with self._lock:
            state = self._state(server_id)
            permission.validate()

            stored = copy.deepcopy(permission)

            # Resources may be given by name; store ids
            resolved = []
            for identifier in stored.resources:
                resource = state.find_resource(identifier)
                if resource is None:
                    raise ValueError(f"permission {stored.name} references unknown resource {identifier}")
                if resource.id not in resolved:
                    resolved.append(resource.id)
            stored.resources = resolved

            for scope in stored.scopes:
                if scope not in state.scopes:
                    raise ValueError(f"permission {stored.name} references unknown scope {scope}")

            for name in stored.policies:
                if name not in state.policies:
                    raise ValueError(f"permission {stored.name} references unknown policy {name}")

            for other in state.permissions.values():
                if other.name == stored.name and other.id != stored.id:
                    raise ValueError(f"permission with name {stored.name} already exists")

            state.permissions[stored.id] = stored
            return copy.deepcopy(stored)

    async def get_permission(self, server_id: str, identifier: str) -> Optional[PermissionDefinition]:
        async with self._lock:
            permission = self._state(server_id).find_permission(identifier)
            return copy.deepcopy(permission) if permission else None

    async def list_permissions(self, server_id: str) -> List[PermissionDefinition]:
        async with self._lock:
            return [copy.deepcopy(p) for p in self._state(server_id).permissions.values()]

    async def delete_permission(self, server_id: str, identifier: str) -> bool:
        async with self._lock:
            state = self._state(server_id)
            permission = state.find_permission(identifier)
            if permission is None:
                return False
            del state.permissions[permission.id]
            return True

    async def snapshot(self, server_id: str) -> ResourceServerSnapshot:
        async with self._lock:
            state = self._state(server_id)
            return ResourceServerSnapshot(
                server=copy.deepcopy(state.server),
                resources=copy.deepcopy(list(state.resources.values())),
                scopes=list(state.scopes),
                policies=copy.deepcopy(dict(state.policies)),
                permissions=copy.deepcopy(list(state.permissions.values())),
            )
