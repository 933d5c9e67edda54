"""
Permission resolution for the rptauthz decision engine.
Finds the permission definitions that apply to a resource, most specific first.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, TYPE_CHECKING
import logging

from ..core.types import Resource
from .types import PermissionDefinition

if TYPE_CHECKING:
    from ..store.types import ResourceServerSnapshot


logger = logging.getLogger(__name__)


class NoMatch(Exception):
    """
    No permission definition applies to a resource.

    This is a signal, not an error: the enforcement mode of the resource
    server decides what it means (DENY when enforcing).
    """

    def __init__(self, resource: Resource):
        super().__init__(f"No permission applies to resource {resource.name}")
        self.resource = resource


@dataclass
class ResolvedPermissions:
    """Definitions governing one resource, split by decision level."""
    resource: Resource
    resource_level: List[PermissionDefinition] = field(default_factory=list)
    scope_level: Dict[str, List[PermissionDefinition]] = field(default_factory=dict)

    def for_scope(self, scope: str) -> List[PermissionDefinition]:
        return self.scope_level.get(scope, [])

    @property
    def is_empty(self) -> bool:
        return not self.resource_level and not any(self.scope_level.values())


def select_most_specific(resource: Resource,
                         permissions: List[PermissionDefinition]) -> List[PermissionDefinition]:
    """
    Specificity pass.

    Instance-level definitions naming the resource override type-level
    definitions for its type, which are then ignored entirely. Scope-only
    definitions are neither and always stay.
    """
    instance = [p for p in permissions if p.is_instance_level and p.matches_instance(resource)]
    scope_only = [p for p in permissions
                  if not p.is_instance_level and not p.is_type_level and p.is_scope_qualified]

    if instance:
        selected = instance
    else:
        selected = [p for p in permissions if p.matches_type(resource)]

    # Keep store order
    chosen = {id(p) for p in selected + scope_only}
    return [p for p in permissions if id(p) in chosen]


def partition_by_scope(resource: Resource,
                       permissions: List[PermissionDefinition]) -> ResolvedPermissions:
    """
    Scope pass.

    Whole-resource definitions govern the resource-level decision;
    scope-qualified ones are indexed under each scope the resource declares.
    """
    resolved = ResolvedPermissions(resource=resource)

    for permission in permissions:
        if not permission.is_scope_qualified:
            resolved.resource_level.append(permission)
            continue

        for scope in permission.scopes:
            if resource.has_scope(scope):
                resolved.scope_level.setdefault(scope, []).append(permission)

    return resolved


class PermissionResolver:
    """
    Resolves the applicable permission definitions for a resource.
    """

    def resolve(self, snapshot: 'ResourceServerSnapshot', resource: Resource,
                scope: Optional[str] = None) -> ResolvedPermissions:
        """
        Resolve definitions for a resource, optionally narrowed to one scope.

        Args:
            snapshot: Resource server view of the current call
            resource: Target resource
            scope: Only keep scope-level definitions for this scope

        Returns:
            ResolvedPermissions: Resource-level and per-scope definitions

        Raises:
            NoMatch: If no definition applies
        """
        selected = select_most_specific(resource, snapshot.permissions)
        resolved = partition_by_scope(resource, selected)

        if scope is not None:
            resolved.scope_level = {scope: resolved.for_scope(scope)} if resolved.for_scope(scope) else {}

        if resolved.is_empty:
            raise NoMatch(resource)

        logger.debug(
            f"Resolved {len(resolved.resource_level)} resource-level and "
            f"{sum(len(v) for v in resolved.scope_level.values())} scope-level permissions "
            f"for resource {resource.name}"
        )
        return resolved
