"""
Permission list handling for the rptauthz decision engine.
Merges freshly granted permissions with those carried over from a prior RPT.
"""

from typing import Any, Dict, List, Optional
import logging

from ..core.types import GrantedPermission

logger = logging.getLogger(__name__)


class PermissionListManager:
    """
    Builds the permission list embedded in an RPT.

    Fresh permissions come first, carried-over ones follow in their original
    order, and the result is truncated to the requested limit.
    """

    def merge(self, fresh: List[GrantedPermission],
              prior: Optional[List[GrantedPermission]] = None,
              limit: Optional[int] = None) -> List[GrantedPermission]:
        """
        Merge fresh and prior permission lists.

        A resource present in both keeps only its fresh entry; the stale
        prior entry is dropped, so scopes denied by this call do not return.

        Args:
            fresh: Permissions granted by this call, in evaluation order
            prior: Permissions of the RPT being extended
            limit: Maximum number of entries (unbounded if None)

        Returns:
            List[GrantedPermission]: New list; the inputs are not modified
        """
        merged: Dict[str, GrantedPermission] = {}

        for permission in list(fresh) + list(prior or []):
            if permission.resource_id in merged:
                continue
            merged[permission.resource_id] = GrantedPermission(
                resource_id=permission.resource_id,
                resource_name=permission.resource_name,
                scopes=list(permission.scopes),
            )

        result = list(merged.values())

        if limit is not None and len(result) > limit:
            logger.debug(f"Truncating permission list from {len(result)} to {limit} entries")
            result = result[:limit]

        return result

    def to_claims(self, permissions: List[GrantedPermission],
                  include_resource_name: bool = True) -> Dict[str, Any]:
        """Render the ``authorization`` claim of an RPT."""
        return {
            'permissions': [p.to_dict(include_resource_name) for p in permissions]
        }

    def from_claims(self, claims: Dict[str, Any]) -> List[GrantedPermission]:
        """Read the permission list back out of RPT claims."""
        authorization = claims.get('authorization') or {}
        return [GrantedPermission.from_dict(p) for p in authorization.get('permissions', [])]
