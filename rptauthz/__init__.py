"""
rptauthz Python Package

Authorization decision and permission aggregation engine issuing
requesting party tokens (RPTs)
"""

__version__ = "0.1.0"

from .core.service import AuthorizationService
from .core.config import EngineConfig, TokenConfig
from .core.types import (
    AuthorizationRequest,
    AuthorizationResponse,
    Client,
    DecisionStrategy,
    EnforcementMode,
    GrantedPermission,
    Identity,
    IntrospectionResponse,
    Metadata,
    PermissionRequest,
    Resource,
    ResourceServer,
)
from .authz import PermissionDefinition, Vote, Logic

__all__ = [
    "AuthorizationService",
    "EngineConfig",
    "TokenConfig",
    "AuthorizationRequest",
    "AuthorizationResponse",
    "Client",
    "DecisionStrategy",
    "EnforcementMode",
    "GrantedPermission",
    "Identity",
    "IntrospectionResponse",
    "Metadata",
    "PermissionRequest",
    "Resource",
    "ResourceServer",
    "PermissionDefinition",
    "Vote",
    "Logic",
]
