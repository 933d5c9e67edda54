"""
Authorization types for the rptauthz decision engine.
Implements votes, policy logic, the policy interface and permission definitions.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Any, TYPE_CHECKING
import uuid

from ..core.types import DecisionStrategy, Resource

if TYPE_CHECKING:
    from .context import DecisionContext


class Vote(Enum):
    """Outcome of a single policy evaluation."""
    GRANT = "GRANT"
    DENY = "DENY"
    ABSTAIN = "ABSTAIN"


class Logic(Enum):
    """Policy logic (NEGATIVE inverts GRANT and DENY)."""
    POSITIVE = "POSITIVE"
    NEGATIVE = "NEGATIVE"

    def apply(self, vote: Vote) -> Vote:
        if self is Logic.POSITIVE or vote is Vote.ABSTAIN:
            return vote
        return Vote.DENY if vote is Vote.GRANT else Vote.GRANT


class PolicyType(Enum):
    """Closed set of policy variants."""
    SCRIPT = "script"
    USER = "user"
    ROLE = "role"
    CLIENT = "client"
    TIME = "time"
    AGGREGATE = "aggregate"


class Policy(ABC):
    """
    Named, independently evaluable unit of access logic.

    Evaluation must be free of side effects: the same context always
    produces the same vote, whatever else was evaluated before.
    """

    policy_type: PolicyType

    def __init__(self, name: str, description: str = "",
                 logic: Logic = Logic.POSITIVE, id: Optional[str] = None):
        self.id = id or str(uuid.uuid4())
        self.name = name
        self.description = description
        self.logic = logic

    @abstractmethod
    async def evaluate(self, context: 'DecisionContext') -> Vote:
        """
        Evaluate the policy against a decision context.

        Args:
            context: Requester, target resource/scope and pushed claims

        Returns:
            Vote: GRANT, DENY or ABSTAIN before logic is applied
        """
        pass

    def _config(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert policy to dictionary representation."""
        return {
            'id': self.id,
            'name': self.name,
            'type': self.policy_type.value,
            'description': self.description,
            'logic': self.logic.value,
            'config': self._config(),
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


@dataclass
class PermissionDefinition:
    """
    Binds a target to policies and a decision strategy.

    The target is either a set of resources (instance-level), a resource
    type (type-level), or, when neither is set, the scopes alone.
    An empty ``scopes`` list means the whole resource.
    """
    name: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    description: str = ""
    resources: List[str] = field(default_factory=list)
    resource_type: Optional[str] = None
    scopes: List[str] = field(default_factory=list)
    policies: List[str] = field(default_factory=list)
    decision_strategy: DecisionStrategy = DecisionStrategy.UNANIMOUS

    @property
    def is_instance_level(self) -> bool:
        return bool(self.resources)

    @property
    def is_type_level(self) -> bool:
        return not self.resources and self.resource_type is not None

    @property
    def is_scope_qualified(self) -> bool:
        return bool(self.scopes)

    def matches_instance(self, resource: Resource) -> bool:
        return resource.id in self.resources or resource.name in self.resources

    def matches_type(self, resource: Resource) -> bool:
        return self.is_type_level and resource.type is not None and self.resource_type == resource.type

    def add_resource(self, *resources: str) -> 'PermissionDefinition':
        self.resources.extend(r for r in resources if r not in self.resources)
        return self

    def add_scope(self, *scopes: str) -> 'PermissionDefinition':
        self.scopes.extend(s for s in scopes if s not in self.scopes)
        return self

    def add_policy(self, *policies: str) -> 'PermissionDefinition':
        self.policies.extend(p for p in policies if p not in self.policies)
        return self

    def validate(self) -> None:
        """Reject definitions without a usable target."""
        if not self.name:
            raise ValueError("permission name is required")
        if self.resources and self.resource_type:
            raise ValueError(f"permission {self.name} cannot target both resources and a resource type")
        if not self.resources and not self.resource_type and not self.scopes:
            raise ValueError(f"permission {self.name} needs resources, a resource type or scopes")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'resources': list(self.resources),
            'resourceType': self.resource_type,
            'scopes': list(self.scopes),
            'policies': list(self.policies),
            'decisionStrategy': self.decision_strategy.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PermissionDefinition':
        """Create from dictionary representation."""
        return cls(
            id=data.get('id') or str(uuid.uuid4()),
            name=data['name'],
            description=data.get('description', ''),
            resources=list(data.get('resources', [])),
            resource_type=data.get('resourceType'),
            scopes=list(data.get('scopes', [])),
            policies=list(data.get('policies', [])),
            decision_strategy=DecisionStrategy(data.get('decisionStrategy', 'UNANIMOUS')),
        )
