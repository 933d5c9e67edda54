"""
Decision context management for the rptauthz decision engine.
Provides the data policies evaluate against and a per-call evaluation trace.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Any
from contextvars import ContextVar

from ..core.types import Client, Identity, Resource, ResourceServer
from .types import Vote


# Context variables for request-scoped data
_evaluation_trace: ContextVar[Optional['EvaluationTrace']] = ContextVar(
    'evaluation_trace', default=None
)


@dataclass
class ResourcePermission:
    """The permission under evaluation: a resource and, optionally, one scope."""
    resource: Resource
    scope: Optional[str] = None

    @property
    def scopes(self) -> List[str]:
        return [self.scope] if self.scope else list(self.resource.scopes)


@dataclass
class DecisionContext:
    """
    Everything a policy may look at while deciding.
    """
    identity: Identity
    resource_server: ResourceServer
    resource: Resource
    client: Optional[Client] = None
    scope: Optional[str] = None
    claims: Dict[str, List[str]] = field(default_factory=dict)
    policy_evaluator: Optional[Callable[[str, 'DecisionContext'], Awaitable[Vote]]] = field(
        default=None, repr=False, compare=False
    )

    @property
    def permission(self) -> ResourcePermission:
        return ResourcePermission(resource=self.resource, scope=self.scope)

    def for_scope(self, scope: Optional[str]) -> 'DecisionContext':
        """Same context narrowed to a single scope."""
        return replace(self, scope=scope)

    def get_claim(self, name: str) -> Optional[str]:
        """First pushed claim value, if any."""
        values = self.claims.get(name)
        return values[0] if values else None

    async def evaluate_policy(self, name: str) -> Vote:
        """Evaluate another policy by name (used by aggregate policies)."""
        if self.policy_evaluator is None:
            raise RuntimeError("no policy evaluator bound to this context")
        return await self.policy_evaluator(name, self)


class Evaluation:
    """
    Callback object handed to script policies.

    The script inspects ``context``/``permission`` and calls ``grant()``,
    ``deny()`` or ``abstain()``. A script that calls nothing denies.
    """

    def __init__(self, context: DecisionContext):
        self.context = context
        self.vote: Optional[Vote] = None

    @property
    def permission(self) -> ResourcePermission:
        return self.context.permission

    @property
    def identity(self) -> Identity:
        return self.context.identity

    def grant(self) -> None:
        self.vote = Vote.GRANT

    def deny(self) -> None:
        self.vote = Vote.DENY

    def abstain(self) -> None:
        self.vote = Vote.ABSTAIN


@dataclass
class EvaluationTrace:
    """
    Records what one authorization call evaluated.
    """
    request_id: str
    started_at: datetime = field(default_factory=datetime.now)
    policies_evaluated: List[str] = field(default_factory=list)
    decisions: List[Dict[str, Any]] = field(default_factory=list)
    policy_failures: List[str] = field(default_factory=list)

    def add_policy_evaluated(self, policy_name: str) -> None:
        """Record that a policy was evaluated."""
        self.policies_evaluated.append(policy_name)

    def add_decision(self, decision: Dict[str, Any]) -> None:
        """Record a permission definition outcome."""
        self.decisions.append({
            **decision,
            'timestamp': datetime.now().isoformat()
        })

    def add_policy_failure(self, policy_name: str) -> None:
        self.policy_failures.append(policy_name)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            'request_id': self.request_id,
            'started_at': self.started_at.isoformat(),
            'policies_evaluated': self.policies_evaluated,
            'decisions': self.decisions,
            'policy_failures': self.policy_failures,
        }


def get_evaluation_trace() -> Optional[EvaluationTrace]:
    """Get the trace of the current authorization call."""
    return _evaluation_trace.get()


class EvaluationTraceManager:
    """
    Context manager binding a trace to the current authorization call.
    """

    def __init__(self, trace: EvaluationTrace):
        self.trace = trace
        self._token = None

    async def __aenter__(self) -> EvaluationTrace:
        """Enter the context."""
        self._token = _evaluation_trace.set(self.trace)
        return self.trace

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit the context."""
        _evaluation_trace.reset(self._token)
