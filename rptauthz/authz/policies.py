"""
Policy variants for the rptauthz decision engine.
Implements script, user, role, client, time and aggregate policies.
"""

from datetime import datetime, time, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union
import inspect

from ..core.types import DecisionStrategy
from .context import DecisionContext, Evaluation
from .evaluator import combine_votes
from .types import Logic, Policy, PolicyType, Vote


ScriptCode = Callable[[Evaluation], Union[None, Awaitable[None]]]


class ScriptPolicy(Policy):
    """
    Policy backed by a Python callable.

    The callable receives an :class:`Evaluation` and calls ``grant()``,
    ``deny()`` or ``abstain()`` on it. It may be a coroutine function.
    """

    policy_type = PolicyType.SCRIPT

    def __init__(self, name: str, code: ScriptCode, **kwargs):
        super().__init__(name, **kwargs)
        if not callable(code):
            raise ValueError(f"script policy {name} needs callable code")
        self.code = code

    async def evaluate(self, context: DecisionContext) -> Vote:
        """Run the script and read back the vote it cast."""
        evaluation = Evaluation(context)
        result = self.code(evaluation)
        if inspect.isawaitable(result):
            await result
        return evaluation.vote or Vote.DENY

    def _config(self) -> Dict[str, Any]:
        return {'code': getattr(self.code, '__name__', repr(self.code))}


class UserPolicy(Policy):
    """
    Grants when the requester is one of the listed users (id or username).
    """

    policy_type = PolicyType.USER

    def __init__(self, name: str, users: List[str], **kwargs):
        super().__init__(name, **kwargs)
        self.users = list(users)

    def add_user(self, *users: str) -> 'UserPolicy':
        self.users.extend(u for u in users if u not in self.users)
        return self

    async def evaluate(self, context: DecisionContext) -> Vote:
        identity = context.identity
        if identity.id in self.users or (identity.username and identity.username in self.users):
            return Vote.GRANT
        return Vote.DENY

    def _config(self) -> Dict[str, Any]:
        return {'users': list(self.users)}


class RolePolicy(Policy):
    """
    Grants when the requester holds the required roles.
    Client roles are written as ``client_id/role``.
    """

    policy_type = PolicyType.ROLE

    def __init__(self, name: str, roles: List[str], require_all: bool = False, **kwargs):
        """
        Initialize role policy.

        Args:
            name: Policy name
            roles: Required roles
            require_all: If True, requester must have all roles; if False, any role
        """
        super().__init__(name, **kwargs)
        self.roles = list(roles)
        self.require_all = require_all

    async def evaluate(self, context: DecisionContext) -> Vote:
        """Evaluate role membership."""
        held = [context.identity.has_role(role) for role in self.roles]

        if self.require_all:
            granted = bool(held) and all(held)
        else:
            granted = any(held)

        return Vote.GRANT if granted else Vote.DENY

    def _config(self) -> Dict[str, Any]:
        return {'roles': list(self.roles), 'require_all': self.require_all}


class ClientPolicy(Policy):
    """
    Grants when the request came through one of the listed clients.
    """

    policy_type = PolicyType.CLIENT

    def __init__(self, name: str, clients: List[str], **kwargs):
        super().__init__(name, **kwargs)
        self.clients = list(clients)

    async def evaluate(self, context: DecisionContext) -> Vote:
        if context.client is not None and context.client.client_id in self.clients:
            return Vote.GRANT
        return Vote.DENY

    def _config(self) -> Dict[str, Any]:
        return {'clients': list(self.clients)}


def _as_utc(moment: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken to be UTC."""
    if moment is None or moment.tzinfo is not None:
        return moment
    return moment.replace(tzinfo=timezone.utc)


class TimePolicy(Policy):
    """
    Time-based policy.
    Grants only within an absolute window and/or daily time ranges.
    """

    policy_type = PolicyType.TIME

    def __init__(self,
                 name: str,
                 not_before: Optional[datetime] = None,
                 not_on_or_after: Optional[datetime] = None,
                 start_time: Optional[time] = None,
                 end_time: Optional[time] = None,
                 allowed_days: Optional[Set[int]] = None,
                 clock: Optional[Callable[[], datetime]] = None,
                 **kwargs):
        """
        Initialize time policy.

        Args:
            name: Policy name
            not_before: Absolute start of the window (inclusive)
            not_on_or_after: Absolute end of the window (exclusive)
            start_time: Daily start time (24-hour format)
            end_time: Daily end time (24-hour format)
            allowed_days: Set of allowed weekdays (0=Monday, 6=Sunday)
            clock: Source of the current time, UTC by default
        """
        super().__init__(name, **kwargs)
        self.not_before = _as_utc(not_before)
        self.not_on_or_after = _as_utc(not_on_or_after)
        self.start_time = start_time
        self.end_time = end_time
        self.allowed_days = allowed_days if allowed_days is not None else set(range(7))
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def evaluate(self, context: DecisionContext) -> Vote:
        """Evaluate time-based constraints."""
        now = _as_utc(self.clock())

        if self.not_before and now < self.not_before:
            return Vote.DENY
        if self.not_on_or_after and now >= self.not_on_or_after:
            return Vote.DENY

        if now.weekday() not in self.allowed_days:
            return Vote.DENY

        current_time = now.time()

        if self.start_time and self.end_time:
            if self.start_time <= self.end_time:
                inside = self.start_time <= current_time <= self.end_time
            else:
                # Overnight range
                inside = current_time >= self.start_time or current_time <= self.end_time
        elif self.start_time:
            inside = current_time >= self.start_time
        elif self.end_time:
            inside = current_time <= self.end_time
        else:
            inside = True

        return Vote.GRANT if inside else Vote.DENY

    def _config(self) -> Dict[str, Any]:
        return {
            'not_before': self.not_before.isoformat() if self.not_before else None,
            'not_on_or_after': self.not_on_or_after.isoformat() if self.not_on_or_after else None,
            'start_time': self.start_time.isoformat() if self.start_time else None,
            'end_time': self.end_time.isoformat() if self.end_time else None,
            'allowed_days': sorted(self.allowed_days),
        }


class AggregatePolicy(Policy):
    """
    Combines other policies, referenced by name, with its own decision strategy.
    Abstains when every member abstains.
    """

    policy_type = PolicyType.AGGREGATE

    def __init__(self, name: str, policies: List[str],
                 decision_strategy: DecisionStrategy = DecisionStrategy.UNANIMOUS, **kwargs):
        super().__init__(name, **kwargs)
        self.policies = list(policies)
        self.decision_strategy = decision_strategy

    async def evaluate(self, context: DecisionContext) -> Vote:
        votes = [await context.evaluate_policy(member) for member in self.policies]

        if all(vote is Vote.ABSTAIN for vote in votes):
            return Vote.ABSTAIN

        return combine_votes(votes, self.decision_strategy)

    def _config(self) -> Dict[str, Any]:
        return {'policies': list(self.policies), 'decision_strategy': self.decision_strategy.value}


def policy_from_dict(data: Dict[str, Any],
                     scripts: Optional[Dict[str, ScriptCode]] = None) -> Policy:
    """
    Create a policy from its dictionary representation.

    Script policies name their code; the callable is looked up in ``scripts``.
    """
    policy_type = PolicyType(data['type'])
    config = data.get('config', {})
    common = {
        'id': data.get('id'),
        'description': data.get('description', ''),
        'logic': Logic(data.get('logic', 'POSITIVE')),
    }
    name = data['name']

    if policy_type is PolicyType.SCRIPT:
        code = (scripts or {}).get(config.get('code'))
        if code is None:
            raise ValueError(f"unknown script code for policy {name}: {config.get('code')}")
        return ScriptPolicy(name, code, **common)
    elif policy_type is PolicyType.USER:
        return UserPolicy(name, config.get('users', []), **common)
    elif policy_type is PolicyType.ROLE:
        return RolePolicy(name, config.get('roles', []), config.get('require_all', False), **common)
    elif policy_type is PolicyType.CLIENT:
        return ClientPolicy(name, config.get('clients', []), **common)
    elif policy_type is PolicyType.TIME:
        return TimePolicy(
            name,
            not_before=datetime.fromisoformat(config['not_before']) if config.get('not_before') else None,
            not_on_or_after=datetime.fromisoformat(config['not_on_or_after']) if config.get('not_on_or_after') else None,
            start_time=time.fromisoformat(config['start_time']) if config.get('start_time') else None,
            end_time=time.fromisoformat(config['end_time']) if config.get('end_time') else None,
            allowed_days=set(config.get('allowed_days', range(7))),
            **common
        )
    return AggregatePolicy(
        name,
        config.get('policies', []),
        DecisionStrategy(config.get('decision_strategy', 'UNANIMOUS')),
        **common
    )
