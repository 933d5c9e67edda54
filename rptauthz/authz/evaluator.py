"""
Policy evaluation engine for the rptauthz decision engine.
Implements decision strategies and the two-pass resource/scope decision.
"""

from dataclasses import replace
from typing import Collection, Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING
import logging

from ..core.types import DecisionStrategy, EnforcementMode, GrantedPermission, Resource
from ..errors import PolicyEvaluationError
from .context import DecisionContext, get_evaluation_trace
from .resolver import NoMatch, PermissionResolver, ResolvedPermissions
from .types import PermissionDefinition, Policy, Vote

if TYPE_CHECKING:
    from ..store.types import ResourceServerSnapshot


logger = logging.getLogger(__name__)


def combine_votes(votes: Sequence[Vote], strategy: DecisionStrategy) -> Vote:
    """
    Combine votes under a decision strategy. Abstentions are not counted.

    UNANIMOUS grants when nobody denied and at least one granted,
    AFFIRMATIVE when at least one granted, CONSENSUS when grants strictly
    outnumber denials.
    """
    grants = sum(1 for vote in votes if vote is Vote.GRANT)
    denies = sum(1 for vote in votes if vote is Vote.DENY)

    if strategy is DecisionStrategy.AFFIRMATIVE:
        granted = grants > 0
    elif strategy is DecisionStrategy.CONSENSUS:
        granted = grants > denies
    else:
        granted = grants > 0 and denies == 0

    return Vote.GRANT if granted else Vote.DENY


def granted_scopes(resource_decision: Optional[Vote],
                   scope_decisions: Dict[str, Optional[Vote]],
                   ticket_scopes: Collection[str] = ()) -> List[str]:
    """
    Scope restriction rule.

    A scope is granted when a granted ticket covers it, when the resource
    level granted and its own definitions did not deny, or when there is no
    resource-level decision and its own definitions granted.
    """
    result = []
    for scope, decision in scope_decisions.items():
        if scope in ticket_scopes:
            result.append(scope)
        elif resource_decision is Vote.GRANT and decision is not Vote.DENY:
            result.append(scope)
        elif resource_decision is None and decision is Vote.GRANT:
            result.append(scope)
    return result


class PolicyEvaluator:
    """
    Policy Decision Point: evaluates permission definitions for a resource.
    """

    def __init__(self, resolver: Optional[PermissionResolver] = None,
                 failure_vote: Vote = Vote.DENY):
        """
        Args:
            resolver: Permission resolver (default instance if omitted)
            failure_vote: Vote cast by a policy that raised while evaluating
        """
        self.resolver = resolver or PermissionResolver()
        self.failure_vote = failure_vote

    async def evaluate_policy(self, name: str, context: DecisionContext,
                              policies: Dict[str, Policy],
                              stack: Tuple[str, ...] = ()) -> Vote:
        """
        Evaluate one policy by name, applying its logic.

        Faults (exceptions, unknown or circular references, invalid votes)
        become the configured failure vote and never propagate.
        """
        trace = get_evaluation_trace()

        try:
            if name in stack:
                raise PolicyEvaluationError(name, "circular policy reference")

            policy = policies.get(name)
            if policy is None:
                raise PolicyEvaluationError(name, "unknown policy")

            async def evaluate_member(member: str, ctx: DecisionContext) -> Vote:
                return await self.evaluate_policy(member, ctx, policies, stack + (name,))

            bound = replace(context, policy_evaluator=evaluate_member)
            vote = await policy.evaluate(bound)

            if not isinstance(vote, Vote):
                raise PolicyEvaluationError(name, f"returned {vote!r} instead of a vote")

            vote = policy.logic.apply(vote)

        except Exception as e:
            logger.warning(f"Policy {name} failed, voting {self.failure_vote.value}: {e}")
            if trace:
                trace.add_policy_failure(name)
            return self.failure_vote

        if trace:
            trace.add_policy_evaluated(name)
        return vote

    async def evaluate(self, definition: PermissionDefinition, context: DecisionContext,
                       snapshot: 'ResourceServerSnapshot') -> Vote:
        """
        Evaluate a permission definition under its decision strategy.

        Returns:
            Vote: GRANT or DENY
        """
        votes = []
        for name in definition.policies:
            votes.append(await self.evaluate_policy(name, context, snapshot.policies))

        decision = combine_votes(votes, definition.decision_strategy)

        logger.debug(
            f"Permission {definition.name} on {context.resource.name}"
            f"{'#' + context.scope if context.scope else ''}: {decision.value}"
        )
        trace = get_evaluation_trace()
        if trace:
            trace.add_decision({
                'permission': definition.name,
                'resource': context.resource.id,
                'scope': context.scope,
                'decision': decision.value,
            })
        return decision

    async def evaluate_all(self, definitions: List[PermissionDefinition], context: DecisionContext,
                           snapshot: 'ResourceServerSnapshot') -> Optional[Vote]:
        """
        Combine several definitions for the same target with the resource
        server's decision strategy. None when there is nothing to evaluate.
        """
        if not definitions:
            return None

        decisions = [await self.evaluate(d, context, snapshot) for d in definitions]
        return combine_votes(decisions, snapshot.server.decision_strategy)

    async def resource_decision(self, resolved: ResolvedPermissions, context: DecisionContext,
                                snapshot: 'ResourceServerSnapshot') -> Optional[Vote]:
        """First pass: whole-resource decision."""
        return await self.evaluate_all(resolved.resource_level, context.for_scope(None), snapshot)

    async def scope_decisions(self, resolved: ResolvedPermissions, scopes: List[str],
                              context: DecisionContext,
                              snapshot: 'ResourceServerSnapshot') -> Dict[str, Optional[Vote]]:
        """Second pass: per-scope decisions from scope-qualified definitions."""
        decisions = {}
        for scope in scopes:
            decisions[scope] = await self.evaluate_all(
                resolved.for_scope(scope), context.for_scope(scope), snapshot
            )
        return decisions

    async def decide(self, snapshot: 'ResourceServerSnapshot', resource: Resource,
                     context: DecisionContext,
                     scopes: Optional[List[str]] = None,
                     ticket_scopes: Collection[Optional[str]] = ()) -> Optional[GrantedPermission]:
        """
        Decide which of the requested scopes of a resource are granted.

        Args:
            snapshot: Resource server view of the current call
            resource: Target resource
            context: Decision context for the resource
            scopes: Requested scopes (all declared scopes if None)
            ticket_scopes: Pairings granted by permission tickets; None
                stands for the resource without a scope

        Returns:
            GrantedPermission, or None when nothing is granted
        """
        requested = list(resource.scopes) if scopes is None else list(scopes)
        mode = snapshot.server.enforcement_mode

        if mode is EnforcementMode.DISABLED:
            return GrantedPermission(resource.id, resource.name, requested)

        try:
            resolved = self.resolver.resolve(snapshot, resource)
        except NoMatch:
            resolved = None

        if resolved is None and mode is EnforcementMode.PERMISSIVE:
            logger.debug(f"No permission for {resource.name}, permissive mode grants")
            return GrantedPermission(resource.id, resource.name, requested)

        resource_vote = None
        if resolved is not None:
            resource_vote = await self.resource_decision(resolved, context, snapshot)

        if not resource.scopes:
            if resource_vote is Vote.GRANT or None in ticket_scopes:
                return GrantedPermission(resource.id, resource.name, [])
            return None

        if resolved is None or resource_vote is Vote.DENY:
            # Only tickets can still grant
            per_scope = {scope: Vote.DENY for scope in requested}
        else:
            per_scope = await self.scope_decisions(resolved, requested, context, snapshot)

        # A ticket only covers scopes the resource still declares
        ticket_grants = [s for s in ticket_scopes if s and resource.has_scope(s)]
        scopes_granted = granted_scopes(resource_vote, per_scope, ticket_grants)

        if not scopes_granted:
            return None
        return GrantedPermission(resource.id, resource.name, scopes_granted)
