"""
Tests for the policy variants.
"""

import pytest
from datetime import datetime, time, timezone

from rptauthz.authz import (
    AggregatePolicy,
    ClientPolicy,
    DecisionContext,
    Logic,
    PolicyType,
    RolePolicy,
    ScriptPolicy,
    TimePolicy,
    UserPolicy,
    Vote,
    policy_from_dict,
)
from rptauthz.core.types import Client, Identity, Resource, ResourceServer


def make_context(identity=None, client=None, scope=None, claims=None):
    return DecisionContext(
        identity=identity or Identity(id="alice-id", username="alice", roles=["user"],
                                      client_roles={"bank": ["teller"]}),
        resource_server=ResourceServer(client_id="bank"),
        resource=Resource(name="account", id="acc", scopes=["view", "withdraw"],
                          attributes={"owner": ["alice"]}),
        client=client,
        scope=scope,
        claims=claims or {},
    )


class TestScriptPolicy:
    """Script policies cast votes through the evaluation"""

    @pytest.mark.asyncio
    async def test_script_reads_context(self):
        def owner_only(evaluation):
            owner = evaluation.permission.resource.get_attribute("owner")
            if owner == evaluation.identity.username:
                evaluation.grant()

        policy = ScriptPolicy("owner only", owner_only)

        assert await policy.evaluate(make_context()) is Vote.GRANT
        assert await policy.evaluate(make_context(Identity(id="bob-id", username="bob"))) is Vote.DENY

    @pytest.mark.asyncio
    async def test_script_without_vote_denies(self):
        policy = ScriptPolicy("silent", lambda evaluation: None)

        assert await policy.evaluate(make_context()) is Vote.DENY

    @pytest.mark.asyncio
    async def test_coroutine_script(self):
        async def by_claim(evaluation):
            if evaluation.context.get_claim("organization") == "acme":
                evaluation.grant()
            else:
                evaluation.abstain()

        policy = ScriptPolicy("claims", by_claim)

        assert await policy.evaluate(make_context(claims={"organization": ["acme"]})) is Vote.GRANT
        assert await policy.evaluate(make_context()) is Vote.ABSTAIN

    def test_code_must_be_callable(self):
        with pytest.raises(ValueError):
            ScriptPolicy("broken", "evaluation.grant()")


class TestMembershipPolicies:
    """User, role and client policies"""

    @pytest.mark.asyncio
    async def test_user_policy(self):
        policy = UserPolicy("users", ["alice"])

        assert await policy.evaluate(make_context()) is Vote.GRANT
        assert await policy.evaluate(make_context(Identity(id="bob-id"))) is Vote.DENY

        policy.add_user("bob-id")
        assert await policy.evaluate(make_context(Identity(id="bob-id"))) is Vote.GRANT

    @pytest.mark.asyncio
    async def test_role_policy(self):
        any_role = RolePolicy("any", ["admin", "user"])
        all_roles = RolePolicy("all", ["user", "bank/teller", "admin"], require_all=True)
        client_role = RolePolicy("teller", ["bank/teller"])

        assert await any_role.evaluate(make_context()) is Vote.GRANT
        assert await all_roles.evaluate(make_context()) is Vote.DENY
        assert await client_role.evaluate(make_context()) is Vote.GRANT

    @pytest.mark.asyncio
    async def test_client_policy(self):
        policy = ClientPolicy("web", ["web-app"])

        assert await policy.evaluate(make_context(client=Client("web-app"))) is Vote.GRANT
        assert await policy.evaluate(make_context(client=Client("cli"))) is Vote.DENY
        assert await policy.evaluate(make_context()) is Vote.DENY


class TestTimePolicy:
    """Time windows"""

    @pytest.mark.asyncio
    async def test_absolute_window(self):
        now = datetime(2025, 6, 2, 12, 0, tzinfo=timezone.utc)
        policy = TimePolicy(
            "june",
            not_before=datetime(2025, 6, 1, tzinfo=timezone.utc),
            not_on_or_after=datetime(2025, 7, 1, tzinfo=timezone.utc),
            clock=lambda: now,
        )

        assert await policy.evaluate(make_context()) is Vote.GRANT

        now = datetime(2025, 7, 1, tzinfo=timezone.utc)
        assert await policy.evaluate(make_context()) is Vote.DENY

    @pytest.mark.asyncio
    async def test_naive_window_is_utc(self):
        policy = TimePolicy(
            "june",
            not_before=datetime(2025, 6, 1),
            not_on_or_after=datetime(2025, 7, 1),
            clock=lambda: datetime(2025, 6, 15, 8, 0, tzinfo=timezone.utc),
        )

        assert await policy.evaluate(make_context()) is Vote.GRANT
        assert policy.not_before.tzinfo is timezone.utc

    @pytest.mark.asyncio
    async def test_business_hours(self):
        # 2025-06-02 is a Monday
        monday_noon = datetime(2025, 6, 2, 12, 0)
        monday_night = datetime(2025, 6, 2, 22, 0)
        sunday_noon = datetime(2025, 6, 8, 12, 0)

        def policy_at(moment):
            return TimePolicy("hours", start_time=time(9, 0), end_time=time(17, 0),
                              allowed_days={0, 1, 2, 3, 4}, clock=lambda: moment)

        assert await policy_at(monday_noon).evaluate(make_context()) is Vote.GRANT
        assert await policy_at(monday_night).evaluate(make_context()) is Vote.DENY
        assert await policy_at(sunday_noon).evaluate(make_context()) is Vote.DENY

    @pytest.mark.asyncio
    async def test_overnight_range(self):
        policy = TimePolicy("night", start_time=time(22, 0), end_time=time(6, 0),
                            clock=lambda: datetime(2025, 6, 2, 23, 30))

        assert await policy.evaluate(make_context()) is Vote.GRANT


class TestPolicySerialization:
    """Dictionary round trip of policy configuration"""

    def test_to_dict(self):
        policy = RolePolicy("admins", ["admin"], logic=Logic.NEGATIVE, description="not admins")

        data = policy.to_dict()

        assert data["type"] == "role"
        assert data["logic"] == "NEGATIVE"
        assert data["config"] == {"roles": ["admin"], "require_all": False}

    def test_from_dict(self):
        aggregate = policy_from_dict({
            "name": "combined",
            "type": "aggregate",
            "config": {"policies": ["a", "b"], "decision_strategy": "AFFIRMATIVE"},
        })
        script = policy_from_dict(
            {"name": "s", "type": "script", "config": {"code": "always"}},
            scripts={"always": lambda evaluation: evaluation.grant()},
        )

        assert isinstance(aggregate, AggregatePolicy)
        assert aggregate.policies == ["a", "b"]
        assert script.policy_type is PolicyType.SCRIPT

    def test_from_dict_unknown_script(self):
        with pytest.raises(ValueError):
            policy_from_dict({"name": "s", "type": "script", "config": {"code": "missing"}})
