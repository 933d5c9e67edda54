"""
Tests for the bounded permission list merge.
"""

import pytest

from rptauthz.authz import PermissionListManager
from rptauthz.core.types import GrantedPermission


def grants(*ids):
    return [GrantedPermission(resource_id=i, resource_name=f"name-{i}", scopes=["read"]) for i in ids]


def ids(permissions):
    return [p.resource_id for p in permissions]


@pytest.fixture
def manager():
    return PermissionListManager()


class TestMerge:
    """Fresh first, prior after, deduplicated and truncated"""

    def test_fresh_then_prior(self, manager):
        merged = manager.merge(grants("a", "b"), grants("c", "d"))

        assert ids(merged) == ["a", "b", "c", "d"]

    def test_limit_history(self, manager):
        first = manager.merge(grants(*[f"r{i}" for i in range(10)]), [], limit=10)
        assert ids(first) == [f"r{i}" for i in range(10)]

        second = manager.merge(grants(*[f"n{i}" for i in range(5)]), first, limit=10)
        assert ids(second) == [f"n{i}" for i in range(5)] + [f"r{i}" for i in range(5)]

        third = manager.merge(grants("x0", "x1", "x2"), second, limit=10)
        assert ids(third) == ["x0", "x1", "x2"] + ids(second)[:7]

        lowered = manager.merge([], third, limit=5)
        assert ids(lowered) == ids(third)[:5]

    def test_stable_without_new_grants(self, manager):
        once = manager.merge(grants("a", "b", "c"), grants("d", "e"), limit=4)
        twice = manager.merge([], once, limit=4)

        assert twice == once

    def test_duplicate_keeps_fresh_entry_only(self, manager):
        fresh = [GrantedPermission("a", "A", ["read"])]
        prior = [GrantedPermission("b", "B", ["read"]), GrantedPermission("a", "A", ["read", "write"])]

        merged = manager.merge(fresh, prior)

        assert ids(merged) == ["a", "b"]
        assert merged[0].scopes == ["read"]

    def test_inputs_are_not_modified(self, manager):
        fresh = [GrantedPermission("a", "A", ["read"])]
        prior = [GrantedPermission("a", "A", ["write"])]

        manager.merge(fresh, prior)

        assert fresh[0].scopes == ["read"]
        assert prior[0].scopes == ["write"]

    def test_unbounded(self, manager):
        merged = manager.merge(grants(*[str(i) for i in range(50)]), grants(*[str(i) for i in range(50, 100)]))

        assert len(merged) == 100


class TestClaims:
    """Token claim rendering"""

    def test_to_claims(self, manager):
        permissions = [GrantedPermission("a", "A", ["read"]), GrantedPermission("b", "B")]

        assert manager.to_claims(permissions) == {
            "permissions": [
                {"rsid": "a", "rsname": "A", "scopes": ["read"]},
                {"rsid": "b", "rsname": "B"},
            ]
        }
        assert manager.to_claims(permissions, include_resource_name=False) == {
            "permissions": [{"rsid": "a", "scopes": ["read"]}, {"rsid": "b"}]
        }

    def test_from_claims(self, manager):
        claims = {"authorization": {"permissions": [{"rsid": "a", "rsname": "A", "scopes": ["read"]}]}}

        assert manager.from_claims(claims) == [GrantedPermission("a", "A", ["read"])]
        assert manager.from_claims({}) == []
