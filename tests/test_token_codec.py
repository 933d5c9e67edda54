"""
Tests for RPT signing and verification.
"""

import jwt
import pytest
from datetime import timedelta

from rptauthz.core.types import GrantedPermission
from rptauthz.errors import InvalidTokenError
from rptauthz.token import RPTCodec

SECRET = "codec-test-secret-key-0123456789"


@pytest.fixture
def codec():
    return RPTCodec(SECRET, issuer="https://auth.example.com")


class TestRPTCodec:
    """RPT claims"""

    def test_encode_claims(self, codec):
        token = codec.encode("alice", "api", [GrantedPermission("r1", "Resource 1", ["read"])], client_id="app")

        payload = jwt.decode(token, SECRET, algorithms=["HS256"], audience="api")

        assert payload["iss"] == "https://auth.example.com"
        assert payload["sub"] == "alice"
        assert payload["azp"] == "app"
        assert payload["exp"] - payload["iat"] == 300
        assert payload["authorization"] == {
            "permissions": [{"rsid": "r1", "rsname": "Resource 1", "scopes": ["read"]}]
        }

    def test_decode(self, codec):
        permissions = [GrantedPermission("r1", "Resource 1", ["read"]), GrantedPermission("r2", "Resource 2")]
        token = codec.encode("alice", "api", permissions)

        claims = codec.decode(token, audience="api")

        assert claims.subject == "alice"
        assert claims.audience == "api"
        assert claims.client_id is None
        assert claims.permissions == permissions

    def test_wrong_secret(self, codec):
        token = RPTCodec("a-different-secret-key-0123456789", issuer=codec.issuer).encode("alice", "api", [])

        with pytest.raises(InvalidTokenError):
            codec.decode(token)

    def test_wrong_issuer(self, codec):
        token = RPTCodec(SECRET, issuer="someone-else").encode("alice", "api", [])

        with pytest.raises(InvalidTokenError):
            codec.decode(token)

    def test_expired(self, codec):
        token = RPTCodec(SECRET, issuer=codec.issuer, expiry=timedelta(seconds=-1)).encode("alice", "api", [])

        with pytest.raises(InvalidTokenError) as exc_info:
            codec.decode(token)

        assert exc_info.value.error_code == "invalid_rpt"
        assert "expired" in exc_info.value.message

    def test_malformed_permissions(self, codec):
        token = jwt.encode(
            {"iss": codec.issuer, "sub": "alice", "aud": "api", "iat": 0, "exp": 4102444800,
             "authorization": {"permissions": [{"scopes": ["read"]}]}},
            SECRET, algorithm="HS256",
        )

        with pytest.raises(InvalidTokenError):
            codec.decode(token)

    def test_requires_secret(self):
        with pytest.raises(ValueError):
            RPTCodec("")
