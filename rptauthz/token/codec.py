"""
RPT encoding and verification.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import jwt

from ..authz.permissions import PermissionListManager
from ..core.types import GrantedPermission
from ..errors import InvalidTokenError

logger = logging.getLogger(__name__)


@dataclass
class RPTClaims:
    """Verified contents of an RPT."""
    subject: str
    audience: str
    client_id: Optional[str]
    issued_at: datetime
    expires_at: datetime
    token_id: str
    permissions: List[GrantedPermission] = field(default_factory=list)
    claims: Dict[str, Any] = field(default_factory=dict)


class RPTCodec:
    """Signs and verifies requesting party tokens."""

    def __init__(self, secret_key: str, algorithm: str = "HS256",
                 issuer: str = "rptauthz", expiry: timedelta = timedelta(minutes=5)):
        if not secret_key:
            raise ValueError("secret_key is required to sign RPTs")
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.issuer = issuer
        self.expiry = expiry
        self.permission_lists = PermissionListManager()

    def encode(self, subject: str, audience: str, permissions: List[GrantedPermission],
               client_id: Optional[str] = None, include_resource_name: bool = True) -> str:
        """Sign an RPT carrying the permission list."""
        now = datetime.now(timezone.utc)
        claims = {
            'iss': self.issuer,
            'sub': subject,
            'aud': audience,
            'iat': int(now.timestamp()),
            'exp': int((now + self.expiry).timestamp()),
            'jti': str(uuid.uuid4()),
            'authorization': self.permission_lists.to_claims(permissions, include_resource_name),
        }
        if client_id:
            claims['azp'] = client_id

        token = jwt.encode(claims, self.secret_key, algorithm=self.algorithm)
        logger.debug(f"Issued RPT {claims['jti']} for {subject} with {len(permissions)} permissions")
        return token

    def decode(self, token: str, audience: Optional[str] = None) -> RPTClaims:
        """
        Verify an RPT.

        Args:
            token: Encoded RPT
            audience: Expected resource server; not checked if None

        Raises:
            InvalidTokenError: Bad signature, expired, wrong issuer or audience
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=audience,
                issuer=self.issuer,
                options={
                    'verify_aud': audience is not None,
                    'require': ['exp', 'iat', 'sub', 'aud'],
                },
            )
        except jwt.ExpiredSignatureError as e:
            raise InvalidTokenError("RPT has expired", cause=e)
        except jwt.InvalidTokenError as e:
            logger.error(f"RPT verification failed: {e}")
            raise InvalidTokenError(f"Invalid RPT: {e}", cause=e)

        try:
            permissions = self.permission_lists.from_claims(payload)
        except (KeyError, TypeError, AttributeError) as e:
            raise InvalidTokenError("Malformed permissions in RPT", cause=e)

        aud = payload['aud']
        return RPTClaims(
            subject=payload['sub'],
            audience=aud[0] if isinstance(aud, list) else aud,
            client_id=payload.get('azp'),
            issued_at=datetime.fromtimestamp(payload['iat'], timezone.utc),
            expires_at=datetime.fromtimestamp(payload['exp'], timezone.utc),
            token_id=payload.get('jti', ''),
            permissions=permissions,
            claims=payload,
        )
