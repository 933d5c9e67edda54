"""
Configuration module for the rptauthz decision engine.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

from datetime import timedelta
from typing import Optional
from dataclasses import dataclass, field
import os

from ..authz.types import Vote
from ..util.config import get_config_value, parse_duration_string


@dataclass
class TokenConfig:
    """RPT signing settings"""
    algorithm: str = "HS256"
    secret_key: str = ""
    expiry: timedelta = field(default_factory=lambda: timedelta(minutes=5))

    def __post_init__(self):
        if not self.secret_key:
            # Try to get from environment variable
            self.secret_key = os.getenv("RPTAUTHZ_SECRET_KEY", "")


@dataclass
class EngineConfig:
    """Configuration for the authorization engine"""
    issuer: str = "rptauthz"
    token_config: TokenConfig = field(default_factory=TokenConfig)
    default_limit: Optional[int] = None  # Unbounded permission list
    policy_failure_vote: Vote = Vote.DENY
    audit_max_entries: int = 1000

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Create configuration from RPTAUTHZ_* environment variables"""
        expiry = get_config_value("token_expiry", "5m")
        return cls(
            issuer=get_config_value("issuer", "rptauthz"),
            token_config=TokenConfig(
                algorithm=get_config_value("token_algorithm", "HS256"),
                secret_key=get_config_value("secret_key", ""),
                expiry=parse_duration_string(expiry),
            ),
            default_limit=get_config_value("default_limit", None, int),
            policy_failure_vote=Vote(get_config_value("policy_failure_vote", "DENY").upper()),
            audit_max_entries=get_config_value("audit_max_entries", 1000, int),
        )

    def validate(self) -> bool:
        """Validate the configuration"""
        if not self.issuer:
            raise ValueError("issuer is required")
        if not self.token_config.secret_key:
            raise ValueError("token secret_key is required")
        if self.token_config.expiry <= timedelta(0):
            raise ValueError("token expiry must be positive")
        if self.default_limit is not None and self.default_limit < 1:
            raise ValueError("default_limit must be a positive integer")
        if self.policy_failure_vote == Vote.GRANT:
            raise ValueError("policy_failure_vote must be DENY or ABSTAIN")
        return True
