"""
Encoding and decoding utilities for rptauthz.
"""

import base64
import binascii
import json
from typing import Any, Dict, Union


def url_safe_encode(data: Union[str, bytes]) -> str:
    """Encode data to URL-safe base64 string."""
    if isinstance(data, str):
        data = data.encode('utf-8')

    return base64.urlsafe_b64encode(data).decode('ascii').rstrip('=')


def url_safe_decode(encoded: str) -> bytes:
    """Decode URL-safe base64 string to bytes."""
    # Add padding if needed
    padding = 4 - (len(encoded) % 4)
    if padding != 4:
        encoded += '=' * padding

    try:
        return base64.urlsafe_b64decode(encoded)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid URL-safe base64 data: {e}")


def encode_claim_token(claims: Dict[str, Any]) -> str:
    """Serialize a claims map the way clients push it: base64url(JSON)."""
    return url_safe_encode(json.dumps(claims, separators=(',', ':')))


def decode_claim_token(encoded: str) -> Dict[str, Any]:
    """Decode a base64url(JSON) claims map."""
    raw = url_safe_decode(encoded)
    try:
        claims = json.loads(raw.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Invalid claim token: {e}")

    if not isinstance(claims, dict):
        raise ValueError("Claim token must encode a JSON object")

    return claims
