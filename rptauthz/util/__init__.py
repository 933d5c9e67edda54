"""
Utility helpers for configuration loading and claim token encoding.
"""

from .config import get_config_value, parse_duration_string
from .encoding import url_safe_encode, url_safe_decode, encode_claim_token, decode_claim_token

__all__ = [
    'get_config_value', 'parse_duration_string',
    'url_safe_encode', 'url_safe_decode', 'encode_claim_token', 'decode_claim_token',
]
