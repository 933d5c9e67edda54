"""
Requesting party token (RPT) encoding and verification.
"""

from .codec import RPTClaims, RPTCodec

__all__ = ["RPTClaims", "RPTCodec"]
