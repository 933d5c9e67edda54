"""
Core module initialization
"""

from .service import AuthorizationService
from .config import EngineConfig, TokenConfig
from .types import *

__all__ = ["AuthorizationService", "EngineConfig", "TokenConfig"]
