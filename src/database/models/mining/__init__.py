"""Mining schema: scenes and auto-mining sessions."""

from .accrual_session import AccrualSessionRecord
from .scene import Scene

__all__ = ["Scene", "AccrualSessionRecord"]
