"""Cart domain - session-scoped shopping cart fed by the booking wizard"""

from .router import router

__all__ = ["router"]
