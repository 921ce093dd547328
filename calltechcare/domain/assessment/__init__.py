"""Assessment domain - scored quiz submissions with shareable results"""

from .router import router

__all__ = ["router"]
