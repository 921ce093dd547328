"""Orders domain - order history and refunds"""

from .router import router

__all__ = ["router"]
