"""Accounts domain - registration, sign-in flows, password reset and profile"""

from .router import router

__all__ = ["router"]
