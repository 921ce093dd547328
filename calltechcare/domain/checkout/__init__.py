"""Checkout domain - Stripe payment sessions, subscriptions and webhook events"""

from .router import router

__all__ = ["router"]
