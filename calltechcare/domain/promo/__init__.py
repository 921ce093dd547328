"""Promo domain - promo codes and discount popup leads"""

from .router import router

__all__ = ["router"]
