"""Storefront API package."""

from storefront.api.routes import coupon_router, order_router, product_router

__all__ = ["order_router", "coupon_router", "product_router"]
