"""Bot handlers"""
from .base_handler import BaseHandler
from .coupon_handlers import CouponHandler

__all__ = [
    'BaseHandler',
    'CouponHandler'
]
