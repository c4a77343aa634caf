"""Shared fixtures: an in-memory coupon store and a fixed clock."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from couponshop.models.coupon import Coupon, CouponUsage, DiscountType


NOW = datetime(2025, 7, 1, 12, 0, 0)


def make_coupon(**overrides) -> Coupon:
    """Active 10% coupon valid around NOW, with no limits or scope."""
    data = {
        "coupon_id": 1,
        "code": "SUMMER10",
        "discount_type": DiscountType.PERCENTAGE,
        "discount_value": Decimal("10"),
        "min_purchase_amount": Decimal("0"),
        "start_date": NOW - timedelta(days=30),
        "end_date": NOW + timedelta(days=30),
        "created_at": NOW - timedelta(days=31),
    }
    data.update(overrides)
    return Coupon(**data)


class FakeCouponStore:
    """Dict-backed stand-in for CouponStore that records lookups."""

    def __init__(self, coupons=(), usage=None):
        self.coupons = {c.code: c for c in coupons}
        self.usage = dict(usage or {})  # (coupon_id, user_id) -> count
        self.redeemed = set()  # (coupon_id, order_id)
        self.history = []
        self.usage_lookups = 0

    async def find_by_code(self, code):
        return self.coupons.get(code)

    async def find_by_id(self, coupon_id):
        for coupon in self.coupons.values():
            if coupon.coupon_id == coupon_id:
                return coupon
        return None

    async def exists_by_code(self, code):
        return code in self.coupons

    async def find_usage_count(self, coupon_id, user_id):
        self.usage_lookups += 1
        return self.usage.get((coupon_id, user_id), 0)

    async def has_usage_for_order(self, coupon_id, order_id):
        return (coupon_id, order_id) in self.redeemed

    async def find_usages_by_user(self, user_id):
        return [u for u in reversed(self.history) if u.user_id == user_id]

    async def find_available(self, now):
        return [
            c for c in self.coupons.values()
            if c.is_active and c.start_date <= now <= c.end_date
            and (c.usage_limit is None or c.usage_count < c.usage_limit)
        ]

    async def list_all(self, limit, offset):
        return list(self.coupons.values())[offset:offset + limit]

    async def create(self, coupon_data):
        coupon = Coupon(coupon_id=len(self.coupons) + 1, **coupon_data)
        self.coupons[coupon.code] = coupon
        return coupon

    async def update(self, coupon_id, update_data):
        coupon = await self.find_by_id(coupon_id)
        if coupon is None:
            return None
        updated = coupon.model_copy(update=update_data)
        self.coupons[updated.code] = updated
        return updated

    async def set_active(self, coupon_id, is_active):
        return await self.update(coupon_id, {"is_active": is_active})

    async def delete(self, coupon_id):
        coupon = await self.find_by_id(coupon_id)
        if coupon is None:
            return False
        del self.coupons[coupon.code]
        return True

    async def redeem(self, coupon_id, user_id, order_id, discount_amount):
        coupon = await self.find_by_id(coupon_id)
        if coupon is None or (coupon_id, order_id) in self.redeemed:
            return False
        if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
            return False
        used = self.usage.get((coupon_id, user_id), 0)
        if coupon.per_user_limit is not None and used >= coupon.per_user_limit:
            return False
        self.redeemed.add((coupon_id, order_id))
        self.history.append(CouponUsage(
            usage_id=len(self.history) + 1, coupon_id=coupon_id, user_id=user_id,
            order_id=order_id, discount_amount=discount_amount, used_at=NOW,
        ))
        self.usage[(coupon_id, user_id)] = used + 1
        self.coupons[coupon.code] = coupon.model_copy(
            update={"usage_count": coupon.usage_count + 1}
        )
        return True


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def store():
    return FakeCouponStore([make_coupon()])
