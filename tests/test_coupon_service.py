"""Tests for coupon management and redemption."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from couponshop.exceptions import (
    CouponNotFoundError,
    DuplicateCouponError,
    InvalidCouponError,
)
from couponshop.models.coupon import CouponCreate, CouponUpdate, DiscountType
from couponshop.services.coupon_service import CouponService
from tests.conftest import NOW, FakeCouponStore, make_coupon


def service_for(*coupons, usage=None):
    store = FakeCouponStore(coupons, usage=usage)
    return CouponService(db=None, store=store, clock=lambda: NOW), store


def create_request(**overrides):
    data = {
        "code": "WELCOME-5",
        "discount_type": DiscountType.FIXED_AMOUNT,
        "discount_value": Decimal("5"),
        "start_date": NOW,
        "end_date": NOW + timedelta(days=10),
    }
    data.update(overrides)
    return CouponCreate(**data)


class TestCouponCreate:
    """Admin input rules."""

    def test_valid_request(self):
        request = create_request(applicable_categories=[1, 2])
        assert request.applicable_categories == {1, 2}
        assert request.min_purchase_amount is None

    @pytest.mark.parametrize("code", ["AB", "lower", "HAS SPACE", "X" * 51])
    def test_rejects_bad_codes(self, code):
        with pytest.raises(ValidationError):
            create_request(code=code)

    def test_rejects_end_before_start(self):
        with pytest.raises(ValidationError, match="End date must be after start date"):
            create_request(end_date=NOW - timedelta(days=1))

    def test_rejects_percentage_over_100(self):
        with pytest.raises(ValidationError, match="cannot exceed 100%"):
            create_request(discount_type=DiscountType.PERCENTAGE, discount_value=Decimal("101"))

    def test_rejects_zero_discount(self):
        with pytest.raises(ValidationError):
            create_request(discount_value=Decimal("0"))

    def test_aware_dates_become_naive_utc(self):
        request = create_request(
            start_date="2025-07-01T15:30:00+03:30",
            end_date="2025-08-01T00:00:00Z"
        )
        assert request.start_date == NOW
        assert request.end_date == datetime(2025, 8, 1)
        assert request.end_date.tzinfo is None

    def test_rejects_zero_limits(self):
        with pytest.raises(ValidationError):
            create_request(usage_limit=0)
        with pytest.raises(ValidationError):
            create_request(per_user_limit=0)


class TestCouponAdmin:
    """Create, read, update, delete and status toggling."""

    @pytest.mark.asyncio
    async def test_create_coupon(self):
        service, store = service_for()
        coupon = await service.create_coupon(create_request())
        assert coupon.code == "WELCOME-5"
        assert coupon.min_purchase_amount == Decimal(0)
        assert coupon.per_user_limit == 1
        assert "WELCOME-5" in store.coupons

    @pytest.mark.asyncio
    async def test_create_duplicate_code(self):
        service, _ = service_for(make_coupon(code="WELCOME-5"))
        with pytest.raises(DuplicateCouponError):
            await service.create_coupon(create_request())

    @pytest.mark.asyncio
    async def test_get_missing_coupon(self):
        service, _ = service_for()
        with pytest.raises(CouponNotFoundError, match="id: 99"):
            await service.get_coupon(99)

    @pytest.mark.asyncio
    async def test_update_coupon(self):
        service, _ = service_for(make_coupon())
        updated = await service.update_coupon(1, CouponUpdate(discount_value=Decimal("15")))
        assert updated.discount_value == Decimal("15")
        assert updated.code == "SUMMER10"

    @pytest.mark.asyncio
    async def test_update_end_before_start(self):
        service, _ = service_for(make_coupon())
        with pytest.raises(InvalidCouponError):
            await service.update_coupon(1, CouponUpdate(end_date=NOW - timedelta(days=60)))

    @pytest.mark.asyncio
    async def test_update_percentage_over_100(self):
        service, _ = service_for(make_coupon())
        with pytest.raises(InvalidCouponError, match="cannot exceed 100%"):
            await service.update_coupon(1, CouponUpdate(discount_value=Decimal("150")))

    @pytest.mark.asyncio
    async def test_update_ignores_null_fields(self):
        service, _ = service_for(make_coupon(min_purchase_amount=Decimal("20")))
        updated = await service.update_coupon(1, CouponUpdate(
            min_purchase_amount=None,
            is_active=None,
            description="Summer sale"
        ))
        assert updated.min_purchase_amount == Decimal("20")
        assert updated.is_active is True
        assert updated.description == "Summer sale"
        result = await service.validate_coupon("SUMMER10", 1, Decimal("100"))
        assert result.valid

    @pytest.mark.asyncio
    async def test_update_accepts_aware_end_date(self):
        service, _ = service_for(make_coupon())
        updated = await service.update_coupon(1, CouponUpdate(end_date="2025-08-01T00:00:00Z"))
        assert updated.end_date == datetime(2025, 8, 1)
        with pytest.raises(InvalidCouponError):
            await service.update_coupon(1, CouponUpdate(end_date="2025-06-01T00:00:00+00:00"))

    @pytest.mark.asyncio
    async def test_update_to_fixed_allows_large_value(self):
        service, _ = service_for(make_coupon())
        updated = await service.update_coupon(1, CouponUpdate(
            discount_type=DiscountType.FIXED_AMOUNT,
            discount_value=Decimal("150")
        ))
        assert updated.discount_type == DiscountType.FIXED_AMOUNT

    @pytest.mark.asyncio
    async def test_update_missing_coupon(self):
        service, _ = service_for()
        with pytest.raises(CouponNotFoundError):
            await service.update_coupon(5, CouponUpdate(is_active=False))

    @pytest.mark.asyncio
    async def test_delete_coupon(self):
        service, store = service_for(make_coupon())
        await service.delete_coupon(1)
        assert store.coupons == {}
        with pytest.raises(CouponNotFoundError):
            await service.delete_coupon(1)

    @pytest.mark.asyncio
    async def test_set_status(self):
        service, _ = service_for(make_coupon())
        coupon = await service.set_coupon_status(1, False)
        assert coupon.is_active is False
        result = await service.validate_coupon("SUMMER10", 1, Decimal("100"))
        assert result.message == "Coupon is not active"

    @pytest.mark.asyncio
    async def test_set_status_missing(self):
        service, _ = service_for()
        with pytest.raises(CouponNotFoundError):
            await service.set_coupon_status(3, True)

    @pytest.mark.asyncio
    async def test_get_all_coupons_pages(self):
        coupons = [make_coupon(coupon_id=i, code=f"CODE{i}") for i in range(1, 6)]
        service, _ = service_for(*coupons)
        page = await service.get_all_coupons(page=1, page_size=2)
        assert [c.code for c in page] == ["CODE3", "CODE4"]


class TestAvailableCoupons:

    @pytest.mark.asyncio
    async def test_filters_by_user_limit(self):
        service, _ = service_for(
            make_coupon(coupon_id=1, code="ONCE", per_user_limit=1),
            make_coupon(coupon_id=2, code="ALWAYS"),
            make_coupon(coupon_id=3, code="OLD", end_date=NOW - timedelta(days=1)),
            usage={(1, 7): 1}
        )
        available = await service.get_available_coupons(7)
        assert [c.code for c in available] == ["ALWAYS"]

        available = await service.get_available_coupons(8)
        assert {c.code for c in available} == {"ONCE", "ALWAYS"}


class TestApplyCoupon:
    """Redemption after payment."""

    @pytest.mark.asyncio
    async def test_redeem_increments_usage(self):
        service, store = service_for(make_coupon(per_user_limit=2))
        await service.apply_coupon(1, 7, 100, Decimal("10.00"))
        assert store.coupons["SUMMER10"].usage_count == 1
        assert store.usage[(1, 7)] == 1

    @pytest.mark.asyncio
    async def test_same_order_twice(self):
        service, store = service_for(make_coupon())
        await service.apply_coupon(1, 7, 100, Decimal("10.00"))
        with pytest.raises(InvalidCouponError, match="already applied to this order"):
            await service.apply_coupon(1, 7, 100, Decimal("10.00"))
        assert store.coupons["SUMMER10"].usage_count == 1

    @pytest.mark.asyncio
    async def test_limit_exhausted_by_redemption(self):
        service, _ = service_for(make_coupon(per_user_limit=1))
        await service.apply_coupon(1, 7, 100, Decimal("10.00"))
        with pytest.raises(InvalidCouponError, match="can no longer be redeemed"):
            await service.apply_coupon(1, 7, 101, Decimal("10.00"))

        result = await service.validate_coupon("SUMMER10", 7, Decimal("100"))
        assert not result.valid

    @pytest.mark.asyncio
    async def test_missing_coupon(self):
        service, _ = service_for()
        with pytest.raises(CouponNotFoundError):
            await service.apply_coupon(1, 7, 100, Decimal("1"))


class TestUsageHistory:

    @pytest.mark.asyncio
    async def test_history_newest_first(self):
        service, _ = service_for(make_coupon(), make_coupon(coupon_id=2, code="OTHER"))
        await service.apply_coupon(1, 7, 100, Decimal("10.00"))
        await service.apply_coupon(2, 7, 101, Decimal("4.00"))
        await service.apply_coupon(1, 8, 102, Decimal("10.00"))
        history = await service.get_usage_history(7)
        assert [u.order_id for u in history] == [101, 100]
