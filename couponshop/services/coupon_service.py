import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional
from ..exceptions import CouponNotFoundError, DuplicateCouponError, InvalidCouponError
from ..models.coupon import (
    Coupon, CouponCreate, CouponUpdate, CouponUsage, DEFAULT_PER_USER_LIMIT, DiscountType,
    MAX_PERCENTAGE, ValidationResult
)
from .coupon_store import CouponStore
from .coupon_validator import CouponValidator, utc_now

DEFAULT_PAGE_SIZE = 20

class CouponService:
    """Coupon management and checkout-time coupon operations"""

    def __init__(self, db, store: Optional[CouponStore] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.store = store or CouponStore(db)
        self.clock = clock
        self.validator = CouponValidator(self.store, clock=clock)
        self.logger = logging.getLogger(__name__)

    async def validate_coupon(self, code: str, user_id: int, order_amount: Decimal,
                              category_id: Optional[int] = None,
                              product_id: Optional[int] = None) -> ValidationResult:
        result = await self.validator.validate(
            code, user_id, order_amount,
            category_id=category_id,
            product_id=product_id
        )
        if result.valid:
            self.logger.info(f"Coupon {code} validated for user {user_id}: -{result.discount_amount}")
        else:
            self.logger.info(f"Coupon {code} rejected for user {user_id}: {result.message}")
        return result

    async def get_available_coupons(self, user_id: int) -> List[Coupon]:
        """Coupons the user can still redeem right now"""
        coupons = await self.store.find_available(self.clock())
        available = []
        for coupon in coupons:
            if coupon.per_user_limit is not None:
                used = await self.store.find_usage_count(coupon.coupon_id, user_id)
                if used >= coupon.per_user_limit:
                    continue
            available.append(coupon)
        return available

    async def get_usage_history(self, user_id: int) -> List[CouponUsage]:
        return await self.store.find_usages_by_user(user_id)

    async def get_all_coupons(self, page: int = 0, page_size: int = DEFAULT_PAGE_SIZE) -> List[Coupon]:
        return await self.store.list_all(limit=page_size, offset=page * page_size)

    async def get_coupon(self, coupon_id: int) -> Coupon:
        coupon = await self.store.find_by_id(coupon_id)
        if not coupon:
            raise CouponNotFoundError(f"Coupon not found with id: {coupon_id}")
        return coupon

    async def create_coupon(self, request: CouponCreate) -> Coupon:
        if await self.store.exists_by_code(request.code):
            raise DuplicateCouponError(f"Coupon with code {request.code} already exists")

        coupon_data = request.model_dump()
        if coupon_data['min_purchase_amount'] is None:
            coupon_data['min_purchase_amount'] = Decimal(0)
        if coupon_data['per_user_limit'] is None:
            coupon_data['per_user_limit'] = DEFAULT_PER_USER_LIMIT

        coupon = await self.store.create(coupon_data)
        self.logger.info(f"Coupon {coupon.code} created with id {coupon.coupon_id}")
        return coupon

    async def update_coupon(self, coupon_id: int, request: CouponUpdate) -> Coupon:
        coupon = await self.get_coupon(coupon_id)

        if request.end_date is not None and request.end_date < coupon.start_date:
            raise InvalidCouponError("End date must be after start date")

        discount_type = request.discount_type or coupon.discount_type
        discount_value = request.discount_value or coupon.discount_value
        if discount_type == DiscountType.PERCENTAGE and discount_value > MAX_PERCENTAGE:
            raise InvalidCouponError("Percentage discount cannot exceed 100%")

        updated = await self.store.update(coupon_id, request.model_dump(exclude_none=True))
        if not updated:
            raise CouponNotFoundError(f"Coupon not found with id: {coupon_id}")
        return updated

    async def delete_coupon(self, coupon_id: int):
        if not await self.store.delete(coupon_id):
            raise CouponNotFoundError(f"Coupon not found with id: {coupon_id}")
        self.logger.info(f"Coupon {coupon_id} deleted")

    async def set_coupon_status(self, coupon_id: int, is_active: bool) -> Coupon:
        coupon = await self.store.set_active(coupon_id, is_active)
        if not coupon:
            raise CouponNotFoundError(f"Coupon not found with id: {coupon_id}")
        self.logger.info(f"Coupon {coupon.code} {'activated' if is_active else 'deactivated'}")
        return coupon

    async def apply_coupon(self, coupon_id: int, user_id: int, order_id: int,
                           discount_amount: Decimal):
        """Record the redemption of a paid order; call once per order"""
        await self.get_coupon(coupon_id)

        if await self.store.has_usage_for_order(coupon_id, order_id):
            raise InvalidCouponError("Coupon already applied to this order")

        if not await self.store.redeem(coupon_id, user_id, order_id, discount_amount):
            raise InvalidCouponError("Coupon can no longer be redeemed")

        self.logger.info(f"Coupon {coupon_id} redeemed by user {user_id} on order {order_id}")
