import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Optional
from ..models.coupon import Coupon, Discount, ValidationResult

CENT = Decimal("0.01")

def utc_now() -> datetime:
    """Naive UTC timestamp, matching how coupon windows are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)

NOT_FOUND = "Coupon not found"
NOT_ACTIVE = "Coupon is not active"
NOT_YET_VALID = "Coupon is not yet valid"
EXPIRED = "Coupon has expired"
USAGE_LIMIT_REACHED = "Coupon usage limit reached"
PER_USER_LIMIT_REACHED = "You have already used this coupon the maximum number of times"
MIN_PURCHASE = "Minimum purchase amount of {amount:.2f} required"
CATEGORY_NOT_APPLICABLE = "Coupon not applicable to this category"
PRODUCT_NOT_APPLICABLE = "Coupon not applicable to this product"
SCOPE_NOT_APPLICABLE = "Coupon not applicable to this category or product"

def calculate_discount(discount: Discount, order_amount: Decimal) -> Decimal:
    """Discount for the order, rounded half-up to cents"""
    return discount.raw_amount(order_amount).quantize(CENT, rounding=ROUND_HALF_UP)

def check_scope(coupon: Coupon, category_id: Optional[int],
                product_id: Optional[int]) -> Optional[str]:
    """Return the failure message when the coupon does not cover the target, else None.

    A restricted category set and a restricted product set are alternative
    match paths: hitting either one is enough.
    """
    if coupon.is_universal or (category_id is None and product_id is None):
        return None

    categories = coupon.applicable_categories
    products = coupon.applicable_products
    if category_id is not None and category_id in categories:
        return None
    if product_id is not None and product_id in products:
        return None

    if categories and products:
        return SCOPE_NOT_APPLICABLE
    if categories:
        return CATEGORY_NOT_APPLICABLE
    return PRODUCT_NOT_APPLICABLE

class CouponValidator:
    """Decides whether a coupon applies to an order and prices the discount.

    The validator never writes: usage counters move only through the
    store's redeem step once an order is paid.
    """

    def __init__(self, store, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    async def validate(self, code: str, user_id: int, order_amount: Decimal,
                       category_id: Optional[int] = None,
                       product_id: Optional[int] = None) -> ValidationResult:
        """Run the coupon rules in order and stop at the first failure"""
        order_amount = Decimal(str(order_amount))

        coupon = await self.store.find_by_code(code)
        if coupon is None:
            return ValidationResult.failure(NOT_FOUND)

        if not coupon.is_active:
            return ValidationResult.failure(NOT_ACTIVE)

        now = self.clock()
        if now < coupon.start_date:
            return ValidationResult.failure(NOT_YET_VALID)
        if now > coupon.end_date:
            return ValidationResult.failure(EXPIRED)

        if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
            return ValidationResult.failure(USAGE_LIMIT_REACHED)

        if coupon.per_user_limit is not None:
            used = await self.store.find_usage_count(coupon.coupon_id, user_id)
            if used >= coupon.per_user_limit:
                return ValidationResult.failure(PER_USER_LIMIT_REACHED)

        if order_amount <= 0 or order_amount < coupon.min_purchase_amount:
            return ValidationResult.failure(
                MIN_PURCHASE.format(amount=coupon.min_purchase_amount)
            )

        scope_error = check_scope(coupon, category_id, product_id)
        if scope_error:
            return ValidationResult.failure(scope_error)

        discount_amount = calculate_discount(coupon.discount, order_amount)
        self.logger.debug(
            f"Coupon {coupon.code} gives {discount_amount} off {order_amount} for user {user_id}"
        )
        return ValidationResult.success(
            discount_amount=discount_amount,
            final_amount=order_amount - discount_amount
        )
