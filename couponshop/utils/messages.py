from decimal import Decimal
from typing import List
from ..models.coupon import Coupon, CouponUsage, DiscountType, ValidationResult
from ..utils.formatters import format_price, format_datetime

class Messages:
    @staticmethod
    def format_discount(coupon: Coupon) -> str:
        """Short description of what the coupon takes off"""
        if coupon.discount_type == DiscountType.PERCENTAGE:
            text = f"{coupon.discount_value.normalize():f}% off"
            if coupon.max_discount_amount is not None:
                text += f" (up to {format_price(coupon.max_discount_amount)})"
            return text
        return f"{format_price(coupon.discount_value)} off"

    @staticmethod
    def format_coupon(coupon: Coupon) -> str:
        lines = [
            f"🎫 {coupon.code}: {Messages.format_discount(coupon)}",
        ]
        if coupon.description:
            lines.append(f"📝 {coupon.description}")
        if coupon.min_purchase_amount > 0:
            lines.append(f"🛒 Minimum purchase: {format_price(coupon.min_purchase_amount)}")
        lines.append(f"⏳ Valid until: {format_datetime(coupon.end_date)}")
        return "\n".join(lines)

    @staticmethod
    def format_coupon_list(coupons: List[Coupon]) -> str:
        if not coupons:
            return "No coupons are available right now."
        return "\n\n".join(Messages.format_coupon(c) for c in coupons)

    @staticmethod
    def format_usage_history(usages: List[CouponUsage]) -> str:
        if not usages:
            return "You have not redeemed any coupons yet."
        return "\n".join(
            f"🧾 Order #{u.order_id}: {format_price(u.discount_amount)} off, {format_datetime(u.used_at)}"
            for u in usages
        )

    @staticmethod
    def format_validation(result: ValidationResult, order_amount: Decimal) -> str:
        """Reply text for a coupon check"""
        if not result.valid:
            return f"❌ {result.message}"
        return (
            f"✅ {result.message}\n\n"
            f"💰 Order amount: {format_price(order_amount)}\n"
            f"🏷 Discount: {format_price(result.discount_amount)}\n"
            f"📊 Final amount: {format_price(result.final_amount)}"
        )
