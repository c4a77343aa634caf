import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple
from telegram import Update
from telegram.ext import ContextTypes
from .base_handler import BaseHandler
from ..exceptions import CouponError
from ..services.coupon_service import CouponService

CHECK_USAGE = "Usage: /coupon CODE AMOUNT [CATEGORY_ID|-] [PRODUCT_ID]"
TOGGLE_USAGE = "Usage: /coupon_on COUPON_ID or /coupon_off COUPON_ID"

def parse_check_args(args: List[str]) -> Tuple[str, Decimal, Optional[int], Optional[int]]:
    """Split /coupon arguments; raises ValueError when they are malformed"""
    if len(args) < 2 or len(args) > 4:
        raise ValueError("Expected a coupon code and an order amount")

    code = args[0]
    try:
        amount = Decimal(args[1])
    except InvalidOperation:
        raise ValueError("Order amount must be a number")
    if not amount.is_finite() or amount <= 0:
        raise ValueError("Order amount must be greater than zero")

    # "-" skips the category when only a product is given
    try:
        category_id = int(args[2]) if len(args) > 2 and args[2] != "-" else None
        product_id = int(args[3]) if len(args) > 3 else None
    except ValueError:
        raise ValueError("Category and product ids must be whole numbers")
    return code, amount, category_id, product_id

class CouponHandler(BaseHandler):
    """Coupon commands for shoppers and admins"""

    def __init__(self, db, coupon_service: Optional[CouponService] = None):
        super().__init__(db)
        self.coupon_service = coupon_service or CouponService(db)
        self.logger = logging.getLogger(__name__)

    async def check_coupon(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """/coupon CODE AMOUNT [CATEGORY_ID] [PRODUCT_ID]"""
        try:
            code, amount, category_id, product_id = parse_check_args(context.args or [])
        except ValueError as e:
            await update.message.reply_text(f"❌ {e}\n{CHECK_USAGE}")
            return

        result = await self.coupon_service.validate_coupon(
            code=code,
            user_id=update.effective_user.id,
            order_amount=amount,
            category_id=category_id,
            product_id=product_id
        )

        await update.message.reply_text(self.messages.format_validation(result, amount))

    async def list_coupons(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """/coupons"""
        coupons = await self.coupon_service.get_available_coupons(update.effective_user.id)
        await update.message.reply_text(self.messages.format_coupon_list(coupons))

    async def usage_history(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """/my_coupons"""
        usages = await self.coupon_service.get_usage_history(update.effective_user.id)
        await update.message.reply_text(self.messages.format_usage_history(usages))

    async def activate_coupon(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """/coupon_on COUPON_ID"""
        await self._set_status(update, context, True)

    async def deactivate_coupon(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """/coupon_off COUPON_ID"""
        await self._set_status(update, context, False)

    async def _set_status(self, update: Update, context: ContextTypes.DEFAULT_TYPE, is_active: bool):
        if await self.deny_non_admin(update, context):
            return

        args = context.args or []
        if len(args) != 1 or not args[0].isdigit():
            await update.message.reply_text(TOGGLE_USAGE)
            return

        try:
            coupon = await self.coupon_service.set_coupon_status(int(args[0]), is_active)
        except CouponError as e:
            self.logger.warning(f"Status change for coupon {args[0]} failed: {e}")
            await update.message.reply_text(f"❌ {e}")
            return

        state = "activated" if is_active else "deactivated"
        await update.message.reply_text(f"✅ Coupon {coupon.code} {state}.")
