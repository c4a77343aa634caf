import logging
from telegram import Update
from telegram.ext import Application, CommandHandler
from .config import Config
from .database.database import Database
from .handlers import CouponHandler

class CouponBot:
    def __init__(self, db: Database = None):
        """Build the application and register handlers"""
        self.db = db or Database()
        self.logger = logging.getLogger(__name__)
        self.application = (
            Application.builder()
            .token(Config.TELEGRAM_TOKEN)
            .post_init(self._on_startup)
            .post_shutdown(self._on_shutdown)
            .build()
        )
        self.coupon_handler = CouponHandler(self.db)
        self.setup_handlers()

    def setup_handlers(self):
        """Register bot commands"""
        self.application.add_handler(CommandHandler("coupon", self.coupon_handler.check_coupon))
        self.application.add_handler(CommandHandler("coupons", self.coupon_handler.list_coupons))
        self.application.add_handler(CommandHandler("my_coupons", self.coupon_handler.usage_history))

        # admin
        self.application.add_handler(CommandHandler("coupon_on", self.coupon_handler.activate_coupon))
        self.application.add_handler(CommandHandler("coupon_off", self.coupon_handler.deactivate_coupon))

    async def _on_startup(self, application: Application):
        await self.db.connect()

    async def _on_shutdown(self, application: Application):
        await self.db.close()

    def run(self):
        """Poll Telegram until interrupted"""
        self.logger.info("Starting bot...")
        self.application.run_polling(allowed_updates=Update.ALL_TYPES)
