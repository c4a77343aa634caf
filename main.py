import logging
from couponshop.bot import CouponBot
from couponshop.config import Config, setup_logging

def main():
    # Setup logging
    setup_logging()
    logger = logging.getLogger(__name__)

    try:
        Config.validate()
        bot = CouponBot()
        bot.run()
    except Exception as e:
        logger.error(f"Error starting bot: {e}", exc_info=True)
        raise

if __name__ == "__main__":
    main()
