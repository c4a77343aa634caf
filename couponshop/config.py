import os
import logging
from pathlib import Path
from dotenv import load_dotenv
from typing import List

# Load environment variables
load_dotenv()

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent.parent

class Config:
    """Configuration settings for the coupon service"""

    # Bot settings
    TELEGRAM_TOKEN: str = os.getenv("TELEGRAM_TOKEN", "")

    # Database settings
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    DB_POOL_MIN: int = int(os.getenv("DB_POOL_MIN", "2"))
    DB_POOL_MAX: int = int(os.getenv("DB_POOL_MAX", "10"))

    # Admin settings
    ADMIN_IDS: List[int] = [
        int(id_) for id_ in os.getenv("ADMIN_IDS", "").split(",")
        if id_.strip().isdigit()
    ]

    # Other settings
    CURRENCY: str = os.getenv("CURRENCY", "USD")
    TIMEZONE: str = os.getenv("TZ", "Asia/Tehran")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Paths
    LOG_DIR = BASE_DIR / "logs"

    @classmethod
    def validate(cls):
        """Fail fast on settings the bot cannot start without"""
        if not cls.TELEGRAM_TOKEN:
            raise ValueError("No TELEGRAM_TOKEN set in environment")
        if not cls.DATABASE_URL:
            raise ValueError("No DATABASE_URL set in environment")

def setup_logging():
    """Configure logging settings"""
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    Config.LOG_DIR.mkdir(exist_ok=True)
    log_file = Config.LOG_DIR / "couponshop.log"

    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL),
        format=log_format,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )
