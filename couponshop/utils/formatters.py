from datetime import datetime
import pytz
from decimal import Decimal
from ..config import Config

def format_price(amount: Decimal) -> str:
    """Money with thousands separators and cents"""
    return f"{amount:,.2f} {Config.CURRENCY}"

def format_datetime(dt: datetime) -> str:
    """Date and time in the shop timezone"""
    shop_tz = pytz.timezone(Config.TIMEZONE)
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return dt.astimezone(shop_tz).strftime("%Y-%m-%d %H:%M")
