# designstudio/utils/formatters.py
from datetime import datetime
import secrets
import pytz
from decimal import Decimal, ROUND_HALF_UP
from ..config import Config

def now_utc() -> datetime:
    return datetime.now(pytz.utc)

def format_price(amount: Decimal) -> str:
    """Price with thousands separators and two decimals"""
    return f"{amount:,.2f}"

def format_datetime(dt: datetime) -> str:
    """Render a timestamp in the shop's timezone"""
    local_tz = pytz.timezone(Config.TIMEZONE)
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    local_time = dt.astimezone(local_tz)
    return local_time.strftime("%Y-%m-%d %H:%M:%S")

def to_minor_units(amount: Decimal) -> int:
    """Major currency amount to the gateway's minor units (paise, cents)"""
    return int((Decimal(amount) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))

def generate_order_number(prefix: str = "ORD", now: datetime = None) -> str:
    """Human-legible order number: prefix, UTC timestamp and a random suffix"""
    now = now or now_utc()
    return f"{prefix}-{now.strftime('%Y%m%d%H%M%S')}-{secrets.token_hex(3).upper()}"

def ensure_utc(dt: datetime) -> datetime:
    """Naive timestamps are taken as UTC"""
    if dt.tzinfo is None:
        return pytz.utc.localize(dt)
    return dt.astimezone(pytz.utc)
