# designstudio/config.py
import os
import logging
from decimal import Decimal
from pathlib import Path
from dotenv import load_dotenv
from typing import Dict, List, Optional

# Load environment variables
load_dotenv()

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent.parent


def _decimal_env(name: str, default: Optional[str] = None) -> Optional[Decimal]:
    value = os.getenv(name, default)
    if value is None or not value.strip():
        return None
    return Decimal(value.strip())


def _bool_env(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Configuration settings for the design studio backend"""

    # Server settings
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database settings
    DATABASE_URL: str = os.getenv("DATABASE_URL")
    if not DATABASE_URL:
        raise ValueError("No DATABASE_URL set in environment")

    # Token signing
    SECRET_KEY: str = os.getenv("SECRET_KEY")
    if not SECRET_KEY:
        raise ValueError("No SECRET_KEY set in environment")
    ACCESS_TOKEN_HOURS: int = int(os.getenv("ACCESS_TOKEN_HOURS", "24"))
    GUEST_SESSION_DAYS: int = int(os.getenv("GUEST_SESSION_DAYS", "7"))

    # Admin settings
    ADMIN_IDS: List[int] = [
        int(id_) for id_ in os.getenv("ADMIN_IDS", "").split(",")
        if id_.strip().isdigit()
    ]

    # Payment gateway settings
    RAZORPAY_KEY_ID: str = os.getenv("RAZORPAY_KEY_ID")
    RAZORPAY_KEY_SECRET: str = os.getenv("RAZORPAY_KEY_SECRET")
    if not RAZORPAY_KEY_ID or not RAZORPAY_KEY_SECRET:
        raise ValueError("Razorpay credentials not set in environment")
    RAZORPAY_API_URL: str = os.getenv("RAZORPAY_API_URL", "https://api.razorpay.com")
    CURRENCY: str = os.getenv("CURRENCY", "INR")
    ALLOW_DEMO_PAYMENTS: bool = _bool_env("ALLOW_DEMO_PAYMENTS")

    # Pricing settings (validated when pricing is attempted)
    BASE_TSHIRT_PRICE: Optional[Decimal] = _decimal_env("BASE_TSHIRT_PRICE")
    TEXT_PRINTING_COST: Optional[Decimal] = _decimal_env("TEXT_PRINTING_COST")
    IMAGE_PRINTING_COST: Optional[Decimal] = _decimal_env("IMAGE_PRINTING_COST")
    BACK_DESIGN_COST: Optional[Decimal] = _decimal_env("BACK_DESIGN_COST")
    STANDARD_SHIPPING_COST: Optional[Decimal] = _decimal_env("STANDARD_SHIPPING_COST")
    RUSH_SHIPPING_COST: Optional[Decimal] = _decimal_env("RUSH_SHIPPING_COST")
    TAX_RATE: Optional[Decimal] = _decimal_env("TAX_RATE")
    BULK_SHIPPING_THRESHOLD: int = int(os.getenv("BULK_SHIPPING_THRESHOLD", "10"))
    BULK_SHIPPING_STEP: int = int(os.getenv("BULK_SHIPPING_STEP", "10"))
    BULK_SHIPPING_INCREMENT: Optional[Decimal] = _decimal_env("BULK_SHIPPING_INCREMENT", "25")
    SIZE_PREMIUMS: Dict[str, Decimal] = {
        "XL": _decimal_env("SIZE_PREMIUM_XL", "10"),
        "XXL": _decimal_env("SIZE_PREMIUM_XXL", "20"),
        "XXXL": _decimal_env("SIZE_PREMIUM_XXXL", "30"),
    }

    # Collaborator services
    EMAIL_API_URL: str = os.getenv("EMAIL_API_URL", "")
    EMAIL_API_KEY: str = os.getenv("EMAIL_API_KEY", "")
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "orders@designstudio.local")
    CHALLAN_SERVICE_URL: str = os.getenv("CHALLAN_SERVICE_URL", "")
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")

    # Other settings
    TIMEZONE: str = os.getenv("TZ", "Asia/Kolkata")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Paths
    LOG_DIR = BASE_DIR / "logs"

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "production"


def setup_logging():
    """Configure logging settings"""
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    Config.LOG_DIR.mkdir(exist_ok=True)
    log_file = Config.LOG_DIR / "designstudio.log"

    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL),
        format=log_format,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )
