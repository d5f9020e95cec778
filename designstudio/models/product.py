# designstudio/models/product.py
from decimal import Decimal
from typing import Optional
from .base import TimeStampedModel

class Product(TimeStampedModel):
    """Catalog product sold at a fixed price per item"""
    product_id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    is_active: bool = True
    image_url: Optional[str] = None
