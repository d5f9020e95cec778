# designstudio/database/store.py
import asyncpg
from contextlib import asynccontextmanager
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional
from pydantic import BaseModel
from ..errors import DuplicateKeyError
from ..models.design import Design
from ..models.design_order import DesignOrder
from ..models.discount import DiscountCode
from ..models.order import Order, OrderStatus, PaymentStatus, CheckoutType
from ..models.product import Product
from ..models.user import User

def serialize_value(value: Any) -> Any:
    """Convert models and enums into values the driver can store"""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list):
        return [serialize_value(v) for v in value]
    if isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    return value

def serialize_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {key: serialize_value(value) for key, value in fields.items()}

class Store:
    """Persistence operations bound to a single connection"""

    def __init__(self, conn: asyncpg.Connection):
        self.conn = conn

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator["Store"]:
        """Nested transaction; a failure inside rolls back only its own writes"""
        async with self.conn.transaction():
            yield self

    async def _insert(self, table: str, fields: Dict[str, Any], returning: str) -> asyncpg.Record:
        fields = serialize_fields(fields)
        columns = ", ".join(fields)
        placeholders = ", ".join(f"${i}" for i in range(1, len(fields) + 1))
        try:
            return await self.conn.fetchrow(
                f"INSERT INTO {table} ({columns}) VALUES ({placeholders}) RETURNING {returning}",
                *fields.values()
            )
        except asyncpg.UniqueViolationError as e:
            raise DuplicateKeyError(e.constraint_name or table) from e

    async def _update(self, table: str, key: str, key_value: Any,
                      fields: Dict[str, Any]) -> Optional[asyncpg.Record]:
        fields = serialize_fields(fields)
        query_parts = []
        params = []
        param_count = 1

        for column, value in fields.items():
            query_parts.append(f"{column} = ${param_count}")
            params.append(value)
            param_count += 1

        params.append(key_value)
        query = f"""
            UPDATE {table}
            SET {', '.join(query_parts)}, updated_at = NOW()
            WHERE {key} = ${param_count}
            RETURNING *
        """
        try:
            return await self.conn.fetchrow(query, *params)
        except asyncpg.UniqueViolationError as e:
            raise DuplicateKeyError(e.constraint_name or table) from e

    # Users

    async def get_user(self, user_id: int) -> Optional[User]:
        row = await self.conn.fetchrow("SELECT * FROM users WHERE user_id = $1", user_id)
        return User.model_validate(dict(row)) if row else None

    async def get_user_by_email(self, email: str) -> Optional[User]:
        row = await self.conn.fetchrow(
            "SELECT * FROM users WHERE LOWER(email) = LOWER($1)", email
        )
        return User.model_validate(dict(row)) if row else None

    async def insert_user(self, fields: Dict[str, Any]) -> User:
        row = await self._insert("users", fields, "*")
        return User.model_validate(dict(row))

    async def update_user(self, user_id: int, **fields) -> Optional[User]:
        row = await self._update("users", "user_id", user_id, fields)
        return User.model_validate(dict(row)) if row else None

    # Catalog

    async def get_product(self, product_id: int) -> Optional[Product]:
        row = await self.conn.fetchrow(
            "SELECT * FROM products WHERE product_id = $1 AND is_active = true", product_id
        )
        return Product.model_validate(dict(row)) if row else None

    async def get_design(self, design_id: int) -> Optional[Design]:
        row = await self.conn.fetchrow(
            "SELECT * FROM designs WHERE design_id = $1 AND is_deleted = false", design_id
        )
        return Design.model_validate(dict(row)) if row else None

    # Discount codes

    async def get_discount(self, discount_id: int) -> Optional[DiscountCode]:
        row = await self.conn.fetchrow(
            "SELECT * FROM discount_codes WHERE discount_id = $1", discount_id
        )
        return DiscountCode.model_validate(dict(row)) if row else None

    async def get_discount_by_code(self, code: str) -> Optional[DiscountCode]:
        row = await self.conn.fetchrow(
            "SELECT * FROM discount_codes WHERE code = $1", code.upper()
        )
        return DiscountCode.model_validate(dict(row)) if row else None

    async def insert_discount(self, fields: Dict[str, Any]) -> DiscountCode:
        row = await self._insert("discount_codes", fields, "*")
        return DiscountCode.model_validate(dict(row))

    async def update_discount(self, discount_id: int, **fields) -> Optional[DiscountCode]:
        row = await self._update("discount_codes", "discount_id", discount_id, fields)
        return DiscountCode.model_validate(dict(row)) if row else None

    async def increment_discount_usage(self, discount_id: int) -> bool:
        """Single-statement increment guarded by the usage limit"""
        result = await self.conn.execute("""
            UPDATE discount_codes
            SET used_count = used_count + 1, updated_at = NOW()
            WHERE discount_id = $1
            AND (usage_limit IS NULL OR used_count < usage_limit)
        """, discount_id)
        return result == "UPDATE 1"

    async def record_discount_usage(self, discount_id: int, order_id: int):
        await self._insert(
            "discount_usage",
            {"discount_id": discount_id, "order_id": order_id},
            "usage_id"
        )

    async def list_active_discounts(self, now: datetime) -> List[DiscountCode]:
        rows = await self.conn.fetch("""
            SELECT *
            FROM discount_codes
            WHERE is_active = true
            AND start_date <= $1 AND expiry_date >= $1
            AND (usage_limit IS NULL OR used_count < usage_limit)
            ORDER BY created_at DESC
        """, now)
        return [DiscountCode.model_validate(dict(r)) for r in rows]

    # Orders

    async def insert_order(self, fields: Dict[str, Any]) -> Order:
        row = await self._insert("orders", fields, "*")
        return Order.model_validate(dict(row))

    async def get_order(self, order_id: int, for_update: bool = False) -> Optional[Order]:
        query = "SELECT * FROM orders WHERE order_id = $1"
        if for_update:
            query += " FOR UPDATE"
        row = await self.conn.fetchrow(query, order_id)
        return Order.model_validate(dict(row)) if row else None

    async def get_order_by_number(self, order_number: str) -> Optional[Order]:
        row = await self.conn.fetchrow(
            "SELECT * FROM orders WHERE order_number = $1", order_number
        )
        return Order.model_validate(dict(row)) if row else None

    async def find_order_by_gateway_order_id(self, gateway_order_id: str) -> Optional[Order]:
        row = await self.conn.fetchrow(
            "SELECT * FROM orders WHERE gateway_order_id = $1", gateway_order_id
        )
        return Order.model_validate(dict(row)) if row else None

    async def find_order_by_payment_id(self, payment_id: str) -> Optional[Order]:
        row = await self.conn.fetchrow(
            "SELECT * FROM orders WHERE gateway_payment_id = $1", payment_id
        )
        return Order.model_validate(dict(row)) if row else None

    async def find_latest_pending_express_order(self) -> Optional[Order]:
        row = await self.conn.fetchrow("""
            SELECT * FROM orders
            WHERE checkout_type = $1 AND payment_status = $2 AND status <> $3
            ORDER BY created_at DESC, order_id DESC
            LIMIT 1
        """, CheckoutType.EXPRESS.value, PaymentStatus.PENDING.value, OrderStatus.CANCELLED.value)
        return Order.model_validate(dict(row)) if row else None

    async def get_user_orders(self, user_id: int, limit: int = 20) -> List[Order]:
        rows = await self.conn.fetch("""
            SELECT * FROM orders
            WHERE user_id = $1
            ORDER BY created_at DESC
            LIMIT $2
        """, user_id, limit)
        return [Order.model_validate(dict(r)) for r in rows]

    async def update_order(self, order_id: int, **fields) -> Optional[Order]:
        row = await self._update("orders", "order_id", order_id, fields)
        return Order.model_validate(dict(row)) if row else None

    async def link_design_order(self, order_id: int, design_order_id: int) -> Optional[Order]:
        row = await self.conn.fetchrow("""
            UPDATE orders
            SET linked_design_orders = array_append(linked_design_orders, $2),
                updated_at = NOW()
            WHERE order_id = $1
            RETURNING *
        """, order_id, design_order_id)
        return Order.model_validate(dict(row)) if row else None

    # Design orders

    async def insert_design_order(self, fields: Dict[str, Any]) -> DesignOrder:
        row = await self._insert("design_orders", fields, "*")
        return DesignOrder.model_validate(dict(row))

    async def get_design_order(self, design_order_id: int) -> Optional[DesignOrder]:
        row = await self.conn.fetchrow(
            "SELECT * FROM design_orders WHERE design_order_id = $1", design_order_id
        )
        return DesignOrder.model_validate(dict(row)) if row else None

    async def get_design_orders_for_order(self, order_id: int) -> List[DesignOrder]:
        rows = await self.conn.fetch(
            "SELECT * FROM design_orders WHERE order_id = $1 ORDER BY design_order_id", order_id
        )
        return [DesignOrder.model_validate(dict(r)) for r in rows]

    async def update_design_order(self, design_order_id: int, **fields) -> Optional[DesignOrder]:
        row = await self._update("design_orders", "design_order_id", design_order_id, fields)
        return DesignOrder.model_validate(dict(row)) if row else None
