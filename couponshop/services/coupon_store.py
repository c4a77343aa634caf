from typing import Dict, List, Optional, Any
from datetime import datetime
from decimal import Decimal
from enum import Enum
from ..models.coupon import Coupon, CouponUsage

COUPON_COLUMNS = (
    "code", "description", "discount_type", "discount_value",
    "min_purchase_amount", "max_discount_amount", "usage_limit",
    "per_user_limit", "start_date", "end_date", "is_active",
    "applicable_categories", "applicable_products"
)

def _to_db_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    return value

class CouponStore:
    """asyncpg-backed storage for coupons and their usage records"""

    def __init__(self, db):
        self.db = db

    @staticmethod
    def _to_coupon(row) -> Optional[Coupon]:
        return Coupon(**dict(row)) if row else None

    async def find_by_code(self, code: str) -> Optional[Coupon]:
        async with self.db.pool.acquire() as conn:
            row = await conn.fetchrow("""
                SELECT *
                FROM coupons
                WHERE code = $1
            """, code)
            return self._to_coupon(row)

    async def find_by_id(self, coupon_id: int) -> Optional[Coupon]:
        async with self.db.pool.acquire() as conn:
            row = await conn.fetchrow("""
                SELECT *
                FROM coupons
                WHERE coupon_id = $1
            """, coupon_id)
            return self._to_coupon(row)

    async def exists_by_code(self, code: str) -> bool:
        async with self.db.pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT EXISTS(SELECT 1 FROM coupons WHERE code = $1)", code
            )

    async def find_usage_count(self, coupon_id: int, user_id: int) -> int:
        """Prior redemptions of the coupon by one user"""
        async with self.db.pool.acquire() as conn:
            return await conn.fetchval("""
                SELECT COUNT(*)
                FROM coupon_usage
                WHERE coupon_id = $1 AND user_id = $2
            """, coupon_id, user_id)

    async def has_usage_for_order(self, coupon_id: int, order_id: int) -> bool:
        async with self.db.pool.acquire() as conn:
            return await conn.fetchval("""
                SELECT EXISTS(
                    SELECT 1 FROM coupon_usage
                    WHERE coupon_id = $1 AND order_id = $2
                )
            """, coupon_id, order_id)

    async def find_usages_by_user(self, user_id: int) -> List[CouponUsage]:
        """Redemptions made by one user, newest first"""
        async with self.db.pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT *
                FROM coupon_usage
                WHERE user_id = $1
                ORDER BY used_at DESC
            """, user_id)
            return [CouponUsage(**dict(r)) for r in rows]

    async def find_available(self, now: datetime) -> List[Coupon]:
        """Active coupons inside their window and under the global limit"""
        async with self.db.pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT *
                FROM coupons
                WHERE is_active = true
                AND start_date <= $1 AND end_date >= $1
                AND (usage_limit IS NULL OR usage_count < usage_limit)
                ORDER BY created_at DESC
            """, now)
            return [self._to_coupon(r) for r in rows]

    async def list_all(self, limit: int, offset: int) -> List[Coupon]:
        async with self.db.pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT *
                FROM coupons
                ORDER BY created_at DESC
                LIMIT $1 OFFSET $2
            """, limit, offset)
            return [self._to_coupon(r) for r in rows]

    async def create(self, coupon_data: Dict[str, Any]) -> Coupon:
        values = [_to_db_value(coupon_data.get(column)) for column in COUPON_COLUMNS]
        placeholders = ", ".join(f"${i}" for i in range(1, len(COUPON_COLUMNS) + 1))

        async with self.db.pool.acquire() as conn:
            row = await conn.fetchrow(f"""
                INSERT INTO coupons ({', '.join(COUPON_COLUMNS)})
                VALUES ({placeholders})
                RETURNING *
            """, *values)
            return self._to_coupon(row)

    async def update(self, coupon_id: int, update_data: Dict[str, Any]) -> Optional[Coupon]:
        """Update the given columns; unknown keys are rejected"""
        query_parts = []
        params = []
        param_count = 1

        for key, value in update_data.items():
            if key not in COUPON_COLUMNS:
                raise ValueError(f"Unknown coupon column: {key}")
            query_parts.append(f"{key} = ${param_count}")
            params.append(_to_db_value(value))
            param_count += 1

        if not query_parts:
            return await self.find_by_id(coupon_id)

        params.append(coupon_id)
        query = f"""
            UPDATE coupons
            SET {', '.join(query_parts)}, updated_at = NOW()
            WHERE coupon_id = ${param_count}
            RETURNING *
        """

        async with self.db.pool.acquire() as conn:
            row = await conn.fetchrow(query, *params)
            return self._to_coupon(row)

    async def set_active(self, coupon_id: int, is_active: bool) -> Optional[Coupon]:
        async with self.db.pool.acquire() as conn:
            row = await conn.fetchrow("""
                UPDATE coupons
                SET is_active = $1, updated_at = NOW()
                WHERE coupon_id = $2
                RETURNING *
            """, is_active, coupon_id)
            return self._to_coupon(row)

    async def delete(self, coupon_id: int) -> bool:
        async with self.db.pool.acquire() as conn:
            result = await conn.execute("""
                DELETE FROM coupons
                WHERE coupon_id = $1
            """, coupon_id)
            return result == "DELETE 1"

    async def redeem(self, coupon_id: int, user_id: int, order_id: int,
                     discount_amount: Decimal) -> bool:
        """Record one redemption and bump the counter, or write nothing.

        The coupon row stays locked for the whole transaction so concurrent
        checkouts cannot both pass the limit checks.
        """
        async with self.db.pool.acquire() as conn:
            async with conn.transaction():
                coupon = await conn.fetchrow("""
                    SELECT usage_limit, usage_count, per_user_limit
                    FROM coupons
                    WHERE coupon_id = $1
                    FOR UPDATE
                """, coupon_id)

                if not coupon:
                    return False

                if coupon['usage_limit'] is not None and coupon['usage_count'] >= coupon['usage_limit']:
                    return False

                if coupon['per_user_limit'] is not None:
                    used = await conn.fetchval("""
                        SELECT COUNT(*)
                        FROM coupon_usage
                        WHERE coupon_id = $1 AND user_id = $2
                    """, coupon_id, user_id)
                    if used >= coupon['per_user_limit']:
                        return False

                usage_id = await conn.fetchval("""
                    INSERT INTO coupon_usage (
                        coupon_id, user_id, order_id, discount_amount, used_at
                    ) VALUES ($1, $2, $3, $4, NOW())
                    ON CONFLICT (coupon_id, order_id) DO NOTHING
                    RETURNING usage_id
                """, coupon_id, user_id, order_id, discount_amount)

                if usage_id is None:
                    return False

                await conn.execute("""
                    UPDATE coupons
                    SET usage_count = usage_count + 1, updated_at = NOW()
                    WHERE coupon_id = $1
                """, coupon_id)

                return True
