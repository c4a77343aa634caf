from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Set, Union
import pytz
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MAX_PERCENTAGE = Decimal(100)
CODE_PATTERN = r"^[A-Z0-9_-]+$"
DEFAULT_PER_USER_LIMIT = 1

def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Coupon windows are stored as naive UTC; aware input is converted"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(pytz.utc).replace(tzinfo=None)

class DiscountType(str, Enum):
    """Coupon discount kinds"""
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"

class PercentageDiscount(BaseModel):
    """A share of the order amount, optionally capped"""
    type: Literal[DiscountType.PERCENTAGE] = DiscountType.PERCENTAGE
    value: Decimal
    cap: Optional[Decimal] = None

    model_config = ConfigDict(frozen=True)

    def raw_amount(self, order_amount: Decimal) -> Decimal:
        amount = order_amount * self.value / MAX_PERCENTAGE
        if self.cap is not None:
            amount = min(amount, self.cap)
        return amount

class FixedAmountDiscount(BaseModel):
    """A flat amount that never exceeds the order amount"""
    type: Literal[DiscountType.FIXED_AMOUNT] = DiscountType.FIXED_AMOUNT
    value: Decimal

    model_config = ConfigDict(frozen=True)

    def raw_amount(self, order_amount: Decimal) -> Decimal:
        return min(self.value, order_amount)

Discount = Annotated[
    Union[PercentageDiscount, FixedAmountDiscount],
    Field(discriminator="type")
]

class Coupon(BaseModel):
    """Coupon record as stored"""
    coupon_id: int
    code: str
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal
    min_purchase_amount: Decimal = Decimal(0)
    max_discount_amount: Optional[Decimal] = None  # only caps percentage discounts
    start_date: datetime
    end_date: datetime
    usage_limit: Optional[int] = None
    usage_count: int = 0
    per_user_limit: Optional[int] = None
    is_active: bool = True
    applicable_categories: Set[int] = Field(default_factory=set)
    applicable_products: Set[int] = Field(default_factory=set)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def discount(self) -> Discount:
        if self.discount_type == DiscountType.PERCENTAGE:
            return PercentageDiscount(value=self.discount_value, cap=self.max_discount_amount)
        return FixedAmountDiscount(value=self.discount_value)

    @property
    def is_universal(self) -> bool:
        return not self.applicable_categories and not self.applicable_products

class CouponUsage(BaseModel):
    """One redemption of a coupon on a completed order"""
    usage_id: int
    coupon_id: int
    user_id: int
    order_id: int
    discount_amount: Decimal
    used_at: datetime

    model_config = ConfigDict(from_attributes=True)

class ValidationResult(BaseModel):
    """Outcome of a coupon validation"""
    valid: bool
    discount_amount: Decimal = Field(default=Decimal("0.00"), alias="discountAmount")
    message: str
    final_amount: Optional[Decimal] = Field(default=None, alias="finalAmount")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @classmethod
    def failure(cls, message: str) -> "ValidationResult":
        return cls(valid=False, message=message)

    @classmethod
    def success(cls, discount_amount: Decimal, final_amount: Decimal,
                message: str = "Coupon applied successfully") -> "ValidationResult":
        return cls(
            valid=True,
            discount_amount=discount_amount,
            final_amount=final_amount,
            message=message
        )

    def to_response(self) -> dict:
        """JSON-ready payload with camelCase keys"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

class CouponCreate(BaseModel):
    """Admin input for a new coupon"""
    code: str = Field(min_length=3, max_length=50, pattern=CODE_PATTERN)
    description: Optional[str] = Field(default=None, max_length=500)
    discount_type: DiscountType
    discount_value: Decimal = Field(ge=Decimal("0.01"))
    min_purchase_amount: Optional[Decimal] = Field(default=None, ge=Decimal(0))
    max_discount_amount: Optional[Decimal] = Field(default=None, ge=Decimal("0.01"))
    usage_limit: Optional[int] = Field(default=None, ge=1)
    per_user_limit: Optional[int] = Field(default=None, ge=1)
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    applicable_categories: Set[int] = Field(default_factory=set)
    applicable_products: Set[int] = Field(default_factory=set)

    @field_validator("start_date", "end_date")
    @classmethod
    def naive_utc_dates(cls, value: datetime) -> datetime:
        return to_naive_utc(value)

    @model_validator(mode="after")
    def check_rules(self) -> "CouponCreate":
        if self.end_date < self.start_date:
            raise ValueError("End date must be after start date")
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > MAX_PERCENTAGE:
            raise ValueError("Percentage discount cannot exceed 100%")
        return self

class CouponUpdate(BaseModel):
    """Admin input for changing a coupon; unset and null fields are left alone"""
    description: Optional[str] = Field(default=None, max_length=500)
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(default=None, ge=Decimal("0.01"))
    min_purchase_amount: Optional[Decimal] = Field(default=None, ge=Decimal(0))
    max_discount_amount: Optional[Decimal] = Field(default=None, ge=Decimal("0.01"))
    usage_limit: Optional[int] = Field(default=None, ge=1)
    per_user_limit: Optional[int] = Field(default=None, ge=1)
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    applicable_categories: Optional[Set[int]] = None
    applicable_products: Optional[Set[int]] = None

    @field_validator("end_date")
    @classmethod
    def naive_utc_end_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)
