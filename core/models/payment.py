"""Payment collection request models."""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class PaymentType(str, Enum):
    """How the outstanding balance is settled."""

    FULL = "full"
    DISCOUNT = "discount"


class BreakdownItem(BaseModel):
    """A labeled amount itemizing what a payment covers."""

    description: str = Field("", max_length=200)
    amount: Decimal | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def blank_amount_is_none(cls, value):
        """Empty form inputs mean 'no amount'."""
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def is_empty(self) -> bool:
        """Both description and amount left blank."""
        return not self.description.strip() and self.amount is None


class PaymentRequest(BaseModel):
    """Collect the outstanding balance and deliver the device."""

    type: PaymentType = PaymentType.FULL
    discount_amount: Decimal | None = None
    mode: str = Field("Cash", min_length=1, max_length=50)
    breakdown: list[BreakdownItem] = Field(default_factory=list)
    warranty: str | None = Field(None, max_length=1000)

    @field_validator("discount_amount", mode="before")
    @classmethod
    def blank_discount_is_none(cls, value):
        """Empty discount input means no discount was entered."""
        if isinstance(value, str) and not value.strip():
            return None
        return value
