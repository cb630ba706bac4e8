"""Shop-level configuration for the job engine."""

from pydantic import BaseModel, Field


class RepairDeskConfig(BaseModel):
    """
    Tunables for notes, notifications and listings.

    The 50% discount cap is a fixed business rule, see core.reconciliation.
    """

    shop_name: str = Field(
        default="RepairDesk",
        description="Shop name used in customer messages",
    )
    currency_symbol: str = Field(
        default="₹",
        description="Symbol prefixed to amounts in history notes and messages",
        min_length=1,
        max_length=5,
    )
    notify_on_delivery: bool = Field(
        default=True,
        description="Message the customer when a job is delivered",
    )
    notify_on_return: bool = Field(
        default=True,
        description="Message the customer when a job is returned unrepaired",
    )
    default_list_limit: int = Field(
        default=50,
        description="Page size for job listings when none is given",
        ge=1,
        le=500,
    )
