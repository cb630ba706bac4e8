"""Customer aggregate, derived by grouping jobs by phone number.

There is no customer table: a customer is whoever brought in jobs under a
given phone number.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class CustomerSummary(BaseModel):
    """Per-phone totals across a customer's jobs."""

    phone: str
    name: str
    total_jobs: int
    total_spent: Decimal
    pending_amount: Decimal
    last_visit: datetime
