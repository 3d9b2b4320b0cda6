"""
Broker-agnostic order intent.

A CanonicalOrder is what a user means ("buy 100 of IRO1FOLD0001 at 5,420,
valid today"); adapters translate it into each broker's wire format.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class OrderSide(str, Enum):
    """Trade direction."""

    BUY = "buy"
    SELL = "sell"


class OrderValidity(str, Enum):
    """How long an order stays on the book."""

    DAY = "day"
    GOOD_TILL_DATE = "good_till_date"
    FILL_AND_KILL = "fill_and_kill"


class CanonicalOrder(BaseModel):
    """Trade intent independent of any broker.

    Prices and quantities are integers: the exchange quotes in whole rials
    and whole shares.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    side: OrderSide
    price: int = Field(..., gt=0, description="Limit price in rials")
    quantity: int = Field(..., gt=0, description="Number of shares")
    instrument_id: str = Field(..., min_length=1, description="Instrument ISIN, e.g. IRO1FOLD0001")
    validity: OrderValidity = OrderValidity.DAY
    validity_date: str | None = Field(
        None, description="Expiry date for good-till-date orders (broker date format)"
    )
    account_id: int | None = Field(
        None, description="Bank account id; required by brokers that settle per account"
    )
