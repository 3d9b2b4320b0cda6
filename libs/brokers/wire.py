"""
Broker-native order payloads.

Each model reproduces one broker's request body exactly: field names
(via aliases), JSON types and field order. Config files may carry these
payloads directly; they are validated here at session construction so a
malformed entry fails before any request is sent.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _WirePayload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Dump with broker field names, preserving declaration order."""
        return self.model_dump(mode="json", by_alias=True)


class MofidOrderPayload(_WirePayload):
    """Mofid Online (Titan) order body."""

    order_side: str = Field(alias="orderSide")
    price: int
    quantity: int
    symbol_isin: str = Field(alias="symbolIsin")
    validity_type: int = Field(alias="validityType")
    validity_date: str | None = Field(None, alias="validityDate")
    order_from: str = Field(alias="orderFrom")


class StandardOrderPayload(_WirePayload):
    """Order body of the "online" platform shared by BMI and Ordibehesht."""

    is_symbol_caution_agreement: bool = Field(alias="IsSymbolCautionAgreement")
    caution_agreement_selected: bool = Field(alias="CautionAgreementSelected")
    is_symbol_sepah_agreement: bool = Field(alias="IsSymbolSepahAgreement")
    sepah_agreement_selected: bool = Field(alias="SepahAgreementSelected")
    order_count: int = Field(alias="orderCount")
    order_price: int = Field(alias="orderPrice")
    financial_provider_id: int = Field(alias="FinancialProviderId")
    minimum_quantity: int = Field(alias="minimumQuantity")
    max_show: int = Field(alias="maxShow")
    order_id: int = Field(alias="orderId")
    isin: str
    order_side: int = Field(alias="orderSide")
    order_validity: int = Field(alias="orderValidity")
    order_validity_date: str | None = Field(None, alias="orderValiditydate")
    short_sell_is_enabled: bool = Field(alias="shortSellIsEnabled")
    short_sell_incentive_percent: int = Field(alias="shortSellIncentivePercent")


class DanayanOrderPayload(_WirePayload):
    """Danayan TSE OMS RegisterOrder body."""

    order_validity_type: int = Field(alias="orderValidityType")
    order_payment_gateway: int = Field(alias="orderPaymentGateway")
    price: int
    quantity: int
    disclosed_quantity: int | None = Field(None, alias="disclosedQuantity")
    isin: str
    order_side: int = Field(alias="orderSide")


class ExirOrderPayload(_WirePayload):
    """Exir platform order body (Alvand)."""

    ins_max_lcode: str = Field(alias="insMaxLcode")
    bank_account_id: int = Field(alias="bankAccountId")
    side: str
    order_type: str = Field(alias="orderType")
    quantity: int
    price: int
    validity_type: str = Field(alias="validityType")
    validity_date: str = Field(alias="validityDate")
    core_type: str = Field(alias="coreType")
    has_under_caution_agreement: bool = Field(alias="hasUnderCautionAgreement")
    divided_order: bool = Field(alias="dividedOrder")


class BidarOrderPayload(_WirePayload):
    """Bidar Trader order body; numbers travel as strings."""

    order_type: str = Field(alias="type")
    quantity: str
    isin: str
    validity: str
    price: str


WirePayload = (
    MofidOrderPayload
    | StandardOrderPayload
    | DanayanOrderPayload
    | ExirOrderPayload
    | BidarOrderPayload
)
