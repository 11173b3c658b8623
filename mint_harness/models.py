"""
Pydantic models for dashboard requests and responses.

Request bodies use the camelCase keys the dashboard UI sends
(`recipientId`, `trackingRef`, ...); snake_case names are accepted too.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Responses
# ============================================================================

class RunResult(BaseModel):
    """Result of one dashboard operation."""

    logs: list[str] = Field(default_factory=list, description="Log lines emitted while running")
    data: Any = Field(None, description="Mint API response or flow summary")
    error: Optional[str] = Field(None, description="Error message if failed")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Harness version")
    environment: str = Field(..., description="Mint environment (sandbox/production)")
    base_url: str = Field(..., description="Mint API base URL")
    api_key_configured: bool = Field(..., description="Whether CIRCLE_API_KEY is set")
    listeners: int = Field(..., description="Connected live-event listeners")


# ============================================================================
# Deposits and payouts
# ============================================================================

class CreateDepositAddressRequest(CamelModel):
    chain: str = Field(..., description="Blockchain (ETH, MATIC, AVAX, ...)")
    currency: str = Field("USD", description="Currency")


class CreateAddressBookRecipientRequest(CamelModel):
    chain: str = Field(..., description="Blockchain of the destination")
    address: str = Field(..., description="Destination blockchain address")
    address_tag: Optional[str] = Field(None, description="Memo/tag for chains that need one")
    nickname: Optional[str] = None
    email: Optional[str] = None


class CreatePayoutRequest(CamelModel):
    recipient_id: str = Field(..., description="Address-book recipient id")
    amount: str = Field(..., description='Amount in major units ("1" is sent as "1.00")')
    currency: str = Field("USD")


class WirePayoutRequest(CamelModel):
    bank_id: str = Field(..., description="Wire bank account id")
    amount: str
    currency: str = Field("USD")


class MockWireRequest(CamelModel):
    tracking_ref: str
    amount: str = Field("100.00")
    account_number: str


# ============================================================================
# Recipients and transfers
# ============================================================================

class CreateRecipientRequest(CamelModel):
    chain: str
    address: str
    description: str
    address_tag: Optional[str] = None


class BusinessTransferRequest(CamelModel):
    recipient_id: str
    amount: str = Field("1.00")
    currency: str = Field("USD")


# ============================================================================
# Express route
# ============================================================================

class LinkBankRequest(CamelModel):
    account_number: Optional[str] = None
    routing_number: Optional[str] = None


class LinkReceiptRequest(CamelModel):
    chain: str = Field("ETH")
    currency: str = Field("USD")


class MockDepositRequest(CamelModel):
    tracking_ref: str
    amount: Optional[str] = None
    account_number: Optional[str] = None


class OnChainDepositRequest(CamelModel):
    address: str
    chain: Optional[str] = None
    amount: Optional[str] = None


class OnChainTransferRequest(CamelModel):
    recipient_id: str
    amount: Optional[str] = None
    currency: Optional[str] = None


class WithdrawRequest(CamelModel):
    bank_account_id: str
    amount: Optional[str] = None
    currency: Optional[str] = None


class CreateExpressRouteRequest(CamelModel):
    receipt_address_id: str
    bank_account_id: str
    destination_type: Optional[str] = None
    currency: Optional[str] = None


class RunFlowRequest(CamelModel):
    chain: Optional[str] = None
    amount: Optional[str] = None


# ============================================================================
# Notifications
# ============================================================================

class CreateSubscriptionRequest(CamelModel):
    endpoint: str = Field(..., description="Public HTTPS URL that receives notifications")
