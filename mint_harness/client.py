"""
Async client for the Circle Mint REST API.

One method per remote operation. Every request:
- must target an HTTPS URL (checked before any I/O)
- carries `Authorization: Bearer <key>` and a JSON content type
- raises MintAPIError with status and JSON payload on a non-2xx response
- raises TransportError when no response arrives (connection error, timeout)

A few read/create operations were renamed by the provider; those try the
current endpoint first and, on a 404 only, the legacy one. If both fail the
error from the current endpoint is raised.
"""

from typing import Any, Optional

import httpx
import structlog

from .config import Settings
from .errors import ConfigurationError, InsecureTransportError, MintAPIError, TransportError

logger = structlog.get_logger()

# Returned by get_supported_chains() when /v1/config is unavailable.
DEFAULT_SUPPORTED_CHAINS: dict[str, Any] = {
    "chains": [
        {"id": "1", "name": "Ethereum"},
        {"id": "137", "name": "Polygon"},
        {"id": "8453", "name": "Base"},
        {"id": "42161", "name": "Arbitrum"},
    ],
    "currencies": ["USDC", "EURC"],
}


def _clean(params: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """Drop None values from query params / bodies."""
    if params is None:
        return None
    return {k: v for k, v in params.items() if v is not None}


class MintClient:
    """
    Async Circle Mint API client.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.request_timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Make an authenticated request and return the parsed JSON body."""
        url = f"{self.settings.base_url}{endpoint}"
        if not url.startswith("https://"):
            raise InsecureTransportError(
                "Circle APIs require HTTPS. All requests must be made over HTTPS."
            )
        if not self.settings.api_key:
            raise ConfigurationError("CIRCLE_API_KEY is not set")

        headers = {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
        }

        client = await self._get_client()
        try:
            response = await client.request(
                method,
                url,
                json=json,
                params=_clean(params),
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.warning("mint_api_unreachable", method=method, endpoint=endpoint, error=str(e))
            raise TransportError(f"Request to {endpoint} failed: {e}") from e

        if response.is_error:
            try:
                payload = response.json()
            except ValueError:
                payload = {"message": response.reason_phrase}
            logger.debug(
                "mint_api_error",
                method=method,
                endpoint=endpoint,
                status=response.status_code,
            )
            raise MintAPIError(response.status_code, payload)

        if not response.content:
            return {}
        return response.json()

    async def _request_with_fallback(
        self,
        method: str,
        endpoint: str,
        legacy_endpoint: str,
        **kwargs: Any,
    ) -> Any:
        """Call endpoint; on a 404 retry once against legacy_endpoint."""
        try:
            return await self.request(method, endpoint, **kwargs)
        except MintAPIError as error:
            if not error.is_not_found:
                raise
            logger.info("legacy_endpoint_fallback", endpoint=endpoint, legacy_endpoint=legacy_endpoint)
            try:
                return await self.request(method, legacy_endpoint, **kwargs)
            except MintAPIError as legacy_error:
                raise error from legacy_error

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------

    async def get_balance(self) -> Any:
        """Get account balances (falls back to the business account endpoint)."""
        return await self._request_with_fallback("GET", "/v1/balances", "/v1/businessAccount/balances")

    async def list_wallets(self) -> Any:
        """List wallets attached to the account."""
        return await self.request("GET", "/v1/wallets")

    async def get_configuration(self) -> Any:
        """Get account configuration."""
        return await self.request("GET", "/v1/config")

    async def get_supported_chains(self) -> Any:
        """Get supported chains and currencies, with a static default on 404."""
        try:
            return await self.get_configuration()
        except MintAPIError as e:
            if not e.is_not_found:
                raise
            return DEFAULT_SUPPORTED_CHAINS

    # ------------------------------------------------------------------
    # Deposits
    # ------------------------------------------------------------------

    async def create_deposit_address(self, idempotency_key: str, chain: str, currency: str = "USD") -> Any:
        """Create a deposit (receipt) address."""
        body = {
            "idempotencyKey": idempotency_key,
            "chain": chain.upper(),
            "currency": currency,
        }
        return await self._request_with_fallback(
            "POST",
            "/v1/businessAccount/wallets/addresses/deposit",
            "/v1/deposits/addresses",
            json=body,
        )

    async def list_business_deposit_addresses(self) -> Any:
        """List deposit addresses."""
        return await self._request_with_fallback(
            "GET",
            "/v1/businessAccount/wallets/addresses/deposit",
            "/v1/deposits/addresses",
        )

    async def list_deposits(
        self,
        blockchain: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Any:
        """List deposits."""
        params = {"blockchain": blockchain, "status": status}
        return await self._request_with_fallback("GET", "/v1/paymentIntents", "/v1/deposits", params=params)

    async def get_deposit(self, deposit_id: str) -> Any:
        """Get a deposit."""
        return await self._request_with_fallback(
            "GET", f"/v1/paymentIntents/{deposit_id}", f"/v1/deposits/{deposit_id}"
        )

    # ------------------------------------------------------------------
    # Address book and crypto payouts
    # ------------------------------------------------------------------

    async def create_address_book_recipient(
        self,
        idempotency_key: str,
        chain: str,
        address: str,
        address_tag: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Register a payout destination in the address book."""
        body = _clean(
            {
                "idempotencyKey": idempotency_key,
                "chain": chain,
                "address": address,
                "addressTag": address_tag,
                "metadata": metadata or {},
            }
        )
        return await self.request("POST", "/v1/addressBook/recipients", json=body)

    async def list_address_book_recipients(self) -> Any:
        return await self.request("GET", "/v1/addressBook/recipients")

    async def delete_address_book_recipient(self, recipient_id: str) -> Any:
        return await self.request("DELETE", f"/v1/addressBook/recipients/{recipient_id}")

    async def create_payout(
        self,
        idempotency_key: str,
        destination: dict[str, Any],
        amount: dict[str, str],
        source: Optional[dict[str, str]] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Create a crypto payout."""
        body = _clean(
            {
                "idempotencyKey": idempotency_key,
                "destination": destination,
                "amount": amount,
                "source": source,
                "metadata": metadata,
            }
        )
        return await self.request("POST", "/v1/payouts", json=body)

    async def get_payout(self, payout_id: str) -> Any:
        return await self.request("GET", f"/v1/payouts/{payout_id}")

    async def list_payouts(self, status: Optional[str] = None) -> Any:
        return await self.request("GET", "/v1/payouts", params={"status": status})

    # ------------------------------------------------------------------
    # Business payouts (fiat offramp)
    # ------------------------------------------------------------------

    async def create_business_payout(
        self,
        idempotency_key: str,
        destination: dict[str, str],
        amount: dict[str, str],
        source: Optional[dict[str, str]] = None,
    ) -> Any:
        """Convert held digital assets to fiat and send to a bank account."""
        body = _clean(
            {
                "idempotencyKey": idempotency_key,
                "destination": destination,
                "amount": amount,
                "source": source,
            }
        )
        return await self.request("POST", "/v1/businessAccount/payouts", json=body)

    async def get_business_payout(self, payout_id: str) -> Any:
        return await self.request("GET", f"/v1/businessAccount/payouts/{payout_id}")

    async def list_business_payouts(self, status: Optional[str] = None) -> Any:
        return await self.request("GET", "/v1/businessAccount/payouts", params={"status": status})

    # ------------------------------------------------------------------
    # Wire bank accounts
    # ------------------------------------------------------------------

    async def create_wire_bank_account(self, body: dict[str, Any]) -> Any:
        return await self.request("POST", "/v1/businessAccount/banks/wires", json=body)

    async def list_wire_bank_accounts(self) -> Any:
        return await self.request("GET", "/v1/businessAccount/banks/wires")

    async def get_wire_bank_account_instructions(self, bank_account_id: str) -> Any:
        """Get wire instructions (tracking ref, beneficiary bank) for an account."""
        return await self.request("GET", f"/v1/businessAccount/banks/wires/{bank_account_id}/instructions")

    # ------------------------------------------------------------------
    # Sandbox mocks
    # ------------------------------------------------------------------

    async def create_mock_wire_payment(
        self,
        tracking_ref: str,
        amount: dict[str, str],
        beneficiary_account_number: str,
    ) -> Any:
        """Simulate an incoming wire (sandbox only)."""
        body = {
            "trackingRef": tracking_ref,
            "amount": amount,
            "beneficiaryBank": {"accountNumber": beneficiary_account_number},
        }
        return await self.request("POST", "/v1/mocks/payments/wire", json=body)

    async def create_mock_blockchain_deposit(
        self,
        address: str,
        amount: dict[str, str],
        chain: str,
    ) -> Any:
        """Simulate an incoming on-chain deposit (sandbox only)."""
        body = {"address": address, "amount": amount, "chain": chain}
        return await self.request("POST", "/v1/mocks/payments/blockchain", json=body)

    # ------------------------------------------------------------------
    # Business transfers and recipient addresses
    # ------------------------------------------------------------------

    async def create_business_transfer(
        self,
        idempotency_key: str,
        destination: dict[str, str],
        amount: dict[str, str],
        source: Optional[dict[str, str]] = None,
    ) -> Any:
        body = _clean(
            {
                "idempotencyKey": idempotency_key,
                "destination": destination,
                "amount": amount,
                "source": source,
            }
        )
        return await self.request("POST", "/v1/businessAccount/transfers", json=body)

    async def get_business_transfer(self, transfer_id: str) -> Any:
        return await self.request("GET", f"/v1/businessAccount/transfers/{transfer_id}")

    async def create_recipient_address(
        self,
        idempotency_key: str,
        chain: str,
        address: str,
        description: str,
        currency: str = "USD",
        address_tag: Optional[str] = None,
    ) -> Any:
        body = _clean(
            {
                "idempotencyKey": idempotency_key,
                "chain": chain,
                "address": address,
                "currency": currency,
                "description": description,
                "addressTag": address_tag,
            }
        )
        return await self.request("POST", "/v1/businessAccount/wallets/addresses/recipient", json=body)

    async def list_recipient_addresses(self) -> Any:
        return await self.request("GET", "/v1/businessAccount/wallets/addresses/recipient")

    async def get_recipient_address(self, recipient_id: str) -> Any:
        return await self.request("GET", f"/v1/businessAccount/wallets/addresses/recipient/{recipient_id}")

    # ------------------------------------------------------------------
    # Express routes
    # ------------------------------------------------------------------

    async def create_express_route(
        self,
        idempotency_key: str,
        receipt_address_id: str,
        destination_bank_account_id: str,
        destination_type: str = "wire",
        currency: str = "USD",
    ) -> Any:
        body = {
            "idempotencyKey": idempotency_key,
            "receiptAddressId": receipt_address_id,
            "destinationBankAccountId": destination_bank_account_id,
            "destinationType": destination_type,
            "currency": currency,
        }
        return await self.request("POST", "/v1/businessAccount/expressRoutes", json=body)

    async def list_express_routes(self) -> Any:
        return await self.request("GET", "/v1/businessAccount/expressRoutes")

    # ------------------------------------------------------------------
    # Notification subscriptions
    # ------------------------------------------------------------------

    async def list_subscriptions(self) -> Any:
        return await self.request("GET", "/v1/notifications/subscriptions")

    async def create_subscription(self, endpoint: str) -> Any:
        """Subscribe a webhook endpoint to notifications."""
        return await self.request("POST", "/v1/notifications/subscriptions", json={"endpoint": endpoint})

    async def delete_subscription(self, subscription_id: str) -> Any:
        return await self.request("DELETE", f"/v1/notifications/subscriptions/{subscription_id}")
