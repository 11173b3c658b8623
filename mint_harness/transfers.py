"""
Account and transfer operations.

Wraps MintClient calls into named operations with input validation,
logging, fresh idempotency keys and reuse of existing resources when the
remote API reports a duplicate.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import structlog

from .amounts import format_amount, validate_amount
from .client import MintClient
from .errors import MintAPIError, MintError, ValidationError
from .idempotency import is_uuid, new_idempotency_key
from .propagation import wait_with_settings

logger = structlog.get_logger()

PAYOUT_DESTINATION_TYPES = ("wire", "cubix", "pix", "sepa", "sepa_instant")
FIAT_CURRENCIES = ("USD", "EUR", "MXN", "SGD", "BRL")
BUSINESS_PAYOUT_STATUSES = ("pending", "complete", "failed")
PENDING_STATUSES = frozenset({"pending", "pending_verification"})

# Sandbox test account accepted by the Mint sandbox wire endpoints.
SANDBOX_ACCOUNT_NUMBER = "12340010"
SANDBOX_ROUTING_NUMBER = "121000248"


def sandbox_wire_account_body(
    idempotency_key: str,
    account_number: Optional[str] = None,
    routing_number: Optional[str] = None,
) -> dict[str, Any]:
    """Request body for a sandbox wire bank account."""
    return {
        "idempotencyKey": idempotency_key,
        "accountNumber": account_number or SANDBOX_ACCOUNT_NUMBER,
        "routingNumber": routing_number or SANDBOX_ROUTING_NUMBER,
        "billingDetails": {
            "name": "Satoshi Nakamoto",
            "city": "Boston",
            "country": "US",
            "line1": "100 Money Street",
            "line2": "Suite 1",
            "district": "MA",
            "postalCode": "01234",
        },
        "bankAddress": {
            "bankName": "SAN FRANCISCO",
            "city": "SAN FRANCISCO",
            "country": "US",
            "line1": "100 Money Street",
            "line2": "Suite 1",
            "district": "CA",
        },
    }


def response_data(response: Any) -> dict[str, Any]:
    """The `data` object of a Mint response, or {}."""
    if isinstance(response, dict) and isinstance(response.get("data"), dict):
        return response["data"]
    return {}


def response_items(response: Any) -> list[dict[str, Any]]:
    """The `data` list of a Mint list response, or []."""
    if isinstance(response, dict) and isinstance(response.get("data"), list):
        return response["data"]
    return []


def pick_by_chain(items: list[dict[str, Any]], chain: str) -> Optional[dict[str, Any]]:
    """Prefer the entry on `chain`, else the first entry, else None."""
    for item in items:
        if item.get("chain") == chain:
            return item
    return items[0] if items else None


def is_settled(response: Any) -> bool:
    """True once a resource has left its pending state."""
    return response_data(response).get("status") not in PENDING_STATUSES


@dataclass
class TransferParams:
    """A crypto payout to a raw blockchain address."""

    recipient_address: str
    chain: str
    amount: str
    currency: str = "USD"


class AccountAndTransferTester:
    """
    Balance, deposit address, payout, wire and transfer operations.
    """

    def __init__(self, client: MintClient):
        self.client = client
        self.settings = client.settings

    # ------------------------------------------------------------------
    # Balance
    # ------------------------------------------------------------------

    async def check_balance(self) -> Any:
        """Get balances and log the available total per currency."""
        balance = await self.client.get_balance()

        totals: dict[str, Decimal] = {}
        for entry in response_data(balance).get("available", []):
            try:
                amount = Decimal(str(entry.get("amount", "0")))
            except InvalidOperation:
                continue
            currency = entry.get("currency", "?")
            totals[currency] = totals.get(currency, Decimal("0")) + amount

        logger.info("balance_checked", available={k: str(v) for k, v in totals.items()})
        return balance

    # ------------------------------------------------------------------
    # Address book and crypto payouts
    # ------------------------------------------------------------------

    async def create_address_book_recipient(
        self,
        chain: str,
        address: str,
        address_tag: Optional[str] = None,
        nickname: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Any:
        metadata = {k: v for k, v in {"nickname": nickname, "email": email}.items() if v}
        recipient = await self.client.create_address_book_recipient(
            idempotency_key=new_idempotency_key(),
            chain=chain,
            address=address,
            address_tag=address_tag,
            metadata=metadata,
        )
        logger.info("address_book_recipient_created", chain=chain, id=response_data(recipient).get("id"))
        return recipient

    async def list_address_book_recipients(self) -> Any:
        return await self.client.list_address_book_recipients()

    async def delete_address_book_recipient(self, recipient_id: str) -> Any:
        result = await self.client.delete_address_book_recipient(recipient_id)
        logger.info("address_book_recipient_deleted", id=recipient_id)
        return result

    async def create_payout(self, recipient_id: str, amount: str, currency: str = "USD") -> Any:
        """
        Create a crypto payout to an address-book recipient.

        The destination must be the id of an address-book entry; raw
        blockchain addresses are rejected before any request is sent.
        """
        if not recipient_id or not is_uuid(recipient_id):
            raise ValidationError(
                f"Payout destination {recipient_id!r} is not an address-book recipient id. "
                "Add the address to the address book first and pay out to its id."
            )
        formatted = format_amount(amount)

        payout = await self.client.create_payout(
            idempotency_key=new_idempotency_key("transfer"),
            destination={"type": "address_book", "id": recipient_id},
            amount={"amount": formatted, "currency": currency},
        )
        logger.info(
            "payout_created",
            id=response_data(payout).get("id"),
            recipient_id=recipient_id,
            amount=formatted,
            currency=currency,
        )
        return payout

    async def create_transfer(self, params: TransferParams) -> Any:
        """
        Pay out to a raw address.

        Checks the balance, registers the address in the address book and
        pays out to the new address-book id.
        """
        validate_amount(params.amount)
        await self.check_balance()

        entry = await self.create_address_book_recipient(
            chain=params.chain,
            address=params.recipient_address,
            nickname=f"Transfer target {params.chain}",
        )
        recipient_id = response_data(entry).get("id")
        if not recipient_id:
            raise MintError("Failed to add address to address book")

        return await self.create_payout(recipient_id, params.amount, params.currency)

    async def get_transfer_status(self, payout_id: str) -> Any:
        payout = await self.client.get_payout(payout_id)
        logger.info("payout_status", id=payout_id, status=response_data(payout).get("status"))
        return payout

    # ------------------------------------------------------------------
    # Business payouts (fiat offramp)
    # ------------------------------------------------------------------

    async def create_business_payout(
        self,
        destination_type: str,
        destination_id: str,
        amount: str,
        currency: str = "USD",
        wallet_id: Optional[str] = None,
    ) -> Any:
        """
        Convert digital assets to fiat and send to a bank account.

        Args:
            destination_type: wire, cubix, pix, sepa or sepa_instant
            destination_id: Bank account id
            amount: Fiat amount in major units ("100" becomes "100.00")
            currency: USD, EUR, MXN, SGD or BRL
            wallet_id: Optional source wallet id
        """
        if destination_type not in PAYOUT_DESTINATION_TYPES:
            raise ValidationError(
                f"Unsupported destination type {destination_type!r}; expected one of {', '.join(PAYOUT_DESTINATION_TYPES)}"
            )
        if currency not in FIAT_CURRENCIES:
            raise ValidationError(
                f"Unsupported currency {currency!r}; expected one of {', '.join(FIAT_CURRENCIES)}"
            )
        formatted = format_amount(amount)

        payout = await self.client.create_business_payout(
            idempotency_key=new_idempotency_key("business-payout"),
            destination={"type": destination_type, "id": destination_id},
            amount={"amount": formatted, "currency": currency},
            source={"type": "wallet", "id": wallet_id} if wallet_id else None,
        )
        logger.info(
            "business_payout_created",
            id=response_data(payout).get("id"),
            destination_type=destination_type,
            amount=formatted,
            currency=currency,
        )
        return payout

    async def list_business_payouts(self, status: Optional[str] = None) -> Any:
        if status is not None and status not in BUSINESS_PAYOUT_STATUSES:
            raise ValidationError(
                f"Unsupported status filter {status!r}; expected one of {', '.join(BUSINESS_PAYOUT_STATUSES)}"
            )
        return await self.client.list_business_payouts(status)

    async def get_business_payout_status(self, payout_id: str) -> Any:
        payout = await self.client.get_business_payout(payout_id)
        logger.info("business_payout_status", id=payout_id, status=response_data(payout).get("status"))
        return payout

    # ------------------------------------------------------------------
    # Wire bank accounts
    # ------------------------------------------------------------------

    async def create_wire_bank_account(self) -> Any:
        """Create a wire bank account from sandbox test data."""
        account = await self.client.create_wire_bank_account(
            sandbox_wire_account_body(new_idempotency_key())
        )
        logger.info("wire_bank_account_created", id=response_data(account).get("id"))
        return account

    async def list_wire_bank_accounts(self) -> Any:
        return await self.client.list_wire_bank_accounts()

    async def get_wire_bank_account_instructions(self, bank_account_id: str) -> Any:
        return await self.client.get_wire_bank_account_instructions(bank_account_id)

    async def create_mock_wire_payment(self, tracking_ref: str, amount: str, account_number: str) -> Any:
        """Simulate an incoming USD wire (sandbox only)."""
        formatted = format_amount(amount)
        payment = await self.client.create_mock_wire_payment(
            tracking_ref=tracking_ref,
            amount={"amount": formatted, "currency": "USD"},
            beneficiary_account_number=account_number,
        )
        logger.info("mock_wire_created", tracking_ref=tracking_ref, amount=formatted)
        return payment

    # ------------------------------------------------------------------
    # Business transfers and recipient addresses
    # ------------------------------------------------------------------

    async def create_business_transfer(
        self,
        recipient_id: str,
        amount: str,
        currency: str = "USD",
        source_wallet_id: Optional[str] = None,
    ) -> Any:
        """Send funds on-chain to a verified recipient address."""
        formatted = format_amount(amount)
        transfer = await self.client.create_business_transfer(
            idempotency_key=new_idempotency_key(),
            destination={"type": "verified_blockchain", "addressId": recipient_id},
            amount={"amount": formatted, "currency": currency},
            source={"type": "wallet", "id": source_wallet_id} if source_wallet_id else None,
        )
        logger.info(
            "business_transfer_created",
            id=response_data(transfer).get("id"),
            recipient_id=recipient_id,
            amount=formatted,
            currency=currency,
        )
        return transfer

    async def get_business_transfer_status(self, transfer_id: str) -> Any:
        transfer = await self.client.get_business_transfer(transfer_id)
        logger.info("business_transfer_status", id=transfer_id, status=response_data(transfer).get("status"))
        return transfer

    async def create_recipient_address(
        self,
        chain: str,
        address: str,
        description: str,
        address_tag: Optional[str] = None,
    ) -> Any:
        recipient = await self.client.create_recipient_address(
            idempotency_key=new_idempotency_key(),
            chain=chain,
            address=address,
            description=description,
            currency="USD",
            address_tag=address_tag,
        )
        logger.info("recipient_address_created", chain=chain, id=response_data(recipient).get("id"))
        return recipient

    async def list_recipient_addresses(self) -> Any:
        return await self.client.list_recipient_addresses()

    async def get_recipient_address(self, recipient_id: str) -> Any:
        return await self.client.get_recipient_address(recipient_id)

    # ------------------------------------------------------------------
    # Deposit addresses
    # ------------------------------------------------------------------

    async def create_deposit_address(self, chain: str, currency: str = "USD") -> Any:
        """
        Create a deposit address, reusing an existing one on a duplicate.

        If the API reports that the address already exists, the existing
        addresses are listed and the one on `chain` (else the first) is
        returned as {"data": ...}. With nothing to reuse the original error
        propagates.
        """
        try:
            address = await self.client.create_deposit_address(
                idempotency_key=new_idempotency_key(),
                chain=chain,
                currency=currency,
            )
        except MintAPIError as e:
            if not e.is_conflict:
                raise
            existing = pick_by_chain(
                response_items(await self.client.list_business_deposit_addresses()), chain.upper()
            )
            if existing is None:
                raise
            logger.info("deposit_address_reused", chain=chain, id=existing.get("id"))
            return {"data": existing}

        logger.info("deposit_address_created", chain=chain, id=response_data(address).get("id"))
        return address

    async def get_or_create_deposit_address(self, chain: str, currency: str = "USD") -> Any:
        """Return an existing deposit address on `chain` or create one."""
        existing = response_items(await self.client.list_business_deposit_addresses())
        for item in existing:
            if item.get("chain") == chain.upper():
                logger.info("deposit_address_found", chain=chain, id=item.get("id"))
                return {"data": item}
        return await self.create_deposit_address(chain=chain, currency=currency)

    # ------------------------------------------------------------------
    # Test flow
    # ------------------------------------------------------------------

    async def run_test_flow(
        self,
        blockchain: str = "ETH",
        test_transfer: Optional[TransferParams] = None,
        auto_test: bool = False,
    ) -> dict[str, Any]:
        """
        Balance -> deposit address -> optional transfer.

        The deposit address is required; the transfer part is best-effort and
        its failures are logged without aborting the flow.
        """
        results: dict[str, Any] = {}
        results["balance"] = await self.check_balance()

        deposit_address = await self.get_or_create_deposit_address(blockchain)
        results["deposit_address"] = deposit_address
        address = response_data(deposit_address).get("address")

        if test_transfer is not None:
            try:
                results.update(await self._explicit_transfer(test_transfer))
            except MintError as e:
                logger.warning("test_transfer_failed", error=str(e))
        elif auto_test and address:
            try:
                results.update(await self._auto_transfer(blockchain, address))
            except MintError as e:
                # Recipient may be unverified or the balance too low.
                logger.warning("auto_transfer_failed", error=str(e))

        logger.info("test_flow_completed", steps=list(results))
        return results

    async def _explicit_transfer(self, params: TransferParams) -> dict[str, Any]:
        results: dict[str, Any] = {}
        transfer = await self.create_transfer(params)
        results["transfer"] = transfer
        payout_id = response_data(transfer).get("id")
        if payout_id:
            results["transfer_status"] = await wait_with_settings(
                self.settings,
                lambda: self.get_transfer_status(payout_id),
                f"payout {payout_id} to settle",
                ready=is_settled,
            )
        return results

    async def _auto_transfer(self, chain: str, address: str) -> dict[str, Any]:
        """Send 1.00 USD to a recipient address matching our own deposit address."""
        results: dict[str, Any] = {}

        recipients = response_items(await self.client.list_recipient_addresses())
        existing = next(
            (r for r in recipients if r.get("address") == address and r.get("chain") == chain),
            None,
        )
        if existing is not None:
            recipient_id = existing.get("id")
        else:
            created = await self.create_recipient_address(
                chain=chain,
                address=address,
                description=f"Auto-created for {address}",
            )
            recipient_id = response_data(created).get("id")
            if recipient_id:
                await wait_with_settings(
                    self.settings,
                    lambda: self.client.get_recipient_address(recipient_id),
                    f"recipient address {recipient_id} to become active",
                    ready=is_settled,
                )

        if not recipient_id:
            return results
        results["recipient_id"] = recipient_id

        transfer = await self.create_business_transfer(recipient_id=recipient_id, amount="1.00", currency="USD")
        results["transfer"] = transfer
        transfer_id = response_data(transfer).get("id")
        if transfer_id:
            results["transfer_status"] = await wait_with_settings(
                self.settings,
                lambda: self.get_business_transfer_status(transfer_id),
                f"business transfer {transfer_id} to settle",
                ready=is_settled,
            )
        return results
