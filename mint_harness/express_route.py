"""
Express Route flow.

An express route automatically redeems on-chain USDC to fiat and delivers it
to a linked bank account. Setting one up in the sandbox takes seven steps:

1. Link bank account      - register the fiat destination
2. Link receipt address   - create the on-chain deposit address
3. Mock deposit           - simulate a wire deposit
4. On-chain deposit       - simulate an on-chain USDC deposit
5. On-chain transfer      - send USDC to a verified recipient address
6. Withdrawal             - convert USDC to fiat and wire to the bank
7. Create express route   - bind receipt address to bank for auto-redemption
"""

from typing import Any, Optional

import structlog

from .amounts import format_amount
from .client import MintClient
from .errors import FlowError, MintAPIError
from .idempotency import new_idempotency_key
from .propagation import wait_with_settings
from .transfers import (
    SANDBOX_ACCOUNT_NUMBER,
    pick_by_chain,
    response_data,
    response_items,
    sandbox_wire_account_body,
)

logger = structlog.get_logger()

EXPRESS_ROUTE_DESTINATION_TYPES = ("wire", "sepa", "sepa_instant")


class ExpressRouteTester:
    """
    Runs the express route steps individually or end to end.
    """

    def __init__(self, client: MintClient):
        self.client = client
        self.settings = client.settings

    # Step 1

    async def link_bank_account(
        self,
        account_number: Optional[str] = None,
        routing_number: Optional[str] = None,
    ) -> Any:
        """Create a wire bank account, or reuse the first one on a duplicate."""
        body = sandbox_wire_account_body(new_idempotency_key(), account_number, routing_number)
        try:
            account = await self.client.create_wire_bank_account(body)
        except MintAPIError as e:
            if not e.is_conflict:
                raise
            existing = response_items(await self.client.list_wire_bank_accounts())
            if not existing:
                raise
            logger.info("bank_account_reused", id=existing[0].get("id"))
            return {"data": existing[0]}

        logger.info("bank_account_linked", id=response_data(account).get("id"))
        return account

    # Step 2

    async def link_receipt_address(self, chain: str = "ETH", currency: str = "USD") -> Any:
        """Create the receipt (deposit) address, or reuse one on a duplicate."""
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
            logger.info("receipt_address_reused", chain=chain, id=existing.get("id"))
            return {"data": existing}

        logger.info("receipt_address_linked", chain=chain, id=response_data(address).get("id"))
        return address

    # Step 3

    async def initiate_mock_deposit(
        self,
        tracking_ref: str,
        amount: Optional[str] = None,
        account_number: Optional[str] = None,
    ) -> Any:
        """Simulate a wire deposit. Returns None if it was already made."""
        formatted = format_amount(amount or "100.00")
        try:
            payment = await self.client.create_mock_wire_payment(
                tracking_ref=tracking_ref,
                amount={"amount": formatted, "currency": "USD"},
                beneficiary_account_number=account_number or SANDBOX_ACCOUNT_NUMBER,
            )
        except MintAPIError as e:
            if not e.is_conflict:
                raise
            logger.info("mock_deposit_already_made", tracking_ref=tracking_ref)
            return None

        logger.info("mock_deposit_created", tracking_ref=tracking_ref, amount=formatted)
        return payment

    # Step 4

    async def initiate_on_chain_deposit(
        self,
        address: str,
        chain: Optional[str] = None,
        amount: Optional[str] = None,
    ) -> Any:
        """Simulate an on-chain deposit. Remote failures are logged and yield None."""
        formatted = format_amount(amount or "10.00")
        try:
            deposit = await self.client.create_mock_blockchain_deposit(
                address=address,
                amount={"amount": formatted, "currency": "USD"},
                chain=chain or "ETH",
            )
        except MintAPIError as e:
            logger.warning("onchain_deposit_failed", address=address, error=str(e))
            return None

        logger.info("onchain_deposit_created", address=address, amount=formatted)
        return deposit

    # Step 5

    async def initiate_on_chain_transfer(
        self,
        recipient_id: str,
        amount: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> Any:
        formatted = format_amount(amount or "1.00")
        transfer = await self.client.create_business_transfer(
            idempotency_key=new_idempotency_key(),
            destination={"type": "verified_blockchain", "addressId": recipient_id},
            amount={"amount": formatted, "currency": currency or "USD"},
        )
        logger.info("onchain_transfer_created", id=response_data(transfer).get("id"), recipient_id=recipient_id)
        return transfer

    # Step 6

    async def initiate_withdrawal(
        self,
        bank_account_id: str,
        amount: Optional[str] = None,
        currency: Optional[str] = None,
        destination_type: Optional[str] = None,
    ) -> Any:
        formatted = format_amount(amount or "10.00")
        payout = await self.client.create_business_payout(
            idempotency_key=new_idempotency_key(),
            destination={"type": destination_type or "wire", "id": bank_account_id},
            amount={"amount": formatted, "currency": currency or "USD"},
        )
        logger.info("withdrawal_created", id=response_data(payout).get("id"), bank_account_id=bank_account_id)
        return payout

    # Step 7

    async def create_express_route(
        self,
        receipt_address_id: str,
        bank_account_id: str,
        destination_type: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> Any:
        """Bind a receipt address to a bank account, reusing an existing route on a duplicate."""
        try:
            route = await self.client.create_express_route(
                idempotency_key=new_idempotency_key(),
                receipt_address_id=receipt_address_id,
                destination_bank_account_id=bank_account_id,
                destination_type=destination_type or "wire",
                currency=currency or "USD",
            )
        except MintAPIError as e:
            if not e.is_conflict:
                raise
            routes = response_items(await self.client.list_express_routes())
            match = next((r for r in routes if r.get("receiptAddressId") == receipt_address_id), None)
            if match is None and routes:
                match = routes[0]
            if match is None:
                raise
            logger.info("express_route_reused", id=match.get("id"))
            return {"data": match}

        logger.info("express_route_created", id=response_data(route).get("id"))
        return route

    # Full flow

    async def run_full_flow(
        self,
        chain: Optional[str] = None,
        amount: Optional[str] = None,
        existing_bank_id: Optional[str] = None,
        existing_deposit_address_id: Optional[str] = None,
        existing_deposit_address: Optional[str] = None,
        existing_recipient_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Run all seven steps in order, feeding each step's ids into the next.

        Existing resources can be passed in to skip steps 1 and 2. Step 5 only
        runs when a verified recipient id is given.

        Raises:
            FlowError: if a required step yields no usable identifier
        """
        chain = chain or "ETH"
        steps: dict[str, Any] = {}

        bank_account_id = existing_bank_id
        if not bank_account_id:
            bank = await self.link_bank_account()
            steps["link_bank"] = bank
            bank_account_id = response_data(bank).get("id")
            if not bank_account_id:
                raise FlowError("Failed to obtain bank account ID")

        deposit_address_id = existing_deposit_address_id
        deposit_address = existing_deposit_address
        if not deposit_address_id or not deposit_address:
            receipt = await self.link_receipt_address(chain=chain)
            steps["link_receipt"] = receipt
            deposit_address_id = response_data(receipt).get("id")
            deposit_address = response_data(receipt).get("address")
            if not deposit_address:
                raise FlowError("Failed to obtain deposit address")

        instructions = await wait_with_settings(
            self.settings,
            lambda: self.client.get_wire_bank_account_instructions(bank_account_id),
            f"wire instructions for bank account {bank_account_id}",
        )
        instruction_data = response_data(instructions)
        tracking_ref = instruction_data.get("trackingRef")
        beneficiary_account_number = (instruction_data.get("beneficiaryBank") or {}).get("accountNumber")
        if not tracking_ref:
            raise FlowError("Could not retrieve tracking ref from wire instructions")
        if not beneficiary_account_number:
            raise FlowError("Could not retrieve beneficiary account number from wire instructions")

        steps["mock_deposit"] = await self.initiate_mock_deposit(
            tracking_ref=tracking_ref,
            amount=amount or "100.00",
            account_number=beneficiary_account_number,
        )

        steps["onchain_deposit"] = await self.initiate_on_chain_deposit(
            address=deposit_address,
            chain=chain,
            amount=amount or "10.00",
        )

        if existing_recipient_id:
            steps["transfer"] = await self.initiate_on_chain_transfer(
                recipient_id=existing_recipient_id,
                amount="1.00",
            )

        steps["withdraw"] = await self.initiate_withdrawal(bank_account_id=bank_account_id, amount="10.00")

        if not deposit_address_id:
            raise FlowError("Failed to obtain receipt address ID")
        steps["express_route"] = await self.create_express_route(
            receipt_address_id=deposit_address_id,
            bank_account_id=bank_account_id,
        )

        logger.info(
            "express_route_flow_completed",
            bank_account_id=bank_account_id,
            receipt_address_id=deposit_address_id,
        )
        return steps
