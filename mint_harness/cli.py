"""
CLI for Mint Harness.

Every command prints the Mint API response (or flow summary) as JSON.
Running without a command executes the automatic test flow.
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, NoReturn, Optional

import typer
from dotenv import load_dotenv

from .client import MintClient
from .config import Settings, get_settings
from .diagnostics import MintDiagnostics
from .express_route import ExpressRouteTester
from .logs import configure_logging
from .transfers import AccountAndTransferTester, TransferParams

app = typer.Typer(
    name="mint-harness",
    help="Circle Mint API test harness",
    add_completion=False,
    invoke_without_command=True,
)
express_app = typer.Typer(help="Express route setup, one step at a time or end to end")
app.add_typer(express_app, name="express-route")


def main() -> None:
    """Entry point."""
    load_dotenv()
    configure_logging()
    app()


def _usage(usage: str) -> NoReturn:
    typer.echo(f"Usage: mint-harness {usage}", err=True)
    raise typer.Exit(1)


def _settings() -> Settings:
    settings = get_settings()
    if not settings.api_key:
        typer.echo("Error: CIRCLE_API_KEY environment variable is required", err=True)
        raise typer.Exit(1)
    return settings


def _run(operation: Callable[[MintClient], Awaitable[Any]]) -> None:
    """Run one operation against a fresh client and print its result."""
    settings = _settings()

    async def _inner() -> Any:
        client = MintClient(settings)
        try:
            return await operation(client)
        finally:
            await client.close()

    try:
        result = asyncio.run(_inner())
    except Exception as e:
        typer.echo(f"Fatal error: {e}", err=True)
        raise typer.Exit(1)

    if result is not None:
        typer.echo(json.dumps(result, indent=2, default=str))


def _transfers(operation: Callable[[AccountAndTransferTester], Awaitable[Any]]) -> None:
    _run(lambda client: operation(AccountAndTransferTester(client)))


def _express(operation: Callable[[ExpressRouteTester], Awaitable[Any]]) -> None:
    _run(lambda client: operation(ExpressRouteTester(client)))


async def _checks(results: Awaitable[list]) -> list[dict[str, Any]]:
    return [r.to_dict() for r in await results]


@app.callback()
def default(ctx: typer.Context) -> None:
    """
    Circle Mint API test harness.

    Without a command: balance, ETH deposit address and an automatic
    1.00 USD transfer to a recipient address matching that deposit address.
    """
    if ctx.invoked_subcommand is None:
        _transfers(lambda t: t.run_test_flow(auto_test=True))


# ============================================================================
# Account
# ============================================================================


@app.command()
def account() -> None:
    """Show account wallets."""
    _run(lambda client: client.list_wallets())


@app.command()
def balance() -> None:
    """Show balances (available and unsettled)."""
    _transfers(lambda t: t.check_balance())


@app.command()
def chains() -> None:
    """Show supported chains and currencies."""
    _run(lambda client: client.get_supported_chains())


@app.command("all")
def run_all(
    create_chain: Optional[str] = typer.Option(
        None, "--create-deposit-address", help="Also create a deposit address on this chain"
    ),
    payout_address: Optional[str] = typer.Option(
        None, "--payout-address", help="Also pay out to this address through the address book"
    ),
    payout_chain: str = typer.Option("ETH", "--payout-chain", help="Chain of --payout-address"),
    payout_amount: str = typer.Option("1.00", "--payout-amount", help="Amount for --payout-address"),
    payout_currency: str = typer.Option("USD", "--payout-currency", help="Currency for --payout-address"),
) -> None:
    """Run every read-only diagnostic check, plus optional create checks."""

    async def _all(client: MintClient) -> list[dict[str, Any]]:
        diagnostics = MintDiagnostics(client)
        results = await diagnostics.run_all()
        if create_chain:
            results.append(await diagnostics.check_create_deposit_address(create_chain))
        if payout_address:
            results.append(
                await diagnostics.check_create_payout(
                    payout_address, payout_chain, payout_amount, payout_currency
                )
            )
        return [r.to_dict() for r in results]

    _run(_all)


@app.command()
def demo() -> None:
    """Balance, recent payouts and the status of the latest payout."""
    _run(lambda client: _checks(MintDiagnostics(client).run_demo()))


# ============================================================================
# Deposits
# ============================================================================


@app.command()
def deposits(
    action: str = typer.Argument("list", help="list, get, addresses or create"),
    target: Optional[str] = typer.Argument(None, help="Deposit id for get, chain for create"),
) -> None:
    """List or show deposits, list deposit addresses, or create one."""
    if action == "list":
        _run(lambda client: client.list_deposits())
    elif action == "get":
        if not target:
            _usage("deposits get <depositId>")
        _run(lambda client: client.get_deposit(target))
    elif action == "addresses":
        _run(lambda client: client.list_business_deposit_addresses())
    elif action == "create":
        if not target:
            _usage("deposits create <chain>")
        _transfers(lambda t: t.create_deposit_address(chain=target))
    else:
        _usage("deposits [list|get <depositId>|addresses|create <chain>]")


@app.command()
def deposit_address(
    chain: str = typer.Argument("ETH", help="Blockchain"),
) -> None:
    """Get or create a deposit address on a chain."""
    _transfers(lambda t: t.get_or_create_deposit_address(chain))


@app.command()
def create_deposit_address(
    chain: Optional[str] = typer.Argument(None, help="Blockchain"),
    currency: str = typer.Argument("USD", help="Currency"),
) -> None:
    """Create a deposit address (reuses an existing one on a duplicate)."""
    if not chain:
        _usage("create-deposit-address <chain> [currency]")
    _transfers(lambda t: t.create_deposit_address(chain=chain, currency=currency))


# ============================================================================
# Crypto payouts
# ============================================================================


@app.command()
def payouts(
    action: str = typer.Argument("list", help="list or create"),
    address: Optional[str] = typer.Argument(None, help="Destination address"),
    chain: Optional[str] = typer.Argument(None, help="Blockchain"),
    amount: Optional[str] = typer.Argument(None, help="Amount"),
    currency: str = typer.Argument("USD", help="Currency"),
) -> None:
    """List payouts, or pay out to a raw address through the address book."""
    if action == "list":
        _run(lambda client: client.list_payouts())
    elif action == "create":
        if not (address and chain and amount):
            _usage("payouts create <address> <chain> <amount> [currency]")
        params = TransferParams(recipient_address=address, chain=chain, amount=amount, currency=currency)
        _transfers(lambda t: t.create_transfer(params))
    else:
        _usage("payouts [list|create <address> <chain> <amount> [currency]]")


@app.command()
def transfer(
    address: Optional[str] = typer.Argument(None, help="Destination address"),
    chain: Optional[str] = typer.Argument(None, help="Blockchain"),
    amount: Optional[str] = typer.Argument(None, help="Amount"),
    currency: str = typer.Argument("USD", help="Currency"),
) -> None:
    """Pay out to a raw address (added to the address book first)."""
    if not (address and chain and amount):
        _usage("transfer <address> <chain> <amount> [currency]")
    params = TransferParams(recipient_address=address, chain=chain, amount=amount, currency=currency)
    _transfers(lambda t: t.create_transfer(params))


@app.command()
def status(
    payout_id: Optional[str] = typer.Argument(None, help="Payout id"),
) -> None:
    """Show the status of a payout."""
    if not payout_id:
        _usage("status <payoutId>")
    _transfers(lambda t: t.get_transfer_status(payout_id))


# ============================================================================
# Business payouts (fiat)
# ============================================================================


@app.command()
def business_payout(
    destination_type: Optional[str] = typer.Argument(None, help="wire, cubix, pix, sepa or sepa_instant"),
    bank_id: Optional[str] = typer.Argument(None, help="Bank account id"),
    amount: Optional[str] = typer.Argument(None, help="Amount"),
    currency: Optional[str] = typer.Argument(None, help="USD, EUR, MXN, SGD or BRL"),
    wallet_id: Optional[str] = typer.Argument(None, help="Source wallet id"),
) -> None:
    """Convert to fiat and pay out to a bank account."""
    if not (destination_type and bank_id and amount and currency):
        _usage("business-payout <type> <bankId> <amount> <currency> [walletId]")
    _transfers(
        lambda t: t.create_business_payout(
            destination_type=destination_type,
            destination_id=bank_id,
            amount=amount,
            currency=currency,
            wallet_id=wallet_id,
        )
    )


@app.command()
def business_payouts(
    payout_status: Optional[str] = typer.Argument(None, metavar="[STATUS]", help="pending, complete or failed"),
) -> None:
    """List business payouts."""
    _transfers(lambda t: t.list_business_payouts(payout_status))


@app.command()
def business_status(
    payout_id: Optional[str] = typer.Argument(None, help="Business payout id"),
) -> None:
    """Show the status of a business payout."""
    if not payout_id:
        _usage("business-status <payoutId>")
    _transfers(lambda t: t.get_business_payout_status(payout_id))


@app.command()
def withdraw(
    bank_id: Optional[str] = typer.Argument(None, help="Wire bank account id"),
    amount: Optional[str] = typer.Argument(None, help="Amount"),
    currency: str = typer.Argument("USD", help="Currency"),
) -> None:
    """Withdraw to a wire bank account."""
    if not (bank_id and amount):
        _usage("withdraw <bankId> <amount> [currency]")
    _transfers(
        lambda t: t.create_business_payout(
            destination_type="wire", destination_id=bank_id, amount=amount, currency=currency
        )
    )


# ============================================================================
# Wire bank accounts
# ============================================================================


@app.command()
def create_wire_account() -> None:
    """Create a wire bank account from sandbox test data."""
    _transfers(lambda t: t.create_wire_bank_account())


@app.command()
def list_wire_accounts() -> None:
    """List wire bank accounts."""
    _transfers(lambda t: t.list_wire_bank_accounts())


@app.command()
def get_wire_instructions(
    bank_id: Optional[str] = typer.Argument(None, help="Wire bank account id"),
) -> None:
    """Show wire instructions (tracking ref, beneficiary bank)."""
    if not bank_id:
        _usage("get-wire-instructions <bankId>")
    _transfers(lambda t: t.get_wire_bank_account_instructions(bank_id))


@app.command()
def mock_wire(
    tracking_ref: Optional[str] = typer.Argument(None, help="Tracking reference"),
    amount: Optional[str] = typer.Argument(None, help="Amount"),
    account_number: Optional[str] = typer.Argument(None, help="Beneficiary account number"),
) -> None:
    """Simulate an incoming wire (sandbox only)."""
    if not (tracking_ref and amount and account_number):
        _usage("mock-wire <trackingRef> <amount> <accountNumber>")
    _transfers(lambda t: t.create_mock_wire_payment(tracking_ref, amount, account_number))


# ============================================================================
# Recipient addresses and business transfers
# ============================================================================


@app.command()
def create_recipient(
    chain: Optional[str] = typer.Argument(None, help="Blockchain"),
    address: Optional[str] = typer.Argument(None, help="Address"),
    description: Optional[str] = typer.Argument(None, help="Description"),
    address_tag: Optional[str] = typer.Argument(None, help="Address tag / memo"),
) -> None:
    """Register a recipient address for business transfers."""
    if not (chain and address and description):
        _usage("create-recipient <chain> <address> <description> [addressTag]")
    _transfers(
        lambda t: t.create_recipient_address(
            chain=chain, address=address, description=description, address_tag=address_tag
        )
    )


@app.command()
def list_recipients() -> None:
    """List recipient addresses."""
    _transfers(lambda t: t.list_recipient_addresses())


@app.command()
def get_recipient(
    recipient_id: Optional[str] = typer.Argument(None, help="Recipient address id"),
) -> None:
    """Show one recipient address."""
    if not recipient_id:
        _usage("get-recipient <recipientId>")
    _transfers(lambda t: t.get_recipient_address(recipient_id))


@app.command()
def business_transfer(
    recipient_id: Optional[str] = typer.Argument(None, help="Verified recipient address id"),
    amount: Optional[str] = typer.Argument(None, help="Amount"),
    currency: str = typer.Argument("USD", help="Currency"),
) -> None:
    """Send funds on-chain to a verified recipient address."""
    if not (recipient_id and amount):
        _usage("business-transfer <recipientId> <amount> [currency]")
    _transfers(lambda t: t.create_business_transfer(recipient_id=recipient_id, amount=amount, currency=currency))


# ============================================================================
# Test flow
# ============================================================================


@app.command("test")
def test_flow(
    blockchain: str = typer.Argument("ETH", help="Chain for the deposit address"),
    address: Optional[str] = typer.Argument(None, help="Optional transfer destination"),
    chain: Optional[str] = typer.Argument(None, help="Transfer chain (defaults to the first argument)"),
    amount: str = typer.Argument("1.00", help="Transfer amount"),
    currency: str = typer.Argument("USD", help="Transfer currency"),
) -> None:
    """Balance, deposit address and an optional transfer."""
    params = None
    if address:
        params = TransferParams(
            recipient_address=address, chain=chain or blockchain, amount=amount, currency=currency
        )
    _transfers(lambda t: t.run_test_flow(blockchain=blockchain, test_transfer=params))


# ============================================================================
# Express route
# ============================================================================


@express_app.command("link-bank")
def express_link_bank(
    account_number: Optional[str] = typer.Argument(None, help="Account number (sandbox default)"),
    routing_number: Optional[str] = typer.Argument(None, help="Routing number (sandbox default)"),
) -> None:
    """Step 1: link a wire bank account."""
    _express(lambda t: t.link_bank_account(account_number, routing_number))


@express_app.command("link-receipt")
def express_link_receipt(
    chain: str = typer.Argument("ETH", help="Blockchain"),
    currency: str = typer.Argument("USD", help="Currency"),
) -> None:
    """Step 2: link the receipt (deposit) address."""
    _express(lambda t: t.link_receipt_address(chain=chain, currency=currency))


@express_app.command("mock-deposit")
def express_mock_deposit(
    tracking_ref: Optional[str] = typer.Argument(None, help="Tracking reference"),
    amount: Optional[str] = typer.Argument(None, help="Amount (default 100.00)"),
    account_number: Optional[str] = typer.Argument(None, help="Beneficiary account number"),
) -> None:
    """Step 3: simulate a wire deposit."""
    if not tracking_ref:
        _usage("express-route mock-deposit <trackingRef> [amount] [accountNumber]")
    _express(lambda t: t.initiate_mock_deposit(tracking_ref, amount, account_number))


@express_app.command("onchain-deposit")
def express_onchain_deposit(
    address: Optional[str] = typer.Argument(None, help="Deposit address"),
    chain: Optional[str] = typer.Argument(None, help="Blockchain (default ETH)"),
    amount: Optional[str] = typer.Argument(None, help="Amount (default 10.00)"),
) -> None:
    """Step 4: simulate an on-chain deposit."""
    if not address:
        _usage("express-route onchain-deposit <address> [chain] [amount]")
    _express(lambda t: t.initiate_on_chain_deposit(address, chain, amount))


@express_app.command("transfer")
def express_transfer(
    recipient_id: Optional[str] = typer.Argument(None, help="Verified recipient address id"),
    amount: Optional[str] = typer.Argument(None, help="Amount (default 1.00)"),
    currency: Optional[str] = typer.Argument(None, help="Currency (default USD)"),
) -> None:
    """Step 5: on-chain transfer to a verified recipient."""
    if not recipient_id:
        _usage("express-route transfer <recipientId> [amount] [currency]")
    _express(lambda t: t.initiate_on_chain_transfer(recipient_id, amount, currency))


@express_app.command("withdraw")
def express_withdraw(
    bank_account_id: Optional[str] = typer.Argument(None, help="Bank account id"),
    amount: Optional[str] = typer.Argument(None, help="Amount (default 10.00)"),
    currency: Optional[str] = typer.Argument(None, help="Currency (default USD)"),
) -> None:
    """Step 6: withdraw to the linked bank account."""
    if not bank_account_id:
        _usage("express-route withdraw <bankAccountId> [amount] [currency]")
    _express(lambda t: t.initiate_withdrawal(bank_account_id, amount, currency))


@express_app.command("create")
def express_create(
    receipt_address_id: Optional[str] = typer.Argument(None, help="Receipt address id"),
    bank_account_id: Optional[str] = typer.Argument(None, help="Bank account id"),
    destination_type: Optional[str] = typer.Argument(None, help="wire, sepa or sepa_instant"),
    currency: Optional[str] = typer.Argument(None, help="Currency (default USD)"),
) -> None:
    """Step 7: create the express route."""
    if not (receipt_address_id and bank_account_id):
        _usage("express-route create <receiptAddressId> <bankAccountId> [destinationType] [currency]")
    _express(lambda t: t.create_express_route(receipt_address_id, bank_account_id, destination_type, currency))


@express_app.command("run")
def express_run(
    chain: Optional[str] = typer.Argument(None, help="Blockchain (default ETH)"),
    amount: Optional[str] = typer.Argument(None, help="Deposit amount"),
    bank_id: Optional[str] = typer.Argument(None, help="Existing bank account id"),
    deposit_address_id: Optional[str] = typer.Argument(None, help="Existing receipt address id"),
    deposit_address: Optional[str] = typer.Argument(None, help="Existing receipt address"),
    recipient_id: Optional[str] = typer.Argument(None, help="Verified recipient id (enables step 5)"),
) -> None:
    """Run all seven steps."""
    _express(
        lambda t: t.run_full_flow(
            chain=chain,
            amount=amount,
            existing_bank_id=bank_id,
            existing_deposit_address_id=deposit_address_id,
            existing_deposit_address=deposit_address,
            existing_recipient_id=recipient_id,
        )
    )


if __name__ == "__main__":
    main()
