"""
Read-only smoke checks against the Mint API.

Each check logs its outcome and never raises on remote errors, so `run_all`
reports every endpoint the account can and cannot reach.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import structlog

from .client import MintClient
from .errors import MintError
from .transfers import AccountAndTransferTester, TransferParams, response_items

logger = structlog.get_logger()

DEPOSITS_HINT = (
    "Crypto Deposits API may require account setup or additional configuration. "
    "See https://developers.circle.com/circle-mint/crypto-payments-quickstart"
)


@dataclass
class CheckResult:
    """Outcome of one diagnostic check."""

    name: str
    ok: bool
    data: Any = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "ok": self.ok, "data": self.data, "error": self.error}


class MintDiagnostics:
    def __init__(self, client: MintClient):
        self.client = client
        self.transfers = AccountAndTransferTester(client)

    async def _check(
        self,
        name: str,
        call: Callable[[], Awaitable[Any]],
        hint: Optional[str] = None,
    ) -> CheckResult:
        try:
            data = await call()
        except MintError as e:
            logger.error("check_failed", check=name, error=str(e))
            if hint:
                logger.info("check_hint", check=name, hint=hint)
            return CheckResult(name=name, ok=False, error=str(e))
        logger.info("check_passed", check=name)
        return CheckResult(name=name, ok=True, data=data)

    async def check_account(self) -> CheckResult:
        """The Accounts API was removed; the balance endpoint stands in for it."""
        return await self._check(
            "account",
            self.client.get_balance,
            hint="The Accounts API was removed. Use business account endpoints instead.",
        )

    async def check_balance(self) -> CheckResult:
        return await self._check("balance", self.client.get_balance)

    async def check_supported_chains(self) -> CheckResult:
        return await self._check("chains", self.client.get_supported_chains)

    async def check_deposit_addresses(self) -> CheckResult:
        return await self._check(
            "deposit_addresses", self.client.list_business_deposit_addresses, hint=DEPOSITS_HINT
        )

    async def check_create_deposit_address(self, chain: str = "ETH") -> CheckResult:
        return await self._check(
            f"create_deposit_address[{chain}]",
            lambda: self.transfers.create_deposit_address(chain=chain),
            hint=DEPOSITS_HINT,
        )

    async def check_deposits(self) -> CheckResult:
        return await self._check("deposits", self.client.list_deposits, hint=DEPOSITS_HINT)

    async def check_payouts(self) -> CheckResult:
        return await self._check("payouts", self.client.list_payouts)

    async def check_create_payout(self, address: str, chain: str, amount: str, currency: str = "USD") -> CheckResult:
        """Pay out to a raw address through the address book."""
        params = TransferParams(recipient_address=address, chain=chain, amount=amount, currency=currency)
        return await self._check("create_payout", lambda: self.transfers.create_transfer(params))

    async def run_all(self) -> list[CheckResult]:
        """Run every read-only check in sequence."""
        logger.info("diagnostics_started")
        results = [
            await self.check_account(),
            await self.check_balance(),
            await self.check_supported_chains(),
            await self.check_deposit_addresses(),
            await self.check_deposits(),
            await self.check_payouts(),
        ]
        passed = sum(1 for r in results if r.ok)
        logger.info("diagnostics_completed", passed=passed, total=len(results))
        return results

    async def run_demo(self) -> list[CheckResult]:
        """Balance, recent payouts, and the status of the most recent payout."""
        results = [await self.check_balance()]
        payouts = await self.check_payouts()
        results.append(payouts)

        items = response_items(payouts.data) if payouts.ok else []
        if items and items[0].get("id"):
            payout_id = items[0]["id"]
            results.append(
                await self._check(f"payout_status[{payout_id}]", lambda: self.client.get_payout(payout_id))
            )
        else:
            logger.info("no_payouts_to_check")
        return results
