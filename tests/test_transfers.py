"""
Tests for account and transfer operations.
"""

import pytest

from mint_harness.errors import MintAPIError, TransportError, ValidationError
from mint_harness.transfers import AccountAndTransferTester, TransferParams, pick_by_chain

RECIPIENT_ID = "2d0d2f6a-6c4a-4b8b-9d2e-0c6f7b7f1a11"
RAW_ADDRESS = "0x71C7656EC7ab88b098defB751B7401B5f6d8976F"

DEPOSIT_PATH = "/v1/businessAccount/wallets/addresses/deposit"


@pytest.fixture
def tester(mint_client):
    return AccountAndTransferTester(mint_client)


class TestPayouts:
    @pytest.mark.asyncio
    async def test_raw_address_destination_fails_fast(self, tester, fake_mint):
        with pytest.raises(ValidationError, match="address-book"):
            await tester.create_payout(RAW_ADDRESS, "1")

        assert fake_mint.calls == []

    @pytest.mark.asyncio
    async def test_payout_body_uses_address_book_and_formatted_amount(self, tester, fake_mint):
        fake_mint.add("POST", "/v1/payouts", 201, {"data": {"id": "p1", "status": "pending"}})

        await tester.create_payout(RECIPIENT_ID, "1")

        body = fake_mint.bodies("POST", "/v1/payouts")[0]
        assert body["destination"] == {"type": "address_book", "id": RECIPIENT_ID}
        assert body["amount"] == {"amount": "1.00", "currency": "USD"}
        assert body["idempotencyKey"].startswith("transfer-")

    @pytest.mark.asyncio
    async def test_each_payout_gets_a_fresh_key(self, tester, fake_mint):
        fake_mint.add("POST", "/v1/payouts", 201, {"data": {"id": "p1"}})

        await tester.create_payout(RECIPIENT_ID, "1")
        await tester.create_payout(RECIPIENT_ID, "1")

        keys = [b["idempotencyKey"] for b in fake_mint.bodies("POST", "/v1/payouts")]
        assert len(set(keys)) == 2

    @pytest.mark.asyncio
    async def test_transfer_registers_address_then_pays_out(self, tester, fake_mint):
        fake_mint.add("GET", "/v1/balances", payload={"data": {"available": [{"amount": "5", "currency": "USD"}]}})
        fake_mint.add("POST", "/v1/addressBook/recipients", 201, {"data": {"id": RECIPIENT_ID}})
        fake_mint.add("POST", "/v1/payouts", 201, {"data": {"id": "p1"}})

        params = TransferParams(recipient_address=RAW_ADDRESS, chain="ETH", amount="2.5")
        result = await tester.create_transfer(params)

        assert result == {"data": {"id": "p1"}}
        assert fake_mint.paths == [
            ("GET", "/v1/balances"),
            ("POST", "/v1/addressBook/recipients"),
            ("POST", "/v1/payouts"),
        ]
        entry = fake_mint.bodies("POST", "/v1/addressBook/recipients")[0]
        assert entry["address"] == RAW_ADDRESS
        assert fake_mint.bodies("POST", "/v1/payouts")[0]["amount"]["amount"] == "2.50"

    @pytest.mark.asyncio
    async def test_transfer_rejects_bad_amount_before_io(self, tester, fake_mint):
        params = TransferParams(recipient_address=RAW_ADDRESS, chain="ETH", amount="one")

        with pytest.raises(ValidationError):
            await tester.create_transfer(params)
        assert fake_mint.calls == []


class TestBusinessPayouts:
    @pytest.mark.asyncio
    async def test_unsupported_destination_type(self, tester, fake_mint):
        with pytest.raises(ValidationError, match="destination type"):
            await tester.create_business_payout("ach", "bank-1", "10")
        assert fake_mint.calls == []

    @pytest.mark.asyncio
    async def test_unsupported_currency(self, tester, fake_mint):
        with pytest.raises(ValidationError, match="currency"):
            await tester.create_business_payout("wire", "bank-1", "10", currency="JPY")
        assert fake_mint.calls == []

    @pytest.mark.asyncio
    async def test_wire_payout_body(self, tester, fake_mint):
        fake_mint.add("POST", "/v1/businessAccount/payouts", 201, {"data": {"id": "bp1"}})

        await tester.create_business_payout("wire", "bank-1", "10", currency="EUR", wallet_id="w1")

        body = fake_mint.bodies("POST", "/v1/businessAccount/payouts")[0]
        assert body["destination"] == {"type": "wire", "id": "bank-1"}
        assert body["amount"] == {"amount": "10.00", "currency": "EUR"}
        assert body["source"] == {"type": "wallet", "id": "w1"}
        assert body["idempotencyKey"].startswith("business-payout-")

    @pytest.mark.asyncio
    async def test_status_filter_validated(self, tester, fake_mint):
        with pytest.raises(ValidationError):
            await tester.list_business_payouts("settled")
        assert fake_mint.calls == []


class TestDepositAddresses:
    @pytest.mark.asyncio
    async def test_duplicate_returns_existing_address_on_chain(self, tester, fake_mint):
        fake_mint.add("POST", DEPOSIT_PATH, 409, {"code": 2023, "message": "Address already exists"})
        fake_mint.add(
            "GET",
            DEPOSIT_PATH,
            payload={
                "data": [
                    {"id": "a-sol", "chain": "SOL", "address": "sol-address"},
                    {"id": "a-eth", "chain": "ETH", "address": "0xeth"},
                ]
            },
        )

        result = await tester.create_deposit_address("eth")

        assert result == {"data": {"id": "a-eth", "chain": "ETH", "address": "0xeth"}}

    @pytest.mark.asyncio
    async def test_duplicate_without_existing_reraises(self, tester, fake_mint):
        fake_mint.add("POST", DEPOSIT_PATH, 409, {"code": 2023, "message": "Address already exists"})
        fake_mint.add("GET", DEPOSIT_PATH, payload={"data": []})

        with pytest.raises(MintAPIError) as exc_info:
            await tester.create_deposit_address("ETH")
        assert exc_info.value.is_conflict

    @pytest.mark.asyncio
    async def test_other_errors_are_not_swallowed(self, tester, fake_mint):
        fake_mint.add("POST", DEPOSIT_PATH, 400, {"code": 2, "message": "Invalid chain"})

        with pytest.raises(MintAPIError):
            await tester.create_deposit_address("XYZ")
        assert ("GET", DEPOSIT_PATH) not in fake_mint.paths

    @pytest.mark.asyncio
    async def test_get_or_create_prefers_existing(self, tester, fake_mint):
        fake_mint.add("GET", DEPOSIT_PATH, payload={"data": [{"id": "a-eth", "chain": "ETH"}]})

        result = await tester.get_or_create_deposit_address("ETH")

        assert result == {"data": {"id": "a-eth", "chain": "ETH"}}
        assert ("POST", DEPOSIT_PATH) not in fake_mint.paths

    @pytest.mark.asyncio
    async def test_get_or_create_matches_lowercase_chain(self, tester, fake_mint):
        fake_mint.add(
            "GET",
            DEPOSIT_PATH,
            payload={"data": [{"id": "a-sol", "chain": "SOL"}, {"id": "a-eth", "chain": "ETH"}]},
        )

        result = await tester.get_or_create_deposit_address("eth")

        assert result == {"data": {"id": "a-eth", "chain": "ETH"}}
        assert ("POST", DEPOSIT_PATH) not in fake_mint.paths

    @pytest.mark.asyncio
    async def test_second_create_returns_first_address(self, tester, fake_mint):
        created = {"id": "a-first", "chain": "ETH", "address": "0xfirst"}
        fake_mint.add("POST", DEPOSIT_PATH, 201, {"data": created})
        fake_mint.add("POST", DEPOSIT_PATH, 409, {"code": 2023, "message": "Address already exists"})
        fake_mint.add("GET", DEPOSIT_PATH, payload={"data": [created]})

        first = await tester.create_deposit_address("ETH")
        second = await tester.create_deposit_address("ETH")

        assert second["data"]["id"] == first["data"]["id"]
        assert len(fake_mint.bodies("POST", DEPOSIT_PATH)) == 2


class TestTestFlow:
    @pytest.mark.asyncio
    async def test_failed_transfer_does_not_abort_flow(self, tester, fake_mint):
        fake_mint.add("GET", "/v1/balances", payload={"data": {"available": []}})
        fake_mint.add("GET", DEPOSIT_PATH, payload={"data": [{"id": "a-eth", "chain": "ETH", "address": "0xeth"}]})
        fake_mint.add("POST", "/v1/addressBook/recipients", 400, {"code": 2, "message": "Invalid address"})

        params = TransferParams(recipient_address=RAW_ADDRESS, chain="ETH", amount="1")
        results = await tester.run_test_flow("ETH", test_transfer=params)

        assert set(results) == {"balance", "deposit_address"}
        assert results["deposit_address"]["data"]["address"] == "0xeth"

    @pytest.mark.asyncio
    async def test_auto_transfer_reuses_matching_recipient(self, tester, fake_mint):
        fake_mint.add("GET", "/v1/balances", payload={"data": {"available": []}})
        fake_mint.add("GET", DEPOSIT_PATH, payload={"data": [{"id": "a-eth", "chain": "ETH", "address": "0xeth"}]})
        fake_mint.add(
            "GET",
            "/v1/businessAccount/wallets/addresses/recipient",
            payload={"data": [{"id": "r1", "chain": "ETH", "address": "0xeth", "status": "active"}]},
        )
        fake_mint.add("POST", "/v1/businessAccount/transfers", 201, {"data": {"id": "t1", "status": "pending"}})
        fake_mint.add("GET", "/v1/businessAccount/transfers/t1", payload={"data": {"id": "t1", "status": "complete"}})

        results = await tester.run_test_flow("ETH", auto_test=True)

        assert results["recipient_id"] == "r1"
        assert results["transfer_status"]["data"]["status"] == "complete"
        body = fake_mint.bodies("POST", "/v1/businessAccount/transfers")[0]
        assert body["destination"] == {"type": "verified_blockchain", "addressId": "r1"}
        assert body["amount"] == {"amount": "1.00", "currency": "USD"}

    @pytest.mark.asyncio
    async def test_unreachable_transfer_step_does_not_abort_flow(self, tester, fake_mint):
        fake_mint.add("GET", "/v1/balances", payload={"data": {"available": []}})
        fake_mint.add("GET", DEPOSIT_PATH, payload={"data": [{"id": "a-eth", "chain": "ETH", "address": "0xeth"}]})
        fake_mint.disconnect("/v1/businessAccount/wallets/addresses/recipient")

        results = await tester.run_test_flow("ETH", auto_test=True)

        assert set(results) == {"balance", "deposit_address"}

    @pytest.mark.asyncio
    async def test_unreachable_balance_aborts_flow(self, tester, fake_mint):
        fake_mint.disconnect("/v1/balances")

        with pytest.raises(TransportError):
            await tester.run_test_flow("ETH")
        assert ("GET", DEPOSIT_PATH) not in fake_mint.paths

def test_pick_by_chain_falls_back_to_first():
    items = [{"id": "a", "chain": "SOL"}, {"id": "b", "chain": "AVAX"}]
    assert pick_by_chain(items, "ETH") == {"id": "a", "chain": "SOL"}
    assert pick_by_chain(items, "AVAX") == {"id": "b", "chain": "AVAX"}
    assert pick_by_chain([], "ETH") is None
