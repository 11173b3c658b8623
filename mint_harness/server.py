"""
Mint Harness dashboard - HTTP front end for the testers.

Provides:
- REST endpoints under /api/... mirroring the CLI operations ({logs, data, error?})
- A live event stream (GET /api/events, server-sent events)
- A webhook receiver (HEAD/POST /webhooks) that republishes notifications
- Health checks (GET /health)
"""

import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncGenerator, Awaitable, Callable, Optional

import structlog
import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse
from fastapi.staticfiles import StaticFiles

from . import __version__
from .client import MintClient
from .config import Settings, get_settings
from .errors import MintError
from .events import EventBroadcaster
from .express_route import ExpressRouteTester
from .logs import capture_logs, configure_logging
from .models import (
    BusinessTransferRequest,
    CreateAddressBookRecipientRequest,
    CreateDepositAddressRequest,
    CreateExpressRouteRequest,
    CreatePayoutRequest,
    CreateRecipientRequest,
    CreateSubscriptionRequest,
    HealthResponse,
    LinkBankRequest,
    LinkReceiptRequest,
    MockDepositRequest,
    MockWireRequest,
    OnChainDepositRequest,
    OnChainTransferRequest,
    RunFlowRequest,
    RunResult,
    WirePayoutRequest,
    WithdrawRequest,
)
from .transfers import AccountAndTransferTester

logger = structlog.get_logger()

router = APIRouter()


# ============================================================================
# Dependencies
# ============================================================================


def get_client(request: Request) -> MintClient:
    return request.app.state.client


def get_transfers(request: Request) -> AccountAndTransferTester:
    return request.app.state.transfers


def get_express_route(request: Request) -> ExpressRouteTester:
    return request.app.state.express_route


def get_events(request: Request) -> EventBroadcaster:
    return request.app.state.events


async def run(fn: Callable[[], Awaitable[Any]]) -> Any:
    """
    Run one operation and collect the log lines it emits.

    Harness errors become a 400 with the same {logs, data, error} body;
    anything else propagates to the 500 handler.
    """
    with capture_logs() as logs:
        try:
            data = await fn()
        except MintError as e:
            logger.error("operation_failed", error=str(e))
            result = RunResult(logs=list(logs), data=None, error=str(e))
            return JSONResponse(status_code=400, content=result.model_dump())
    return RunResult(logs=list(logs), data=data)


# ============================================================================
# Health Check
# ============================================================================


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    settings: Settings = request.app.state.settings
    events: EventBroadcaster = request.app.state.events
    return HealthResponse(
        status="ok" if settings.api_key else "degraded",
        version=__version__,
        environment=settings.environment,
        base_url=settings.base_url,
        api_key_configured=bool(settings.api_key),
        listeners=events.listener_count,
    )


# ============================================================================
# Live events and webhooks
# ============================================================================


@router.get("/api/events")
async def live_events(events: EventBroadcaster = Depends(get_events)) -> StreamingResponse:
    return StreamingResponse(
        events.stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.head("/webhooks")
async def webhook_head() -> Response:
    """The Mint API sends HEAD to verify the endpoint is reachable."""
    return Response(status_code=200)


@router.post("/webhooks")
async def webhook_receive(request: Request, events: EventBroadcaster = Depends(get_events)) -> Response:
    raw = await request.body()
    try:
        payload: Any = json.loads(raw) if raw else None
    except ValueError:
        payload = raw.decode("utf-8", errors="replace")

    reached = events.publish(
        "notification",
        {"timestamp": datetime.now(timezone.utc).isoformat(), "payload": payload},
    )
    logger.info("webhook_received", listeners=reached)
    return Response(status_code=200)


# ============================================================================
# Overview
# ============================================================================


@router.get("/api/account")
async def account(client: MintClient = Depends(get_client)) -> Any:
    return await run(client.list_wallets)


@router.get("/api/balance")
async def balance(client: MintClient = Depends(get_client)) -> Any:
    return await run(client.get_balance)


@router.get("/api/chains")
async def chains(client: MintClient = Depends(get_client)) -> Any:
    return await run(client.get_supported_chains)


# ============================================================================
# Deposits
# ============================================================================


@router.get("/api/deposits")
async def list_deposits(client: MintClient = Depends(get_client)) -> Any:
    return await run(client.list_deposits)


@router.get("/api/deposits/addresses")
async def list_deposit_addresses(client: MintClient = Depends(get_client)) -> Any:
    return await run(client.list_business_deposit_addresses)


@router.post("/api/deposits/addresses")
async def create_deposit_address(
    request: CreateDepositAddressRequest,
    transfers: AccountAndTransferTester = Depends(get_transfers),
) -> Any:
    return await run(lambda: transfers.create_deposit_address(chain=request.chain, currency=request.currency))


# ============================================================================
# Address book and payouts
# ============================================================================


@router.get("/api/payouts/address-book")
async def list_address_book(transfers: AccountAndTransferTester = Depends(get_transfers)) -> Any:
    return await run(transfers.list_address_book_recipients)


@router.post("/api/payouts/address-book")
async def create_address_book_recipient(
    request: CreateAddressBookRecipientRequest,
    transfers: AccountAndTransferTester = Depends(get_transfers),
) -> Any:
    return await run(
        lambda: transfers.create_address_book_recipient(
            chain=request.chain,
            address=request.address,
            address_tag=request.address_tag,
            nickname=request.nickname,
            email=request.email,
        )
    )


@router.delete("/api/payouts/address-book/{recipient_id}")
async def delete_address_book_recipient(
    recipient_id: str,
    transfers: AccountAndTransferTester = Depends(get_transfers),
) -> Any:
    return await run(lambda: transfers.delete_address_book_recipient(recipient_id))


@router.get("/api/payouts")
async def list_payouts(client: MintClient = Depends(get_client)) -> Any:
    return await run(client.list_payouts)


@router.post("/api/payouts")
async def create_payout(
    request: CreatePayoutRequest,
    transfers: AccountAndTransferTester = Depends(get_transfers),
) -> Any:
    return await run(
        lambda: transfers.create_payout(request.recipient_id, request.amount, request.currency)
    )


@router.post("/api/payouts/wire")
async def wire_payout(
    request: WirePayoutRequest,
    transfers: AccountAndTransferTester = Depends(get_transfers),
) -> Any:
    return await run(
        lambda: transfers.create_business_payout(
            destination_type="wire",
            destination_id=request.bank_id,
            amount=request.amount,
            currency=request.currency,
        )
    )


# ============================================================================
# Wire bank accounts
# ============================================================================


@router.get("/api/banks/wires")
async def list_wire_accounts(transfers: AccountAndTransferTester = Depends(get_transfers)) -> Any:
    return await run(transfers.list_wire_bank_accounts)


@router.post("/api/banks/wires")
async def create_wire_account(transfers: AccountAndTransferTester = Depends(get_transfers)) -> Any:
    return await run(transfers.create_wire_bank_account)


@router.get("/api/banks/wires/{bank_account_id}/instructions")
async def wire_instructions(
    bank_account_id: str,
    transfers: AccountAndTransferTester = Depends(get_transfers),
) -> Any:
    return await run(lambda: transfers.get_wire_bank_account_instructions(bank_account_id))


@router.post("/api/mocks/wire")
async def mock_wire(
    request: MockWireRequest,
    transfers: AccountAndTransferTester = Depends(get_transfers),
) -> Any:
    return await run(
        lambda: transfers.create_mock_wire_payment(
            tracking_ref=request.tracking_ref,
            amount=request.amount,
            account_number=request.account_number,
        )
    )


# ============================================================================
# Recipients and transfers
# ============================================================================


@router.get("/api/recipients")
async def list_recipients(transfers: AccountAndTransferTester = Depends(get_transfers)) -> Any:
    return await run(transfers.list_recipient_addresses)


@router.post("/api/recipients")
async def create_recipient(
    request: CreateRecipientRequest,
    transfers: AccountAndTransferTester = Depends(get_transfers),
) -> Any:
    return await run(
        lambda: transfers.create_recipient_address(
            chain=request.chain,
            address=request.address,
            description=request.description,
            address_tag=request.address_tag,
        )
    )


@router.post("/api/transfers/business")
async def business_transfer(
    request: BusinessTransferRequest,
    transfers: AccountAndTransferTester = Depends(get_transfers),
) -> Any:
    return await run(
        lambda: transfers.create_business_transfer(
            recipient_id=request.recipient_id,
            amount=request.amount,
            currency=request.currency,
        )
    )


# ============================================================================
# Express route
# ============================================================================


@router.post("/api/express-route/link-bank")
async def express_link_bank(
    request: Optional[LinkBankRequest] = None,
    tester: ExpressRouteTester = Depends(get_express_route),
) -> Any:
    request = request or LinkBankRequest()
    return await run(
        lambda: tester.link_bank_account(
            account_number=request.account_number,
            routing_number=request.routing_number,
        )
    )


@router.post("/api/express-route/link-receipt")
async def express_link_receipt(
    request: Optional[LinkReceiptRequest] = None,
    tester: ExpressRouteTester = Depends(get_express_route),
) -> Any:
    request = request or LinkReceiptRequest()
    return await run(lambda: tester.link_receipt_address(chain=request.chain, currency=request.currency))


@router.post("/api/express-route/mock-deposit")
async def express_mock_deposit(
    request: MockDepositRequest,
    tester: ExpressRouteTester = Depends(get_express_route),
) -> Any:
    return await run(
        lambda: tester.initiate_mock_deposit(
            tracking_ref=request.tracking_ref,
            amount=request.amount,
            account_number=request.account_number,
        )
    )


@router.post("/api/express-route/onchain-deposit")
async def express_onchain_deposit(
    request: OnChainDepositRequest,
    tester: ExpressRouteTester = Depends(get_express_route),
) -> Any:
    return await run(
        lambda: tester.initiate_on_chain_deposit(
            address=request.address,
            chain=request.chain,
            amount=request.amount,
        )
    )


@router.post("/api/express-route/transfer")
async def express_transfer(
    request: OnChainTransferRequest,
    tester: ExpressRouteTester = Depends(get_express_route),
) -> Any:
    return await run(
        lambda: tester.initiate_on_chain_transfer(
            recipient_id=request.recipient_id,
            amount=request.amount,
            currency=request.currency,
        )
    )


@router.post("/api/express-route/withdraw")
async def express_withdraw(
    request: WithdrawRequest,
    tester: ExpressRouteTester = Depends(get_express_route),
) -> Any:
    return await run(
        lambda: tester.initiate_withdrawal(
            bank_account_id=request.bank_account_id,
            amount=request.amount,
            currency=request.currency,
        )
    )


@router.post("/api/express-route/create")
async def express_create(
    request: CreateExpressRouteRequest,
    tester: ExpressRouteTester = Depends(get_express_route),
) -> Any:
    return await run(
        lambda: tester.create_express_route(
            receipt_address_id=request.receipt_address_id,
            bank_account_id=request.bank_account_id,
            destination_type=request.destination_type,
            currency=request.currency,
        )
    )


@router.post("/api/express-route/run")
async def express_run(
    request: Optional[RunFlowRequest] = None,
    tester: ExpressRouteTester = Depends(get_express_route),
) -> Any:
    request = request or RunFlowRequest()
    return await run(lambda: tester.run_full_flow(chain=request.chain, amount=request.amount))


# ============================================================================
# Notification subscriptions
# ============================================================================


@router.get("/api/notifications/subscriptions")
async def list_subscriptions(client: MintClient = Depends(get_client)) -> Any:
    return await run(client.list_subscriptions)


@router.post("/api/notifications/subscriptions")
async def create_subscription(
    request: CreateSubscriptionRequest,
    client: MintClient = Depends(get_client),
) -> Any:
    return await run(lambda: client.create_subscription(request.endpoint))


@router.delete("/api/notifications/subscriptions/{subscription_id}")
async def delete_subscription(subscription_id: str, client: MintClient = Depends(get_client)) -> Any:
    return await run(lambda: client.delete_subscription(subscription_id))


# Must stay last: JSON 404 for any unmatched /api route.
@router.api_route("/api/{path:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def api_not_found(path: str) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "API route not found"})


# ============================================================================
# Application
# ============================================================================


async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("server_error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"error": str(exc)})


def create_app(settings: Optional[Settings] = None, client: Optional[MintClient] = None) -> FastAPI:
    """Build the dashboard app around one MintClient."""
    settings = settings or get_settings()
    configure_logging(json_output=True)
    client = client or MintClient(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(
            "Dashboard started",
            version=__version__,
            environment=settings.environment,
            mint_api=settings.base_url,
            webhook_url=f"http://{settings.host}:{settings.port}/webhooks",
        )
        if not settings.api_key:
            logger.warning("CIRCLE_API_KEY not set; Mint API calls will fail")

        yield

        await client.close()
        logger.info("Dashboard stopped")

    app = FastAPI(
        title="Mint Harness Dashboard",
        description="Developer dashboard for the Circle Mint API",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.client = client
    app.state.transfers = AccountAndTransferTester(client)
    app.state.express_route = ExpressRouteTester(client)
    app.state.events = EventBroadcaster()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(Exception, unhandled_error)
    app.include_router(router)

    static_dir = Path(settings.static_dir)
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")

    return app


# ============================================================================
# Entry Point
# ============================================================================


def run_server() -> None:
    """Run the dashboard server."""
    settings = get_settings()
    uvicorn.run(
        "mint_harness.server:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run_server()
