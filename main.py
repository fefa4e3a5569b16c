"""
Main entry point for the Volume Orchestrator.

Runs the trade scheduler either behind the control API (default) or
headless. In both modes SIGUSR1 toggles pause; in headless mode SIGINT and
SIGTERM ask the scheduler to stop after the current attempt.
"""

import argparse
import asyncio
import contextlib
import importlib
import random
import signal
import sys
from contextlib import asynccontextmanager
from typing import List, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import router
from config.settings import settings
from core.control import RunControl
from core.paper_market import PaperMarket
from core.sell_trigger import build_sell_trigger
from core.sizing import build_sizing_policy
from core.wallet_ledger import WalletLedger
from models.policy import SchedulerConfig, SellTriggerConfig, SizingConfig
from models.trade import SessionSummary
from models.wallet import SelectionMode, WalletSelection
from strategies.volume_scheduler import TradeScheduler, build_scheduler
from utils.helpers import format_amount
from utils.logger import logger
from utils.wallet_loader import load_allocations, load_wallets


def parse_indices(value: str) -> List[int]:
    """Parse a comma separated list of 1-based wallet indices."""
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid wallet indices: {value}")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Volume Orchestrator")
    parser.add_argument("--headless", action="store_true", help="Run without the control API")
    parser.add_argument("--dry-run", action="store_true", help="Trade against the in-memory paper market")
    parser.add_argument("--live", action="store_true", help="Use the configured execution backend")
    parser.add_argument("--max-ticks", type=int, default=None, help="Stop after this many buy attempts")
    parser.add_argument("--wallets", default=None, help="Wallet list JSON file")
    parser.add_argument("--allocations", default=None, help="Allocation table JSON file")
    parser.add_argument("--select", choices=[m.value for m in SelectionMode], default=SelectionMode.ALL.value,
                        help="How to pick participating wallets")
    parser.add_argument("--count", type=int, default=1, help="Number of wallets for random selection")
    parser.add_argument("--indices", type=parse_indices, default=[], help="Wallet indices, e.g. 1,3,5")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for a reproducible run")
    return parser.parse_args(argv)


def load_backend(path: str):
    """
    Import ``module:factory`` and build the live execution backend.

    The factory receives the settings and must return an object implementing
    the balance, holding, liquidity and execution interfaces.
    """
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ValueError(f"Backend must be given as module:factory, got {path!r}")
    factory = getattr(importlib.import_module(module_name), attr)
    return factory(settings)


def build_from_settings(args: argparse.Namespace) -> TradeScheduler:
    """Wire ledger, policies and backend from settings and command line."""
    rng = random.Random(args.seed) if args.seed is not None else random.Random()

    wallets = load_wallets(args.wallets or settings.wallets_file)
    selection = WalletSelection(mode=SelectionMode(args.select), count=args.count, indices=args.indices)
    ledger = WalletLedger.from_selection(wallets, selection, rebuy_ceiling=settings.rebuy_ceiling, rng=rng)

    allocations = load_allocations(args.allocations or settings.allocation_file, settings.quote_decimals)
    sizing = build_sizing_policy(SizingConfig.from_settings(settings, allocations), rng)
    logger.info("Sizing configured",
                mode=settings.sizing_mode,
                allocations=len(allocations),
                max_buy=format_amount(settings.max_buy_amount, settings.quote_decimals),
                max_supply_exposure=format_amount(settings.max_supply_exposure, settings.base_decimals, 0))
    sell_trigger = build_sell_trigger(SellTriggerConfig.from_settings(settings), rng)

    dry_run = args.dry_run or (settings.dry_run and not args.live)
    if dry_run:
        logger.info("Dry run, trading against the paper market",
                    quote_balance=format_amount(settings.paper_quote_balance, settings.quote_decimals))
        market = PaperMarket.for_wallets([r.address for r in ledger], settings.paper_quote_balance)
    else:
        if not settings.gateway:
            raise ValueError("Live mode needs VOLUME_GATEWAY set to module:factory")
        logger.info("Live mode", backend=settings.gateway)
        market = load_backend(settings.gateway)

    return build_scheduler(
        ledger,
        sizing,
        sell_trigger,
        market,
        config=SchedulerConfig.from_settings(settings),
        control=RunControl(),
        rng=rng,
    )


def install_signal_handlers(control: RunControl, stop_signals: bool) -> None:
    """Route process signals to the run control through the event loop."""
    loop = asyncio.get_running_loop()

    def request_stop(signame: str) -> None:
        logger.info(f"Received {signame}, stopping after the current attempt")
        control.request_stop()

    try:
        if hasattr(signal, "SIGUSR1"):
            loop.add_signal_handler(signal.SIGUSR1, control.toggle)
        if stop_signals:
            loop.add_signal_handler(signal.SIGINT, request_stop, "SIGINT")
            loop.add_signal_handler(signal.SIGTERM, request_stop, "SIGTERM")
    except (NotImplementedError, RuntimeError, ValueError) as e:
        # Not the main thread, or no loop signal support on this platform
        logger.warning("Signal handlers not installed", error=str(e))


async def run_headless(scheduler: TradeScheduler, max_ticks: Optional[int] = None) -> SessionSummary:
    """Run the scheduler to completion without the API."""
    install_signal_handlers(scheduler.control, stop_signals=True)
    return await scheduler.run(max_ticks=max_ticks)


def create_app(scheduler: TradeScheduler, max_ticks: Optional[int] = None) -> FastAPI:
    """FastAPI application that runs ``scheduler`` for its lifetime."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        # Startup
        logger.info("Starting Volume Orchestrator")
        install_signal_handlers(scheduler.control, stop_signals=False)
        task = asyncio.create_task(scheduler.run(max_ticks=max_ticks))

        yield

        # Shutdown
        logger.info("Shutting down Volume Orchestrator")
        scheduler.control.request_stop()
        grace = (settings.max_delay_ms / 1000 + settings.trade_timeout_seconds
                 + 3 * settings.lookup_timeout_seconds)
        try:
            await asyncio.wait_for(task, timeout=grace)
        except asyncio.TimeoutError:
            logger.warning("Scheduler did not stop in time, cancelling", grace_seconds=grace)
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        logger.info("Volume Orchestrator shutdown complete")

    app = FastAPI(
        title="Volume Orchestrator",
        description="Multi-wallet buy/sell scheduler against a constant-product pool",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api/v1")
    app.state.scheduler = scheduler
    return app


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        scheduler = build_from_settings(args)
    except (FileNotFoundError, ImportError, ValueError) as e:
        logger.error("Failed to start", error=str(e))
        return 1

    if not len(scheduler.ledger):
        logger.error("No wallets selected, nothing to do")
        return 1

    if args.headless:
        summary = asyncio.run(run_headless(scheduler, args.max_ticks))
        logger.info("Session summary", **summary.model_dump(mode="json"))
        return 0

    logger.info("Starting Volume Orchestrator server", host=settings.api_host, port=settings.api_port)
    uvicorn.run(
        create_app(scheduler, args.max_ticks),
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
