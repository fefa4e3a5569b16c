"""
REST API routes for the Volume Orchestrator.

Read-only views of the session plus the pause/resume/stop controls. The
scheduler and its run control are taken from ``app.state``.
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Query, Request

from models.wallet import WalletStatus
from strategies.volume_scheduler import TradeScheduler
from utils.logger import get_logger

logger = get_logger(__name__)

# Create API router
router = APIRouter()


def get_scheduler(request: Request) -> TradeScheduler:
    """Scheduler attached to the running application."""
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Scheduler not initialized")
    return scheduler


@router.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Volume Orchestrator API", "status": "running"}


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    scheduler = get_scheduler(request)
    return {
        "status": "healthy",
        "state": scheduler.state.value,
        "running": scheduler.is_running,
        "paused": scheduler.control.is_paused,
        "last_update": scheduler.last_update.isoformat(),
    }


@router.get("/status")
async def get_status(request: Request):
    """Session counters, wallet status counts and the sell trigger in use."""
    scheduler = get_scheduler(request)
    return {
        "summary": scheduler.summary().model_dump(mode="json"),
        "paused": scheduler.control.is_paused,
        "stop_requested": scheduler.control.stop_requested,
        "sell_requested": scheduler.control.sell_requested,
        "sell_trigger": scheduler.sell_trigger.describe(),
        "sizing": scheduler.sizing.mode.value,
    }


# Wallet endpoints
@router.get("/wallets")
async def get_wallets(request: Request, status: Optional[WalletStatus] = None):
    """Get all wallet records, optionally filtered by status."""
    scheduler = get_scheduler(request)
    records = scheduler.ledger.by_status(status) if status else list(scheduler.ledger)
    return {"wallets": [record.model_dump(mode="json") for record in records]}


@router.get("/wallets/{address}")
async def get_wallet(address: str, request: Request):
    """Get a specific wallet record."""
    record = get_scheduler(request).ledger.get(address)
    if record is None:
        raise HTTPException(status_code=404, detail="Wallet not found")
    return record.model_dump(mode="json")


# Control endpoints
@router.post("/pause")
async def pause(request: Request):
    """Stop issuing new trade attempts until resumed."""
    scheduler = get_scheduler(request)
    scheduler.control.pause()
    return {"message": "Trading paused", "paused": True}


@router.post("/resume")
async def resume(request: Request):
    """Resume issuing trade attempts."""
    scheduler = get_scheduler(request)
    scheduler.control.resume()
    return {"message": "Trading resumed", "paused": False}


@router.post("/toggle")
async def toggle(request: Request):
    """Flip the pause flag."""
    paused = get_scheduler(request).control.toggle()
    return {"message": "Trading paused" if paused else "Trading resumed", "paused": paused}


@router.post("/sell-recent")
async def sell_recent(request: Request, count: int = Query(default=3, ge=1)):
    """Sell the most recent buyer wallets at the scheduler's next attempt."""
    scheduler = get_scheduler(request)
    scheduler.control.request_sell_recent(count)
    return {"message": "Sell of recent buyers requested", "count": count}


@router.post("/stop")
async def stop(request: Request):
    """Ask the scheduler to finish after the current attempt."""
    scheduler = get_scheduler(request)
    if scheduler.control.stop_requested:
        return {"message": "Stop already requested"}
    await scheduler.stop()
    logger.info("Stop requested through API")
    return {"message": "Stop requested"}
