"""
Health endpoints for the payout scheduler process.

``/health`` reports whether APScheduler is running together with the
persisted payout schedule; ``/ready`` answers 200 once jobs can fire.
"""

import asyncio

from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from payout_engine.services.scheduler.coordinator import (
    PayoutScheduleCoordinator,
)

_scheduler: AsyncIOScheduler | None = None
_coordinator: PayoutScheduleCoordinator | None = None


def set_scheduler(
    scheduler: AsyncIOScheduler,
    coordinator: PayoutScheduleCoordinator | None = None,
) -> None:
    """Register the scheduler and payout coordinator that the endpoints report on."""
    global _scheduler, _coordinator
    _scheduler = scheduler
    _coordinator = coordinator
    logger.info("Scheduler registered for health checks")


async def _payout_state() -> dict | None:
    if _coordinator is None:
        return None
    state = await _coordinator.get_state()
    return {
        "is_running": state.is_running,
        "status": state.status,
        "next_run": state.next_run.isoformat() if state.next_run else None,
        "last_run": state.last_run.isoformat() if state.last_run else None,
        "last_error": state.last_error,
    }


async def health_handler(request: web.Request) -> web.Response:
    """Scheduler liveness plus the persisted payout schedule."""
    if _scheduler is None:
        return web.json_response(
            {"status": "unhealthy", "error": "Scheduler not initialized"},
            status=503,
        )

    try:
        payout = await _payout_state()
    except Exception as e:
        logger.error(f"Health check could not read payout state: {e}")
        return web.json_response(
            {"status": "unhealthy", "error": str(e)},
            status=503,
        )

    return web.json_response(
        {
            "status": "healthy" if _scheduler.running else "stopped",
            "scheduler_running": _scheduler.running,
            "payout": payout,
        }
    )


async def readiness_handler(request: web.Request) -> web.Response:
    """200 while the scheduler is running, 503 otherwise."""
    ready = _scheduler is not None and _scheduler.running
    return web.json_response(
        {"status": "ready" if ready else "not_ready", "ready": ready},
        status=200 if ready else 503,
    )


def create_health_app() -> web.Application:
    """Application with ``/health`` and ``/ready`` routes."""
    app = web.Application()
    app.router.add_get("/health", health_handler)
    app.router.add_get("/ready", readiness_handler)
    return app


async def start_health_server(
    host: str = "0.0.0.0",
    port: int = 8080,
) -> web.AppRunner:
    """
    Serve the health app.

    Args:
        host: Host to bind to
        port: Port to bind to

    Returns:
        AppRunner for cleanup
    """
    runner = web.AppRunner(create_health_app())
    await runner.setup()
    await web.TCPSite(runner, host, port).start()
    logger.info(f"Health check server started on {host}:{port}")
    return runner


async def stop_health_server(runner: web.AppRunner, timeout: int = 5) -> None:
    """Clean up the health server, giving up after ``timeout`` seconds."""
    try:
        await asyncio.wait_for(runner.cleanup(), timeout=timeout)
        logger.info("Health check server stopped")
    except TimeoutError:
        logger.warning(f"Health check server cleanup timed out after {timeout}s")
