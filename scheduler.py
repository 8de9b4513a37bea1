#!/usr/bin/env python3
"""Automated Scheduler for the BPDM Gate -> Pool Sync.

This module provides a long-running scheduler that runs a sync pass at a
configurable interval. Designed to run as the main process in a container.

Architecture:
    - Simple asyncio loop with sleep
    - Graceful shutdown on SIGTERM/SIGINT
    - Configurable via environment variables (see src/bpdm/config.py)
    - A failed pass is retried with a linearly growing delay
    - With DATABASE_URL set, an advisory lock keeps several scheduler
      processes from running a pass at the same time

Environment Variables:
    SYNC_INTERVAL_MINUTES: Minutes between sync runs (default: 60)
    SYNC_ON_STARTUP: Run sync immediately on startup (default: true)
    SYNC_MAX_RETRIES: Attempts per scheduled pass (default: 3)
    SYNC_RETRY_DELAY_MINUTES: Base delay between attempts (default: 5)

Example:
    # Run every 15 minutes
    SYNC_INTERVAL_MINUTES=15 python scheduler.py
"""
import asyncio
import logging
import signal
import sys
from datetime import datetime, timedelta, timezone
from typing import Optional

from src.bpdm.api.exceptions import BPDMError, SyncInProgressError
from src.bpdm.bridge import Bridge, open_bridge
from src.bpdm.config import BridgeConfig

logger = logging.getLogger(__name__)


# ============================================
# Sync Logic
# ============================================

async def run_sync(bridge: Bridge) -> dict:
    """Run a single sync pass.

    Returns:
        Dict with the pass result, or the error that aborted it
    """
    start_time = datetime.now(timezone.utc)
    results = {
        "started_at": start_time.isoformat(),
        "success": False,
        "error": None,
    }

    try:
        result = await bridge.run_pass()
        results.update(result.to_dict())
        results["success"] = True
    except SyncInProgressError as e:
        logger.warning(f"Skipping pass: {e}")
        results["error"] = str(e)
        results["error_type"] = type(e).__name__
        results["skipped"] = True
    except Exception as e:
        logger.error(f"Sync pass failed: {type(e).__name__}: {e}", exc_info=True)
        results["error"] = str(e)
        results["error_type"] = type(e).__name__

    end_time = datetime.now(timezone.utc)
    results["completed_at"] = end_time.isoformat()
    results["duration_seconds"] = (end_time - start_time).total_seconds()
    return results


async def run_sync_with_retry(
    config: BridgeConfig,
    bridge: Bridge,
    shutdown_event: asyncio.Event,
) -> dict:
    """Run a pass, retrying on failure with a linearly growing delay.

    A pass skipped because another process holds the lock is not retried.
    """
    results: dict = {}
    for attempt in range(config.max_retries):
        results = await run_sync(bridge)

        if results["success"] or results.get("skipped"):
            if attempt > 0 and results["success"]:
                logger.info(f"Sync succeeded on attempt {attempt + 1}")
            return results

        if attempt < config.max_retries - 1:
            wait_minutes = config.retry_delay_minutes * (attempt + 1)
            logger.warning(
                f"Sync failed, retrying in {wait_minutes} minutes "
                f"(attempt {attempt + 1}/{config.max_retries})"
            )
            if await wait_or_shutdown(shutdown_event, wait_minutes * 60):
                return results

    logger.error(f"Sync failed after {config.max_retries} attempts: {results.get('error')}")
    return results


async def wait_or_shutdown(shutdown_event: asyncio.Event, seconds: float) -> bool:
    """Sleep for ``seconds``; return True if shutdown was requested meanwhile."""
    try:
        await asyncio.wait_for(shutdown_event.wait(), timeout=seconds)
        return True
    except asyncio.TimeoutError:
        return False


# ============================================
# Main Scheduler Loop
# ============================================

class SchedulerState:
    """Counters kept across passes, logged after each one."""

    def __init__(self):
        self.last_sync_at: Optional[datetime] = None
        self.last_sync_success: bool = False
        self.total_syncs: int = 0
        self.failed_syncs: int = 0

    def record(self, results: dict) -> None:
        self.total_syncs += 1
        self.last_sync_at = datetime.now(timezone.utc)
        self.last_sync_success = results["success"]
        if not results["success"] and not results.get("skipped"):
            self.failed_syncs += 1


async def scheduler_loop(
    config: BridgeConfig,
    bridge: Bridge,
    state: SchedulerState,
    shutdown_event: asyncio.Event,
):
    """Main scheduling loop."""
    interval_seconds = config.interval_minutes * 60

    if config.sync_on_startup:
        logger.info("Running initial sync on startup...")
        results = await run_sync_with_retry(config, bridge, shutdown_event)
        state.record(results)
        logger.info(f"Initial sync complete: success={results['success']}")

    while not shutdown_event.is_set():
        next_run = datetime.now(timezone.utc) + timedelta(seconds=interval_seconds)
        logger.info(f"Next sync at {next_run.isoformat()} (in {config.interval_minutes} minutes)")

        if await wait_or_shutdown(shutdown_event, interval_seconds):
            break

        logger.info("========== SCHEDULED SYNC ==========")
        results = await run_sync_with_retry(config, bridge, shutdown_event)
        state.record(results)
        logger.info(
            f"Sync complete: success={results['success']}, "
            f"duration={results.get('duration_seconds', 0):.1f}s, "
            f"total={state.total_syncs}, failed={state.failed_syncs}"
        )

    logger.info("Shutdown requested, exiting loop")


# ============================================
# Main Entry Point
# ============================================

async def main():
    """Main entry point for the scheduler."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    try:
        config = BridgeConfig.from_env()
    except BPDMError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    logger.info(f"Config: {config}")

    shutdown_event = asyncio.Event()

    def handle_shutdown(signum, frame):
        logger.info(f"Received signal {signum}, initiating shutdown...")
        shutdown_event.set()

    signal.signal(signal.SIGTERM, handle_shutdown)
    signal.signal(signal.SIGINT, handle_shutdown)

    try:
        async with open_bridge(config) as bridge:
            await scheduler_loop(config, bridge, SchedulerState(), shutdown_event)
    except BPDMError as e:
        logger.error(f"Scheduler stopped: {type(e).__name__}: {e}", exc_info=True)
        sys.exit(1)

    logger.info("Shutdown complete")


if __name__ == "__main__":
    asyncio.run(main())
