"""Background task that evicts expired rate limit windows"""
import asyncio
import logging

from contentgate.core.config import settings
from contentgate.core.metrics import rate_limit_records_removed_counter, rate_limit_sweeps_counter
from contentgate.services.rate_limiter import get_rate_limiter

rate_limit_logger = logging.getLogger("rate_limit")


def run_sweep() -> int:
    """Run a single sweep and record its outcome"""
    removed = get_rate_limiter().sweep()
    if removed:
        rate_limit_records_removed_counter.inc(removed)
        rate_limit_logger.info(f"Removed {removed} expired rate limit records")
    rate_limit_sweeps_counter.labels(status="success").inc()
    return removed


async def rate_limit_sweep_task():
    """Sweep expired rate limit records every RATE_LIMIT_SWEEP_INTERVAL_SECONDS

    Only keeps memory bounded; admission decisions never depend on a sweep
    having run.
    """
    while True:
        try:
            await asyncio.sleep(settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS)
            run_sweep()
        except asyncio.CancelledError:
            rate_limit_logger.info("Rate limit sweep task stopped")
            raise
        except Exception as e:
            rate_limit_logger.error(f"Error in rate limit sweep task: {e}", exc_info=True)
            rate_limit_sweeps_counter.labels(status="failure").inc()
