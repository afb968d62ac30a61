"""Periodic cleanup of in-memory sign-in state."""

import asyncio
import logging

from peaceblog.services.rate_limit import InMemoryRateLimiter
from peaceblog.services.verification import VerificationStore

logger = logging.getLogger(__name__)

# How often expired codes and idle rate limit windows are swept
MAINTENANCE_INTERVAL_SECONDS = 60.0


def sweep(store: VerificationStore, limiter: InMemoryRateLimiter) -> tuple[int, int]:
    """Drop expired verification codes and idle rate limit windows.

    Returns:
        Tuple of (codes_removed, clients_removed)
    """
    codes = store.purge_expired()
    clients = limiter.cleanup_old_entries()
    if codes or clients:
        logger.debug(f"Swept {codes} expired codes and {clients} idle rate limit clients")
    return codes, clients


async def run_maintenance(
    store: VerificationStore,
    limiter: InMemoryRateLimiter,
    interval: float = MAINTENANCE_INTERVAL_SECONDS,
) -> None:
    """Sweep every interval seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            sweep(store, limiter)
        except Exception:
            logger.exception("Maintenance sweep failed")
