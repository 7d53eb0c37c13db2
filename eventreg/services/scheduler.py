"""
Background jobs started from the application lifespan:

- expired token cleanup, daily at midnight UTC
- sweep of expired entries in the in-process cache
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from eventreg.config import settings
from eventreg.database import SessionLocal
from eventreg.services.cleanup import cleanup_expired_tokens
from eventreg.utils.cache import cache
from eventreg.utils.timeutils import utcnow

logger = logging.getLogger("eventreg.scheduler")


def seconds_until_midnight(now: Optional[datetime] = None) -> float:
    now = now or utcnow()
    midnight = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return (midnight - now).total_seconds()


def run_token_cleanup() -> None:
    db = SessionLocal()
    try:
        cleanup_expired_tokens(db)
    except Exception:
        db.rollback()
        logger.exception("Error cleaning up expired tokens")
    finally:
        db.close()


class BackgroundJobs:
    def __init__(self):
        self._tasks: list[asyncio.Task] = []

    async def start(self):
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._cleanup_loop()),
            asyncio.create_task(self._cache_sweep_loop()),
        ]
        logger.info("Background jobs started")

    async def stop(self):
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        logger.info("Background jobs stopped")

    async def _cleanup_loop(self):
        while True:
            await asyncio.sleep(seconds_until_midnight())
            try:
                # DB work is blocking, keep it off the event loop
                await asyncio.to_thread(run_token_cleanup)
            except Exception:
                logger.exception("Token cleanup run failed")

    async def _cache_sweep_loop(self):
        while True:
            await asyncio.sleep(settings.CACHE_SWEEP_INTERVAL_SECONDS)
            try:
                cache.sweep()
            except Exception:
                logger.exception("Cache sweep failed")


jobs = BackgroundJobs()
